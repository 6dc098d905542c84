# tests/test_positions.py

from __future__ import annotations

from datetime import UTC, datetime

from task_tracker.tasks.positions import (
    POSITION_GAP,
    append_position,
    move_item,
    needs_rebalance,
    position_between,
    rebalance,
    reorder,
    sort_tasks,
)
from task_tracker.tasks.task_models import Task


def _task(task_id: str, position: float, created_second: int = 0) -> Task:
    return Task(
        id=task_id,
        description=task_id,
        client_id="c",
        type_id="t",
        requester_id="r",
        status_id="s",
        position=position,
        created_at=datetime(2024, 1, 1, 0, 0, created_second, tzinfo=UTC),
    )


def test_append_position_uses_gap_after_max() -> None:
    assert append_position([]) == POSITION_GAP == 65536
    assert append_position([10.0, 300.0]) == 300.0 + 65536
    # Negative positions never pull a new task below the first GAP.
    assert append_position([-5000.0]) == 65536


def test_sequential_appends_are_exactly_one_gap_apart() -> None:
    positions: list[float] = []
    for _ in range(5):
        positions.append(append_position(positions))
    assert positions == [65536 * i for i in range(1, 6)]


def test_move_item_is_a_pure_splice() -> None:
    items = ["a", "b", "c", "d"]
    assert move_item(items, 3, 1) == ["a", "d", "b", "c"]
    assert move_item(items, 0, 3) == ["b", "c", "d", "a"]
    assert items == ["a", "b", "c", "d"]


def test_position_between_edges() -> None:
    assert position_between(65536, 131072) == 98304
    assert position_between(None, 65536) == 32768
    # Last slot: one GAP after the previous element.
    assert position_between(196608, None) == 196608 + 65536


def test_reorder_between_two_neighbours() -> None:
    a, b, c = _task("a", 65536), _task("b", 131072), _task("c", 196608)

    result = reorder([a, b, c], "c", "b")
    assert result is not None
    moved, new_position = result

    assert new_position == 98304
    assert [t.id for t in moved] == ["a", "c", "b"]
    assert moved[1].position == 98304
    # Inputs are untouched.
    assert c.position == 196608


def test_reorder_to_end_and_front() -> None:
    a, b, c = _task("a", 65536), _task("b", 131072), _task("c", 196608)

    moved, pos = reorder([a, b, c], "a", "c")  # type: ignore[misc]
    assert [t.id for t in moved] == ["b", "c", "a"]
    assert pos == 196608 + 65536

    moved, pos = reorder([a, b, c], "c", "a")  # type: ignore[misc]
    assert [t.id for t in moved] == ["c", "a", "b"]
    assert pos == 32768


def test_reorder_noop_cases() -> None:
    a, b = _task("a", 1.0), _task("b", 2.0)
    assert reorder([a, b], "a", "a") is None
    assert reorder([a, b], "missing", "b") is None
    assert reorder([a, b], "a", "missing") is None


def test_sort_tasks_breaks_ties_by_creation_time() -> None:
    late = _task("late", 100.0, created_second=30)
    early = _task("early", 100.0, created_second=10)
    first = _task("first", 50.0, created_second=59)

    assert [t.id for t in sort_tasks([late, early, first])] == ["first", "early", "late"]


def test_needs_rebalance_detects_narrow_gaps() -> None:
    wide = [_task("a", 65536), _task("b", 131072)]
    narrow = [_task("a", 1.0), _task("b", 1.0 + 1e-9)]
    equal = [_task("a", 5.0), _task("b", 5.0)]

    assert not needs_rebalance(wide, 1e-6)
    assert needs_rebalance(narrow, 1e-6)
    assert needs_rebalance(equal, 1e-6)
    assert not needs_rebalance([], 1e-6)


def test_rebalance_keeps_order_and_reports_only_changes() -> None:
    tasks = [_task("a", 65536), _task("b", 70000), _task("c", 70000.5)]

    renumbered, changed = rebalance(tasks)

    assert [t.id for t in renumbered] == ["a", "b", "c"]
    assert [t.position for t in renumbered] == [65536, 131072, 196608]
    assert [t.id for t in changed] == ["b", "c"]
