# src/task_tracker/tasks/positions.py

from __future__ import annotations

"""
Fractional ordering keys for drag-and-drop.

A task's `position` is a float. New tasks go after everything else with a wide
gap; a moved task takes the midpoint of its new neighbours, so a reorder only
rewrites one row. Repeated moves into the same gap halve it each time, which is
what `needs_rebalance` / `rebalance` are for.
"""

from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import TypeVar

from .task_models import Task

POSITION_GAP = 65536.0
END_GAP = POSITION_GAP * 2

T = TypeVar("T")


def append_position(positions: Iterable[float]) -> float:
    """Position for a new task: after every existing one, never below GAP."""
    return max(max(positions, default=0.0), 0.0) + POSITION_GAP


def move_item(items: Sequence[T], old_index: int, new_index: int) -> list[T]:
    """Pure list splice: take the item at old_index and insert it at new_index."""
    out = list(items)
    item = out.pop(old_index)
    out.insert(new_index, item)
    return out


def position_between(pos_prev: float | None, pos_next: float | None) -> float:
    """
    Midpoint between neighbours.

    No previous neighbour -> 0. No next neighbour -> prev + 2*GAP, so moving to
    the end lands exactly one GAP after the last item.
    """
    prev = pos_prev if pos_prev is not None else 0.0
    nxt = pos_next if pos_next is not None else prev + END_GAP
    return (prev + nxt) / 2


def _sort_key(task: Task) -> tuple[float, float]:
    created = task.created_at
    return (task.position, created.timestamp() if created is not None else 0.0)


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Order by position, ties broken by creation time ascending."""
    return sorted(tasks, key=_sort_key)


def reorder(tasks: Sequence[Task], active_id: str, over_id: str) -> tuple[list[Task], float] | None:
    """
    Move `active_id` to the index currently held by `over_id`.

    Returns the new ordering (with the moved task's position updated) and the
    new position, or None when there is nothing to do.
    """
    old_index = next((i for i, t in enumerate(tasks) if t.id == active_id), -1)
    new_index = next((i for i, t in enumerate(tasks) if t.id == over_id), -1)

    if old_index == -1 or new_index == -1 or old_index == new_index:
        return None

    moved = move_item(tasks, old_index, new_index)

    pos_prev = moved[new_index - 1].position if new_index > 0 else None
    pos_next = moved[new_index + 1].position if new_index + 1 < len(moved) else None

    new_position = position_between(pos_prev, pos_next)
    moved[new_index] = replace(moved[new_index], position=new_position)
    return moved, new_position


def needs_rebalance(tasks: Sequence[Task], min_gap: float) -> bool:
    """True when any two adjacent positions are closer than min_gap."""
    for prev, nxt in zip(tasks, tasks[1:]):
        if nxt.position - prev.position < min_gap:
            return True
    return False


def rebalance(tasks: Sequence[Task]) -> tuple[list[Task], list[Task]]:
    """
    Renumber positions to GAP, 2*GAP, ... keeping the current order.

    Returns (all tasks, only the tasks whose position changed).
    """
    out: list[Task] = []
    changed: list[Task] = []
    for i, task in enumerate(tasks, start=1):
        target = POSITION_GAP * i
        if task.position != target:
            task = replace(task, position=target)
            changed.append(task)
        out.append(task)
    return out, changed
