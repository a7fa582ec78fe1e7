"""Fractional-key ordering for tasks.

A task's position is carried entirely by its float ``order``. New positions
are found by appending past the maximum, prepending before the minimum, or
bisecting between two neighbours, so no other task is ever renumbered.

Repeated bisection between the same pair runs out of float precision after
about 52 halvings; at that point the midpoint equals a neighbour and a
PrecisionExhaustedWarning is issued. Renumbering is left to the caller.
"""

from __future__ import annotations

import logging
import warnings
from typing import Iterable

from tamo.errors import PrecisionExhaustedWarning
from tamo.model import Store, Task

logger = logging.getLogger(__name__)

ORDER_STEP = 1.0


def sorted_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Ascending by order; equal keys keep their iteration order."""
    return sorted(tasks, key=lambda t: t.order)


def append_order(store: Store) -> float:
    """Order for a task placed after every existing task (1.0 when empty)."""
    return store.max_order() + ORDER_STEP


def prepend_order(store: Store) -> float:
    """Order for a task placed before every existing task (-1.0 when empty)."""
    return store.min_order() - ORDER_STEP


def place_absolute(task: Task, order: float) -> None:
    """Set an explicit order. Collisions are allowed."""
    task.move_to(order)


def midpoint(lower: float, upper: float) -> float:
    """Midpoint of two orders, warning when it collapses onto either bound."""
    mid = (lower + upper) / 2.0
    if mid == lower or mid == upper:
        logger.warning("Order precision exhausted between %r and %r", lower, upper)
        warnings.warn(
            f"midpoint of {lower!r} and {upper!r} is not distinct from its neighbours",
            PrecisionExhaustedWarning,
            stacklevel=3,
        )
    return mid


def _neighbours(
    tasks: Iterable[Task], target: Task, mover: Task | None
) -> tuple[Task | None, Task | None]:
    ordered = [t for t in sorted_tasks(tasks) if mover is None or t.id != mover.id]
    for i, task in enumerate(ordered):
        if task.id == target.id:
            before = ordered[i - 1] if i > 0 else None
            after = ordered[i + 1] if i + 1 < len(ordered) else None
            return before, after
    raise ValueError(f"target task {target.id} is not in the task set")


def order_before(tasks: Iterable[Task], target: Task, mover: Task | None = None) -> float:
    """Order placing a task immediately before target.

    The mover is left out of the neighbour lookup.
    """
    previous, _ = _neighbours(tasks, target, mover)
    if previous is None:
        return target.order - ORDER_STEP
    return midpoint(previous.order, target.order)


def order_after(tasks: Iterable[Task], target: Task, mover: Task | None = None) -> float:
    """Order placing a task immediately after target."""
    _, following = _neighbours(tasks, target, mover)
    if following is None:
        return target.order + ORDER_STEP
    return midpoint(target.order, following.order)


def move_before(tasks: Iterable[Task], mover: Task, target: Task) -> float:
    if mover.id == target.id:
        raise ValueError("cannot move a task relative to itself")
    order = order_before(tasks, target, mover)
    mover.move_to(order)
    logger.info("Moved task %s before %s (order %r)", mover.id[:8], target.id[:8], order)
    return order


def move_after(tasks: Iterable[Task], mover: Task, target: Task) -> float:
    if mover.id == target.id:
        raise ValueError("cannot move a task relative to itself")
    order = order_after(tasks, target, mover)
    mover.move_to(order)
    logger.info("Moved task %s after %s (order %r)", mover.id[:8], target.id[:8], order)
    return order


# ── Queue views ───────────────────────────────────────────────


def first_task(tasks: Iterable[Task]) -> Task | None:
    ordered = sorted_tasks(tasks)
    return ordered[0] if ordered else None


def last_task(tasks: Iterable[Task]) -> Task | None:
    ordered = sorted_tasks(tasks)
    return ordered[-1] if ordered else None


def next_undone(tasks: Iterable[Task]) -> Task | None:
    """The lowest-ordered task that is not done."""
    for task in sorted_tasks(tasks):
        if not task.done:
            return task
    return None
