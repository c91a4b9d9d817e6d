"""Multi-record write helpers for Momentum.

The store persists one record per call, so a logical write spanning several
records (item + task, task + step + project) is run as an ordered list of
steps. When a step fails, the compensations of the steps that already
succeeded run in reverse order and the original error is re-raised.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
import uuid

from .. import const

if TYPE_CHECKING:
    from ..store import MomentumStore


@dataclass
class RollbackStep:
    """One write of a multi-record operation.

    Attributes:
        name: Short label used in logs ("create item")
        action: Coroutine factory performing the write
        compensate: Coroutine factory undoing the write, called with the
            action's result. None for steps that need no undo.
    """

    name: str
    action: Callable[[], Awaitable[Any]]
    compensate: Callable[[Any], Awaitable[Any]] | None = None


async def async_run_with_rollback(steps: Sequence[RollbackStep]) -> list[Any]:
    """Run steps in order; on failure undo completed steps in reverse.

    A failing compensation is logged and the remaining compensations still
    run. The error raised by the failing step always propagates unchanged.

    Returns:
        The result of every step's action, in order.
    """
    completed: list[tuple[RollbackStep, Any]] = []
    for step in steps:
        try:
            result = await step.action()
        except Exception:
            const.LOGGER.warning(
                "Write step '%s' failed, rolling back %s completed step(s)",
                step.name,
                len(completed),
            )
            await _async_compensate(completed)
            raise
        completed.append((step, result))
    return [result for _, result in completed]


async def _async_compensate(completed: list[tuple[RollbackStep, Any]]) -> None:
    for step, result in reversed(completed):
        if step.compensate is None:
            continue
        try:
            await step.compensate(result)
        except Exception as err:  # pylint: disable=broad-exception-caught
            const.LOGGER.error("Failed to roll back step '%s': %s", step.name, err)


# ────────────────────────────────────────────────────────────────
# Item + record pairs
# ────────────────────────────────────────────────────────────────


def build_item(record: dict[str, Any], item_type: str) -> dict[str, Any]:
    """Generic item record sharing its id with a task, habit or project."""
    return {
        const.FIELD_ID: record[const.FIELD_ID],
        const.FIELD_USER_ID: record.get(const.FIELD_USER_ID, const.DEFAULT_USER_ID),
        const.FIELD_TITLE: record.get(const.FIELD_TITLE, ""),
        const.FIELD_ITEM_TYPE: item_type,
        const.FIELD_IS_ARCHIVED: False,
    }


def item_pair_steps(
    store: MomentumStore, bucket: str, item_type: str, record: dict[str, Any]
) -> list[RollbackStep]:
    """Steps creating the item first, then the bucket record with the same id.

    The record must already carry its id.
    """
    record_id = record[const.FIELD_ID]
    item = build_item(record, item_type)
    return [
        RollbackStep(
            name="create item",
            action=lambda: store.async_create(const.DATA_ITEMS, item),
            compensate=lambda _: store.async_delete(const.DATA_ITEMS, record_id),
        ),
        RollbackStep(
            name=f"create {bucket} record",
            action=lambda: store.async_create(bucket, record),
            compensate=lambda _: store.async_delete(bucket, record_id),
        ),
    ]


async def async_create_with_item(
    store: MomentumStore, bucket: str, item_type: str, record: dict[str, Any]
) -> dict[str, Any]:
    """Two-phase create: item, then the bucket record. Returns the record.

    If the record write fails the item is deleted again.
    """
    record = {**record, const.FIELD_ID: record.get(const.FIELD_ID) or uuid.uuid4().hex}
    results = await async_run_with_rollback(
        item_pair_steps(store, bucket, item_type, record)
    )
    return results[-1]


async def async_delete_with_item(
    store: MomentumStore, bucket: str, record_id: str
) -> dict[str, Any]:
    """Delete a bucket record and its item. Returns the removed record.

    If the item delete fails the record is restored.
    """
    steps = [
        RollbackStep(
            name=f"delete {bucket} record",
            action=lambda: store.async_delete(bucket, record_id),
            compensate=lambda removed: store.async_create(bucket, removed),
        )
    ]
    if await store.async_exists(const.DATA_ITEMS, record_id):
        steps.append(
            RollbackStep(
                name="delete item",
                action=lambda: store.async_delete(const.DATA_ITEMS, record_id),
            )
        )
    results = await async_run_with_rollback(steps)
    return results[0]
