# File: managers/task_manager.py
"""Task Manager - the status-update path shared by every task.

Habit instances, project step tasks and ad-hoc tasks all change status
through this manager. It only touches the task record (and its item on
delete); follow-up work for habits and projects is orchestrated by the
coordinator, which hands the updated task to HabitManager or ProjectManager.

Signals Emitted:
- SIGNAL_SUFFIX_TASK_COMPLETED
- SIGNAL_SUFFIX_TASK_UNCOMPLETED
- SIGNAL_SUFFIX_TASK_DELETED
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const
from ..helpers.write_helpers import async_delete_with_item
from ..utils import dt_utils
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import MomentumCoordinator


class TaskManager(BaseManager):
    """Status changes and deletion for task instances."""

    def __init__(self, hass: HomeAssistant, coordinator: MomentumCoordinator) -> None:
        """Initialize TaskManager."""
        super().__init__(hass, coordinator)

    async def async_setup(self) -> None:
        """Nothing to subscribe to; TaskManager is driven by the coordinator."""
        const.LOGGER.debug("TaskManager initialized for entry %s", self.entry_id)

    async def async_get_task(self, task_id: str) -> dict[str, Any]:
        return await self.store.async_get(const.DATA_TASKS, task_id)

    async def async_complete_task(self, task_id: str) -> dict[str, Any]:
        """Mark a task completed and stamp completed_at.

        Completing an already completed task returns it unchanged.

        Raises:
            RecordNotFoundError: Unknown task id.
            StorageWriteError: The update could not be persisted.
        """
        task = await self.store.async_get(const.DATA_TASKS, task_id)
        if task.get(const.FIELD_STATUS) == const.TASK_STATUS_COMPLETED:
            const.LOGGER.debug("Task %s already completed", task_id)
            return task

        updated = await self.store.async_update(
            const.DATA_TASKS,
            task_id,
            {
                const.FIELD_STATUS: const.TASK_STATUS_COMPLETED,
                const.FIELD_COMPLETED_AT: dt_utils.dt_now_iso(),
            },
        )
        self.emit(
            const.SIGNAL_SUFFIX_TASK_COMPLETED,
            task_id=task_id,
            habit_id=updated.get(const.FIELD_HABIT_ID),
            project_id=updated.get(const.FIELD_PROJECT_ID),
        )
        return updated

    async def async_uncomplete_task(
        self, task_id: str, restore_status: str = const.TASK_STATUS_ON_DECK
    ) -> dict[str, Any]:
        """Reopen a completed task and clear completed_at.

        Raises:
            RecordNotFoundError: Unknown task id.
            DuplicateRecordError: Reopening would create a second open
                instance of a habit on the same date.
        """
        if restore_status == const.TASK_STATUS_COMPLETED:
            raise ValueError("restore_status must be an open status")

        task = await self.store.async_get(const.DATA_TASKS, task_id)
        if task.get(const.FIELD_STATUS) != const.TASK_STATUS_COMPLETED:
            const.LOGGER.debug("Task %s is not completed, nothing to reopen", task_id)
            return task

        updated = await self.store.async_update(
            const.DATA_TASKS,
            task_id,
            {const.FIELD_STATUS: restore_status, const.FIELD_COMPLETED_AT: None},
        )
        self.emit(
            const.SIGNAL_SUFFIX_TASK_UNCOMPLETED,
            task_id=task_id,
            habit_id=updated.get(const.FIELD_HABIT_ID),
            project_id=updated.get(const.FIELD_PROJECT_ID),
        )
        return updated

    async def async_delete_task(self, task_id: str) -> dict[str, Any]:
        """Delete a task and its item. Returns the removed task."""
        removed = await async_delete_with_item(self.store, const.DATA_TASKS, task_id)
        self.emit(
            const.SIGNAL_SUFFIX_TASK_DELETED,
            task_id=task_id,
            habit_id=removed.get(const.FIELD_HABIT_ID),
            project_id=removed.get(const.FIELD_PROJECT_ID),
        )
        return removed
