# File: coordinator.py
"""Coordinator for the Momentum integration.

Owns the store, the managers and the injected clock. Task status changes
are orchestrated here: TaskManager updates the task, then HabitManager or
ProjectManager reacts. Their errors propagate to the service caller, so a
failed follow-up is never hidden behind a dispatcher signal.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from . import const
from .managers import HabitManager, ProjectManager, SystemManager, TaskManager
from .store import MomentumStore
from .utils import dt_utils


class MomentumCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Coordinator for Momentum.

    Data is pushed, not polled: `update_interval` is None and listeners are
    notified after every orchestrated change.
    """

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        store: MomentumStore,
        clock: Callable[[], date] | None = None,
    ) -> None:
        """Initialize the MomentumCoordinator.

        Args:
            hass: Home Assistant instance
            config_entry: The integration's config entry
            store: Loaded MomentumStore
            clock: Returns today's local date; defaults to dt_today_local
        """
        super().__init__(
            hass,
            const.LOGGER,
            config_entry=config_entry,
            name=f"{const.DOMAIN}_coordinator",
            update_interval=None,
        )
        self.config_entry = config_entry
        self.store = store
        self._clock = clock or dt_utils.dt_today_local

        self.system_manager = SystemManager(hass, self)
        self.task_manager = TaskManager(hass, self)
        self.habit_manager = HabitManager(hass, self)
        self.project_manager = ProjectManager(hass, self)

    # -------------------------------------------------------------------------------------
    # Clock and options
    # -------------------------------------------------------------------------------------

    def today(self) -> date:
        """Today's local date (injected clock)."""
        return self._clock()

    def _option(self, key: str, default: int) -> int:
        return int(self.config_entry.options.get(key, default))

    @property
    def maintenance_time(self) -> tuple[int, int]:
        return (
            self._option(const.CONF_MAINTENANCE_HOUR, const.DEFAULT_MAINTENANCE_HOUR),
            self._option(
                const.CONF_MAINTENANCE_MINUTE, const.DEFAULT_MAINTENANCE_MINUTE
            ),
        )

    @property
    def regeneration_day(self) -> int:
        return self._option(const.CONF_REGENERATION_DAY, const.DEFAULT_REGENERATION_DAY)

    @property
    def statistics_window_days(self) -> int:
        return self._option(
            const.CONF_STATISTICS_WINDOW_DAYS, const.DEFAULT_STATISTICS_WINDOW_DAYS
        )

    # -------------------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------------------

    async def _async_update_data(self) -> dict[str, Any]:
        """Return the in-memory store document (no polling source)."""
        return self.store.data

    async def async_setup_managers(self) -> None:
        """Set up managers, then run the startup rollover catch-up.

        SystemManager goes last so every listener is connected before the
        catch-up rollover is emitted.
        """
        await self.task_manager.async_setup()
        await self.habit_manager.async_setup()
        await self.project_manager.async_setup()
        await self.system_manager.async_setup()
        await self.system_manager.async_run_startup_catchup()
        self.async_set_updated_data(self.store.data)

    @callback
    def async_notify(self) -> None:
        """Push the current store document to listeners."""
        self.async_set_updated_data(self.store.data)

    # -------------------------------------------------------------------------------------
    # Task status path
    # -------------------------------------------------------------------------------------

    async def async_complete_task(self, task_id: str) -> dict[str, Any]:
        """Complete a task and run the habit or project follow-up."""
        before = await self.task_manager.async_get_task(task_id)
        task = await self.task_manager.async_complete_task(task_id)
        if before.get(const.FIELD_STATUS) != const.TASK_STATUS_COMPLETED:
            if task.get(const.FIELD_HABIT_ID):
                await self.habit_manager.async_handle_instance_completed(task)
            elif task.get(const.FIELD_PROJECT_ID):
                await self.project_manager.async_handle_task_completion(
                    task_id, task[const.FIELD_PROJECT_ID]
                )
        self.async_notify()
        return task

    async def async_uncomplete_task(
        self, task_id: str, restore_status: str = const.TASK_STATUS_ON_DECK
    ) -> dict[str, Any]:
        """Reopen a task; project steps revert to in_progress.

        A reopened habit instance takes back the follow-up instance its
        completion generated.
        """
        before = await self.task_manager.async_get_task(task_id)
        task = await self.task_manager.async_uncomplete_task(task_id, restore_status)
        if before.get(const.FIELD_STATUS) == const.TASK_STATUS_COMPLETED:
            if task.get(const.FIELD_HABIT_ID):
                await self.habit_manager.async_handle_instance_reopened(task)
            elif task.get(const.FIELD_PROJECT_ID):
                await self.project_manager.async_handle_task_uncomplete(task_id)
        self.async_notify()
        return task

    async def async_delete_task(self, task_id: str) -> dict[str, Any]:
        """Delete a task; a project step loses its link and the frontier is refilled."""
        removed = await self.task_manager.async_delete_task(task_id)
        if removed.get(const.FIELD_PROJECT_ID):
            await self.project_manager.async_handle_task_deletion(task_id)
        self.async_notify()
        return removed
