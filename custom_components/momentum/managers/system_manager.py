# File: managers/system_manager.py
"""System Manager for Momentum integration.

Timer owner: registers the single `async_track_time_change` heartbeat at the
configured maintenance time and emits DAILY_ROLLOVER. Domain managers
subscribe and perform their own daily work (HabitManager activates today's
instances and runs the monthly regeneration when due).

Startup catch-up: if the last processed rollover day is before today (HA
was down at maintenance time), a rollover is emitted once during setup.

Signals Emitted:
- SIGNAL_SUFFIX_DAILY_ROLLOVER: payload {"date": ISO date, "catch_up": bool}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.core import callback
from homeassistant.helpers.event import async_track_time_change

from .. import const
from ..utils import dt_utils
from .base_manager import BaseManager

if TYPE_CHECKING:
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from ..coordinator import MomentumCoordinator


class SystemManager(BaseManager):
    """System Manager - owns the maintenance timer."""

    def __init__(self, hass: HomeAssistant, coordinator: MomentumCoordinator) -> None:
        """Initialize system manager.

        Args:
            hass: Home Assistant instance
            coordinator: Parent coordinator
        """
        super().__init__(hass, coordinator)

    async def async_setup(self) -> None:
        """Register the daily maintenance timer.

        The unsubscribe callback is tied to the config entry so the timer
        is removed on unload.
        """
        hour, minute = self.coordinator.maintenance_time
        unsub = async_track_time_change(
            self.hass,
            self._on_maintenance_tick,
            hour=hour,
            minute=minute,
            second=0,
        )
        self.coordinator.config_entry.async_on_unload(unsub)
        const.LOGGER.debug(
            "SystemManager initialized: maintenance timer at %02d:%02d for entry %s",
            hour,
            minute,
            self.entry_id,
        )

    @callback
    def _on_maintenance_tick(self, _: datetime) -> None:
        """Handle the daily timer tick."""
        const.LOGGER.debug("SystemManager: Daily rollover triggered")
        self.hass.async_create_task(self.async_run_rollover())

    async def async_run_rollover(self, catch_up: bool = False) -> None:
        """Emit DAILY_ROLLOVER and stamp today as processed."""
        today = self.today()
        self.emit(
            const.SIGNAL_SUFFIX_DAILY_ROLLOVER,
            date=today.isoformat(),
            catch_up=catch_up,
        )
        await self.store.async_set_meta(
            const.DATA_META_LAST_ROLLOVER, today.isoformat()
        )

    async def async_run_startup_catchup(self) -> bool:
        """Emit a rollover on startup when the last processed day is stale.

        Returns:
            True when a catch-up rollover was emitted.
        """
        today = self.today()
        last_processed = dt_utils.dt_parse_date(
            self.store.get_meta(const.DATA_META_LAST_ROLLOVER)
        )
        if last_processed is not None and last_processed >= today:
            const.LOGGER.debug(
                "SystemManager: Rollover catch-up not needed (last_processed=%s)",
                last_processed,
            )
            return False

        const.LOGGER.info(
            "SystemManager: Startup rollover catch-up triggered (last_processed=%s)",
            last_processed or "missing",
        )
        await self.async_run_rollover(catch_up=True)
        return True
