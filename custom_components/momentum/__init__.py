# File: __init__.py
"""Initialization file for the Momentum integration.

Handles setting up the integration: loading the storage document, creating
the coordinator and its managers, and registering services.

Key Features:
- Config entry setup, unload and removal.
- Home Assistant's configured time zone drives every local-date calculation.
- Options changes reload the entry so the maintenance timer is rescheduled.
"""

from __future__ import annotations

from zoneinfo import ZoneInfo

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from . import const
from .coordinator import MomentumCoordinator
from .services import async_setup_services, async_unload_services
from .store import MomentumStore
from .utils import dt_utils


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up the integration from a config entry."""
    const.LOGGER.info("Starting setup for Momentum entry: %s", entry.entry_id)

    # Must be set before anything computes "today"
    dt_utils.set_default_timezone(ZoneInfo(hass.config.time_zone))

    store = MomentumStore(hass, const.STORAGE_KEY)
    await store.async_initialize()

    coordinator = MomentumCoordinator(hass, entry, store)

    hass.data.setdefault(const.DOMAIN, {})[entry.entry_id] = {
        const.COORDINATOR: coordinator,
    }

    await coordinator.async_setup_managers()

    async_setup_services(hass)

    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    const.LOGGER.info("Momentum setup complete for entry: %s", entry.entry_id)
    return True


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry when options change."""
    const.LOGGER.debug("Options changed, reloading entry %s", entry.entry_id)
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    const.LOGGER.info("Unloading Momentum entry: %s", entry.entry_id)

    hass.data[const.DOMAIN].pop(entry.entry_id, None)
    if not hass.data[const.DOMAIN]:
        await async_unload_services(hass)

    return True


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle removal of a config entry by deleting the storage document."""
    const.LOGGER.info("Removing Momentum entry: %s", entry.entry_id)
    store = MomentumStore(hass, const.STORAGE_KEY)
    await store.async_delete_storage()
