# File: config_flow.py
"""Config flow for the Momentum integration.

A single confirmation step creates the (single) config entry. Scheduling
options live in the options flow; habits and projects live in storage.
"""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback

from . import const
from .options_flow import MomentumOptionsFlowHandler


class MomentumConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """Config Flow for Momentum."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.ConfigFlowResult:
        """Confirm setup. Only one instance is allowed."""
        if self._async_current_entries():
            return self.async_abort(reason=const.TRANS_KEY_ERROR_SINGLE_INSTANCE)

        if user_input is not None:
            const.LOGGER.debug("Creating Momentum config entry with default options")
            return self.async_create_entry(
                title=const.MOMENTUM_TITLE,
                data={},
                options={
                    const.CONF_MAINTENANCE_HOUR: const.DEFAULT_MAINTENANCE_HOUR,
                    const.CONF_MAINTENANCE_MINUTE: const.DEFAULT_MAINTENANCE_MINUTE,
                    const.CONF_REGENERATION_DAY: const.DEFAULT_REGENERATION_DAY,
                    const.CONF_STATISTICS_WINDOW_DAYS: (
                        const.DEFAULT_STATISTICS_WINDOW_DAYS
                    ),
                },
            )

        return self.async_show_form(step_id="user", data_schema=vol.Schema({}))

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> MomentumOptionsFlowHandler:
        """Return the Options Flow."""
        return MomentumOptionsFlowHandler()
