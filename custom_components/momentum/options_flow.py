# File: options_flow.py
"""Options flow for the Momentum integration.

Edits the maintenance schedule and statistics window. Saving the options
reloads the entry (see the update listener in __init__.py) so the timer is
re-registered at the new time.
"""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant import config_entries

from . import const


def build_options_schema(options: dict[str, Any]) -> vol.Schema:
    """Return the options schema with current values as defaults."""
    return vol.Schema(
        {
            vol.Required(
                const.CONF_MAINTENANCE_HOUR,
                default=options.get(
                    const.CONF_MAINTENANCE_HOUR, const.DEFAULT_MAINTENANCE_HOUR
                ),
            ): vol.All(vol.Coerce(int), vol.Range(min=0, max=23)),
            vol.Required(
                const.CONF_MAINTENANCE_MINUTE,
                default=options.get(
                    const.CONF_MAINTENANCE_MINUTE, const.DEFAULT_MAINTENANCE_MINUTE
                ),
            ): vol.All(vol.Coerce(int), vol.Range(min=0, max=59)),
            vol.Required(
                const.CONF_REGENERATION_DAY,
                default=options.get(
                    const.CONF_REGENERATION_DAY, const.DEFAULT_REGENERATION_DAY
                ),
            ): vol.All(
                vol.Coerce(int), vol.Range(min=1, max=const.MAX_REGENERATION_DAY)
            ),
            vol.Required(
                const.CONF_STATISTICS_WINDOW_DAYS,
                default=options.get(
                    const.CONF_STATISTICS_WINDOW_DAYS,
                    const.DEFAULT_STATISTICS_WINDOW_DAYS,
                ),
            ): vol.All(
                vol.Coerce(int),
                vol.Range(min=1, max=const.MAX_STATISTICS_WINDOW_DAYS),
            ),
        }
    )


class MomentumOptionsFlowHandler(config_entries.OptionsFlow):
    """Options Flow for the maintenance schedule."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.ConfigFlowResult:
        """Show and save the scheduling options."""
        if user_input is not None:
            const.LOGGER.debug("Saving Momentum options: %s", user_input)
            return self.async_create_entry(title="", data=user_input)

        return self.async_show_form(
            step_id="init",
            data_schema=build_options_schema(dict(self.config_entry.options)),
        )
