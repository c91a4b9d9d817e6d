# File: services.py
"""Defines custom services for the Momentum integration.

These services expose the habit and project operations to scripts and
automations. Errors raised by the managers (not found, invalid rule, failed
write) propagate to the caller as translated HomeAssistantErrors.
"""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant.core import (
    HomeAssistant,
    ServiceCall,
    ServiceResponse,
    SupportsResponse,
)
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv

from . import const
from .coordinator import MomentumCoordinator

# --- Service Schemas ---
HABIT_ID_SCHEMA = vol.Schema({vol.Required(const.ATTR_HABIT_ID): cv.string})

PROJECT_ID_SCHEMA = vol.Schema({vol.Required(const.ATTR_PROJECT_ID): cv.string})

TASK_ID_SCHEMA = vol.Schema({vol.Required(const.ATTR_TASK_ID): cv.string})

CREATE_HABIT_SCHEMA = vol.Schema(
    {
        vol.Required(const.ATTR_TITLE): cv.string,
        vol.Required(const.ATTR_RECURRENCE_RULE): dict,
        vol.Optional(const.FIELD_USER_ID, default=const.DEFAULT_USER_ID): cv.string,
        vol.Optional(const.ATTR_DESCRIPTION, default=""): cv.string,
        vol.Optional(const.ATTR_PRIORITY, default=const.PRIORITY_NORMAL): vol.In(
            const.PRIORITIES
        ),
        vol.Optional(const.ATTR_IS_ACTIVE, default=True): cv.boolean,
        vol.Optional(const.ATTR_CHECKLIST_TEMPLATE_ID): vol.Any(cv.string, None),
    }
)

UPDATE_HABIT_SCHEMA = vol.Schema(
    {
        vol.Required(const.ATTR_HABIT_ID): cv.string,
        vol.Optional(const.ATTR_TITLE): cv.string,
        vol.Optional(const.ATTR_RECURRENCE_RULE): dict,
        vol.Optional(const.ATTR_DESCRIPTION): cv.string,
        vol.Optional(const.ATTR_PRIORITY): vol.In(const.PRIORITIES),
        vol.Optional(const.ATTR_IS_ACTIVE): cv.boolean,
        vol.Optional(const.ATTR_CHECKLIST_TEMPLATE_ID): vol.Any(cv.string, None),
    }
)

GENERATE_NEXT_TASK_SCHEMA = vol.Schema(
    {
        vol.Required(const.ATTR_HABIT_ID): cv.string,
        vol.Optional(const.ATTR_FROM_DATE): cv.date,
        vol.Optional(const.ATTR_IS_INITIAL, default=False): cv.boolean,
    }
)

GET_HABIT_STATISTICS_SCHEMA = vol.Schema(
    {
        vol.Required(const.ATTR_HABIT_ID): cv.string,
        vol.Optional(const.ATTR_WINDOW_DAYS): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=const.MAX_STATISTICS_WINDOW_DAYS)
        ),
    }
)

PROJECT_STEP_SCHEMA = vol.Schema(
    {
        vol.Required(const.ATTR_TITLE): cv.string,
        vol.Optional(const.ATTR_DESCRIPTION, default=""): cv.string,
        vol.Optional(const.ATTR_PRIORITY, default=const.PRIORITY_NORMAL): vol.In(
            const.PRIORITIES
        ),
        vol.Optional(const.FIELD_ORDER_NUMBER): vol.Coerce(int),
        vol.Optional(const.ATTR_DUE_DATE): vol.Any(cv.string, None),
        vol.Optional(const.ATTR_ASSIGNED_DATE): vol.Any(cv.string, None),
    }
)

CREATE_PROJECT_SCHEMA = vol.Schema(
    {
        vol.Required(const.ATTR_TITLE): cv.string,
        vol.Required(const.ATTR_STEPS): vol.All(cv.ensure_list, [PROJECT_STEP_SCHEMA]),
        vol.Optional(const.FIELD_USER_ID, default=const.DEFAULT_USER_ID): cv.string,
        vol.Optional(const.ATTR_DESCRIPTION, default=""): cv.string,
        vol.Optional(const.ATTR_STATUS, default=const.PROJECT_STATUS_ACTIVE): vol.In(
            const.PROJECT_STATUSES
        ),
    }
)

SET_PROJECT_STATUS_SCHEMA = vol.Schema(
    {
        vol.Required(const.ATTR_PROJECT_ID): cv.string,
        vol.Required(const.ATTR_STATUS): vol.In(const.PROJECT_STATUSES),
    }
)

UNCOMPLETE_TASK_SCHEMA = vol.Schema(
    {
        vol.Required(const.ATTR_TASK_ID): cv.string,
        vol.Optional(
            const.ATTR_RESTORE_STATUS, default=const.TASK_STATUS_ON_DECK
        ): vol.In(
            (
                const.TASK_STATUS_ON_DECK,
                const.TASK_STATUS_ACTIVE,
                const.TASK_STATUS_HABIT,
            )
        ),
    }
)

EMPTY_SCHEMA = vol.Schema({})


def get_coordinator(hass: HomeAssistant) -> MomentumCoordinator:
    """Return the coordinator of the first loaded Momentum entry."""
    entries = hass.data.get(const.DOMAIN) or {}
    for entry_data in entries.values():
        return entry_data[const.COORDINATOR]
    raise HomeAssistantError(
        translation_domain=const.DOMAIN,
        translation_key=const.TRANS_KEY_ERROR_NO_ENTRY,
    )


def async_setup_services(hass: HomeAssistant) -> None:
    """Register Momentum services. Safe to call once per entry."""
    if hass.services.has_service(const.DOMAIN, const.SERVICE_CREATE_HABIT):
        return

    # --- Habits ---

    async def handle_create_habit(call: ServiceCall) -> ServiceResponse:
        """Create a habit and its initial instance."""
        coordinator = get_coordinator(hass)
        habit = await coordinator.habit_manager.async_create_habit(
            call.data[const.ATTR_TITLE],
            call.data[const.ATTR_RECURRENCE_RULE],
            user_id=call.data[const.FIELD_USER_ID],
            description=call.data[const.ATTR_DESCRIPTION],
            priority=call.data[const.ATTR_PRIORITY],
            is_active=call.data[const.ATTR_IS_ACTIVE],
            checklist_template_id=call.data.get(const.ATTR_CHECKLIST_TEMPLATE_ID),
        )
        coordinator.async_notify()
        const.LOGGER.info("Service create_habit: created %s", habit[const.FIELD_ID])
        return {const.ATTR_HABIT_ID: habit[const.FIELD_ID]}

    async def handle_update_habit(call: ServiceCall) -> None:
        """Update a habit's fields, rule or active flag."""
        coordinator = get_coordinator(hass)
        changes = {
            key: value
            for key, value in call.data.items()
            if key != const.ATTR_HABIT_ID
        }
        await coordinator.habit_manager.async_update_habit(
            call.data[const.ATTR_HABIT_ID], changes
        )
        coordinator.async_notify()

    async def handle_delete_habit(call: ServiceCall) -> None:
        """Delete a habit and its open instances."""
        coordinator = get_coordinator(hass)
        await coordinator.habit_manager.async_delete_habit(
            call.data[const.ATTR_HABIT_ID]
        )
        coordinator.async_notify()

    async def handle_regenerate_habit_tasks(call: ServiceCall) -> None:
        """Replace a habit's open instances with a fresh one."""
        coordinator = get_coordinator(hass)
        await coordinator.habit_manager.async_regenerate_habit(
            call.data[const.ATTR_HABIT_ID]
        )
        coordinator.async_notify()

    async def handle_generate_next_task(call: ServiceCall) -> None:
        """Create the next instance of a habit from a reference date."""
        coordinator = get_coordinator(hass)
        habit = await coordinator.habit_manager.async_get_habit(
            call.data[const.ATTR_HABIT_ID]
        )
        from_date = call.data.get(const.ATTR_FROM_DATE) or coordinator.today()
        await coordinator.habit_manager.async_generate_next_task(
            habit, from_date, is_initial=call.data[const.ATTR_IS_INITIAL]
        )
        coordinator.async_notify()

    async def handle_delete_incomplete_instances(call: ServiceCall) -> None:
        """Delete every open instance of a habit."""
        coordinator = get_coordinator(hass)
        deleted = await coordinator.habit_manager.async_delete_incomplete_instances(
            call.data[const.ATTR_HABIT_ID]
        )
        const.LOGGER.info("Service delete_incomplete_instances: %s deleted", deleted)
        coordinator.async_notify()

    async def handle_run_monthly_regeneration(call: ServiceCall) -> ServiceResponse:
        """Run the monthly regeneration now and return the per-user summary."""
        coordinator = get_coordinator(hass)
        results = await coordinator.habit_manager.async_monthly_regeneration()
        coordinator.async_notify()
        return {"results": [dict(result) for result in results]}

    async def handle_get_habit_statistics(call: ServiceCall) -> ServiceResponse:
        """Return completion rate, counts and streak for a habit."""
        coordinator = get_coordinator(hass)
        return await coordinator.habit_manager.async_get_statistics(
            call.data[const.ATTR_HABIT_ID], call.data.get(const.ATTR_WINDOW_DAYS)
        )

    async def handle_activate_todays_tasks(call: ServiceCall) -> None:
        """Promote due habit instances to active."""
        coordinator = get_coordinator(hass)
        await coordinator.habit_manager.async_activate_todays_tasks()
        coordinator.async_notify()

    # --- Projects ---

    async def handle_create_project(call: ServiceCall) -> ServiceResponse:
        """Create a project with its ordered steps."""
        coordinator = get_coordinator(hass)
        project = await coordinator.project_manager.async_create_project(
            call.data[const.ATTR_TITLE],
            call.data[const.ATTR_STEPS],
            user_id=call.data[const.FIELD_USER_ID],
            description=call.data[const.ATTR_DESCRIPTION],
            status=call.data[const.ATTR_STATUS],
        )
        coordinator.async_notify()
        return {const.ATTR_PROJECT_ID: project[const.FIELD_ID]}

    async def handle_set_project_status(call: ServiceCall) -> None:
        """Set a project's status."""
        coordinator = get_coordinator(hass)
        await coordinator.project_manager.async_set_project_status(
            call.data[const.ATTR_PROJECT_ID], call.data[const.ATTR_STATUS]
        )
        coordinator.async_notify()

    async def handle_sync_project_steps(call: ServiceCall) -> None:
        """Repair a project's step/task links and refill its frontier."""
        coordinator = get_coordinator(hass)
        await coordinator.project_manager.async_sync_project_steps(
            call.data[const.ATTR_PROJECT_ID]
        )
        coordinator.async_notify()

    async def handle_update_project_progress(call: ServiceCall) -> ServiceResponse:
        """Recompute and return a project's progress percentage."""
        coordinator = get_coordinator(hass)
        project_id = call.data[const.ATTR_PROJECT_ID]
        progress = await coordinator.project_manager.async_update_project_progress(
            project_id
        )
        coordinator.async_notify()
        return {const.ATTR_PROJECT_ID: project_id, const.FIELD_PROGRESS: progress}

    # --- Tasks ---

    async def handle_complete_task(call: ServiceCall) -> None:
        """Complete a task."""
        coordinator = get_coordinator(hass)
        await coordinator.async_complete_task(call.data[const.ATTR_TASK_ID])

    async def handle_uncomplete_task(call: ServiceCall) -> None:
        """Reopen a completed task."""
        coordinator = get_coordinator(hass)
        await coordinator.async_uncomplete_task(
            call.data[const.ATTR_TASK_ID], call.data[const.ATTR_RESTORE_STATUS]
        )

    async def handle_delete_task(call: ServiceCall) -> None:
        """Delete a task."""
        coordinator = get_coordinator(hass)
        await coordinator.async_delete_task(call.data[const.ATTR_TASK_ID])

    # --- Register Services ---
    registrations: list[tuple[str, Any, vol.Schema, SupportsResponse]] = [
        (
            const.SERVICE_CREATE_HABIT,
            handle_create_habit,
            CREATE_HABIT_SCHEMA,
            SupportsResponse.OPTIONAL,
        ),
        (
            const.SERVICE_UPDATE_HABIT,
            handle_update_habit,
            UPDATE_HABIT_SCHEMA,
            SupportsResponse.NONE,
        ),
        (
            const.SERVICE_DELETE_HABIT,
            handle_delete_habit,
            HABIT_ID_SCHEMA,
            SupportsResponse.NONE,
        ),
        (
            const.SERVICE_REGENERATE_HABIT_TASKS,
            handle_regenerate_habit_tasks,
            HABIT_ID_SCHEMA,
            SupportsResponse.NONE,
        ),
        (
            const.SERVICE_GENERATE_NEXT_TASK,
            handle_generate_next_task,
            GENERATE_NEXT_TASK_SCHEMA,
            SupportsResponse.NONE,
        ),
        (
            const.SERVICE_DELETE_INCOMPLETE_INSTANCES,
            handle_delete_incomplete_instances,
            HABIT_ID_SCHEMA,
            SupportsResponse.NONE,
        ),
        (
            const.SERVICE_RUN_MONTHLY_REGENERATION,
            handle_run_monthly_regeneration,
            EMPTY_SCHEMA,
            SupportsResponse.ONLY,
        ),
        (
            const.SERVICE_GET_HABIT_STATISTICS,
            handle_get_habit_statistics,
            GET_HABIT_STATISTICS_SCHEMA,
            SupportsResponse.ONLY,
        ),
        (
            const.SERVICE_ACTIVATE_TODAYS_TASKS,
            handle_activate_todays_tasks,
            EMPTY_SCHEMA,
            SupportsResponse.NONE,
        ),
        (
            const.SERVICE_CREATE_PROJECT,
            handle_create_project,
            CREATE_PROJECT_SCHEMA,
            SupportsResponse.OPTIONAL,
        ),
        (
            const.SERVICE_SET_PROJECT_STATUS,
            handle_set_project_status,
            SET_PROJECT_STATUS_SCHEMA,
            SupportsResponse.NONE,
        ),
        (
            const.SERVICE_COMPLETE_TASK,
            handle_complete_task,
            TASK_ID_SCHEMA,
            SupportsResponse.NONE,
        ),
        (
            const.SERVICE_UNCOMPLETE_TASK,
            handle_uncomplete_task,
            UNCOMPLETE_TASK_SCHEMA,
            SupportsResponse.NONE,
        ),
        (
            const.SERVICE_DELETE_TASK,
            handle_delete_task,
            TASK_ID_SCHEMA,
            SupportsResponse.NONE,
        ),
        (
            const.SERVICE_SYNC_PROJECT_STEPS,
            handle_sync_project_steps,
            PROJECT_ID_SCHEMA,
            SupportsResponse.NONE,
        ),
        (
            const.SERVICE_UPDATE_PROJECT_PROGRESS,
            handle_update_project_progress,
            PROJECT_ID_SCHEMA,
            SupportsResponse.ONLY,
        ),
    ]
    for service, handler, schema, supports_response in registrations:
        hass.services.async_register(
            const.DOMAIN,
            service,
            handler,
            schema=schema,
            supports_response=supports_response,
        )

    const.LOGGER.info("Momentum services have been registered successfully")


async def async_unload_services(hass: HomeAssistant) -> None:
    """Unregister Momentum services when unloading the integration."""
    for service in const.SERVICES:
        if hass.services.has_service(const.DOMAIN, service):
            hass.services.async_remove(const.DOMAIN, service)

    const.LOGGER.info("Momentum services have been unregistered")
