"""Tests for HabitManager (recurring instance generation).

Covers the habit lifecycle, idempotent and race-safe instance creation,
completion follow-ups, the monthly regeneration pass and statistics.
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
import pytest

from custom_components.momentum import const
from custom_components.momentum.exceptions import InvalidRecurrenceRuleError
from custom_components.momentum.managers.habit_manager import HabitManager
from tests.helpers import (
    TODAY,
    completion_stamp,
    daily_rule,
    days_ago,
    weekly_rule,
)


@pytest.fixture
def manager(hass: HomeAssistant, mock_coordinator: MagicMock) -> HabitManager:
    """HabitManager wired to a real store and a fixed clock."""
    return HabitManager(hass, mock_coordinator)


async def open_instances(manager: HabitManager, habit_id: str) -> list[dict[str, Any]]:
    """Non-completed tasks of a habit, ordered by date."""
    tasks = await manager.store.async_query(
        const.DATA_TASKS,
        filters={const.FIELD_HABIT_ID: habit_id},
        exclude={const.FIELD_STATUS: const.TASK_STATUS_COMPLETED},
    )
    return sorted(tasks, key=lambda task: task[const.FIELD_ASSIGNED_DATE])


async def add_completed_instance(
    manager: HabitManager, habit_id: str, day: date
) -> dict[str, Any]:
    """Store a completed instance of a habit."""
    return await manager.store.async_create(
        const.DATA_TASKS,
        {
            const.FIELD_HABIT_ID: habit_id,
            const.FIELD_ASSIGNED_DATE: day.isoformat(),
            const.FIELD_STATUS: const.TASK_STATUS_COMPLETED,
            const.FIELD_COMPLETED_AT: completion_stamp(day),
        },
    )


async def add_completions(manager: HabitManager, habit_id: str, *offsets: int) -> None:
    """Store completion records `offset` days before today."""
    for offset in offsets:
        await manager.store.async_create(
            const.DATA_COMPLETIONS,
            {
                const.FIELD_SOURCE_ID: habit_id,
                const.FIELD_TASK_ID: f"task-{offset}",
                const.FIELD_COMPLETED_AT: completion_stamp(days_ago(offset)),
            },
        )


class TestHabitLifecycle:
    """Create, update and delete."""

    async def test_create_generates_initial_instance_today(
        self, manager: HabitManager
    ) -> None:
        """An active habit gets an open instance on today's date."""
        habit = await manager.async_create_habit("Read", daily_rule())

        instances = await open_instances(manager, habit[const.FIELD_ID])
        assert len(instances) == 1
        task = instances[0]
        assert task[const.FIELD_ASSIGNED_DATE] == TODAY.isoformat()
        assert task[const.FIELD_STATUS] == const.TASK_STATUS_HABIT
        assert task[const.FIELD_TITLE] == "Read"
        assert await manager.store.async_exists(const.DATA_ITEMS, task[const.FIELD_ID])
        assert await manager.store.async_exists(const.DATA_ITEMS, habit[const.FIELD_ID])

    async def test_future_start_date_used_for_initial_instance(
        self, manager: HabitManager
    ) -> None:
        """A habit starting later gets its first instance on the start date."""
        habit = await manager.async_create_habit(
            "Stretch", daily_rule(start_date="2026-11-01")
        )

        instances = await open_instances(manager, habit[const.FIELD_ID])
        assert [t[const.FIELD_ASSIGNED_DATE] for t in instances] == ["2026-11-01"]

    async def test_inactive_habit_has_no_instance(self, manager: HabitManager) -> None:
        """Creating an inactive habit stores it without instances."""
        habit = await manager.async_create_habit("Read", daily_rule(), is_active=False)

        assert await open_instances(manager, habit[const.FIELD_ID]) == []

    async def test_invalid_rule_rejected_without_writes(
        self, manager: HabitManager
    ) -> None:
        """A weekly rule without days is refused before anything is stored."""
        with pytest.raises(InvalidRecurrenceRuleError):
            await manager.async_create_habit("Gym", weekly_rule([]))

        assert await manager.store.async_query(const.DATA_HABITS) == []
        assert await manager.store.async_query(const.DATA_ITEMS) == []

    async def test_deactivate_then_reactivate(self, manager: HabitManager) -> None:
        """Deactivation drops open instances; reactivation creates one again."""
        habit = await manager.async_create_habit("Read", daily_rule())
        habit_id = habit[const.FIELD_ID]

        await manager.async_update_habit(habit_id, {const.FIELD_IS_ACTIVE: False})
        assert await open_instances(manager, habit_id) == []

        await manager.async_update_habit(habit_id, {const.FIELD_IS_ACTIVE: True})
        instances = await open_instances(manager, habit_id)
        assert [t[const.FIELD_ASSIGNED_DATE] for t in instances] == [TODAY.isoformat()]

    async def test_rule_change_replaces_open_instances(
        self, manager: HabitManager
    ) -> None:
        """Changing the rule of an active habit re-creates its open instance."""
        habit = await manager.async_create_habit("Read", daily_rule())
        habit_id = habit[const.FIELD_ID]

        updated = await manager.async_update_habit(
            habit_id,
            {
                const.FIELD_RECURRENCE_RULE: daily_rule(start_date="2026-10-20"),
                const.FIELD_TITLE: "Read more",
            },
        )

        assert updated[const.FIELD_TITLE] == "Read more"
        item = await manager.store.async_get(const.DATA_ITEMS, habit_id)
        assert item[const.FIELD_TITLE] == "Read more"
        instances = await open_instances(manager, habit_id)
        assert [t[const.FIELD_ASSIGNED_DATE] for t in instances] == ["2026-10-20"]

    async def test_delete_habit_keeps_history(self, manager: HabitManager) -> None:
        """Deleting a habit removes open instances but not completed ones."""
        habit = await manager.async_create_habit("Read", daily_rule())
        habit_id = habit[const.FIELD_ID]
        done = await add_completed_instance(manager, habit_id, days_ago(1))

        deleted = await manager.async_delete_habit(habit_id)

        assert deleted == 1
        assert not await manager.store.async_exists(const.DATA_HABITS, habit_id)
        assert not await manager.store.async_exists(const.DATA_ITEMS, habit_id)
        assert await manager.store.async_exists(const.DATA_TASKS, done[const.FIELD_ID])


class TestInstanceCreation:
    """Idempotency and the per-habit race guard."""

    async def test_create_instance_is_idempotent(self, manager: HabitManager) -> None:
        """A second call for the same day is a no-op."""
        habit = await manager.async_create_habit("Read", daily_rule(), is_active=False)

        first = await manager.async_create_instance(habit, TODAY)
        second = await manager.async_create_instance(habit, TODAY)

        assert first is not None
        assert second is None
        assert len(await open_instances(manager, habit[const.FIELD_ID])) == 1

    async def test_concurrent_creation_yields_one_instance(
        self, manager: HabitManager
    ) -> None:
        """Racing creators for the same (habit, date) create exactly one task."""
        habit = await manager.async_create_habit("Read", daily_rule(), is_active=False)

        results = await asyncio.gather(
            *(manager.async_create_instance(habit, TODAY) for _ in range(5))
        )

        assert sum(result is not None for result in results) == 1
        assert len(await open_instances(manager, habit[const.FIELD_ID])) == 1

    async def test_completed_instance_does_not_block_new_one(
        self, manager: HabitManager
    ) -> None:
        """Only open instances count for the uniqueness check."""
        habit = await manager.async_create_habit("Read", daily_rule(), is_active=False)
        await add_completed_instance(manager, habit[const.FIELD_ID], TODAY)

        assert await manager.async_create_instance(habit, TODAY) is not None

    async def test_generate_next_task(self, manager: HabitManager) -> None:
        """Non-initial generation targets the next occurrence after from_date."""
        habit = await manager.async_create_habit("Read", daily_rule(interval=2))

        task = await manager.async_generate_next_task(habit, TODAY)

        assert task[const.FIELD_ASSIGNED_DATE] == "2026-10-20"

    async def test_generate_next_task_inactive_is_noop(
        self, manager: HabitManager
    ) -> None:
        """Inactive habits never generate."""
        habit = await manager.async_create_habit("Read", daily_rule(), is_active=False)

        assert await manager.async_generate_next_task(habit, TODAY) is None

    async def test_delete_incomplete_keeps_completed(
        self, manager: HabitManager
    ) -> None:
        """Only non-completed instances are removed, with their items."""
        habit = await manager.async_create_habit("Read", daily_rule())
        habit_id = habit[const.FIELD_ID]
        open_task = (await open_instances(manager, habit_id))[0]
        done = await add_completed_instance(manager, habit_id, days_ago(1))

        assert await manager.async_delete_incomplete_instances(habit_id) == 1
        assert await manager.async_delete_incomplete_instances(habit_id) == 0

        assert not await manager.store.async_exists(
            const.DATA_ITEMS, open_task[const.FIELD_ID]
        )
        assert await manager.store.async_exists(const.DATA_TASKS, done[const.FIELD_ID])


class TestRegeneration:
    """Single-habit and monthly regeneration."""

    async def test_regenerate_moves_to_first_occurrence(
        self, manager: HabitManager
    ) -> None:
        """Regeneration replaces open instances with the next scheduled day."""
        habit = await manager.async_create_habit("Gym", weekly_rule(["Wednesday"]))
        habit_id = habit[const.FIELD_ID]

        task = await manager.async_regenerate_habit(habit_id)

        assert task[const.FIELD_ASSIGNED_DATE] == "2026-10-21"
        assert len(await open_instances(manager, habit_id)) == 1

    async def test_regenerate_inactive_raises(self, manager: HabitManager) -> None:
        """Inactive habits cannot be regenerated."""
        habit = await manager.async_create_habit("Read", daily_rule(), is_active=False)

        with pytest.raises(HomeAssistantError):
            await manager.async_regenerate_habit(habit[const.FIELD_ID])

    async def test_monthly_regeneration_is_idempotent(
        self, manager: HabitManager
    ) -> None:
        """Running the pass twice leaves one open instance per active habit."""
        first = await manager.async_create_habit("Read", daily_rule(), user_id="a")
        second = await manager.async_create_habit("Walk", daily_rule(), user_id="b")
        await manager.async_create_habit("Off", daily_rule(), is_active=False)

        await manager.async_monthly_regeneration()
        results = await manager.async_monthly_regeneration()

        assert {res["user_id"] for res in results} == {"a", "b"}
        assert all(
            res["status"] == const.REGENERATION_STATUS_SUCCESS for res in results
        )
        for habit in (first, second):
            assert len(await open_instances(manager, habit[const.FIELD_ID])) == 1

    async def test_monthly_regeneration_partial_failure(
        self, manager: HabitManager
    ) -> None:
        """One failing habit is reported; the rest of the batch still runs."""
        broken = await manager.async_create_habit("Broken", daily_rule(), user_id="a")
        fine = await manager.async_create_habit("Fine", daily_rule(), user_id="a")
        other = await manager.async_create_habit("Other", daily_rule(), user_id="b")
        original = manager._async_regenerate  # pylint: disable=protected-access

        async def regenerate(habit: dict[str, Any]) -> dict[str, Any] | None:
            if habit[const.FIELD_ID] == broken[const.FIELD_ID]:
                raise HomeAssistantError("storage unavailable")
            return await original(habit)

        with patch.object(manager, "_async_regenerate", side_effect=regenerate):
            results = await manager.async_monthly_regeneration()

        by_user = {res["user_id"]: res for res in results}
        assert by_user["a"]["status"] == const.REGENERATION_STATUS_ERROR
        assert by_user["a"]["error"] == "1 of 2 habit(s) failed"
        statuses = {src["habit_id"]: src["status"] for src in by_user["a"]["sources"]}
        assert statuses == {
            broken[const.FIELD_ID]: const.REGENERATION_STATUS_ERROR,
            fine[const.FIELD_ID]: const.REGENERATION_STATUS_SUCCESS,
        }
        assert by_user["b"]["status"] == const.REGENERATION_STATUS_SUCCESS
        assert len(await open_instances(manager, other[const.FIELD_ID])) == 1

    async def test_rollover_runs_regeneration_once_per_month(
        self, manager: HabitManager
    ) -> None:
        """The pass runs on or after the configured day and is stamped in meta."""
        with patch.object(
            manager, "async_monthly_regeneration", AsyncMock(return_value=[])
        ) as regen:
            await manager._on_daily_rollover({})  # pylint: disable=protected-access
            await manager._on_daily_rollover({})  # pylint: disable=protected-access

        regen.assert_awaited_once()
        assert manager.store.get_meta(const.DATA_META_LAST_REGENERATION) == "2026-10"

    async def test_rollover_waits_for_regeneration_day(
        self, manager: HabitManager, mock_coordinator: MagicMock
    ) -> None:
        """Before the configured day nothing is regenerated."""
        mock_coordinator.regeneration_day = 28

        with patch.object(
            manager, "async_monthly_regeneration", AsyncMock(return_value=[])
        ) as regen:
            await manager._on_daily_rollover({})  # pylint: disable=protected-access

        regen.assert_not_awaited()
        assert manager.store.get_meta(const.DATA_META_LAST_REGENERATION) is None


class TestCompletionFollowUp:
    """Completion records and the next instance."""

    async def test_completion_creates_record_and_next_instance(
        self, manager: HabitManager
    ) -> None:
        """Completing today's instance schedules tomorrow's."""
        habit = await manager.async_create_habit("Read", daily_rule())
        habit_id = habit[const.FIELD_ID]
        task = (await open_instances(manager, habit_id))[0]
        task = await manager.store.async_update(
            const.DATA_TASKS,
            task[const.FIELD_ID],
            {
                const.FIELD_STATUS: const.TASK_STATUS_COMPLETED,
                const.FIELD_COMPLETED_AT: completion_stamp(TODAY),
            },
        )

        next_task = await manager.async_handle_instance_completed(task)

        assert next_task[const.FIELD_ASSIGNED_DATE] == "2026-10-19"
        completions = await manager.store.async_query(
            const.DATA_COMPLETIONS, filters={const.FIELD_SOURCE_ID: habit_id}
        )
        assert [c[const.FIELD_TASK_ID] for c in completions] == [task[const.FIELD_ID]]

    async def test_late_completion_does_not_schedule_in_the_past(
        self, manager: HabitManager
    ) -> None:
        """The next instance is computed from today, not the stale date."""
        habit = await manager.async_create_habit("Read", daily_rule())
        stale = await add_completed_instance(
            manager, habit[const.FIELD_ID], days_ago(8)
        )

        next_task = await manager.async_handle_instance_completed(stale)

        assert next_task[const.FIELD_ASSIGNED_DATE] == "2026-10-19"

    async def test_reopen_removes_generated_instance(
        self, manager: HabitManager
    ) -> None:
        """Reopening a completed instance leaves it as the only open one."""
        habit = await manager.async_create_habit("Read", daily_rule())
        habit_id = habit[const.FIELD_ID]
        task = (await open_instances(manager, habit_id))[0]
        task = await manager.store.async_update(
            const.DATA_TASKS,
            task[const.FIELD_ID],
            {
                const.FIELD_STATUS: const.TASK_STATUS_COMPLETED,
                const.FIELD_COMPLETED_AT: completion_stamp(TODAY),
            },
        )
        await manager.async_handle_instance_completed(task)
        assert len(await open_instances(manager, habit_id)) == 2

        task = await manager.store.async_update(
            const.DATA_TASKS,
            task[const.FIELD_ID],
            {
                const.FIELD_STATUS: const.TASK_STATUS_ON_DECK,
                const.FIELD_COMPLETED_AT: None,
            },
        )
        with patch.object(manager, "emit") as mock_emit:
            removed = await manager.async_handle_instance_reopened(task)

        assert removed == 1
        remaining = await open_instances(manager, habit_id)
        assert [t[const.FIELD_ID] for t in remaining] == [task[const.FIELD_ID]]
        mock_emit.assert_called_once_with(
            const.SIGNAL_SUFFIX_HABIT_INSTANCES_DELETED, habit_id=habit_id, count=1
        )

    async def test_recompletion_keeps_single_completion(
        self, manager: HabitManager
    ) -> None:
        """Completing the same instance twice records one completion."""
        habit = await manager.async_create_habit("Read", daily_rule())
        habit_id = habit[const.FIELD_ID]
        task = (await open_instances(manager, habit_id))[0]
        task = await manager.store.async_update(
            const.DATA_TASKS,
            task[const.FIELD_ID],
            {
                const.FIELD_STATUS: const.TASK_STATUS_COMPLETED,
                const.FIELD_COMPLETED_AT: completion_stamp(TODAY),
            },
        )

        await manager.async_handle_instance_completed(task)
        await manager.async_handle_instance_reopened(task)
        await manager.async_handle_instance_completed(task)

        completions = await manager.store.async_query(
            const.DATA_COMPLETIONS, filters={const.FIELD_SOURCE_ID: habit_id}
        )
        assert len(completions) == 1
        assert len(await open_instances(manager, habit_id)) == 1
        rate = await manager.async_completion_rate(habit_id, 7)
        assert rate["completed"] == 1

    async def test_activate_todays_tasks(self, manager: HabitManager) -> None:
        """Today's and overdue instances become active; future ones wait."""
        habit = await manager.async_create_habit("Read", daily_rule())
        await manager.async_create_instance(habit, days_ago(2))
        await manager.async_create_instance(habit, days_ago(-3))

        assert await manager.async_activate_todays_tasks() == 2

        statuses = {
            t[const.FIELD_ASSIGNED_DATE]: t[const.FIELD_STATUS]
            for t in await open_instances(manager, habit[const.FIELD_ID])
        }
        assert statuses == {
            "2026-10-16": const.TASK_STATUS_ACTIVE,
            "2026-10-18": const.TASK_STATUS_ACTIVE,
            "2026-10-21": const.TASK_STATUS_HABIT,
        }


class TestStatistics:
    """Streaks, completion rates and next dates."""

    async def test_streak_and_rate(self, manager: HabitManager) -> None:
        """Five consecutive days give a streak of 5."""
        habit = await manager.async_create_habit("Read", daily_rule())
        habit_id = habit[const.FIELD_ID]
        await add_completions(manager, habit_id, 0, 1, 2, 3, 4)

        stats = await manager.async_get_statistics(habit_id, window_days=10)

        assert stats["streak"] == 5
        assert stats["completed"] == 5
        assert stats["expected"] == 10
        assert stats["rate"] == 0.5

    async def test_rate_not_clamped(self, manager: HabitManager) -> None:
        """More completions than expected occurrences give a rate above 1."""
        habit = await manager.async_create_habit("Read", daily_rule())
        habit_id = habit[const.FIELD_ID]
        await add_completions(manager, habit_id, 0, 0, 1, 2, 2, 3, 4, 5, 6, 7, 8, 9)

        rate = await manager.async_completion_rate(habit_id, window_days=10)

        assert rate["rate"] == 1.2

    async def test_next_scheduled_dates(self, manager: HabitManager) -> None:
        """Earliest open date per habit, None for habits without instances."""
        active = await manager.async_create_habit("Read", daily_rule(), user_id="a")
        idle = await manager.async_create_habit(
            "Walk", daily_rule(), user_id="a", is_active=False
        )
        await manager.async_create_habit("Other", daily_rule(), user_id="b")

        next_dates = await manager.async_next_scheduled_dates("a")

        assert next_dates == {
            active[const.FIELD_ID]: TODAY.isoformat(),
            idle[const.FIELD_ID]: None,
        }
