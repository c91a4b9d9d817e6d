# File: managers/habit_manager.py
"""Habit Manager - materializes task instances for recurring sources.

Responsibilities:
- Habit lifecycle (create, update, delete, regenerate)
- Idempotent instance creation, at most one open instance per (habit, date)
- Deleting open instances on deactivation, regeneration and reopen
- Monthly regeneration maintenance pass with per-user/per-habit summaries
- Completion history, streaks and completion rates

Race condition protection: the check-then-create in async_create_instance
runs under a per-habit asyncio.Lock, and MomentumStore rejects a second
open task for the same (habit_id, assigned_date) with DuplicateRecordError.

Signals Consumed:
- SIGNAL_SUFFIX_DAILY_ROLLOVER: Activate today's instances, regenerate monthly

Signals Emitted:
- SIGNAL_SUFFIX_HABIT_INSTANCE_CREATED
- SIGNAL_SUFFIX_HABIT_INSTANCES_DELETED
- SIGNAL_SUFFIX_REGENERATION_COMPLETE
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import TYPE_CHECKING, Any
import uuid

from homeassistant.exceptions import HomeAssistantError

from .. import const
from ..engines.schedule_engine import (
    RecurrenceEngine,
    RuleValidationError,
    parse_recurrence_rule,
    rule_to_dict,
)
from ..engines.statistics_engine import StatisticsEngine
from ..exceptions import DuplicateRecordError, InvalidRecurrenceRuleError
from ..helpers.write_helpers import async_create_with_item, async_delete_with_item
from ..utils import dt_utils
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import MomentumCoordinator
    from ..engines.schedule_engine import RecurrenceRule
    from ..type_defs import (
        CompletionRateResult,
        RegenerationResult,
        SourceRegenerationResult,
    )

# Fields copied from a habit onto each instance
_COPIED_FIELDS = (
    const.FIELD_TITLE,
    const.FIELD_DESCRIPTION,
    const.FIELD_PRIORITY,
    const.FIELD_CHECKLIST_TEMPLATE_ID,
)

# Habit fields a caller may change through update_habit
_UPDATABLE_FIELDS = (
    const.FIELD_TITLE,
    const.FIELD_DESCRIPTION,
    const.FIELD_PRIORITY,
    const.FIELD_CHECKLIST_TEMPLATE_ID,
    const.FIELD_IS_ACTIVE,
    const.FIELD_RECURRENCE_RULE,
)


class HabitManager(BaseManager):
    """Recurring task generator."""

    def __init__(self, hass: HomeAssistant, coordinator: MomentumCoordinator) -> None:
        """Initialize HabitManager.

        Args:
            hass: Home Assistant instance
            coordinator: Parent coordinator managing this integration
        """
        super().__init__(hass, coordinator)
        # Locks for race condition protection (keyed by habit_id)
        self._instance_locks: dict[str, asyncio.Lock] = {}

    async def async_setup(self) -> None:
        """Subscribe to the daily rollover."""
        self.listen(const.SIGNAL_SUFFIX_DAILY_ROLLOVER, self._on_daily_rollover)

    def _get_lock(self, habit_id: str) -> asyncio.Lock:
        """Get or create the instance-creation lock for a habit."""
        if habit_id not in self._instance_locks:
            self._instance_locks[habit_id] = asyncio.Lock()
        return self._instance_locks[habit_id]

    @staticmethod
    def _parse_rule_strict(raw_rule: Any) -> RecurrenceRule:
        try:
            rule = parse_recurrence_rule(raw_rule, strict=True)
        except RuleValidationError as err:
            raise InvalidRecurrenceRuleError(err.reason) from err
        if rule is None:
            raise InvalidRecurrenceRuleError("recurrence rule is required")
        return rule

    @staticmethod
    def get_rule(habit: dict[str, Any]) -> RecurrenceRule | None:
        """Parse a stored habit's rule leniently (malformed -> None)."""
        return parse_recurrence_rule(habit.get(const.FIELD_RECURRENCE_RULE))

    def _initial_date(self, rule: RecurrenceRule) -> date:
        """First instance date for a newly active habit: start_date or today."""
        return max(rule.start_date, self.today())

    # =========================================================================
    # Habit Lifecycle
    # =========================================================================

    async def async_get_habit(self, habit_id: str) -> dict[str, Any]:
        return await self.store.async_get(const.DATA_HABITS, habit_id)

    async def async_create_habit(
        self,
        title: str,
        recurrence_rule: dict[str, Any],
        *,
        user_id: str = const.DEFAULT_USER_ID,
        description: str = "",
        priority: str = const.PRIORITY_NORMAL,
        is_active: bool = True,
        checklist_template_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a habit (item + habit record) and its initial instance.

        Raises:
            InvalidRecurrenceRuleError: The rule violates its invariants.
            StorageWriteError: A write failed (earlier writes are rolled back).
        """
        rule = self._parse_rule_strict(recurrence_rule)
        habit = await async_create_with_item(
            self.store,
            const.DATA_HABITS,
            const.ITEM_TYPE_HABIT,
            {
                const.FIELD_ID: uuid.uuid4().hex,
                const.FIELD_USER_ID: user_id,
                const.FIELD_TITLE: title,
                const.FIELD_DESCRIPTION: description,
                const.FIELD_PRIORITY: priority,
                const.FIELD_IS_ACTIVE: is_active,
                const.FIELD_RECURRENCE_RULE: rule_to_dict(rule),
                const.FIELD_CHECKLIST_TEMPLATE_ID: checklist_template_id,
            },
        )
        const.LOGGER.info(
            "Created habit '%s' (%s)", title, RecurrenceEngine.describe_rule(rule)
        )
        if is_active:
            await self.async_generate_next_task(
                habit, self._initial_date(rule), is_initial=True
            )
        return habit

    async def async_update_habit(
        self, habit_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        """Update a habit and keep its open instances consistent.

        - deactivation deletes open instances
        - activation creates the initial instance
        - a rule change on an active habit replaces open instances
        """
        habit = await self.store.async_get(const.DATA_HABITS, habit_id)
        updates = {
            key: value for key, value in changes.items() if key in _UPDATABLE_FIELDS
        }

        rule_changed = False
        if const.FIELD_RECURRENCE_RULE in updates:
            rule = self._parse_rule_strict(updates[const.FIELD_RECURRENCE_RULE])
            updates[const.FIELD_RECURRENCE_RULE] = rule_to_dict(rule)
            rule_changed = (
                updates[const.FIELD_RECURRENCE_RULE]
                != habit.get(const.FIELD_RECURRENCE_RULE)
            )

        was_active = bool(habit.get(const.FIELD_IS_ACTIVE))
        updated = await self.store.async_update(const.DATA_HABITS, habit_id, updates)
        if const.FIELD_TITLE in updates and await self.store.async_exists(
            const.DATA_ITEMS, habit_id
        ):
            await self.store.async_update(
                const.DATA_ITEMS,
                habit_id,
                {const.FIELD_TITLE: updates[const.FIELD_TITLE]},
            )

        is_active = bool(updated.get(const.FIELD_IS_ACTIVE))
        if was_active and not is_active:
            await self.async_delete_incomplete_instances(habit_id)
        elif is_active and (rule_changed or not was_active):
            if rule_changed:
                await self.async_delete_incomplete_instances(habit_id)
            rule = self.get_rule(updated)
            if rule is not None:
                await self.async_generate_next_task(
                    updated, self._initial_date(rule), is_initial=True
                )
        return updated

    async def async_delete_habit(self, habit_id: str) -> int:
        """Delete a habit after its open instances. Completed history is kept.

        Returns:
            Number of open instances that were deleted.
        """
        await self.store.async_get(const.DATA_HABITS, habit_id)
        deleted = await self.async_delete_incomplete_instances(habit_id)
        await async_delete_with_item(self.store, const.DATA_HABITS, habit_id)
        self._instance_locks.pop(habit_id, None)
        const.LOGGER.info(
            "Deleted habit %s and %s open instance(s)", habit_id, deleted
        )
        return deleted

    async def async_regenerate_habit(self, habit_id: str) -> dict[str, Any] | None:
        """Replace a habit's open instances with one fresh instance.

        Raises:
            HomeAssistantError: The habit is inactive.
        """
        habit = await self.store.async_get(const.DATA_HABITS, habit_id)
        if not habit.get(const.FIELD_IS_ACTIVE):
            raise HomeAssistantError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_HABIT_INACTIVE,
                translation_placeholders={
                    "habit": habit.get(const.FIELD_TITLE, habit_id)
                },
            )
        return await self._async_regenerate(habit)

    async def _async_regenerate(self, habit: dict[str, Any]) -> dict[str, Any] | None:
        """Delete open instances, then create one at the first occurrence from today."""
        habit_id = habit[const.FIELD_ID]
        await self.async_delete_incomplete_instances(habit_id)
        target = RecurrenceEngine.first_occurrence_on_or_after(
            self.get_rule(habit), self.today()
        )
        if target is None:
            const.LOGGER.warning(
                "Habit %s has no upcoming occurrence, nothing regenerated", habit_id
            )
            return None
        return await self.async_create_instance(habit, target)

    # =========================================================================
    # Instance Generation
    # =========================================================================

    async def async_generate_next_task(
        self,
        habit: dict[str, Any],
        from_date: date | str,
        is_initial: bool = False,
    ) -> dict[str, Any] | None:
        """Create the next instance of a habit.

        Args:
            habit: Habit record
            from_date: Reference date
            is_initial: When True the instance is created on from_date
                itself; otherwise on the rule's next occurrence after it

        Returns:
            The created task, or None when nothing was created (inactive
            habit, no occurrence, or an open instance already exists).
        """
        habit_id = habit[const.FIELD_ID]
        if not habit.get(const.FIELD_IS_ACTIVE):
            const.LOGGER.debug("Habit %s inactive, not generating", habit_id)
            return None

        if is_initial:
            target = dt_utils.dt_to_local_date(from_date)
        else:
            target = RecurrenceEngine.next_occurrence(self.get_rule(habit), from_date)
        if target is None:
            const.LOGGER.warning(
                "No next occurrence for habit %s from %s", habit_id, from_date
            )
            return None
        return await self.async_create_instance(habit, target)

    async def async_create_instance(
        self, habit: dict[str, Any], day: date
    ) -> dict[str, Any] | None:
        """Create the open instance for (habit, day) unless one already exists.

        Returns:
            The created task, or None for the idempotent no-op.
        """
        habit_id = habit[const.FIELD_ID]
        day_iso = day.isoformat()
        async with self._get_lock(habit_id):
            existing = await self.store.async_query(
                const.DATA_TASKS,
                filters={
                    const.FIELD_HABIT_ID: habit_id,
                    const.FIELD_ASSIGNED_DATE: day_iso,
                },
                exclude={const.FIELD_STATUS: const.TASK_STATUS_COMPLETED},
            )
            if existing:
                const.LOGGER.debug(
                    "Open instance %s already exists for habit %s on %s",
                    existing[0][const.FIELD_ID],
                    habit_id,
                    day_iso,
                )
                return None

            record: dict[str, Any] = {
                const.FIELD_ID: uuid.uuid4().hex,
                const.FIELD_USER_ID: habit.get(
                    const.FIELD_USER_ID, const.DEFAULT_USER_ID
                ),
                const.FIELD_STATUS: const.TASK_STATUS_HABIT,
                const.FIELD_ASSIGNED_DATE: day_iso,
                const.FIELD_DUE_DATE: None,
                const.FIELD_REMINDER_TIME: RecurrenceEngine.reminder_time(
                    self.get_rule(habit)
                ),
                const.FIELD_HABIT_ID: habit_id,
                const.FIELD_PROJECT_ID: None,
                const.FIELD_COMPLETED_AT: None,
            }
            for field in _COPIED_FIELDS:
                record[field] = habit.get(field)

            try:
                task = await async_create_with_item(
                    self.store, const.DATA_TASKS, const.ITEM_TYPE_TASK, record
                )
            except DuplicateRecordError as err:
                const.LOGGER.debug(
                    "Concurrent creator won for habit %s on %s (%s)",
                    habit_id,
                    day_iso,
                    err.existing_id,
                )
                return None

        const.LOGGER.debug(
            "Created instance %s of habit %s on %s",
            task[const.FIELD_ID],
            habit_id,
            day_iso,
        )
        self.emit(
            const.SIGNAL_SUFFIX_HABIT_INSTANCE_CREATED,
            habit_id=habit_id,
            task_id=task[const.FIELD_ID],
            assigned_date=day_iso,
        )
        return task

    async def async_delete_incomplete_instances(self, habit_id: str) -> int:
        """Delete every non-completed instance of a habit (task + item).

        Completed instances are never touched.

        Returns:
            Number of instances deleted.
        """
        open_tasks = await self.store.async_query(
            const.DATA_TASKS,
            filters={const.FIELD_HABIT_ID: habit_id},
            exclude={const.FIELD_STATUS: const.TASK_STATUS_COMPLETED},
        )
        for task in open_tasks:
            await async_delete_with_item(
                self.store, const.DATA_TASKS, task[const.FIELD_ID]
            )
        if open_tasks:
            const.LOGGER.debug(
                "Deleted %s open instance(s) of habit %s", len(open_tasks), habit_id
            )
            self.emit(
                const.SIGNAL_SUFFIX_HABIT_INSTANCES_DELETED,
                habit_id=habit_id,
                count=len(open_tasks),
            )
        return len(open_tasks)

    async def async_handle_instance_completed(
        self, task: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Record a completion and generate the following instance.

        The next instance is computed from the later of the instance's
        assigned date and today, so completing a late instance does not
        schedule work in the past.
        """
        habit_id = task.get(const.FIELD_HABIT_ID)
        if not habit_id:
            return None

        recorded = await self.store.async_query(
            const.DATA_COMPLETIONS,
            filters={
                const.FIELD_SOURCE_ID: habit_id,
                const.FIELD_TASK_ID: task[const.FIELD_ID],
            },
        )
        if recorded:
            # Re-completing a reopened instance keeps its original record
            const.LOGGER.debug(
                "Completion for task %s already recorded", task[const.FIELD_ID]
            )
        else:
            await self.store.async_create(
                const.DATA_COMPLETIONS,
                {
                    const.FIELD_SOURCE_ID: habit_id,
                    const.FIELD_TASK_ID: task[const.FIELD_ID],
                    const.FIELD_COMPLETED_AT: task.get(const.FIELD_COMPLETED_AT)
                    or dt_utils.dt_now_iso(),
                },
            )

        if not await self.store.async_exists(const.DATA_HABITS, habit_id):
            const.LOGGER.debug("Habit %s no longer exists, no next instance", habit_id)
            return None
        habit = await self.store.async_get(const.DATA_HABITS, habit_id)

        today = self.today()
        assigned = dt_utils.dt_to_local_date(task.get(const.FIELD_ASSIGNED_DATE))
        from_date = max(assigned, today) if assigned else today
        return await self.async_generate_next_task(habit, from_date)

    async def async_handle_instance_reopened(self, task: dict[str, Any]) -> int:
        """Drop the open instances generated after a reopened instance.

        Completing an instance creates the following one, so reopening it
        removes that follow-up again. Only the reopened instance stays open.

        Returns:
            Number of instances deleted.
        """
        habit_id = task.get(const.FIELD_HABIT_ID)
        if not habit_id:
            return 0
        assigned = task.get(const.FIELD_ASSIGNED_DATE) or ""

        async with self._get_lock(habit_id):
            open_tasks = await self.store.async_query(
                const.DATA_TASKS,
                filters={const.FIELD_HABIT_ID: habit_id},
                exclude={const.FIELD_STATUS: const.TASK_STATUS_COMPLETED},
            )
            later = [
                other
                for other in open_tasks
                if other[const.FIELD_ID] != task[const.FIELD_ID]
                and (other.get(const.FIELD_ASSIGNED_DATE) or "") > assigned
            ]
            for other in later:
                await async_delete_with_item(
                    self.store, const.DATA_TASKS, other[const.FIELD_ID]
                )

        if later:
            const.LOGGER.debug(
                "Reopened task %s, removed %s later instance(s) of habit %s",
                task[const.FIELD_ID],
                len(later),
                habit_id,
            )
            self.emit(
                const.SIGNAL_SUFFIX_HABIT_INSTANCES_DELETED,
                habit_id=habit_id,
                count=len(later),
            )
        return len(later)

    async def async_activate_todays_tasks(self) -> int:
        """Promote today's (and overdue) not-yet-started instances to active.

        Returns:
            Number of tasks activated.
        """
        today = self.today()
        pending = await self.store.async_query(
            const.DATA_TASKS, filters={const.FIELD_STATUS: const.TASK_STATUS_HABIT}
        )
        activated = 0
        for task in pending:
            assigned = dt_utils.dt_to_local_date(task.get(const.FIELD_ASSIGNED_DATE))
            if assigned is None or assigned > today:
                continue
            await self.store.async_update(
                const.DATA_TASKS,
                task[const.FIELD_ID],
                {const.FIELD_STATUS: const.TASK_STATUS_ACTIVE},
            )
            activated += 1
        if activated:
            const.LOGGER.info("Activated %s habit task(s) for %s", activated, today)
        return activated

    # =========================================================================
    # Monthly Regeneration
    # =========================================================================

    async def async_monthly_regeneration(self) -> list[RegenerationResult]:
        """Regenerate one fresh instance for every active habit, per user.

        Users are processed one after another and their habits sequentially.
        A failing habit is recorded and the batch continues.

        Returns:
            One summary per user with per-habit outcomes.
        """
        habits = await self.store.async_query(
            const.DATA_HABITS, filters={const.FIELD_IS_ACTIVE: True}
        )
        by_user: dict[str, list[dict[str, Any]]] = {}
        for habit in habits:
            by_user.setdefault(
                habit.get(const.FIELD_USER_ID) or const.DEFAULT_USER_ID, []
            ).append(habit)

        results: list[RegenerationResult] = []
        for user_id, user_habits in by_user.items():
            sources: list[SourceRegenerationResult] = []
            for habit in user_habits:
                habit_id = habit[const.FIELD_ID]
                try:
                    await self._async_regenerate(habit)
                except Exception as err:  # pylint: disable=broad-exception-caught
                    const.LOGGER.error(
                        "Regeneration failed for habit %s of user %s: %s",
                        habit_id,
                        user_id,
                        err,
                    )
                    sources.append(
                        {
                            "habit_id": habit_id,
                            "status": const.REGENERATION_STATUS_ERROR,
                            "error": str(err),
                        }
                    )
                else:
                    sources.append(
                        {
                            "habit_id": habit_id,
                            "status": const.REGENERATION_STATUS_SUCCESS,
                        }
                    )

            failed = [
                src
                for src in sources
                if src["status"] != const.REGENERATION_STATUS_SUCCESS
            ]
            result: RegenerationResult = {
                "user_id": user_id,
                "status": (
                    const.REGENERATION_STATUS_ERROR
                    if failed
                    else const.REGENERATION_STATUS_SUCCESS
                ),
                "sources": sources,
            }
            if failed:
                result["error"] = f"{len(failed)} of {len(sources)} habit(s) failed"
            results.append(result)

        const.LOGGER.info(
            "Monthly regeneration finished for %s user(s), %s with errors",
            len(results),
            sum(
                1
                for res in results
                if res["status"] == const.REGENERATION_STATUS_ERROR
            ),
        )
        self.emit(const.SIGNAL_SUFFIX_REGENERATION_COMPLETE, results=results)
        return results

    async def _on_daily_rollover(self, payload: dict[str, Any]) -> None:
        """Activate today's tasks; run monthly regeneration when it is due.

        Regeneration runs once per month on or after the configured day,
        which also covers a month whose regeneration day was missed.
        """
        await self.async_activate_todays_tasks()

        today = self.today()
        month_key = today.strftime("%Y-%m")
        if today.day < self.coordinator.regeneration_day:
            return
        if self.store.get_meta(const.DATA_META_LAST_REGENERATION) == month_key:
            return

        const.LOGGER.info(
            "Running monthly regeneration for %s (catch_up=%s)",
            month_key,
            payload.get("catch_up", False),
        )
        await self.async_monthly_regeneration()
        await self.store.async_set_meta(const.DATA_META_LAST_REGENERATION, month_key)

    # =========================================================================
    # Statistics
    # =========================================================================

    async def _async_completion_timestamps(self, habit_id: str) -> list[str]:
        completions = await self.store.async_query(
            const.DATA_COMPLETIONS, filters={const.FIELD_SOURCE_ID: habit_id}
        )
        return [record[const.FIELD_COMPLETED_AT] for record in completions]

    async def async_completion_rate(
        self, habit_id: str, window_days: int | None = None
    ) -> CompletionRateResult:
        """Completed vs expected occurrences over the trailing window ending today."""
        habit = await self.store.async_get(const.DATA_HABITS, habit_id)
        return StatisticsEngine.calculate_completion_rate(
            await self._async_completion_timestamps(habit_id),
            self.get_rule(habit),
            self.today(),
            window_days or self.coordinator.statistics_window_days,
        )

    async def async_streak(self, habit_id: str) -> int:
        """Current streak of on-time completions."""
        habit = await self.store.async_get(const.DATA_HABITS, habit_id)
        return StatisticsEngine.calculate_streak(
            await self._async_completion_timestamps(habit_id),
            self.get_rule(habit),
            self.today(),
        )

    async def async_get_statistics(
        self, habit_id: str, window_days: int | None = None
    ) -> dict[str, Any]:
        """Rate, counts, streak and schedule description for one habit."""
        habit = await self.store.async_get(const.DATA_HABITS, habit_id)
        rate = await self.async_completion_rate(habit_id, window_days)
        return {
            "habit_id": habit_id,
            **rate,
            "streak": await self.async_streak(habit_id),
            "schedule": RecurrenceEngine.describe_rule(self.get_rule(habit)),
        }

    async def async_next_scheduled_dates(
        self, user_id: str | None = None
    ) -> dict[str, str | None]:
        """Earliest open instance date per habit (None when nothing is open)."""
        filters = {const.FIELD_USER_ID: user_id} if user_id else None
        habits = await self.store.async_query(const.DATA_HABITS, filters=filters)
        open_tasks = await self.store.async_query(
            const.DATA_TASKS, exclude={const.FIELD_STATUS: const.TASK_STATUS_COMPLETED}
        )

        next_dates: dict[str, str | None] = {}
        for habit in habits:
            dates = sorted(
                task[const.FIELD_ASSIGNED_DATE]
                for task in open_tasks
                if task.get(const.FIELD_HABIT_ID) == habit[const.FIELD_ID]
                and task.get(const.FIELD_ASSIGNED_DATE)
            )
            next_dates[habit[const.FIELD_ID]] = dates[0] if dates else None
        return next_dates
