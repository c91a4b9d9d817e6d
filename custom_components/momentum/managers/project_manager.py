# File: managers/project_manager.py
"""Project Manager - step progression for multi-step projects.

Steps are materialized as tasks one at a time. Completing a step's task
advances to the next unconverted step; deleting or uncompleting a task is
reconciled without undoing forward progress. `async_sync_project_steps` is
the repair pass: it heals dangling task references, fixes status drift in
both directions and fills the frontier.

Step states: pending/unconverted -> converted -> completed. A converted
step keeps its status; the converted flag and task id carry the link.

Every multi-record write goes through async_run_with_rollback.

Signals Emitted:
- SIGNAL_SUFFIX_PROJECT_ADVANCED: A step's task was created
- SIGNAL_SUFFIX_PROJECT_COMPLETED: Every step is completed
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
import uuid

from .. import const
from ..engines.project_engine import REPAIR_STEP, ProjectEngine
from ..helpers.write_helpers import (
    RollbackStep,
    async_run_with_rollback,
    item_pair_steps,
)
from ..utils import dt_utils
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import MomentumCoordinator


class ProjectManager(BaseManager):
    """Step progression engine."""

    def __init__(self, hass: HomeAssistant, coordinator: MomentumCoordinator) -> None:
        """Initialize ProjectManager."""
        super().__init__(hass, coordinator)

    async def async_setup(self) -> None:
        """Nothing to subscribe to; task events arrive through the coordinator."""
        const.LOGGER.debug("ProjectManager initialized for entry %s", self.entry_id)

    async def _async_get_steps(self, project_id: str) -> list[dict[str, Any]]:
        steps = await self.store.async_query(
            const.DATA_PROJECT_STEPS, filters={const.FIELD_PROJECT_ID: project_id}
        )
        return ProjectEngine.sort_steps(steps)

    async def _async_find_step_by_task(self, task_id: str) -> dict[str, Any] | None:
        steps = await self.store.async_query(
            const.DATA_PROJECT_STEPS, filters={const.FIELD_CONVERTED_TASK_ID: task_id}
        )
        return steps[0] if steps else None

    # =========================================================================
    # Project Lifecycle
    # =========================================================================

    async def async_create_project(
        self,
        title: str,
        steps: list[dict[str, Any]],
        *,
        user_id: str = const.DEFAULT_USER_ID,
        description: str = "",
        status: str = const.PROJECT_STATUS_ACTIVE,
    ) -> dict[str, Any]:
        """Create a project with its ordered steps, then materialize the frontier.

        Step order follows the list unless an explicit order_number is given.
        If any write fails, every record written so far is removed again.
        """
        project_id = uuid.uuid4().hex
        project = {
            const.FIELD_ID: project_id,
            const.FIELD_USER_ID: user_id,
            const.FIELD_TITLE: title,
            const.FIELD_DESCRIPTION: description,
            const.FIELD_STATUS: status,
            const.FIELD_PROGRESS: 0,
            const.FIELD_CURRENT_STEP: None,
            const.FIELD_COMPLETED_AT: None,
        }
        write_steps = item_pair_steps(
            self.store, const.DATA_PROJECTS, const.ITEM_TYPE_PROJECT, project
        )
        for index, raw_step in enumerate(steps, start=1):
            step_record = {
                const.FIELD_ID: uuid.uuid4().hex,
                const.FIELD_PROJECT_ID: project_id,
                const.FIELD_TITLE: raw_step.get(const.FIELD_TITLE, f"Step {index}"),
                const.FIELD_DESCRIPTION: raw_step.get(const.FIELD_DESCRIPTION, ""),
                const.FIELD_ORDER_NUMBER: raw_step.get(const.FIELD_ORDER_NUMBER, index),
                const.FIELD_STATUS: const.STEP_STATUS_PENDING,
                const.FIELD_PRIORITY: raw_step.get(
                    const.FIELD_PRIORITY, const.PRIORITY_NORMAL
                ),
                const.FIELD_DUE_DATE: raw_step.get(const.FIELD_DUE_DATE),
                const.FIELD_ASSIGNED_DATE: raw_step.get(const.FIELD_ASSIGNED_DATE),
                const.FIELD_COMPLETED_AT: None,
                const.FIELD_IS_CONVERTED: False,
                const.FIELD_CONVERTED_TASK_ID: None,
            }
            write_steps.append(self._create_step_write(step_record))

        results = await async_run_with_rollback(write_steps)
        const.LOGGER.info("Created project '%s' with %s step(s)", title, len(steps))

        if status == const.PROJECT_STATUS_ACTIVE and steps:
            await self.async_sync_project_steps(project_id)
            return await self.store.async_get(const.DATA_PROJECTS, project_id)
        return results[1]

    def _create_step_write(self, step_record: dict[str, Any]) -> RollbackStep:
        step_id = step_record[const.FIELD_ID]
        return RollbackStep(
            name=f"create step {step_record[const.FIELD_ORDER_NUMBER]}",
            action=lambda: self.store.async_create(
                const.DATA_PROJECT_STEPS, step_record
            ),
            compensate=lambda _: self.store.async_delete(
                const.DATA_PROJECT_STEPS, step_id
            ),
        )

    async def async_set_project_status(
        self, project_id: str, status: str
    ) -> dict[str, Any]:
        """Change a project's status. Resuming from on_hold runs a sync."""
        project = await self.store.async_get(const.DATA_PROJECTS, project_id)
        previous = project.get(const.FIELD_STATUS)
        changes: dict[str, Any] = {const.FIELD_STATUS: status}
        if status == const.PROJECT_STATUS_COMPLETED:
            changes[const.FIELD_COMPLETED_AT] = dt_utils.dt_now_iso()
        else:
            changes[const.FIELD_COMPLETED_AT] = None
        updated = await self.store.async_update(
            const.DATA_PROJECTS, project_id, changes
        )

        if (
            previous == const.PROJECT_STATUS_ON_HOLD
            and status == const.PROJECT_STATUS_ACTIVE
        ):
            const.LOGGER.debug("Project %s resumed, syncing steps", project_id)
            await self.async_sync_project_steps(project_id)
            updated = await self.store.async_get(const.DATA_PROJECTS, project_id)
        return updated

    async def async_get_project_tasks(self, project_id: str) -> list[dict[str, Any]]:
        """Converted steps joined with their tasks, in step order."""
        steps = await self._async_get_steps(project_id)
        tasks = {
            task[const.FIELD_ID]: task
            for task in await self.store.async_get_many(
                const.DATA_TASKS,
                [
                    step[const.FIELD_CONVERTED_TASK_ID]
                    for step in steps
                    if ProjectEngine.is_converted(step)
                ],
            )
        }
        return [
            {"step": step, "task": tasks[step[const.FIELD_CONVERTED_TASK_ID]]}
            for step in steps
            if step.get(const.FIELD_CONVERTED_TASK_ID) in tasks
        ]

    # =========================================================================
    # Step Conversion
    # =========================================================================

    async def async_create_task_for_step(
        self, step: dict[str, Any], project_id: str
    ) -> str:
        """Materialize a task for a step, or return the existing one.

        Writes item, task, step link and project current_step in order; a
        failure rolls back the earlier writes.

        Returns:
            The id of the step's task.
        """
        existing_id = step.get(const.FIELD_CONVERTED_TASK_ID)
        if (
            step.get(const.FIELD_IS_CONVERTED)
            and existing_id
            and await self.store.async_exists(const.DATA_TASKS, existing_id)
        ):
            const.LOGGER.debug(
                "Step %s already converted to task %s",
                step[const.FIELD_ID],
                existing_id,
            )
            return existing_id

        project = await self.store.async_get(const.DATA_PROJECTS, project_id)
        step_id = step[const.FIELD_ID]
        task_status = ProjectEngine.task_status_for_step(step)
        task = {
            const.FIELD_ID: uuid.uuid4().hex,
            const.FIELD_USER_ID: project.get(
                const.FIELD_USER_ID, const.DEFAULT_USER_ID
            ),
            const.FIELD_TITLE: step.get(const.FIELD_TITLE, ""),
            const.FIELD_DESCRIPTION: step.get(const.FIELD_DESCRIPTION, ""),
            const.FIELD_PRIORITY: step.get(const.FIELD_PRIORITY, const.PRIORITY_NORMAL),
            const.FIELD_STATUS: task_status,
            const.FIELD_ASSIGNED_DATE: step.get(const.FIELD_ASSIGNED_DATE),
            const.FIELD_DUE_DATE: step.get(const.FIELD_DUE_DATE),
            const.FIELD_PROJECT_ID: project_id,
            const.FIELD_HABIT_ID: None,
            const.FIELD_COMPLETED_AT: (
                step.get(const.FIELD_COMPLETED_AT) or dt_utils.dt_now_iso()
                if task_status == const.TASK_STATUS_COMPLETED
                else None
            ),
        }
        task_id = task[const.FIELD_ID]

        link_before = {
            const.FIELD_IS_CONVERTED: step.get(const.FIELD_IS_CONVERTED, False),
            const.FIELD_CONVERTED_TASK_ID: step.get(const.FIELD_CONVERTED_TASK_ID),
        }
        current_before = project.get(const.FIELD_CURRENT_STEP)

        writes = item_pair_steps(
            self.store, const.DATA_TASKS, const.ITEM_TYPE_TASK, task
        )
        writes.append(
            RollbackStep(
                name="link step to task",
                action=lambda: self.store.async_update(
                    const.DATA_PROJECT_STEPS,
                    step_id,
                    {
                        const.FIELD_IS_CONVERTED: True,
                        const.FIELD_CONVERTED_TASK_ID: task_id,
                    },
                ),
                compensate=lambda _: self.store.async_update(
                    const.DATA_PROJECT_STEPS, step_id, link_before
                ),
            )
        )
        writes.append(
            RollbackStep(
                name="set current step",
                action=lambda: self.store.async_update(
                    const.DATA_PROJECTS,
                    project_id,
                    {const.FIELD_CURRENT_STEP: step_id},
                ),
                compensate=lambda _: self.store.async_update(
                    const.DATA_PROJECTS,
                    project_id,
                    {const.FIELD_CURRENT_STEP: current_before},
                ),
            )
        )
        await async_run_with_rollback(writes)

        const.LOGGER.debug(
            "Converted step %s of project %s to task %s", step_id, project_id, task_id
        )
        self.emit(
            const.SIGNAL_SUFFIX_PROJECT_ADVANCED,
            project_id=project_id,
            step_id=step_id,
            task_id=task_id,
        )
        return task_id

    # =========================================================================
    # Task Events
    # =========================================================================

    async def async_handle_task_completion(
        self, task_id: str, project_id: str
    ) -> dict[str, Any] | None:
        """Complete the owning step and advance to the next unconverted step.

        Returns:
            The updated project, or None when no step owns the task.
        """
        steps = await self._async_get_steps(project_id)
        step = ProjectEngine.find_step_for_task(steps, task_id)
        if step is None:
            const.LOGGER.warning(
                "No step of project %s is linked to task %s", project_id, task_id
            )
            return None

        step_id = step[const.FIELD_ID]
        updated_step = await self.store.async_update(
            const.DATA_PROJECT_STEPS,
            step_id,
            {
                const.FIELD_STATUS: const.STEP_STATUS_COMPLETED,
                const.FIELD_COMPLETED_AT: dt_utils.dt_now_iso(),
            },
        )
        steps = [updated_step if s[const.FIELD_ID] == step_id else s for s in steps]

        project = await self.store.async_get(const.DATA_PROJECTS, project_id)
        next_step = ProjectEngine.next_unconverted_after(steps, step_id)
        if next_step is not None:
            if project.get(const.FIELD_STATUS) == const.PROJECT_STATUS_ON_HOLD:
                const.LOGGER.debug(
                    "Project %s on hold, not advancing to step %s",
                    project_id,
                    next_step[const.FIELD_ID],
                )
            else:
                await self.async_create_task_for_step(next_step, project_id)
            await self.async_update_project_progress(project_id)
        elif ProjectEngine.all_completed(steps):
            await self.store.async_update(
                const.DATA_PROJECTS,
                project_id,
                {
                    const.FIELD_STATUS: const.PROJECT_STATUS_COMPLETED,
                    const.FIELD_PROGRESS: 100,
                    const.FIELD_COMPLETED_AT: dt_utils.dt_now_iso(),
                },
            )
            const.LOGGER.info("Project %s completed", project_id)
            self.emit(const.SIGNAL_SUFFIX_PROJECT_COMPLETED, project_id=project_id)
        else:
            await self.async_update_project_progress(project_id)
        return await self.store.async_get(const.DATA_PROJECTS, project_id)

    async def async_handle_task_uncomplete(self, task_id: str) -> dict[str, Any] | None:
        """Revert the owning step to in_progress. Downstream tasks are kept.

        A completed project is reopened as active.

        Returns:
            The updated step, or None when no step owns the task.
        """
        step = await self._async_find_step_by_task(task_id)
        if step is None:
            const.LOGGER.debug("Task %s is not linked to a project step", task_id)
            return None

        project_id = step[const.FIELD_PROJECT_ID]
        updated_step = await self.store.async_update(
            const.DATA_PROJECT_STEPS,
            step[const.FIELD_ID],
            {
                const.FIELD_STATUS: const.STEP_STATUS_IN_PROGRESS,
                const.FIELD_COMPLETED_AT: None,
            },
        )
        project = await self.store.async_get(const.DATA_PROJECTS, project_id)
        if project.get(const.FIELD_STATUS) == const.PROJECT_STATUS_COMPLETED:
            await self.store.async_update(
                const.DATA_PROJECTS,
                project_id,
                {
                    const.FIELD_STATUS: const.PROJECT_STATUS_ACTIVE,
                    const.FIELD_COMPLETED_AT: None,
                },
            )
        await self.async_update_project_progress(project_id)
        return updated_step

    async def async_handle_task_deletion(self, task_id: str) -> dict[str, Any] | None:
        """Unlink the owning step (status kept) and refill the frontier.

        On-hold projects only get the unlink; no replacement task is created.

        Returns:
            The updated step, or None when no step owns the task.
        """
        step = await self._async_find_step_by_task(task_id)
        if step is None:
            const.LOGGER.debug("Deleted task %s was not linked to a step", task_id)
            return None

        project_id = step[const.FIELD_PROJECT_ID]
        updated_step = await self.store.async_update(
            const.DATA_PROJECT_STEPS,
            step[const.FIELD_ID],
            {const.FIELD_IS_CONVERTED: False, const.FIELD_CONVERTED_TASK_ID: None},
        )
        project = await self.store.async_get(const.DATA_PROJECTS, project_id)
        if project.get(const.FIELD_STATUS) == const.PROJECT_STATUS_ON_HOLD:
            const.LOGGER.debug(
                "Project %s on hold, not replacing deleted task %s", project_id, task_id
            )
            return updated_step

        await self.async_sync_project_steps(project_id)
        return await self.store.async_get(
            const.DATA_PROJECT_STEPS, step[const.FIELD_ID]
        )

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def async_sync_project_steps(self, project_id: str) -> dict[str, Any]:
        """Repair a project's steps and fill its frontier.

        1. Converted steps whose task is gone are reset to pending/unconverted
        2. Status drift between a step and its task is fixed in both directions
        3. The step after the completed/in_progress prefix is converted
        4. Progress is recomputed

        Returns:
            The project after the sync.
        """
        project = await self.store.async_get(const.DATA_PROJECTS, project_id)
        if project.get(const.FIELD_STATUS) == const.PROJECT_STATUS_ON_HOLD:
            const.LOGGER.debug("Project %s on hold, skipping sync", project_id)
            return project

        steps = await self._async_get_steps(project_id)
        converted = [step for step in steps if ProjectEngine.is_converted(step)]
        tasks = {
            task[const.FIELD_ID]: task
            for task in await self.store.async_get_many(
                const.DATA_TASKS,
                [step[const.FIELD_CONVERTED_TASK_ID] for step in converted],
            )
        }

        for step in converted:
            step_id = step[const.FIELD_ID]
            task = tasks.get(step[const.FIELD_CONVERTED_TASK_ID])
            if task is None:
                const.LOGGER.info(
                    "Step %s referenced missing task %s, unlinking",
                    step_id,
                    step[const.FIELD_CONVERTED_TASK_ID],
                )
                await self.store.async_update(
                    const.DATA_PROJECT_STEPS,
                    step_id,
                    {
                        const.FIELD_IS_CONVERTED: False,
                        const.FIELD_CONVERTED_TASK_ID: None,
                        const.FIELD_STATUS: const.STEP_STATUS_PENDING,
                    },
                )
                continue

            repair = ProjectEngine.plan_drift_repair(step, task)
            if repair is None:
                continue
            if repair.target == REPAIR_STEP:
                const.LOGGER.info(
                    "Task %s completed but step %s was not, completing step",
                    repair.task_id,
                    step_id,
                )
                await self.store.async_update(
                    const.DATA_PROJECT_STEPS,
                    step_id,
                    {
                        const.FIELD_STATUS: const.STEP_STATUS_COMPLETED,
                        const.FIELD_COMPLETED_AT: task.get(const.FIELD_COMPLETED_AT)
                        or dt_utils.dt_now_iso(),
                    },
                )
            else:
                const.LOGGER.info(
                    "Step %s completed but task %s was not, completing task",
                    step_id,
                    repair.task_id,
                )
                await self.store.async_update(
                    const.DATA_TASKS,
                    repair.task_id,
                    {
                        const.FIELD_STATUS: const.TASK_STATUS_COMPLETED,
                        const.FIELD_COMPLETED_AT: step.get(const.FIELD_COMPLETED_AT)
                        or dt_utils.dt_now_iso(),
                    },
                )

        steps = await self._async_get_steps(project_id)
        frontier = ProjectEngine.sync_frontier(steps)
        if frontier is not None and not ProjectEngine.is_converted(frontier):
            const.LOGGER.debug(
                "Sync converting frontier step %s of project %s",
                frontier[const.FIELD_ID],
                project_id,
            )
            await self.async_create_task_for_step(frontier, project_id)

        await self.async_update_project_progress(project_id)
        return await self.store.async_get(const.DATA_PROJECTS, project_id)

    async def async_update_project_progress(self, project_id: str) -> int:
        """Recompute and store round_half_up(100 * completed / total)."""
        steps = await self._async_get_steps(project_id)
        progress = ProjectEngine.calculate_progress(steps)
        project = await self.store.async_get(const.DATA_PROJECTS, project_id)
        if project.get(const.FIELD_PROGRESS) != progress:
            await self.store.async_update(
                const.DATA_PROJECTS, project_id, {const.FIELD_PROGRESS: progress}
            )
        return progress
