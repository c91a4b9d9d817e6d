"""Project Engine - Pure decisions for project step progression.

This engine provides stateless functions for:
- Ordering steps and locating the step that owns a task
- The two frontier scans (after a completion, and during a sync)
- Status drift detection between a step and its task
- Progress calculation

The completion scan picks the first unconverted step after the completed
one. The sync scan picks the step right after the longest completed or
in-progress prefix. They differ when steps were converted out of order and
are kept as separate functions on purpose.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
State management belongs in ProjectManager.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .. import const
from ..utils.math_utils import calculate_percentage

# Drift repair targets
REPAIR_STEP = "step"
REPAIR_TASK = "task"


@dataclass
class DriftRepair:
    """Status fix planned for one converted step whose task still exists.

    Attributes:
        target: REPAIR_STEP (mark the step completed) or REPAIR_TASK
            (mark the task completed)
        step_id: Step being reconciled
        task_id: Task linked to the step
    """

    target: str
    step_id: str
    task_id: str


class ProjectEngine:
    """Static helpers used by ProjectManager."""

    @staticmethod
    def sort_steps(steps: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Return steps ordered by order_number (stable for equal numbers)."""
        return sorted(steps, key=lambda step: step.get(const.FIELD_ORDER_NUMBER, 0))

    @staticmethod
    def find_step_for_task(
        steps: list[dict[str, Any]], task_id: str
    ) -> dict[str, Any] | None:
        """Return the step whose converted_task_id is task_id."""
        for step in steps:
            if step.get(const.FIELD_CONVERTED_TASK_ID) == task_id:
                return step
        return None

    @staticmethod
    def is_converted(step: dict[str, Any]) -> bool:
        return bool(step.get(const.FIELD_IS_CONVERTED)) and bool(
            step.get(const.FIELD_CONVERTED_TASK_ID)
        )

    @staticmethod
    def task_status_for_step(step: dict[str, Any]) -> str:
        """Status a newly materialized task gets for this step."""
        if step.get(const.FIELD_STATUS) == const.STEP_STATUS_COMPLETED:
            return const.TASK_STATUS_COMPLETED
        return const.TASK_STATUS_ON_DECK

    # ────────────────────────────────────────────────────────────────
    # Frontier scans
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def next_unconverted_after(
        steps: list[dict[str, Any]], step_id: str
    ) -> dict[str, Any] | None:
        """First unconverted step ordered after step_id (completion scan).

        Steps converted out of order are skipped, so the scan does not
        require the immediately following step.
        """
        ordered = ProjectEngine.sort_steps(steps)
        seen = False
        for step in ordered:
            if seen and not ProjectEngine.is_converted(step):
                return step
            if step.get(const.FIELD_ID) == step_id:
                seen = True
        return None

    @staticmethod
    def sync_frontier(steps: list[dict[str, Any]]) -> dict[str, Any] | None:
        """Step right after the longest completed/in_progress prefix (sync scan).

        Returns None when every step is in the prefix.
        """
        for step in ProjectEngine.sort_steps(steps):
            if step.get(const.FIELD_STATUS) not in (
                const.STEP_STATUS_COMPLETED,
                const.STEP_STATUS_IN_PROGRESS,
            ):
                return step
        return None

    # ────────────────────────────────────────────────────────────────
    # Drift and progress
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def plan_drift_repair(
        step: dict[str, Any], task: dict[str, Any]
    ) -> DriftRepair | None:
        """Plan a symmetric status fix between a step and its existing task."""
        step_done = step.get(const.FIELD_STATUS) == const.STEP_STATUS_COMPLETED
        task_done = task.get(const.FIELD_STATUS) == const.TASK_STATUS_COMPLETED
        if task_done and not step_done:
            return DriftRepair(REPAIR_STEP, step[const.FIELD_ID], task[const.FIELD_ID])
        if step_done and not task_done:
            return DriftRepair(REPAIR_TASK, step[const.FIELD_ID], task[const.FIELD_ID])
        return None

    @staticmethod
    def all_completed(steps: list[dict[str, Any]]) -> bool:
        return bool(steps) and all(
            step.get(const.FIELD_STATUS) == const.STEP_STATUS_COMPLETED
            for step in steps
        )

    @staticmethod
    def calculate_progress(steps: list[dict[str, Any]]) -> int:
        """round_half_up(100 * completed / total); 0 for a project without steps."""
        completed = sum(
            1
            for step in steps
            if step.get(const.FIELD_STATUS) == const.STEP_STATUS_COMPLETED
        )
        return calculate_percentage(completed, len(steps))
