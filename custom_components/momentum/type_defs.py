"""Type definitions for Momentum data structures.

ARCHITECTURE DECISION: HYBRID APPROACH (TypedDict + dict[str, Any])
===================================================================

1. **TypedDict for STATIC structures** (fixed keys known at design time):
   - Stored records: ItemData, HabitData, TaskData, ProjectData, etc.
   - Service/manager results: CompletionRateResult, RegenerationResult

2. **dict[str, Any] for DYNAMIC structures** (keys determined at runtime):
   - Store buckets keyed by record id
   - Partial update payloads (`changes` dicts)

Recurrence rules are stored as plain dicts (RecurrenceRuleData) and parsed
into frozen dataclasses by `engines.schedule_engine.parse_recurrence_rule`
before any date maths runs.

IMPORTANT: This file must NOT import from coordinator.py or any manager to
avoid circular dependencies. Only import from typing.

NOTE: TypedDict is STATIC ANALYSIS ONLY. Runtime handling (.get() defaults,
missing keys) stays in the store and managers.
"""

from typing import Any, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

RecordId = str  # UUID hex string
UserId = str  # HA user id or "default"
ISODatetime = str  # ISO 8601 datetime string "2026-10-18T12:30:00+00:00"
ISODate = str  # ISO 8601 date string (no time) "2026-10-18"

BucketData = dict[RecordId, dict[str, Any]]


# =============================================================================
# Stored Records
# =============================================================================


class ItemData(TypedDict):
    """Generic record every task, habit and project shares its id with."""

    id: RecordId
    user_id: UserId
    title: str
    item_type: str  # task | habit | project
    is_archived: bool
    created_at: ISODatetime
    updated_at: ISODatetime


class RecurrenceRuleData(TypedDict):
    """Stored recurrence rule payload (tagged by `type`)."""

    type: str  # daily | weekly | monthly
    interval: int
    start_date: ISODate
    time_of_day: NotRequired[str | None]  # "HH:MM"
    days_of_week: NotRequired[list[str]]  # weekly only, "Monday".."Sunday"
    days_of_month: NotRequired[list[int]]  # monthly only, -31..31 (non-zero)
    custom_exclusions: NotRequired[list[ISODate]]


class HabitData(TypedDict):
    """Recurring source."""

    id: RecordId
    user_id: UserId
    title: str
    description: str
    priority: str
    is_active: bool
    recurrence_rule: RecurrenceRuleData
    checklist_template_id: NotRequired[str | None]
    created_at: ISODatetime
    updated_at: ISODatetime


class TaskData(TypedDict):
    """Task instance materialized from a habit, a project step, or ad hoc."""

    id: RecordId
    user_id: UserId
    title: str
    description: str
    priority: str
    status: str  # on_deck | active | completed | habit
    assigned_date: ISODate | None
    due_date: NotRequired[ISODate | None]
    reminder_time: NotRequired[str | None]
    checklist_template_id: NotRequired[str | None]
    habit_id: NotRequired[RecordId | None]
    project_id: NotRequired[RecordId | None]
    completed_at: NotRequired[ISODatetime | None]
    created_at: ISODatetime
    updated_at: ISODatetime


class ProjectData(TypedDict):
    """Multi-step project."""

    id: RecordId
    user_id: UserId
    title: str
    description: str
    status: str  # active | on_hold | completed
    progress: int  # 0-100, derived
    current_step: RecordId | None
    completed_at: NotRequired[ISODatetime | None]
    created_at: ISODatetime
    updated_at: ISODatetime


class ProjectStepData(TypedDict):
    """Ordered step of a project."""

    id: RecordId
    project_id: RecordId
    title: str
    description: str
    order_number: int
    status: str  # pending | in_progress | completed
    priority: str
    due_date: NotRequired[ISODate | None]
    assigned_date: NotRequired[ISODate | None]
    completed_at: NotRequired[ISODatetime | None]
    is_converted: bool
    converted_task_id: RecordId | None
    created_at: ISODatetime
    updated_at: ISODatetime


class CompletionData(TypedDict):
    """Append-only completion history entry."""

    id: RecordId
    source_id: RecordId
    task_id: RecordId | None
    completed_at: ISODatetime
    created_at: ISODatetime
    updated_at: ISODatetime


class MetaData(TypedDict):
    """Storage metadata bucket."""

    schema_version: int
    last_rollover: NotRequired[ISODate | None]
    last_regeneration: NotRequired[str | None]  # "YYYY-MM"


# =============================================================================
# Results
# =============================================================================


class CompletionRateResult(TypedDict):
    """Trailing-window completion rate for one habit."""

    rate: float
    completed: int
    expected: int


class SourceRegenerationResult(TypedDict):
    """Outcome of regenerating one habit."""

    habit_id: RecordId
    status: str  # success | error
    error: NotRequired[str]


class RegenerationResult(TypedDict):
    """Outcome of regenerating every active habit of one user."""

    user_id: UserId
    status: str  # success | error
    error: NotRequired[str]
    sources: list[SourceRegenerationResult]
