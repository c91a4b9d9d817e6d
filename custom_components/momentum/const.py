# File: const.py
"""Constants for the Momentum integration.

This file centralizes configuration keys, defaults, storage bucket names,
record field names, status values, signal suffixes and service names for
consistency across the integration.
"""

import logging
from typing import Final

# ------------------------------------------------------------------------------------------------
# General / Integration Information
# ------------------------------------------------------------------------------------------------
MOMENTUM_TITLE = "Momentum"

# Integration Domain
DOMAIN = "momentum"

# Logger
LOGGER = logging.getLogger(__package__)

# Coordinator
COORDINATOR = "coordinator"

# Storage and Versioning
STORAGE_KEY = "momentum_data"
STORAGE_VERSION = 1
SCHEMA_VERSION = 1

# ------------------------------------------------------------------------------------------------
# Configuration (options flow)
# ------------------------------------------------------------------------------------------------
CONF_MAINTENANCE_HOUR = "maintenance_hour"
CONF_MAINTENANCE_MINUTE = "maintenance_minute"
CONF_REGENERATION_DAY = "regeneration_day"
CONF_STATISTICS_WINDOW_DAYS = "statistics_window_days"

DEFAULT_MAINTENANCE_HOUR = 0
DEFAULT_MAINTENANCE_MINUTE = 5
DEFAULT_REGENERATION_DAY = 1
DEFAULT_STATISTICS_WINDOW_DAYS = 30

# Regeneration day is capped so it exists in every month
MAX_REGENERATION_DAY = 28
MAX_STATISTICS_WINDOW_DAYS = 365

# ------------------------------------------------------------------------------------------------
# Storage Buckets
# ------------------------------------------------------------------------------------------------
DATA_META = "meta"
DATA_ITEMS = "items"
DATA_TASKS = "tasks"
DATA_HABITS = "habits"
DATA_PROJECTS = "projects"
DATA_PROJECT_STEPS = "project_steps"
DATA_COMPLETIONS = "completions"

DATA_BUCKETS: Final = (
    DATA_ITEMS,
    DATA_TASKS,
    DATA_HABITS,
    DATA_PROJECTS,
    DATA_PROJECT_STEPS,
    DATA_COMPLETIONS,
)

# Meta fields
DATA_META_SCHEMA_VERSION = "schema_version"
DATA_META_LAST_ROLLOVER = "last_rollover"
DATA_META_LAST_REGENERATION = "last_regeneration"

# ------------------------------------------------------------------------------------------------
# Record Fields
# ------------------------------------------------------------------------------------------------
# Shared
FIELD_ID = "id"
FIELD_USER_ID = "user_id"
FIELD_TITLE = "title"
FIELD_DESCRIPTION = "description"
FIELD_PRIORITY = "priority"
FIELD_STATUS = "status"
FIELD_CREATED_AT = "created_at"
FIELD_UPDATED_AT = "updated_at"
FIELD_COMPLETED_AT = "completed_at"
FIELD_DUE_DATE = "due_date"
FIELD_ASSIGNED_DATE = "assigned_date"

# Items
FIELD_ITEM_TYPE = "item_type"
FIELD_IS_ARCHIVED = "is_archived"

# Habits
FIELD_IS_ACTIVE = "is_active"
FIELD_RECURRENCE_RULE = "recurrence_rule"
FIELD_CHECKLIST_TEMPLATE_ID = "checklist_template_id"

# Tasks
FIELD_HABIT_ID = "habit_id"
FIELD_PROJECT_ID = "project_id"
FIELD_REMINDER_TIME = "reminder_time"

# Projects
FIELD_PROGRESS = "progress"
FIELD_CURRENT_STEP = "current_step"

# Project steps
FIELD_ORDER_NUMBER = "order_number"
FIELD_IS_CONVERTED = "is_converted"
FIELD_CONVERTED_TASK_ID = "converted_task_id"

# Completions
FIELD_SOURCE_ID = "source_id"
FIELD_TASK_ID = "task_id"

# Recurrence rule payload
RULE_TYPE = "type"
RULE_INTERVAL = "interval"
RULE_START_DATE = "start_date"
RULE_TIME_OF_DAY = "time_of_day"
RULE_DAYS_OF_WEEK = "days_of_week"
RULE_DAYS_OF_MONTH = "days_of_month"
RULE_CUSTOM_EXCLUSIONS = "custom_exclusions"

# ------------------------------------------------------------------------------------------------
# Enumerated Values
# ------------------------------------------------------------------------------------------------
ITEM_TYPE_TASK = "task"
ITEM_TYPE_HABIT = "habit"
ITEM_TYPE_PROJECT = "project"

PRIORITY_LOW = "low"
PRIORITY_NORMAL = "normal"
PRIORITY_HIGH = "high"
PRIORITIES: Final = (PRIORITY_LOW, PRIORITY_NORMAL, PRIORITY_HIGH)

# Task statuses ("habit" marks a not-yet-started recurring instance)
TASK_STATUS_ON_DECK = "on_deck"
TASK_STATUS_ACTIVE = "active"
TASK_STATUS_COMPLETED = "completed"
TASK_STATUS_HABIT = "habit"
TASK_STATUSES: Final = (
    TASK_STATUS_ON_DECK,
    TASK_STATUS_ACTIVE,
    TASK_STATUS_COMPLETED,
    TASK_STATUS_HABIT,
)

STEP_STATUS_PENDING = "pending"
STEP_STATUS_IN_PROGRESS = "in_progress"
STEP_STATUS_COMPLETED = "completed"

PROJECT_STATUS_ACTIVE = "active"
PROJECT_STATUS_ON_HOLD = "on_hold"
PROJECT_STATUS_COMPLETED = "completed"
PROJECT_STATUSES: Final = (
    PROJECT_STATUS_ACTIVE,
    PROJECT_STATUS_ON_HOLD,
    PROJECT_STATUS_COMPLETED,
)

RULE_TYPE_DAILY = "daily"
RULE_TYPE_WEEKLY = "weekly"
RULE_TYPE_MONTHLY = "monthly"
RULE_TYPES: Final = (RULE_TYPE_DAILY, RULE_TYPE_WEEKLY, RULE_TYPE_MONTHLY)

WEEKDAY_NAMES: Final = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

# Habits created without an HA user context are grouped under this id
DEFAULT_USER_ID = "default"

# Regeneration summary statuses
REGENERATION_STATUS_SUCCESS = "success"
REGENERATION_STATUS_ERROR = "error"

# ------------------------------------------------------------------------------------------------
# Scheduling Limits
# ------------------------------------------------------------------------------------------------
WEEKLY_SCAN_DAYS = 14
MONTHLY_SCAN_MONTHS = 12
MAX_DAILY_EXCLUSION_STEPS = 366
DAILY_GRACE_DAYS = 1

# ------------------------------------------------------------------------------------------------
# Signals (instance-scoped, see BaseManager.emit)
# ------------------------------------------------------------------------------------------------
SIGNAL_SUFFIX_DAILY_ROLLOVER = "daily_rollover"
SIGNAL_SUFFIX_HABIT_INSTANCE_CREATED = "habit_instance_created"
SIGNAL_SUFFIX_HABIT_INSTANCES_DELETED = "habit_instances_deleted"
SIGNAL_SUFFIX_REGENERATION_COMPLETE = "regeneration_complete"
SIGNAL_SUFFIX_TASK_COMPLETED = "task_completed"
SIGNAL_SUFFIX_TASK_UNCOMPLETED = "task_uncompleted"
SIGNAL_SUFFIX_TASK_DELETED = "task_deleted"
SIGNAL_SUFFIX_PROJECT_ADVANCED = "project_advanced"
SIGNAL_SUFFIX_PROJECT_COMPLETED = "project_completed"

# ------------------------------------------------------------------------------------------------
# Services
# ------------------------------------------------------------------------------------------------
SERVICE_CREATE_HABIT = "create_habit"
SERVICE_UPDATE_HABIT = "update_habit"
SERVICE_DELETE_HABIT = "delete_habit"
SERVICE_REGENERATE_HABIT_TASKS = "regenerate_habit_tasks"
SERVICE_GENERATE_NEXT_TASK = "generate_next_task"
SERVICE_DELETE_INCOMPLETE_INSTANCES = "delete_incomplete_instances"
SERVICE_RUN_MONTHLY_REGENERATION = "run_monthly_regeneration"
SERVICE_GET_HABIT_STATISTICS = "get_habit_statistics"
SERVICE_ACTIVATE_TODAYS_TASKS = "activate_todays_tasks"
SERVICE_CREATE_PROJECT = "create_project"
SERVICE_SET_PROJECT_STATUS = "set_project_status"
SERVICE_COMPLETE_TASK = "complete_task"
SERVICE_UNCOMPLETE_TASK = "uncomplete_task"
SERVICE_DELETE_TASK = "delete_task"
SERVICE_SYNC_PROJECT_STEPS = "sync_project_steps"
SERVICE_UPDATE_PROJECT_PROGRESS = "update_project_progress"

SERVICES: Final = (
    SERVICE_CREATE_HABIT,
    SERVICE_UPDATE_HABIT,
    SERVICE_DELETE_HABIT,
    SERVICE_REGENERATE_HABIT_TASKS,
    SERVICE_GENERATE_NEXT_TASK,
    SERVICE_DELETE_INCOMPLETE_INSTANCES,
    SERVICE_RUN_MONTHLY_REGENERATION,
    SERVICE_GET_HABIT_STATISTICS,
    SERVICE_ACTIVATE_TODAYS_TASKS,
    SERVICE_CREATE_PROJECT,
    SERVICE_SET_PROJECT_STATUS,
    SERVICE_COMPLETE_TASK,
    SERVICE_UNCOMPLETE_TASK,
    SERVICE_DELETE_TASK,
    SERVICE_SYNC_PROJECT_STEPS,
    SERVICE_UPDATE_PROJECT_PROGRESS,
)

# Service fields
ATTR_HABIT_ID = "habit_id"
ATTR_PROJECT_ID = "project_id"
ATTR_TASK_ID = "task_id"
ATTR_TITLE = "title"
ATTR_DESCRIPTION = "description"
ATTR_PRIORITY = "priority"
ATTR_IS_ACTIVE = "is_active"
ATTR_RECURRENCE_RULE = "recurrence_rule"
ATTR_CHECKLIST_TEMPLATE_ID = "checklist_template_id"
ATTR_FROM_DATE = "from_date"
ATTR_IS_INITIAL = "is_initial"
ATTR_WINDOW_DAYS = "window_days"
ATTR_STATUS = "status"
ATTR_STEPS = "steps"
ATTR_DUE_DATE = "due_date"
ATTR_ASSIGNED_DATE = "assigned_date"
ATTR_RESTORE_STATUS = "restore_status"

# ------------------------------------------------------------------------------------------------
# Translation Keys (exceptions)
# ------------------------------------------------------------------------------------------------
TRANS_KEY_ERROR_NOT_FOUND = "not_found"
TRANS_KEY_ERROR_STORAGE_WRITE = "storage_write_failed"
TRANS_KEY_ERROR_DUPLICATE = "duplicate_instance"
TRANS_KEY_ERROR_ID_CONFLICT = "record_id_conflict"
TRANS_KEY_ERROR_INVALID_RULE = "invalid_recurrence_rule"
TRANS_KEY_ERROR_HABIT_INACTIVE = "habit_inactive"
TRANS_KEY_ERROR_NO_ENTRY = "no_entry"
TRANS_KEY_ERROR_SINGLE_INSTANCE = "single_instance_allowed"
