# File: exceptions.py
"""Exceptions raised by the Momentum integration.

All errors derive from HomeAssistantError so service callers receive a
translated message. Subclasses keep storage outcomes distinguishable:
a missing record is not the same failure as a write that did not land.
"""

from __future__ import annotations

from homeassistant.exceptions import HomeAssistantError

from . import const


class MomentumError(HomeAssistantError):
    """Base class for Momentum errors."""


class RecordNotFoundError(MomentumError):
    """Raised when a record id does not exist in a storage bucket.

    Attributes:
        bucket: Storage bucket that was searched
        record_id: The id that was not found
    """

    def __init__(self, bucket: str, record_id: str) -> None:
        """Initialize RecordNotFoundError."""
        super().__init__(
            f"{bucket} record '{record_id}' not found",
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_NOT_FOUND,
            translation_placeholders={"bucket": bucket, "record_id": record_id},
        )
        self.bucket = bucket
        self.record_id = record_id


class StorageWriteError(MomentumError):
    """Raised when a create/update/delete could not be persisted."""

    def __init__(self, operation: str, bucket: str, reason: str) -> None:
        """Initialize StorageWriteError."""
        super().__init__(
            f"Failed to {operation} {bucket} record: {reason}",
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_STORAGE_WRITE,
            translation_placeholders={
                "operation": operation,
                "bucket": bucket,
                "reason": reason,
            },
        )
        self.operation = operation
        self.bucket = bucket


class RecordIdConflictError(MomentumError):
    """Raised when a record is created with an id already present in its bucket."""

    def __init__(self, bucket: str, record_id: str) -> None:
        """Initialize RecordIdConflictError."""
        super().__init__(
            f"{bucket} record '{record_id}' already exists",
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_ID_CONFLICT,
            translation_placeholders={"bucket": bucket, "record_id": record_id},
        )
        self.bucket = bucket
        self.record_id = record_id


class DuplicateRecordError(MomentumError):
    """Raised when an open instance already exists for (habit_id, assigned_date)."""

    def __init__(self, habit_id: str, assigned_date: str, existing_id: str) -> None:
        """Initialize DuplicateRecordError."""
        super().__init__(
            f"Open instance {existing_id} already exists for habit "
            f"{habit_id} on {assigned_date}",
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_DUPLICATE,
            translation_placeholders={
                "habit_id": habit_id,
                "assigned_date": assigned_date,
            },
        )
        self.habit_id = habit_id
        self.assigned_date = assigned_date
        self.existing_id = existing_id


class InvalidRecurrenceRuleError(MomentumError):
    """Raised when a recurrence rule payload violates its invariants."""

    def __init__(self, reason: str) -> None:
        """Initialize InvalidRecurrenceRuleError."""
        super().__init__(
            f"Invalid recurrence rule: {reason}",
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_INVALID_RULE,
            translation_placeholders={"reason": reason},
        )
        self.reason = reason
