# File: store.py
"""Handles persistent data storage for the Momentum integration.

Uses Home Assistant's Storage helper to keep every record bucket (items,
tasks, habits, projects, project steps, completions) in one JSON document.
On top of the raw document it offers the generic CRUD surface the managers
use: create/get/update/delete by id, equality queries and batch lookups.

Every mutation is persisted before it returns. If the write fails the
in-memory change is reverted and StorageWriteError is raised, so callers
always see either a durable change or a distinguishable error.
"""

from __future__ import annotations

from collections.abc import Iterable
import copy
from typing import TYPE_CHECKING, Any
import uuid

from homeassistant.helpers.storage import Store

from . import const
from .exceptions import (
    DuplicateRecordError,
    RecordIdConflictError,
    RecordNotFoundError,
    StorageWriteError,
)
from .utils import dt_utils

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .type_defs import BucketData


class MomentumStore:
    """Persistent record store for Momentum data.

    Thin wrapper around Home Assistant's Store API. Records are dicts keyed
    by their `id` inside each bucket.
    """

    def __init__(
        self, hass: HomeAssistant, storage_key: str = const.STORAGE_KEY
    ) -> None:
        """Initialize the store.

        Args:
            hass: Home Assistant core object.
            storage_key: Key to identify storage location (default: const.STORAGE_KEY).
        """
        self.hass = hass
        self._storage_key = storage_key
        self._store: Store = Store(hass, const.STORAGE_VERSION, storage_key)
        self._data: dict[str, Any] = {}

    @staticmethod
    def get_default_structure() -> dict[str, Any]:
        """Return canonical empty data structure for fresh installations."""
        structure: dict[str, Any] = {
            const.DATA_META: {
                const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION,
                const.DATA_META_LAST_ROLLOVER: None,
                const.DATA_META_LAST_REGENERATION: None,
            },
        }
        for bucket in const.DATA_BUCKETS:
            structure[bucket] = {}
        return structure

    async def async_initialize(self) -> None:
        """Load data from storage during startup.

        If no data exists, initializes with an empty structure. Buckets added
        since the document was written are filled in.
        """
        existing_data = await self._store.async_load()

        if existing_data is None:
            const.LOGGER.info("No existing storage found. Initializing new data")
            self._data = MomentumStore.get_default_structure()
            return

        self._data = existing_data
        for key, value in MomentumStore.get_default_structure().items():
            self._data.setdefault(key, value)
        const.LOGGER.debug(
            "Loaded existing data from storage: %s",
            {bucket: len(self._data[bucket]) for bucket in const.DATA_BUCKETS},
        )

    @property
    def data(self) -> dict[str, Any]:
        """Retrieve the in-memory data cache."""
        return self._data

    async def async_save(self, operation: str = "save", bucket: str = "all") -> None:
        """Save the current data structure to storage.

        Raises:
            StorageWriteError: When the document could not be written. The
                underlying OSError/TypeError/ValueError is logged and chained.
        """
        try:
            await self._store.async_save(self._data)
        except OSError as err:
            const.LOGGER.error(
                "Failed to save storage due to file system error: %s. "
                "Check disk space and file permissions for %s",
                err,
                self._store.path,
            )
            raise StorageWriteError(operation, bucket, str(err)) from err
        except TypeError as err:
            const.LOGGER.error(
                "Failed to save storage due to non-serializable data: %s", err
            )
            raise StorageWriteError(operation, bucket, str(err)) from err
        except ValueError as err:
            const.LOGGER.error(
                "Failed to save storage due to invalid data format: %s", err
            )
            raise StorageWriteError(operation, bucket, str(err)) from err

    async def async_delete_storage(self) -> None:
        """Delete the storage file (used when the config entry is removed)."""
        await self._store.async_remove()

    # ────────────────────────────────────────────────────────────────
    # Internal helpers
    # ────────────────────────────────────────────────────────────────

    def _bucket(self, bucket: str) -> BucketData:
        if bucket not in const.DATA_BUCKETS:
            raise ValueError(f"Unknown storage bucket: {bucket}")
        return self._data.setdefault(bucket, {})

    def _check_open_instance_unique(
        self, record: dict[str, Any], ignore_id: str | None = None
    ) -> None:
        """Enforce one non-completed task per (habit_id, assigned_date)."""
        habit_id = record.get(const.FIELD_HABIT_ID)
        if not habit_id:
            return
        if record.get(const.FIELD_STATUS) == const.TASK_STATUS_COMPLETED:
            return
        assigned_date = record.get(const.FIELD_ASSIGNED_DATE)
        for existing in self._bucket(const.DATA_TASKS).values():
            if (
                existing[const.FIELD_ID] != ignore_id
                and existing.get(const.FIELD_HABIT_ID) == habit_id
                and existing.get(const.FIELD_ASSIGNED_DATE) == assigned_date
                and existing.get(const.FIELD_STATUS) != const.TASK_STATUS_COMPLETED
            ):
                raise DuplicateRecordError(
                    habit_id, str(assigned_date), existing[const.FIELD_ID]
                )

    @staticmethod
    def _matches(
        record: dict[str, Any],
        filters: dict[str, Any] | None,
        exclude: dict[str, Any] | None,
    ) -> bool:
        for key, value in (filters or {}).items():
            if record.get(key) != value:
                return False
        for key, value in (exclude or {}).items():
            if record.get(key) == value:
                return False
        return True

    # ────────────────────────────────────────────────────────────────
    # CRUD
    # ────────────────────────────────────────────────────────────────

    async def async_create(self, bucket: str, record: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and persist it.

        An `id` is generated when missing; `created_at`/`updated_at` are set.

        Raises:
            DuplicateRecordError: A non-completed task already exists for the
                same (habit_id, assigned_date).
            RecordIdConflictError: The id is already taken in the bucket.
            StorageWriteError: The write failed.
        """
        records = self._bucket(bucket)
        new_record = copy.deepcopy(record)
        record_id = new_record.get(const.FIELD_ID) or uuid.uuid4().hex
        if record_id in records:
            raise RecordIdConflictError(bucket, record_id)
        if bucket == const.DATA_TASKS:
            self._check_open_instance_unique(new_record)

        now_iso = dt_utils.dt_now_iso()
        new_record[const.FIELD_ID] = record_id
        new_record.setdefault(const.FIELD_CREATED_AT, now_iso)
        new_record[const.FIELD_UPDATED_AT] = now_iso

        records[record_id] = new_record
        try:
            await self.async_save("create", bucket)
        except StorageWriteError:
            records.pop(record_id, None)
            raise
        const.LOGGER.debug("Created %s record %s", bucket, record_id)
        return copy.deepcopy(new_record)

    async def async_get(self, bucket: str, record_id: str) -> dict[str, Any]:
        """Return a copy of a record.

        Raises:
            RecordNotFoundError: No record with that id exists.
        """
        record = self._bucket(bucket).get(record_id)
        if record is None:
            raise RecordNotFoundError(bucket, record_id)
        return copy.deepcopy(record)

    async def async_exists(self, bucket: str, record_id: str | None) -> bool:
        return bool(record_id) and record_id in self._bucket(bucket)

    async def async_update(
        self, bucket: str, record_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply a partial update and persist it. Returns the updated record.

        Raises:
            RecordNotFoundError: No record with that id exists.
            DuplicateRecordError: The update would reopen a second instance
                for the same (habit_id, assigned_date).
            StorageWriteError: The write failed (in-memory state is restored).
        """
        records = self._bucket(bucket)
        current = records.get(record_id)
        if current is None:
            raise RecordNotFoundError(bucket, record_id)

        updated = {**current, **copy.deepcopy(changes)}
        updated[const.FIELD_ID] = record_id
        updated[const.FIELD_UPDATED_AT] = dt_utils.dt_now_iso()
        if bucket == const.DATA_TASKS:
            self._check_open_instance_unique(updated, ignore_id=record_id)

        records[record_id] = updated
        try:
            await self.async_save("update", bucket)
        except StorageWriteError:
            records[record_id] = current
            raise
        return copy.deepcopy(updated)

    async def async_delete(self, bucket: str, record_id: str) -> dict[str, Any]:
        """Remove a record and persist. Returns the removed record.

        Raises:
            RecordNotFoundError: No record with that id exists.
            StorageWriteError: The write failed (the record is restored).
        """
        records = self._bucket(bucket)
        removed = records.pop(record_id, None)
        if removed is None:
            raise RecordNotFoundError(bucket, record_id)
        try:
            await self.async_save("delete", bucket)
        except StorageWriteError:
            records[record_id] = removed
            raise
        const.LOGGER.debug("Deleted %s record %s", bucket, record_id)
        return removed

    async def async_query(
        self,
        bucket: str,
        filters: dict[str, Any] | None = None,
        exclude: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Return copies of records matching every filter and no exclude value.

        Example:
            await store.async_query(
                const.DATA_TASKS,
                filters={"habit_id": habit_id},
                exclude={"status": "completed"},
            )
        """
        return [
            copy.deepcopy(record)
            for record in self._bucket(bucket).values()
            if self._matches(record, filters, exclude)
        ]

    async def async_get_many(
        self, bucket: str, record_ids: Iterable[str]
    ) -> list[dict[str, Any]]:
        """Batch lookup by id. Missing ids are skipped."""
        records = self._bucket(bucket)
        return [
            copy.deepcopy(records[record_id])
            for record_id in record_ids
            if record_id in records
        ]

    # ────────────────────────────────────────────────────────────────
    # Meta
    # ────────────────────────────────────────────────────────────────

    def get_meta(self, key: str, default: Any = None) -> Any:
        return self._data.get(const.DATA_META, {}).get(key, default)

    async def async_set_meta(self, key: str, value: Any) -> None:
        """Set a meta field and persist."""
        meta = self._data.setdefault(const.DATA_META, {})
        previous = meta.get(key)
        meta[key] = value
        try:
            await self.async_save("update", const.DATA_META)
        except StorageWriteError:
            meta[key] = previous
            raise
