"""
Inspection record store.

CRUD over an injected key-value backend. Every write is a full-set
read-modify-write: read all blobs, rebuild records, mutate, re-check id
uniqueness, write all blobs back. Callers never see that cycle, so an
indexed backend can replace it later without touching them.

Usage:
    store = RecordStore(JSONFileBackend("data/inspections.json"))
    record = store.create({"product": "...", "vendor": "...", ...})
    store.approve(record.id)
    for r in store.list(vendor="Fresh Tailors"):
        ...

Read failures on the query path (list, find_by_id, recent) degrade to
the seed set, or to an empty set with seeding off. That is acceptable
for a best-effort local cache; a durable system-of-record backend
should revisit it. Write paths never degrade: they raise.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Iterable, Mapping, Optional, Union

from qms.exceptions import (
    ConsistencyError,
    CorruptRecordError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from qms.inspection.backends import InspectionBackend
from qms.inspection.models import (
    DerivedFieldDrift,
    InspectionInput,
    InspectionRecord,
    ManagerStatus,
)
from qms.inspection.samples import sample_records
from qms.inspection.scoring import PredictedStatus
from qms.inspection.workflow import ApprovalWorkflow, parse_status
from qms.observability.logging_config import record_context

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = frozenset({
    "timestamp", "average", "product", "vendor",
    "inspector", "batch_id", "manager_status", "predicted",
})


def _sort_value(record: InspectionRecord, field: str) -> Any:
    value = getattr(record, field)
    if isinstance(value, str):
        # Enums are str subclasses; compare on the display value.
        return getattr(value, "value", value).lower()
    return value


class RecordStore:
    """
    Inspection records over a read-all/write-all backend.

    Enforces at most one record per id on every write, delegates status
    legality to ApprovalWorkflow, and publishes StatusChanged only once
    the new status is persisted.
    """

    def __init__(
        self,
        backend: InspectionBackend,
        *,
        workflow: Optional[ApprovalWorkflow] = None,
        seed_sample_data: bool = False,
    ):
        self.backend = backend
        self.workflow = workflow or ApprovalWorkflow()
        self.seed_sample_data = seed_sample_data
        self._fallback: Optional[list[InspectionRecord]] = None

    # ─── Loading ─────────────────────────────────────────────────────

    def _load(self) -> list[InspectionRecord]:
        """
        Read and rebuild the full record set, raising on any failure.

        An empty backend with seeding enabled is treated as a first run:
        the sample set is persisted and returned.
        """
        try:
            blobs = self.backend.read_all()
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(
                f"Backend read failed: {e}", operation="read"
            ) from e

        if not blobs and self.seed_sample_data:
            seeds = sample_records()
            if self._write_blobs(seeds):
                logger.info("sample_data_seeded", extra={"count": len(seeds)})
            else:
                logger.warning("Could not persist sample data; serving it unsaved")
            return seeds

        return [
            InspectionRecord.from_persisted(blob, index=i)
            for i, blob in enumerate(blobs)
        ]

    def _load_or_fallback(self) -> list[InspectionRecord]:
        try:
            return self._load()
        except (PersistenceError, CorruptRecordError) as e:
            if self._fallback is None:
                # Built once so ids stay stable across degraded reads.
                self._fallback = sample_records() if self.seed_sample_data else []
            fallback = list(self._fallback)
            logger.warning(
                f"Inspection data unreadable, serving "
                f"{'sample' if fallback else 'empty'} set instead: {e}",
                extra={"count": len(fallback)},
            )
            return fallback

    # ─── Writing ─────────────────────────────────────────────────────

    @staticmethod
    def _check_unique(records: list[InspectionRecord]) -> None:
        counts = Counter(r.id for r in records)
        duplicates = sorted(rid for rid, n in counts.items() if n > 1)
        if duplicates:
            raise ConsistencyError(
                f"Duplicate inspection ids in record set: {', '.join(duplicates)}",
                duplicate_ids=duplicates,
            )

    def _write_blobs(self, records: list[InspectionRecord]) -> bool:
        blobs = [r.to_persisted() for r in records]
        try:
            return bool(self.backend.write_all(blobs))
        except Exception as e:
            logger.error(f"Backend write raised: {e}", extra={"count": len(blobs)})
            return False

    def _persist(
        self,
        records: list[InspectionRecord],
        *,
        operation: str,
        record: Optional[InspectionRecord] = None,
    ) -> None:
        self._check_unique(records)
        if not self._write_blobs(records):
            raise PersistenceError(
                f"Could not save inspections ({operation})",
                operation=operation,
                record=record,
            )

    # ─── Queries ─────────────────────────────────────────────────────

    def list(
        self,
        *,
        vendor: Optional[str] = None,
        inspector: Optional[str] = None,
        manager_status: Optional[Union[ManagerStatus, str]] = None,
        predicted: Optional[Union[PredictedStatus, str]] = None,
        sort_by: str = "timestamp",
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[InspectionRecord]:
        """
        Query the record set.

        Args:
            vendor: Exact vendor match.
            inspector: Exact inspector match.
            manager_status: Pending / Accepted / Rejected.
            predicted: Predicted classification (enum or display string).
            sort_by: One of SORTABLE_FIELDS (default: timestamp).
            descending: Newest / highest first (default: True).
            limit: Keep only the first N after sorting.

        Raises:
            ValidationError: Unknown sort field or filter value.
        """
        if sort_by not in SORTABLE_FIELDS:
            raise ValidationError(
                f"Cannot sort by {sort_by!r}",
                errors=[{
                    "field": "sort_by",
                    "message": f"must be one of {', '.join(sorted(SORTABLE_FIELDS))}",
                }],
            )
        status_filter = parse_status(manager_status) if manager_status else None
        predicted_filter = None
        if predicted:
            try:
                predicted_filter = PredictedStatus(predicted)
            except ValueError:
                raise ValidationError(
                    f"Unknown predicted status: {predicted!r}",
                    errors=[{"field": "predicted", "message": "is not a known classification"}],
                ) from None

        records = self._load_or_fallback()
        if vendor is not None:
            records = [r for r in records if r.vendor == vendor]
        if inspector is not None:
            records = [r for r in records if r.inspector == inspector]
        if status_filter is not None:
            records = [r for r in records if r.manager_status == status_filter]
        if predicted_filter is not None:
            records = [r for r in records if r.predicted == predicted_filter]

        records.sort(key=lambda r: _sort_value(r, sort_by), reverse=descending)
        if limit is not None:
            records = records[:max(limit, 0)]
        return records

    def recent(self, limit: int = 3) -> list[InspectionRecord]:
        """Newest inspections first."""
        return self.list(limit=limit)

    def count(self) -> int:
        return len(self._load_or_fallback())

    def find_by_id(self, record_id: str) -> Optional[InspectionRecord]:
        for record in self._load_or_fallback():
            if record.id == record_id:
                return record
        return None

    def get(self, record_id: str) -> InspectionRecord:
        """Like find_by_id, but raises NotFoundError when absent."""
        record = self.find_by_id(record_id)
        if record is None:
            raise NotFoundError(
                f"Inspection not found: {record_id}", record_id=record_id
            )
        return record

    # ─── Mutations ───────────────────────────────────────────────────

    def create(
        self,
        data: Union[InspectionInput, Mapping[str, Any]],
    ) -> InspectionRecord:
        """
        Validate, derive and persist a new inspection.

        Raises:
            ValidationError: Bad input; nothing is read or written.
            ConsistencyError: Stored set already has duplicate ids.
            PersistenceError: Backend failed. `e.record` holds the built
                record so the caller does not lose the entered data.
        """
        record = InspectionRecord.create(data)

        with record_context(record.id):
            try:
                records = self._load()
            except PersistenceError as e:
                e.record = record
                raise
            records.append(record)
            self._persist(records, operation="create", record=record)

            logger.info(
                "inspection_created",
                extra={
                    "record_id": record.id,
                    "batch_id": record.batch_id,
                    "vendor": record.vendor,
                    "average": record.average,
                    "predicted": record.predicted.value,
                },
            )
        return record

    def update_status(
        self,
        record_id: str,
        status: Union[ManagerStatus, str],
    ) -> InspectionRecord:
        """
        Set the manager decision on a record.

        Raises:
            NotFoundError: No record with this id.
            ValidationError / InvalidTransitionError: Illegal status.
            PersistenceError: Backend write failed; nothing is published.
        """
        with record_context(record_id):
            records = self._load()
            index = next(
                (i for i, r in enumerate(records) if r.id == record_id), None
            )
            if index is None:
                raise NotFoundError(
                    f"Inspection not found: {record_id}", record_id=record_id
                )

            updated, event = self.workflow.transition(records[index], status)
            records[index] = updated
            self._persist(records, operation="update_status", record=updated)

            self.workflow.publish(event)
        return updated

    def approve(self, record_id: str) -> InspectionRecord:
        return self.update_status(record_id, ManagerStatus.ACCEPTED)

    def reject(self, record_id: str) -> InspectionRecord:
        return self.update_status(record_id, ManagerStatus.REJECTED)

    def replace_all(
        self,
        records: Iterable[Union[InspectionRecord, Mapping[str, Any]]],
    ) -> list[InspectionRecord]:
        """
        Bulk-replace the stored set (the only way records are removed).

        Plain blobs are validated like persisted data.
        """
        rebuilt = [
            r if isinstance(r, InspectionRecord)
            else InspectionRecord.from_persisted(r, index=i)
            for i, r in enumerate(records)
        ]
        self._persist(rebuilt, operation="replace_all")
        logger.info("inspections_replaced", extra={"count": len(rebuilt)})
        return rebuilt

    # ─── Diagnostics ─────────────────────────────────────────────────

    def reconcile(self) -> list[DerivedFieldDrift]:
        """
        Report stored average/predicted values that disagree with a
        recomputation from scores. Read-only; nothing is corrected.
        """
        drift: list[DerivedFieldDrift] = []
        for record in self._load():
            drift.extend(record.check_derived())
        if drift:
            logger.warning(
                "derived_field_drift",
                extra={"count": len(drift)},
            )
        return drift
