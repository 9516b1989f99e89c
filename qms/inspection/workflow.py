"""
Manager approval workflow for inspection records.

States:
    Pending  → initial; every record is created here
    Accepted → terminal but revisable
    Rejected → terminal but revisable

A decided record may be re-decided (re-review is a normal business
action), including re-applying the same decision. Nothing moves a
record back to Pending.

Every transition produces a StatusChanged event. The workflow does not
own KPI state; listeners (dashboards, CLI summaries) subscribe and
recompute their own aggregates.

Usage:
    workflow = ApprovalWorkflow()
    workflow.subscribe(lambda event: refresh_kpis())

    updated, event = workflow.transition(record, "Accepted")
    # ... persist `updated` ...
    workflow.publish(event)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Union

from qms.exceptions import InvalidTransitionError, ValidationError
from qms.inspection.models import InspectionRecord, ManagerStatus

logger = logging.getLogger(__name__)

StatusListener = Callable[["StatusChanged"], None]


@dataclass(frozen=True)
class StatusChanged:
    """Signal emitted whenever a record's manager decision is set."""

    record_id: str
    old_status: ManagerStatus
    new_status: ManagerStatus


def parse_status(status: Union[ManagerStatus, str]) -> ManagerStatus:
    """
    Coerce a status value, accepting the enum or its display string.

    Raises:
        ValidationError: For anything outside Pending/Accepted/Rejected.
    """
    if isinstance(status, ManagerStatus):
        return status
    try:
        return ManagerStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in ManagerStatus)
        raise ValidationError(
            f"Unknown manager status: {status!r}",
            errors=[{
                "field": "managerStatus",
                "message": f"must be one of {allowed}",
            }],
        ) from None


class ApprovalWorkflow:
    """
    State machine governing `managerStatus`.

    The transition check is pure; publishing is separate so the store
    can signal only after the new state is actually persisted.
    """

    # current status -> allowed next statuses
    VALID_TRANSITIONS: dict[ManagerStatus, frozenset[ManagerStatus]] = {
        ManagerStatus.PENDING: frozenset({ManagerStatus.ACCEPTED, ManagerStatus.REJECTED}),
        ManagerStatus.ACCEPTED: frozenset({ManagerStatus.ACCEPTED, ManagerStatus.REJECTED}),
        ManagerStatus.REJECTED: frozenset({ManagerStatus.ACCEPTED, ManagerStatus.REJECTED}),
    }

    def __init__(self) -> None:
        self._listeners: list[StatusListener] = []

    def can_transition(
        self,
        current: ManagerStatus,
        target: Union[ManagerStatus, str],
    ) -> bool:
        try:
            target = parse_status(target)
        except ValidationError:
            return False
        return target in self.VALID_TRANSITIONS.get(current, frozenset())

    def transition(
        self,
        record: InspectionRecord,
        status: Union[ManagerStatus, str],
    ) -> tuple[InspectionRecord, StatusChanged]:
        """
        Apply a manager decision to a record.

        Returns:
            (updated record, StatusChanged event). The input record is
            left untouched.

        Raises:
            ValidationError: Unknown status value.
            InvalidTransitionError: Transition not allowed.
        """
        target = parse_status(status)
        current = record.manager_status

        if target not in self.VALID_TRANSITIONS.get(current, frozenset()):
            raise InvalidTransitionError(
                f"Cannot move inspection {record.id} from "
                f"{current.value} to {target.value}",
                record_id=record.id,
                old_status=current.value,
                new_status=target.value,
            )

        updated = record.model_copy(update={"manager_status": target})
        return updated, StatusChanged(
            record_id=record.id,
            old_status=current,
            new_status=target,
        )

    # --- Signals ---

    def subscribe(self, listener: StatusListener) -> None:
        """Register a callback for StatusChanged events."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, event: StatusChanged) -> int:
        """
        Deliver an event to every listener (fan-out).

        A failing listener is logged and skipped so one broken consumer
        cannot undo a decision that is already persisted.

        Returns:
            Number of listeners that handled the event without error.
        """
        delivered = 0
        for listener in list(self._listeners):
            try:
                listener(event)
                delivered += 1
            except Exception as e:
                logger.error(
                    f"Status listener failed for {event.record_id}: {e}",
                    extra={"record_id": event.record_id},
                )

        logger.info(
            "status_changed",
            extra={
                "record_id": event.record_id,
                "old_status": event.old_status.value,
                "new_status": event.new_status.value,
                "count": delivered,
            },
        )
        return delivered
