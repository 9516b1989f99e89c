"""
Unit tests for the approval workflow state machine.

Validates the transition table, the terminal-but-revisable policy, and
StatusChanged fan-out to listeners.
"""

import pytest

from qms.exceptions import InvalidTransitionError, ValidationError
from qms.inspection.models import InspectionRecord, ManagerStatus
from qms.inspection.workflow import ApprovalWorkflow, StatusChanged, parse_status

from tests.conftest import make_input


@pytest.fixture
def workflow():
    return ApprovalWorkflow()


@pytest.fixture
def record():
    return InspectionRecord.create(make_input())


class TestTransitions:
    """Tests for transition()."""

    def test_pending_to_accepted(self, workflow, record):
        updated, event = workflow.transition(record, ManagerStatus.ACCEPTED)
        assert updated.manager_status == ManagerStatus.ACCEPTED
        assert event == StatusChanged(record.id, ManagerStatus.PENDING, ManagerStatus.ACCEPTED)

    def test_pending_to_rejected(self, workflow, record):
        updated, _ = workflow.transition(record, "Rejected")
        assert updated.manager_status == ManagerStatus.REJECTED

    def test_decided_record_is_revisable(self, workflow, record):
        accepted, first = workflow.transition(record, "Accepted")
        rejected, second = workflow.transition(accepted, "Rejected")
        assert rejected.manager_status == ManagerStatus.REJECTED
        assert (first.old_status, first.new_status) == (ManagerStatus.PENDING, ManagerStatus.ACCEPTED)
        assert (second.old_status, second.new_status) == (ManagerStatus.ACCEPTED, ManagerStatus.REJECTED)

    def test_same_decision_is_idempotent(self, workflow, record):
        accepted, _ = workflow.transition(record, "Accepted")
        again, event = workflow.transition(accepted, "Accepted")
        assert again.manager_status == ManagerStatus.ACCEPTED
        assert event.old_status == event.new_status == ManagerStatus.ACCEPTED

    def test_cannot_return_to_pending(self, workflow, record):
        accepted, _ = workflow.transition(record, "Accepted")
        with pytest.raises(InvalidTransitionError) as exc_info:
            workflow.transition(accepted, "Pending")
        assert exc_info.value.old_status == "Accepted"
        assert exc_info.value.new_status == "Pending"
        assert exc_info.value.record_id == record.id

    def test_pending_to_pending_is_illegal(self, workflow, record):
        with pytest.raises(InvalidTransitionError):
            workflow.transition(record, ManagerStatus.PENDING)

    def test_invalid_transition_is_a_validation_error(self, workflow, record):
        with pytest.raises(ValidationError):
            workflow.transition(record, "Pending")

    def test_unknown_status(self, workflow, record):
        with pytest.raises(ValidationError) as exc_info:
            workflow.transition(record, "Approved")
        assert exc_info.value.fields == ["managerStatus"]

    def test_original_record_untouched(self, workflow, record):
        workflow.transition(record, "Accepted")
        assert record.manager_status == ManagerStatus.PENDING

    def test_only_status_changes(self, workflow, record):
        updated, _ = workflow.transition(record, "Rejected")
        assert updated.model_dump(exclude={"manager_status"}) == record.model_dump(
            exclude={"manager_status"}
        )

    def test_can_transition(self, workflow):
        assert workflow.can_transition(ManagerStatus.PENDING, "Accepted")
        assert workflow.can_transition(ManagerStatus.REJECTED, "Accepted")
        assert not workflow.can_transition(ManagerStatus.ACCEPTED, "Pending")
        assert not workflow.can_transition(ManagerStatus.PENDING, "Bogus")


class TestPublish:
    """Tests for listener fan-out."""

    def test_delivers_to_all_listeners(self, workflow):
        seen_a, seen_b = [], []
        workflow.subscribe(seen_a.append)
        workflow.subscribe(seen_b.append)
        event = StatusChanged("ins_1", ManagerStatus.PENDING, ManagerStatus.ACCEPTED)

        assert workflow.publish(event) == 2
        assert seen_a == [event]
        assert seen_b == [event]

    def test_failing_listener_does_not_block_others(self, workflow):
        seen = []

        def broken(event):
            raise RuntimeError("dashboard offline")

        workflow.subscribe(broken)
        workflow.subscribe(seen.append)
        event = StatusChanged("ins_1", ManagerStatus.PENDING, ManagerStatus.REJECTED)

        assert workflow.publish(event) == 1
        assert seen == [event]

    def test_unsubscribe(self, workflow):
        seen = []
        workflow.subscribe(seen.append)
        workflow.unsubscribe(seen.append)
        workflow.publish(StatusChanged("ins_1", ManagerStatus.PENDING, ManagerStatus.ACCEPTED))
        assert seen == []

    def test_transition_alone_does_not_publish(self, workflow, record):
        seen = []
        workflow.subscribe(seen.append)
        workflow.transition(record, "Accepted")
        assert seen == []


class TestParseStatus:

    def test_accepts_enum_and_string(self):
        assert parse_status(ManagerStatus.ACCEPTED) is ManagerStatus.ACCEPTED
        assert parse_status("Rejected") is ManagerStatus.REJECTED

    def test_rejects_lowercase(self):
        with pytest.raises(ValidationError):
            parse_status("accepted")
