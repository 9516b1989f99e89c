"""
Unit tests for the custom exception hierarchy.

Validates exception creation, inheritance, and attribute storage.
"""

import pytest

from qms.exceptions import (
    ConfigurationError,
    ConsistencyError,
    CorruptRecordError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    QMSError,
    ValidationError,
)


class TestQMSError:
    """Tests for the base exception class."""

    def test_basic_creation(self):
        err = QMSError("something broke")
        assert str(err) == "something broke"
        assert err.details == {}

    def test_with_details(self):
        err = QMSError("oops", details={"code": 42})
        assert err.details["code"] == 42

    def test_is_exception(self):
        assert issubclass(QMSError, Exception)


class TestValidationError:

    def test_stores_all_errors(self):
        err = ValidationError(
            "bad input",
            errors=[
                {"field": "vendor", "message": "Field required"},
                {"field": "scores.fit", "message": "must be between 0 and 10"},
            ],
        )
        assert err.fields == ["vendor", "scores.fit"]

    def test_defaults_to_no_errors(self):
        assert ValidationError("bad").errors == []

    def test_catchable_as_qms_error(self):
        with pytest.raises(QMSError):
            raise ValidationError("invalid")


class TestInvalidTransitionError:

    def test_stores_transition(self):
        err = InvalidTransitionError(
            "no", record_id="ins_1", old_status="Accepted", new_status="Pending"
        )
        assert err.record_id == "ins_1"
        assert (err.old_status, err.new_status) == ("Accepted", "Pending")
        assert err.fields == ["managerStatus"]

    def test_inherits_validation_error(self):
        assert issubclass(InvalidTransitionError, ValidationError)


class TestStoredDataErrors:

    def test_corrupt_record(self):
        err = CorruptRecordError("bad blob", index=4, record_id="ins_9")
        assert err.index == 4
        assert err.record_id == "ins_9"

    def test_not_found(self):
        err = NotFoundError("missing", record_id="ins_9")
        assert err.record_id == "ins_9"

    def test_consistency(self):
        err = ConsistencyError("dupes", duplicate_ids=["a", "b"])
        assert err.duplicate_ids == ["a", "b"]
        assert ConsistencyError("dupes").duplicate_ids == []

    @pytest.mark.parametrize(
        "cls", [CorruptRecordError, NotFoundError, ConsistencyError]
    )
    def test_inherit_qms_error(self, cls):
        assert issubclass(cls, QMSError)


class TestPersistenceError:

    def test_not_persisted_flag(self):
        err = PersistenceError("write failed", operation="create")
        assert err.operation == "create"
        assert err.persisted is False
        assert err.record is None

    def test_inherits_qms_error(self):
        assert issubclass(PersistenceError, QMSError)


class TestConfigurationError:

    def test_stores_path(self):
        err = ConfigurationError("bad yaml", config_path="config/settings.yaml")
        assert err.config_path == "config/settings.yaml"
