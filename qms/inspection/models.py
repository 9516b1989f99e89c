"""
Inspection record model.

An InspectionRecord is one quality check of one batch. Records are
immutable pydantic models: they are built once via `create()` with all
derived fields computed up front, and the only later change (the
manager decision) produces a new record value via the workflow.

Persisted blobs use the camelCase keys the browser client wrote
(`batchId`, `managerStatus`); Python code uses snake_case attributes.
"""

from __future__ import annotations

import secrets
import string
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from qms.exceptions import CorruptRecordError, ValidationError
from qms.inspection.scoring import (
    PredictedStatus,
    average_score,
    predict,
    score_problems,
)

BATCH_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
BATCH_SUFFIX_LENGTH = 4

# Latest ms timestamp that still converts to a local datetime in any zone
# (Dec 30, 9999 UTC).
MAX_TIMESTAMP_MS = 253_402_214_399_999


class ManagerStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def new_record_id() -> str:
    return f"ins_{uuid.uuid4().hex}"


def new_batch_id(year: int) -> str:
    suffix = "".join(
        secrets.choice(BATCH_SUFFIX_ALPHABET) for _ in range(BATCH_SUFFIX_LENGTH)
    )
    return f"BATCH-{year}-{suffix}"


def _pydantic_problems(exc: PydanticValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into the {field, message} form."""
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "input"
        message = err["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        problems.append({"field": field, "message": message})
    return problems


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

class InspectionInput(BaseModel):
    """
    What an inspector submits for a new record.

    Scores are checked separately by the score evaluator so that every
    failing criterion is reported alongside any other field problems.
    """

    model_config = ConfigDict(populate_by_name=True)

    product: str
    vendor: str
    inspector: str
    batch_id: Optional[str] = Field(None, alias="batchId")
    scores: Any = Field(..., description="Mapping of the six criteria to 0-10 scores")
    notes: Optional[str] = ""
    img: Optional[str] = Field(None, description="Opaque image reference, e.g. a data URL")
    timestamp: Optional[int] = Field(
        None,
        ge=0,
        le=MAX_TIMESTAMP_MS,
        description="Override creation time (ms) for backfilled data",
    )

    @field_validator("product", "vendor", "inspector")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("batch_id")
    @classmethod
    def normalize_batch_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, v: Optional[str]) -> str:
        return v or ""


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DerivedFieldDrift:
    """A stored derived field that no longer matches its recomputation."""

    record_id: str
    field: str
    stored: Any
    expected: Any


class InspectionRecord(BaseModel):
    """One quality check of one batch."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, strict=True)
    product: str = Field(..., strict=True)
    vendor: str = Field(..., strict=True)
    inspector: str = Field(..., strict=True)
    batch_id: str = Field(..., alias="batchId", strict=True)
    scores: dict[str, float]
    notes: Optional[str] = ""
    img: Optional[str] = None
    average: float = Field(..., strict=True)
    predicted: PredictedStatus
    manager_status: ManagerStatus = Field(..., alias="managerStatus")
    timestamp: int = Field(..., strict=True, ge=0, le=MAX_TIMESTAMP_MS)

    @field_validator("scores", mode="before")
    @classmethod
    def validate_scores_shape(cls, v: Any) -> Any:
        problems = score_problems(v)
        if problems:
            detail = "; ".join(f"{p['field']} {p['message']}" for p in problems)
            raise ValueError(detail)
        return v

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, v: Optional[str]) -> str:
        return v or ""

    # --- Constructors ---

    @classmethod
    def create(
        cls,
        data: Union[InspectionInput, Mapping[str, Any]],
        *,
        created_at_ms: Optional[int] = None,
    ) -> "InspectionRecord":
        """
        Build a brand-new record from inspector input.

        Generates the id (and batch id when absent), computes the
        average and prediction, and starts the record as Pending.

        Args:
            data: InspectionInput or a plain mapping with the same keys.
            created_at_ms: Clock override used when the input carries no
                timestamp of its own.

        Raises:
            ValidationError: Listing every failing field.
        """
        if isinstance(data, InspectionInput):
            raw = data.model_dump(by_alias=True)
        elif isinstance(data, Mapping):
            raw = dict(data)
        else:
            raise ValidationError(
                "Inspection input must be a mapping",
                errors=[{"field": "input", "message": "must be a mapping"}],
            )

        problems: list[dict[str, str]] = []
        payload: Optional[InspectionInput] = None
        try:
            payload = InspectionInput.model_validate(raw)
        except PydanticValidationError as e:
            problems.extend(_pydantic_problems(e))

        if "scores" in raw:
            problems.extend(score_problems(raw["scores"]))

        if problems or payload is None:
            raise ValidationError(
                f"Invalid inspection: {', '.join(p['field'] for p in problems)}",
                errors=problems,
            )

        created = created_at_ms if created_at_ms is not None else now_ms()
        scores = {name: float(value) for name, value in payload.scores.items()}
        average = average_score(scores)

        return cls(
            id=new_record_id(),
            product=payload.product,
            vendor=payload.vendor,
            inspector=payload.inspector,
            batch_id=payload.batch_id
            or new_batch_id(datetime.fromtimestamp(created / 1000).year),
            scores=scores,
            notes=payload.notes,
            img=payload.img,
            average=average,
            predicted=predict(average),
            manager_status=ManagerStatus.PENDING,
            timestamp=payload.timestamp if payload.timestamp is not None else created,
        )

    @classmethod
    def from_persisted(
        cls,
        blob: Any,
        *,
        index: Optional[int] = None,
    ) -> "InspectionRecord":
        """
        Rebuild a record from its stored form.

        The shape is re-validated, but stored `average` and `predicted`
        are trusted as-is; use `check_derived()` to detect drift.

        Raises:
            CorruptRecordError: If the blob is malformed.
        """
        if not isinstance(blob, Mapping):
            raise CorruptRecordError(
                f"Stored inspection at index {index} is not an object",
                index=index,
            )
        record_id = blob.get("id")
        try:
            return cls.model_validate(dict(blob))
        except PydanticValidationError as e:
            problems = _pydantic_problems(e)
            raise CorruptRecordError(
                f"Stored inspection {record_id or f'at index {index}'} is malformed: "
                + "; ".join(f"{p['field']}: {p['message']}" for p in problems),
                index=index,
                record_id=record_id if isinstance(record_id, str) else None,
                details={"errors": problems},
            ) from e

    # --- Serialization ---

    def to_persisted(self) -> dict[str, Any]:
        """The camelCase blob written to the backend."""
        return self.model_dump(by_alias=True, mode="json")

    # --- Derived fields ---

    def check_derived(self) -> list[DerivedFieldDrift]:
        """Compare stored derived fields against a fresh recomputation."""
        expected_average = average_score(self.scores)
        expected_predicted = predict(expected_average)
        drift = []
        if self.average != expected_average:
            drift.append(DerivedFieldDrift(
                record_id=self.id,
                field="average",
                stored=self.average,
                expected=expected_average,
            ))
        if self.predicted != expected_predicted:
            drift.append(DerivedFieldDrift(
                record_id=self.id,
                field="predicted",
                stored=self.predicted.value,
                expected=expected_predicted.value,
            ))
        return drift

    @property
    def created_at(self) -> datetime:
        """Creation time as a local datetime."""
        return datetime.fromtimestamp(self.timestamp / 1000)
