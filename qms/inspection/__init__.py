"""
Inspection records: scoring, the record model, approval workflow,
backends and the record store.
"""

from qms.inspection.backends import InMemoryBackend, InspectionBackend, JSONFileBackend
from qms.inspection.models import (
    DerivedFieldDrift,
    InspectionInput,
    InspectionRecord,
    ManagerStatus,
)
from qms.inspection.scoring import (
    CRITERIA,
    PredictedStatus,
    average_score,
    predict,
    rating_for,
)
from qms.inspection.store import RecordStore
from qms.inspection.workflow import ApprovalWorkflow, StatusChanged

__all__ = [
    "ApprovalWorkflow",
    "CRITERIA",
    "DerivedFieldDrift",
    "InMemoryBackend",
    "InspectionBackend",
    "InspectionInput",
    "InspectionRecord",
    "JSONFileBackend",
    "ManagerStatus",
    "PredictedStatus",
    "RecordStore",
    "StatusChanged",
    "average_score",
    "predict",
    "rating_for",
]
