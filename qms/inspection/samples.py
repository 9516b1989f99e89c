"""
Seed inspections used on first run and as the read-failure fallback.
"""

from __future__ import annotations

from typing import Any, Optional

from qms.inspection.models import InspectionRecord, now_ms

DAY_MS = 1000 * 60 * 60 * 24


def sample_inputs(now: Optional[int] = None) -> list[dict[str, Any]]:
    """The two demo inspections, timestamped one and two days back."""
    now = now if now is not None else now_ms()
    return [
        {
            "product": "Shirt - Classic Cotton",
            "vendor": "Fresh Tailors",
            "inspector": "John Smith",
            "batchId": "BATCH-2023-001",
            "scores": {
                "fabric": 8.5, "stitching": 8, "fit": 7.5,
                "color": 9, "packaging": 8, "labels": 8,
            },
            "notes": "Good quality with minor fit issues. Fabric quality is excellent.",
            "timestamp": now - 2 * DAY_MS,
        },
        {
            "product": "Shirt - Premium Linen",
            "vendor": "Green Apparel",
            "inspector": "Sarah Johnson",
            "batchId": "BATCH-2023-002",
            "scores": {
                "fabric": 9, "stitching": 8.5, "fit": 8,
                "color": 8.5, "packaging": 9, "labels": 8,
            },
            "notes": "Excellent quality batch. Premium materials used throughout.",
            "timestamp": now - 1 * DAY_MS,
        },
    ]


def sample_records(now: Optional[int] = None) -> list[InspectionRecord]:
    return [InspectionRecord.create(data) for data in sample_inputs(now)]
