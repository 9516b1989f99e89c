"""
Dashboard KPIs and vendor aggregates over a record set.

Pure functions: the caller decides which records to pass (usually
`store.list()`) and when to recompute, typically from a StatusChanged
listener.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from qms.inspection.models import InspectionRecord, ManagerStatus
from qms.inspection.scoring import ACCEPT_THRESHOLD, round_score

# Records averaging below this count as quality issues.
ISSUE_THRESHOLD = 7.0


@dataclass(frozen=True)
class KPISnapshot:
    today_count: int
    total: int
    issues: int
    average_score: float
    pass_rate: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VendorPerformance:
    vendor: str
    inspections: int
    average_score: float
    accepted: int
    rejected: int
    pending: int

    @property
    def acceptance_rate(self) -> int:
        """Whole-percent share of this vendor's records a manager accepted."""
        return _percent(self.accepted, self.inspections)


def _percent(part: int, whole: int) -> int:
    """Whole percent, halves rounded up."""
    if not whole:
        return 0
    return math.floor(part / whole * 100 + 0.5)


def _mean(values: list[float]) -> float:
    return round_score(sum(values) / len(values)) if values else 0.0


def compute_kpis(
    records: Iterable[InspectionRecord],
    now: Optional[datetime] = None,
) -> KPISnapshot:
    """
    Headline numbers for the dashboard.

    - today_count: inspections whose local date is today
    - issues: inspections averaging below 7
    - average_score: mean of averages, 2 decimals
    - pass_rate: percent of inspections that scored >= 8 AND were
      accepted by a manager
    """
    records = list(records)
    today = (now or datetime.now()).date()
    total = len(records)

    passed = sum(
        1 for r in records
        if r.average >= ACCEPT_THRESHOLD and r.manager_status == ManagerStatus.ACCEPTED
    )

    return KPISnapshot(
        today_count=sum(1 for r in records if r.created_at.date() == today),
        total=total,
        issues=sum(1 for r in records if r.average < ISSUE_THRESHOLD),
        average_score=_mean([r.average for r in records]),
        pass_rate=_percent(passed, total),
    )


def vendor_performance(
    records: Iterable[InspectionRecord],
) -> list[VendorPerformance]:
    """Per-vendor counts and mean score, best-scoring vendor first."""
    by_vendor: dict[str, list[InspectionRecord]] = {}
    for record in records:
        by_vendor.setdefault(record.vendor, []).append(record)

    rows = []
    for vendor, items in by_vendor.items():
        statuses = [r.manager_status for r in items]
        rows.append(VendorPerformance(
            vendor=vendor,
            inspections=len(items),
            average_score=_mean([r.average for r in items]),
            accepted=statuses.count(ManagerStatus.ACCEPTED),
            rejected=statuses.count(ManagerStatus.REJECTED),
            pending=statuses.count(ManagerStatus.PENDING),
        ))

    rows.sort(key=lambda row: (-row.average_score, row.vendor))
    return rows
