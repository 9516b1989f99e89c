"""
Unit tests for dashboard KPIs and vendor aggregates.
"""

from datetime import datetime

from qms.analytics.kpis import compute_kpis, vendor_performance
from qms.inspection.models import InspectionRecord, ManagerStatus

from tests.conftest import make_input

NOW = datetime(2024, 6, 15, 12, 0, 0)
TODAY_MS = int(datetime(2024, 6, 15, 9, 30).timestamp() * 1000)
LAST_WEEK_MS = int(datetime(2024, 6, 8, 9, 30).timestamp() * 1000)


def _uniform(value):
    return {name: value for name in ("fabric", "stitching", "fit", "color", "packaging", "labels")}


def _record(score, *, vendor="Fresh Tailors", status=None, timestamp=TODAY_MS):
    record = InspectionRecord.create(
        make_input(scores=_uniform(score), vendor=vendor, timestamp=timestamp)
    )
    if status is not None:
        record = record.model_copy(update={"manager_status": status})
    return record


class TestComputeKPIs:

    def test_empty_set(self):
        kpis = compute_kpis([], now=NOW)
        assert kpis.to_dict() == {
            "today_count": 0, "total": 0, "issues": 0,
            "average_score": 0.0, "pass_rate": 0,
        }

    def test_today_count(self):
        records = [_record(8), _record(8, timestamp=LAST_WEEK_MS)]
        assert compute_kpis(records, now=NOW).today_count == 1

    def test_issues_below_seven(self):
        records = [_record(6.5), _record(7), _record(9)]
        assert compute_kpis(records, now=NOW).issues == 1

    def test_average_score(self):
        records = [_record(8), _record(7), _record(6)]
        assert compute_kpis(records, now=NOW).average_score == 7.0

    def test_pass_rate_needs_score_and_acceptance(self):
        records = [
            _record(9, status=ManagerStatus.ACCEPTED),   # pass
            _record(9),                                  # pending
            _record(6, status=ManagerStatus.ACCEPTED),   # accepted but low
            _record(8, status=ManagerStatus.REJECTED),
        ]
        assert compute_kpis(records, now=NOW).pass_rate == 25

    def test_pass_rate_rounds_half_up(self):
        records = [_record(9, status=ManagerStatus.ACCEPTED)] + [_record(5) for _ in range(7)]
        # 1/8 = 12.5%
        assert compute_kpis(records, now=NOW).pass_rate == 13


class TestVendorPerformance:

    def test_groups_and_counts(self):
        records = [
            _record(9, vendor="Green Apparel", status=ManagerStatus.ACCEPTED),
            _record(7, vendor="Green Apparel", status=ManagerStatus.REJECTED),
            _record(6, vendor="Fresh Tailors"),
        ]
        rows = vendor_performance(records)

        assert [r.vendor for r in rows] == ["Green Apparel", "Fresh Tailors"]
        green = rows[0]
        assert green.inspections == 2
        assert green.average_score == 8.0
        assert (green.accepted, green.rejected, green.pending) == (1, 1, 0)
        assert green.acceptance_rate == 50
        assert rows[1].pending == 1

    def test_ties_sorted_by_name(self):
        rows = vendor_performance([_record(8, vendor="Zeta"), _record(8, vendor="Alpha")])
        assert [r.vendor for r in rows] == ["Alpha", "Zeta"]

    def test_empty(self):
        assert vendor_performance([]) == []
