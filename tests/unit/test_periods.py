"""Tests for period bucketing, category shares and period comparison."""

from datetime import date

import pytest

from workforce_intel.analytics.periods import (
    build_snapshots,
    category_shares,
    compare_periods,
    months_between,
    period_bounds,
    period_key,
    period_label,
    records_between,
    shift_period,
)
from workforce_intel.core.schemas import JobRecord

NOW = date(2024, 6, 15)


def _record(record_id: str, posting_date: str | None = "2024-06-01", **kw: object) -> JobRecord:
    defaults: dict[str, object] = {
        "id": record_id,
        "short_agency": "UNICEF",
        "primary_category": "Health",
        "posting_date": posting_date,
    }
    defaults.update(kw)
    return JobRecord(**defaults)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Period keys
# ---------------------------------------------------------------------------


class TestPeriodKeys:
    def test_month_key_and_label(self) -> None:
        key = period_key(date(2024, 3, 9))
        assert key == (2024, 3)
        assert period_label(key) == "2024-03"

    def test_quarter_key_and_label(self) -> None:
        key = period_key(date(2024, 8, 1), "quarter")
        assert key == (2024, 3)
        assert period_label(key, "quarter") == "2024-Q3"

    def test_shift_across_year(self) -> None:
        assert shift_period((2024, 1), -1) == (2023, 12)
        assert shift_period((2023, 11), 3) == (2024, 2)
        assert shift_period((2024, 1), -1, "quarter") == (2023, 4)

    def test_bounds(self) -> None:
        assert period_bounds((2024, 12)) == (date(2024, 12, 1), date(2025, 1, 1))
        assert period_bounds((2024, 2), "quarter") == (date(2024, 4, 1), date(2024, 7, 1))

    def test_invalid_granularity(self) -> None:
        with pytest.raises(ValueError, match="granularity"):
            period_key(NOW, "week")  # type: ignore[arg-type]

    def test_months_between_ignores_day(self) -> None:
        assert months_between(date(2024, 1, 31), date(2024, 2, 1)) == 1
        assert months_between(date(2023, 6, 15), NOW) == 12


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


class TestBuildSnapshots:
    def test_window_oldest_first_with_empty_periods(self) -> None:
        records = [_record("1", "2024-06-02"), _record("2", "2024-03-20")]
        snapshots = build_snapshots(records, NOW, periods=4)
        assert [s.label for s in snapshots] == ["2024-03", "2024-04", "2024-05", "2024-06"]
        assert [s.count for s in snapshots] == [1, 0, 0, 1]

    def test_quarters(self) -> None:
        records = [_record("1", "2024-01-10"), _record("2", "2024-05-01"), _record("3", "2024-06-30")]
        snapshots = build_snapshots(records, NOW, "quarter", periods=2)
        assert [s.label for s in snapshots] == ["2024-Q1", "2024-Q2"]
        assert [s.count for s in snapshots] == [1, 2]

    def test_undated_and_out_of_window_excluded(self) -> None:
        records = [
            _record("1", None),
            _record("2", "garbage-date"),
            _record("3", "2022-01-01"),
            _record("4", "2024-07-01"),
            _record("5", "2024-06-30T23:59:00Z"),
        ]
        snapshots = build_snapshots(records, NOW, periods=6)
        assert sum(s.count for s in snapshots) == 1

    def test_bounds_are_half_open(self) -> None:
        [snapshot] = build_snapshots([], NOW, periods=1)
        assert snapshot.start == date(2024, 6, 1)
        assert snapshot.end == date(2024, 7, 1)
        assert snapshot.records == []

    def test_periods_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="periods must be >= 1"):
            build_snapshots([], NOW, periods=0)

    def test_records_between(self) -> None:
        records = [_record("1", "2024-05-31"), _record("2", "2024-06-01")]
        assert [r.id for r in records_between(records, date(2024, 6, 1), date(2024, 7, 1))] == ["2"]


# ---------------------------------------------------------------------------
# Shares and comparison
# ---------------------------------------------------------------------------


class TestCategoryShares:
    def test_shares_sum_to_100(self) -> None:
        categories = ["Health", "Health", "Education", "WASH", "Logistics", "Health", "Education"]
        records = [_record(str(i), primary_category=c) for i, c in enumerate(categories)]
        shares = category_shares(records)
        assert sum(shares.values()) == pytest.approx(100.0)
        assert shares["Health"] == pytest.approx(300 / 7)

    def test_empty(self) -> None:
        assert category_shares([]) == {}


class TestComparePeriods:
    def test_volume_and_shifts(self) -> None:
        baseline = [_record(f"b{i}", primary_category="Health") for i in range(4)]
        current = [_record(f"c{i}", primary_category="Health") for i in range(3)] + [
            _record(f"c{i}", primary_category="Education") for i in range(3, 6)
        ]
        comparison = compare_periods(baseline, current, "2023-Q2", "2024-Q2")
        assert comparison.baseline_period == "2023-Q2"
        assert comparison.volume_change.absolute == 2
        assert comparison.volume_change.percentage == 50.0
        shifts = {s.category: s.shift for s in comparison.category_shifts}
        assert shifts == {"Health": -50.0, "Education": 50.0}

    def test_seniority_shift_detected(self) -> None:
        baseline = [_record(f"b{i}", grade="P2") for i in range(4)]
        current = [_record(f"c{i}", grade="P5") for i in range(4)]
        comparison = compare_periods(baseline, current)
        assert comparison.strategic_changes == ["Shift towards senior positions"]

    def test_empty_baseline(self) -> None:
        comparison = compare_periods([], [_record("1")])
        assert comparison.volume_change.absolute == 1
        assert comparison.volume_change.percentage == 0.0
        assert comparison.strategic_changes == []
