# backend/tests/test_schedule.py
from __future__ import annotations

from datetime import date, datetime

import pytest

from rentdesk.domain.schedule import (
    adjustments_from_flat_percent,
    clamp_due_day,
    generate_schedule,
    missing_items,
    required_adjustments_count,
)


@pytest.mark.parametrize("start", [date(2026, 1, 1), date(2026, 1, 31), date(2025, 11, 15), date(2024, 2, 29)])
@pytest.mark.parametrize("months", [1, 7, 24])
def test_schedule_length_and_consecutive_periods(start, months):
    items = generate_schedule(start, months, 100000)
    assert len(items) == months

    y, m = start.year, start.month
    for it in items:
        assert it.period == f"{y:04d}-{m:02d}"
        assert it.status == "PENDING"
        m += 1
        if m > 12:
            y, m = y + 1, 1


def test_schedule_reduces_datetimes_to_calendar_dates():
    a = generate_schedule(datetime(2026, 3, 31, 23, 59), 3, 500)
    b = generate_schedule("2026-03-31T03:00:00Z", 3, 500)
    assert [x.period for x in a] == ["2026-03", "2026-04", "2026-05"]
    assert [x.period for x in b] == ["2026-03", "2026-04", "2026-05"]


@pytest.mark.parametrize("due_day,expected", [(0, 1), (-5, 1), (29, 28), (31, 28), (15, 15), (1, 1), (28, 28)])
def test_due_day_is_clamped(due_day, expected):
    assert clamp_due_day(due_day) == expected
    for it in generate_schedule(date(2026, 1, 1), 14, 1000, due_day=due_day):
        assert it.due_date.day == expected
        assert it.due_date.strftime("%Y-%m") == it.period


def test_no_adjustment_cadence_keeps_base_amount():
    items = generate_schedule(date(2026, 1, 1), 24, 100000, adjust_every_months=0, adjust_percent=[50, 50])
    assert {it.amount for it in items} == {100000}


def test_adjustments_apply_every_cadence_and_compound():
    items = generate_schedule(date(2026, 1, 1), 9, 100000, adjust_every_months=3, adjust_percent=[10, 10, 10])
    assert [it.amount for it in items] == [100000] * 3 + [110000] * 3 + [121000] * 3


def test_flat_percent_applies_at_every_event():
    items = generate_schedule(date(2026, 1, 1), 7, 1000, adjust_every_months=2, adjust_percent=10)
    assert [it.amount for it in items] == [1000, 1000, 1100, 1100, 1210, 1210, 1331]


def test_missing_list_entries_count_as_zero_percent():
    items = generate_schedule(
        date(2026, 1, 1), 12, 1000, adjust_every_months=3, adjust_percent=[{"n": 1, "percentage": 20}]
    )
    assert [it.amount for it in items] == [1000] * 3 + [1200] * 9


def test_amounts_round_half_up():
    items = generate_schedule(date(2026, 1, 1), 2, 1005, adjust_every_months=1, adjust_percent=[5])
    # 1005 * 1.05 = 1055.25
    assert [it.amount for it in items] == [1005, 1055]
    assert generate_schedule(date(2026, 1, 1), 1, 999.5)[0].amount == 1000


def test_invalid_inputs_raise():
    with pytest.raises(ValueError):
        generate_schedule("not-a-date", 12, 1000)
    with pytest.raises(ValueError):
        generate_schedule(date(2026, 1, 1), 0, 1000)


def test_required_adjustments_count():
    assert required_adjustments_count(12, 3) == 3
    assert required_adjustments_count(9, 3) == 2
    assert required_adjustments_count(24, 6) == 3
    assert required_adjustments_count(12, 0) == 0
    assert required_adjustments_count(1, 1) == 0


def test_adjustments_from_flat_percent():
    assert adjustments_from_flat_percent(12, 4, 7.5) == [
        {"n": 1, "percentage": 7.5},
        {"n": 2, "percentage": 7.5},
    ]


def test_missing_items_skips_existing_periods():
    items = generate_schedule(date(2026, 1, 1), 4, 1000)
    todo = missing_items(items, {"2026-01", "2026-03"})
    assert [it.period for it in todo] == ["2026-02", "2026-04"]
