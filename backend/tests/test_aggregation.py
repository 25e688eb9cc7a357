"""
Tests for the shared aggregation toolkit.
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from behavior_analytics.core.exceptions import InvalidDateRangeError
from behavior_analytics.services.aggregation import (
    DateRange,
    day_buckets,
    is_bounce,
    local_day,
    percentage,
    reconstruct_sessions,
    returning_sessions,
    to_float,
    to_int,
)

UTC = timezone.utc
HCM = ZoneInfo("Asia/Ho_Chi_Minh")


class TestCoercion:

    @pytest.mark.parametrize("value,expected", [
        (None, 0.0),
        ("12.5", 12.5),
        (" 3 ", 3.0),
        (Decimal("199.99"), 199.99),
        ("abc", 0.0),
        (float("nan"), 0.0),
        (float("inf"), 0.0),
        ({"a": 1}, 0.0),
        (True, 0.0),
        (7, 7.0),
    ])
    def test_to_float(self, value, expected):
        assert to_float(value) == expected

    def test_to_int_truncates(self):
        assert to_int("4.9") == 4
        assert to_int(None) == 0


class TestDateRange:

    def test_naive_bounds_use_report_timezone(self):
        date_range = DateRange.of(datetime(2024, 3, 1), datetime(2024, 3, 8))

        assert date_range.start.tzinfo is not None
        assert date_range.start.utcoffset() == timedelta(hours=7)

    def test_start_after_end_is_rejected(self):
        with pytest.raises(InvalidDateRangeError):
            DateRange.of(datetime(2024, 3, 8), datetime(2024, 3, 1))

    def test_local_days_include_partial_last_day(self):
        date_range = DateRange.of(datetime(2024, 3, 1), datetime(2024, 3, 3, 1))

        assert date_range.local_days(HCM) == [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)]

    def test_local_days_stop_before_midnight_end(self):
        date_range = DateRange.of(datetime(2024, 3, 1), datetime(2024, 3, 3))

        assert date_range.local_days(HCM) == [date(2024, 3, 1), date(2024, 3, 2)]

    def test_empty_range_has_no_days(self):
        moment = datetime(2024, 3, 1, 9)

        assert DateRange.of(moment, moment).local_days(HCM) == []

    def test_previous_window(self):
        date_range = DateRange.of(datetime(2024, 3, 8), datetime(2024, 3, 15))
        previous = date_range.previous()

        assert previous.end == date_range.start
        assert previous.duration == date_range.duration


class TestDayBuckets:

    def test_dense_and_ordered(self):
        date_range = DateRange.of(datetime(2024, 3, 1), datetime(2024, 3, 4))
        buckets = day_buckets(date_range, lambda label: {"date": label, "count": 0})

        assert [b["date"] for b in buckets.values()] == ["2024-03-01", "2024-03-02", "2024-03-03"]

    def test_range_starting_mid_day_covers_last_day(self):
        date_range = DateRange.of(datetime(2024, 3, 1, 14), datetime(2024, 3, 31, 14))
        buckets = day_buckets(date_range, lambda label: {"date": label})

        labels = [b["date"] for b in buckets.values()]
        assert len(labels) == 31
        assert labels[0] == "2024-03-01"
        assert labels[-1] == "2024-03-31"

    def test_timestamps_land_on_local_day(self):
        date_range = DateRange.of(datetime(2024, 3, 1), datetime(2024, 3, 3))
        buckets = day_buckets(date_range, lambda label: {"date": label, "count": 0})

        # 18:30 UTC on the 1st is 01:30 on the 2nd in Ho Chi Minh City
        buckets.get(datetime(2024, 3, 1, 18, 30, tzinfo=UTC))["count"] += 1

        assert [b["count"] for b in buckets.values()] == [0, 1]

    def test_out_of_range_timestamps_are_ignored(self):
        date_range = DateRange.of(datetime(2024, 3, 1), datetime(2024, 3, 2))
        buckets = day_buckets(date_range, lambda label: {"date": label})

        assert buckets.get(datetime(2024, 4, 1, tzinfo=UTC)) is None
        assert buckets.get(None) is None


def test_local_day_treats_naive_as_utc():
    assert local_day(datetime(2024, 3, 1, 20, 0), HCM) == date(2024, 3, 2)


@pytest.mark.parametrize("part,whole,digits,expected", [
    (1, 3, 1, 33.3),
    (2, 3, 2, 66.67),
    (5, 0, 1, 0.0),
    (0, 10, 1, 0.0),
])
def test_percentage(part, whole, digits, expected):
    assert percentage(part, whole, digits) == expected


class TestSessions:

    def test_groups_and_orders_events(self, make_event):
        t0 = datetime(2024, 3, 2, 3, 0, tzinfo=UTC)
        events = [
            make_event("product_viewed", t0 + timedelta(seconds=60), session_id="a"),
            make_event("page_view", t0, session_id="a"),
            make_event("page_view", t0, session_id="b", customer_id=5),
            make_event("page_view", t0, session_id=None),
        ]

        sessions = reconstruct_sessions(events)

        assert list(sessions) == ["a", "b"]
        assert [e.event_type for e in sessions["a"].events] == ["page_view", "product_viewed"]
        assert sessions["a"].duration_seconds == 60
        assert sessions["a"].interactions == {"product_viewed"}
        assert sessions["b"].is_returning

    def test_view_only_session_is_bounce(self, make_event):
        t0 = datetime(2024, 3, 2, 3, 0, tzinfo=UTC)
        session = reconstruct_sessions([
            make_event("product_viewed", t0),
            make_event("product_viewed", t0 + timedelta(minutes=5)),
        ])["s1"]

        assert is_bounce(session)

    def test_short_session_with_one_interaction_is_bounce(self, make_event):
        t0 = datetime(2024, 3, 2, 3, 0, tzinfo=UTC)
        session = reconstruct_sessions([
            make_event("page_view", t0),
            make_event("product_click", t0 + timedelta(seconds=5)),
        ])["s1"]

        assert is_bounce(session)

    def test_engaged_session_is_not_bounce(self, make_event):
        t0 = datetime(2024, 3, 2, 3, 0, tzinfo=UTC)
        session = reconstruct_sessions([
            make_event("product_viewed", t0),
            make_event("product_added_to_cart", t0 + timedelta(seconds=120)),
        ])["s1"]

        assert not is_bounce(session)

    def test_returning_sessions(self, make_event):
        t0 = datetime(2024, 3, 2, 3, 0, tzinfo=UTC)
        events = [
            make_event("page_view", t0, session_id="a"),
            make_event("user_authenticated", t0, session_id="a", customer_id=3),
            make_event("page_view", t0, session_id="b"),
        ]

        assert returning_sessions(events) == {"a"}
