from __future__ import annotations

from datetime import date

import pytest

from backend.app import models
from backend.app.delivery_patterns import (
    AlternatePattern,
    CustomPattern,
    DailyPattern,
    DeliveryPatternError,
    Weekday,
    WeeklyPattern,
    parse_delivery_pattern,
)

SATURDAY = date(2024, 6, 1)
SUNDAY = date(2024, 6, 2)
MONDAY = date(2024, 6, 3)


def test_weekday_follows_calendar_order():
    assert Weekday.of(SATURDAY) == Weekday.SATURDAY
    assert Weekday.of(SUNDAY) == Weekday.SUNDAY
    assert Weekday.of(MONDAY) == Weekday.MONDAY


def test_daily_pattern_includes_every_date():
    pattern = DailyPattern()

    assert all(pattern.includes(date(2024, 6, day)) for day in range(1, 31))


def test_alternate_pattern_counts_parity_from_anchor():
    pattern = AlternatePattern(anchor_date=SATURDAY)

    assert pattern.includes(SATURDAY)
    assert not pattern.includes(SUNDAY)
    assert pattern.includes(MONDAY)
    assert pattern.includes(date(2024, 5, 30))
    assert not pattern.includes(date(2024, 5, 31))


def test_weekly_pattern_defaults_to_sunday():
    assert WeeklyPattern().days == (Weekday.SUNDAY,)
    assert parse_delivery_pattern({"kind": "weekly", "days": []}).days == (Weekday.SUNDAY,)
    assert WeeklyPattern().includes(SUNDAY)
    assert not WeeklyPattern().includes(MONDAY)


def test_parse_accepts_json_text():
    pattern = parse_delivery_pattern('{"kind": "custom", "days": ["monday", "thursday"]}')

    assert isinstance(pattern, CustomPattern)
    assert pattern.includes(MONDAY)
    assert not pattern.includes(SUNDAY)


@pytest.mark.parametrize(
    "raw",
    [
        {"kind": "custom", "days": []},
        {"kind": "fortnightly"},
        {"kind": "weekly", "days": ["funday"]},
        {"kind": "daily", "note": "deliver before 7am"},
        "mon,wed,fri",
    ],
)
def test_parse_rejects_malformed_patterns(raw):
    with pytest.raises(DeliveryPatternError):
        parse_delivery_pattern(raw)


def test_pattern_survives_a_database_round_trip(db_session, seed_route):
    subscription = seed_route["alternate_curd"]
    subscription.delivery_pattern = CustomPattern(days=(Weekday.TUESDAY, Weekday.FRIDAY))
    db_session.commit()
    db_session.expire_all()

    reloaded = db_session.get(models.Subscription, subscription.id)

    assert isinstance(reloaded.delivery_pattern, CustomPattern)
    assert reloaded.delivery_pattern.days == (Weekday.TUESDAY, Weekday.FRIDAY)
    assert reloaded.is_due_on(date(2024, 6, 4))
    assert not reloaded.is_due_on(MONDAY)


def test_inactive_subscription_is_never_due(db_session, seed_route):
    subscription = seed_route["daily_milk"]
    subscription.is_active = False
    db_session.commit()

    assert not subscription.is_due_on(MONDAY)
