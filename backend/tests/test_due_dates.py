from datetime import date, datetime, timezone

import pytest

from visitflow.services.due_dates import (
    normalize_to_noon,
    parse_natural_date,
    resolve_action_due_date,
    resolve_visit_reference_date,
)


REFERENCE = datetime(2026, 1, 1, 9, 30, tzinfo=timezone.utc)  # a Thursday


def noon(year, month, day):
    return datetime(year, month, day, 12, 0, tzinfo=timezone.utc)


def test_clause_after_dash_is_parsed():
    due = resolve_action_due_date(
        "Clinic follow up — on March 10, 2026", reference_date=REFERENCE)

    assert due == noon(2026, 3, 10)


def test_structured_due_at_wins_over_timeframe():
    due = resolve_action_due_date(
        "Refill", timeframe="in 2 weeks", due_at="2026-02-15", reference_date=REFERENCE)

    assert due == noon(2026, 2, 15)


def test_unparseable_due_at_falls_back_to_timeframe():
    due = resolve_action_due_date(
        "Refill", timeframe="in 2 weeks", due_at="someday", reference_date=REFERENCE)

    assert due == noon(2026, 1, 15)


def test_due_at_accepts_date_objects():
    due = resolve_action_due_date("Refill", due_at=date(2026, 4, 1), reference_date=REFERENCE)

    assert due == noon(2026, 4, 1)


@pytest.mark.parametrize("text,expected", [
    ("in 2 weeks", noon(2026, 1, 15)),
    ("within three days", noon(2026, 1, 4)),
    ("in a month", noon(2026, 2, 1)),
    ("next week", noon(2026, 1, 8)),
    ("tomorrow", noon(2026, 1, 2)),
    ("next Tuesday", noon(2026, 1, 6)),
    ("on Thursday", noon(2026, 1, 8)),
    ("Feb 3", noon(2026, 2, 3)),
])
def test_relative_phrases(text, expected):
    assert resolve_action_due_date("Follow up", timeframe=text, reference_date=REFERENCE) == expected


def test_past_month_day_rolls_forward_a_year():
    reference = datetime(2026, 6, 1, tzinfo=timezone.utc)

    assert parse_natural_date("March 3", reference).date() == date(2027, 3, 3)


def test_unresolvable_text_returns_none():
    assert resolve_action_due_date("Keep walking daily", reference_date=REFERENCE) is None
    assert parse_natural_date("", REFERENCE) is None


def test_custom_parser_is_used():
    calls = []

    def fixed_parser(text, reference):
        calls.append(text)
        return datetime(2030, 5, 5, 8, 0, tzinfo=timezone.utc)

    due = resolve_action_due_date("Labs — whenever", reference_date=REFERENCE, parser=fixed_parser)

    assert due == noon(2030, 5, 5)
    assert calls == ["whenever"]


def test_normalize_to_noon_uses_reference_timezone():
    late_utc = datetime(2026, 3, 10, 23, 0, tzinfo=timezone.utc)

    assert normalize_to_noon(late_utc, REFERENCE) == noon(2026, 3, 10)


def test_reference_date_precedence():
    visit = {
        "visit_date": None,
        "created_at": datetime(2026, 1, 5, tzinfo=timezone.utc),
        "processed_at": datetime(2026, 1, 6, tzinfo=timezone.utc),
    }

    assert resolve_visit_reference_date(visit) == visit["created_at"]
    visit["visit_date"] = datetime(2025, 12, 30, tzinfo=timezone.utc)
    assert resolve_visit_reference_date(visit) == visit["visit_date"]
    fallback = datetime(2026, 2, 1, tzinfo=timezone.utc)
    assert resolve_visit_reference_date({}, fallback) == fallback


def test_structured_due_at_keeps_its_own_calendar_day():
    due = resolve_action_due_date(
        "Refill", due_at="2026-02-15T20:00:00-08:00", reference_date=REFERENCE)

    assert due == noon(2026, 2, 15)


def test_day_first_month_phrase():
    assert parse_natural_date("Bloods on the 3rd of March", REFERENCE) == noon(2026, 3, 3)
    assert parse_natural_date("review 14 Feb", REFERENCE) == noon(2026, 2, 14)
