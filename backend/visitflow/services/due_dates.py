"""
Due-date resolution for follow-up actions.

Each next step of a processed visit becomes an action whose due date is
taken from, in order:

1. a structured ``due_at`` value, when it parses;
2. a ``timeframe`` phrase ("in 2 weeks", "next month") read relative to
   the visit date;
3. the description itself: first the clause after a dash separator
   ("Clinic follow up — on March 10, 2026"), then the whole text.

Resolved dates are pinned to noon so day boundaries in nearby timezones
do not move them to another calendar day.

The natural-language parser is a plain callable ``(text, reference) ->
Optional[datetime]`` so callers and tests can swap it.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta, MO, TU, WE, TH, FR, SA, SU

from ..core.database import utc_now


logger = logging.getLogger(__name__)

DateParser = Callable[[str, datetime], Optional[datetime]]

# Separators between an action and its timing ("Labs — in 2 weeks")
CLAUSE_SEPARATOR = re.compile(r"\s*(?:—|–|--)\s*")

WORD_NUMBERS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11,
    "twelve": 12, "couple": 2, "few": 3,
}
_NUMBER = r"(\d+|" + "|".join(sorted(WORD_NUMBERS, key=len, reverse=True)) + r")"

RELATIVE_AMOUNT = re.compile(
    r"\b(?:in|within|after)?\s*(?:a\s+)?" + _NUMBER + r"\s+(day|week|month|year)s?\b"
)
NEXT_UNIT = re.compile(r"\bnext\s+(day|week|month|year)\b")
WEEKDAYS = {
    "monday": MO, "tuesday": TU, "wednesday": WE, "thursday": TH,
    "friday": FR, "saturday": SA, "sunday": SU,
}
WEEKDAY = re.compile(r"\b(" + "|".join(WEEKDAYS) + r")\b")

_MONTH = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?"
ABSOLUTE_HINT = re.compile(
    r"\b" + _MONTH + r"\s+\d{1,2}\b"
    r"|\b\d{1,2}(?:st|nd|rd|th)?\s+(?:of\s+)?" + _MONTH +
    r"|\b\d{4}-\d{1,2}-\d{1,2}\b"
    r"|\b\d{1,2}/\d{1,2}(?:/\d{2,4})?\b"
)
EXPLICIT_YEAR = re.compile(r"\b\d{4}\b|\b\d{1,2}/\d{1,2}/\d{2,4}\b")


# =============================================================================
# Natural Language Parser
# =============================================================================

def _unit_delta(unit: str, amount: int) -> relativedelta:
    return relativedelta(**{f"{unit}s": amount})


def parse_natural_date(text: str, reference: datetime) -> Optional[datetime]:
    """
    Parse a relative or absolute date phrase with a forward bias.

    Args:
        text: Free text such as "in 2 weeks", "next Tuesday", "March 10"
        reference: Instant relative phrases are measured from

    Returns:
        Parsed datetime (same tzinfo as ``reference``) or None
    """
    if not text or not text.strip():
        return None
    lowered = text.strip().lower()

    if re.search(r"\btomorrow\b", lowered):
        return reference + timedelta(days=1)
    if re.search(r"\btoday\b", lowered):
        return reference

    match = RELATIVE_AMOUNT.search(lowered)
    if match:
        raw, unit = match.groups()
        amount = int(raw) if raw.isdigit() else WORD_NUMBERS[raw]
        return reference + _unit_delta(unit, amount)

    match = NEXT_UNIT.search(lowered)
    if match:
        return reference + _unit_delta(match.group(1), 1)

    if ABSOLUTE_HINT.search(lowered):
        default = reference.replace(hour=12, minute=0, second=0, microsecond=0)
        try:
            parsed = date_parser.parse(text, default=default, fuzzy=True)
        except (ValueError, OverflowError):
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None and reference.tzinfo is not None:
                parsed = parsed.replace(tzinfo=reference.tzinfo)
            if not EXPLICIT_YEAR.search(lowered) and parsed < reference:
                parsed = parsed + relativedelta(years=1)
            return parsed

    match = WEEKDAY.search(lowered)
    if match:
        weekday = WEEKDAYS[match.group(1)]
        # strictly after the reference day
        return reference + relativedelta(days=1, weekday=weekday(+1))

    return None


# =============================================================================
# Resolution
# =============================================================================

def _coerce_due_at(value: Any, reference: datetime) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = date_parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            logger.debug("Unparseable structured due date ignored")
            return None
    else:
        return None
    if parsed.tzinfo is None and reference.tzinfo is not None:
        parsed = parsed.replace(tzinfo=reference.tzinfo)
    return parsed


def normalize_to_noon(value: datetime, reference: datetime) -> datetime:
    """
    Pin the calendar date of ``value`` to 12:00 in the reference timezone.

    The date is read in the value's own offset, so an evening time in a
    western zone keeps its day.
    """
    tz = reference.tzinfo if reference.tzinfo is not None else value.tzinfo
    return datetime(value.year, value.month, value.day, 12, tzinfo=tz)


def resolve_action_due_date(
    description: str,
    timeframe: Optional[str] = None,
    due_at: Any = None,
    reference_date: Optional[datetime] = None,
    parser: DateParser = parse_natural_date,
) -> Optional[datetime]:
    """
    Resolve the due date of one follow-up action.

    Args:
        description: Action text, possibly carrying timing after a dash
        timeframe: Optional separate timing phrase
        due_at: Optional structured date (datetime, date or ISO string)
        reference_date: Instant relative phrases are measured from
        parser: Natural-language date parser

    Returns:
        Due date normalized to noon, or None when nothing resolves
    """
    reference = reference_date or utc_now()

    resolved = _coerce_due_at(due_at, reference)

    if resolved is None and timeframe and timeframe.strip():
        resolved = parser(timeframe, reference)

    if resolved is None and description:
        parts = CLAUSE_SEPARATOR.split(description, maxsplit=1)
        if len(parts) == 2 and parts[1].strip():
            resolved = parser(parts[1], reference)
        if resolved is None:
            resolved = parser(description, reference)

    if resolved is None:
        return None
    return normalize_to_noon(resolved, reference)


def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def resolve_visit_reference_date(visit: Any, fallback: Optional[datetime] = None) -> datetime:
    """First of visit_date, created_at, processed_at, updated_at that is set."""
    for name in ("visit_date", "created_at", "processed_at", "updated_at"):
        value = _field(visit, name)
        if isinstance(value, datetime):
            return value
    return fallback or utc_now()
