"""GEDCOM date values → year bounds.

A date contributes a (minimum, maximum) year pair:

    "12 MAR 1850"            → (1850, 1850)
    "BET 1850 AND 1855"      → (1850, 1855)
    "FROM 1800 TO 1810"      → (1800, 1810)
    "ABT 1790" / "BEF 1790"  → (1790, 1790)
    "1750/51"                → (1750, 1750)
    "@#DHEBREW@ 5784"        → (2024, 2024)
    "(unknown)"              → None

Parsing is done by ged4py. Its `str()` of a parsed value spells the
qualifiers out ("ABOUT 1790"), which is also what ingestion stores, so the
long keywords are folded back before parsing.

Events anchor to the minimum; life windows close on the maximum of the
death date.
"""

import logging
from dataclasses import dataclass

import convertdate.gregorian
from ged4py.calendar import CalendarDate, GregorianDate, JulianDate
from ged4py.date import DateValue, DateValuePeriod, DateValuePhrase, DateValueRange

logger = logging.getLogger(__name__)

KEYWORDS = {
    "ABOUT": "ABT",
    "AFTER": "AFT",
    "BEFORE": "BEF",
    "BETWEEN": "BET",
    "CALCULATED": "CAL",
    "ESTIMATED": "EST",
    "INTERPRETED": "INT",
}


@dataclass(frozen=True)
class YearRange:
    minimum: int
    maximum: int


def parse_date(raw: str | DateValue | None) -> YearRange | None:
    """Resolve a GEDCOM date to its year bounds, or None if undated."""
    if raw is None:
        return None
    if not isinstance(raw, DateValue):
        raw = _canonical(str(raw))
        if not raw:
            return None
        try:
            raw = DateValue.parse(raw)
        except ValueError as e:
            logger.debug("Unparseable date %r: %s", raw, e)
            return None

    if isinstance(raw, DateValuePhrase):
        return None
    if isinstance(raw, (DateValueRange, DateValuePeriod)):
        dates = (raw.date1, raw.date2)
    else:
        dates = (raw.date,)

    years = [_gregorian_year(d) for d in dates]
    return YearRange(minimum=min(years), maximum=max(years))


def year_of(raw: str | DateValue | None, strategy: str = "min") -> int | None:
    """Year of a date using the min/max range strategy."""
    bounds = parse_date(raw)
    if bounds is None:
        return None
    return bounds.minimum if strategy == "min" else bounds.maximum


def _canonical(text: str) -> str:
    words = [KEYWORDS.get(w.upper(), w) for w in text.replace(",", " ").split()]
    return " ".join(words)


def _gregorian_year(date: CalendarDate) -> int:
    # Julian years are close enough to count as the same year
    if isinstance(date, (GregorianDate, JulianDate)):
        return -date.year if date.bc else date.year
    jd, _ = date.key()
    year, _, _ = convertdate.gregorian.from_jd(jd)
    return year
