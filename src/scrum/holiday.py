"""
Holiday directives and the holiday table.

A directive is a compact string naming the countries that observe a holiday and the
name they observe it under:

    "us: Independence Day"
    "ca,uk,us: New Year's Day"
    'ca,us: ca:"Family Day" us:"President\'s Day"'

The part before the first ':' lists the countries, the rest is either one uniform
name or a sequence of country:"name" pairs.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .errors import HolidayFormatError
from .utils import parse_date

logger = logging.getLogger(__name__)


DEFAULT_HOLIDAYS: Dict[str, str] = {
    "2018-01-01": "ca,uk,us: New Year's Day",
    "2018-01-15": "us: Martin Luther King Day",
    "2018-02-12": "ca: Family Day (BC)",
    "2018-02-19": 'ca,us: ca:"Family Day (AB, MB, ON, PE, SK)" us:"President\'s Day"',
    "2018-03-30": "ca,uk: Good Friday",
    "2018-04-02": "uk: Easter Monday",
    "2018-04-13": "us: Wellbeing Day",
    "2018-05-07": "uk: Early May bank holiday",
    "2018-05-21": "ca: Victoria Day",
    "2018-05-28": "uk: Spring bank holiday",
    "2018-05-29": "us: Memorial Day",
    "2018-06-25": "ca: National Holiday (QC)",
    "2018-07-02": "ca: Canada Day, observed",
    "2018-07-04": "us: Independence Day",
    "2018-08-06": "ca: Civic Day (AB, BC, ON, NS, MB)",
    "2018-08-27": "uk: Summer bank holiday",
    "2018-09-03": "ca, us: Labor Day",
    "2018-10-08": "ca: Thanksgiving Day",
    "2018-11-12": "ca: Remembrance Day, observed (AB, BC, NS)",
    "2018-11-22": "us: Thanksgiving Day",
    "2018-11-23": "us: Day After Thanksgiving",
    "2018-12-24": "us: Christmas Eve",
    "2018-12-25": "ca,uk,us: Christmas Day",
    "2018-12-26": "ca,uk: Boxing Day",
}

_LETTERS = re.compile(r"[^\W\d_]+")
_QUOTED = re.compile(r'"((?:[^"\\]|\\.)*)"', re.DOTALL)
_UNESCAPE = re.compile(r"\\(.)", re.DOTALL)


# =========================
# Directive parsing
# =========================
def _split_directive(directive: str) -> Tuple[str, str]:
    head, sep, body = directive.partition(":")
    if not sep:
        raise HolidayFormatError(
            f'invalid holiday ({directive!r}): format must be: "country: holiday name"'
        )
    return head, body


def get_countries(directive: str) -> List[str]:
    """Country codes listed before the first ':' (runs of letters, order and duplicates kept)."""
    head, _ = _split_directive(directive)
    return _LETTERS.findall(head)


def _iter_country_names(body: str) -> Iterator[Tuple[str, str]]:
    # States: expect a country, expect ':', expect a quoted string.
    pos = 0
    n = len(body)
    paired = False
    while True:
        while pos < n and body[pos].isspace():
            pos += 1
        if pos == n:
            return

        m = _LETTERS.match(body, pos)
        if m is None:
            if not paired:
                return
            raise HolidayFormatError(f"expected a country at column {pos + 1} of {body!r}")
        country = m.group(0)
        pos = m.end()

        while pos < n and body[pos].isspace():
            pos += 1
        if pos == n or body[pos] != ":":
            if not paired:
                return
            raise HolidayFormatError(f"expected ':' after {country!r} in {body!r}")
        pos += 1

        while pos < n and body[pos].isspace():
            pos += 1
        m = _QUOTED.match(body, pos)
        if m is None:
            raise HolidayFormatError(f"expected a quoted holiday name for {country!r} in {body!r}")
        pos = m.end()
        paired = True

        yield country, _UNESCAPE.sub(r"\1", m.group(1))


def parse_country_names(body: str) -> Optional[List[Tuple[str, str]]]:
    """
    Tokenize the per-country form of a directive body.

    Returns
    -------
    Optional[List[Tuple[str, str]]]
        The ordered (country, name) pairs, or None when the body is a plain uniform name.

    Raises
    ------
    HolidayFormatError
        When the body starts out in the per-country form and then breaks off.
    """
    pairs = list(_iter_country_names(body))
    return pairs or None


def get_country_holiday(directive: str, country: str) -> str:
    """
    Return the holiday name the given country observes.

    Single-country directives always return their body. Multi-country directives look
    for a country:"name" pair and fall back to the whole body when there is none, or
    when the pairs are malformed.
    """
    head, body = _split_directive(directive)
    if len(_LETTERS.findall(head)) == 1:
        return body.strip()

    try:
        for name_country, name in _iter_country_names(body):
            if name_country == country:
                return name
    except HolidayFormatError as e:
        logger.warning("malformed per-country holiday %r, using the common name: %s", directive, e)

    return body.strip()


# =========================
# Holiday table
# =========================
@dataclass(frozen=True)
class HolidayEntry:
    day: date
    directive: str
    countries: Tuple[str, ...] = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "countries", tuple(get_countries(self.directive)))

    def observed_by(self, country: str) -> bool:
        return country in self.countries

    def name_for(self, country: str) -> str:
        return get_country_holiday(self.directive, country)


class HolidayTable(Mapping[date, HolidayEntry]):
    """
    Immutable mapping of calendar dates to holiday entries.

    Usage:
        table = HolidayTable.from_config({"2018-07-04": "us: Independence Day"})

        table[date(2018, 7, 4)].name_for("us")      # "Independence Day"
        table.lookup(date(2018, 7, 4), "ca")        # None
        table.observed_dates("us")                  # [date(2018, 7, 4)]
    """

    def __init__(self, entries: Optional[Mapping[date, HolidayEntry]] = None):
        self._entries: Dict[date, HolidayEntry] = dict(entries or {})

    @classmethod
    def from_config(cls, holidays: Optional[Mapping[Any, Any]] = None) -> "HolidayTable":
        """
        Build a table from a mapping of date strings to directive strings.

        Entries with an invalid date or directive are dropped with a warning.
        When no mapping is given the built-in DEFAULT_HOLIDAYS are used.
        """
        if holidays is None:
            holidays = DEFAULT_HOLIDAYS

        entries: Dict[date, HolidayEntry] = {}
        for raw_date, directive in holidays.items():
            try:
                if isinstance(raw_date, date):
                    day = raw_date
                else:
                    day = parse_date(str(raw_date))
            except ValueError as e:
                logger.warning("unable to parse holiday date %r (%r): %s", raw_date, directive, e)
                continue

            if not isinstance(directive, str):
                logger.warning("skipping holiday %s: directive %r is not a string", day, directive)
                continue

            try:
                entries[day] = HolidayEntry(day, directive)
            except HolidayFormatError as e:
                logger.warning("skipping holiday %s: %s", day, e)
                continue

        logger.debug("loaded %d holidays", len(entries))
        return cls(entries)

    def __getitem__(self, day: date) -> HolidayEntry:
        return self._entries[day]

    def __iter__(self) -> Iterator[date]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"HolidayTable({len(self)} holidays)"

    def lookup(self, day: date, country: str) -> Optional[str]:
        """Holiday name observed by `country` on `day`, or None."""
        entry = self._entries.get(day)
        if entry is None or not entry.observed_by(country):
            return None
        return entry.name_for(country)

    def observed_dates(self, country: str, start: Optional[date] = None,
                       end: Optional[date] = None) -> List[date]:
        return [
            d for d in self
            if self._entries[d].observed_by(country)
            and (start is None or d >= start)
            and (end is None or d <= end)
        ]
