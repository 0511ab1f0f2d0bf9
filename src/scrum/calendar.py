import logging
import numpy as np
import datetime as dt
from dataclasses import dataclass
from typing import List, Literal, Optional

from .errors import CalendarError
from .holiday import HolidayTable
from .utils import DateLike, to_date

logger = logging.getLogger(__name__)

Direction = Literal["forward", "backward"]

# An unbroken run of weekends and holidays never gets close to this.
MAX_SCAN_DAYS = 366


# ---------------------------------------
# |          Weekday resolution         |
# ---------------------------------------

def resolve_weekday(day: DateLike,
                    country: str,
                    holidays: HolidayTable,
                    direction: Direction = "forward") -> dt.date:
    """
    Return the next (or previous) date that is a weekday and not a holiday observed by the country.

    The starting date itself is never returned.

    Parameters
    ----------
    day: DateLike
        The starting date.
    country: str
        Country code whose holidays are skipped, e.g. "us".
    holidays: HolidayTable
        The holiday table built for this invocation.
    direction: str, default "forward"
        "forward" for the next business day, "backward" for the previous one.

    Returns
    -------
    dt.date
        The resolved business day.
    """
    if direction == "forward":
        step = dt.timedelta(days=1)
    elif direction == "backward":
        step = dt.timedelta(days=-1)
    else:
        raise CalendarError(f"Unknown direction: {direction!r}, please choose 'forward' or 'backward'.")

    cur = to_date(day)
    for _ in range(MAX_SCAN_DAYS):
        cur = cur + step
        if cur.weekday() >= 5:
            continue

        entry = holidays.get(cur)
        if entry is None:
            return cur

        if entry.observed_by(country):
            logger.debug("skipping %s: %s (%s)", cur, entry.name_for(country), country)
            continue

        return cur

    raise CalendarError(
        f"No business day found within {MAX_SCAN_DAYS} days {direction} of {to_date(day)} for {country!r}"
    )


def next_weekday(day: DateLike, country: str, holidays: HolidayTable) -> dt.date:
    return resolve_weekday(day, country, holidays, "forward")


def previous_weekday(day: DateLike, country: str, holidays: HolidayTable) -> dt.date:
    return resolve_weekday(day, country, holidays, "backward")


def add_weekdays(day: DateLike, n: int, country: str, holidays: HolidayTable) -> dt.date:
    """Move `n` business days away from `day` (negative goes back, 0 returns `day`)."""
    cur = to_date(day)
    direction: Direction = "forward" if n >= 0 else "backward"
    for _ in range(abs(n)):
        cur = resolve_weekday(cur, country, holidays, direction)
    return cur


def is_business_day(day: DateLike, country: str, holidays: HolidayTable) -> bool:
    d = to_date(day)
    if d.weekday() >= 5:
        return False
    entry = holidays.get(d)
    return entry is None or not entry.observed_by(country)


# ---------------------------------------
# |            Range queries            |
# ---------------------------------------

def business_mask(start: DateLike,
                  end: DateLike,
                  country: str,
                  holidays: HolidayTable) -> np.ndarray:
    """
    Build a boolean mask over the inclusive range [start, end], where True indicates a business day.

    Parameters
    ----------
    start: DateLike
        First date of the range.
    end: DateLike
        Last date of the range (inclusive).
    country: str
        Country code whose holidays are non-business days.
    holidays: HolidayTable
        The holiday table built for this invocation.

    Returns
    -------
    np.ndarray
        A boolean array with one entry per day of the range.
    """
    s, e = to_date(start), to_date(end)
    if e < s:
        raise CalendarError("end < start")

    start64 = np.datetime64(s, "D")
    n_days = (e - s).days + 1
    days = start64 + np.arange(n_days, dtype="int64").astype("timedelta64[D]")

    observed = np.array(holidays.observed_dates(country, s, e), dtype="datetime64[D]")
    return np.is_busday(days, weekmask="1111100", holidays=observed)


def business_days(start: DateLike,
                  end: DateLike,
                  country: str,
                  holidays: HolidayTable) -> List[dt.date]:
    s = to_date(start)
    mask = business_mask(s, end, country, holidays)
    return [s + dt.timedelta(days=int(i)) for i in np.flatnonzero(mask)]


# ---------------------------------------
# |        Country calendar façade      |
# ---------------------------------------

@dataclass(frozen=True)
class BusinessCalendar:
    """
    Business-day rules for one country over one holiday table.

    Usage:
        cal = BusinessCalendar(HolidayTable.from_config(), "us")

        cal.next_business_day(date(2017, 12, 29))      # date(2018, 1, 2)
        cal.prev_business_day(date(2018, 1, 2))        # date(2017, 12, 29)
        cal.business_days(date(2018, 1, 1), date(2018, 1, 7))
    """
    holidays: HolidayTable
    country: str

    @property
    def name(self) -> str:
        return f"holidays:{self.country}"

    def next_business_day(self, day: DateLike) -> dt.date:
        return next_weekday(day, self.country, self.holidays)

    def prev_business_day(self, day: DateLike) -> dt.date:
        return previous_weekday(day, self.country, self.holidays)

    def add_business_days(self, day: DateLike, n: int) -> dt.date:
        return add_weekdays(day, n, self.country, self.holidays)

    def is_business_day(self, day: DateLike) -> bool:
        return is_business_day(day, self.country, self.holidays)

    def business_mask(self, start: DateLike, end: DateLike) -> np.ndarray:
        return business_mask(start, end, self.country, self.holidays)

    def business_days(self, start: DateLike, end: DateLike) -> List[dt.date]:
        return business_days(start, end, self.country, self.holidays)

    def holiday_name(self, day: DateLike) -> Optional[str]:
        return self.holidays.lookup(to_date(day), self.country)
