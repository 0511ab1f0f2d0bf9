import re
import datetime as dt
from typing import Union

DateLike = Union[dt.date, dt.datetime, str]


def parse_date(s: str) -> dt.date:
    """
    Strict parsing of scrum date strings.

    Rules:
        1. Only accept strings with exactly 3 numeric components (whatever the separators are).
        2. The year must be the first component and the only 4-digit one, so the format is always Y-M-D.
        3. Reject all other formats (e.g. no-separator "20180101" or "01-02-2018") as ambiguous by design.

    Parameters
    ----------
    s: str
        The date string to parse, e.g. "2018-01-01" or "2018/01/01".

    Returns
    -------
    dt.date
        The parsed date.
    """
    s = s.strip()
    if not s:
        raise ValueError("Empty date string.")

    if re.fullmatch(r"\d{8}", s):
        raise ValueError(
            f"Ambiguous date string without separators: {s!r}. "
            "Please use a separator and a 4-digit year (e.g. '2018-01-31')."
        )

    parts = re.findall(r"\d+", s)
    if len(parts) != 3 or re.search(r"[^\d\-/. ]", s):
        raise ValueError(
            f"Invalid date string: {s!r}. Expected exactly 3 numeric components "
            "(e.g. '2018-01-31')."
        )

    a, b, c = parts
    if len(a) != 4 or len(b) > 2 or len(c) > 2:
        raise ValueError(
            f"Ambiguous date string: {s!r}. "
            "The 4-digit year must come first (YYYY-MM-DD)."
        )

    y, m, d = int(a), int(b), int(c)
    try:
        return dt.date(y, m, d)
    except ValueError as e:
        raise ValueError(f"Invalid calendar date parsed from {s!r}: (y={y}, m={m}, d={d}).") from e


def to_date(x: DateLike) -> dt.date:
    """Convert a date, datetime or date string to a plain dt.date (time part ignored)."""
    if isinstance(x, dt.datetime):
        return x.date()
    if isinstance(x, dt.date):
        return x
    if isinstance(x, str):
        return parse_date(x)
    raise ValueError(f"Unsupported date type: {type(x)}")


def today(utc: bool = False) -> dt.date:
    """
    Today's date from the caller's point of view.

    Holiday tables are keyed by naive dates, so the same interpretation (UTC or local)
    must be used for every lookup made during one invocation.
    """
    if utc:
        return dt.datetime.now(dt.timezone.utc).date()
    return dt.date.today()
