"""
scrum

Daily scrum notes stored per user and per day, plus the two pieces of logic the
command line leans on:
  - holiday-aware weekday arithmetic driven by compact holiday directives
    ("ca,us: ca:\"Family Day\" us:\"President's Day\"")
  - a line-buffered stream filter highlighting configured keywords
    (exact, substring, or Damerau-Levenshtein fuzzy matches)

Usage:
    from scrum import BusinessCalendar, HolidayTable

    cal = BusinessCalendar(HolidayTable.from_config(), "us")
    cal.next_business_day(date(2017, 12, 29))   # date(2018, 1, 2)
"""

__version__ = "0.3.0"

from .errors import (  # noqa: E402
    CalendarError,
    ConfigError,
    HighlightConfigError,
    HolidayFormatError,
    PagerError,
    ScrumError,
    ScrumExistsError,
    ScrumNotFoundError,
    StoreError,
)
from .holiday import (  # noqa: E402
    DEFAULT_HOLIDAYS,
    HolidayEntry,
    HolidayTable,
    get_countries,
    get_country_holiday,
    parse_country_names,
)
from .calendar import (  # noqa: E402
    BusinessCalendar,
    add_weekdays,
    business_days,
    business_mask,
    is_business_day,
    next_weekday,
    previous_weekday,
    resolve_weekday,
)
from .highlighter import Highlighter, TokenColor, parse_token_colors, parse_token_key  # noqa: E402
from .store import ScrumEntry, ScrumStore  # noqa: E402
