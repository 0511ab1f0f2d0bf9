# =========================
# Errors
# =========================
class ScrumError(Exception):
    pass


class HolidayFormatError(ScrumError):
    pass


class CalendarError(ScrumError):
    pass


class HighlightConfigError(ScrumError):
    pass


class ConfigError(ScrumError):
    pass


class PagerError(ScrumError):
    pass


class StoreError(ScrumError):
    pass


class ScrumExistsError(StoreError):
    pass


class ScrumNotFoundError(StoreError):
    pass
