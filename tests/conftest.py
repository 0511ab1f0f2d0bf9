from __future__ import annotations

import logging
from datetime import date

import pytest

from scrum import HolidayTable


@pytest.fixture
def holidays() -> HolidayTable:
    # Only New Year's Day, observed by the US alone.
    return HolidayTable.from_config({"2018-01-01": "us: New Year's Day"})


@pytest.fixture(scope="session")
def default_holidays() -> HolidayTable:
    return HolidayTable.from_config()


@pytest.fixture(autouse=True)
def _reset_scrum_logger():
    # The CLI installs a handler bound to the runner's stderr; drop it after every test.
    yield
    logger = logging.getLogger("scrum")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)


@pytest.fixture(scope="session")
def friday() -> date:
    return date(2017, 12, 29)
