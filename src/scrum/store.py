"""
Local scrum store.

Scrums are plain text files laid out by date and username:

    <root>/scrum/2018/01/02/alice
    <root>/scrum/2018/01/02/bob
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import List, Union

from .errors import ScrumExistsError, ScrumNotFoundError, StoreError

logger = logging.getLogger(__name__)

SCRUM_DATE_LAYOUT = "%Y/%m/%d"

# Directory entries that are never usernames.
IGNORED_NAMES = frozenset({"all", "all1999.html", "rollup"})


@dataclass(frozen=True)
class ScrumEntry:
    user: str
    day: date
    mtime: datetime
    body: str

    @property
    def size(self) -> int:
        return len(self.body.encode("utf-8"))


class ScrumStore:
    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser()

    def __repr__(self) -> str:
        return f"ScrumStore({str(self.root)!r})"

    def day_dir(self, day: date) -> Path:
        return self.root / "scrum" / day.strftime(SCRUM_DATE_LAYOUT)

    def path_for(self, day: date, user: str) -> Path:
        if not user or "/" in user or user.startswith("."):
            raise StoreError(f"invalid username: {user!r}")
        return self.day_dir(day) / user

    def exists(self, day: date, user: str) -> bool:
        return self.path_for(day, user).is_file()

    def get(self, day: date, user: str) -> ScrumEntry:
        path = self.path_for(day, user)
        try:
            body = path.read_text(encoding="utf-8")
            mtime = datetime.fromtimestamp(path.stat().st_mtime).astimezone()
        except FileNotFoundError as e:
            raise ScrumNotFoundError(f"no scrum for {user!r} on {day.isoformat()}") from e
        except OSError as e:
            raise StoreError(f"unable to read scrum {path}: {e}") from e
        return ScrumEntry(user=user, day=day, mtime=mtime, body=body)

    def put(self, day: date, user: str, body: str, force: bool = False) -> Path:
        """Write a scrum, refusing to replace an existing one unless `force` is set."""
        path = self.path_for(day, user)
        if path.exists():
            if not force:
                raise ScrumExistsError(f"scrum already exists: {path}")
            logger.debug("replacing scrum %s", path)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(body, encoding="utf-8")
        except OSError as e:
            raise StoreError(f"unable to write scrum {path}: {e}") from e

        logger.debug("wrote scrum %s (%d bytes)", path, len(body))
        return path

    def list_users(self, day: date) -> List[str]:
        d = self.day_dir(day)
        if not d.is_dir():
            return []
        return sorted(
            p.name for p in d.iterdir()
            if p.is_file() and not p.name.startswith(".") and p.name not in IGNORED_NAMES
        )

    def entries(self, day: date) -> List[ScrumEntry]:
        return [self.get(day, user) for user in self.list_users(day)]
