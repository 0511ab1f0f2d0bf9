"""
Pipe output through a pager, the way man(1) does.

The pager comes from $PAGER when set, otherwise the first of less(1) or more(1)
found on $PATH.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from typing import List, Mapping, Optional, Tuple

from .errors import PagerError

logger = logging.getLogger(__name__)

PAGER_ENV_VARIABLES = ("PAGER",)
PAGER_COMMANDS = ("less", "more")
LESS_ARGS = ["-X", "-F", "-R", "--buffers=65535"]


def find_pager(environ: Optional[Mapping[str, str]] = None) -> Tuple[str, List[str]]:
    """Return (executable, args) for the pager to run."""
    env = os.environ if environ is None else environ
    for var in PAGER_ENV_VARIABLES:
        value = env.get(var, "").strip()
        if value:
            argv = shlex.split(value)
            return argv[0], argv[1:]

    for name in PAGER_COMMANDS:
        path = shutil.which(name, path=env.get("PATH"))
        if path is None:
            continue
        if os.path.basename(path) == "less":
            return path, list(LESS_ARGS)
        return path, []

    raise PagerError(f"no pager found (set $PAGER or install one of: {', '.join(PAGER_COMMANDS)})")


class Pager:
    """
    A running pager process. Write bytes to `stdin`, then call wait().

    Usage:
        with Pager() as p:
            p.stdin.write(b"...")
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        executable, args = find_pager(environ)
        env = dict(os.environ if environ is None else environ)
        if os.path.basename(executable) == "less":
            env["LESSSECURE"] = "1"

        logger.debug("starting pager %s %s", executable, " ".join(args))
        try:
            self._proc = subprocess.Popen([executable, *args], stdin=subprocess.PIPE, env=env)
        except OSError as e:
            raise PagerError(f"unable to start pager {executable!r}: {e}") from e
        self.stdin = self._proc.stdin

    def wait(self) -> int:
        try:
            self.stdin.close()
        except BrokenPipeError:
            # The user quit the pager before reading everything.
            pass
        return self._proc.wait()

    def __enter__(self) -> "Pager":
        return self

    def __exit__(self, *exc) -> None:
        self.wait()
