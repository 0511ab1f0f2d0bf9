"""
Keyword highlighting for scrum output.

A Highlighter wraps a binary sink. Bytes written to it are buffered until a full line
is available; each line is split into words, every word is checked against the
configured TokenColor rules, and matching words are wrapped in ANSI styles before the
line is forwarded. Call flush() (or use it as a context manager) once the last write
is done, otherwise a trailing line without '\n' is never forwarded.

Highlight rules come from configuration as key/value pairs:

    blocked: "red bold"        # exact, case-insensitive word match
    fail~: "yellow"            # case-insensitive substring match
    colour~1: "cyan underline" # Damerau-Levenshtein distance <= 1
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, Iterable, List, Mapping, Optional, Tuple

import click
from rapidfuzz.distance import DamerauLevenshtein

from .errors import HighlightConfigError

logger = logging.getLogger(__name__)


# =========================
# Styles
# =========================
_COLORS = ("black", "red", "green", "yellow", "blue", "magenta", "cyan", "white")


def _build_styles() -> Dict[str, Dict[str, Any]]:
    # Bright variants are the default, "-low" selects the normal intensity.
    styles: Dict[str, Dict[str, Any]] = {}
    for c in _COLORS:
        styles[c] = {"fg": f"bright_{c}"}
        styles[f"{c}-low"] = {"fg": c}
        styles[f"fg-{c}"] = {"fg": f"bright_{c}"}
        styles[f"fg-{c}-low"] = {"fg": c}
        styles[f"bg-{c}"] = {"bg": f"bright_{c}"}
        styles[f"bg-{c}-low"] = {"bg": c}

    styles.update({
        "bold": {"bold": True},
        "faint": {"dim": True},
        "italic": {"italic": True},
        "underline": {"underline": True},
        "blink": {"blink": True},
        "reverse": {"reverse": True},
        "strikethrough": {"strikethrough": True},
    })
    return styles


STYLES = _build_styles()


# =========================
# Rules
# =========================
@dataclass(frozen=True)
class TokenColor:
    """
    One highlighting rule.

    Attributes
    ----------
    token: str
        The keyword searched for in the stream.
    submatch: bool
        Case-insensitive substring match instead of a whole-word match.
    distance: int
        Damerau-Levenshtein distance for fuzzy matching, 0 means exact (case-insensitive).
    styles: Tuple[str, ...]
        Style names from STYLES applied to matching words.
    """
    token: str
    submatch: bool = False
    distance: int = 0
    styles: Tuple[str, ...] = ()

    def matches(self, word: str) -> bool:
        w = word.lower()
        t = self.token.lower()
        if self.submatch:
            return t in w
        if self.distance == 0:
            return w == t
        return DamerauLevenshtein.distance(w, t, score_cutoff=self.distance) <= self.distance

    def render(self, word: str) -> str:
        kwargs: Dict[str, Any] = {}
        for name in self.styles:
            kwargs.update(STYLES[name])
        if not kwargs:
            return word
        return click.style(word, **kwargs)


def parse_token_key(key: str) -> Tuple[str, bool, int]:
    """
    Split a rule key into (token, submatch, distance).

    "name" is an exact match, "name~" a substring match and "name~N" a fuzzy match with
    distance N. A suffix after '~' that is not a number is a configuration error.
    """
    token, sep, suffix = key.rpartition("~")
    if not sep or not token:
        return key, False, 0
    if suffix == "":
        return token, True, 0
    if not suffix.isdecimal():
        raise HighlightConfigError(f"unable to parse distance {suffix!r} in highlight key {key!r}")
    return token, False, int(suffix)


def parse_styles(value: str, key: str = "") -> Tuple[str, ...]:
    """Split a space-separated style string, dropping unknown names with a warning."""
    styles: List[str] = []
    for name in value.split():
        name = name.lower()
        if name in STYLES:
            styles.append(name)
        else:
            logger.warning("invalid color value %r in highlight.%s value", name, key)
    return tuple(styles)


def parse_token_colors(rules: Optional[Mapping[str, Any]]) -> List[TokenColor]:
    """
    Build TokenColor rules from a mapping of rule keys to style strings, keeping mapping order.

    Rules whose value is not a string are skipped with a warning; malformed distances raise
    HighlightConfigError.
    """
    out: List[TokenColor] = []
    for key, value in (rules or {}).items():
        key = str(key)
        token, submatch, distance = parse_token_key(key)
        if not isinstance(value, str):
            logger.warning("skipping highlight.%s, input is not a string: %r", key, value)
            continue
        out.append(TokenColor(token=token, submatch=submatch, distance=distance,
                              styles=parse_styles(value, key)))
    return out


def parse_rule_options(options: Iterable[str]) -> Dict[str, str]:
    """Turn command-line KEY=STYLE strings into a rule mapping."""
    rules: Dict[str, str] = {}
    for opt in options:
        key, sep, value = opt.partition("=")
        if not sep or not key:
            raise HighlightConfigError(f"invalid highlight definition {opt!r}, expected KEY=STYLE")
        rules[key] = value
    return rules


# =========================
# Stream filter
# =========================
class Highlighter:
    """
    Line-buffered stream filter rewriting matched words with ANSI styles.

    Writers are expected to take turns: the lock keeps the buffer consistent, but lines
    from concurrent writers may interleave.

    Usage:
        with Highlighter(sys.stdout.buffer, rules) as h:
            h.write(b"this is blocked text\\n")
    """

    def __init__(self, sink: BinaryIO, rules: Iterable[TokenColor]):
        self._sink = sink
        self._rules: Tuple[TokenColor, ...] = tuple(rules)
        self._buf = bytearray()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def rules(self) -> Tuple[TokenColor, ...]:
        return self._rules

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        """
        Buffer `data` and forward every complete line.

        Returns the number of bytes written to the sink during this call, which differs
        from len(data) whenever highlighting adds escape codes or a partial line is held back.
        """
        with self._lock:
            if self._closed:
                raise ValueError("write to closed highlighter")
            self._buf.extend(data)
            end = self._buf.rfind(b"\n")
            if end < 0:
                return 0
            complete = bytes(self._buf[:end + 1])
            del self._buf[:end + 1]

            written = 0
            for line in complete.split(b"\n")[:-1]:
                written += self._emit(line + b"\n")
            return written

    def flush(self) -> int:
        """Forward whatever is left in the buffer, including a final line without '\\n'."""
        with self._lock:
            written = 0
            if self._buf:
                rest = bytes(self._buf)
                self._buf.clear()
                written = self._emit(rest)
            if hasattr(self._sink, "flush"):
                self._sink.flush()
            return written

    def close(self) -> None:
        if self._closed:
            return
        self.flush()
        self._closed = True

    def __enter__(self) -> "Highlighter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---------- internal
    def highlight_line(self, line: str) -> str:
        replacements: Dict[str, str] = {}
        for word in line.split():
            if word in replacements:
                continue
            for rule in self._rules:
                if rule.matches(word):
                    replacements[word] = rule.render(word)
                    break

        if not replacements:
            return line

        # Longest first so a short match never splits a longer matched word.
        keys = sorted(replacements, key=len, reverse=True)
        pattern = re.compile("|".join(re.escape(k) for k in keys))
        return pattern.sub(lambda m: replacements[m.group(0)], line)

    def _emit(self, raw: bytes) -> int:
        text = raw.decode("utf-8", errors="surrogateescape")
        out = self.highlight_line(text).encode("utf-8", errors="surrogateescape")
        self._sink.write(out)
        return len(out)
