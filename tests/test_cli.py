# End-to-end tests of the scrum command through click's CliRunner.

from __future__ import annotations

import shutil
import stat
from datetime import date
from pathlib import Path
from typing import List

import click
import pytest
from click.testing import CliRunner, Result

from scrum import ScrumStore, cli
from scrum.cli import main

CONFIG = """\
general:
  use-pager: false
scrum:
  username: alice
store:
  root: {root}
"""


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    return tmp_path / "store"


@pytest.fixture
def config_path(tmp_path: Path, store_root: Path) -> Path:
    path = tmp_path / "scrum.yaml"
    path.write_text(CONFIG.format(root=store_root))
    return path


@pytest.fixture
def run(config_path: Path):
    runner = CliRunner()

    def _run(*args: str, input=None, color: bool = False, env=None) -> Result:
        base: List[str] = ["--config", str(config_path), "-l", "error", "-F", "human"]
        base.append("--use-color" if color else "--no-color")
        return runner.invoke(main, [*base, *args], input=input, env=env)

    return _run


def test_version(run) -> None:
    result = run("version")
    assert result.exit_code == 0
    assert "Version: 0.3.0" in result.output


# ============================================================
# set / get
# ============================================================
def test_set_then_get(run, tmp_path: Path, store_root: Path) -> None:
    notes = tmp_path / "today.md"
    notes.write_text("- fixed the build\n- blocked on review\n")

    result = run("set", "-D", "2018-01-02", "-i", str(notes))
    assert result.exit_code == 0, result.output
    assert ScrumStore(store_root).get(date(2018, 1, 2), "alice").body == notes.read_text()

    result = run("get", "-D", "2018-01-02")
    assert result.exit_code == 0, result.output
    assert "- blocked on review" in result.output


def test_set_from_stdin(run) -> None:
    result = run("set", "-D", "2018-01-02", "-u", "bob", "-i", "-", input="from stdin\n")
    assert result.exit_code == 0, result.output
    assert "from stdin" in run("get", "-D", "2018-01-02", "-u", "bob").output


def test_set_refuses_existing_scrum(run, tmp_path: Path, store_root: Path) -> None:
    notes = tmp_path / "today.md"
    notes.write_text("first\n")
    assert run("set", "-D", "2018-01-02", "-i", str(notes)).exit_code == 0

    notes.write_text("second\n")
    result = run("set", "-D", "2018-01-02", "-i", str(notes))
    assert result.exit_code != 0
    assert "already exists" in result.output
    assert ScrumStore(store_root).get(date(2018, 1, 2), "alice").body == "first\n"

    result = run("set", "-D", "2018-01-02", "-i", str(notes), "-f")
    assert result.exit_code == 0
    assert ScrumStore(store_root).get(date(2018, 1, 2), "alice").body == "second\n"


def test_set_several_days_skips_holidays(run, tmp_path: Path, store_root: Path) -> None:
    notes = tmp_path / "today.md"
    notes.write_text("same as ever\n")
    result = run("set", "-D", "2017-12-29", "-d", "2", "-i", str(notes))
    assert result.exit_code == 0, result.output

    store = ScrumStore(store_root)
    assert store.exists(date(2017, 12, 29), "alice")
    assert not store.exists(date(2018, 1, 1), "alice")
    assert store.exists(date(2018, 1, 2), "alice")


def test_set_several_days_reports_skipped(run, tmp_path: Path, store_root: Path) -> None:
    notes = tmp_path / "today.md"
    notes.write_text("old\n")
    assert run("set", "-D", "2018-01-03", "-i", str(notes)).exit_code == 0

    notes.write_text("new\n")
    result = run("set", "-D", "2018-01-02", "-d", "3", "-i", str(notes))
    assert result.exit_code != 0

    store = ScrumStore(store_root)
    assert store.get(date(2018, 1, 2), "alice").body == "new\n"
    assert store.get(date(2018, 1, 3), "alice").body == "old\n"
    assert store.get(date(2018, 1, 4), "alice").body == "new\n"


def test_set_sick_leave(run, store_root: Path) -> None:
    result = run("set", "-D", "2017-12-29", "-s", "2")
    assert result.exit_code == 0, result.output

    store = ScrumStore(store_root)
    assert store.get(date(2017, 12, 29), "alice").body == "Sick leave until 2018/01/02\n"
    assert store.get(date(2018, 1, 2), "alice").body == "Sick leave until 2018/01/02\n"


def test_set_vacation_for_another_country(run, store_root: Path) -> None:
    result = run("-C", "uk", "set", "-D", "2018-12-24", "-v", "2", "-u", "nigel")
    assert result.exit_code == 0, result.output
    body = ScrumStore(store_root).get(date(2018, 12, 27), "nigel").body
    assert body == "Vacation until 2018/12/27\n"


def test_set_conflicting_options(run) -> None:
    assert run("set", "-s", "1", "-v", "1").exit_code == 2
    assert run("set", "-D", "2018-01-02").exit_code == 2


def test_get_missing_scrum(run) -> None:
    result = run("get", "-D", "2018-01-02", "-u", "nobody")
    assert result.exit_code == 1
    assert "no scrum" in result.output


def test_get_bad_date(run) -> None:
    result = run("get", "-D", "01/02/2018")
    assert result.exit_code == 2


def test_get_tomorrow_and_yesterday_conflict(run) -> None:
    assert run("get", "-t", "-y").exit_code == 2


def test_get_tomorrow_skips_holiday(run, tmp_path: Path) -> None:
    notes = tmp_path / "today.md"
    notes.write_text("back at it\n")
    assert run("set", "-D", "2018-01-02", "-i", str(notes)).exit_code == 0

    result = run("get", "-D", "2017-12-29", "-t")
    assert result.exit_code == 0, result.output
    assert "back at it" in result.output


def test_get_all_highlighted(run, store_root: Path) -> None:
    store = ScrumStore(store_root)
    store.put(date(2018, 1, 2), "alice", "blocked on review\n")
    store.put(date(2018, 1, 2), "bob", "all good\n")

    result = run("get", "-D", "2018-01-02", "-a", "-H", "blocked=red", color=True)
    assert result.exit_code == 0, result.output
    assert click.style("blocked", fg="bright_red") + " on review" in result.output
    assert "all good" in result.output
    assert result.output.index("alice") < result.output.index("bob")


def test_get_all_plain(run, store_root: Path) -> None:
    ScrumStore(store_root).put(date(2018, 1, 2), "alice", "blocked on review\n")
    result = run("get", "-D", "2018-01-02", "-a", "-H", "blocked=red")
    assert result.exit_code == 0, result.output
    assert "\x1b[" not in result.output
    assert "user  | alice" in result.output


class _ClosedPipe:
    def write(self, data: bytes) -> int:
        raise BrokenPipeError

    def close(self) -> None:
        pass


class _QuitPager:
    waited = False

    def __init__(self, environ=None) -> None:
        self.stdin = _ClosedPipe()

    def __enter__(self) -> "_QuitPager":
        return self

    def __exit__(self, *exc) -> None:
        type(self).waited = True


def test_get_pager_quit_early(run, store_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    ScrumStore(store_root).put(date(2018, 1, 2), "alice", "long scrum\n")
    monkeypatch.setattr(cli, "Pager", _QuitPager)

    result = run("get", "-D", "2018-01-02", "-P")
    assert result.exit_code == 0, result.output
    assert result.exception is None
    assert _QuitPager.waited


# ============================================================
# list
# ============================================================
def test_list(run, store_root: Path) -> None:
    store = ScrumStore(store_root)
    for user in ("bob", "alice", "rollup"):
        store.put(date(2018, 1, 2), user, "x\n")

    result = run("list", "-D", "2018-01-02")
    assert result.exit_code == 0
    assert result.output.splitlines()[-2:] == ["alice", "bob"]

    result = run("list", "-D", "2018-01-02", "-l")
    assert result.exit_code == 0
    assert "2 scrums" in result.output


# ============================================================
# edit / rollup
# ============================================================
def _editor(directory: Path, script: str) -> dict:
    path = directory / "fake-editor"
    path.write_text("#!/bin/sh\n" + script)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return {"VISUAL": str(path), "EDITOR": str(path)}


needs_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX shell")


@needs_sh
def test_edit_existing_scrum(run, tmp_path: Path, store_root: Path) -> None:
    store = ScrumStore(store_root)
    store.put(date(2018, 1, 2), "alice", "first\n")
    env = _editor(tmp_path, 'printf "edited\\n" >> "$1"\n')

    result = run("edit", "-D", "2018-01-02", env=env)
    assert result.exit_code == 0, result.output
    assert store.get(date(2018, 1, 2), "alice").body == "first\nedited\n"


@needs_sh
def test_edit_new_scrum_for_tomorrow(run, tmp_path: Path, store_root: Path) -> None:
    env = _editor(tmp_path, 'printf "new\\n" >> "$1"\n')

    result = run("edit", "-D", "2017-12-29", "-t", env=env)
    assert result.exit_code == 0, result.output
    assert ScrumStore(store_root).get(date(2018, 1, 2), "alice").body == "new\n"


@needs_sh
def test_edit_unchanged_or_empty(run, tmp_path: Path, store_root: Path) -> None:
    store = ScrumStore(store_root)
    store.put(date(2018, 1, 2), "alice", "first\n")
    env = _editor(tmp_path, "exit 0\n")

    assert run("edit", "-D", "2018-01-02", env=env).exit_code == 0
    assert store.get(date(2018, 1, 2), "alice").body == "first\n"

    result = run("edit", "-D", "2018-01-03", env=env)
    assert result.exit_code == 1
    assert "empty scrum" in result.output
    assert not store.exists(date(2018, 1, 3), "alice")


def test_edit_conflicting_options(run) -> None:
    assert run("edit", "-t", "-y").exit_code == 2


def test_rollup_prints_todays_scrum(run, store_root: Path) -> None:
    ScrumStore(store_root).put(date.today(), "alice", "- shipped it\n")
    result = run("rollup")
    assert result.exit_code == 0, result.output
    assert "- shipped it\n" in result.output
    assert "user  |" not in result.output


def test_rollup_without_scrum(run) -> None:
    result = run("rollup", "-u", "nobody")
    assert result.exit_code == 1
    assert "no scrum" in result.output


# ============================================================
# weekday / holidays / cal
# ============================================================
def test_weekday_names_skipped_holidays(run) -> None:
    result = run("weekday", "-D", "2017-12-29")
    assert result.exit_code == 0
    assert "2018-01-02" in result.output
    assert "skipped 2018-01-01: New Year's Day" in result.output


def test_weekday_per_country(run) -> None:
    assert "2018-02-20" in run("-C", "ca", "weekday", "-D", "2018-02-16").output
    assert "2018-02-19" in run("-C", "uk", "weekday", "-D", "2018-02-16").output
    assert "2018-02-16" in run("-C", "us", "weekday", "-D", "2018-02-20", "-n", "-1").output


def test_holidays(run) -> None:
    result = run("-C", "ca", "holidays", "--year", "2018")
    assert result.exit_code == 0
    assert "2018-02-19  Mon  Family Day (AB, MB, ON, PE, SK)" in result.output
    assert "Independence Day" not in result.output


def test_cal_month(run) -> None:
    result = run("cal", "2018", "1")
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0].strip() == "January 2018"
    assert lines[2].startswith("( 1)  2   3   4   5 [ 6][ 7]")
    assert "Jan 01  New Year's Day" in lines
    assert "Jan 15  Martin Luther King Day" in lines


def test_cal_year(run) -> None:
    result = run("cal", "2018")
    assert result.exit_code == 0
    assert "January" in result.output
    assert "December" in result.output
    assert "Dec 25  Christmas Day" in result.output


def test_cal_other_country(run) -> None:
    result = run("-C", "uk", "cal", "2018", "1")
    assert result.exit_code == 0
    assert result.output.splitlines()[2].startswith("( 1)")
    assert "Jan 15" not in result.output


# ============================================================
# highlight
# ============================================================
@pytest.mark.filterwarnings("error::DeprecationWarning")
def test_highlight_stdin(run) -> None:
    result = run("highlight", "-H", "fail~=yellow", input=b"it failed\nok\n")
    assert result.exit_code == 0
    expected = "it " + click.style("failed", fg="bright_yellow") + "\nok\n"
    assert result.stdout_bytes == expected.encode()


def test_highlight_files(run, tmp_path: Path) -> None:
    src = tmp_path / "notes.txt"
    src.write_bytes(b"blocked\nfine")
    result = run("highlight", "-H", "blocked=red", str(src))
    assert result.exit_code == 0
    assert click.style("blocked", fg="bright_red") + "\nfine" in result.output


def test_bad_log_level(config_path: Path) -> None:
    result = CliRunner().invoke(main, ["--config", str(config_path), "-l", "loud", "version"])
    assert result.exit_code == 1
    assert "unsupported log level" in result.output
