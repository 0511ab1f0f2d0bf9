"""
scrum command line.

Read and write the daily scrum, with holiday-aware weekday arithmetic and
keyword highlighting of the output.
"""

from __future__ import annotations

import logging
import shutil
import sys
import tempfile
from calendar import monthrange
from contextlib import ExitStack, contextmanager
from datetime import date, timedelta, timezone
from functools import cached_property
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Tuple

import click

from . import __version__
from .calendar import BusinessCalendar
from .config import Settings, load_settings
from .errors import PagerError, ScrumError, ScrumExistsError, ScrumNotFoundError
from .highlighter import Highlighter, TokenColor, parse_rule_options, parse_token_colors
from .holiday import HolidayTable
from .log import setup_logging
from .pager import Pager
from .store import SCRUM_DATE_LAYOUT, ScrumEntry, ScrumStore
from .utils import parse_date, today

logger = logging.getLogger(__name__)

MONTHS = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December'
]

WEEKDAYS = ['Mo', 'Tu', 'We', 'Th', 'Fr', 'Sa', 'Su']

MTIME_FORMAT_TZ = "%Y-%m-%d %H:%M:%S %Z"


class ScrumContext:
    """Per-invocation state shared by every command."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @cached_property
    def holidays(self) -> HolidayTable:
        return HolidayTable.from_config(self.settings.holidays)

    @cached_property
    def calendar(self) -> BusinessCalendar:
        return BusinessCalendar(self.holidays, self.settings.country)

    @cached_property
    def store(self) -> ScrumStore:
        return ScrumStore(self.settings.store_root)

    def rules(self, options: Tuple[str, ...] = ()) -> List[TokenColor]:
        definitions = dict(self.settings.highlight)
        definitions.update(parse_rule_options(options))
        return parse_token_colors(definitions)

    def scrum_date(self, date_str: Optional[str], tomorrow: bool = False, yesterday: bool = False) -> date:
        if tomorrow and yesterday:
            raise click.UsageError("tomorrow and yesterday are conflicting options")
        try:
            day = parse_date(date_str) if date_str else today(self.settings.utc)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="'--date'") from e

        if tomorrow:
            day = self.calendar.next_business_day(day)
        elif yesterday:
            day = self.calendar.prev_business_day(day)
        return day


class ScrumGroup(click.Group):
    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except ScrumError as e:
            raise click.ClickException(str(e)) from e


pass_scrum = click.make_pass_decorator(ScrumContext)

date_option = click.option('-D', '--date', 'date_str', default=None, metavar='YYYY-MM-DD',
                           help='Date for scrum (default: today)')
tomorrow_option = click.option('-t', '--tomorrow', is_flag=True, help='Use the next weekday')
yesterday_option = click.option('-y', '--yesterday', is_flag=True, help='Use the previous weekday')
highlight_option = click.option('-H', '--highlight', 'highlights', multiple=True, metavar='KEY=STYLE',
                                help='Highlight words definition, e.g. "blocked=red bold" or "colour~1=cyan"')


@click.group(cls=ScrumGroup)
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), default=None,
              help='Config file (default: $SCRUM_CONFIG or ~/.config/scrum/scrum.yaml)')
@click.option('-C', '--country', default=None, help='Country holiday schedule (e.g. us, ca, uk)')
@click.option('-l', '--log-level', default=None, help='Log level: debug, info, warn, error, fatal')
@click.option('-F', '--log-format', type=click.Choice(['auto', 'json', 'human'], case_sensitive=False),
              default=None, help='Log format')
@click.option('--use-color/--no-color', default=None, help='Use ANSI colors')
@click.option('-Z', '--utc/--local', default=None, help='Interpret "today" in UTC')
@click.option('--store', 'store_root', type=click.Path(file_okay=False), default=None,
              help='Directory holding the scrum tree')
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], country: Optional[str], log_level: Optional[str],
         log_format: Optional[str], use_color: Optional[bool], utc: Optional[bool], store_root: Optional[str]):
    """
    Post and read the daily scrum.

    Examples:

        # Get my scrum for today
        scrum get

        # Get everyone's scrum for the next weekday
        scrum get -a -t

        # Set my scrum using today.md
        scrum set -i today.md

        # List scrummers for the day
        scrum list

        # Edit tomorrow's scrum in $EDITOR
        scrum edit -t

        # Print my scrum for today, ready to paste
        scrum rollup
    """
    try:
        settings = load_settings(config_path).override(
            country=country,
            log_level=log_level,
            log_format=log_format,
            use_color=use_color,
            utc=utc,
            store_root=store_root,
        )
        setup_logging(settings.log_level, settings.log_format)
    except ScrumError as e:
        raise click.ClickException(str(e)) from e

    ctx.obj = ScrumContext(settings)


# =========================
# get
# =========================
@contextmanager
def _output(obj: ScrumContext, use_pager: bool, rules: List[TokenColor]) -> Iterator[BinaryIO]:
    with ExitStack() as stack:
        sink: BinaryIO = sys.stdout.buffer
        if use_pager:
            try:
                sink = stack.enter_context(Pager()).stdin
            except PagerError as e:
                logger.warning("not using a pager: %s", e)

        if rules and obj.settings.use_color:
            sink = stack.enter_context(Highlighter(sink, rules))

        yield sink


def _entry_header(entry: ScrumEntry, utc: bool, use_color: bool) -> str:
    mtime = entry.mtime
    if utc:
        mtime = mtime.astimezone(timezone.utc)

    def key(s: str) -> str:
        return click.style(s, fg='bright_white', bold=True) if use_color else s

    user = click.style(entry.user, fg='bright_white', underline=True) if use_color else entry.user
    return (
        f"{key('user')}  | {user}\n"
        f"{key('mtime')} | {mtime.strftime(MTIME_FORMAT_TZ)}\n\n"
    )


@main.command('get')
@date_option
@tomorrow_option
@yesterday_option
@click.option('-u', '--user', default=None, help='Get scrum for specified user (default: $USER)')
@click.option('-a', '--all', 'all_users', is_flag=True, help='Get scrum for all users')
@highlight_option
@click.option('-P/-N', '--use-pager/--no-pager', default=None,
              help='Use a pager to read the output (defaults to $PAGER, less(1), or more(1))')
@pass_scrum
def get_cmd(obj: ScrumContext, date_str, tomorrow, yesterday, user, all_users, highlights, use_pager):
    """Get scrum information, either for yourself or teammates."""
    day = obj.scrum_date(date_str, tomorrow, yesterday)
    rules = obj.rules(highlights)
    if use_pager is None:
        use_pager = obj.settings.use_pager

    if all_users:
        entries = obj.store.entries(day)
        if not entries:
            logger.error("no users have scrummed for %s", day.isoformat())
            return
    else:
        username = user or obj.settings.resolve_username()
        entries = [obj.store.get(day, username)]

    width = shutil.get_terminal_size((80, 24)).columns
    separator = ("-" * width + "\n").encode()
    try:
        with _output(obj, use_pager, rules) as out:
            for entry in entries:
                if all_users:
                    out.write(separator)
                    out.write(_entry_header(entry, obj.settings.utc, obj.settings.use_color).encode())
                out.write(entry.body.strip().encode() + b"\n")
    except BrokenPipeError:
        # The reader (usually the pager) went away before the end of the output.
        logger.debug("output closed early")


# =========================
# set
# =========================
@main.command('set')
@date_option
@tomorrow_option
@click.option('-u', '--user', default=None, help='Set scrum for specified user (default: $USER)')
@click.option('-i', '--file', 'input_file', type=click.File('r'), default=None,
              help="File to read scrum from ('-' for stdin)")
@click.option('-d', '--days', 'num_days', type=click.IntRange(min=1), default=1,
              help='Recycle scrum update for N weekdays')
@click.option('-s', '--sick', 'sick_days', type=click.IntRange(min=0), default=0, help='Sick leave for N weekdays')
@click.option('-v', '--vacation', 'vacation_days', type=click.IntRange(min=0), default=0,
              help='Vacation for N weekdays')
@click.option('-f', '--force', is_flag=True, help='Force overwrite of any present scrum')
@pass_scrum
def set_cmd(obj: ScrumContext, date_str, tomorrow, user, input_file, num_days, sick_days, vacation_days, force):
    """Set scrum information, either for yourself or teammates."""
    if sick_days and vacation_days:
        raise click.UsageError("sick and vacation are conflicting options")

    day = obj.scrum_date(date_str, tomorrow=tomorrow)
    username = user or obj.settings.resolve_username()

    if sick_days or vacation_days:
        days_to_scrum = sick_days or vacation_days
        end = obj.calendar.add_business_days(day, days_to_scrum - 1)
        reason = "Sick leave" if sick_days else "Vacation"
        body = f"{reason} until {end.strftime(SCRUM_DATE_LAYOUT)}\n"
    else:
        if input_file is None:
            raise click.UsageError("a scrum file is required (-i FILE)")
        days_to_scrum = num_days
        body = input_file.read()

    found_error = False
    for i in range(days_to_scrum):
        try:
            path = obj.store.put(day, username, body, force=force)
        except ScrumExistsError:
            if days_to_scrum == 1:
                logger.error("scrum exists for %s on %s, not replacing scrum without -f to override",
                             username, day.isoformat())
                raise
            logger.warning("scrum already exists for %s on %s, specify -f to override",
                           username, day.isoformat())
            found_error = True
        else:
            log = logger.info if days_to_scrum > 1 else logger.debug
            log("posted scrum %s", path)

        if i + 1 < days_to_scrum:
            day = obj.calendar.next_business_day(day)

    if found_error:
        raise click.ClickException("some days already had a scrum and were skipped")


# =========================
# list
# =========================
@main.command('list')
@date_option
@tomorrow_option
@yesterday_option
@click.option('-l', '--long', 'long_format', is_flag=True, help='Include size and mtime columns')
@pass_scrum
def list_cmd(obj: ScrumContext, date_str, tomorrow, yesterday, long_format):
    """List usernames who scrummed for a given day."""
    day = obj.scrum_date(date_str, tomorrow, yesterday)

    users = obj.store.list_users(day)
    if not users:
        logger.warning("no users have scrummed for %s", day.isoformat())
        return

    if not long_format:
        for user in users:
            click.echo(user)
        return

    entries = [obj.store.get(day, user) for user in users]
    name_width = max(len("name"), *(len(e.user) for e in entries))
    tz = "UTC" if obj.settings.utc else "local"
    header = f"{'name':<{name_width}}  {'size':>6}  mtime ({tz})"
    click.echo(click.style(header, bold=True) if obj.settings.use_color else header)
    for e in entries:
        mtime = e.mtime.astimezone(timezone.utc) if obj.settings.utc else e.mtime
        click.echo(f"{e.user:<{name_width}}  {e.size:>6}  {mtime.strftime('%Y-%m-%d %H:%M:%S')}")
    click.echo(f"{len(entries)} scrums")


# =========================
# edit / rollup
# =========================
@main.command('edit')
@date_option
@tomorrow_option
@yesterday_option
@click.option('-u', '--user', default=None, help='Edit scrum for specified user (default: $USER)')
@pass_scrum
def edit_cmd(obj: ScrumContext, date_str, tomorrow, yesterday, user):
    """
    Edit a scrum in $EDITOR and store the result.

    The stored scrum (or an empty one) is copied to a temporary file, opened in the
    editor, and written back when it changed.
    """
    day = obj.scrum_date(date_str, tomorrow, yesterday)
    username = user or obj.settings.resolve_username()

    try:
        original = obj.store.get(day, username).body
    except ScrumNotFoundError:
        logger.info("no scrum for %s on %s yet, starting from an empty one", username, day.isoformat())
        original = ""

    with tempfile.TemporaryDirectory(prefix="scrum") as tmp:
        draft = Path(tmp) / f"{username}-{day.isoformat()}.md"
        draft.write_text(original, encoding="utf-8")
        click.edit(filename=str(draft))
        body = draft.read_text(encoding="utf-8")

    if not body.strip():
        raise click.ClickException("empty scrum, nothing stored")
    if body == original:
        logger.info("scrum for %s on %s unchanged", username, day.isoformat())
        return

    path = obj.store.put(day, username, body, force=True)
    logger.debug("posted scrum %s", path)


@main.command('rollup')
@click.option('-u', '--user', default=None, help='Roll up scrum for specified user (default: $USER)')
@pass_scrum
def rollup_cmd(obj: ScrumContext, user):
    """Print today's scrum as posted, ready to paste into chat."""
    day = today(obj.settings.utc)
    username = user or obj.settings.resolve_username()
    click.echo(obj.store.get(day, username).body, nl=False)


# =========================
# weekday / holidays
# =========================
@main.command('weekday')
@date_option
@click.option('-n', '--count', default=1, type=int, show_default=True,
              help='Number of weekdays to move (negative goes back)')
@pass_scrum
def weekday_cmd(obj: ScrumContext, date_str, count):
    """Print the weekday N business days away, naming the holidays skipped."""
    start = obj.scrum_date(date_str)
    result = obj.calendar.add_business_days(start, count)
    click.echo(result.isoformat())

    lo, hi = sorted((start, result))
    for d in obj.holidays.observed_dates(obj.settings.country, lo, hi):
        if d in (start, result):
            continue
        click.echo(f"  skipped {d.isoformat()}: {obj.holidays.lookup(d, obj.settings.country)}")


@main.command('holidays')
@click.option('--year', type=int, default=None, help='Only list holidays for this year')
@pass_scrum
def holidays_cmd(obj: ScrumContext, year):
    """List the holidays observed by the selected country."""
    country = obj.settings.country
    start = date(year, 1, 1) if year else None
    end = date(year, 12, 31) if year else None
    days = obj.holidays.observed_dates(country, start, end)
    if not days:
        logger.warning("no holidays configured for %r", country)
        return
    for d in days:
        click.echo(f"{d.isoformat()}  {d.strftime('%a')}  {obj.holidays.lookup(d, country)}")


# =========================
# cal
# =========================
def _day_cell(calendar: BusinessCalendar, day: date, business: bool) -> str:
    # Each day column is 4 characters wide.
    if business:
        return f' {day.day:2} '
    if calendar.holiday_name(day) is not None:
        return f'({day.day:2})'
    return f'[{day.day:2}]'


def render_month(calendar: BusinessCalendar, year: int, month: int, print_year: bool = False) -> str:
    """
    Render a single month grid.

    Business days are plain, holidays the calendar's country observes are in
    parentheses and the remaining weekend days are in brackets.

    Args:
        calendar: Business calendar to use
        year: Year to render
        month: Month to render (1-12)
        print_year: Whether to include year in title

    Returns:
        String representation of the month
    """
    title = MONTHS[month - 1] + (f' {year}' if print_year else '')
    lines = [f'{title:^28}'.rstrip(), ''.join(f' {d} ' for d in WEEKDAYS).rstrip()]

    first = date(year, month, 1)
    last = date(year, month, monthrange(year, month)[1])
    mask = calendar.business_mask(first, last)

    week = ' ' * (4 * first.weekday())
    for offset, business in enumerate(mask):
        day = first + timedelta(days=offset)
        week += _day_cell(calendar, day, bool(business))
        if day.weekday() == 6:
            lines.append(week)
            week = ''
    if week:
        lines.append(week)

    return '\n'.join(lines)


def holiday_legend(calendar: BusinessCalendar, start: date, end: date) -> List[str]:
    """One "Mon DD  name" line per holiday the calendar's country observes in [start, end]."""
    return [
        f"{d.strftime('%b %d')}  {calendar.holiday_name(d)}"
        for d in calendar.holidays.observed_dates(calendar.country, start, end)
    ]


def concat_months(month_strings: List[str], width: int = 28) -> str:
    """Place month grids side by side, three columns apart."""
    columns = [s.splitlines() for s in month_strings]
    height = max(len(c) for c in columns)
    rows = zip(*(c + [''] * (height - len(c)) for c in columns))
    return '\n'.join('   '.join(part.ljust(width) for part in row).rstrip() for row in rows)


def render_year(calendar: BusinessCalendar, year: int) -> str:
    """Render a full year, three months per row."""
    quarters = [
        concat_months([render_month(calendar, year, q * 3 + m + 1) for m in range(3)])
        for q in range(4)
    ]
    return f'{year:^88}'.rstrip() + '\n' + '\n\n'.join(quarters)


@main.command('cal')
@click.argument('year', type=int, required=False)
@click.argument('month', type=click.IntRange(1, 12), required=False)
@pass_scrum
def cal_cmd(obj: ScrumContext, year, month):
    """
    Display the business-day calendar of the selected country.

    Business days are plain, holidays are shown (like this) and named below the
    grid, weekends are shown [like this].
    """
    if year is None:
        now = today(obj.settings.utc)
        year, month = now.year, now.month

    if month is not None:
        click.echo(render_month(obj.calendar, year, month, print_year=True))
        start, end = date(year, month, 1), date(year, month, monthrange(year, month)[1])
    else:
        click.echo(render_year(obj.calendar, year))
        start, end = date(year, 1, 1), date(year, 12, 31)

    legend = holiday_legend(obj.calendar, start, end)
    if legend:
        click.echo()
        for line in legend:
            click.echo(line)


# =========================
# highlight / version
# =========================
@main.command('highlight')
@click.argument('files', type=click.File('rb'), nargs=-1)
@highlight_option
@pass_scrum
def highlight_cmd(obj: ScrumContext, files, highlights):
    """Highlight configured keywords in FILES (or stdin)."""
    rules = obj.rules(highlights)
    if not rules:
        logger.warning("no highlight rules configured, output is unchanged")

    sources = files or (sys.stdin.buffer,)
    with Highlighter(sys.stdout.buffer, rules) as h:
        for src in sources:
            for chunk in iter(lambda: src.read(64 * 1024), b""):
                h.write(chunk)


@main.command('version')
def version_cmd():
    """Display scrum version."""
    logger.debug("version %s", __version__)
    click.echo(f"Version: {__version__}")


if __name__ == '__main__':
    main()
