"""Listen timestamp parsing and calendar helpers"""
import calendar
import datetime
import re
from typing import Optional, Sequence, Tuple, Union

Timestamp = Union[int, float, str, datetime.datetime]

EPOCH = datetime.datetime.fromtimestamp(0, datetime.UTC)


def parse_timestamp(value: Timestamp) -> datetime.datetime:
    """
    Normalize a listen timestamp to an aware UTC datetime.

    Accepts Unix epoch seconds (as a number or a digit string), ISO-8601
    strings (a trailing 'Z' is accepted, naive values are taken as UTC) and
    datetime objects.

    Raises:
        ValueError: If the value cannot be interpreted as an instant
    """
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        return datetime.datetime.fromtimestamp(int(value), datetime.UTC)
    elif isinstance(value, str):
        text = value.strip()
        if text.lstrip('-').isdigit():
            return datetime.datetime.fromtimestamp(int(text), datetime.UTC)
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}")
    else:
        raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.UTC)
    return parsed.astimezone(datetime.UTC)


def to_epoch(value: Timestamp) -> int:
    """Unix epoch seconds for any accepted timestamp form"""
    return int(parse_timestamp(value).timestamp())


def from_epoch(seconds: int) -> datetime.datetime:
    return datetime.datetime.fromtimestamp(int(seconds), datetime.UTC)


def subtract_months(moment: datetime.datetime, months: int) -> datetime.datetime:
    """Shift back by calendar months, clamping the day to the target month's length"""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def format_date(moment: datetime.datetime) -> str:
    return moment.strftime('%Y-%m-%d')


def format_period(start: datetime.datetime, end: datetime.datetime) -> str:
    """'YYYY-MM-DD to YYYY-MM-DD' for a half-open window, naming its last included day"""
    return f"{format_date(start)} to {format_date(end - datetime.timedelta(seconds=1))}"


def add_months(moment: datetime.datetime, months: int) -> datetime.datetime:
    return subtract_months(moment, -months)


YEAR_FORMAT = re.compile(r'^\d{4}$')
MONTH_FORMAT = re.compile(r'^\d{4}-\d{2}$')
DAY_FORMAT = re.compile(r'^\d{4}-\d{2}-\d{2}$')
RELATIVE_FORMAT = re.compile(r'^(\d+)([dwmy])$')


def is_relative(text: str) -> bool:
    """True for ages such as '90d', '12w', '6m' or '1y'"""
    return bool(RELATIVE_FORMAT.match(text.strip()))


def resolve_relative(text: str, now: datetime.datetime) -> datetime.datetime:
    """
    The instant `text` ago, counted back from `now`.

    Raises:
        ValueError: If `text` is not an age like '90d'
    """
    match = RELATIVE_FORMAT.match(text.strip())
    if not match:
        raise ValueError(f"Invalid relative date: {text!r}")
    amount, unit = int(match.group(1)), match.group(2)
    if unit == 'd':
        return now - datetime.timedelta(days=amount)
    elif unit == 'w':
        return now - datetime.timedelta(weeks=amount)
    elif unit == 'm':
        return subtract_months(now, amount)
    return subtract_months(now, amount * 12)


def parse_date_string(text: str) -> Tuple[datetime.datetime, str]:
    """
    Parse 'yyyy', 'yyyy-mm' or 'yyyy-mm-dd' as a UTC midnight.

    Returns:
        The start instant and its granularity: 'year', 'month' or 'day'

    Raises:
        ValueError: If the text matches none of the formats
    """
    text = text.strip()
    if YEAR_FORMAT.match(text):
        return datetime.datetime.strptime(text, '%Y').replace(tzinfo=datetime.UTC), 'year'
    if MONTH_FORMAT.match(text):
        return datetime.datetime.strptime(text, '%Y-%m').replace(tzinfo=datetime.UTC), 'month'
    if DAY_FORMAT.match(text):
        return datetime.datetime.strptime(text, '%Y-%m-%d').replace(tzinfo=datetime.UTC), 'day'
    raise ValueError(f"Invalid date {text!r}; expected yyyy, yyyy-mm, yyyy-mm-dd or an age like 30d")


def _period_bound(text: str, now: datetime.datetime) -> datetime.datetime:
    if is_relative(text):
        return resolve_relative(text, now)
    return parse_date_string(text)[0]


def parse_period(values: Sequence[str],
                 now: Optional[datetime.datetime] = None) -> Tuple[datetime.datetime, datetime.datetime]:
    """
    Resolve one or two date strings into a half-open [start, end) window.

    A single date covers its whole year, month or day; a single age such as
    '30d' runs from that long ago up to `now`. Two values give start and end.

    Raises:
        ValueError: For a bad date, an empty window or more than two values
    """
    now = now or datetime.datetime.now(datetime.UTC)
    if len(values) == 1:
        text = values[0]
        if is_relative(text):
            start, end = resolve_relative(text, now), now
        else:
            start, granularity = parse_date_string(text)
            if granularity == 'year':
                end = start.replace(year=start.year + 1)
            elif granularity == 'month':
                end = add_months(start, 1)
            else:
                end = start + datetime.timedelta(days=1)
    elif len(values) == 2:
        start, end = _period_bound(values[0], now), _period_bound(values[1], now)
    else:
        raise ValueError("Expected one or two date arguments")

    if start >= end:
        raise ValueError(f"Period start {start:%Y-%m-%d} must be before its end {end:%Y-%m-%d}")
    return start, end
