"""Scrobble source gap detection over calendar-day buckets"""
import datetime
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from scrobble_insights.config import SourceCheckConfig
from scrobble_insights.models.listening import DayBucket, Streaks

logger = logging.getLogger(__name__)

COMMAND_NAME = 'check-sources'


class SkipReport:
    """Outcome of a check that found nothing worth reporting. Not an error."""

    def __repr__(self) -> str:
        return 'SKIP'

    def __bool__(self) -> bool:
        return False


SKIP = SkipReport()


@dataclass(frozen=True)
class SourceCheckResult:
    """A triggered source check: streaks, which of them fired, and the daily counts"""
    user: str
    timezone: str
    as_of: datetime.datetime
    work_hours: Tuple[int, int]
    buckets: Tuple[DayBucket, ...]
    streaks: Streaks
    work_triggered: bool
    other_triggered: bool
    weekend_triggered: bool

    @property
    def body(self) -> str:
        start, end = self.work_hours
        lines = [
            f"Scrobble Check for user: {self.user} (Timezone: {self.timezone})",
            f"Work Hours: Mon-Fri, {start:02d}:00 - {end:02d}:00",
            "",
        ]
        if self.work_triggered:
            lines.append(
                f"Potential Work Scrobbler Failure: No listens during work hours "
                f"for the last {self.streaks.work} working days."
            )
        if self.weekend_triggered:
            lines.append(
                f"Potential Weekend Scrobbler Failure: No listens during weekends "
                f"for the last {self.streaks.weekend} weekend days."
            )
        if self.other_triggered:
            lines.append(
                f"Potential Mobile/Home Scrobbler Failure: No listens during off-hours "
                f"for the last {self.streaks.other} days."
            )
        lines.append("")

        work_header = f"Work Hours ({start}-{end})"
        lines.append(f"{'Date':<12}{'Day':<6}{work_header:<20}Other Hours")
        for bucket in self.buckets:
            lines.append(
                f"{bucket.date.isoformat():<12}{bucket.date.strftime('%a'):<6}"
                f"{bucket.work_hours:<20}{bucket.other_hours}"
            )
        return "\n".join(lines) + "\n"


def check_range(as_of: datetime.datetime, days: int, zone: ZoneInfo) -> Tuple[datetime.datetime, datetime.datetime]:
    """From local midnight `days` days before `as_of` up to `as_of`"""
    local = as_of.astimezone(zone)
    first_day = local.date() - datetime.timedelta(days=days)
    start = datetime.datetime.combine(first_day, datetime.time(0), tzinfo=zone)
    return start, local


def is_work_hour(moment: datetime.datetime, work_start: int, work_end: int) -> bool:
    """Mon-Fri within [work_start, work_end); weekends are never work hours"""
    return moment.weekday() < 5 and work_start <= moment.hour < work_end


def bucket_listens(listens: Iterable[datetime.datetime], first_day: datetime.date, last_day: datetime.date,
                   zone: ZoneInfo, work_start: int = 9, work_end: int = 17) -> List[DayBucket]:
    """
    Count listens per local calendar day, split into work and other hours.

    Every day from `first_day` to `last_day` gets a bucket, including days
    without listens. Buckets come back ordered by date.
    """
    counts: Dict[datetime.date, List[int]] = {}
    day = first_day
    while day <= last_day:
        counts[day] = [0, 0]
        day += datetime.timedelta(days=1)

    for listen in listens:
        local = listen.astimezone(zone)
        entry = counts.setdefault(local.date(), [0, 0])
        if is_work_hour(local, work_start, work_end):
            entry[0] += 1
        else:
            entry[1] += 1

    return [DayBucket(date=day, work_hours=work, other_hours=other)
            for day, (work, other) in sorted(counts.items())]


def compute_streaks(buckets: List[DayBucket]) -> Streaks:
    """
    Count silent days backwards from the most recent bucket.

    - other: consecutive days with no off-hour listens
    - work: consecutive weekdays with no work-hour listens, weekends skipped
    - weekend: consecutive weekend days with no listens at all, weekdays skipped
    """
    other = 0
    for bucket in reversed(buckets):
        if bucket.other_hours != 0:
            break
        other += 1

    work = 0
    for bucket in reversed(buckets):
        if bucket.is_weekend:
            continue
        if bucket.work_hours != 0:
            break
        work += 1

    weekend = 0
    for bucket in reversed(buckets):
        if not bucket.is_weekend:
            continue
        if bucket.total != 0:
            break
        weekend += 1

    return Streaks(work=work, other=other, weekend=weekend)


def evaluate_streaks(streaks: Streaks, config: SourceCheckConfig) -> Tuple[bool, bool, bool]:
    """(work, other, weekend) triggers. Work and other must exceed their threshold; weekend only has to reach it."""
    return (
        streaks.work > config.work_streak,
        streaks.other > config.other_streak,
        streaks.weekend >= config.weekend_streak,
    )


def check_sources(storage, user: str, config: SourceCheckConfig,
                  as_of: Optional[datetime.datetime] = None) -> Union[SourceCheckResult, SkipReport]:
    """
    Look for likely scrobbler outages in the `config.days` days up to `as_of`.

    Returns SKIP when no streak crosses its threshold.
    """
    zone = config.zone
    work_start, work_end = config.work_hour_range
    as_of = as_of or datetime.datetime.now(datetime.UTC)
    start, end = check_range(as_of, config.days, zone)

    listens = storage.get_listens_in_range(user, start, end)
    buckets = bucket_listens(listens, start.date(), end.date(), zone, work_start, work_end)
    streaks = compute_streaks(buckets)
    work, other, weekend = evaluate_streaks(streaks, config)
    logger.debug(f"Streaks for {user} as of {end:%Y-%m-%d}: {streaks}")

    if not (work or other or weekend):
        return SKIP

    return SourceCheckResult(
        user=user,
        timezone=config.timezone,
        as_of=end,
        work_hours=(work_start, work_end),
        buckets=tuple(buckets),
        streaks=streaks,
        work_triggered=work,
        other_triggered=other,
        weekend_triggered=weekend,
    )


def simulate_history(storage, user: str, config: SourceCheckConfig, now: Optional[datetime.datetime] = None,
                     history_days: Optional[int] = None) -> List[Tuple[datetime.date, SourceCheckResult]]:
    """
    Re-run the check as of each of the past `history_days` days, oldest first,
    and return the days that would have triggered. Nothing is written.
    """
    now = now or datetime.datetime.now(datetime.UTC)
    history_days = config.history_days if history_days is None else history_days
    logger.info(f"Simulating source checks for the past {history_days} days")

    triggered = []
    for offset in range(history_days, -1, -1):
        simulated = now - datetime.timedelta(days=offset)
        result = check_sources(storage, user, config, as_of=simulated)
        if result is SKIP:
            continue
        triggered.append((simulated.astimezone(config.zone).date(), result))
    return triggered


def cooldown_active(storage, user: str, cooldown_days: int, now: datetime.datetime,
                    command: str = COMMAND_NAME) -> bool:
    """
    True when a warning was already recorded within the cooldown. Otherwise
    records `now` as the latest warning and returns False.
    """
    if cooldown_days <= 0:
        return False
    last_run = storage.get_command_last_run(user, command)
    if last_run is not None and now - last_run < datetime.timedelta(days=cooldown_days):
        logger.info(f"Warning suppressed due to cooldown (last sent: {last_run:%Y-%m-%d %H:%M:%S})")
        return True
    storage.set_command_last_run(user, command, now)
    return False
