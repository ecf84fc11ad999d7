"""Taste report assembly"""
import datetime
import logging
from dataclasses import dataclass
from typing import List, Optional

from scrobble_insights.analysis.drift import calculate_drift
from scrobble_insights.analysis.patterns import classify_listening_style, collect_listening_patterns, peak_years
from scrobble_insights.analysis.tags import get_top_tags_weighted, load_tag_indexes
from scrobble_insights.config import ReportConfig
from scrobble_insights.models.report import (
    AlbumStat, ArtistStat, ProfileMetadata, Report, TasteProfile
)
from scrobble_insights.utils.timestamps import format_date, subtract_months

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportPeriods:
    """Half-open [start, end) windows for the current and historical periods"""
    current_start: datetime.datetime
    current_end: datetime.datetime
    historical_start: datetime.datetime
    historical_end: datetime.datetime
    latest_listen: datetime.datetime


def resolve_periods(first_listen: Optional[datetime.datetime], latest_listen: Optional[datetime.datetime],
                    now: datetime.datetime, current_months: int = 18) -> ReportPeriods:
    """
    Current period: the `current_months` months ending at the latest listen.
    Historical period: the first listen up to the start of the current one.
    The current window ends one second after the latest listen so that it is included.
    """
    latest = latest_listen or now
    current_end = latest + datetime.timedelta(seconds=1)
    current_start = subtract_months(latest, current_months)
    historical_start = first_listen or current_start
    if historical_start > current_start:
        historical_start = current_start
    return ReportPeriods(
        current_start=current_start,
        current_end=current_end,
        historical_start=historical_start,
        historical_end=current_start,
        latest_listen=latest,
    )


def _current_artists(storage, user: str, periods: ReportPeriods, config: ReportConfig) -> List[ArtistStat]:
    artists = []
    for entry in storage.get_top_artists(user, periods.current_start, periods.current_end, config.artist_limit):
        albums = storage.get_top_albums_for_artist(
            user, entry.name, periods.current_start, periods.current_end, config.albums_per_artist
        )
        historical_count = storage.get_artist_listen_count(
            user, entry.name, periods.historical_start, periods.historical_end
        )
        artists.append(ArtistStat(
            name=entry.name,
            scrobbles=entry.scrobbles,
            in_historical_baseline=historical_count > 0,
            top_albums=[album.title for album in albums],
            primary_tags=storage.get_top_tags_for_artist(entry.name, config.tags_per_subject),
        ))
    return artists


def _current_albums(storage, user: str, periods: ReportPeriods, config: ReportConfig) -> List[AlbumStat]:
    return [
        AlbumStat(
            title=entry.title,
            artist=entry.artist,
            scrobbles=entry.scrobbles,
            tags=storage.get_top_tags_for_album(entry.artist, entry.title, config.tags_per_subject),
        )
        for entry in storage.get_top_albums(user, periods.current_start, periods.current_end, config.album_limit)
    ]


def _historical_artists(storage, user: str, periods: ReportPeriods, config: ReportConfig) -> List[ArtistStat]:
    artists = []
    for entry in storage.get_top_artists(user, periods.historical_start, periods.historical_end, config.artist_limit):
        current_count = storage.get_artist_listen_count(
            user, entry.name, periods.current_start, periods.current_end
        )
        artists.append(ArtistStat(
            name=entry.name,
            scrobbles=entry.scrobbles,
            in_current_taste=current_count > 0,
            peak_years=peak_years(storage.get_yearly_listen_counts(user, entry.name)),
            primary_tags=storage.get_top_tags_for_artist(entry.name, config.tags_per_subject),
        ))
    return artists


def generate_report(storage, user: str, config: Optional[ReportConfig] = None,
                    now: Optional[datetime.datetime] = None) -> Report:
    """Build the full taste report for a user from the Store"""
    config = config or ReportConfig()
    now = now or datetime.datetime.now(datetime.UTC)

    periods = resolve_periods(
        storage.get_first_listen(user), storage.get_latest_listen(user), now, config.current_period_months
    )
    logger.info(
        f"Generating report for {user}: current {format_date(periods.current_start)} to "
        f"{format_date(periods.latest_listen)}, historical {format_date(periods.historical_start)} to "
        f"{format_date(periods.historical_end)}"
    )

    metadata = ProfileMetadata(
        generated_date=format_date(now),
        total_scrobbles=storage.get_total_scrobbles(user),
        total_artists=storage.get_total_artists(user),
        current_period=f"{format_date(periods.current_start)} to {format_date(periods.latest_listen)}",
        historical_period=f"{format_date(periods.historical_start)} to {format_date(periods.historical_end)}",
    )

    indexes = load_tag_indexes(storage)
    current_tags = get_top_tags_weighted(
        storage, user, periods.current_start, periods.current_end, config.tag_limit, indexes
    )
    current = TasteProfile(
        top_artists=_current_artists(storage, user, periods, config),
        top_albums=_current_albums(storage, user, periods, config),
        top_tags=current_tags,
    )

    historical_tags = get_top_tags_weighted(
        storage, user, periods.historical_start, periods.historical_end, config.tag_limit, indexes
    )
    historical = TasteProfile(
        top_artists=_historical_artists(storage, user, periods, config),
        top_tags=historical_tags,
    )

    patterns = collect_listening_patterns(
        storage, user, periods.current_start, periods.current_end, now, config.new_artist_months
    )
    tracks_per_album = storage.get_average_tracks_per_album(user, periods.current_start, periods.current_end)
    metadata.listening_style = classify_listening_style(tracks_per_album, config.album_oriented_threshold)

    return Report(
        metadata=metadata,
        current_taste=current,
        historical_baseline=historical,
        taste_drift=calculate_drift(historical_tags, current_tags),
        listening_patterns=patterns,
    )
