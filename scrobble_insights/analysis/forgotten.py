"""Interest bands for artists and albums that have fallen out of rotation"""
import datetime
import logging
from typing import Dict, Iterable, List, Optional

from scrobble_insights.config import ForgottenConfig
from scrobble_insights.models.listening import ForgottenEntity, ForgottenQueryOptions, SubjectListenStats
from scrobble_insights.utils.timestamps import EPOCH, resolve_relative

logger = logging.getLogger(__name__)

BAND_OBSESSION = 'Obsession'
BAND_STRONG = 'Strong'
BAND_MODERATE = 'Moderate'
BANDS = (BAND_OBSESSION, BAND_STRONG, BAND_MODERATE)


def assign_band(total_scrobbles: int, thresholds) -> Optional[str]:
    """
    Highest band whose threshold the total reaches

    Default artist scale (album scale in parentheses):
    - 120+ (60+) scrobbles = Obsession
    - 50+ (30+) scrobbles = Strong
    - 15+ (10+) scrobbles = Moderate
    """
    if total_scrobbles >= thresholds.obsession:
        return BAND_OBSESSION
    elif total_scrobbles >= thresholds.strong:
        return BAND_STRONG
    elif total_scrobbles >= thresholds.moderate:
        return BAND_MODERATE
    return None


def get_threshold(band: str, is_artist: bool, config: Optional[ForgottenConfig] = None) -> int:
    """Minimum scrobbles for a band, for artist or album subjects"""
    config = config or ForgottenConfig()
    thresholds = config.artist_thresholds if is_artist else config.album_thresholds
    if band == BAND_OBSESSION:
        return thresholds.obsession
    elif band == BAND_STRONG:
        return thresholds.strong
    elif band == BAND_MODERATE:
        return thresholds.moderate
    return 0


def days_since(last_listen: datetime.datetime, now: datetime.datetime) -> int:
    """Whole days elapsed, from the hour count so partial days round down"""
    hours = (now - last_listen).total_seconds() / 3600
    return int(hours // 24)


def _sort_key(sort_by: str):
    if sort_by == 'listens':
        return lambda e: (-e.total_scrobbles, -e.days_since_last, e.artist, e.album or '')
    return lambda e: (-e.days_since_last, -e.total_scrobbles, e.artist, e.album or '')


def band_entities(stats: Iterable[SubjectListenStats], thresholds, now: datetime.datetime,
                  sort_by: str, results_per_band: int) -> Dict[str, List[ForgottenEntity]]:
    """
    Classify subjects into bands, sort each band and cap its length.

    Subjects below the lowest band are dropped. Only non-empty bands appear
    in the result, in Obsession, Strong, Moderate order.
    """
    grouped: Dict[str, List[ForgottenEntity]] = {band: [] for band in BANDS}
    for stat in stats:
        band = assign_band(stat.total_scrobbles, thresholds)
        if band is None:
            continue
        grouped[band].append(ForgottenEntity(
            artist=stat.artist,
            album=stat.album,
            total_scrobbles=stat.total_scrobbles,
            first_listen=stat.first_listen,
            last_listen=stat.last_listen,
            days_since_last=days_since(stat.last_listen, now),
            band=band,
        ))

    key = _sort_key(sort_by)
    return {
        band: sorted(entities, key=key)[:results_per_band]
        for band, entities in grouped.items()
        if entities
    }


def _resolve_bound(value, default: datetime.datetime, now: datetime.datetime) -> datetime.datetime:
    if value is None:
        return default
    if isinstance(value, str):
        return resolve_relative(value, now)
    return value


def query_options(config: ForgottenConfig, min_scrobbles: int, now: datetime.datetime) -> ForgottenQueryOptions:
    """Resolve the config's optional window bounds, including ages like '90d', against `now`"""
    dormancy_cutoff = now - datetime.timedelta(days=config.dormancy_days)
    return ForgottenQueryOptions(
        min_scrobbles=min_scrobbles,
        last_listen_after=_resolve_bound(config.last_listen_after, EPOCH, now),
        last_listen_before=_resolve_bound(config.last_listen_before, dormancy_cutoff, now),
        first_listen_after=_resolve_bound(config.first_listen_after, EPOCH, now),
        first_listen_before=_resolve_bound(config.first_listen_before, now, now),
    )


def get_forgotten_artists(storage, user: str, config: ForgottenConfig,
                          now: datetime.datetime) -> Dict[str, List[ForgottenEntity]]:
    opts = query_options(config, config.min_artist_scrobbles, now)
    stats = storage.get_forgotten_artists(user, opts)
    logger.info(f"Found {len(stats)} forgotten artist candidates for {user}")
    return band_entities(stats, config.artist_thresholds, now, config.sort_by, config.results_per_band)


def get_forgotten_albums(storage, user: str, config: ForgottenConfig,
                         now: datetime.datetime) -> Dict[str, List[ForgottenEntity]]:
    opts = query_options(config, config.min_album_scrobbles, now)
    stats = storage.get_forgotten_albums(user, opts)
    logger.info(f"Found {len(stats)} forgotten album candidates for {user}")
    return band_entities(stats, config.album_thresholds, now, config.sort_by, config.results_per_band)
