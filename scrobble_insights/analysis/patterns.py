"""Listening pattern statistics"""
import datetime
import logging
from typing import List, Sequence, Tuple

from scrobble_insights.models.listening import ArtistAlbumStats
from scrobble_insights.models.report import ListeningPatterns
from scrobble_insights.utils.rounding import round_half_up
from scrobble_insights.utils.timestamps import subtract_months

logger = logging.getLogger(__name__)

CORE_ARTIST_COUNT = 100
MANY_ALBUMS = 3
PEAK_SHARE = 0.8

ALBUM_ORIENTED = 'album-oriented'
TRACK_ORIENTED = 'track-oriented'


def median(values: Sequence[float]) -> float:
    """Median; an even-length input averages the two middle values"""
    if not values:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2


def average(values: Sequence[float]) -> float:
    """Mean rounded to one decimal"""
    if not values:
        return 0.0
    return round_half_up(sum(values) / len(values), 1)


def repeat_listening_ratio(total_scrobbles: int, total_artists: int) -> float:
    """(scrobbles - artists) / scrobbles to 2 decimals; 0.0 when nothing was scrobbled"""
    if total_scrobbles <= 0:
        return 0.0
    return round_half_up((total_scrobbles - total_artists) / total_scrobbles, 2)


def classify_listening_style(average_tracks_per_album: float, threshold: float = 3.0) -> str:
    if average_tracks_per_album >= threshold:
        return ALBUM_ORIENTED
    return TRACK_ORIENTED


def calculate_listening_patterns(artist_stats: Sequence[ArtistAlbumStats], total_scrobbles: int,
                                 total_artists: int, new_artists: int) -> ListeningPatterns:
    """
    Album breadth statistics for a period.

    `artist_stats` must be ordered by listen count, highest first: the
    first hundred entries are the core artists.
    """
    all_counts = [stat.album_count for stat in artist_stats]
    core_counts = all_counts[:CORE_ARTIST_COUNT]

    return ListeningPatterns(
        all_albums_per_artist_median=median(all_counts),
        all_albums_per_artist_average=average(all_counts),
        top100_albums_per_artist_median=median(core_counts),
        top100_albums_per_artist_average=average(core_counts),
        artists_with_3plus_albums=sum(1 for count in all_counts if count >= MANY_ALBUMS),
        new_artists_in_last_12_months=new_artists,
        repeat_listening_ratio=repeat_listening_ratio(total_scrobbles, total_artists),
    )


def collect_listening_patterns(storage, user: str, start: datetime.datetime, end: datetime.datetime,
                               now: datetime.datetime, new_artist_months: int = 12) -> ListeningPatterns:
    """Listening patterns for a window, with totals and discoveries read from the Store"""
    artist_stats = storage.get_artist_album_stats(user, start, end)
    new_artists = storage.get_new_artists_count(user, subtract_months(now, new_artist_months))
    total_scrobbles = storage.get_total_scrobbles(user)
    total_artists = storage.get_total_artists(user)

    patterns = calculate_listening_patterns(artist_stats, total_scrobbles, total_artists, new_artists)
    logger.info(f"Listening patterns for {user}: {len(artist_stats)} artists, {new_artists} new")
    return patterns


def peak_years(year_counts: Sequence[Tuple[int, int]]) -> str:
    """
    Shortest run of consecutive entries holding 80% of the listens.

    `year_counts` holds (year, listens) pairs in ascending year order. Returns
    "2015" for a single year, "2014-2017" for a range, '' with no listens.
    The earliest run wins among equally short runs.
    """
    total = sum(count for _, count in year_counts)
    if total == 0:
        return ''

    target = int(total * PEAK_SHARE)
    best: List[int] = []
    for i in range(len(year_counts)):
        running = 0
        for j in range(i, len(year_counts)):
            running += year_counts[j][1]
            if running >= target:
                if not best or j - i < best[1] - best[0]:
                    best = [i, j]
                break

    if not best:
        return 'Unknown'
    first, last = year_counts[best[0]][0], year_counts[best[1]][0]
    if first == last:
        return str(first)
    return f"{first}-{last}"
