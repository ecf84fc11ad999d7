"""Artists and albums that took hold within a window"""
import datetime
import logging
from typing import Hashable, List, Mapping, Tuple

from scrobble_insights.models.report import NewMusicReport, NewSubject
from scrobble_insights.utils.timestamps import EPOCH, format_period

logger = logging.getLogger(__name__)

# Earlier listens must stay below this, window listens must exceed it
NEW_MUSIC_LISTENS = 5


def is_new(previous_scrobbles: int, scrobbles: int) -> bool:
    return previous_scrobbles < NEW_MUSIC_LISTENS and scrobbles > NEW_MUSIC_LISTENS


def find_new(previous: Mapping[Hashable, int], current: Mapping[Hashable, int],
             limit: int = 0) -> List[Tuple[Hashable, int, int]]:
    """
    Subjects of `current` that were barely heard before.

    Returns:
        (key, scrobbles, previous_scrobbles) tuples, most played first with
        ties by key; at most `limit` of them unless `limit` is 0
    """
    found = [
        (key, count, previous.get(key, 0))
        for key, count in current.items()
        if is_new(previous.get(key, 0), count)
    ]
    found.sort(key=lambda item: (-item[1], item[0]))
    return found[:limit] if limit else found


def get_new_artists(storage, user: str, start: datetime.datetime, end: datetime.datetime,
                    limit: int = 0) -> NewMusicReport:
    previous = {c.name: c.scrobbles for c in storage.get_artist_listen_counts(user, EPOCH, start)}
    current = {c.name: c.scrobbles for c in storage.get_artist_listen_counts(user, start, end)}
    logger.info(f"Got {len(previous)} previous and {len(current)} current artists for {user}")

    entries = [
        NewSubject(artist=artist, scrobbles=count, previous_scrobbles=before)
        for artist, count, before in find_new(previous, current, limit)
    ]
    return NewMusicReport(
        period=format_period(start, end),
        previous_count=len(previous),
        current_count=len(current),
        entries=entries,
    )


def _album_counts(storage, user: str, start: datetime.datetime,
                  end: datetime.datetime) -> Mapping[Tuple[str, str], int]:
    return {
        (c.artist, c.title): c.scrobbles
        for c in storage.get_album_listen_counts(user, start, end)
        if c.title
    }


def get_new_albums(storage, user: str, start: datetime.datetime, end: datetime.datetime,
                   limit: int = 0) -> NewMusicReport:
    """Same rule as get_new_artists, keyed by (artist, album). Tracks without an album are ignored."""
    previous = _album_counts(storage, user, EPOCH, start)
    current = _album_counts(storage, user, start, end)
    logger.info(f"Got {len(previous)} previous and {len(current)} current albums for {user}")

    entries = [
        NewSubject(artist=artist, album=album, scrobbles=count, previous_scrobbles=before)
        for (artist, album), count, before in find_new(previous, current, limit)
    ]
    return NewMusicReport(
        period=format_period(start, end),
        previous_count=len(previous),
        current_count=len(current),
        entries=entries,
    )
