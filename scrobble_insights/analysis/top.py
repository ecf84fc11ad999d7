"""Most played artists, albums and tracks of a window"""
import datetime
import logging
from typing import Optional

from scrobble_insights.config import TopNConfig
from scrobble_insights.models.report import AlbumStat, TopArtist, TopNReport, TrackStat
from scrobble_insights.utils.timestamps import format_period

logger = logging.getLogger(__name__)


def build_top_n(storage, user: str, start: datetime.datetime, end: datetime.datetime,
                config: Optional[TopNConfig] = None) -> TopNReport:
    """
    Rank the window's artists, albums and tracks by scrobbles.

    A section whose limit is 0 is left empty without querying the Store.
    Artists and albums carry up to `config.tags` raw tags each.
    """
    config = config or TopNConfig()
    total = storage.get_total_scrobbles_in_period(user, start, end)
    logger.info(f"Building top-n for {user}: {total} scrobbles in {format_period(start, end)}")

    artists = []
    if config.artists:
        for entry in storage.get_top_artists(user, start, end, config.artists):
            tags = storage.get_top_tags_for_artist(entry.name, config.tags) if config.tags else []
            artists.append(TopArtist(name=entry.name, scrobbles=entry.scrobbles, tags=tags))

    albums = []
    if config.albums:
        for entry in storage.get_top_albums(user, start, end, config.albums):
            tags = storage.get_top_tags_for_album(entry.artist, entry.title, config.tags) if config.tags else []
            albums.append(AlbumStat(title=entry.title, artist=entry.artist, scrobbles=entry.scrobbles, tags=tags))

    tracks = []
    if config.tracks:
        tracks = [
            TrackStat(name=t.name, artist=t.artist, scrobbles=t.scrobbles)
            for t in storage.get_top_tracks(user, start, end, config.tracks)
        ]

    return TopNReport(
        period=format_period(start, end),
        total_scrobbles=total,
        top_artists=artists,
        top_albums=albums,
        top_tracks=tracks,
    )
