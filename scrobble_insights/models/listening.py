"""Domain models for listen history aggregates and analysis results"""
import datetime
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from scrobble_insights.utils.timestamps import Timestamp

@dataclass(frozen=True)
class TrackImport:
    """One listen to record; album may be '' for tracks without an album"""
    artist: str
    album: str
    name: str
    timestamp: Timestamp

@dataclass(frozen=True)
class TagAssociation:
    """Raw tag count for an artist (album is None) or an (artist, album) pair"""
    artist: str
    tag: str
    count: int
    album: Optional[str] = None

    @property
    def subject(self) -> Union[str, Tuple[str, str]]:
        if self.album is None:
            return self.artist
        return (self.artist, self.album)

@dataclass(frozen=True)
class ArtistScrobbleCount:
    name: str
    scrobbles: int

@dataclass(frozen=True)
class AlbumScrobbleCount:
    artist: str
    title: str
    scrobbles: int

@dataclass(frozen=True)
class TrackScrobbleCount:
    name: str
    artist: str
    scrobbles: int

@dataclass(frozen=True)
class ArtistAlbumStats:
    """Distinct albums and listens for one artist within a period"""
    artist: str
    album_count: int
    listen_count: int

@dataclass(frozen=True)
class SubjectListenStats:
    """All-time aggregate for an artist (album is None) or an album"""
    artist: str
    total_scrobbles: int
    first_listen: datetime.datetime
    last_listen: datetime.datetime
    album: Optional[str] = None

@dataclass(frozen=True)
class ForgottenQueryOptions:
    """Store-side filters for forgotten candidates. All bounds are inclusive."""
    min_scrobbles: int
    last_listen_after: datetime.datetime
    last_listen_before: datetime.datetime
    first_listen_after: datetime.datetime
    first_listen_before: datetime.datetime

@dataclass(frozen=True)
class ForgottenEntity:
    """An artist or album that has fallen out of rotation, with its interest band"""
    artist: str
    total_scrobbles: int
    first_listen: datetime.datetime
    last_listen: datetime.datetime
    days_since_last: int
    band: str
    album: Optional[str] = None

    @property
    def key(self) -> Union[str, Tuple[str, str]]:
        if self.album is None:
            return self.artist
        return (self.artist, self.album)

@dataclass(frozen=True)
class DayBucket:
    """Listen counts for one local calendar day, split by time-of-day class"""
    date: datetime.date
    work_hours: int = 0
    other_hours: int = 0

    @property
    def is_weekend(self) -> bool:
        return self.date.weekday() >= 5

    @property
    def total(self) -> int:
        return self.work_hours + self.other_hours

@dataclass(frozen=True)
class Streaks:
    """Consecutive most-recent silent days for each source class"""
    work: int
    other: int
    weekend: int
