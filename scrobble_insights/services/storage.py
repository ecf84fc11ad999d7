"""Database storage service for listen history, tags and command history"""
import datetime
import functools
import logging
from collections import Counter
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, distinct, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from scrobble_insights.errors import QueryError
from scrobble_insights.models.db import (
    Album, AlbumTag, Artist, ArtistTag, CommandHistory, Listen, Tag, Track, User
)
from scrobble_insights.models.listening import (
    AlbumScrobbleCount, ArtistAlbumStats, ArtistScrobbleCount, ForgottenQueryOptions,
    SubjectListenStats, TagAssociation, TrackImport, TrackScrobbleCount
)
from scrobble_insights.utils.timestamps import from_epoch, to_epoch

logger = logging.getLogger(__name__)

# Subjects need more listens than this before their tags are worth refreshing
TAG_UPDATE_MIN_LISTENS = 10


def store_operation(name: str):
    """Wrap SQLAlchemy failures in QueryError tagged with the operation name"""
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            try:
                return method(self, *args, **kwargs)
            except SQLAlchemyError as e:
                logger.error(f"Database error in {name}: {e}")
                self.session.rollback()
                raise QueryError(name, e) from e
        return wrapper
    return decorator


def _naive_utc(moment: datetime.datetime) -> datetime.datetime:
    """DateTime columns hold naive UTC values"""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(datetime.UTC).replace(tzinfo=None)


def _aware_utc(moment: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=datetime.UTC)
    return moment.astimezone(datetime.UTC)


class StorageService:
    """
    Handles all database operations.

    Read queries take half-open [start, end) windows. Every ordered result
    carries an explicit secondary sort on names so ties are deterministic.
    """

    def __init__(self, session: Session):
        self.session = session

    # --- Query helpers ---

    def _listens(self, *columns) -> Query:
        return self.session.query(*columns).select_from(Listen).join(Track, Listen.track_id == Track.id)

    @staticmethod
    def _window(start: datetime.datetime, end: datetime.datetime) -> Tuple:
        return (Listen.date >= to_epoch(start), Listen.date < to_epoch(end))

    # --- Totals ---

    @store_operation("total scrobbles")
    def get_total_scrobbles(self, user: str) -> int:
        return self.session.query(func.count(Listen.id)).filter(Listen.user == user).scalar() or 0

    @store_operation("total scrobbles in period")
    def get_total_scrobbles_in_period(self, user: str, start: datetime.datetime, end: datetime.datetime) -> int:
        return (
            self.session.query(func.count(Listen.id))
            .filter(Listen.user == user, *self._window(start, end))
            .scalar()
        ) or 0

    @store_operation("total artists")
    def get_total_artists(self, user: str) -> int:
        return self._listens(func.count(distinct(Track.artist))).filter(Listen.user == user).scalar() or 0

    @store_operation("first listen")
    def get_first_listen(self, user: str) -> Optional[datetime.datetime]:
        first = self.session.query(func.min(Listen.date)).filter(Listen.user == user).scalar()
        return from_epoch(first) if first is not None else None

    @store_operation("latest listen")
    def get_latest_listen(self, user: str) -> Optional[datetime.datetime]:
        latest = self.session.query(func.max(Listen.date)).filter(Listen.user == user).scalar()
        return from_epoch(latest) if latest is not None else None

    # --- Rankings ---

    @store_operation("top artists")
    def get_top_artists(self, user: str, start: datetime.datetime, end: datetime.datetime,
                        limit: int) -> List[ArtistScrobbleCount]:
        scrobbles = func.count(Listen.id).label('scrobbles')
        rows = (
            self._listens(Track.artist, scrobbles)
            .filter(Listen.user == user, *self._window(start, end))
            .group_by(Track.artist)
            .order_by(scrobbles.desc(), Track.artist)
            .limit(limit)
            .all()
        )
        return [ArtistScrobbleCount(name=artist, scrobbles=count) for artist, count in rows]

    @store_operation("top albums")
    def get_top_albums(self, user: str, start: datetime.datetime, end: datetime.datetime,
                       limit: int) -> List[AlbumScrobbleCount]:
        scrobbles = func.count(Listen.id).label('scrobbles')
        rows = (
            self._listens(Track.artist, Track.album, scrobbles)
            .filter(Listen.user == user, Track.album != '', *self._window(start, end))
            .group_by(Track.artist, Track.album)
            .order_by(scrobbles.desc(), Track.artist, Track.album)
            .limit(limit)
            .all()
        )
        return [AlbumScrobbleCount(artist=artist, title=album, scrobbles=count) for artist, album, count in rows]

    @store_operation("top tracks")
    def get_top_tracks(self, user: str, start: datetime.datetime, end: datetime.datetime,
                       limit: int) -> List[TrackScrobbleCount]:
        scrobbles = func.count(Listen.id).label('scrobbles')
        rows = (
            self._listens(Track.name, Track.artist, scrobbles)
            .filter(Listen.user == user, *self._window(start, end))
            .group_by(Track.name, Track.artist)
            .order_by(scrobbles.desc(), Track.name, Track.artist)
            .limit(limit)
            .all()
        )
        return [TrackScrobbleCount(name=name, artist=artist, scrobbles=count) for name, artist, count in rows]

    @store_operation("artist listen counts")
    def get_artist_listen_counts(self, user: str, start: datetime.datetime,
                                 end: datetime.datetime) -> List[ArtistScrobbleCount]:
        """Listens per artist in the window, unranked and unlimited"""
        rows = (
            self._listens(Track.artist, func.count(Listen.id))
            .filter(Listen.user == user, *self._window(start, end))
            .group_by(Track.artist)
            .order_by(Track.artist)
            .all()
        )
        return [ArtistScrobbleCount(name=artist, scrobbles=count) for artist, count in rows]

    @store_operation("top albums for artist")
    def get_top_albums_for_artist(self, user: str, artist: str, start: datetime.datetime,
                                  end: datetime.datetime, limit: int) -> List[AlbumScrobbleCount]:
        scrobbles = func.count(Listen.id).label('scrobbles')
        rows = (
            self._listens(Track.album, scrobbles)
            .filter(Listen.user == user, Track.artist == artist, Track.album != '', *self._window(start, end))
            .group_by(Track.album)
            .order_by(scrobbles.desc(), Track.album)
            .limit(limit)
            .all()
        )
        return [AlbumScrobbleCount(artist=artist, title=album, scrobbles=count) for album, count in rows]

    @store_operation("top tags for artist")
    def get_top_tags_for_artist(self, artist: str, limit: int) -> List[str]:
        rows = (
            self.session.query(ArtistTag.tag)
            .filter(ArtistTag.artist == artist)
            .order_by(ArtistTag.count.desc(), ArtistTag.tag)
            .limit(limit)
            .all()
        )
        return [tag for (tag,) in rows]

    @store_operation("top tags for album")
    def get_top_tags_for_album(self, artist: str, album: str, limit: int) -> List[str]:
        rows = (
            self.session.query(AlbumTag.tag)
            .filter(AlbumTag.artist == artist, AlbumTag.album == album)
            .order_by(AlbumTag.count.desc(), AlbumTag.tag)
            .limit(limit)
            .all()
        )
        return [tag for (tag,) in rows]

    # --- Per-subject counts ---

    @store_operation("artist listen count")
    def get_artist_listen_count(self, user: str, artist: str, start: datetime.datetime,
                                end: datetime.datetime) -> int:
        return (
            self._listens(func.count(Listen.id))
            .filter(Listen.user == user, Track.artist == artist, *self._window(start, end))
            .scalar()
        ) or 0

    @store_operation("yearly listen counts")
    def get_yearly_listen_counts(self, user: str, artist: str) -> List[Tuple[int, int]]:
        """(year, listens) pairs for an artist, oldest year first. Years are UTC calendar years."""
        rows = self._listens(Listen.date).filter(Listen.user == user, Track.artist == artist).all()
        years = Counter(from_epoch(date).year for (date,) in rows)
        return sorted(years.items())

    @store_operation("average tracks per album")
    def get_average_tracks_per_album(self, user: str, start: datetime.datetime, end: datetime.datetime) -> float:
        rows = (
            self._listens(func.count(distinct(Track.id)))
            .filter(Listen.user == user, Track.album != '', *self._window(start, end))
            .group_by(Track.artist, Track.album)
            .all()
        )
        if not rows:
            return 0.0
        return sum(count for (count,) in rows) / len(rows)

    @store_operation("album listen counts")
    def get_album_listen_counts(self, user: str, start: datetime.datetime,
                                end: datetime.datetime) -> List[AlbumScrobbleCount]:
        """Listens per (artist, album) in the window, including tracks without an album"""
        rows = (
            self._listens(Track.artist, Track.album, func.count(Listen.id))
            .filter(Listen.user == user, *self._window(start, end))
            .group_by(Track.artist, Track.album)
            .order_by(Track.artist, Track.album)
            .all()
        )
        return [AlbumScrobbleCount(artist=artist, title=album, scrobbles=count) for artist, album, count in rows]

    @store_operation("artist album stats")
    def get_artist_album_stats(self, user: str, start: datetime.datetime,
                               end: datetime.datetime) -> List[ArtistAlbumStats]:
        """Distinct albums and listens per artist, most listened first"""
        listens = func.count(Listen.id).label('listen_count')
        rows = (
            self._listens(Track.artist, func.count(distinct(Track.album)), listens)
            .filter(Listen.user == user, Track.album != '', *self._window(start, end))
            .group_by(Track.artist)
            .order_by(listens.desc(), Track.artist)
            .all()
        )
        return [
            ArtistAlbumStats(artist=artist, album_count=albums, listen_count=count)
            for artist, albums, count in rows
        ]

    @store_operation("new artists count")
    def get_new_artists_count(self, user: str, since: datetime.datetime) -> int:
        """Artists whose first listen ever is on or after `since`"""
        first_listen = func.min(Listen.date)
        discoveries = (
            self._listens(Track.artist, first_listen.label('first_listen'))
            .filter(Listen.user == user)
            .group_by(Track.artist)
            .having(first_listen >= to_epoch(since))
            .subquery()
        )
        return self.session.query(func.count()).select_from(discoveries).scalar() or 0

    # --- Tags ---

    @store_operation("all artist tags")
    def get_all_artist_tags(self) -> List[TagAssociation]:
        """Every artist tag, grouped by artist with the highest counts first"""
        rows = (
            self.session.query(ArtistTag.artist, ArtistTag.tag, ArtistTag.count)
            .order_by(ArtistTag.artist, ArtistTag.count.desc(), ArtistTag.tag)
            .all()
        )
        return [TagAssociation(artist=artist, tag=tag, count=count) for artist, tag, count in rows]

    @store_operation("all album tags")
    def get_all_album_tags(self) -> List[TagAssociation]:
        """Every album tag, grouped by (artist, album) with the highest counts first"""
        rows = (
            self.session.query(AlbumTag.artist, AlbumTag.album, AlbumTag.tag, AlbumTag.count)
            .order_by(AlbumTag.artist, AlbumTag.album, AlbumTag.count.desc(), AlbumTag.tag)
            .all()
        )
        return [
            TagAssociation(artist=artist, album=album, tag=tag, count=count)
            for artist, album, tag, count in rows
        ]

    # --- Forgotten candidates ---

    def _forgotten_having(self, opts: ForgottenQueryOptions, total, first, last):
        return and_(
            total >= opts.min_scrobbles,
            last >= to_epoch(opts.last_listen_after),
            last <= to_epoch(opts.last_listen_before),
            first >= to_epoch(opts.first_listen_after),
            first <= to_epoch(opts.first_listen_before),
        )

    @store_operation("forgotten artists")
    def get_forgotten_artists(self, user: str, opts: ForgottenQueryOptions) -> List[SubjectListenStats]:
        total, first, last = func.count(Listen.id), func.min(Listen.date), func.max(Listen.date)
        rows = (
            self._listens(Track.artist, total, first, last)
            .filter(Listen.user == user)
            .group_by(Track.artist)
            .having(self._forgotten_having(opts, total, first, last))
            .order_by(Track.artist)
            .all()
        )
        return [
            SubjectListenStats(
                artist=artist,
                total_scrobbles=count,
                first_listen=from_epoch(first_date),
                last_listen=from_epoch(last_date),
            )
            for artist, count, first_date, last_date in rows
        ]

    @store_operation("forgotten albums")
    def get_forgotten_albums(self, user: str, opts: ForgottenQueryOptions) -> List[SubjectListenStats]:
        total, first, last = func.count(Listen.id), func.min(Listen.date), func.max(Listen.date)
        rows = (
            self._listens(Track.artist, Track.album, total, first, last)
            .filter(Listen.user == user, Track.album != '')
            .group_by(Track.artist, Track.album)
            .having(self._forgotten_having(opts, total, first, last))
            .order_by(Track.artist, Track.album)
            .all()
        )
        return [
            SubjectListenStats(
                artist=artist,
                album=album,
                total_scrobbles=count,
                first_listen=from_epoch(first_date),
                last_listen=from_epoch(last_date),
            )
            for artist, album, count, first_date, last_date in rows
        ]

    # --- Raw listens ---

    @store_operation("listens in range")
    def get_listens_in_range(self, user: str, start: datetime.datetime,
                             end: datetime.datetime) -> List[datetime.datetime]:
        rows = (
            self.session.query(Listen.date)
            .filter(Listen.user == user, *self._window(start, end))
            .order_by(Listen.date)
            .all()
        )
        return [from_epoch(date) for (date,) in rows]

    # --- Writes ---

    @store_operation("create user")
    def create_user(self, user: str) -> None:
        """Ensure a user row exists"""
        if self.session.get(User, user) is None:
            self.session.add(User(name=user))
            self.session.commit()
            logger.info(f"Created user {user}")

    @store_operation("add listens")
    def add_listens(self, user: str, tracks: Iterable[TrackImport]) -> int:
        """
        Record listens in one transaction, creating artists, albums and tracks
        as needed. Listens already stored for the same (user, track, time) are
        skipped.

        Returns:
            Number of listens inserted
        """
        inserted = 0
        if self.session.get(User, user) is None:
            self.session.add(User(name=user))
        for item in tracks:
            date = to_epoch(item.timestamp)
            if self.session.get(Artist, item.artist) is None:
                self.session.add(Artist(name=item.artist))
                self.session.flush()
            if self.session.get(Album, (item.artist, item.album)) is None:
                self.session.add(Album(artist=item.artist, name=item.album))
                self.session.flush()

            track = (
                self.session.query(Track)
                .filter_by(artist=item.artist, album=item.album, name=item.name)
                .first()
            )
            if track is None:
                track = Track(artist=item.artist, album=item.album, name=item.name)
                self.session.add(track)
                self.session.flush()

            exists = (
                self.session.query(Listen.id)
                .filter_by(user=user, track_id=track.id, date=date)
                .first()
            )
            if exists is None:
                self.session.add(Listen(user=user, track_id=track.id, date=date))
                self.session.flush()
                inserted += 1

        self.session.commit()
        logger.info(f"Stored {inserted} new listens for {user}")
        return inserted

    def _ensure_tag(self, name: str) -> None:
        if self.session.get(Tag, name) is None:
            self.session.add(Tag(name=name))
            self.session.flush()

    @store_operation("save artist tags")
    def save_artist_tags(self, artist: str, tags: Sequence[Tuple[str, int]],
                         now: Optional[datetime.datetime] = None) -> None:
        """Replace counts for the given tags and mark the artist's tags as refreshed"""
        now = now or datetime.datetime.now(datetime.UTC)
        record = self.session.get(Artist, artist)
        if record is None:
            record = Artist(name=artist)
            self.session.add(record)
        for tag, count in tags:
            self._ensure_tag(tag)
            self.session.merge(ArtistTag(artist=artist, tag=tag, count=count))
        record.tags_last_updated = _naive_utc(now)
        self.session.commit()

    @store_operation("save album tags")
    def save_album_tags(self, artist: str, album: str, tags: Sequence[Tuple[str, int]],
                        now: Optional[datetime.datetime] = None) -> None:
        """Replace counts for the given tags and mark the album's tags as refreshed"""
        now = now or datetime.datetime.now(datetime.UTC)
        if self.session.get(Artist, artist) is None:
            self.session.add(Artist(name=artist))
            self.session.flush()
        record = self.session.get(Album, (artist, album))
        if record is None:
            record = Album(artist=artist, name=album)
            self.session.add(record)
        for tag, count in tags:
            self._ensure_tag(tag)
            self.session.merge(AlbumTag(artist=artist, album=album, tag=tag, count=count))
        record.tags_last_updated = _naive_utc(now)
        self.session.commit()

    @store_operation("artists needing tag update")
    def get_artists_needing_tag_update(self, interval: datetime.timedelta,
                                       now: Optional[datetime.datetime] = None) -> List[str]:
        """Artists with enough listens whose tags are missing or older than `interval`"""
        threshold = _naive_utc((now or datetime.datetime.now(datetime.UTC)) - interval)
        rows = (
            self._listens(Track.artist)
            .join(Artist, Track.artist == Artist.name)
            .filter(or_(Artist.tags_last_updated.is_(None), Artist.tags_last_updated < threshold))
            .group_by(Track.artist)
            .having(func.count(Listen.id) > TAG_UPDATE_MIN_LISTENS)
            .order_by(Track.artist)
            .all()
        )
        return [artist for (artist,) in rows]

    @store_operation("albums needing tag update")
    def get_albums_needing_tag_update(self, interval: datetime.timedelta,
                                      now: Optional[datetime.datetime] = None) -> List[Tuple[str, str]]:
        """(artist, album) pairs with enough listens whose tags are missing or older than `interval`"""
        threshold = _naive_utc((now or datetime.datetime.now(datetime.UTC)) - interval)
        rows = (
            self._listens(Track.artist, Track.album)
            .join(Album, and_(Track.artist == Album.artist, Track.album == Album.name))
            .filter(
                Track.album != '',
                or_(Album.tags_last_updated.is_(None), Album.tags_last_updated < threshold),
            )
            .group_by(Track.artist, Track.album)
            .having(func.count(Listen.id) > TAG_UPDATE_MIN_LISTENS)
            .order_by(Track.artist, Track.album)
            .all()
        )
        return [(artist, album) for artist, album in rows]

    @store_operation("command last run")
    def get_command_last_run(self, user: str, command: str) -> Optional[datetime.datetime]:
        record = self.session.get(CommandHistory, (command, user))
        return _aware_utc(record.last_run) if record else None

    @store_operation("set command last run")
    def set_command_last_run(self, user: str, command: str, when: datetime.datetime) -> None:
        self.session.merge(CommandHistory(command_name=command, user=user, last_run=_naive_utc(when)))
        self.session.commit()
