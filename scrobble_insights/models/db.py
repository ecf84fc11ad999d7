"""SQLAlchemy database models for storing listen history and tags"""
from sqlalchemy import (
    BigInteger, Column, DateTime, ForeignKey, ForeignKeyConstraint, Integer, String, UniqueConstraint
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class User(Base):
    """A last.fm account whose listens are stored"""
    __tablename__ = 'users'

    name = Column(String, primary_key=True)
    last_updated = Column(DateTime, nullable=True)

class Artist(Base):
    __tablename__ = 'artists'

    name = Column(String, primary_key=True)
    tags_last_updated = Column(DateTime, nullable=True)

class Album(Base):
    """
    An artist's album. The empty string name stands for tracks with no album,
    so every track has an album row to join against.
    """
    __tablename__ = 'albums'

    artist = Column(String, ForeignKey('artists.name'), primary_key=True)
    name = Column(String, primary_key=True)
    tags_last_updated = Column(DateTime, nullable=True)

class Track(Base):
    """Identity key is (artist, album, name)"""
    __tablename__ = 'tracks'
    __table_args__ = (
        UniqueConstraint('artist', 'album', 'name', name='uq_track_identity'),
        ForeignKeyConstraint(['artist', 'album'], ['albums.artist', 'albums.name']),
    )

    id = Column(Integer, primary_key=True)
    artist = Column(String, nullable=False, index=True)
    album = Column(String, nullable=False, default='')
    name = Column(String, nullable=False)

class Listen(Base):
    """
    One scrobble. Immutable once recorded.
    The timestamp is stored as Unix epoch seconds (UTC).
    """
    __tablename__ = 'listens'
    __table_args__ = (
        UniqueConstraint('user', 'track_id', 'date', name='uq_listen'),
    )

    id = Column(Integer, primary_key=True)
    user = Column(String, ForeignKey('users.name'), nullable=False, index=True)
    track_id = Column(Integer, ForeignKey('tracks.id'), nullable=False, index=True)
    date = Column(BigInteger, nullable=False, index=True)

class Tag(Base):
    __tablename__ = 'tags'

    name = Column(String, primary_key=True)

class ArtistTag(Base):
    """Raw tag co-occurrence count for an artist, as reported by the tagging source"""
    __tablename__ = 'artist_tags'

    artist = Column(String, ForeignKey('artists.name'), primary_key=True)
    tag = Column(String, ForeignKey('tags.name'), primary_key=True)
    count = Column(Integer, nullable=False, default=0)

class AlbumTag(Base):
    """Raw tag co-occurrence count for an (artist, album) pair"""
    __tablename__ = 'album_tags'

    artist = Column(String, primary_key=True)
    album = Column(String, primary_key=True)
    tag = Column(String, ForeignKey('tags.name'), primary_key=True)
    count = Column(Integer, nullable=False, default=0)

class CommandHistory(Base):
    """Last time a command produced output for a user, used for warning cooldowns"""
    __tablename__ = 'command_history'

    command_name = Column(String, primary_key=True)
    user = Column(String, primary_key=True)
    last_run = Column(DateTime, nullable=False)
