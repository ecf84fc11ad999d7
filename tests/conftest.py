"""Shared fixtures: an in-memory Store and helpers to populate it"""
import datetime

import pytest

from scrobble_insights.config import load_settings
from scrobble_insights.db import Database
from scrobble_insights.models.listening import TrackImport
from scrobble_insights.services.storage import StorageService

USER = 'alice'


@pytest.fixture(autouse=True)
def fresh_settings():
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture
def database():
    database = Database()
    database.init('sqlite://')
    yield database
    database.dispose()


@pytest.fixture
def storage(database):
    session = database.get_session()
    yield StorageService(session)
    session.close()


def utc(*args) -> datetime.datetime:
    return datetime.datetime(*args, tzinfo=datetime.UTC)


def listens(artist, album, count, start, step=datetime.timedelta(hours=1), track='Track'):
    """`count` listens to one album, `step` apart, cycling over three track names"""
    return [
        TrackImport(artist=artist, album=album, name=f"{track} {i % 3}", timestamp=start + step * i)
        for i in range(count)
    ]
