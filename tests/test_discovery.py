"""Tests for newly discovered artists and albums."""
import pytest
from conftest import USER, listens, utc

from scrobble_insights.analysis.discovery import find_new, get_new_albums, get_new_artists, is_new

START = utc(2024, 1, 1)
END = utc(2024, 4, 1)


@pytest.mark.parametrize('previous,current,expected', [
    (0, 6, True),
    (4, 6, True),
    (5, 6, False),   # heard enough before the window
    (0, 5, False),   # not enough within it
    (10, 100, False),
])
def test_is_new(previous, current, expected):
    assert is_new(previous, current) is expected


def test_find_new_orders_and_limits():
    previous = {'Known': 20, 'Glimpsed': 2}
    current = {'Known': 30, 'Glimpsed': 9, 'Beta': 9, 'Alpha': 12, 'Brief': 3}

    assert find_new(previous, current) == [('Alpha', 12, 0), ('Beta', 9, 0), ('Glimpsed', 9, 2)]
    assert find_new(previous, current, limit=2) == [('Alpha', 12, 0), ('Beta', 9, 0)]


@pytest.fixture
def history(storage):
    storage.add_listens(USER, listens('Veteran', 'Old', 10, utc(2023, 3, 1)))
    storage.add_listens(USER, listens('Veteran', 'New LP', 6, utc(2024, 2, 1)))
    storage.add_listens(USER, listens('Returning', 'Demo', 3, utc(2022, 5, 1)))
    storage.add_listens(USER, listens('Returning', 'Demo', 8, utc(2024, 1, 10)))
    storage.add_listens(USER, listens('Fresh', 'Debut', 12, utc(2024, 3, 1)))
    storage.add_listens(USER, listens('Passing', 'Single', 5, utc(2024, 3, 2)))
    storage.add_listens(USER, listens('Loose', '', 10, utc(2024, 3, 3)))
    storage.add_listens(USER, listens('Later', 'Sequel', 9, utc(2024, 4, 1)))
    return storage


def test_new_artists(history):
    report = get_new_artists(history, USER, START, END)

    assert [(e.artist, e.scrobbles, e.previous_scrobbles) for e in report.entries] == [
        ('Fresh', 12, 0),
        ('Loose', 10, 0),
        ('Returning', 8, 3),
    ]
    assert report.previous_count == 2
    assert report.current_count == 5
    assert report.period == '2024-01-01 to 2024-03-31'


def test_new_artists_limit(history):
    report = get_new_artists(history, USER, START, END, limit=1)

    assert [e.artist for e in report.entries] == ['Fresh']


def test_new_albums_skip_tracks_without_album(history):
    report = get_new_albums(history, USER, START, END)

    assert [(e.artist, e.album, e.scrobbles) for e in report.entries] == [
        ('Fresh', 'Debut', 12),
        ('Returning', 'Demo', 8),
        ('Veteran', 'New LP', 6),
    ]
    assert report.entries[1].previous_scrobbles == 3
    assert report.previous_count == 2


def test_empty_history(storage):
    report = get_new_artists(storage, USER, START, END)

    assert report.entries == []
    assert report.current_count == 0
