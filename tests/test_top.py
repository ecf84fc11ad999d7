"""Tests for the top-n listing."""
import pytest
from conftest import USER, listens, utc

from scrobble_insights.analysis.top import build_top_n
from scrobble_insights.config import TopNConfig

START = utc(2024, 1, 1)
END = utc(2024, 2, 1)


@pytest.fixture
def history(storage):
    storage.add_listens(USER, listens('Band', 'Record', 6, utc(2024, 1, 5)))
    storage.add_listens(USER, listens('Band', '', 2, utc(2024, 1, 6), track='Loose'))
    storage.add_listens(USER, listens('Other', 'Single', 3, utc(2024, 1, 7)))
    storage.add_listens(USER, listens('Outside', 'Later', 9, utc(2024, 2, 1)))
    storage.save_artist_tags('Band', [('Rock', 100), ('Indie', 50)])
    storage.save_album_tags('Band', 'Record', [('Shoegaze', 90), ('Dream Pop', 40)])
    return storage


def test_build_top_n(history):
    report = build_top_n(history, USER, START, END, TopNConfig(artists=2, albums=5, tracks=2, tags=1))

    assert report.period == '2024-01-01 to 2024-01-31'
    assert report.total_scrobbles == 11
    assert [(a.name, a.scrobbles, a.tags) for a in report.top_artists] == [
        ('Band', 8, ['Rock']),
        ('Other', 3, []),
    ]
    assert [(a.title, a.artist, a.scrobbles, a.tags) for a in report.top_albums] == [
        ('Record', 'Band', 6, ['Shoegaze']),
        ('Single', 'Other', 3, []),
    ]
    assert [(t.name, t.artist, t.scrobbles) for t in report.top_tracks] == [
        ('Track 0', 'Band', 2),
        ('Track 1', 'Band', 2),
    ]


def test_zero_limits_skip_sections(history, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("section should not be queried")

    for method in ('get_top_artists', 'get_top_albums', 'get_top_tracks', 'get_top_tags_for_artist'):
        monkeypatch.setattr(history, method, fail)

    report = build_top_n(history, USER, START, END, TopNConfig(artists=0, albums=0, tracks=0))

    assert report.total_scrobbles == 11
    assert report.top_artists == report.top_albums == report.top_tracks == []


def test_zero_tag_limit_skips_tag_lookups(history, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("tags should not be queried")

    monkeypatch.setattr(history, 'get_top_tags_for_artist', fail)
    monkeypatch.setattr(history, 'get_top_tags_for_album', fail)

    report = build_top_n(history, USER, START, END, TopNConfig(tags=0))

    assert report.top_artists[0].tags == []
    assert len(report.top_tracks) == 8
