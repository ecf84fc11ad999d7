"""End-to-end tests for the taste report."""
import json

import pytest
from conftest import USER, listens, utc

from scrobble_insights.analysis.patterns import ALBUM_ORIENTED
from scrobble_insights.analysis.report import generate_report, resolve_periods
from scrobble_insights.config import ReportConfig
from scrobble_insights.utils.json_encoder import json_dumps

NOW = utc(2024, 6, 1)


@pytest.fixture
def history(storage):
    storage.add_listens(USER, listens('Old', 'Past', 20, utc(2020, 1, 1)))
    storage.add_listens(USER, listens('Both', 'Then', 5, utc(2020, 2, 1)))
    storage.add_listens(USER, listens('New', 'Now', 10, utc(2024, 3, 1)))
    storage.add_listens(USER, listens('Both', 'Again', 5, utc(2024, 3, 2)))
    storage.save_artist_tags('Old', [('Metal', 100), ('Doom', 50)])
    storage.save_artist_tags('New', [('Ambient', 100), ('Drone', 60)])
    storage.save_artist_tags('Both', [('Rock', 100), ('Indie', 50)])
    storage.save_album_tags('New', 'Now', [('Dark Ambient', 90), ('Drone', 80)])
    return storage


def test_resolve_periods():
    periods = resolve_periods(utc(2015, 1, 1), utc(2024, 3, 2, 4), NOW, current_months=18)

    assert periods.current_start == utc(2022, 9, 2, 4)
    assert periods.current_end == utc(2024, 3, 2, 4, 0, 1)
    assert periods.historical_start == utc(2015, 1, 1)
    assert periods.historical_end == periods.current_start
    assert periods.latest_listen == utc(2024, 3, 2, 4)


def test_resolve_periods_without_listens():
    periods = resolve_periods(None, None, NOW)

    assert periods.historical_start == periods.historical_end == periods.current_start


def test_generate_report(history):
    report = generate_report(history, USER, ReportConfig(), now=NOW)

    assert report.metadata.generated_date == '2024-06-01'
    assert report.metadata.total_scrobbles == 40
    assert report.metadata.total_artists == 3
    assert report.metadata.current_period == '2022-09-02 to 2024-03-02'
    assert report.metadata.listening_style == ALBUM_ORIENTED

    current = report.current_taste
    assert [(a.name, a.scrobbles, a.in_historical_baseline) for a in current.top_artists] == [
        ('New', 10, False),
        ('Both', 5, True),
    ]
    assert current.top_artists[0].top_albums == ['Now']
    assert current.top_artists[0].primary_tags == ['Ambient', 'Drone']
    assert [(a.title, a.artist) for a in current.top_albums] == [('Now', 'New'), ('Again', 'Both')]

    historical = report.historical_baseline
    assert [(a.name, a.in_current_taste, a.peak_years) for a in historical.top_artists] == [
        ('Old', False, '2020'),
        ('Both', True, '2020-2024'),
    ]
    assert historical.top_albums == []

    assert {t.tag for t in historical.top_tags} == {'metal', 'doom', 'rock', 'indie'}
    assert current.top_tags[0].tag == 'ambient'
    for stat in current.top_tags + historical.top_tags:
        assert 0.0 <= stat.weight <= 1.0

    assert {d.tag for d in report.taste_drift.declined_tags} == {'metal', 'doom'}
    assert {d.tag for d in report.taste_drift.emerged_tags} == {'ambient', 'dark ambient', 'drone'}

    assert report.listening_patterns.new_artists_in_last_12_months == 1
    assert report.listening_patterns.repeat_listening_ratio == 0.93


def test_report_serializes_to_json(history):
    report = generate_report(history, USER, now=NOW)

    data = json.loads(json_dumps(report))

    assert data['metadata']['total_scrobbles'] == 40
    assert set(data) == {
        'metadata', 'current_taste', 'historical_baseline', 'taste_drift', 'listening_patterns'
    }


def test_empty_history(storage):
    report = generate_report(storage, USER, now=NOW)

    assert report.metadata.total_scrobbles == 0
    assert report.current_taste.top_artists == []
    assert report.current_taste.top_tags == []
    assert report.listening_patterns.repeat_listening_ratio == 0.0


def test_current_period_ends_on_latest_listen_day(storage):
    storage.add_listens(USER, listens('Band', 'Late', 1, utc(2024, 3, 2, 23, 59, 59)))

    report = generate_report(storage, USER, now=NOW)

    assert report.metadata.current_period == '2022-09-02 to 2024-03-02'
    assert report.current_taste.top_artists[0].scrobbles == 1


def test_tag_indexes_loaded_once_per_report(history, monkeypatch):
    calls = []
    load_artist_tags = history.get_all_artist_tags
    load_album_tags = history.get_all_album_tags

    def counted(name, load):
        def wrapper():
            calls.append(name)
            return load()
        return wrapper

    monkeypatch.setattr(history, 'get_all_artist_tags', counted('artist', load_artist_tags))
    monkeypatch.setattr(history, 'get_all_album_tags', counted('album', load_album_tags))

    generate_report(history, USER, now=NOW)

    assert sorted(calls) == ['album', 'artist']
