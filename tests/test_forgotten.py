"""Tests for forgotten artist and album banding."""
import datetime

import pytest
from conftest import USER, listens, utc

from scrobble_insights.analysis.forgotten import (
    BAND_MODERATE, BAND_OBSESSION, BAND_STRONG, assign_band, band_entities, days_since,
    get_forgotten_albums, get_forgotten_artists, get_threshold, query_options
)
from scrobble_insights.config import ALBUM_BAND_THRESHOLDS, ARTIST_BAND_THRESHOLDS, ForgottenConfig
from scrobble_insights.errors import ConfigurationError
from scrobble_insights.config import build_config
from scrobble_insights.models.listening import SubjectListenStats

NOW = utc(2024, 6, 1, 12)


def stat(artist, total, last, album=None):
    return SubjectListenStats(
        artist=artist, album=album, total_scrobbles=total, first_listen=utc(2015, 1, 1), last_listen=last
    )


@pytest.mark.parametrize('total,band', [
    (120, BAND_OBSESSION),
    (119, BAND_STRONG),
    (50, BAND_STRONG),
    (15, BAND_MODERATE),
    (14, None),
])
def test_assign_band_artist_scale(total, band):
    assert assign_band(total, ARTIST_BAND_THRESHOLDS) == band


def test_album_scale_is_independent():
    assert assign_band(60, ALBUM_BAND_THRESHOLDS) == BAND_OBSESSION
    assert assign_band(60, ARTIST_BAND_THRESHOLDS) == BAND_STRONG
    assert assign_band(10, ALBUM_BAND_THRESHOLDS) == BAND_MODERATE
    assert assign_band(10, ARTIST_BAND_THRESHOLDS) is None


def test_get_threshold():
    assert get_threshold(BAND_STRONG, is_artist=True) == 50
    assert get_threshold(BAND_STRONG, is_artist=False) == 30
    assert get_threshold('Unknown', is_artist=True) == 0


def test_days_since_rounds_down():
    assert days_since(NOW - datetime.timedelta(days=3, hours=23), NOW) == 3
    assert days_since(NOW - datetime.timedelta(days=4), NOW) == 4


def test_band_entities_sorted_by_dormancy():
    stats = [
        stat('Recent', 60, NOW - datetime.timedelta(days=100)),
        stat('Old', 55, NOW - datetime.timedelta(days=400)),
        stat('Tied B', 70, NOW - datetime.timedelta(days=200)),
        stat('Tied A', 70, NOW - datetime.timedelta(days=200)),
        stat('Quiet', 5, NOW - datetime.timedelta(days=900)),
    ]

    bands = band_entities(stats, ARTIST_BAND_THRESHOLDS, NOW, 'dormancy', results_per_band=10)

    assert list(bands) == [BAND_STRONG]
    assert [e.artist for e in bands[BAND_STRONG]] == ['Old', 'Tied A', 'Tied B', 'Recent']
    assert bands[BAND_STRONG][0].days_since_last == 400


def test_band_entities_sorted_by_listens_and_capped():
    stats = [
        stat('A', 20, NOW - datetime.timedelta(days=100)),
        stat('B', 40, NOW - datetime.timedelta(days=100)),
        stat('C', 30, NOW - datetime.timedelta(days=300)),
        stat('D', 30, NOW - datetime.timedelta(days=200)),
    ]

    bands = band_entities(stats, ARTIST_BAND_THRESHOLDS, NOW, 'listens', results_per_band=3)

    assert [e.artist for e in bands[BAND_MODERATE]] == ['B', 'C', 'D']


def test_partial_threshold_override_keeps_defaults():
    config = build_config(ForgottenConfig, {'artist_thresholds': {'strong': '40'}})

    assert config.artist_thresholds.strong == 40
    assert config.artist_thresholds.obsession == 120
    assert config.album_thresholds == ALBUM_BAND_THRESHOLDS


def test_unordered_thresholds_rejected():
    with pytest.raises(ConfigurationError):
        build_config(ForgottenConfig, {'artist_thresholds': {'strong': 200}})


def test_forgotten_from_store(storage):
    storage.add_listens(USER, listens('Old Favourite', 'Classic', 130, utc(2020, 1, 1)))
    storage.add_listens(USER, listens('Still Playing', 'Fresh', 60, NOW - datetime.timedelta(days=5)))
    storage.add_listens(USER, listens('Barely', 'Once', 3, utc(2020, 2, 1)))

    config = ForgottenConfig()
    artists = get_forgotten_artists(storage, USER, config, NOW)
    albums = get_forgotten_albums(storage, USER, config, NOW)

    assert list(artists) == [BAND_OBSESSION]
    assert [e.artist for e in artists[BAND_OBSESSION]] == ['Old Favourite']
    assert artists[BAND_OBSESSION][0].total_scrobbles == 130
    assert [(e.artist, e.album) for e in albums[BAND_OBSESSION]] == [('Old Favourite', 'Classic')]


def test_forgotten_window_filters(storage):
    storage.add_listens(USER, listens('Early', 'A', 20, utc(2018, 1, 1)))
    storage.add_listens(USER, listens('Later', 'B', 20, utc(2021, 1, 1)))

    config = ForgottenConfig(first_listen_after=utc(2020, 1, 1))
    artists = get_forgotten_artists(storage, USER, config, NOW)

    assert [e.artist for e in artists[BAND_MODERATE]] == ['Later']


def test_bounds_accept_ages():
    config = build_config(ForgottenConfig, {'last_listen_before': '30d', 'first_listen_after': '2y'})

    assert config.last_listen_before == '30d'
    opts = query_options(config, 10, NOW)
    assert opts.last_listen_before == NOW - datetime.timedelta(days=30)
    assert opts.first_listen_after == utc(2022, 6, 1, 12)
    assert opts.first_listen_before == NOW


def test_bounds_accept_partial_dates():
    config = build_config(ForgottenConfig, {'first_listen_after': '2020-01', 'last_listen_after': '2019'})

    assert config.first_listen_after == utc(2020, 1, 1)
    assert config.last_listen_after == utc(2019, 1, 1)


def test_bad_bound_rejected():
    with pytest.raises(ConfigurationError):
        build_config(ForgottenConfig, {'last_listen_before': 'ninety days'})


def test_forgotten_age_filter_from_store(storage):
    storage.add_listens(USER, listens('Dormant', 'A', 20, utc(2024, 1, 1)))
    storage.add_listens(USER, listens('Recent', 'B', 20, NOW - datetime.timedelta(days=20)))

    config = build_config(ForgottenConfig, {'last_listen_before': '10d'})
    artists = get_forgotten_artists(storage, USER, config, NOW)

    assert [e.artist for e in artists[BAND_MODERATE]] == ['Dormant', 'Recent']
