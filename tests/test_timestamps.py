"""Tests for date strings, ages and periods."""
import datetime

import pytest
from conftest import utc

from scrobble_insights.utils.timestamps import (
    format_period, is_relative, parse_date_string, parse_period, resolve_relative
)

NOW = utc(2024, 6, 15, 12)


def test_parse_date_string_granularity():
    assert parse_date_string('2024') == (utc(2024, 1, 1), 'year')
    assert parse_date_string('2024-02') == (utc(2024, 2, 1), 'month')
    assert parse_date_string(' 2024-02-29 ') == (utc(2024, 2, 29), 'day')


@pytest.mark.parametrize('text', ['24', '2024-13', '2023-02-29', '2024/01/01', 'last year'])
def test_parse_date_string_rejects(text):
    with pytest.raises(ValueError):
        parse_date_string(text)


def test_resolve_relative():
    assert is_relative('90d')
    assert not is_relative('90 days')
    assert resolve_relative('30d', NOW) == NOW - datetime.timedelta(days=30)
    assert resolve_relative('2w', NOW) == NOW - datetime.timedelta(days=14)
    assert resolve_relative('1m', utc(2024, 3, 31)) == utc(2024, 2, 29)
    assert resolve_relative('1y', NOW) == utc(2023, 6, 15, 12)


@pytest.mark.parametrize('values,expected', [
    (['2024'], (utc(2024, 1, 1), utc(2025, 1, 1))),
    (['2024-02'], (utc(2024, 2, 1), utc(2024, 3, 1))),
    (['2024-12'], (utc(2024, 12, 1), utc(2025, 1, 1))),
    (['2024-02-29'], (utc(2024, 2, 29), utc(2024, 3, 1))),
    (['2023', '2024-06'], (utc(2023, 1, 1), utc(2024, 6, 1))),
    (['30d'], (utc(2024, 5, 16, 12), NOW)),
    (['1y', '2024-01-01'], (utc(2023, 6, 15, 12), utc(2024, 1, 1))),
])
def test_parse_period(values, expected):
    assert parse_period(values, now=NOW) == expected


@pytest.mark.parametrize('values', [[], ['2023', '2024', '2025'], ['2024-06', '2024-01'], ['2024', '2024']])
def test_parse_period_rejects(values):
    with pytest.raises(ValueError):
        parse_period(values, now=NOW)


def test_format_period_names_last_included_day():
    assert format_period(utc(2024, 1, 1), utc(2024, 2, 1)) == '2024-01-01 to 2024-01-31'
