"""Tests for taste drift."""
from scrobble_insights.analysis.drift import calculate_drift
from scrobble_insights.models.report import TagStat


def stats(*pairs):
    return [TagStat(tag=tag, weight=weight) for tag, weight in pairs]


def test_declined_and_emerged():
    historical = stats(('rock', 0.6), ('metal', 0.4), ('folk', 0.1))
    current = stats(('rock', 0.5), ('ambient', 0.3))

    drift = calculate_drift(historical, current)

    assert [(d.tag, d.historical_weight, d.current_weight) for d in drift.declined_tags] == [
        ('metal', 0.4, 0.0),
        ('folk', 0.1, 0.0),
    ]
    assert [(d.tag, d.historical_weight, d.current_weight) for d in drift.emerged_tags] == [
        ('ambient', 0.0, 0.3),
    ]


def test_absence_checked_against_full_ranking():
    # 'deep' sits outside the current top 2 but is still present, so it has not declined
    historical = stats(('deep', 0.5), ('gone', 0.4))
    current = stats(('new', 0.6), ('fresh', 0.5), ('deep', 0.1))

    drift = calculate_drift(historical, current, top_n=2)

    assert [d.tag for d in drift.declined_tags] == ['gone']
    assert [d.tag for d in drift.emerged_tags] == ['new', 'fresh']


def test_only_top_n_considered():
    historical = stats(*[(f"tag{i:02d}", 0.5) for i in range(25)])

    drift = calculate_drift(historical, [])

    assert len(drift.declined_tags) == 20
    assert drift.emerged_tags == []


def test_drift_sides_are_disjoint():
    historical = stats(('a', 0.5), ('b', 0.4), ('c', 0.3))
    current = stats(('b', 0.5), ('d', 0.4))

    drift = calculate_drift(historical, current)
    declined = {d.tag for d in drift.declined_tags}
    emerged = {d.tag for d in drift.emerged_tags}

    assert not declined & emerged
    assert not declined & {s.tag for s in current}
    assert not emerged & {s.tag for s in historical}


def test_identical_rankings_have_no_drift():
    ranking = stats(('rock', 0.7), ('jazz', 0.2))

    drift = calculate_drift(ranking, ranking)

    assert drift.declined_tags == []
    assert drift.emerged_tags == []


def test_emerged_round_trip():
    historical = stats(('rock', 0.6), ('metal', 0.4))
    current = stats(('rock', 0.5), ('ambient', 0.3), ('drone', 0.2))

    drift = calculate_drift(historical, current)
    historical2 = historical + [TagStat(tag=d.tag, weight=d.current_weight) for d in drift.emerged_tags]

    assert [d.tag for d in drift.emerged_tags] == ['ambient', 'drone']
    assert calculate_drift(historical2, current).emerged_tags == []
