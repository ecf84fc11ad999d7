"""Taste drift between a historical and a current tag ranking"""
from typing import Sequence

from scrobble_insights.models.report import DriftTag, TagStat, TasteDrift

DRIFT_TOP_N = 20


def calculate_drift(historical: Sequence[TagStat], current: Sequence[TagStat],
                    top_n: int = DRIFT_TOP_N) -> TasteDrift:
    """
    Find tags that vanished from, or newly appeared in, the current period.

    A historical top tag has declined only when it is missing from the whole
    current ranking, not merely from its top; emerged tags mirror this.
    Both inputs must already be sorted by weight, highest first.
    """
    historical_tags = {stat.tag for stat in historical}
    current_tags = {stat.tag for stat in current}

    declined = [
        DriftTag(tag=stat.tag, historical_weight=stat.weight, current_weight=0.0)
        for stat in historical[:top_n]
        if stat.tag not in current_tags
    ]
    emerged = [
        DriftTag(tag=stat.tag, historical_weight=0.0, current_weight=stat.weight)
        for stat in current[:top_n]
        if stat.tag not in historical_tags
    ]
    return TasteDrift(declined_tags=declined, emerged_tags=emerged)
