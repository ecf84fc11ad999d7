"""Tag normalization and period-scoped tag weighting"""
import datetime
import logging
import re
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from scrobble_insights.models.listening import AlbumScrobbleCount, TagAssociation
from scrobble_insights.models.report import TagStat
from scrobble_insights.utils.rounding import round_half_up

logger = logging.getLogger(__name__)

MIN_TAG_COUNT = 25
MIN_TAG_LENGTH = 3
MIN_TAGS_PER_SUBJECT = 2
YEAR_PATTERN = re.compile(r'^\d{4}$')


def normalize_tag(tag: str) -> str:
    """Lower-case, turn hyphens and underscores into spaces, trim"""
    return tag.lower().replace('-', ' ').replace('_', ' ').strip()


def filter_tags(tags: Iterable[Tuple[str, int]]) -> List[str]:
    """
    Clean one subject's (tag, raw count) pairs.

    Pairs below the minimum count, bare years and very short tags are
    dropped. Input order (highest count first) is preserved. Entries that
    normalize to the same form are all kept; weighting unions them later.
    """
    valid: List[str] = []
    for tag, count in tags:
        if count < MIN_TAG_COUNT:
            continue
        normalized = normalize_tag(tag)
        if YEAR_PATTERN.match(normalized):
            continue
        if len(normalized) < MIN_TAG_LENGTH:
            continue
        valid.append(normalized)
    return valid


def build_tag_index(associations: Iterable[TagAssociation]) -> Dict[Hashable, List[str]]:
    """
    Group associations by subject and normalize each group.

    Subjects left with fewer than two tags are omitted, so a single loosely
    associated tag never counts as a subject's primary tag.
    """
    grouped: Dict[Hashable, List[Tuple[str, int]]] = {}
    for association in associations:
        grouped.setdefault(association.subject, []).append((association.tag, association.count))

    index = {}
    for subject, pairs in grouped.items():
        valid = filter_tags(pairs)
        if len(valid) >= MIN_TAGS_PER_SUBJECT:
            index[subject] = valid
    return index


def weight_tags(
    album_counts: Iterable[AlbumScrobbleCount],
    artist_tags: Mapping[str, Sequence[str]],
    album_tags: Mapping[Tuple[str, str], Sequence[str]],
    total_scrobbles: int,
    limit: int,
) -> List[TagStat]:
    """
    Rank tags by the share of a period's scrobbles they influenced.

    Each listened album contributes its scrobble count once to every tag in
    the union of its artist and album tags. Tag totals are divided by the
    period's scrobble count (not the sum of assignments, which counts a
    listen once per tag), rounded to 2 decimals, sorted by weight then tag
    name, and truncated to `limit`.
    """
    tag_counts: Dict[str, int] = {}
    total_weight = 0

    for album in album_counts:
        tags = set(artist_tags.get(album.artist, ()))
        tags.update(album_tags.get((album.artist, album.title), ()))
        for tag in tags:
            tag_counts[tag] = tag_counts.get(tag, 0) + album.scrobbles
            total_weight += album.scrobbles

    logger.debug(f"Weighted {len(tag_counts)} tags from {total_weight} tag assignments")

    denominator = total_scrobbles if total_scrobbles > 0 else 1
    ranked = sorted(tag_counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return [
        TagStat(tag=tag, weight=round_half_up(count / denominator, 2))
        for tag, count in ranked
    ]


TagIndexes = Tuple[Dict[Hashable, List[str]], Dict[Hashable, List[str]]]


def load_tag_indexes(storage) -> TagIndexes:
    """Artist and album tag indexes, built from every stored association"""
    return build_tag_index(storage.get_all_artist_tags()), build_tag_index(storage.get_all_album_tags())


def get_top_tags_weighted(storage, user: str, start: datetime.datetime, end: datetime.datetime,
                          limit: int, indexes: Optional[TagIndexes] = None) -> List[TagStat]:
    """
    Weighted tag ranking for one user and window, read from the Store.

    Pass `indexes` from load_tag_indexes to reuse them across windows.
    """
    artist_tags, album_tags = indexes or load_tag_indexes(storage)
    album_counts = storage.get_album_listen_counts(user, start, end)
    total = storage.get_total_scrobbles_in_period(user, start, end)

    stats = weight_tags(album_counts, artist_tags, album_tags, total, limit)
    logger.info(f"Top tags for {user} {start:%Y-%m-%d} to {end:%Y-%m-%d}: {len(stats)} tags")
    return stats
