"""
sharedclustering/selection.py
=============================
Choosing which matches take part in clustering.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from .models import ClusterableMatch, LeafNode
from .progress import ProgressData, SuppressProgress

logger = logging.getLogger(__name__)

_IMMEDIATE_FAMILY_CENTIMORGANS = 200
_MIN_SHARED_MATCH_CENTIMORGANS = 20


def select_immediate_family(
    matches: Sequence[ClusterableMatch],
    min_centimorgans: float = _IMMEDIATE_FAMILY_CENTIMORGANS,
) -> list[ClusterableMatch]:
    """
    Matches above ``min_centimorgans``. If they make up more than half of all
    matches the cutoff is meaningless for this tester and nothing is returned.
    """
    family = [match for match in matches if match.match.shared_centimorgans > min_centimorgans]
    if len(family) > len(matches) / 2:
        logger.info(f"{len(family)} of {len(matches)} matches above {min_centimorgans} cM, not treating any as immediate family")
        return []
    return family


def exclude_large_clusters(
    matches: Sequence[ClusterableMatch],
    max_cluster_size: Optional[int],
    progress: Optional[ProgressData] = None,
) -> list[ClusterableMatch]:
    """
    Drop matches belonging to clusters larger than ``max_cluster_size``,
    typically caused by endogamy. ``None`` disables the filter.

    Matches of at least 20 cM with more than ``max_cluster_size`` shared
    matches are excluded tentatively, together with matches whose shared
    matches are more than half excluded. The set is then narrowed until every
    excluded match shares more than ``max_cluster_size`` (or more than half)
    of its matches with the rest of the excluded set.
    """
    if max_cluster_size is None:
        return list(matches)

    progress = progress if progress is not None else SuppressProgress()
    with progress.scoped(f"Excluding clusters greater than {max_cluster_size} members"):
        over_20 = [m for m in matches if m.match.shared_centimorgans >= _MIN_SHARED_MATCH_CENTIMORGANS]

        excluded = [m for m in over_20 if m.count > max_cluster_size]
        excluded_indexes = {m.index for m in excluded}
        excluded += [
            m for m in over_20
            if m.index not in excluded_indexes
            and _intersection(m, excluded_indexes) > m.count // 2
        ]

        while True:
            excluded_indexes = {m.index for m in excluded}
            narrowed = [
                m for m in excluded
                if _intersection(m, excluded_indexes) > max_cluster_size
                or _intersection(m, excluded_indexes) > m.count // 2
            ]
            if len(narrowed) == len(excluded):
                break
            excluded = narrowed

        excluded_indexes = {m.index for m in excluded}

    logger.info(f"Excluded {len(excluded_indexes)} matches in clusters larger than {max_cluster_size}")
    return [m for m in matches if m.index not in excluded_indexes]


def _intersection(match: ClusterableMatch, indexes: set[int]) -> int:
    return sum(1 for coord in match.coords if coord in indexes)


def non_distant_matches(
    leaf_nodes: Sequence[LeafNode],
    matches_by_index: Mapping[int, ClusterableMatch],
    lowest_clusterable_centimorgans: float = _MIN_SHARED_MATCH_CENTIMORGANS,
) -> list[ClusterableMatch]:
    """
    Matches (in leaf order) strong enough to appear in someone's shared-match
    list. The cutoff is the weakest match that actually appears as a
    coordinate of another match, but not below
    ``lowest_clusterable_centimorgans``. Distant matches stay as rows of a
    correlation diagram but are not used as columns.
    """
    matches = [matches_by_index[leaf.index] for leaf in leaf_nodes if leaf.index in matches_by_index]
    listed = {
        coord
        for match in matches
        for coord in match.coords
        if coord != match.index and coord in matches_by_index
    }
    cutoff = min(
        (
            matches_by_index[coord].match.shared_centimorgans
            for coord in listed
            if matches_by_index[coord].match.shared_centimorgans >= lowest_clusterable_centimorgans
        ),
        default=lowest_clusterable_centimorgans,
    )
    return [match for match in matches if match.match.shared_centimorgans >= cutoff]
