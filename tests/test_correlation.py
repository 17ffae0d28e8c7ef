"""
tests/test_correlation.py
=========================
Correlated-cluster detection for single and overlapping memberships.
Run with: pytest tests/test_correlation.py -v
"""

import pytest

from sharedclustering.correlation import (
    CorrelatedClustersFinder,
    CorrelatedOverlappingClustersFinder,
    _CorrelatedClustersBase,
)
from sharedclustering.models import LeafNode


@pytest.fixture
def leaves():
    # Leaf 0 (cluster 1) is tied to its own cluster, to all of cluster 2,
    # to one member of cluster 3 and to the unclustered leaf 9.
    focus = LeafNode(0, {1: 1.0, 2: 2.0, 3: 1.0, 4: 1.0, 5: 1.5, 6: 1.0, 9: 1.0, 7: 0.5})
    others = [LeafNode(i, {0: 1.0}) for i in (1, 2, 3, 4, 5, 6, 7, 9)]
    return [focus] + others


@pytest.fixture
def numbers():
    return {0: 1, 1: 1, 2: 1, 3: 2, 4: 2, 5: 2, 6: 3, 7: 3}


# ══════════════════════════════════════════════════════════════════════════════
# SINGLE MEMBERSHIP
# ══════════════════════════════════════════════════════════════════════════════

def test_correlated_clusters(leaves, numbers):
    finder = CorrelatedClustersFinder(leaves, (), numbers, min_cluster_size=3)
    assert finder.get_correlated_clusters(leaves[0]) == [2]


def test_threshold_is_min_cluster_size(leaves, numbers):
    assert CorrelatedClustersFinder(leaves, (), numbers, 4).get_correlated_clusters(leaves[0]) == []
    assert CorrelatedClustersFinder(leaves, (), numbers, 1).get_correlated_clusters(leaves[0]) == [2, 3]


def test_immediate_family_does_not_vote(leaves, numbers):
    finder = CorrelatedClustersFinder(leaves, {3}, numbers, min_cluster_size=3)
    assert finder.get_correlated_clusters(leaves[0]) == []


def test_unclustered_leaf_still_reports(leaves, numbers):
    lonely = LeafNode(10, {3: 1.0, 4: 1.0, 5: 1.0, 1: 1.0})
    finder = CorrelatedClustersFinder(leaves + [lonely], (), numbers, min_cluster_size=3)
    assert finder.get_correlated_clusters(lonely) == [2]


def test_by_index_covers_every_leaf(leaves, numbers):
    result = CorrelatedClustersFinder(leaves, (), numbers, 3).correlated_clusters_by_index()
    assert set(result) == {leaf.index for leaf in leaves}
    assert result[1] == []


def test_inputs_are_copied_read_only(leaves, numbers):
    finder = CorrelatedClustersFinder(leaves, (), numbers, 3)
    numbers[3] = numbers[4] = numbers[5] = 1
    assert finder.get_correlated_clusters(leaves[0]) == [2]
    with pytest.raises(TypeError):
        finder.index_cluster_numbers[0] = 5


def test_shared_base_cannot_be_instantiated(leaves):
    with pytest.raises(TypeError):
        _CorrelatedClustersBase(leaves, (), 3)


# ══════════════════════════════════════════════════════════════════════════════
# OVERLAPPING MEMBERSHIP
# ══════════════════════════════════════════════════════════════════════════════

def test_overlapping_votes_are_flattened(leaves):
    numbers = {0: [1], 1: [1], 2: [1, 2], 3: [2], 4: [2], 5: [2, 3], 6: [3]}
    finder = CorrelatedOverlappingClustersFinder(leaves, (), numbers, min_cluster_size=3)
    # cluster 2: leaves 2, 3, 4, 5; cluster 3: leaves 5, 6
    assert finder.get_correlated_clusters(leaves[0]) == [2]
    assert CorrelatedOverlappingClustersFinder(leaves, (), numbers, 2).get_correlated_clusters(leaves[0]) == [2, 3]


def test_overlapping_excludes_all_own_clusters(leaves):
    numbers = {0: [1, 2], 1: [1], 2: [1, 2], 3: [2], 4: [2], 5: [2, 3], 6: [3]}
    finder = CorrelatedOverlappingClustersFinder(leaves, (), numbers, min_cluster_size=2)
    assert finder.get_correlated_clusters(leaves[0]) == [3]


def test_overlapping_leaf_without_clusters_reports_nothing(leaves):
    numbers = {1: [1], 2: [1], 3: [2], 4: [2], 5: [2]}
    finder = CorrelatedOverlappingClustersFinder(leaves, (), numbers, min_cluster_size=1)
    assert finder.get_correlated_clusters(leaves[0]) == []


if __name__ == "__main__":
    import subprocess, sys
    subprocess.run([sys.executable, "-m", "pytest", __file__, "-v"])
