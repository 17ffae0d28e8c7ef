"""
tests/test_primary_clusters.py
==============================
Half-match and growth-based partitioning, cluster numbering.
Run with: pytest tests/test_primary_clusters.py -v
"""

import numpy as np
import pytest

from sharedclustering.match_matrix import MatchMatrix
from sharedclustering.models import ClusterNode, LeafNode, LeafSpan
from sharedclustering.primary_clusters import (
    GrowthBasedPrimaryClusterFinder,
    HalfMatchPrimaryClusterFinder,
    assign_cluster_numbers,
    assign_overlapping_cluster_numbers,
    build_match_matrix,
    create_primary_cluster_finder,
    unclustered_leaves,
)

from conftest import chain


def leaf_indexes(cluster):
    return [leaf.index for leaf in cluster.ordered_leaf_nodes]


# ══════════════════════════════════════════════════════════════════════════════
# TREE
# ══════════════════════════════════════════════════════════════════════════════

def test_ordered_leaves_and_boundaries(two_group_tree):
    assert leaf_indexes(two_group_tree) == list(range(8))
    assert two_group_tree.first_leaf.index == 0
    assert two_group_tree.second_leaf.index == 7
    assert two_group_tree.num_children == 8


# ══════════════════════════════════════════════════════════════════════════════
# HALF MATCH
# ══════════════════════════════════════════════════════════════════════════════

def test_half_match_splits_two_groups(two_group_tree):
    clusters = HalfMatchPrimaryClusterFinder().get_primary_clusters(two_group_tree)
    assert [leaf_indexes(c) for c in clusters] == [[0, 1, 2, 3], [4, 5, 6, 7]]
    assert clusters[0] is two_group_tree.first


def test_half_match_accepts_coherent_root():
    # Every leaf correlated with every other: one cluster.
    leaves = [LeafNode(i, {j: 1.0 for j in range(4) if j != i}) for i in range(4)]
    root = chain(leaves)
    assert HalfMatchPrimaryClusterFinder().get_primary_clusters(root) == [root]


def test_half_match_threshold_is_ceiling_of_half():
    # 3 leaves: boundary leaves need ceil(3/2) = 2 correlations inside.
    a = LeafNode(0, {1: 1.0, 2: 1.0})
    b = LeafNode(1, {0: 1.0})
    c = LeafNode(2, {0: 1.0})
    root = ClusterNode(ClusterNode(a, b), c)
    assert HalfMatchPrimaryClusterFinder().get_primary_clusters(root) == [root.first]

    c_strong = LeafNode(2, {0: 1.0, 1: 1.0})
    root = ClusterNode(ClusterNode(a, b), c_strong)
    assert HalfMatchPrimaryClusterFinder().get_primary_clusters(root) == [root]


def test_half_match_ignores_weak_correlations():
    a = LeafNode(0, {1: 0.9})
    b = LeafNode(1, {0: 0.9})
    assert HalfMatchPrimaryClusterFinder().get_primary_clusters(ClusterNode(a, b)) == []


def test_half_match_degenerate_inputs():
    finder = HalfMatchPrimaryClusterFinder()
    assert finder.get_primary_clusters(None) == []
    assert finder.get_primary_clusters(LeafNode(0, {0: 2.0})) == []


def test_half_match_completeness(two_group_tree_with_outlier):
    root = two_group_tree_with_outlier
    clusters = HalfMatchPrimaryClusterFinder().get_primary_clusters(root)
    covered = [i for c in clusters for i in leaf_indexes(c)]

    assert len(covered) == len(set(covered))
    assert covered == sorted(covered)
    leftover = [leaf.index for leaf in unclustered_leaves(root, clusters)]
    assert leftover == [8]
    assert sorted(covered + leftover) == leaf_indexes(root)


def test_half_match_is_deterministic(two_group_tree_with_outlier):
    finder = HalfMatchPrimaryClusterFinder()
    first  = finder.get_primary_clusters(two_group_tree_with_outlier)
    second = finder.get_primary_clusters(two_group_tree_with_outlier)
    assert [id(c) for c in first] == [id(c) for c in second]


def test_half_match_deep_tree():
    root = chain([LeafNode(i, {}) for i in range(1500)])
    assert HalfMatchPrimaryClusterFinder().get_primary_clusters(root) == []
    assert len(root.ordered_leaf_nodes) == 1500


# ══════════════════════════════════════════════════════════════════════════════
# NUMBERING
# ══════════════════════════════════════════════════════════════════════════════

def test_cluster_numbers_skip_small_clusters(two_group_leaves):
    left  = chain(two_group_leaves[:4])
    pair  = ClusterNode(LeafNode(20, {}), LeafNode(21, {}))
    right = chain(two_group_leaves[4:])
    numbers = assign_cluster_numbers([left, pair, right], min_cluster_size=3)
    assert numbers == {0: 1, 1: 1, 2: 1, 3: 1, 4: 2, 5: 2, 6: 2, 7: 2}


def test_overlapping_cluster_numbers(block_leaves):
    spans = [
        LeafSpan(0, 3, tuple(block_leaves[0:4])),
        LeafSpan(3, 5, tuple(block_leaves[3:6])),
    ]
    numbers = assign_overlapping_cluster_numbers(spans)
    assert numbers[2] == [1]
    assert numbers[3] == [1, 2]
    assert numbers[5] == [2]
    assert 6 not in numbers


# ══════════════════════════════════════════════════════════════════════════════
# GROWTH BASED
# ══════════════════════════════════════════════════════════════════════════════

def test_match_matrix_finds_diagonal_blocks(block_leaves):
    matrix = build_match_matrix(block_leaves, [leaf.index for leaf in block_leaves])
    assert matrix.shape == (8, 8)
    assert matrix[0, 3] and not matrix[0, 4]
    assert MatchMatrix(matrix, 3).get_clusters() == [(0, 3), (4, 7)]


def test_match_matrix_rejects_isolated_rows_unless_immediate_family():
    matrix = np.eye(3, dtype=bool)
    assert MatchMatrix(matrix, 3).get_clusters() == []
    assert MatchMatrix(matrix, 3, immediate_family_rows=[1]).get_clusters() == [(1, 1)]


def test_match_matrix_empty():
    assert MatchMatrix(np.zeros((0, 0), dtype=bool), 3).get_clusters() == []


def test_growth_based_spans(block_leaves):
    root = ClusterNode(chain(block_leaves[:4]), chain(block_leaves[4:]))
    spans = GrowthBasedPrimaryClusterFinder(min_cluster_size=3).get_primary_clusters(root)
    assert [(s.start, s.end) for s in spans] == [(0, 3), (4, 7)]
    assert [leaf_indexes(s) for s in spans] == [[0, 1, 2, 3], [4, 5, 6, 7]]
    assert spans[1].num_children == 4


def test_growth_based_drops_distant_rows(block_leaves):
    root = ClusterNode(chain(block_leaves[:4]), chain(block_leaves[4:]))
    finder = GrowthBasedPrimaryClusterFinder(min_cluster_size=3, column_indexes=range(7))
    spans = finder.get_primary_clusters(root)
    assert [leaf_indexes(s) for s in spans] == [[0, 1, 2, 3], [4, 5, 6]]


def test_growth_based_no_leaves():
    assert GrowthBasedPrimaryClusterFinder().get_primary_clusters(None) == []


def test_factory():
    assert isinstance(create_primary_cluster_finder("half_match"), HalfMatchPrimaryClusterFinder)
    growth = create_primary_cluster_finder("growth_based", min_cluster_size=1, immediate_family_indexes=[2])
    assert growth.min_cluster_size == 2
    assert growth.immediate_family_indexes == frozenset({2})
    with pytest.raises(ValueError):
        create_primary_cluster_finder("k_means")


if __name__ == "__main__":
    import subprocess, sys
    subprocess.run([sys.executable, "-m", "pytest", __file__, "-v"])
