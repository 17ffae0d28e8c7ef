"""
tests/conftest.py
=================
Shared fixtures: small match sets and merge trees with known structure.
"""

import pytest

from sharedclustering.models import ClusterableMatch, ClusterNode, LeafNode, Match


def make_match(index, coords, cm=30.0):
    return ClusterableMatch(index, Match(f"guid-{index}", f"Match {index}", cm), coords)


def chain(nodes):
    """Left-leaning merge of the given nodes."""
    node = nodes[0]
    for other in nodes[1:]:
        node = ClusterNode(node, other)
    return node


@pytest.fixture
def abcd():
    """
    Four matches A-D whose shared-match lists include their own index:
    A lists B, C; B lists A, D; C lists A; D lists B.
    """
    a = make_match(0, {0: 1, 1: 1, 2: 1})
    b = make_match(1, {1: 1, 0: 1, 3: 1})
    c = make_match(2, {2: 1, 0: 1})
    d = make_match(3, {3: 1, 1: 1})
    return [a, b, c, d]


@pytest.fixture
def two_group_leaves():
    """Leaves 0-3 and 4-7 correlate within their group only (self excluded)."""
    leaves = []
    for i in range(8):
        group = range(0, 4) if i < 4 else range(4, 8)
        leaves.append(LeafNode(i, {j: 1.0 for j in group if j != i}))
    return leaves


@pytest.fixture
def two_group_tree(two_group_leaves):
    left  = chain(two_group_leaves[:4])
    right = chain(two_group_leaves[4:])
    return ClusterNode(left, right, distance=5.0)


@pytest.fixture
def two_group_tree_with_outlier(two_group_leaves):
    left    = chain(two_group_leaves[:4])
    right   = chain(two_group_leaves[4:])
    outlier = LeafNode(8, {})
    return ClusterNode(left, ClusterNode(right, outlier, distance=9.0), distance=10.0)


@pytest.fixture
def block_leaves():
    """Leaves 0-3 and 4-7 with a strong self coordinate: a block-diagonal matrix."""
    leaves = []
    for i in range(8):
        group = range(0, 4) if i < 4 else range(4, 8)
        leaves.append(LeafNode(i, {j: 2.0 if j == i else 1.0 for j in group}))
    return leaves
