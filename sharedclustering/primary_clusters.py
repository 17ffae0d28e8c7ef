"""
sharedclustering/primary_clusters.py
====================================
Partition a merge tree into primary clusters and number them.

Two strategies share the ``get_primary_clusters(root)`` interface:

    half_match     top-down: accept the largest subtrees whose two boundary
                   leaves are each significantly correlated with at least half
                   of the subtree. Clusters are disjoint subtrees.
    growth_based   pseudo-visual range growth over the ordered shared-match
                   matrix (see match_matrix.py). Clusters are leaf spans and
                   may overlap.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional, Sequence

import numpy as np

from .match_matrix import MatchMatrix
from .models import ClusterNode, LeafNode, LeafSpan, Node, PrimaryCluster

logger = logging.getLogger(__name__)


class PrimaryClusterFinder(ABC):
    @abstractmethod
    def get_primary_clusters(self, root: Optional[Node]) -> list[PrimaryCluster]:
        """Primary clusters in left-to-right leaf order."""


def _ordered_leaves(root: Optional[Node]) -> tuple[LeafNode, ...]:
    return root.ordered_leaf_nodes if root is not None else ()


# ══════════════════════════════════════════════════════════════════════════════
# HALF MATCH
# ══════════════════════════════════════════════════════════════════════════════

class HalfMatchPrimaryClusterFinder(PrimaryClusterFinder):
    """
    A subtree is a primary cluster when both of its boundary leaves have
    significant (>= 1) correlations with at least ceil(n / 2) of its n leaves.
    Otherwise both children are examined independently. Single leaves never
    form a cluster on their own.
    """

    def get_primary_clusters(self, root: Optional[Node]) -> list[ClusterNode]:
        clusters: list[ClusterNode] = []
        # Explicit stack, second child pushed first, keeps left-to-right order.
        stack: list[Optional[Node]] = [root]
        while stack:
            node = stack.pop()
            if not isinstance(node, ClusterNode):
                continue
            if self.is_coherent(node):
                clusters.append(node)
            else:
                stack.append(node.second)
                stack.append(node.first)
        return clusters

    @staticmethod
    def is_coherent(node: ClusterNode) -> bool:
        leaf_indexes = {leaf.index for leaf in node.ordered_leaf_nodes}
        half = (len(leaf_indexes) + 1) // 2
        return (
            _correlated_within(node.first_leaf, leaf_indexes) >= half
            and _correlated_within(node.second_leaf, leaf_indexes) >= half
        )


def _correlated_within(leaf: LeafNode, leaf_indexes: set[int]) -> int:
    return sum(1 for index, value in leaf.coords.items() if value >= 1 and index in leaf_indexes)


# ══════════════════════════════════════════════════════════════════════════════
# GROWTH BASED
# ══════════════════════════════════════════════════════════════════════════════

class GrowthBasedPrimaryClusterFinder(PrimaryClusterFinder):
    """
    Parameters
    ----------
    min_cluster_size         : raised to at least 2
    immediate_family_indexes : matches whose rows keep an otherwise rejected range
    column_indexes           : match indexes used as matrix columns (the
                               non-distant matches); ``None`` uses every leaf
    """

    def __init__(
        self,
        min_cluster_size: int = 3,
        immediate_family_indexes: Iterable[int] = (),
        column_indexes: Optional[Sequence[int]] = None,
    ):
        self.min_cluster_size         = max(2, min_cluster_size)
        self.immediate_family_indexes = frozenset(immediate_family_indexes)
        self.column_indexes           = tuple(column_indexes) if column_indexes is not None else None

    def get_primary_clusters(self, root: Optional[Node]) -> list[LeafSpan]:
        rows = self._rows(_ordered_leaves(root))
        return [
            LeafSpan(start, end, tuple(rows[start:end + 1]))
            for start, end in self.get_clusters(rows)
        ]

    def get_clusters(self, leaf_nodes: Sequence[LeafNode]) -> list[tuple[int, int]]:
        """Inclusive row ranges over the matrix rows built from ``leaf_nodes``."""
        rows = self._rows(leaf_nodes)
        columns = self.column_indexes if self.column_indexes is not None else [leaf.index for leaf in rows]
        if not rows or not columns:
            return []

        matrix = build_match_matrix(rows, columns)
        family_rows = [i for i, leaf in enumerate(rows) if leaf.index in self.immediate_family_indexes]
        clusters = MatchMatrix(matrix, self.min_cluster_size, family_rows).get_clusters()
        logger.info(f"Growth-based clustering: {len(rows)} rows, {len(clusters)} clusters")
        return clusters

    def _rows(self, leaf_nodes: Sequence[LeafNode]) -> list[LeafNode]:
        # Distant matches are not clustered; they appear neither as rows nor columns.
        if self.column_indexes is None:
            return list(leaf_nodes)
        columns = set(self.column_indexes)
        return [leaf for leaf in leaf_nodes if leaf.index in columns]


def build_match_matrix(rows: Sequence[LeafNode], column_indexes: Sequence[int]) -> np.ndarray:
    """Boolean ``[len(rows), len(columns)]`` matrix of significant correlations."""
    matrix = np.zeros((len(rows), len(column_indexes)), dtype=bool)
    for i, leaf in enumerate(rows):
        coords = leaf.coords
        matrix[i] = [coords.get(index, 0) >= 1 for index in column_indexes]
    return matrix


# ══════════════════════════════════════════════════════════════════════════════
# NUMBERING
# ══════════════════════════════════════════════════════════════════════════════

def assign_cluster_numbers(primary_clusters: Iterable[PrimaryCluster], min_cluster_size: int) -> dict[int, int]:
    """
    Number clusters 1, 2, ... in order, skipping those smaller than
    ``min_cluster_size``. Returns leaf index → cluster number.
    """
    numbers: dict[int, int] = {}
    number = 0
    for cluster in primary_clusters:
        if cluster.num_children < min_cluster_size:
            continue
        number += 1
        for leaf in cluster.ordered_leaf_nodes:
            numbers[leaf.index] = number
    return numbers


def assign_overlapping_cluster_numbers(primary_clusters: Iterable[PrimaryCluster]) -> dict[int, list[int]]:
    """Leaf index → every cluster number (1-based, ascending) containing it."""
    numbers: dict[int, list[int]] = {}
    for number, cluster in enumerate(primary_clusters, start=1):
        for leaf in cluster.ordered_leaf_nodes:
            numbers.setdefault(leaf.index, []).append(number)
    return numbers


def unclustered_leaves(root: Optional[Node], primary_clusters: Iterable[PrimaryCluster]) -> list[LeafNode]:
    """Leaves of ``root`` covered by none of the clusters, in leaf order."""
    covered = {leaf.index for cluster in primary_clusters for leaf in cluster.ordered_leaf_nodes}
    return [leaf for leaf in _ordered_leaves(root) if leaf.index not in covered]


# ── factory ───────────────────────────────────────────────────────────────────
PRIMARY_CLUSTER_FINDERS = ("half_match", "growth_based")


def create_primary_cluster_finder(
    name: str,
    min_cluster_size: int = 3,
    immediate_family_indexes: Iterable[int] = (),
    column_indexes: Optional[Sequence[int]] = None,
) -> PrimaryClusterFinder:
    if name == "half_match":
        return HalfMatchPrimaryClusterFinder()
    if name == "growth_based":
        return GrowthBasedPrimaryClusterFinder(min_cluster_size, immediate_family_indexes, column_indexes)
    raise ValueError(f"Unknown primary cluster finder {name!r}; expected one of {', '.join(PRIMARY_CLUSTER_FINDERS)}")
