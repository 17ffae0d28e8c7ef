"""
sharedclustering/analyzer.py
============================
Run a primary cluster finder over a merge tree and derive, per leaf, its
cluster number(s) and the other clusters it is correlated with.

Usage:
    analyzer = ClusterAnalyzer(HalfMatchPrimaryClusterFinder(), min_cluster_size=3)
    result = analyzer.analyze(root, immediate_family_indexes={0, 1})
    result.cluster_numbers[leaf.index]      # → [2]
    result.correlated_clusters[leaf.index]  # → [1, 4]
"""

from __future__ import annotations

import time
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .correlation import CorrelatedClustersFinder, CorrelatedOverlappingClustersFinder
from .models import LeafNode, Node, PrimaryCluster
from .primary_clusters import (
    HalfMatchPrimaryClusterFinder,
    PrimaryClusterFinder,
    assign_cluster_numbers,
    assign_overlapping_cluster_numbers,
)

logger = logging.getLogger(__name__)


@dataclass
class ClusterAnalysis:
    leaf_nodes:          tuple[LeafNode, ...]
    primary_clusters:    list[PrimaryCluster]
    cluster_numbers:     dict[int, list[int]]
    correlated_clusters: dict[int, list[int]]
    unclustered:         list[LeafNode] = field(default_factory=list)

    @property
    def num_clusters(self) -> int:
        return max((n for numbers in self.cluster_numbers.values() for n in numbers), default=0)


class ClusterAnalyzer:
    """
    Disjoint finders (half-match) number only clusters of at least
    ``min_cluster_size`` leaves and use single-membership correlation.
    Overlapping finders number every span and use multi-membership correlation.
    """

    def __init__(self, primary_cluster_finder: PrimaryClusterFinder, min_cluster_size: int = 3):
        self.primary_cluster_finder = primary_cluster_finder
        self.min_cluster_size       = min_cluster_size

    @property
    def overlapping(self) -> bool:
        return not isinstance(self.primary_cluster_finder, HalfMatchPrimaryClusterFinder)

    def analyze(self, root: Optional[Node], immediate_family_indexes: Iterable[int] = ()) -> ClusterAnalysis:
        start = time.perf_counter()
        immediate_family_indexes = frozenset(immediate_family_indexes)
        leaf_nodes = root.ordered_leaf_nodes if root is not None else ()
        primary_clusters = self.primary_cluster_finder.get_primary_clusters(root)

        if self.overlapping:
            overlapping_numbers = assign_overlapping_cluster_numbers(primary_clusters)
            correlated = CorrelatedOverlappingClustersFinder(
                leaf_nodes, immediate_family_indexes, overlapping_numbers, self.min_cluster_size,
            ).correlated_clusters_by_index()
            cluster_numbers = {index: list(numbers) for index, numbers in overlapping_numbers.items()}
        else:
            single_numbers = assign_cluster_numbers(primary_clusters, self.min_cluster_size)
            correlated = CorrelatedClustersFinder(
                leaf_nodes, immediate_family_indexes, single_numbers, self.min_cluster_size,
            ).correlated_clusters_by_index()
            cluster_numbers = {index: [number] for index, number in single_numbers.items()}

        analysis = ClusterAnalysis(
            leaf_nodes          = tuple(leaf_nodes),
            primary_clusters    = primary_clusters,
            cluster_numbers     = cluster_numbers,
            correlated_clusters = correlated,
            unclustered         = [leaf for leaf in leaf_nodes if leaf.index not in cluster_numbers],
        )
        logger.info(
            f"Cluster analysis: {len(leaf_nodes)} leaves, {analysis.num_clusters} clusters, "
            f"{len(analysis.unclustered)} unclustered in {time.perf_counter() - start:.2f}s"
        )
        return analysis
