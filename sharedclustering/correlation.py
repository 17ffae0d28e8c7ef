"""
sharedclustering/correlation.py
===============================
Cross-cluster correlation: which *other* clusters is a leaf significantly
tied to?

For a leaf, every other leaf it correlates with (value >= 1, immediate family
ignored) votes for its own cluster. Clusters collecting at least
``min_cluster_size`` votes are reported, ascending. A single stray
correlation is treated as noise.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from .models import LeafNode

logger = logging.getLogger(__name__)


class _CorrelatedClustersBase(ABC):
    def __init__(
        self,
        leaf_nodes: Sequence[LeafNode],
        immediate_family_indexes: Iterable[int],
        min_cluster_size: int,
    ):
        self.leaf_nodes               = tuple(leaf_nodes)
        self.immediate_family_indexes = frozenset(immediate_family_indexes)
        self.min_cluster_size         = min_cluster_size

    def _correlated_leaves(self, leaf: LeafNode) -> list[LeafNode]:
        coords = leaf.coords
        return [
            other for other in self.leaf_nodes
            if other.index not in self.immediate_family_indexes
            and coords.get(other.index, 0) >= 1
        ]

    def _significant(self, votes: Counter) -> list[int]:
        return sorted(number for number, count in votes.items() if count >= self.min_cluster_size)

    @abstractmethod
    def get_correlated_clusters(self, leaf: LeafNode) -> list[int]:
        ...

    def correlated_clusters_by_index(self) -> dict[int, list[int]]:
        return {leaf.index: self.get_correlated_clusters(leaf) for leaf in self.leaf_nodes}


class CorrelatedClustersFinder(_CorrelatedClustersBase):
    """Each leaf belongs to at most one cluster."""

    def __init__(
        self,
        leaf_nodes: Sequence[LeafNode],
        immediate_family_indexes: Iterable[int],
        index_cluster_numbers: Mapping[int, int],
        min_cluster_size: int,
    ):
        super().__init__(leaf_nodes, immediate_family_indexes, min_cluster_size)
        self.index_cluster_numbers = MappingProxyType(dict(index_cluster_numbers))

    def get_correlated_clusters(self, leaf: LeafNode) -> list[int]:
        own = self.index_cluster_numbers.get(leaf.index, 0)
        votes = Counter(
            number
            for number in (self.index_cluster_numbers.get(other.index, 0) for other in self._correlated_leaves(leaf))
            if number != 0 and number != own
        )
        return self._significant(votes)


class CorrelatedOverlappingClustersFinder(_CorrelatedClustersBase):
    """Leaves may belong to several clusters; votes are counted over the flattened lists."""

    def __init__(
        self,
        leaf_nodes: Sequence[LeafNode],
        immediate_family_indexes: Iterable[int],
        index_cluster_numbers: Mapping[int, Sequence[int]],
        min_cluster_size: int,
    ):
        super().__init__(leaf_nodes, immediate_family_indexes, min_cluster_size)
        self.index_cluster_numbers = MappingProxyType(
            {index: tuple(numbers) for index, numbers in index_cluster_numbers.items()}
        )

    def get_correlated_clusters(self, leaf: LeafNode) -> list[int]:
        own = self.index_cluster_numbers.get(leaf.index)
        if not own:
            return []
        own_set = set(own)
        votes = Counter(
            number
            for other in self._correlated_leaves(leaf)
            for number in self.index_cluster_numbers.get(other.index, ())
            if number not in own_set
        )
        return self._significant(votes)
