"""
sharedclustering_jobs/app.py
============================
Wires configured strategies into a ready-to-run pipeline.

Usage:
    from sharedclustering_jobs.app import build_pipeline, configure_logging

    configure_logging()
    pipeline = build_pipeline()
    batch    = pipeline.build_leaf_nodes(matches)     # → tree built elsewhere
    pipeline = pipeline.with_immediate_family(batch.immediate_family_indexes)
    analysis = pipeline.analyzer(root).analyze(root, pipeline.immediate_family_indexes)
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping, Optional, Sequence

from sharedclustering.analyzer import ClusterAnalyzer
from sharedclustering.distance import DistanceMetric, create_distance_metric
from sharedclustering.finder import NeighborFinder
from sharedclustering.matrix import (AppearanceWeightedMatrixBuilder, CountBasedMatrixBuilder,
                                     MatrixBuilder, leaf_nodes_from_matrix)
from sharedclustering.models import ClusterableMatch, LeafNode, Node
from sharedclustering.primary_clusters import create_primary_cluster_finder
from sharedclustering.progress import ProgressData
from sharedclustering.selection import (exclude_large_clusters, non_distant_matches,
                                        select_immediate_family)
from sharedclustering_jobs.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"


def configure_logging(debug: Optional[bool] = None):
    debug = default_settings.debug if debug is None else debug
    logging.basicConfig(
        level   = logging.DEBUG if debug else logging.INFO,
        format  = _LOG_FORMAT,
    )


@dataclass(frozen=True)
class LeafNodeBatch:
    """Leaves handed to the external tree builder, with the family they were built against."""
    leaf_nodes:               list[LeafNode]
    immediate_family_indexes: frozenset[int]


@dataclass(frozen=True)
class Pipeline:
    settings:        Settings
    progress:        ProgressData
    metric:          DistanceMetric
    neighbor_finder: NeighborFinder
    matrix_builder:  MatrixBuilder
    immediate_family_indexes: frozenset[int] = field(default_factory=frozenset)

    def with_immediate_family(self, immediate_family_indexes: Iterable[int]) -> Pipeline:
        """A copy bound to another immediate family; the metric is rebuilt for it."""
        family = frozenset(immediate_family_indexes)
        if family == self.immediate_family_indexes:
            return self
        return replace(
            self,
            metric                   = create_distance_metric(self.settings.distance_metric, family),
            immediate_family_indexes = family,
        )

    # ── Before the tree ───────────────────────────────────────────────────────
    def select_matches(self, matches: Sequence[ClusterableMatch]) -> tuple[list[ClusterableMatch], frozenset[int]]:
        """Apply the endogamy filter; returns what remains and its immediate family."""
        selected = exclude_large_clusters(matches, self.settings.max_cluster_size, self.progress)
        family = select_immediate_family(selected, self.settings.immediate_family_centimorgans)
        return selected, frozenset(match.index for match in family)

    def build_leaf_nodes(self, matches: Sequence[ClusterableMatch]) -> LeafNodeBatch:
        """Correlation matrix → one LeafNode per match, in index order."""
        selected, family_indexes = self.select_matches(matches)
        family = [match for match in selected if match.index in family_indexes]
        matrix = self.matrix_builder.correlate(selected, family)
        return LeafNodeBatch(
            leaf_nodes               = leaf_nodes_from_matrix(matrix, [match.index for match in selected]),
            immediate_family_indexes = family_indexes,
        )

    # ── After the tree ────────────────────────────────────────────────────────
    def analyzer(
        self,
        root: Optional[Node] = None,
        matches_by_index: Optional[Mapping[int, ClusterableMatch]] = None,
    ) -> ClusterAnalyzer:
        column_indexes = None
        if self.settings.primary_cluster_finder == "growth_based" and root is not None and matches_by_index:
            column_indexes = [
                match.index for match in non_distant_matches(
                    root.ordered_leaf_nodes, matches_by_index, self.settings.lowest_clusterable_centimorgans)
            ]
        finder = create_primary_cluster_finder(
            self.settings.primary_cluster_finder,
            min_cluster_size         = self.settings.min_cluster_size,
            immediate_family_indexes = self.immediate_family_indexes,
            column_indexes           = column_indexes,
        )
        return ClusterAnalyzer(finder, self.settings.min_cluster_size)


def build_pipeline(
    settings: Optional[Settings] = None,
    immediate_family_indexes: Sequence[int] = (),
    progress: Optional[ProgressData] = None,
) -> Pipeline:
    settings = settings or default_settings
    progress = progress if progress is not None else ProgressData()
    family = frozenset(immediate_family_indexes)

    if settings.matrix_builder == "count_based":
        matrix_builder: MatrixBuilder = CountBasedMatrixBuilder(progress=progress)
    else:
        matrix_builder = AppearanceWeightedMatrixBuilder(progress)

    pipeline = Pipeline(
        settings        = settings,
        progress        = progress,
        metric          = create_distance_metric(settings.distance_metric, family),
        neighbor_finder = NeighborFinder(
            min_cluster_size      = settings.min_cluster_size,
            progress              = progress,
            max_results_per_match = settings.max_results_per_match,
        ),
        matrix_builder  = matrix_builder,
        immediate_family_indexes = family,
    )
    logger.info(
        f"{settings.app_name} v{settings.app_version}: metric={settings.distance_metric}, "
        f"primary clusters={settings.primary_cluster_finder}, min cluster size={settings.min_cluster_size}"
    )
    return pipeline
