"""
sharedclustering_jobs/runner.py
===============================
Async front for the synchronous engine.

Each batch (index build + every query, or a whole cluster analysis) runs as
one unit on a worker thread; the caller awaits it once. Batches on the same
runner share one progress object and run one at a time, so
``runner.progress`` always describes the batch in flight.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Iterable, Mapping, Optional, Sequence
from concurrent.futures import ThreadPoolExecutor

from sharedclustering.models import ClusterableMatch, LeafNode, Node
from sharedclustering.writers import MemoryNeighborWriter, NeighborWriter
from sharedclustering_jobs.app import LeafNodeBatch, Pipeline, build_pipeline
from sharedclustering_jobs.config import settings
from sharedclustering_jobs.schemas import ClusterReport, ClusterReportRow, NeighborGroup, NeighborRow

logger = logging.getLogger(__name__)
_executor = ThreadPoolExecutor(max_workers=settings.max_workers)


class AnalysisRunner:
    def __init__(self, pipeline: Optional[Pipeline] = None):
        self.pipeline = pipeline or build_pipeline()
        self._lock    = asyncio.Lock()

    @property
    def progress(self):
        return self.pipeline.progress

    async def _run_batch(self, fn, *args):
        async with self._lock:
            loop = asyncio.get_event_loop()
            return await loop.run_in_executor(_executor, fn, *args)

    # ── Neighbour search ──────────────────────────────────────────────────────
    async def find_by_distance(
        self,
        matches: Sequence[ClusterableMatch],
        writer: Optional[NeighborWriter] = None,
        basis: Optional[set[int]] = None,
    ) -> str:
        writer = writer or MemoryNeighborWriter("distance")
        return await self._run_batch(self.pipeline.neighbor_finder.find_by_distance, matches, writer, basis)

    async def find_by_similarity(
        self,
        matches: Sequence[ClusterableMatch],
        get_writer=None,
        basis: Optional[set[int]] = None,
    ) -> list[str]:
        row_limit = self.pipeline.settings.row_limit
        get_writer = get_writer or (lambda part: MemoryNeighborWriter(f"similarity-{part}", row_limit))
        return await self._run_batch(self.pipeline.neighbor_finder.find_by_similarity, matches, get_writer, basis)

    async def closest(
        self,
        matches: Sequence[ClusterableMatch],
        basis: Optional[set[int]] = None,
    ) -> list[NeighborGroup]:
        return await self._run_batch(self._closest_sync, matches, basis)

    def _closest_sync(self, matches, basis) -> list[NeighborGroup]:
        groups = []
        for query, neighbors in self.pipeline.neighbor_finder.find_closest(matches, basis):
            if not neighbors:
                continue
            groups.append(NeighborGroup(
                query_index = query.index if query is not None else None,
                neighbors   = [
                    NeighborRow(
                        index         = n.match.index,
                        name          = n.match.match.display_name,
                        count         = n.match.count,
                        overlap_count = n.overlap_count,
                        score         = n.score,
                    )
                    for n in neighbors
                ],
            ))
        return groups

    # ── Tree inputs ───────────────────────────────────────────────────────────
    async def build_leaf_nodes(self, matches: Sequence[ClusterableMatch]) -> LeafNodeBatch:
        return await self._run_batch(self.pipeline.build_leaf_nodes, matches)

    async def closest_leaves(
        self,
        leaf: LeafNode,
        leaves: Sequence[LeafNode],
        k: int = 10,
        immediate_family_indexes: Optional[Iterable[int]] = None,
    ) -> list[tuple[int, float]]:
        """The ``k`` leaves nearest to ``leaf`` under the configured metric, as (index, distance)."""
        return await self._run_batch(self._closest_leaves_sync, leaf, leaves, k, immediate_family_indexes)

    def _closest_leaves_sync(self, leaf, leaves, k, immediate_family_indexes):
        metric = self._pipeline_for(immediate_family_indexes).metric
        distances = [
            (other.index, metric.calculate(leaf.coords, other.coords))
            for other in leaves if other.index != leaf.index
        ]
        distances.sort(key=lambda x: (x[1], x[0]))
        return distances[:k]

    # ── Cluster analysis ──────────────────────────────────────────────────────
    async def analyze_clusters(
        self,
        root: Optional[Node],
        matches_by_index: Optional[Mapping[int, ClusterableMatch]] = None,
        immediate_family_indexes: Optional[Iterable[int]] = None,
    ) -> ClusterReport:
        return await self._run_batch(self._analyze_clusters_sync, root, matches_by_index, immediate_family_indexes)

    def _analyze_clusters_sync(self, root, matches_by_index, immediate_family_indexes) -> ClusterReport:
        matches_by_index = matches_by_index or {}
        pipeline = self._pipeline_for(immediate_family_indexes)
        analyzer = pipeline.analyzer(root, matches_by_index)
        with self.progress.scoped("Analyzing clusters..."):
            analysis = analyzer.analyze(root, pipeline.immediate_family_indexes)

        def name_of(index: int) -> str:
            match = matches_by_index.get(index)
            return match.match.display_name if match is not None else ""

        return ClusterReport(
            primary_cluster_finder = pipeline.settings.primary_cluster_finder,
            num_clusters           = analysis.num_clusters,
            rows = [
                ClusterReportRow(
                    index               = leaf.index,
                    name                = name_of(leaf.index),
                    cluster_numbers     = analysis.cluster_numbers.get(leaf.index, []),
                    correlated_clusters = analysis.correlated_clusters.get(leaf.index, []),
                )
                for leaf in analysis.leaf_nodes
            ],
            unclustered = [leaf.index for leaf in analysis.unclustered],
        )

    def _pipeline_for(self, immediate_family_indexes) -> Pipeline:
        if immediate_family_indexes is None:
            return self.pipeline
        return self.pipeline.with_immediate_family(immediate_family_indexes)
