"""
sharedclustering/finder.py
==========================
Bucket-indexed nearest-neighbour search over shared-match sets.

Architecture:
    matches → inverted index (coordinate → matches) → candidate multiplicity
            → exact overlap → inclusion rule → rank by normalized overlap → sink

Two query shapes share the same core:

    per-match   every match is a query against all others (itself excluded),
                inclusion  overlap >= min_cluster_size and overlap >= count // 3,
                capped at ``max_results_per_match``
    basis       one arbitrary coordinate set, indexed only on those coordinates,
                inclusion  overlap >= min_cluster_size, uncapped

Usage:
    finder = NeighborFinder(min_cluster_size=3, progress=ProgressData())

    # one output unit
    ident = finder.find_by_distance(matches, MemoryNeighborWriter())

    # output split whenever the sink reports its row limit
    idents = finder.find_by_similarity(
        matches, lambda part: MemoryNeighborWriter(f"similarity-{part}", row_limit=100_000))
"""

from __future__ import annotations

import time
import logging
from collections import Counter
from dataclasses import dataclass
from typing import AbstractSet, Callable, Iterable, Iterator, Optional, Sequence

from .models import ClusterableMatch
from .progress import ProgressData, SuppressProgress
from .writers import NeighborWriter

logger = logging.getLogger(__name__)

Buckets = dict[int, list[ClusterableMatch]]
InclusionRule = Callable[[ClusterableMatch, int], bool]

_DEFAULT_MIN_CLUSTER_SIZE      = 3
_DEFAULT_MAX_RESULTS_PER_MATCH = 100


@dataclass(frozen=True)
class Neighbor:
    match:         ClusterableMatch
    overlap_count: int
    score:         float


# ── Index + score helpers ─────────────────────────────────────────────────────
def build_buckets(
    matches: Iterable[ClusterableMatch],
    basis: Optional[AbstractSet[int]] = None,
) -> Buckets:
    """
    Inverted index from coordinate to the matches containing it, in input order.
    With ``basis`` only those coordinates are indexed.
    """
    buckets: Buckets = {}
    for match in matches:
        for coord in match.coords:
            if basis is not None and coord not in basis:
                continue
            buckets.setdefault(coord, []).append(match)
    return buckets


def overlap_score(overlap_count: int, query_size: int, candidate_count: int) -> float:
    """Cosine-style normalization on 0/1 indicator vectors."""
    if query_size <= 0 or candidate_count <= 0:
        return 0.0
    return overlap_count * overlap_count / query_size / candidate_count


# ══════════════════════════════════════════════════════════════════════════════
class NeighborFinder:
    """
    Finds, for each query, the matches sharing the most coordinates with it.

    Not thread-safe per instance only because of the shared progress object;
    the bucket index is rebuilt per call and never mutated after the build.
    """

    def __init__(
        self,
        min_cluster_size: int = _DEFAULT_MIN_CLUSTER_SIZE,
        progress: Optional[ProgressData] = None,
        max_results_per_match: int = _DEFAULT_MAX_RESULTS_PER_MATCH,
    ):
        self.min_cluster_size      = min_cluster_size
        self.max_results_per_match = max_results_per_match
        self.progress              = progress if progress is not None else SuppressProgress()

    # ══════════════════════════════════════════════════════════════════════════
    # CORE
    # ══════════════════════════════════════════════════════════════════════════

    def closest(
        self,
        coords: AbstractSet[int],
        buckets: Buckets,
        exclude: Optional[ClusterableMatch],
        inclusion: InclusionRule,
        max_results: int,
    ) -> list[Neighbor]:
        """
        Rank the candidates sharing coordinates with ``coords``.

        Parameters
        ----------
        coords      : query coordinate set
        buckets     : index from ``build_buckets``
        exclude     : match never returned (the query itself), or None
        inclusion   : ``(candidate, overlap_count) -> bool``
        max_results : truncation cap

        Returns
        -------
        list[Neighbor] sorted by score desc, then candidate index asc
        """
        multiplicity: Counter = Counter()
        for coord in coords:
            bucket = buckets.get(coord)
            if bucket:
                multiplicity.update(bucket)

        query_size = len(coords)
        neighbors: list[Neighbor] = []
        for candidate, hits in multiplicity.items():
            # Multiplicity is a lower bound on overlap, so this is a cheap pre-filter.
            if hits < self.min_cluster_size or candidate == exclude:
                continue
            overlap_count = sum(1 for coord in candidate.coords if coord in coords)
            if not inclusion(candidate, overlap_count):
                continue
            neighbors.append(Neighbor(
                match         = candidate,
                overlap_count = overlap_count,
                score         = overlap_score(overlap_count, query_size, candidate.count),
            ))

        neighbors.sort(key=lambda n: (-n.score, n.match.index))
        return neighbors[:max_results]

    def per_match_inclusion(self, other: ClusterableMatch, overlap_count: int) -> bool:
        return overlap_count >= self.min_cluster_size and overlap_count >= other.count // 3

    def basis_inclusion(self, other: ClusterableMatch, overlap_count: int) -> bool:
        return overlap_count >= self.min_cluster_size

    def find_closest(
        self,
        matches: Sequence[ClusterableMatch],
        basis: Optional[AbstractSet[int]] = None,
    ) -> Iterator[tuple[Optional[ClusterableMatch], list[Neighbor]]]:
        """
        Yield ``(query_match, neighbors)`` per query without a sink.
        In basis mode there is a single query and ``query_match`` is None.
        """
        if basis is None:
            buckets = build_buckets(matches)
            for match in matches:
                yield match, self.closest(
                    frozenset(match.coords), buckets, match,
                    self.per_match_inclusion, self.max_results_per_match,
                )
        else:
            basis = frozenset(basis)
            buckets = build_buckets(matches, basis)
            yield None, self.closest(basis, buckets, None, self.basis_inclusion, len(matches))

    # ══════════════════════════════════════════════════════════════════════════
    # BATCH JOBS
    # ══════════════════════════════════════════════════════════════════════════

    def find_by_distance(
        self,
        matches: Sequence[ClusterableMatch],
        writer: NeighborWriter,
        basis: Optional[AbstractSet[int]] = None,
    ) -> str:
        """Write every query's neighbours to one sink and return its identifier."""
        with self._scoped_progress("distance", matches, basis):
            with writer:
                self._run(matches, basis, lambda: writer)
                return writer.save()

    def find_by_similarity(
        self,
        matches: Sequence[ClusterableMatch],
        get_writer: Callable[[int], NeighborWriter],
        basis: Optional[AbstractSet[int]] = None,
    ) -> list[str]:
        """
        Like ``find_by_distance`` but rolls over to a new sink (part 2, 3, ...)
        whenever the current one reports its row limit after a query.

        Returns
        -------
        list of saved identifiers, in part order
        """
        saved: list[str] = []
        part = 1
        writer: Optional[NeighborWriter] = get_writer(part)

        def current_writer() -> NeighborWriter:
            # The next part is only opened once there is something to write to it.
            nonlocal writer
            if writer is None:
                writer = get_writer(part)
            return writer

        def rotate():
            nonlocal part, writer
            if writer is not None and writer.file_limit_reached():
                saved.append(writer.save())
                writer.close()
                writer = None
                part += 1
                logger.info(f"Row limit reached, continuing in part {part}")

        with self._scoped_progress("similarity", matches, basis):
            try:
                self._run(matches, basis, current_writer, after_query=rotate)
                if writer is not None:
                    saved.append(writer.save())
            finally:
                if writer is not None:
                    writer.close()
        return saved

    # ── internals ─────────────────────────────────────────────────────────────
    def _scoped_progress(self, kind: str, matches: Sequence[ClusterableMatch], basis):
        average = sum(len(m.coords) for m in matches) / len(matches) if matches else 0.0
        target = f"a basis of {len(basis)}" if basis is not None else f"{len(matches)} matches"
        return self.progress.scoped(
            f"Finding closest chains by {kind} for {target} (average {average:,.0f} shared matches per match)...",
            len(matches),
        )

    def _run(
        self,
        matches: Sequence[ClusterableMatch],
        basis: Optional[AbstractSet[int]],
        current_writer: Callable[[], NeighborWriter],
        after_query: Optional[Callable[[], None]] = None,
    ):
        start = time.perf_counter()
        n_queries = n_rows = 0

        for query, neighbors in self.find_closest(matches, basis):
            n_queries += 1
            if neighbors:
                writer = current_writer()
                writer.write_header(query)
                for neighbor in neighbors:
                    writer.write_line(neighbor.match, neighbor.overlap_count)
                    if basis is not None:
                        self.progress.increment()
                writer.skip_line()
                n_rows += len(neighbors)
            if basis is None:
                self.progress.increment()
            if after_query is not None:
                after_query()

        logger.info(
            f"Neighbour search: {n_queries} queries, {n_rows} rows "
            f"in {time.perf_counter() - start:.2f}s"
        )
