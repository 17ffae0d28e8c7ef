"""
sharedclustering/matrix.py
==========================
Correlation matrix builders: ClusterableMatches → per-match numpy rows whose
values become the quantized LeafNode coordinates.

    AppearanceWeightedMatrixBuilder   direct = +1, indirect in [0, 1] by
                                      fraction of co-appearances
    CountBasedMatrixBuilder           indirect = n * step capped at direct / 2,
                                      direct = flat value

Immediate family rows get direct correlations only; their huge shared-match
lists would otherwise swamp the indirect values of everyone else.

The result maps match index → ``np.ndarray[max_index + 1]`` (float64).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from typing import Iterable, Mapping, Optional, Sequence

import numpy as np

from .models import ClusterableMatch, LeafNode
from .progress import ProgressData, SuppressProgress

logger = logging.getLogger(__name__)

Matrix = dict[int, np.ndarray]

# Ancestry never lists matches under 20 cM as shared matches.
_MIN_SHARED_MATCH_CENTIMORGANS = 20


def max_clusterable_index(matches: Iterable[ClusterableMatch]) -> int:
    """Largest index (own or coordinate) among matches of at least 20 cM; -1 if none."""
    max_index = -1
    for match in matches:
        if match.match.shared_centimorgans >= _MIN_SHARED_MATCH_CENTIMORGANS:
            max_index = max(max_index, match.index, max(match.coords, default=-1))
    return max_index


class MatrixBuilder(ABC):
    def __init__(self, progress: Optional[ProgressData] = None):
        self.progress = progress if progress is not None else SuppressProgress()

    @abstractmethod
    def correlate(
        self,
        matches: Sequence[ClusterableMatch],
        immediate_family: Sequence[ClusterableMatch] = (),
    ) -> Matrix:
        ...

    @abstractmethod
    def extend_matrix(self, matrix: Matrix, matches: Iterable[ClusterableMatch], max_index: int):
        """Add further (typically distant) matches using direct correlations only."""

    @staticmethod
    def _row(matrix: Matrix, index: int, max_index: int) -> np.ndarray:
        row = matrix.get(index)
        if row is None:
            row = matrix[index] = np.zeros(max_index + 1, dtype=np.float64)
        return row

    @staticmethod
    def _split(matches, immediate_family) -> tuple[list[ClusterableMatch], set[int]]:
        family = {match.index for match in immediate_family}
        return [match for match in matches if match.index not in family], family


# ══════════════════════════════════════════════════════════════════════════════
class AppearanceWeightedMatrixBuilder(MatrixBuilder):
    """
    ``matrix[A][B]`` in [0, 1] is the fraction of shared-match lists containing
    A that also contain B; a further +1 when A and B list each other.
    """

    def correlate(self, matches, immediate_family=()) -> Matrix:
        with self.progress.scoped("Correlating data...", len(matches)):
            known = {match.index for match in matches}
            others, _ = self._split(matches, immediate_family)

            # Every match appears at least once, in its own list.
            appearances = Counter(
                coord for match in others for coord in match.coords if coord in known
            )
            max_index = max_clusterable_index(others)
            matrix: Matrix = {}

            for match in immediate_family:
                self._extend_direct(matrix, match, max_index)
                self.progress.increment()

            for match in others:
                self._extend_direct(matrix, match, max_index)
                self._extend_indirect(matrix, match, appearances, max_index)
                self.progress.increment()

        logger.info(f"Appearance-weighted matrix: {len(matrix)} rows x {max_index + 1} columns")
        return matrix

    def extend_matrix(self, matrix, matches, max_index):
        for match in matches:
            self._extend_direct(matrix, match, max_index)

    def _extend_direct(self, matrix: Matrix, match: ClusterableMatch, max_index: int):
        if match.index > max_index:
            return
        row = self._row(matrix, match.index, max_index)
        for coord in match.coords:
            if coord <= max_index:
                row[coord] += 1.0

    def _extend_indirect(self, matrix: Matrix, match: ClusterableMatch, appearances: Mapping[int, int], max_index: int):
        peers = [coord for coord in match.coords if coord != match.index and coord <= max_index]
        for coord1 in match.coords:
            num_appearances = appearances.get(coord1)
            if not num_appearances:
                continue
            row = self._row(matrix, coord1, max_index)
            weight = 1.0 / num_appearances
            if coord1 == match.index:
                if coord1 <= max_index:
                    row[coord1] += weight
            else:
                row[peers] += weight


# ══════════════════════════════════════════════════════════════════════════════
class CountBasedMatrixBuilder(MatrixBuilder):
    """
    Each shared list containing both A and B adds ``indirect_value`` to
    ``matrix[A][B]``, capped at ``direct_value / 2``. Direct shared matches are
    then set to exactly ``direct_value``.
    """

    def __init__(self, direct_value: float = 1.0, indirect_value: float = 0.1, progress: Optional[ProgressData] = None):
        super().__init__(progress)
        self.direct_value   = direct_value
        self.indirect_value = indirect_value

    def correlate(self, matches, immediate_family=()) -> Matrix:
        with self.progress.scoped("Correlating data...", len(matches) * 2):
            others, _ = self._split(matches, immediate_family)
            max_index = max_clusterable_index(others)
            matrix: Matrix = {}

            for match in immediate_family:
                self._extend_direct(matrix, match, max_index)
                self.progress.increment()
                self.progress.increment()

            for match in others:
                self._extend_indirect(matrix, match, max_index)
                self.progress.increment()

            cap = self.direct_value / 2
            for row in matrix.values():
                np.minimum(row, cap, out=row)

            for match in others:
                self._extend_direct(matrix, match, max_index)
                self.progress.increment()

        logger.info(f"Count-based matrix: {len(matrix)} rows x {max_index + 1} columns")
        return matrix

    def extend_matrix(self, matrix, matches, max_index):
        for match in matches:
            self._extend_direct(matrix, match, max_index)

    def _extend_direct(self, matrix: Matrix, match: ClusterableMatch, max_index: int):
        if match.index > max_index:
            return
        row = self._row(matrix, match.index, max_index)
        for coord in match.coords:
            if coord <= max_index:
                row[coord] = self.direct_value

    def _extend_indirect(self, matrix: Matrix, match: ClusterableMatch, max_index: int):
        peers = [coord for coord in match.coords if coord != match.index and coord <= max_index]
        for coord1 in match.coords:
            row = self._row(matrix, coord1, max_index)
            if coord1 == match.index:
                if coord1 <= max_index:
                    row[coord1] += self.indirect_value
            else:
                row[peers] += self.indirect_value


# ── Leaf nodes ────────────────────────────────────────────────────────────────
def leaf_nodes_from_matrix(matrix: Mapping[int, np.ndarray], indexes: Optional[Iterable[int]] = None) -> list[LeafNode]:
    """
    One LeafNode per matrix row (in ``indexes`` order, default ascending),
    keeping only strictly positive cells as coordinates.
    """
    order = sorted(matrix) if indexes is None else [index for index in indexes if index in matrix]
    leaves = []
    for index in order:
        row = matrix[index]
        nonzero = np.flatnonzero(row > 0)
        leaves.append(LeafNode(index, {int(i): float(row[i]) for i in nonzero}))
    return leaves
