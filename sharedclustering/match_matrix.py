"""
sharedclustering/match_matrix.py
================================
Growth-based cluster detection on a boolean shared-match matrix.

Rows and columns follow the leaf order of the merge tree, so clusters show up
as dense blocks along the diagonal. Starting from each not-yet-clustered row,
a range is grown downward and then upward while the adjacent row is dense
enough inside the range, then appended to a stack of known ranges which may
trim, merge or replace earlier ones. Ranges may overlap.

All ranges are inclusive ``(start, end)`` row positions.
"""

from __future__ import annotations

import logging
from typing import Iterable

import numpy as np

logger = logging.getLogger(__name__)


def _size(rng: tuple[int, int]) -> int:
    return rng[1] - rng[0] + 1


class MatchMatrix:
    def __init__(self, matrix: np.ndarray, min_cluster_size: int, immediate_family_rows: Iterable[int] = ()):
        self._matrix = np.asarray(matrix, dtype=bool)
        self._n_rows = self._matrix.shape[0] if self._matrix.ndim == 2 else 0
        self._min    = max(2, min_cluster_size)
        self.immediate_family_rows = frozenset(immediate_family_rows)

    # ══════════════════════════════════════════════════════════════════════════
    # DRIVER
    # ══════════════════════════════════════════════════════════════════════════

    def get_clusters(self) -> list[tuple[int, int]]:
        clusters: list[tuple[int, int]] = []        # used as a stack
        next_row = 0
        max_invalid = self._min - 1

        while next_row < self._n_rows:
            rng = (next_row, next_row)

            # Grow downward.
            while self._can_extend_down(rng, (_size(rng) + 1) // 2):
                rng = (rng[0], rng[1] + 1)
                if not self._valid_extending_down(rng):
                    rng = (rng[0], rng[1] - max_invalid)
                    break

            # Then upward.
            while self._can_extend_up(rng, (_size(rng) + 1) // (3 if _size(rng) > 8 else 2)):
                rng = (rng[0] - 1, rng[1])
                if not self._valid_extending_down(rng):
                    alt = (rng[0], rng[1] - max_invalid)
                    if (
                        _size(alt) > max_invalid
                        and alt[1] > next_row
                        and self._valid_extending_down(alt)
                        and self._valid_extending_up(alt)
                    ):
                        rng = alt
                        if rng[1] <= next_row + 1:
                            break
                    else:
                        rng = (rng[0] + max_invalid, rng[1])
                        break

            # Having moved the start up, regrow downward from the earliest start that still reaches next_row.
            if rng[0] < next_row:
                for alt_start in range(rng[0], next_row):
                    alt = (alt_start, alt_start)
                    while self._can_extend_down(alt, (_size(rng) + 1) // 2):
                        alt = (alt[0], alt[1] + 1)
                        if not self._valid_extending_down(alt):
                            alt = (alt[0], alt[1] - max_invalid)
                            break
                    if alt[1] >= next_row:
                        rng = alt
                        break

            if rng[1] < next_row:
                rng = (next_row, next_row)

            self._append_cluster(clusters, rng)
            next_row = rng[1] + 1

        return clusters

    def _append_cluster(self, clusters: list[tuple[int, int]], rng: tuple[int, int]):
        # No lone 2x2 overlap at the start.
        if _size(rng) > self._min and self._num_matches(rng[0], 1, rng[0] + 2, _size(rng) - 2) == 0:
            rng = (rng[0] + 1, rng[1])

        too_small  = _size(rng) < self._min
        too_porous = self._num_matches_in(rng) - _size(rng) <= _size(rng) * _size(rng) // 2
        if too_small or too_porous:
            if not any(row in self.immediate_family_rows for row in range(rng[0], rng[1] + 1)):
                return

        # No lone 2x2 overlap at the end.
        if _size(rng) > self._min and self._num_matches(rng[1], 1, rng[0], _size(rng) - 2) == 0:
            rng = (rng[0], rng[1] - 1)

        # Merge with the previous cluster when the area between them is dense.
        if _size(rng) >= self._min and clusters:
            prev_start, prev_end = clusters[-1]
            density = self._density(prev_end + 1, rng[1] - prev_end, prev_start, rng[0] - prev_start)
            if density > 0.5:
                rng = (prev_start, rng[1])
                if self._can_extend_up(rng, _size(rng) // 2):
                    rng = (rng[0] - 1, rng[1])

        # Drop clusters fully inside the new one.
        while clusters and clusters[-1][0] >= rng[0]:
            clusters.pop()

        # Trim previous clusters that overlap the new one by a lot.
        overlapping = []
        while clusters and clusters[-1][1] >= rng[0] + self._min:
            overlapping.append(clusters.pop())
        for prev in reversed(overlapping):
            while prev[1] > prev[0]:
                non_overlap_width = rng[0] - prev[0]
                if self._num_matches(prev[1], 1, prev[0], non_overlap_width) < non_overlap_width // 2:
                    prev = (prev[0], prev[1] - 1)
                else:
                    break
            if not clusters or clusters[-1][1] < prev[1]:
                clusters.append(prev)

        if not clusters or clusters[-1][1] < rng[1]:
            clusters.append(rng)

    # ══════════════════════════════════════════════════════════════════════════
    # GROWTH TESTS
    # ══════════════════════════════════════════════════════════════════════════

    def _can_extend_down(self, rng: tuple[int, int], min_matches: int) -> bool:
        start, end = rng
        size = _size(rng)
        if end == self._n_rows - 1:
            return False

        # Tail of the next row nearly empty.
        if size >= self._min * 3:
            if self._num_matches(end + 1, 1, end - self._min * 2 + 1, self._min * 2) <= 1:
                return False

        # Head of the next row nearly empty.
        if size >= self._min * 2:
            if self._num_matches(end + 1, 1, start, self._min * 2) <= 1:
                return False

        return self._num_matches(end + 1, 1, start, size) >= min_matches

    def _can_extend_up(self, rng: tuple[int, int], min_matches: int) -> bool:
        start, end = rng
        size = _size(rng)
        if start == 0:
            return False

        if size > self._min:
            if self._num_matches(start - 1, 1, start, size // 2) == 0:
                return False
            if size >= self._min * 3:
                if self._num_matches(start - 1, 1, end - size // 2, size // 2 + 1) <= 1:
                    return False

        return self._num_matches(start - 1, 1, start, size) >= min_matches

    def _corner_size(self, rng: tuple[int, int]) -> int:
        # 2x2 for min size 3, growing by one for every ten rows.
        return max(self._min - 1, _size(rng) // 10 + 1)

    def _valid_extending_down(self, rng: tuple[int, int]) -> bool:
        """At least one match in the bottom-left corner."""
        if _size(rng) <= self._min:
            return True
        corner = self._corner_size(rng)
        return self._num_matches(rng[1] - corner + 1, corner, rng[0], corner) > 0

    def _valid_extending_up(self, rng: tuple[int, int]) -> bool:
        """At least one match in the top-left corner."""
        if _size(rng) <= self._min:
            return True
        corner = self._corner_size(rng)
        return self._num_matches(rng[0], corner, rng[0], corner) > 0

    # ── counting ──────────────────────────────────────────────────────────────
    def _num_matches(self, row_start: int, num_rows: int, col_start: int, num_cols: int) -> int:
        if num_rows <= 0 or num_cols <= 0:
            return 0
        row_start = max(row_start, 0)
        col_start = max(col_start, 0)
        return int(self._matrix[row_start:row_start + num_rows, col_start:col_start + num_cols].sum())

    def _num_matches_in(self, rng: tuple[int, int]) -> int:
        return self._num_matches(rng[0], _size(rng), rng[0], _size(rng))

    def _density(self, row_start: int, num_rows: int, col_start: int, num_cols: int) -> float:
        if num_rows <= 0 or num_cols <= 0:
            return 0.0
        return self._num_matches(row_start, num_rows, col_start, num_cols) / num_rows / num_cols
