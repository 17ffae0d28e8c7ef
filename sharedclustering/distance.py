"""
sharedclustering/distance.py
============================
Distance metrics between sparse shared-match vectors.

Every metric maps two ``{index: strength}`` dicts to a float where smaller
means closer. ``inf`` is the "never merge these" sentinel; no metric raises
on disjoint or empty inputs.

Usage:
    from sharedclustering.distance import create_distance_metric

    metric = create_distance_metric("overlap_weighted")
    d = metric.calculate(leaf_a.coords, leaf_b.coords)
"""

from __future__ import annotations

import math
import logging
from abc import ABC, abstractmethod
from typing import Iterable, Mapping

import numpy as np

logger = logging.getLogger(__name__)

Coords = Mapping[int, float]


# ══════════════════════════════════════════════════════════════════════════════
class DistanceMetric(ABC):
    """Strategy interface. Subclasses are stateless apart from construction args."""

    name: str = ""

    @abstractmethod
    def calculate(self, coords1: Coords, coords2: Coords) -> float:
        ...

    def significant_coordinates(self, coords: Coords) -> Iterable[int]:
        return coords.keys()

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _fewer_and_more(coords1: Coords, coords2: Coords) -> tuple[Coords, Coords]:
    # Equal sizes iterate coords2.
    if len(coords1) < len(coords2):
        return coords1, coords2
    return coords2, coords1


def _overlap_weighted_terms(fewer: Coords, more: Coords) -> tuple[float, float]:
    """
    Shared core of the overlap-weighted metrics.

    Values below 1 count as absent. Returns ``(distance_squared, overlap)``;
    ``distance_squared`` excludes the coordinates present only in ``more``.
    """
    distance_squared = 0.0
    overlap          = 0.0
    for index, value in fewer.items():
        clamped = value if value >= 1 else 0.0
        other = more.get(index)
        if other is not None:
            other_clamped = other if other >= 1 else 0.0
            overlap += min(clamped, other_clamped)
            diff = clamped - other_clamped
            distance_squared += diff * diff
        elif value >= 1:
            distance_squared += clamped * clamped
    return distance_squared, overlap


def _add_only_in_more(distance_squared: float, fewer: Coords, more: Coords) -> float:
    for index, value in more.items():
        if value >= 1 and index not in fewer:
            distance_squared += value * value
    return distance_squared


# ── Overlap weighted (default) ────────────────────────────────────────────────
class OverlapWeightedEuclideanDistanceSquared(DistanceMetric):
    """
    Squared Euclidean distance over significant coordinates, divided by the
    overlap. Two matches sharing nothing significant are infinitely far apart.
    """

    name = "overlap_weighted"

    def calculate(self, coords1: Coords, coords2: Coords) -> float:
        fewer, more = _fewer_and_more(coords1, coords2)
        distance_squared, overlap = _overlap_weighted_terms(fewer, more)
        if overlap == 0:
            return math.inf
        distance_squared = _add_only_in_more(distance_squared, fewer, more)
        return distance_squared / overlap

    def significant_coordinates(self, coords: Coords) -> Iterable[int]:
        return [index for index, value in coords.items() if value >= 1]


class OverlapAndCloseWeightedEuclideanDistanceSquared(DistanceMetric):
    """
    Overlap-weighted distance with a bonus for shared immediate family:
    every close relative significant in both vectors adds ten times the
    smaller strength to the overlap.
    """

    name = "overlap_and_close_weighted"

    def __init__(self, immediate_family_indexes: Iterable[int] = ()):
        self.immediate_family_indexes = frozenset(immediate_family_indexes)

    def calculate(self, coords1: Coords, coords2: Coords) -> float:
        fewer, more = _fewer_and_more(coords1, coords2)
        distance_squared, overlap = _overlap_weighted_terms(fewer, more)
        if overlap <= 0:
            return math.inf
        distance_squared = _add_only_in_more(distance_squared, fewer, more)

        for index in self.immediate_family_indexes:
            value1 = coords1.get(index)
            value2 = coords2.get(index)
            if value1 is not None and value2 is not None and value1 >= 1 and value2 >= 1:
                overlap += 10 * min(value1, value2)

        return distance_squared / overlap

    def __repr__(self) -> str:
        return f"{type(self).__name__}(immediate_family={len(self.immediate_family_indexes)})"


# ── Plain Euclidean ───────────────────────────────────────────────────────────
class EuclideanDistanceSquared(DistanceMetric):
    name = "euclidean_squared"

    def calculate(self, coords1: Coords, coords2: Coords) -> float:
        fewer, more = _fewer_and_more(coords1, coords2)
        distance_squared = 0.0
        shared = False
        for index, value in fewer.items():
            other = more.get(index)
            if other is not None:
                shared = True
                diff = value - other
                distance_squared += diff * diff
            else:
                distance_squared += value * value
        if not shared:
            return math.inf
        for index, value in more.items():
            if index not in fewer:
                distance_squared += value * value
        return distance_squared


# ── Similarity-derived metrics (negated so smaller is closer) ─────────────────
class Antiproximity(DistanceMetric):
    name = "antiproximity"

    def calculate(self, coords1: Coords, coords2: Coords) -> float:
        return -sum(value * coords2[index] for index, value in coords1.items() if index in coords2)


class Overlap(DistanceMetric):
    name = "overlap"

    def calculate(self, coords1: Coords, coords2: Coords) -> float:
        overlap = sum(min(value, coords2[index]) for index, value in coords1.items() if index in coords2)
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(np.float64(-overlap * overlap) / np.float64(sum(coords1.values())) / np.float64(sum(coords2.values())))


class Correlation(DistanceMetric):
    """
    Pearson-style correlation over a fixed population of 1000 matches.
    Degenerate vectors produce nan/inf rather than raising.
    """

    name = "correlation"
    population = 1000

    def calculate(self, coords1: Coords, coords2: Coords) -> float:
        sum_x = sum_x2 = sum_y = sum_y2 = sum_xy = 0.0
        for index, x in coords1.items():
            y = coords2.get(index, 0.0)
            sum_x  += x
            sum_x2 += x * x
            sum_y  += y
            sum_y2 += y * y
            sum_xy += x * y
        for index, y in coords2.items():
            if index not in coords1:
                sum_y  += y
                sum_y2 += y * y

        n = np.float64(self.population)
        with np.errstate(divide="ignore", invalid="ignore"):
            std_x = np.sqrt(sum_x2 / n - sum_x * sum_x / n / n)
            std_y = np.sqrt(sum_y2 / n - sum_y * sum_y / n / n)
            covariance = sum_xy / n - sum_x * sum_y / n / n
            return float(covariance / std_x / std_y)


# ── Strength weighted ─────────────────────────────────────────────────────────
_STRONG_CUTOFF = 0.1
_WEAK_CUTOFF   = 0.01


def _bumped(value: float) -> float:
    return value + (1 if value > _WEAK_CUTOFF else 0)


class StrengthWeightedEuclideanDistanceSquared(DistanceMetric):
    """
    Squared distance split into three tiers by coordinate strength.
    Strong differences count double; a coordinate contributes to the first
    tier either vector reaches, and to lower tiers only while one side is
    still below that tier's cutoff.
    """

    name = "strength_weighted"

    def calculate(self, coords1: Coords, coords2: Coords) -> float:
        strong = medium = weak = 0.0

        for index, value in coords1.items():
            other = coords2.get(index, 0.0)
            diff = _bumped(value) - _bumped(other)
            diff_squared = diff * diff

            if value > _STRONG_CUTOFF or other > _STRONG_CUTOFF:
                strong += 2 * diff_squared
                if value > _STRONG_CUTOFF and other > _STRONG_CUTOFF:
                    continue
            if value > _WEAK_CUTOFF or other > _WEAK_CUTOFF:
                medium += diff_squared
                if value > _WEAK_CUTOFF and other > _WEAK_CUTOFF:
                    continue
            weak += diff_squared

        for index, value in coords2.items():
            if index in coords1:
                continue
            diff_squared = _bumped(value) ** 2
            if value > _STRONG_CUTOFF:
                strong += 2 * diff_squared
                continue
            if value > _WEAK_CUTOFF:
                medium += diff_squared
                continue
            weak += diff_squared

        return strong + medium + weak


# ══════════════════════════════════════════════════════════════════════════════
# FACTORY
# ══════════════════════════════════════════════════════════════════════════════

_METRICS: dict[str, type[DistanceMetric]] = {
    cls.name: cls
    for cls in (
        OverlapWeightedEuclideanDistanceSquared,
        OverlapAndCloseWeightedEuclideanDistanceSquared,
        EuclideanDistanceSquared,
        Antiproximity,
        Overlap,
        Correlation,
        StrengthWeightedEuclideanDistanceSquared,
    )
}

METRIC_NAMES = tuple(_METRICS)


def create_distance_metric(name: str, immediate_family_indexes: Iterable[int] = ()) -> DistanceMetric:
    """
    Build a metric by its configured name.

    Parameters
    ----------
    name : one of ``METRIC_NAMES``
    immediate_family_indexes : only used by ``overlap_and_close_weighted``

    Returns
    -------
    DistanceMetric
    """
    try:
        cls = _METRICS[name]
    except KeyError:
        raise ValueError(f"Unknown distance metric {name!r}; expected one of {', '.join(METRIC_NAMES)}") from None

    if cls is OverlapAndCloseWeightedEuclideanDistanceSquared:
        metric = cls(immediate_family_indexes)
    else:
        metric = cls()
    logger.debug(f"Selected distance metric {metric!r}")
    return metric
