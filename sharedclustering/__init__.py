"""
Shared Clustering — correlation analysis of DNA shared-match lists
"""
from .models import ClusterableMatch, ClusterNode, LeafNode, LeafSpan, Match
from .distance import DistanceMetric, create_distance_metric
from .finder import NeighborFinder, build_buckets, overlap_score
from .primary_clusters import (
    GrowthBasedPrimaryClusterFinder,
    HalfMatchPrimaryClusterFinder,
    assign_cluster_numbers,
    assign_overlapping_cluster_numbers,
)
from .correlation import CorrelatedClustersFinder, CorrelatedOverlappingClustersFinder
from .progress import ProgressData, SuppressProgress

__all__ = [
    "Match", "ClusterableMatch", "LeafNode", "ClusterNode", "LeafSpan",
    "DistanceMetric", "create_distance_metric",
    "NeighborFinder", "build_buckets", "overlap_score",
    "HalfMatchPrimaryClusterFinder", "GrowthBasedPrimaryClusterFinder",
    "assign_cluster_numbers", "assign_overlapping_cluster_numbers",
    "CorrelatedClustersFinder", "CorrelatedOverlappingClustersFinder",
    "ProgressData", "SuppressProgress",
]
__version__ = "1.0.0"
