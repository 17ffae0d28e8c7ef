"""
sharedclustering_jobs/config.py
===============================
Central configuration via environment variables (or a .env file).
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Literal

MetricName = Literal[
    "overlap_weighted", "overlap_and_close_weighted", "euclidean_squared",
    "antiproximity", "overlap", "correlation", "strength_weighted",
]


class Settings(BaseSettings):
    # ── App ───────────────────────────────────────────────────────────────────
    app_name:        str  = "Shared Clustering"
    app_version:     str  = "1.0.0"
    debug:           bool = False

    # ── Neighbour search ──────────────────────────────────────────────────────
    min_cluster_size:      int = Field(default=3, ge=1)
    max_results_per_match: int = Field(default=100, ge=1)
    row_limit:             int = Field(default=100_000, ge=1)   # rows per output unit

    # ── Clustering ────────────────────────────────────────────────────────────
    distance_metric:        MetricName = "overlap_weighted"
    primary_cluster_finder: Literal["half_match", "growth_based"] = "half_match"
    matrix_builder:         Literal["appearance_weighted", "count_based"] = "appearance_weighted"
    immediate_family_centimorgans: float = 200.0
    lowest_clusterable_centimorgans: float = 20.0
    max_cluster_size:       int | None = None   # endogamy filter, off by default

    # ── Workers ───────────────────────────────────────────────────────────────
    max_workers:     int  = Field(default=4, ge=1)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "SHAREDCLUSTERING_"
        extra = "ignore"


settings = Settings()
