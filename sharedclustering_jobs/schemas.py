"""
sharedclustering_jobs/schemas.py
================================
Report rows returned by the job runner.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════════
# SCHEMAS
# ══════════════════════════════════════════════════════════════════════════════

class NeighborRow(BaseModel):
    index:         int
    name:          str
    count:         int
    overlap_count: int
    score:         float

class NeighborGroup(BaseModel):
    query_index: int | None = None
    neighbors:   list[NeighborRow] = Field(default_factory=list)

class ClusterReportRow(BaseModel):
    index:               int
    name:                str = ""
    cluster_numbers:     list[int] = Field(default_factory=list)
    correlated_clusters: list[int] = Field(default_factory=list)

class ClusterReport(BaseModel):
    primary_cluster_finder: str
    num_clusters:           int
    rows:                   list[ClusterReportRow]
    unclustered:            list[int] = Field(default_factory=list)

    def row_for(self, index: int) -> ClusterReportRow | None:
        return next((row for row in self.rows if row.index == index), None)
