"""
sharedclustering/writers.py
===========================
Sinks for nearest-neighbour results.

The finder emits, per query, a header, one line per neighbour and a blank
separator. Rendering to a concrete file format happens outside this package;
``MemoryNeighborWriter`` keeps the rows in memory and is what the job runner
and the tests use.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .models import ClusterableMatch

logger = logging.getLogger(__name__)


class NeighborWriter(ABC):
    @abstractmethod
    def write_header(self, match: Optional[ClusterableMatch]):
        ...

    @abstractmethod
    def write_line(self, match: ClusterableMatch, overlap_count: int):
        ...

    @abstractmethod
    def skip_line(self):
        ...

    def file_limit_reached(self) -> bool:
        return False

    @abstractmethod
    def save(self) -> str:
        """Finalize the output unit and return its identifier."""

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


@dataclass(frozen=True)
class WrittenRow:
    kind:          str                       # "header" | "line" | "blank"
    match:         Optional[ClusterableMatch] = None
    overlap_count: int = 0


class MemoryNeighborWriter(NeighborWriter):
    """
    Collects rows in a list. ``row_limit`` mirrors the row cap of a
    spreadsheet sink; ``None`` disables it.
    """

    def __init__(self, identifier: str = "neighbors", row_limit: Optional[int] = None):
        self.identifier = identifier
        self.row_limit  = row_limit
        self.rows:  list[WrittenRow] = []
        self.saved  = False
        self.closed = False

    def write_header(self, match: Optional[ClusterableMatch]):
        self.rows.append(WrittenRow("header", match))

    def write_line(self, match: ClusterableMatch, overlap_count: int):
        self.rows.append(WrittenRow("line", match, overlap_count))

    def skip_line(self):
        self.rows.append(WrittenRow("blank"))

    def file_limit_reached(self) -> bool:
        return self.row_limit is not None and len(self.rows) >= self.row_limit

    def save(self) -> str:
        self.saved = True
        logger.debug(f"Saved {len(self.rows)} rows to {self.identifier}")
        return self.identifier

    def close(self):
        self.closed = True

    # ── Convenience views ─────────────────────────────────────────────────────
    def groups(self) -> list[tuple[Optional[ClusterableMatch], list[tuple[ClusterableMatch, int]]]]:
        """Rows regrouped as ``(header_match, [(match, overlap_count), ...])``."""
        groups = []
        current = None
        for row in self.rows:
            if row.kind == "header":
                current = (row.match, [])
                groups.append(current)
            elif row.kind == "line":
                if current is None:
                    current = (None, [])
                    groups.append(current)
                current[1].append((row.match, row.overlap_count))
            else:
                current = None
        return groups
