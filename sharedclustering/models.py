"""
sharedclustering/models.py
==========================
Records shared by every stage of the analysis.

    Match              raw attributes of one DNA match (read-only)
    ClusterableMatch   a match plus its sparse shared-match vector
    LeafNode           one match positioned in the merge tree
    ClusterNode        an internal merge of two subtrees
    LeafSpan           a contiguous run of ordered leaves (overlapping clusters)

The merge tree is built elsewhere; this package only walks it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union


# ── Raw match ─────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Match:
    test_id:            str
    name:               str   = ""
    shared_centimorgans: float = 0.0
    shared_segments:    int   = 0
    longest_block:      float = 0.0
    tree_size:          int   = 0
    note:               str   = ""
    tag_ids:            tuple[int, ...] = ()

    @property
    def display_name(self) -> str:
        return self.name or self.test_id


def _frozen_coords(coords: Mapping[int, float] | Iterable[int]) -> Mapping[int, float]:
    """Accept a mapping or a bare collection of indexes (each worth 1.0)."""
    if isinstance(coords, Mapping):
        return MappingProxyType(dict(coords))
    return MappingProxyType({index: 1.0 for index in coords})


# ── Clusterable match ─────────────────────────────────────────────────────────
@dataclass(frozen=True, eq=False)
class ClusterableMatch:
    """
    One match with its shared-match vector.

    ``coords`` is keyed by the indexes of other matches; the match's own index
    may or may not be present. ``count`` defaults to the number of coordinates
    and is what overlap scores are normalized by.
    """
    index:  int
    match:  Match
    coords: Mapping[int, float] = field(default_factory=dict)
    count:  int = -1

    def __post_init__(self):
        object.__setattr__(self, "coords", _frozen_coords(self.coords))
        if self.count < 0:
            object.__setattr__(self, "count", len(self.coords))

    def __eq__(self, other) -> bool:
        return isinstance(other, ClusterableMatch) and other.index == self.index

    def __lt__(self, other: "ClusterableMatch") -> bool:
        return self.index < other.index

    def __hash__(self) -> int:
        return hash(self.index)

    def __repr__(self) -> str:
        return f"ClusterableMatch(index={self.index}, name={self.match.display_name!r}, count={self.count})"


# ── Merge tree ────────────────────────────────────────────────────────────────
class LeafNode:
    """A single match in the merge tree. Coordinate values are quantized strengths."""

    __slots__ = ("index", "coords")

    def __init__(self, index: int, coords: Mapping[int, float] | Iterable[int]):
        self.index  = index
        self.coords = _frozen_coords(coords)

    @property
    def first_leaf(self) -> "LeafNode":
        return self

    @property
    def second_leaf(self) -> "LeafNode":
        return self

    @property
    def num_children(self) -> int:
        return 1

    @property
    def ordered_leaf_nodes(self) -> tuple["LeafNode", ...]:
        return (self,)

    def significant_indexes(self) -> set[int]:
        return {index for index, value in self.coords.items() if value >= 1}

    def __repr__(self) -> str:
        return f"LeafNode({self.index})"


class ClusterNode:
    """
    Merge of two subtrees. ``first_leaf``/``second_leaf`` are the outermost
    leaves of the canonical left-to-right order; they are taken from the
    children unless given explicitly.
    """

    __slots__ = ("first", "second", "first_leaf", "second_leaf", "distance", "_ordered_leaves")

    def __init__(
        self,
        first: "Node",
        second: "Node",
        distance: float = 0.0,
        first_leaf: Optional[LeafNode] = None,
        second_leaf: Optional[LeafNode] = None,
    ):
        self.first       = first
        self.second      = second
        self.distance    = distance
        self.first_leaf  = first_leaf  if first_leaf  is not None else first.first_leaf
        self.second_leaf = second_leaf if second_leaf is not None else second.second_leaf
        self._ordered_leaves: Optional[tuple[LeafNode, ...]] = None

    @property
    def ordered_leaf_nodes(self) -> tuple[LeafNode, ...]:
        # Iterative walk: merge trees over thousands of matches are deep.
        if self._ordered_leaves is None:
            leaves: list[LeafNode] = []
            stack: list[Node] = [self]
            while stack:
                node = stack.pop()
                if isinstance(node, LeafNode):
                    leaves.append(node)
                elif node._ordered_leaves is not None:
                    leaves.extend(node._ordered_leaves)
                else:
                    stack.append(node.second)
                    stack.append(node.first)
            self._ordered_leaves = tuple(leaves)
        return self._ordered_leaves

    @property
    def num_children(self) -> int:
        return len(self.ordered_leaf_nodes)

    def __repr__(self) -> str:
        return f"ClusterNode(size={self.num_children}, distance={self.distance:.4g})"


Node = Union[LeafNode, ClusterNode]


@dataclass(frozen=True)
class LeafSpan:
    """Inclusive ``[start, end]`` run over an ordered leaf list."""
    start:  int
    end:    int
    ordered_leaf_nodes: tuple[LeafNode, ...] = ()

    @property
    def num_children(self) -> int:
        return self.end - self.start + 1


PrimaryCluster = Union[ClusterNode, LeafSpan]
