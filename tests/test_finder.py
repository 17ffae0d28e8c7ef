"""
tests/test_finder.py
====================
Bucket-indexed neighbour search: ranking, inclusion rules, sinks, progress.
Run with: pytest tests/test_finder.py -v
"""

import pytest

from sharedclustering.finder import NeighborFinder, build_buckets, overlap_score
from sharedclustering.progress import ProgressData
from sharedclustering.writers import MemoryNeighborWriter

from conftest import make_match


class CountingProgress(ProgressData):
    def __init__(self):
        super().__init__()
        self.increments = 0
        self.resets = []

    def reset(self, description=None, maximum=0):
        super().reset(description, maximum)
        self.resets.append(description)

    def increment(self):
        super().increment()
        self.increments += 1


def indexes(neighbors):
    return [n.match.index for n in neighbors]


# ══════════════════════════════════════════════════════════════════════════════
# BUCKETS + SCORE
# ══════════════════════════════════════════════════════════════════════════════

def test_build_buckets():
    a = make_match(0, {1: 1, 2: 1})
    b = make_match(1, {2: 1, 3: 1})
    buckets = build_buckets([a, b])
    assert buckets == {1: [a], 2: [a, b], 3: [b]}
    assert build_buckets([a, b], basis={2}) == {2: [a, b]}


def test_score_strictly_increases_with_overlap():
    scores = [overlap_score(k, 10, 8) for k in range(1, 11)]
    assert all(s1 < s2 for s1, s2 in zip(scores, scores[1:]))


# ══════════════════════════════════════════════════════════════════════════════
# PER MATCH
# ══════════════════════════════════════════════════════════════════════════════

def test_query_returns_ranked_neighbours(abcd):
    finder = NeighborFinder(min_cluster_size=1)
    results = dict(finder.find_closest(abcd))
    a, b, c, d = abcd

    neighbors = results[a]
    # C: 2²/(3·2), B: 2²/(3·3), D reaches A's list only through B: 1²/(3·2)
    assert indexes(neighbors) == [2, 1, 3]
    assert [n.overlap_count for n in neighbors] == [2, 2, 1]
    assert neighbors[0].score == pytest.approx(4 / 6)
    assert a not in [n.match for n in neighbors]


def test_multiplicity_prefilter_drops_weak_candidates(abcd):
    finder = NeighborFinder(min_cluster_size=2)
    results = dict(finder.find_closest(abcd))
    assert indexes(results[abcd[0]]) == [2, 1]


def test_lists_without_own_index_link_only_through_shared_entries():
    # Same four matches, lists without their own index: A and D both list B.
    a, b, c, d = (make_match(0, {1: 1, 2: 1}), make_match(1, {0: 1, 3: 1}),
                  make_match(2, {0: 1}), make_match(3, {1: 1}))
    results = dict(NeighborFinder(min_cluster_size=1).find_closest([a, b, c, d]))
    assert indexes(results[a]) == [3]
    assert results[a][0].score == pytest.approx(1 / 2)


def test_inclusion_requires_a_third_of_candidate_count():
    query = make_match(0, {0: 1, 1: 1, 2: 1})
    big   = make_match(1, {i: 1 for i in range(12)})       # 12 // 3 = 4 > overlap 3
    small = make_match(2, {0: 1, 1: 1, 2: 1, 50: 1})
    finder = NeighborFinder(min_cluster_size=1)
    results = dict(finder.find_closest([query, big, small]))
    assert indexes(results[query]) == [2]


def test_ties_broken_by_index():
    query = make_match(5, {5: 1, 10: 1, 11: 1})
    twins = [make_match(i, {10: 1, 11: 1}) for i in (3, 1, 2)]
    finder = NeighborFinder(min_cluster_size=1)
    results = dict(finder.find_closest([query] + twins))
    assert indexes(results[query]) == [1, 2, 3]


def test_results_capped_per_match():
    query = make_match(0, {i: 1 for i in range(10)})
    others = [make_match(i, {i: 1, 0: 1}) for i in range(1, 10)]
    finder = NeighborFinder(min_cluster_size=1, max_results_per_match=4)
    results = dict(finder.find_closest([query] + others))
    assert len(results[query]) == 4


def test_bucket_scan_matches_brute_force():
    matches = [
        make_match(i, {j: 1 for j in range(20) if (i * 7 + j * 3) % 5 < 2 or j == i})
        for i in range(20)
    ]
    finder = NeighborFinder(min_cluster_size=1)

    for query, neighbors in finder.find_closest(matches):
        coords = set(query.coords)
        expected = []
        for other in matches:
            if other is query:
                continue
            overlap = len(coords & set(other.coords))
            if finder.per_match_inclusion(other, overlap):
                expected.append((-overlap_score(overlap, len(coords), other.count), other.index, overlap))
        expected.sort()
        assert [(n.match.index, n.overlap_count) for n in neighbors] == [(i, o) for _, i, o in expected]


# ══════════════════════════════════════════════════════════════════════════════
# BASIS
# ══════════════════════════════════════════════════════════════════════════════

def test_basis_search(abcd):
    finder = NeighborFinder(min_cluster_size=1)
    [(query, neighbors)] = list(finder.find_closest(abcd, basis={0, 1}))
    assert query is None
    # A and B tie on score, then index order
    assert indexes(neighbors) == [0, 1, 2, 3]
    assert [n.overlap_count for n in neighbors] == [2, 2, 1, 1]


def test_basis_search_writes_headerless_group_and_counts_results(abcd):
    progress = CountingProgress()
    finder = NeighborFinder(min_cluster_size=1, progress=progress)
    writer = MemoryNeighborWriter("basis")
    assert finder.find_by_distance(abcd, writer, basis={0, 1}) == "basis"

    assert writer.rows[0].kind == "header" and writer.rows[0].match is None
    [(header, lines)] = writer.groups()
    assert header is None
    assert [m.index for m, _ in lines] == [0, 1, 2, 3]
    assert progress.increments == 4


# ══════════════════════════════════════════════════════════════════════════════
# SINKS
# ══════════════════════════════════════════════════════════════════════════════

def test_distance_mode_writes_every_query(abcd):
    progress = CountingProgress()
    finder = NeighborFinder(min_cluster_size=1, progress=progress)
    writer = MemoryNeighborWriter("out")

    assert finder.find_by_distance(abcd, writer) == "out"
    assert writer.saved and writer.closed

    groups = writer.groups()
    assert [header.index for header, _ in groups] == [0, 1, 2, 3]
    assert [(m.index, overlap) for m, overlap in groups[1][1]] == [(3, 2), (0, 2), (2, 1)]
    assert [row.kind for row in writer.rows].count("blank") == 4
    assert progress.increments == 4
    assert progress.description is None and progress.value == 0


def test_query_without_results_writes_nothing():
    lonely = make_match(0, {0: 1})
    other  = make_match(1, {1: 1})
    progress = CountingProgress()
    writer = MemoryNeighborWriter()
    NeighborFinder(min_cluster_size=1, progress=progress).find_by_distance([lonely, other], writer)
    assert writer.rows == []
    assert progress.increments == 2


def test_similarity_rolls_over_to_new_parts(abcd):
    writers = []

    def get_writer(part):
        writer = MemoryNeighborWriter(f"sim-{part}", row_limit=6)
        writers.append(writer)
        return writer

    finder = NeighborFinder(min_cluster_size=1)
    assert finder.find_by_similarity(abcd, get_writer) == ["sim-1", "sim-2"]

    assert [[h.index for h, _ in w.groups()] for w in writers] == [[0, 1], [2, 3]]
    assert all(w.saved and w.closed for w in writers)


def test_similarity_without_limit_uses_one_part(abcd):
    finder = NeighborFinder(min_cluster_size=1)
    assert finder.find_by_similarity(abcd, lambda part: MemoryNeighborWriter(f"sim-{part}")) == ["sim-1"]


def test_progress_reset_when_writer_fails(abcd):
    class FailingWriter(MemoryNeighborWriter):
        def write_line(self, match, overlap_count):
            raise IOError("disk full")

    progress = CountingProgress()
    finder = NeighborFinder(min_cluster_size=1, progress=progress)
    writer = FailingWriter()
    with pytest.raises(IOError, match="disk full"):
        finder.find_by_distance(abcd, writer)

    assert progress.description is None
    assert progress.resets[-1] is None
    assert writer.closed and not writer.saved


if __name__ == "__main__":
    import subprocess, sys
    subprocess.run([sys.executable, "-m", "pytest", __file__, "-v"])
