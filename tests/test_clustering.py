"""
Tests for union-find clustering and similarity helpers.
"""

import numpy as np
import pytest

from concierge_kb.utils.clustering import (
    UnionFind,
    build_similarity_edges,
    union_find_components,
)
from concierge_kb.utils.similarity import (
    compute_similarity_matrix,
    cosine_similarity,
    similarity_to_many,
)
from concierge_kb.utils.text import content_hash, normalize_text, truncate


class TestUnionFind:
    def test_initial_components_are_singletons(self):
        uf = UnionFind(3)
        assert uf.get_components() == [[0], [1], [2]]

    def test_union_merges(self):
        uf = UnionFind(4)
        assert uf.union(0, 2) is True
        assert uf.union(2, 0) is False
        assert uf.connected(0, 2)
        assert not uf.connected(0, 1)

    def test_transitive_components(self):
        components = union_find_components(5, [(0, 1), (1, 3)])
        assert components == [[0, 1, 3], [2], [4]]

    def test_long_chain(self):
        n = 2000
        components = union_find_components(n, [(i, i + 1) for i in range(n - 1)])
        assert len(components) == 1
        assert len(components[0]) == n


class TestSimilarityEdges:
    def test_threshold_is_strict(self):
        matrix = np.array([
            [1.0, 0.9, 0.2],
            [0.9, 1.0, 0.95],
            [0.2, 0.95, 1.0],
        ])
        assert build_similarity_edges(matrix, 0.9) == [(1, 2)]

    def test_no_self_edges(self):
        assert build_similarity_edges(np.eye(3), 0.5) == []


class TestSimilarity:
    def test_cosine_similarity(self):
        assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)

    def test_zero_vector_scores_zero(self):
        assert cosine_similarity([0, 0], [1, 0]) == 0.0
        assert similarity_to_many([1, 0], [[0, 0], [2, 0]]).tolist() == pytest.approx([0.0, 1.0])

    def test_similarity_to_many_empty(self):
        assert len(similarity_to_many([1, 0], [])) == 0

    def test_matrix_diagonal_is_one(self):
        matrix = compute_similarity_matrix([[1, 0], [0, 1], [1, 1]])
        assert np.allclose(np.diag(matrix), 1.0)
        assert matrix[0, 2] == pytest.approx(1 / np.sqrt(2))


class TestText:
    def test_normalize_text(self):
        assert normalize_text("  a \n\t b  ") == "a b"

    def test_content_hash_ignores_whitespace(self):
        assert content_hash("a  b") == content_hash("a b")
        assert content_hash("a b") != content_hash("a c")

    def test_truncate_on_word_boundary(self):
        assert truncate("hello wonderful world", 12) == "hello"
        assert truncate("short", 10) == "short"
