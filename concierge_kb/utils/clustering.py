"""
Clustering Algorithms

Union-Find (Disjoint Set Union) used to group recurring unresolved visitor
questions before they are proposed as FAQ candidates.
"""

from __future__ import annotations

from collections import defaultdict

import numpy as np


class UnionFind:
    """
    Union-Find data structure with path compression and union by rank.

    Time Complexity:
        - find(): O(α(n)) amortized
        - union(): O(α(n)) amortized
    """

    def __init__(self, n: int) -> None:
        """Initialize Union-Find with n elements (0 to n-1)."""
        self.parent = list(range(n))
        self.rank = [0] * n
        self.n = n

    def find(self, x: int) -> int:
        """Find root of element x with path compression."""
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: int, y: int) -> bool:
        """Union components containing x and y. Returns True if merged."""
        px, py = self.find(x), self.find(y)
        if px == py:
            return False

        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1
        return True

    def connected(self, x: int, y: int) -> bool:
        return self.find(x) == self.find(y)

    def get_components(self) -> list[list[int]]:
        """
        Get all connected components as lists of indices.

        Members are in ascending index order and components are ordered by
        their smallest member.
        """
        components: dict[int, list[int]] = defaultdict(list)
        for i in range(self.n):
            components[self.find(i)].append(i)
        return sorted(components.values(), key=lambda c: c[0])


def union_find_components(
    n: int,
    edges: list[tuple[int, int]],
) -> list[list[int]]:
    """
    Find connected components given edges.

    Args:
        n: Number of nodes
        edges: List of (i, j) edges indicating similar questions

    Returns:
        List of components (each is a list of node indices)
    """
    uf = UnionFind(n)
    for i, j in edges:
        uf.union(i, j)
    return uf.get_components()


def build_similarity_edges(
    similarity_matrix: np.ndarray,
    threshold: float,
) -> list[tuple[int, int]]:
    """
    Build edges from a pairwise similarity matrix.

    Only pairs whose similarity strictly exceeds the threshold are linked.

    Args:
        similarity_matrix: n x n cosine similarity matrix
        threshold: Similarity that must be exceeded to create an edge

    Returns:
        List of (i, j) edges with i < j
    """
    upper = np.triu(similarity_matrix > threshold, k=1)
    rows, cols = np.nonzero(upper)
    return [(int(i), int(j)) for i, j in zip(rows, cols)]
