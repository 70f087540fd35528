"""
Hierarchical clustering of enrichment results by gene overlap.

Terms are compared by the Jaccard distance of their overlap genes and
merged bottom-up with UPGMA. The tree is stored as an index-addressed
arena: node ids 0..n-1 are the leaves (node id == result index), internal
nodes are appended in merge order and the last one is the root.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from termenrich.enrichment_result import EnrichmentResult

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 20


@dataclass(frozen=True)
class Leaf:
    index: int
    height: float = 0.0


@dataclass(frozen=True)
class Internal:
    left: int
    right: int
    height: float


ClusterNode = Union[Leaf, Internal]


class ClusterTree:
    """Binary merge tree over n inputs: n leaves, n-1 internal nodes, one root."""

    def __init__(
        self,
        nodes: List[ClusterNode],
        root_id: int,
        results: Optional[List[EnrichmentResult]] = None,
    ) -> None:
        self.nodes = nodes
        self.root_id = root_id
        # Results the leaf indices refer to, when built by cluster_results
        self.results = results

    @property
    def root(self) -> ClusterNode:
        return self.nodes[self.root_id]

    def __len__(self) -> int:
        return len(self.nodes)

    def leaf_order(self) -> List[int]:
        """Leaf result indices from left to right."""
        order = []
        stack = [self.root_id]
        while stack:
            node = self.nodes[stack.pop()]
            if isinstance(node, Leaf):
                order.append(node.index)
            else:
                stack.append(node.right)
                stack.append(node.left)
        return order

    def max_height(self) -> float:
        return self.root.height

    def to_dict(self, node_id: Optional[int] = None) -> Dict[str, Any]:
        """Nested {index, height} / {left, right, height} view of the tree."""
        node = self.nodes[self.root_id if node_id is None else node_id]
        if isinstance(node, Leaf):
            return {"index": node.index, "height": node.height}
        return {
            "left": self.to_dict(node.left),
            "right": self.to_dict(node.right),
            "height": node.height,
        }


def jaccard_distances(results: Sequence[EnrichmentResult]) -> np.ndarray:
    """
    Pairwise Jaccard distance between the gene sets of enrichment results.

    D[i, j] = 1 - |A & B| / |A | B|, and 1 when both sets are empty.
    The matrix is symmetric with a zero diagonal.
    """
    gene_sets = [set(result.genes or []) for result in results]
    n = len(gene_sets)
    dist = np.zeros((n, n), dtype=float)
    for i in range(n):
        for j in range(i + 1, n):
            a, b = gene_sets[i], gene_sets[j]
            intersection = len(a & b)
            union = len(a) + len(b) - intersection
            d = 1.0 if union == 0 else 1.0 - intersection / union
            dist[i, j] = d
            dist[j, i] = d
    return dist


def upgma(distances: Union[np.ndarray, Sequence[Sequence[float]]]) -> Optional[ClusterTree]:
    """
    UPGMA agglomerative clustering.

    Each step merges the closest pair of active clusters at height d/2 and
    replaces their distances to every other cluster with the average
    weighted by the number of leaves on each side. Ties go to the first
    pair in row-major order over the active clusters.

    Args:
        distances: Square symmetric distance matrix

    Returns:
        ClusterTree, or None for an empty matrix
    """
    dist = np.array(distances, dtype=float)
    if dist.size == 0:
        return None
    if dist.ndim != 2 or dist.shape[0] != dist.shape[1]:
        raise ValueError(f"Distance matrix must be square, got shape {dist.shape}")
    if not np.all(np.isfinite(dist)):
        raise ValueError("Distance matrix must contain only finite values")

    n = dist.shape[0]
    nodes: List[ClusterNode] = [Leaf(index=i) for i in range(n)]
    if n == 1:
        return ClusterTree(nodes, root_id=0)

    sizes = [1] * n
    # Row of the distance matrix -> arena id of the cluster it currently holds
    node_at = list(range(n))
    active = list(range(n))

    for _ in range(n - 1):
        sub = dist[np.ix_(active, active)]
        sub[np.tril_indices(len(active))] = np.inf
        a, b = np.unravel_index(np.argmin(sub), sub.shape)
        mi, mj = active[a], active[b]
        min_dist = float(dist[mi, mj])

        nodes.append(Internal(left=node_at[mi], right=node_at[mj], height=min_dist / 2))
        logger.debug(f"Merged rows {mi} and {mj} at distance {min_dist:.4f}")

        others = [k for k in active if k != mi and k != mj]
        if others:
            si, sj = sizes[mi], sizes[mj]
            merged = (dist[mi, others] * si + dist[mj, others] * sj) / (si + sj)
            dist[mi, others] = merged
            dist[others, mi] = merged

        sizes[mi] += sizes[mj]
        node_at[mi] = len(nodes) - 1
        active.remove(mj)

    return ClusterTree(nodes, root_id=node_at[active[0]])


def cluster_results(
    results: Sequence[EnrichmentResult],
    top_n: int = DEFAULT_TOP_N,
) -> Optional[ClusterTree]:
    """
    Cluster the leading enrichment results by gene overlap.

    Results with no genes are skipped and the first top_n of the rest are
    clustered in their given order.

    Args:
        results: Enrichment results, normally sorted by p-value
        top_n: Maximum number of results to cluster

    Returns:
        ClusterTree whose leaf indices refer to tree.results, or None when
        fewer than two results are eligible
    """
    if top_n < 0:
        raise ValueError(f"top_n must be non-negative, got {top_n}")
    data = [result for result in results if result.fdr <= 1 and result.genes][:top_n]
    if len(data) < 2:
        logger.info(f"Insufficient data for clustering: {len(data)} eligible results")
        return None

    tree = upgma(jaccard_distances(data))
    tree.results = data
    logger.info(f"Clustered {len(data)} results, max height {tree.max_height():.4f}")
    return tree
