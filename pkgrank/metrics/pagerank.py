"""
pkgrank/metrics/pagerank.py — Weighted PageRank power iteration.

Edge weights are normalized per source node, so a node's weight only decides
*whether* it passes rank along (weight 0 → it behaves as a dangling node) and,
for mixed weights, how its mass is split among its targets. In the dependency
graph every out-edge of a module carries the stars of its repository, so
unstarred consumers teleport their mass uniformly instead of endorsing their
dependencies.

Iteration:
    r' = α · Σ_in r[src] · w_norm  +  (1 − α) / N  +  α · Σ_dangling r / N

and stops once ‖r' − r‖₁ ≤ tolerance (or after max_iterations).

Author: pkgrank maintainers
"""

import logging
from typing import Hashable

import networkx as nx
import numpy as np

from pkgrank.config import DEFAULT_CONFIG

logger = logging.getLogger(__name__)


def weighted_pagerank(
    G: nx.DiGraph,
    damping: float = DEFAULT_CONFIG.damping,
    tolerance: float = DEFAULT_CONFIG.tolerance,
    max_iterations: int = DEFAULT_CONFIG.max_iterations,
    weight: str = "weight",
) -> dict[Hashable, float]:
    """
    Compute PageRank mass for every node of G.

    Args:
        G:              Directed graph. Every node is ranked, isolated ones included.
        damping:        Probability of following an edge instead of teleporting.
        tolerance:      L1 convergence threshold between successive iterations.
        max_iterations: Iteration cap; hitting it is logged at WARNING.
        weight:         Edge attribute holding the link weight (missing → 1.0).

    Returns:
        ranks: Dict mapping node → rank mass. Masses sum to 1.
    """
    nodes = list(G.nodes())
    n = len(nodes)
    if n == 0:
        return {}

    index = {node: i for i, node in enumerate(nodes)}
    m = G.number_of_edges()
    src = np.empty(m, dtype=np.int64)
    dst = np.empty(m, dtype=np.int64)
    w = np.empty(m, dtype=float)
    for k, (u, v, data) in enumerate(G.edges(data=True)):
        src[k] = index[u]
        dst[k] = index[v]
        w[k] = max(float(data.get(weight, 1.0)), 0.0)

    outbound = np.bincount(src, weights=w, minlength=n).astype(float)
    source_out = outbound[src]
    w_norm = np.divide(w, source_out, out=np.zeros_like(w), where=source_out > 0)
    dangling = outbound <= 0

    inverse = 1.0 / n
    rank = np.full(n, inverse)
    delta = float("inf")
    iteration = 0
    while delta > tolerance and iteration < max_iterations:
        iteration += 1
        leak = damping * rank[dangling].sum()
        # bincount of an empty index array is int64
        updated = np.bincount(dst, weights=damping * rank[src] * w_norm, minlength=n).astype(float)
        updated += (1.0 - damping) * inverse + leak * inverse
        delta = float(np.abs(updated - rank).sum())
        rank = updated

    if delta > tolerance:
        logger.warning(
            "PageRank did not converge after %d iterations (delta=%.6g, tolerance=%g).",
            iteration, delta, tolerance,
        )
    else:
        logger.debug("PageRank converged after %d iterations (delta=%.6g).", iteration, delta)

    return {node: float(rank[index[node]]) for node in nodes}
