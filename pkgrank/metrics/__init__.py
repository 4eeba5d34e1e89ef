"""
pkgrank.metrics — Ranking over the built dependency graph.

Modules:
    pagerank  — Weighted PageRank power iteration (numpy).
    ranking   — Rank dimensions, RankedPackage, DependencyGraph, top-N projection.

All ranking constants live in pkgrank.config.PkgRankConfig.
"""
