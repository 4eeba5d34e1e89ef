"""
pkgrank — Popularity-weighted dependency ranking for large package corpora.

Builds a repository-level dependency graph from per-repository manifest
files, canonicalizes vanity import paths to their hosting repository, and
ranks every node with a star-weighted PageRank.

Subpackages:
- pkgrank.ingestion  catalog loading, manifest scanning, import path discovery
- pkgrank.graph      node interning and dependency graph construction
- pkgrank.metrics    weighted PageRank and rank dimensions
- pkgrank.storage    graph artifact persistence

Author: pkgrank maintainers
"""

__version__ = "0.1.0"
