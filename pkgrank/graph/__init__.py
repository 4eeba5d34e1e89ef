"""
pkgrank.graph — Node interning and dependency graph construction.

Modules:
    nodes    — Append-only name ↔ integer id table.
    builder  — Canonicalize, deduplicate and link dependency edges.

The ranking graph is a NetworkX DiGraph over integer node ids whose edges
carry a 'weight' attribute (stars of the source repository). Alongside it the
builder keeps an explicit adjacency map with upstream/downstream flags, which
is what the persisted artifact serializes.
"""
