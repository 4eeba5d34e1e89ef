"""
pkgrank.storage — Graph artifact persistence.

Modules:
    artifact  — JSON save/load of DependencyGraph, CSV ranking table.
"""
