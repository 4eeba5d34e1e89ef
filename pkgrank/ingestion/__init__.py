"""
pkgrank.ingestion — Inputs to the graph build.

Modules:
    catalog           — Repository catalog (stars, ordinals, descriptions).
    manifest_scanner  — Corpus walk, go.mod parsing, legacy edge lists.
    discovery         — Discovery document parsing and tag matching.
    path_resolver     — Cached, coalesced vanity import path resolution.
"""
