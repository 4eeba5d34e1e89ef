"""
pkgrank/tests/test_ranking.py — Tests for pkgrank.metrics.ranking.

Tests verify:
- Dense ranking: ties share a prank and the next distinct mass advances by one.
- Catalog metadata (srank, stars, description) attached per repository.
- The two-module example: rank(y) > rank(x) > 0.
- Top-N truncation keeps the adjacency referentially closed.
"""

import pytest

from pkgrank.graph.builder import BuildContext, Dependency, GraphBuilder
from pkgrank.ingestion.catalog import RepoCatalog
from pkgrank.ingestion.manifest_scanner import ModuleRecord
from pkgrank.metrics.ranking import DependencyGraph, RankedPackage, Ranker, dense_rank


def _module(path, repo=None, deps=()):
    return ModuleRecord(path=path, repo=repo or path.lower(), direct_deps=tuple(deps))


def _rank(catalog, modules):
    built = GraphBuilder(BuildContext(catalog=catalog)).build(modules)
    return Ranker(catalog).rank(built)


# ── dense_rank ────────────────────────────────────────────────────────────────

def test_dense_rank_ties():
    assert dense_rank([0.5, 0.5, 0.3, 0.1, 0.1]) == [1, 1, 2, 3, 3]


def test_dense_rank_near_equal_values_tie():
    assert dense_rank([0.25, 0.25 * (1 - 1e-15), 0.2]) == [1, 1, 2]


def test_dense_rank_empty():
    assert dense_rank([]) == []


# ── Ranker ────────────────────────────────────────────────────────────────────

class TestRanker:

    def test_two_module_example(self, catalog):
        graph = _rank(catalog, [
            _module("github.com/a/x", deps=["github.com/b/y"]),
            _module("github.com/b/y"),
        ])
        y, x = graph.packages

        assert (y.name, x.name) == ("github.com/b/y", "github.com/a/x")
        assert y.rank > x.rank > 0
        assert (y.prank, x.prank) == (1, 2)
        assert (y.imports, x.imports) == (1, 0)
        assert (y.irank, x.irank) == (1, 2)
        assert (x.srank, y.srank) == (0, 1)
        assert (x.stars, y.stars) == (10, 1)
        assert x.description == "X lib"
        assert x.topics == ("go",)
        assert graph.node_count() == 2
        assert graph.edge_count() == 1

    def test_ties_share_prank(self):
        catalog = RepoCatalog.load([
            {"full_name": name, "stargazers_count": 5} for name in ("l/one", "l/two", "l/three")
        ])
        graph = _rank(catalog, [
            _module("github.com/l/one", deps=["github.com/h/hub"]),
            _module("github.com/l/two", deps=["github.com/h/hub"]),
            _module("github.com/l/three", deps=["github.com/h/hub"]),
        ])
        pranks = {p.module_name: p.prank for p in graph.packages}
        assert pranks["github.com/h/hub"] == 1
        assert pranks["github.com/l/one"] == pranks["github.com/l/two"] == pranks["github.com/l/three"] == 2
        # Tied packages keep node-id order.
        assert [p.module_name for p in graph.packages[1:]] == [
            "github.com/l/one", "github.com/l/two", "github.com/l/three",
        ]

    def test_display_name_includes_repository(self, catalog):
        graph = _rank(catalog, [
            _module("k8s.io/api", repo="github.com/kubernetes/api"),
            _module("github.com/a/x", deps=["k8s.io/api", "example.org/lib"]),
        ])
        by_module = {p.module_name: p for p in graph.packages}

        api = by_module["k8s.io/api"]
        assert api.name == "k8s.io/api (github.com/kubernetes/api)"
        assert api.repo_name == "github.com/kubernetes/api"
        assert api.srank == -1

        lib = by_module["example.org/lib"]
        assert lib.name == "example.org/lib"
        assert lib.repo_name == ""
        assert lib.stars == 0
        assert lib.srank == -1

    def test_code_host_dependency_gets_repo_metadata(self, catalog):
        graph = _rank(catalog, [_module("github.com/a/x", deps=["github.com/b/y/sub"])])
        y = [p for p in graph.packages if p.module_name == "github.com/b/y"][0]
        assert y.repo_name == "github.com/b/y"
        assert y.stars == 1
        assert y.name == "github.com/b/y"

    def test_empty_graph(self, catalog):
        graph = _rank(catalog, [])
        assert graph.packages == []
        assert graph.edge_count() == 0


# ── DependencyGraph ───────────────────────────────────────────────────────────

def _chain_graph(catalog):
    """d → c → b → a, plus e → a."""
    return _rank(catalog, [
        _module("github.com/n/d", deps=["github.com/n/c"]),
        _module("github.com/n/c", deps=["github.com/n/b"]),
        _module("github.com/n/b", deps=["github.com/n/a"]),
        _module("github.com/n/e", deps=["github.com/n/a"]),
    ])


def test_truncate_is_referentially_closed(catalog):
    graph = _chain_graph(catalog)
    for n in range(graph.node_count() + 2):
        small = graph.truncate(n)
        ids = {p.id for p in small.packages}
        assert small.packages == graph.packages[:n]
        for node_id, deps in small.adjacency.items():
            assert node_id in ids
            assert deps
            assert all(d.pkg_id in ids for d in deps)


def test_truncate_keeps_internal_edges(catalog):
    graph = _chain_graph(catalog)
    full = graph.truncate(graph.node_count())
    assert full.edge_count() == graph.edge_count() == 4


def test_package_lookup(catalog):
    graph = _chain_graph(catalog)
    first = graph.packages[0]
    assert graph.package(first.id) is first
    with pytest.raises(KeyError):
        graph.package(999)


def test_to_dict_shape():
    graph = DependencyGraph(
        packages=[
            RankedPackage(id=0, name="a", module_name="a", repo_name="", rank=0.6, prank=1),
            RankedPackage(id=1, name="b", module_name="b", repo_name="", rank=0.4, prank=2),
        ],
        adjacency={
            1: [Dependency(pkg_id=0, upstream=True)],
            0: [Dependency(pkg_id=1, upstream=False)],
        },
    )
    data = graph.to_dict()
    assert set(data) == {"pkgs", "deps"}
    assert data["deps"]["1"] == [{"pkg_id": 0, "ups": True}]
    assert data["pkgs"][0]["topics"] == []

    restored = DependencyGraph.from_dict(data)
    assert restored.adjacency[1] == [Dependency(pkg_id=0, upstream=True)]
    assert restored.packages == graph.packages
