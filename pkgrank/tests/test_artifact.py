"""
pkgrank/tests/test_artifact.py — Tests for pkgrank.storage.artifact.
"""

import json
import os

import pandas as pd

from pkgrank.graph.builder import BuildContext, GraphBuilder
from pkgrank.ingestion.manifest_scanner import ModuleRecord
from pkgrank.metrics.ranking import Ranker
from pkgrank.storage.artifact import (
    RANK_TABLE_COLUMNS,
    load_graph,
    rank_table,
    save_graph,
    small_artifact_path,
    write_rank_table,
)


def _ranked(catalog):
    modules = [
        ModuleRecord("github.com/a/x", "github.com/a/x", ("github.com/b/y", "example.org/lib")),
        ModuleRecord("github.com/b/y", "github.com/b/y", ("example.org/lib",)),
    ]
    built = GraphBuilder(BuildContext(catalog=catalog)).build(modules)
    return Ranker(catalog).rank(built)


def test_small_artifact_path():
    assert small_artifact_path(os.path.join("out", "graph.json")) == os.path.join("out", "small-graph.json")
    assert small_artifact_path("graph.json") == "small-graph.json"


def test_save_and_load_preserve_graph(tmp_path, catalog):
    graph = _ranked(catalog)
    path = str(tmp_path / "nested" / "graph.json")

    assert save_graph(graph, path) == path
    assert not os.path.exists(path + ".tmp")

    restored = load_graph(path)
    assert restored.node_count() == graph.node_count()
    assert restored.edge_count() == graph.edge_count()
    assert [p.id for p in restored.packages] == [p.id for p in graph.packages]
    assert restored.packages == graph.packages


def test_artifact_layout(tmp_path, catalog):
    path = str(tmp_path / "graph.json")
    save_graph(_ranked(catalog), path)
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)

    assert set(data) == {"pkgs", "deps"}
    assert set(data["pkgs"][0]) == {
        "id", "name", "module_name", "repo_name", "rank", "prank", "srank",
        "irank", "stars", "imports", "description", "topics",
    }
    for deps in data["deps"].values():
        for dep in deps:
            assert set(dep) == {"pkg_id", "ups"}


def test_rank_table(catalog):
    graph = _ranked(catalog)
    df = rank_table(graph)
    assert list(df.columns) == RANK_TABLE_COLUMNS
    assert list(df["position"]) == list(range(graph.node_count()))
    assert list(df["name"]) == [p.name for p in graph.packages]


def test_write_rank_table(tmp_path, catalog):
    path = str(tmp_path / "ranking.csv")
    write_rank_table(_ranked(catalog), path)
    df = pd.read_csv(path)
    assert list(df.columns) == RANK_TABLE_COLUMNS
    assert len(df) == 3
