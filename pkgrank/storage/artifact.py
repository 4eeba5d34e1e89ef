"""
pkgrank/storage/artifact.py — Graph artifact persistence.

The artifact is a single JSON document:

    {
      "pkgs": [{"id", "name", "module_name", "repo_name", "rank", "prank",
                "srank", "irank", "stars", "imports", "description",
                "topics"}, ...],                       # prank order
      "deps": {"<id>": [{"pkg_id": int, "ups": bool}, ...], ...}
    }

The bounded top-N artifact has the same shape and is written next to the
full one with a "small-" filename prefix. Writes go through a .tmp file and
os.replace so a failed run never leaves a half-written artifact behind.

Author: pkgrank maintainers
"""

import json
import logging
import os

import pandas as pd

from pkgrank.metrics.ranking import DependencyGraph

logger = logging.getLogger(__name__)

RANK_TABLE_COLUMNS = ["position", "srank", "prank", "name", "rank", "stars", "imports"]


def small_artifact_path(path: str) -> str:
    """'out/graph.json' → 'out/small-graph.json'."""
    directory, filename = os.path.split(path)
    return os.path.join(directory, f"small-{filename}")


def save_graph(graph: DependencyGraph, path: str) -> str:
    """
    Write graph to path atomically.

    Raises:
        OSError: the artifact cannot be created (fatal for a run).
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as fh:
        json.dump(graph.to_dict(), fh)
    os.replace(tmp, path)
    logger.info(
        "Wrote graph artifact %s (%d packages, %d edges).",
        path, graph.node_count(), graph.edge_count(),
    )
    return path


def load_graph(path: str) -> DependencyGraph:
    """Read an artifact written by save_graph()."""
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    graph = DependencyGraph.from_dict(data)
    logger.debug("Loaded graph artifact %s (%d packages).", path, graph.node_count())
    return graph


def rank_table(graph: DependencyGraph) -> pd.DataFrame:
    """One row per package in prank order, columns RANK_TABLE_COLUMNS."""
    rows = [
        {
            "position": position,
            "srank": pkg.srank,
            "prank": pkg.prank,
            "name": pkg.name,
            "rank": pkg.rank,
            "stars": pkg.stars,
            "imports": pkg.imports,
        }
        for position, pkg in enumerate(graph.packages)
    ]
    return pd.DataFrame(rows, columns=RANK_TABLE_COLUMNS)


def write_rank_table(graph: DependencyGraph, path: str) -> str:
    df = rank_table(graph)
    df.to_csv(path, index=False)
    logger.info("Wrote ranking table %s (%d rows).", path, len(df))
    return path
