"""
pkgrank/pipeline.py — Single-call pipeline orchestrator.

Provides run_pipeline() which executes the full graph build in dependency
order and returns every intermediate result:

    1. Load the repository catalog            (fatal on failure)
    2. Scan the manifest corpus               (fatal if the root is missing)
       — or load a legacy edge list instead
    3. Build the dependency graph
    4. Rank (weighted PageRank + rank dimensions)
    5. Persist the artifact(s)                (fatal if they cannot be written)

Usage:
    from pkgrank.pipeline import run_pipeline
    result = run_pipeline("repos.json", "download/", "graph.json")
    print(result.graph.packages[0].name)

Author: pkgrank maintainers
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from pkgrank.config import DEFAULT_CONFIG, PkgRankConfig
from pkgrank.errors import PkgRankError
from pkgrank.graph.builder import BuildContext, BuiltGraph, GraphBuilder
from pkgrank.ingestion.catalog import RepoCatalog, load_catalog_file
from pkgrank.ingestion.manifest_scanner import (
    ManifestScanner,
    ModuleRecord,
    ScanStats,
    load_edge_list,
)
from pkgrank.ingestion.path_resolver import Fetcher, PathResolver
from pkgrank.metrics.ranking import DependencyGraph, Ranker
from pkgrank.storage.artifact import save_graph, small_artifact_path, write_rank_table

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Complete output of a single pkgrank run."""

    catalog: RepoCatalog
    modules: list[ModuleRecord]
    scan_stats: ScanStats
    built: BuiltGraph
    graph: DependencyGraph
    small_graph: Optional[DependencyGraph] = None
    output_paths: dict[str, str] = field(default_factory=dict)
    resolver_stats: dict[str, int] = field(default_factory=dict)


def load_overrides(path: str) -> dict[str, str]:
    """Read a {dependency path: repository URL} JSON object."""
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise PkgRankError(f"cannot load override map {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise PkgRankError(f"override map {path} must be a JSON object")
    logger.info("Loaded %d path overrides from %s", len(data), path)
    return {str(k): str(v) for k, v in data.items()}


def run_pipeline(
    catalog_path: str,
    corpus_root: Optional[str],
    output_path: Optional[str] = None,
    overrides_path: Optional[str] = None,
    edge_list_path: Optional[str] = None,
    edge_list_prefix: str = "",
    small: bool = False,
    csv_path: Optional[str] = None,
    resolve: bool = True,
    prefetch: bool = False,
    config: PkgRankConfig = DEFAULT_CONFIG,
    fetch: Optional[Fetcher] = None,
) -> PipelineResult:
    """
    Execute the complete build → rank → persist sequence.

    Args:
        catalog_path:     Repository catalog (JSON or CSV).
        corpus_root:      Manifest corpus root. Ignored when edge_list_path is set.
        output_path:      Graph artifact path; None skips persistence.
        overrides_path:   Optional {dependency path: repository URL} JSON.
        edge_list_path:   Legacy "source_dir,import_path" CSV to use instead
                          of scanning manifests.
        edge_list_prefix: Directory prefix stripped from edge-list sources.
        small:            Also write the bounded top-N artifact.
        csv_path:         Optional ranking table output.
        resolve:          Use live discovery for custom-domain paths.
        prefetch:         Resolve all foreign dependencies in parallel first.
        config:           PkgRankConfig.
        fetch:            Fetcher override for the resolver (tests, proxies).

    Returns:
        PipelineResult with every intermediate result.

    Raises:
        CatalogLoadError, CorpusNotFoundError, PkgRankError, OSError on the
        fatal conditions listed above.
    """
    logger.info("pkgrank pipeline starting.")

    logger.info("Phase 1/5: Loading repository catalog...")
    catalog = load_catalog_file(catalog_path, config)

    resolver = PathResolver(config, fetch=fetch) if resolve else None
    overrides = load_overrides(overrides_path) if overrides_path else {}

    logger.info("Phase 2/5: Collecting module records...")
    if edge_list_path:
        modules = load_edge_list(edge_list_path, edge_list_prefix, config)
        scan_stats = ScanStats(modules=len(modules))
    else:
        scanner = ManifestScanner(corpus_root or "", resolver=resolver, config=config)
        modules = scanner.scan()
        scan_stats = scanner.stats

    logger.info("Phase 3/5: Building dependency graph...")
    context = BuildContext(catalog=catalog, resolver=resolver, overrides=overrides, config=config)
    built = GraphBuilder(context).build(modules, prefetch=prefetch)

    logger.info("Phase 4/5: Ranking...")
    graph = Ranker(catalog, config).rank(built)
    small_graph = graph.truncate(config.top_n) if small else None

    result = PipelineResult(
        catalog=catalog,
        modules=modules,
        scan_stats=scan_stats,
        built=built,
        graph=graph,
        small_graph=small_graph,
        resolver_stats=resolver.stats() if resolver is not None else {},
    )

    logger.info("Phase 5/5: Writing artifacts...")
    if output_path:
        result.output_paths["graph"] = save_graph(graph, output_path)
        if small_graph is not None:
            result.output_paths["small_graph"] = save_graph(
                small_graph, small_artifact_path(output_path)
            )
    if csv_path:
        result.output_paths["rank_table"] = write_rank_table(graph, csv_path)

    logger.info(
        "pkgrank pipeline complete: %d modules, %d nodes, %d edges.",
        len(modules), graph.node_count(), graph.edge_count(),
    )
    return result
