"""
pkgrank/graph/builder.py — Dependency graph construction.

Turns ModuleRecords into a repository-level directed graph:

    1. Every module path and every canonical dependency target is interned
       in the context's NodeTable (stable integer ids, first seen wins).
    2. Each declared dependency is canonicalized to a node name (see
       GraphBuilder.canonical_target for the lookup order).
    3. Each source → target pair is linked at most once. Self-loops and
       repeated pairs are dropped with a diagnostic and never counted twice
       in weights, import counts or ranks.
    4. Every kept edge is stored twice in the adjacency map (upstream on the
       source, downstream mirror on the target) and once in the weighted
       NetworkX ranking graph, with weight = stars of the source repository.

The build is single-writer: the node table, adjacency map and counters are
not safe for concurrent mutation. Only PathResolver (used for prefetching
foreign paths) runs in parallel.

Author: pkgrank maintainers
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional

import networkx as nx

from pkgrank.config import DEFAULT_CONFIG, PkgRankConfig
from pkgrank.errors import ResolutionError
from pkgrank.graph.nodes import NodeTable
from pkgrank.ingestion.catalog import RepoCatalog
from pkgrank.ingestion.manifest_scanner import ModuleRecord, truncate_to_repo
from pkgrank.ingestion.path_resolver import PathResolver, is_code_host_path, repo_key_from_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dependency:
    """One adjacency entry. upstream=True on the depending node's list."""

    pkg_id: int
    upstream: bool = False


@dataclass
class BuildContext:
    """
    Owned state for one graph build.

    Attributes:
        catalog:   Repository metadata (source of edge weights).
        nodes:     Interning table shared by the builder and the ranker.
        resolver:  PathResolver for custom-domain dependencies, or None to
                   keep such dependencies as unresolved named nodes.
        overrides: Precomputed dependency path → repository URL map,
                   consulted before live discovery.
        config:    PkgRankConfig.
    """

    catalog: RepoCatalog
    nodes: NodeTable = field(default_factory=NodeTable)
    resolver: Optional[PathResolver] = None
    overrides: dict[str, str] = field(default_factory=dict)
    config: PkgRankConfig = DEFAULT_CONFIG


@dataclass
class BuildStats:
    modules: int = 0
    edges: int = 0
    duplicates: int = 0
    self_loops: int = 0
    unresolved: int = 0
    conflicts: int = 0


@dataclass
class BuiltGraph:
    """Result of GraphBuilder.build()."""

    nodes: NodeTable
    adjacency: dict[int, list[Dependency]]
    imports: dict[int, int]
    graph: nx.DiGraph
    stats: BuildStats

    def has_upstream(self, source: int, target: int) -> bool:
        return self.graph.has_edge(source, target)

    def edge_count(self) -> int:
        return self.graph.number_of_edges()


class GraphBuilder:
    """Build the weighted dependency graph from module records."""

    def __init__(self, context: BuildContext) -> None:
        self._ctx = context
        self._host = context.config.code_host
        self._modules: dict[str, ModuleRecord] = {}
        self._repo_modules: dict[str, str] = {}
        self._graph = nx.DiGraph()
        self._adjacency: dict[int, list[Dependency]] = defaultdict(list)
        self._imports: dict[int, int] = defaultdict(int)
        self.stats = BuildStats()

    def build(self, modules: Iterable[ModuleRecord], prefetch: bool = False) -> BuiltGraph:
        """
        Link every direct dependency of every module.

        Args:
            modules:  Module records (first record wins for a repeated path).
            prefetch: Resolve all custom-domain dependencies in parallel
                      before the sequential link loop.

        Returns:
            BuiltGraph with node table, adjacency, import counts and the
            weighted ranking graph.
        """
        records = self._register(modules)
        if prefetch:
            self.prefetch(records)

        for record in records:
            source = self._node(record.path, record.repo)
            weight = self._ctx.catalog.stars(record.repo)
            for dep in record.direct_deps:
                target_name = self.canonical_target(dep)
                if target_name is None:
                    continue
                target = self._node(target_name, self._owner_of(target_name))
                self.link(source, target, weight)

        self.stats.modules = len(records)
        self.stats.edges = self._graph.number_of_edges()
        logger.info(
            "Graph build complete: %d nodes, %d edges (%d duplicates, %d self-loops, "
            "%d unresolved dependencies skipped).",
            len(self._ctx.nodes),
            self.stats.edges,
            self.stats.duplicates,
            self.stats.self_loops,
            self.stats.unresolved,
        )
        return BuiltGraph(
            nodes=self._ctx.nodes,
            adjacency=dict(self._adjacency),
            imports=dict(self._imports),
            graph=self._graph,
            stats=self.stats,
        )

    def canonical_target(self, dep: str) -> Optional[str]:
        """
        Canonical node name for a declared dependency, or None to drop it.

        Lookup order:
            1. a module path found in the corpus (kept as is);
            2. the override map (→ repository);
            3. a code-host path (→ host/owner/repo);
            4. PathResolver discovery (→ repository), if a resolver is set;
            5. no resolver: the path itself, as a metadata-unknown node.
        A repository that owns a scanned module maps to that module's node.
        """
        if dep in self._modules:
            return dep

        override = self._ctx.overrides.get(dep)
        if override:
            return self._repo_node(repo_key_from_url(override))

        if is_code_host_path(dep, self._host):
            key = truncate_to_repo(dep, self._host)
            if not key:
                self.stats.unresolved += 1
                logger.warning("Invalid %s repo: %s", self._host, dep)
                return None
            return self._repo_node(key)

        if self._ctx.resolver is None:
            return dep

        try:
            key = self._ctx.resolver.resolve_key(dep)
        except ResolutionError as exc:
            self.stats.unresolved += 1
            logger.warning("Failed to resolve dependency %s: %s", dep, exc)
            return None
        return self._repo_node(key)

    def link(self, source: int, target: int, weight: float) -> bool:
        """Add source → target unless it is a self-loop or already present."""
        nodes = self._ctx.nodes
        if source == target:
            self.stats.self_loops += 1
            logger.debug("Source and dst the same: %s, %s", nodes.name(source), nodes.name(target))
            return False
        if self._graph.has_edge(source, target):
            self.stats.duplicates += 1
            logger.debug("Duplicate: %s, %s", nodes.name(source), nodes.name(target))
            return False

        self._adjacency[source].append(Dependency(pkg_id=target, upstream=True))
        self._adjacency[target].append(Dependency(pkg_id=source, upstream=False))
        self._imports[target] += 1
        self._graph.add_edge(source, target, weight=float(weight))
        logger.debug("G: %s -> %s (weight %s)", nodes.name(source), nodes.name(target), weight)
        return True

    def prefetch(self, records: Iterable[ModuleRecord]) -> None:
        """Resolve every custom-domain dependency up front (results are cached)."""
        if self._ctx.resolver is None:
            return
        foreign = {
            dep
            for record in records
            for dep in record.direct_deps
            if dep not in self._modules
            and dep not in self._ctx.overrides
            and not is_code_host_path(dep, self._host)
            and "." in dep.split("/", 1)[0]
        }
        self._ctx.resolver.resolve_many(foreign, self._ctx.config.resolver_max_workers)

    # ── internals ─────────────────────────────────────────────────────────────

    def _register(self, modules: Iterable[ModuleRecord]) -> list[ModuleRecord]:
        records: list[ModuleRecord] = []
        for record in modules:
            if record.path in self._modules:
                self.stats.conflicts += 1
                logger.warning(
                    "Module %s declared again in %s — keeping %s",
                    record.path, record.manifest, self._modules[record.path].manifest,
                )
                continue
            self._modules[record.path] = record
            self._repo_modules.setdefault(record.repo, record.path)
            records.append(record)
        return records

    def _repo_node(self, key: str) -> str:
        return self._repo_modules.get(key, key)

    def _owner_of(self, name: str) -> str:
        record = self._modules.get(name)
        if record is not None:
            return record.repo
        if is_code_host_path(name, self._host):
            return name
        return ""

    def _node(self, name: str, owner: str) -> int:
        nodes = self._ctx.nodes
        node_id = nodes.intern(name)
        if owner:
            nodes.set_owner(node_id, owner)
        if node_id not in self._graph:
            self._graph.add_node(node_id, name=name)
        return node_id
