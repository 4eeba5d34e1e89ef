"""
pkgrank/metrics/ranking.py — Rank dimensions and ranked graph projections.

Runs the weighted PageRank over a built graph and attaches, to every node:

    rank   — PageRank mass (float)
    prank  — algorithmic order: dense rank by mass, descending, from 1.
             Tied masses share a number; the next distinct mass advances
             it by exactly one.
    srank  — popularity ordinal from the catalog (-1 when not catalogued)
    irank  — dense rank by inbound-edge count, descending, from 1
    stars, imports, description, topics

The full package list is ordered by prank (ties by node id). truncate()
gives the bounded "top N" projection whose adjacency only keeps edges with
both endpoints inside the subset.

Author: pkgrank maintainers
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Iterable

from pkgrank.config import DEFAULT_CONFIG, PkgRankConfig
from pkgrank.graph.builder import BuiltGraph, Dependency
from pkgrank.ingestion.catalog import RepoCatalog
from pkgrank.ingestion.path_resolver import is_code_host_path
from pkgrank.metrics.pagerank import weighted_pagerank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedPackage:
    """One ranked node as persisted in the graph artifact."""

    id: int
    name: str
    module_name: str
    repo_name: str
    rank: float
    prank: int = 0
    srank: int = -1
    irank: int = 0
    stars: int = 0
    imports: int = 0
    description: str = ""
    topics: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "module_name": self.module_name,
            "repo_name": self.repo_name,
            "rank": self.rank,
            "prank": self.prank,
            "srank": self.srank,
            "irank": self.irank,
            "stars": self.stars,
            "imports": self.imports,
            "description": self.description,
            "topics": list(self.topics),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RankedPackage":
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            module_name=data.get("module_name", ""),
            repo_name=data.get("repo_name", ""),
            rank=float(data.get("rank", 0.0)),
            prank=int(data.get("prank", 0)),
            srank=int(data.get("srank", -1)),
            irank=int(data.get("irank", 0)),
            stars=int(data.get("stars", 0)),
            imports=int(data.get("imports", 0)),
            description=data.get("description") or "",
            topics=tuple(data.get("topics") or ()),
        )


@dataclass
class DependencyGraph:
    """Ranked packages (prank order) plus the flagged adjacency map."""

    packages: list[RankedPackage] = field(default_factory=list)
    adjacency: dict[int, list[Dependency]] = field(default_factory=dict)

    def node_count(self) -> int:
        return len(self.packages)

    def edge_count(self) -> int:
        """Number of upstream edges (each edge is stored twice)."""
        return sum(1 for deps in self.adjacency.values() for d in deps if d.upstream)

    def package(self, node_id: int) -> RankedPackage:
        for pkg in self.packages:
            if pkg.id == node_id:
                return pkg
        raise KeyError(node_id)

    def truncate(self, n: int) -> "DependencyGraph":
        """
        Project onto the first n packages in prank order.

        Only adjacency entries whose endpoints both survive are kept, so the
        subset is referentially closed.
        """
        kept = self.packages[:n]
        ids = {pkg.id for pkg in kept}
        adjacency: dict[int, list[Dependency]] = {}
        for pkg in kept:
            deps = [d for d in self.adjacency.get(pkg.id, []) if d.pkg_id in ids]
            if deps:
                adjacency[pkg.id] = deps
        return DependencyGraph(packages=list(kept), adjacency=adjacency)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pkgs": [pkg.to_dict() for pkg in self.packages],
            "deps": {
                str(node_id): [{"pkg_id": d.pkg_id, "ups": d.upstream} for d in deps]
                for node_id, deps in self.adjacency.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DependencyGraph":
        packages = [RankedPackage.from_dict(p) for p in data.get("pkgs") or []]
        adjacency = {
            int(node_id): [
                Dependency(pkg_id=int(d["pkg_id"]), upstream=bool(d.get("ups", False)))
                for d in deps
            ]
            for node_id, deps in (data.get("deps") or {}).items()
        }
        return cls(packages=packages, adjacency=adjacency)


def dense_rank(values: Iterable[float]) -> list[int]:
    """
    Dense ranks (from 1) for values already sorted in descending order.

    Values within a relative 1e-12 of the previous one count as ties.
    """
    ranks: list[int] = []
    current = 0
    previous: float | None = None
    for value in values:
        if previous is None or not math.isclose(value, previous, rel_tol=1e-12, abs_tol=0.0):
            current += 1
        ranks.append(current)
        previous = value
    return ranks


class Ranker:
    """
    Rank a built graph and attach catalog metadata.

    Args:
        catalog: RepoCatalog for stars, ordinals, descriptions and topics.
        config:  PkgRankConfig. Uses damping, tolerance, max_iterations,
                 code_host.
    """

    def __init__(self, catalog: RepoCatalog, config: PkgRankConfig = DEFAULT_CONFIG) -> None:
        self._catalog = catalog
        self._config = config

    def rank(self, built: BuiltGraph) -> DependencyGraph:
        cfg = self._config
        masses = weighted_pagerank(
            built.graph,
            damping=cfg.damping,
            tolerance=cfg.tolerance,
            max_iterations=cfg.max_iterations,
        )

        packages: list[RankedPackage] = []
        for node_id, module_name in built.nodes:
            repo = built.nodes.owner(node_id)
            if not repo and is_code_host_path(module_name, cfg.code_host):
                repo = module_name
            record = self._catalog.get(repo) if repo else None
            name = f"{module_name} ({repo})" if repo and repo != module_name else module_name
            packages.append(
                RankedPackage(
                    id=node_id,
                    name=name,
                    module_name=module_name,
                    repo_name=repo,
                    rank=masses.get(node_id, 0.0),
                    srank=record.ordinal if record is not None else -1,
                    stars=record.stars if record is not None else 0,
                    imports=built.imports.get(node_id, 0),
                    description=record.description if record is not None else "",
                    topics=record.topics if record is not None else (),
                )
            )

        packages.sort(key=lambda p: (-p.rank, p.id))
        pranks = dense_rank(p.rank for p in packages)
        import_levels = sorted({p.imports for p in packages}, reverse=True)
        iranks = {count: i + 1 for i, count in enumerate(import_levels)}

        ranked = [
            replace(pkg, prank=prank, irank=iranks[pkg.imports])
            for pkg, prank in zip(packages, pranks)
        ]
        for position, pkg in enumerate(ranked[:10]):
            logger.debug(
                "%d,%d,%d,%s,%g,%d,%d",
                position, pkg.srank, pkg.prank, pkg.name, pkg.rank, pkg.stars, pkg.imports,
            )
        logger.info(
            "Ranked %d packages (%d distinct rank values).",
            len(ranked), ranked[-1].prank if ranked else 0,
        )
        return DependencyGraph(packages=ranked, adjacency=dict(built.adjacency))
