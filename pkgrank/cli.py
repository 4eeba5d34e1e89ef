"""
pkgrank/cli.py — Command-line interface for pkgrank.

Usage:
    python -m pkgrank rank --catalog repos.json --corpus download/ --output graph.json
    python -m pkgrank resolve gopkg.in/yaml.v2 k8s.io/api --output overrides.json
    python -m pkgrank show graph.json --limit 20

Exit codes: 0 on success, 1 when the catalog, the corpus root or an output
file cannot be used.

Author: pkgrank maintainers
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import replace

from pkgrank.config import DEFAULT_CONFIG
from pkgrank.errors import PkgRankError


# ── Logging setup ─────────────────────────────────────────────────────────────

def _setup_logging(level: str = "INFO") -> None:
    """Configure root logger with timestamps."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    fmt = "%(asctime)s  %(levelname)-8s  %(name)s — %(message)s"
    datefmt = "%H:%M:%S"
    logging.basicConfig(level=numeric, format=fmt, datefmt=datefmt, stream=sys.stderr)
    logging.getLogger("urllib.request").setLevel(logging.WARNING)


logger = logging.getLogger("pkgrank.cli")


# ── Subcommand: rank ──────────────────────────────────────────────────────────

def cmd_rank(args: argparse.Namespace) -> int:
    """Scan → build → rank → write artifact(s)."""
    from pkgrank.pipeline import run_pipeline

    config = DEFAULT_CONFIG
    if args.top_n is not None:
        config = replace(config, top_n=args.top_n)
    if args.insecure_host:
        config = replace(config, insecure_hosts=frozenset(args.insecure_host))

    logger.info("=" * 60)
    logger.info("pkgrank — Rank Run")
    logger.info("  Catalog   : %s", args.catalog)
    logger.info("  Corpus    : %s", args.edge_list or args.corpus)
    logger.info("  Output    : %s", args.output)
    logger.info("  Resolver  : %s", "disabled" if args.no_resolve else "enabled")
    logger.info("=" * 60)

    t0 = time.monotonic()
    try:
        result = run_pipeline(
            catalog_path=args.catalog,
            corpus_root=args.corpus,
            output_path=args.output,
            overrides_path=args.overrides,
            edge_list_path=args.edge_list,
            edge_list_prefix=args.edge_list_prefix,
            small=args.small,
            csv_path=args.csv,
            resolve=not args.no_resolve,
            prefetch=args.prefetch,
            config=config,
        )
    except (PkgRankError, OSError) as exc:
        logger.error("Run failed: %s", exc)
        return 1
    elapsed = time.monotonic() - t0

    stats = result.scan_stats
    build = result.built.stats

    print()
    print("=" * 60)
    print("  PKGRANK — RUN COMPLETE")
    print("=" * 60)
    print(f"  Elapsed          : {elapsed:.1f}s")
    print(f"  Manifests        : {stats.manifests}")
    print(f"  Modules          : {len(result.modules)}")
    print(f"  Parse errors     : {stats.parse_errors}")
    print(f"  Packages         : {result.graph.node_count()}")
    print(f"  Edges            : {result.graph.edge_count()}")
    print(f"  Unresolved deps  : {build.unresolved}")
    if result.resolver_stats:
        print(f"  Discovery fetches: {result.resolver_stats.get('fetches', 0)}")
    for label, path in result.output_paths.items():
        print(f"  {label:<17}: {path}")
    print("=" * 60)
    return 0


# ── Subcommand: resolve ───────────────────────────────────────────────────────

def cmd_resolve(args: argparse.Namespace) -> int:
    """Resolve import paths and emit an override map {path: repository URL}."""
    from pkgrank.ingestion.path_resolver import PathResolver

    config = DEFAULT_CONFIG
    if args.insecure_host:
        config = replace(config, insecure_hosts=frozenset(args.insecure_host))

    resolver = PathResolver(config)
    resolved, failed = resolver.resolve_many(args.paths, args.workers)
    overrides = {path: root.repo for path, root in sorted(resolved.items())}

    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as fh:
                json.dump(overrides, fh, indent=2, sort_keys=True)
        except OSError as exc:
            logger.error("Cannot write override map %s: %s", args.output, exc)
            return 1
        logger.info("Wrote %d overrides to %s", len(overrides), args.output)
    else:
        print(json.dumps(overrides, indent=2, sort_keys=True))

    for path, reason in sorted(failed.items()):
        print(f"  unresolved: {path} ({reason})", file=sys.stderr)
    return 1 if failed else 0


# ── Subcommand: show ──────────────────────────────────────────────────────────

def cmd_show(args: argparse.Namespace) -> int:
    """Print the top of a graph artifact as a ranking table."""
    from pkgrank.storage.artifact import load_graph, rank_table

    try:
        graph = load_graph(args.artifact)
    except (OSError, ValueError, KeyError) as exc:
        logger.error("Cannot read graph artifact %s: %s", args.artifact, exc)
        return 1

    table = rank_table(graph).head(args.limit)
    print(f"{args.artifact}: {graph.node_count()} packages, {graph.edge_count()} edges")
    if not table.empty:
        print(table.to_string(index=False))
    return 0


# ── Argument parser ───────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pkgrank",
        description="pkgrank — Dependency graph ranking for open-source modules.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full run with the bounded top-250 artifact and a CSV table
  python -m pkgrank rank --catalog repos.json --corpus download/ \\
      --output graph.json --small --csv ranking.csv

  # Offline run (custom-domain paths stay unresolved)
  python -m pkgrank rank --catalog repos.json --corpus download/ \\
      --output graph.json --no-resolve

  # Precompute an override map for vanity paths
  python -m pkgrank resolve gopkg.in/yaml.v2 k8s.io/api --output overrides.json
        """,
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Per-edge debug logging (same as --log-level DEBUG)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    def add_insecure_flag(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--insecure-host",
            action="append",
            default=[],
            metavar="HOST",
            help="Allow plain-HTTP discovery fallback for HOST (repeatable)",
        )

    # rank
    p_rank = subparsers.add_parser("rank", help="Build and rank the dependency graph")
    p_rank.add_argument("--catalog", required=True, metavar="FILE",
                        help="Repository catalog (JSON list or CSV)")
    p_rank.add_argument("--corpus", default=None, metavar="DIR",
                        help="Manifest corpus root (<host>/<owner>/<repo>/.../go.mod)")
    p_rank.add_argument("--edge-list", default=None, metavar="FILE",
                        help="Legacy 'source_dir,import_path' CSV instead of --corpus")
    p_rank.add_argument("--edge-list-prefix", default="", metavar="PREFIX",
                        help="Directory prefix stripped from edge-list sources")
    p_rank.add_argument("--output", required=True, metavar="FILE",
                        help="Graph artifact path (JSON)")
    p_rank.add_argument("--overrides", default=None, metavar="FILE",
                        help="Override map JSON {dependency path: repository URL}")
    p_rank.add_argument("--small", action="store_true",
                        help="Also write the bounded top-N artifact (small-<output>)")
    p_rank.add_argument("--top-n", type=int, default=None, metavar="N",
                        help=f"Size of the bounded artifact (default: {DEFAULT_CONFIG.top_n})")
    p_rank.add_argument("--csv", default=None, metavar="FILE",
                        help="Also write the ranking table as CSV")
    p_rank.add_argument("--no-resolve", action="store_true",
                        help="Skip live discovery for custom-domain paths")
    p_rank.add_argument("--prefetch", action="store_true",
                        help="Resolve all custom-domain dependencies in parallel first")
    add_insecure_flag(p_rank)
    p_rank.set_defaults(func=cmd_rank)

    # resolve
    p_resolve = subparsers.add_parser("resolve", help="Resolve import paths to repositories")
    p_resolve.add_argument("paths", nargs="+", metavar="PATH")
    p_resolve.add_argument("--output", default=None, metavar="FILE",
                           help="Write the override map here (default: stdout)")
    p_resolve.add_argument("--workers", type=int, default=DEFAULT_CONFIG.resolver_max_workers,
                           metavar="N", help="Concurrent discovery fetches")
    add_insecure_flag(p_resolve)
    p_resolve.set_defaults(func=cmd_resolve)

    # show
    p_show = subparsers.add_parser("show", help="Print the top of a graph artifact")
    p_show.add_argument("artifact", metavar="ARTIFACT")
    p_show.add_argument("--limit", type=int, default=25, metavar="N")
    p_show.set_defaults(func=cmd_show)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "rank" and not (args.corpus or args.edge_list):
        parser.error("rank requires --corpus or --edge-list")
    _setup_logging("DEBUG" if args.verbose else args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
