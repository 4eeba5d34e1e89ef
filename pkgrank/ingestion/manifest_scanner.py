"""
pkgrank/ingestion/manifest_scanner.py — Module records from a manifest corpus.

Walks a directory tree of downloaded source trees laid out as

    <root>/<host>/<owner>/<repo>/.../go.mod

and turns each manifest into a ModuleRecord: the declared module path, the
repository that owns it (first three path components beneath the root,
lower-cased) and its direct dependencies.

The declared module path and the filesystem location must agree:
    - a path on a custom domain that does not sit under its owner key is
      resolved through PathResolver, and the discovered repository must be
      the owner; otherwise the module is discarded;
    - a code-host path that does not sit under its owner key is misplaced
      (symlinked or copied corpus data) and is discarded.

Every per-manifest failure is logged and skipped; the walk always completes.

Also provides load_edge_list() for the legacy "source_dir,import_path" CSV
produced by import-graph walkers.

Author: pkgrank maintainers
"""

import csv
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Optional

from pkgrank.config import DEFAULT_CONFIG, PkgRankConfig
from pkgrank.errors import CorpusNotFoundError, ManifestParseError, ResolutionError
from pkgrank.ingestion.discovery import path_prefix
from pkgrank.ingestion.path_resolver import PathResolver, is_code_host_path, repo_key_from_url

logger = logging.getLogger(__name__)

ManifestParser = Callable[[bytes], tuple[str, list[str]]]

# Path components after which an import path is a vendored copy.
_VENDOR_MARKERS = frozenset({"src", "vendor", "_vendor", "c"})


@dataclass(frozen=True)
class ModuleRecord:
    """A parsed manifest: module path, owning repository, direct deps."""

    path: str
    repo: str
    direct_deps: tuple[str, ...] = ()
    manifest: str = ""


@dataclass
class ScanStats:
    """Outcome counters for one corpus walk."""

    manifests: int = 0
    modules: int = 0
    parse_errors: int = 0
    conflicts: int = 0
    misplaced: int = 0
    resolution_failures: int = 0
    mismatched: int = 0
    unverified: int = 0
    skipped: list[dict] = field(default_factory=list)

    def skip(self, reason: str, path: str, detail: str = "") -> None:
        self.skipped.append({"reason": reason, "path": path, "detail": detail})


# ── go.mod parsing ────────────────────────────────────────────────────────────

def parse_go_mod(data: bytes) -> tuple[str, list[str]]:
    """
    Parse a go.mod file into (module path, direct dependency paths).

    Lax: unknown directives (go, replace, exclude, retract, toolchain) are
    ignored. Requirements annotated '// indirect' are dropped.

    Raises:
        ManifestParseError: the bytes are not UTF-8 or no module directive.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ManifestParseError(f"manifest is not valid UTF-8: {exc}") from exc

    module_path = ""
    deps: list[str] = []
    block: Optional[str] = None

    for raw_line in text.splitlines():
        line, _, comment = raw_line.partition("//")
        line = line.strip()
        comment = comment.strip()

        if block is not None:
            if line.startswith(")"):
                block = None
            elif block == "require" and line:
                _add_requirement(line.split(), comment, deps)
            continue

        if not line:
            continue
        if line.endswith("("):
            block = line[:-1].strip()
            continue

        tokens = line.split()
        if tokens[0] == "module" and len(tokens) >= 2:
            module_path = _unquote(tokens[1])
        elif tokens[0] == "require" and len(tokens) >= 3:
            _add_requirement(tokens[1:], comment, deps)

    if not module_path:
        raise ManifestParseError("no module directive")
    return module_path, deps


def _add_requirement(tokens: list[str], comment: str, deps: list[str]) -> None:
    if len(tokens) < 2:
        return
    if comment == "indirect" or comment.startswith("indirect;"):
        return
    deps.append(_unquote(tokens[0]))


def _unquote(token: str) -> str:
    return token.strip('"`')


# ── Corpus walk ───────────────────────────────────────────────────────────────

class ManifestScanner:
    """
    Walk a manifest corpus and produce ModuleRecords.

    Args:
        root:     Corpus root directory.
        resolver: PathResolver used to verify custom-domain module paths.
                  None disables verification: such modules are kept on the
                  strength of their location and counted as unverified.
        parser:   Manifest parser (bytes → (module path, direct deps)).
        config:   PkgRankConfig. Uses manifest_filename and code_host.
    """

    def __init__(
        self,
        root: str,
        resolver: Optional[PathResolver] = None,
        parser: ManifestParser = parse_go_mod,
        config: PkgRankConfig = DEFAULT_CONFIG,
    ) -> None:
        self.root = os.path.abspath(root)
        self._resolver = resolver
        self._parser = parser
        self._config = config
        self.stats = ScanStats()

    def scan(self) -> list[ModuleRecord]:
        """
        Walk the corpus and return module records in deterministic order.

        Raises:
            CorpusNotFoundError: root is not a directory (fatal).
        """
        if not os.path.isdir(self.root):
            raise CorpusNotFoundError(f"manifest corpus root not found: {self.root}")

        logger.info("Scanning manifest corpus: %s", self.root)
        self.stats = ScanStats()
        modules: list[ModuleRecord] = []
        seen: dict[str, str] = {}

        for dirpath, dirnames, filenames in os.walk(self.root, onerror=self._walk_error):
            dirnames.sort()
            if self._config.manifest_filename not in filenames:
                continue
            manifest = os.path.join(dirpath, self._config.manifest_filename)
            self.stats.manifests += 1
            record = self._read_manifest(manifest)
            if record is None:
                continue
            if record.path in seen:
                self.stats.conflicts += 1
                self.stats.skip("duplicate_module", manifest, seen[record.path])
                logger.warning(
                    "Duplicate module file for %s in %s (keeping %s)",
                    record.path, manifest, seen[record.path],
                )
                continue
            seen[record.path] = manifest
            modules.append(record)

        self.stats.modules = len(modules)
        logger.info(
            "Scan complete: %d manifests, %d modules, %d parse errors, %d duplicates, "
            "%d misplaced, %d unresolved, %d repository mismatches.",
            self.stats.manifests,
            self.stats.modules,
            self.stats.parse_errors,
            self.stats.conflicts,
            self.stats.misplaced,
            self.stats.resolution_failures,
            self.stats.mismatched,
        )
        return modules

    def owner_key(self, manifest: str) -> Optional[str]:
        """Owning repository key from the manifest location, or None if too shallow."""
        rel = os.path.relpath(manifest, self.root)
        dirs = rel.split(os.sep)[:-1]
        if len(dirs) < 3:
            return None
        return "/".join(dirs[:3]).lower()

    def _walk_error(self, exc: OSError) -> None:
        logger.warning("Failed to access %s: %s", exc.filename, exc)

    def _read_manifest(self, manifest: str) -> Optional[ModuleRecord]:
        owner = self.owner_key(manifest)
        if owner is None:
            self.stats.parse_errors += 1
            self.stats.skip("shallow_path", manifest)
            logger.warning("Manifest %s is not inside a host/owner/repo directory", manifest)
            return None

        try:
            with open(manifest, "rb") as fh:
                data = fh.read()
            module_path, deps = self._parser(data)
        except OSError as exc:
            self.stats.parse_errors += 1
            self.stats.skip("read_error", manifest, str(exc))
            logger.warning("Failed to read manifest %s: %s", manifest, exc)
            return None
        except ManifestParseError as exc:
            self.stats.parse_errors += 1
            self.stats.skip("parse_error", manifest, str(exc))
            logger.warning("Failed to parse manifest %s: %s", manifest, exc)
            return None

        if not self._reconcile(module_path, owner, manifest):
            return None
        return ModuleRecord(path=module_path, repo=owner, direct_deps=tuple(deps), manifest=manifest)

    def _reconcile(self, module_path: str, owner: str, manifest: str) -> bool:
        """Check the declared module path against the owner key."""
        host = self._config.code_host
        if path_prefix(module_path.lower(), owner):
            return True

        first = module_path.split("/", 1)[0]
        if is_code_host_path(module_path, host):
            self.stats.misplaced += 1
            self.stats.skip("misplaced", manifest, module_path)
            logger.warning(
                "Module with %s path %s is not in expected folder %s", host, module_path, manifest
            )
            return False

        if "." not in first:
            return True

        if self._resolver is None:
            self.stats.unverified += 1
            logger.debug("Module %s in %s kept without discovery check", module_path, owner)
            return True

        logger.info("Path for %s is %s, resolving", module_path, owner)
        try:
            resolved = repo_key_from_url(self._resolver.resolve(module_path).repo)
        except ResolutionError as exc:
            self.stats.resolution_failures += 1
            self.stats.skip("unresolved", manifest, str(exc))
            logger.warning("Failed to resolve %s: %s", module_path, exc)
            return False

        if resolved != owner:
            self.stats.mismatched += 1
            self.stats.skip("repo_mismatch", manifest, resolved)
            logger.warning(
                "Repo for %s is %s while path is %s", module_path, resolved, owner
            )
            return False
        return True


# ── Legacy edge-list input ────────────────────────────────────────────────────

def clean_import_path(path: str) -> str:
    """
    Strip vendoring prefixes from an import path.

    Everything up to and including the last 'src', 'vendor', '_vendor' or 'c'
    component is dropped.

    Examples:
        >>> clean_import_path("vendor/golang_org/x/net/http/httpguts")
        'golang_org/x/net/http/httpguts'
    """
    lowered = path.lower()
    parts = lowered.split("/")
    for i in range(len(parts) - 1, -1, -1):
        if parts[i] in _VENDOR_MARKERS:
            return "/".join(parts[i + 1:])
    return lowered


def truncate_to_repo(path: str, code_host: str = DEFAULT_CONFIG.code_host) -> str:
    """
    Code-host import paths → 'host/owner/repo'; other paths unchanged.

    Returns "" for a code-host path with fewer than three components.
    """
    if not is_code_host_path(path, code_host):
        return path
    parts = path.split("/")
    if len(parts) < 3:
        return ""
    return "/".join(parts[:3]).lower()


def load_edge_list(
    path: str,
    source_prefix: str = "",
    config: PkgRankConfig = DEFAULT_CONFIG,
) -> list[ModuleRecord]:
    """
    Load a 'source_dir,import_path' CSV into one ModuleRecord per source repository.

    Args:
        path:          CSV file without header.
        source_prefix: Leading directory to strip from source paths.
        config:        PkgRankConfig. Uses code_host.

    Returns:
        Module records keyed by repository: path == repo == the source key,
        deps in first-seen order (duplicates collapsed).
    """
    grouped: dict[str, dict[str, None]] = {}
    skipped = 0
    with open(path, newline="", encoding="utf-8") as fh:
        for line_no, row in enumerate(csv.reader(fh), start=1):
            if len(row) < 2:
                skipped += 1
                logger.warning("Malformed edge row %d in %s: %r", line_no, path, row)
                continue
            src_path = row[0].replace(source_prefix, "", 1) if source_prefix else row[0]
            src_parts = src_path.strip("/").split("/")
            if len(src_parts) < 3:
                skipped += 1
                logger.warning("Malformed source package name on row %d: %s", line_no, row[0])
                continue
            source = "/".join(src_parts[:3]).lower()
            dep = truncate_to_repo(clean_import_path(row[1].strip()), config.code_host)
            if not dep:
                skipped += 1
                logger.warning("Invalid %s repo on row %d: %s", config.code_host, line_no, row[1])
                continue
            grouped.setdefault(source, {})[dep] = None

    logger.info(
        "Loaded edge list %s: %d source repositories (%d rows skipped).",
        path, len(grouped), skipped,
    )
    return [
        ModuleRecord(path=source, repo=source, direct_deps=tuple(deps), manifest=path)
        for source, deps in grouped.items()
    ]
