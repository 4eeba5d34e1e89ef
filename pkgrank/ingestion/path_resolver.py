"""
pkgrank/ingestion/path_resolver.py — Vanity import path → repository discovery.

Resolves module paths hosted on custom domains ("k8s.io/api",
"gopkg.in/yaml.v2") to the code-host repository that serves them, using the
HTTP metadata-tag protocol parsed in pkgrank.ingestion.discovery.

Safe for concurrent use. Both the per-path resolutions and the per-prefix
discovery pages are cached for the lifetime of the resolver, and concurrent
requests for the same key are coalesced: exactly one fetch is in flight per
key, and every waiting caller receives the same result or the same exception.
There is no cancellation; a stuck fetch blocks its waiters until the HTTP
timeout/retry logic ends it.

Transport is the stdlib urllib.request, with exponential backoff on HTTP 429,
5xx and network errors (same policy as the other ingestion clients).

Author: pkgrank maintainers
"""

import http.client
import logging
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from pkgrank.config import DEFAULT_CONFIG, PkgRankConfig
from pkgrank.errors import (
    DisagreementError,
    FetchError,
    InvalidRepoRootError,
    ResolutionError,
)
from pkgrank.ingestion.discovery import (
    MetaImport,
    decode_document,
    match_meta_import,
    parse_meta_imports,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResponse:
    """Raw discovery page as returned by a fetcher."""

    url: str
    body: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class RepoRoot:
    """Repository root serving an import path."""

    repo: str       # repository URL including scheme
    root: str       # import path corresponding to the repository root
    vcs: str        # "git", "mod", ... (home URL for go-source entries)
    is_custom: bool = True


Fetcher = Callable[[str], FetchResponse]


# ── URL helpers ───────────────────────────────────────────────────────────────

def repo_key_from_url(url: str) -> str:
    """
    Convert a repository URL to a canonical repository key.

    Examples:
        >>> repo_key_from_url("https://github.com/Kubernetes/API.git")
        'github.com/kubernetes/api'
    """
    url = url.strip()
    parsed = urllib.parse.urlsplit(url if "://" in url else "//" + url)
    path = parsed.path.strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    parts = [parsed.netloc] + [p for p in path.split("/") if p]
    return "/".join(parts[:3]).lower()


def is_code_host_path(path: str, code_host: str = DEFAULT_CONFIG.code_host) -> bool:
    lowered = path.lower()
    return lowered == code_host or lowered.startswith(code_host + "/")


def validate_repo_root(repo_root: str) -> None:
    """Raise InvalidRepoRootError unless repo_root is a URL with a scheme."""
    try:
        parsed = urllib.parse.urlsplit(repo_root)
    except ValueError as exc:
        raise InvalidRepoRootError(f"invalid repo root {repo_root!r}: {exc}") from exc
    if not parsed.scheme:
        raise InvalidRepoRootError(f"invalid repo root {repo_root!r}: no scheme")


# ── HTTP transport ────────────────────────────────────────────────────────────

class UrllibFetcher:
    """
    GET a discovery page with retry on transient failures.

    Handles:
    - 429 and 5xx: exponential backoff, retries up to config.resolver_retries
    - other HTTP errors: FetchError immediately
    - network errors and truncated responses: retried like 429, then FetchError
    - unencodable or malformed URLs: FetchError immediately
    """

    def __init__(self, config: PkgRankConfig = DEFAULT_CONFIG) -> None:
        self._config = config

    def __call__(self, url: str) -> FetchResponse:
        retries = self._config.resolver_retries
        backoff = self._config.resolver_backoff_seconds
        headers = {"User-Agent": self._config.user_agent, "Accept": "text/html"}

        attempt = 0
        while True:
            try:
                req = urllib.request.Request(url, headers=headers)
                with urllib.request.urlopen(req, timeout=self._config.resolver_timeout_seconds) as resp:
                    return FetchResponse(
                        url=url,
                        body=resp.read(),
                        content_type=resp.headers.get("Content-Type"),
                    )
            except urllib.error.HTTPError as exc:
                transient = exc.code == 429 or exc.code >= 500
                if not transient or attempt >= retries:
                    raise FetchError(f"fetch {url}: HTTP {exc.code} {exc.reason}") from exc
                reason = f"HTTP {exc.code}"
            except urllib.error.URLError as exc:
                if attempt >= retries:
                    raise FetchError(f"fetch {url}: {exc.reason}") from exc
                reason = str(exc.reason)
            except OSError as exc:
                if attempt >= retries:
                    raise FetchError(f"fetch {url}: {exc}") from exc
                reason = str(exc)
            except http.client.HTTPException as exc:
                if attempt >= retries:
                    raise FetchError(f"fetch {url}: {exc!r}") from exc
                reason = repr(exc)
            except ValueError as exc:
                # Malformed or non-ASCII URL.
                raise FetchError(f"fetch {url}: {exc}") from exc

            wait = backoff * (2 ** attempt)
            logger.warning(
                "Discovery fetch failed (%s) on %s — sleeping %.1fs before retry %d/%d",
                reason, url, wait, attempt + 1, retries,
            )
            time.sleep(wait)
            attempt += 1


# ── Coalescing cache ──────────────────────────────────────────────────────────

class _CoalescingCache:
    """
    Future-per-key table guarded by a lock.

    The first caller for a key computes the value; concurrent and later
    callers block on the same Future and share its outcome.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._futures: dict[str, Future] = {}

    def get(self, key: str, compute: Callable[[], object]):
        with self._lock:
            future = self._futures.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._futures[key] = future
        if owner:
            try:
                future.set_result(compute())
            except Exception as exc:  # noqa: BLE001
                future.set_exception(exc)
        return future.result()

    def __len__(self) -> int:
        with self._lock:
            return len(self._futures)


# ── Resolver ──────────────────────────────────────────────────────────────────

class PathResolver:
    """
    Map custom-domain import paths to code-host repository roots.

    Args:
        config: PkgRankConfig. Uses code_host, insecure_hosts,
                prefer_module_mode and resolver_* settings.
        fetch:  Callable url → FetchResponse. Defaults to UrllibFetcher;
                tests inject an offline fake.
    """

    def __init__(
        self,
        config: PkgRankConfig = DEFAULT_CONFIG,
        fetch: Optional[Fetcher] = None,
    ) -> None:
        self._config = config
        self._fetch = fetch or UrllibFetcher(config)
        self._resolutions = _CoalescingCache()
        self._pages = _CoalescingCache()
        self._stats_lock = threading.Lock()
        self._fetch_count = 0

    def resolve(self, import_path: str) -> RepoRoot:
        """
        Resolve import_path to its repository root (cached, coalesced).

        Raises:
            ResolutionError (or a subclass) on any discovery failure.
        """
        return self._resolutions.get(import_path, lambda: self._resolve_uncached(import_path))

    def resolve_key(self, import_path: str) -> str:
        """Resolve import_path and return the canonical repository key."""
        return repo_key_from_url(self.resolve(import_path).repo)

    def resolve_many(
        self,
        import_paths: Iterable[str],
        max_workers: Optional[int] = None,
    ) -> tuple[dict[str, RepoRoot], dict[str, str]]:
        """
        Resolve a batch of paths in parallel.

        Returns:
            (resolved, failed): path → RepoRoot for successes,
            path → error message for failures.
        """
        paths = sorted(set(import_paths))
        workers = max_workers or self._config.resolver_max_workers
        resolved: dict[str, RepoRoot] = {}
        failed: dict[str, str] = {}
        if not paths:
            return resolved, failed

        logger.info("Resolving %d import paths with %d workers.", len(paths), workers)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures_to_path = {executor.submit(self.resolve, p): p for p in paths}
            for future in as_completed(futures_to_path):
                path = futures_to_path[future]
                try:
                    resolved[path] = future.result()
                except ResolutionError as exc:
                    logger.warning("Failed to resolve %s: %s", path, exc)
                    failed[path] = str(exc)

        logger.info("Resolution complete: %d resolved, %d failed.", len(resolved), len(failed))
        return resolved, failed

    def stats(self) -> dict[str, int]:
        with self._stats_lock:
            fetches = self._fetch_count
        return {
            "fetches": fetches,
            "pages_cached": len(self._pages),
            "paths_cached": len(self._resolutions),
        }

    # ── internals ─────────────────────────────────────────────────────────────

    def _resolve_uncached(self, import_path: str) -> RepoRoot:
        host = import_path.split("/", 1)[0]
        if "." not in host:
            raise ResolutionError(f"import path {import_path!r} does not begin with hostname")

        url, imports = self._imports_for_prefix(import_path)
        match = match_meta_import(imports, import_path)

        # A page for "uni.edu/bob/project" may claim the prefix "uni.edu".
        # Only trust the claim if the prefix's own page agrees.
        if match.prefix != import_path:
            logger.debug("Verifying non-authoritative meta tag for %s at %s", import_path, match.prefix)
            prefix_url, prefix_imports = self._imports_for_prefix(match.prefix)
            try:
                confirmed = match_meta_import(prefix_imports, import_path)
            except ResolutionError as exc:
                raise DisagreementError(
                    f"{url} and {prefix_url} disagree about go-import for {match.prefix}: {exc}"
                ) from exc
            if confirmed != match:
                raise DisagreementError(
                    f"{url} and {prefix_url} disagree about go-import for {match.prefix}"
                )

        validate_repo_root(match.repo_root)
        logger.debug("Resolved %s → %s (prefix %s)", import_path, match.repo_root, match.prefix)
        return RepoRoot(repo=match.repo_root, root=match.prefix, vcs=match.vcs)

    def _imports_for_prefix(self, prefix: str) -> tuple[str, list[MetaImport]]:
        return self._pages.get(prefix, lambda: self._fetch_imports(prefix))

    def _fetch_imports(self, prefix: str) -> tuple[str, list[MetaImport]]:
        response = self._get_maybe_insecure(prefix)
        document = decode_document(response.body, response.content_type)
        imports = parse_meta_imports(
            document,
            self._config.code_host,
            prefer_module_mode=self._config.prefer_module_mode,
        )
        return response.url, imports

    def _get_maybe_insecure(self, import_path: str) -> FetchResponse:
        query = "?go-get=1"
        try:
            return self._counted_fetch(f"https://{import_path}{query}")
        except FetchError:
            host = import_path.split("/", 1)[0]
            if host not in self._config.insecure_hosts:
                raise
            logger.warning("HTTPS discovery failed for %s — falling back to HTTP", import_path)
            return self._counted_fetch(f"http://{import_path}{query}")

    def _counted_fetch(self, url: str) -> FetchResponse:
        with self._stats_lock:
            self._fetch_count += 1
        return self._fetch(url)
