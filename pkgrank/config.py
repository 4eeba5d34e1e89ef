"""
pkgrank/config.py — All tunable parameters for pkgrank.

Every ranking constant, resolver timeout and output bound lives here so that
calibration changes are a single-file diff.

Author: pkgrank maintainers
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PkgRankConfig:
    """
    Immutable configuration for the graph build and ranking pipeline.

    Override by constructing a new PkgRankConfig with the desired values.
    """

    # ── Ranking ───────────────────────────────────────────────────────────────
    damping: float = 0.85
    # Probability of following a real edge rather than teleporting.
    # Larger values mean less teleportation.

    tolerance: float = 0.0001
    # Iteration stops once the L1 difference between two successive rank
    # vectors drops to or below this value.

    max_iterations: int = 1000
    # Hard stop for the power iteration. Reaching it is logged at WARNING.

    top_n: int = 250
    # Size of the bounded "small" projection of the ranked graph.

    # ── Corpus layout ─────────────────────────────────────────────────────────
    code_host: str = "github.com"
    # Host label prefixed to every repository key and the only hosting domain
    # accepted from discovery metadata.

    manifest_filename: str = "go.mod"

    # ── Path discovery ────────────────────────────────────────────────────────
    resolver_timeout_seconds: float = 30.0

    resolver_retries: int = 3
    # Retries for HTTP 429/5xx and network errors, with exponential backoff.

    resolver_backoff_seconds: float = 1.0

    resolver_max_workers: int = 8
    # Concurrent discovery fetches during batch prefetch.

    insecure_hosts: frozenset = field(default_factory=frozenset)
    # Hosts allowed to fall back to plain HTTP when HTTPS fails.

    prefer_module_mode: bool = False
    # When True, "mod" discovery entries take precedence as a block.
    # When False they are ignored entirely.

    user_agent: str = "pkgrank/0.1 (+dependency ranking)"


# Shared default instance.
DEFAULT_CONFIG = PkgRankConfig()
