"""
pkgrank/ingestion/catalog.py — Repository catalog (stars, descriptions, topics).

The catalog is the pre-fetched listing of repositories produced by the
crawler, ordered by popularity. Each record is indexed by its canonical
repository key ("github.com/owner/repo", lower-cased). The position at which
a key is first seen becomes its star ordinal, which is the deterministic
"star rank" used by the ranked output even among equal star counts.

Two file shapes are accepted:
    - JSON: a list of code-host API repository objects
      ({full_name, stargazers_count, description, topics}) or compact
      records ({key, stars, description, topics}).
    - CSV:  the same columns, topics separated by ';'.

Author: pkgrank maintainers
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Iterable

import pandas as pd

from pkgrank.config import DEFAULT_CONFIG, PkgRankConfig
from pkgrank.errors import CatalogLoadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepositoryRecord:
    """Metadata for one catalogued repository."""

    key: str
    stars: int = 0
    description: str = ""
    topics: tuple[str, ...] = ()
    ordinal: int = -1

    @property
    def known(self) -> bool:
        """False for the zero-value record returned on lookup misses."""
        return self.ordinal >= 0


def repo_key(full_name: str, host: str = DEFAULT_CONFIG.code_host) -> str:
    """Canonical key for an 'owner/repo' name (or an already prefixed key)."""
    name = full_name.strip().strip("/").lower()
    if name.startswith(host + "/"):
        return name
    return f"{host}/{name}"


class RepoCatalog:
    """
    Index of repository records by canonical key.

    Lookups never raise: a missing key yields a zero-value record, which
    consumers must read as "metadata unknown", not "node excluded".
    """

    def __init__(self, config: PkgRankConfig = DEFAULT_CONFIG) -> None:
        self._config = config
        self._records: dict[str, RepositoryRecord] = {}

    @classmethod
    def load(
        cls,
        records: Iterable[dict[str, Any]],
        config: PkgRankConfig = DEFAULT_CONFIG,
    ) -> "RepoCatalog":
        """
        Build a catalog from an ordered sequence of record dicts.

        The first encounter of a key fixes its ordinal. A later record for the
        same key replaces the metadata but keeps the original ordinal.
        """
        catalog = cls(config)
        skipped = 0
        for raw in records:
            name = raw.get("full_name") or raw.get("key") or ""
            if not name or "/" not in str(name):
                skipped += 1
                logger.debug("Skipping catalog record without a repository name: %r", raw)
                continue
            catalog.add(
                str(name),
                stars=raw.get("stargazers_count", raw.get("stars", 0)),
                description=raw.get("description"),
                topics=raw.get("topics"),
            )
        logger.info(
            "Catalog loaded: %d repositories (%d records skipped).", len(catalog), skipped
        )
        return catalog

    def add(
        self,
        name: str,
        stars: Any = 0,
        description: Any = None,
        topics: Any = None,
    ) -> RepositoryRecord:
        """Insert or update one repository and return its stored record."""
        key = repo_key(name, self._config.code_host)
        previous = self._records.get(key)
        ordinal = previous.ordinal if previous is not None else len(self._records)
        record = RepositoryRecord(
            key=key,
            stars=_as_stars(stars),
            description=_as_text(description),
            topics=_as_topics(topics),
            ordinal=ordinal,
        )
        self._records[key] = record
        return record

    def get(self, key: str) -> RepositoryRecord:
        return self._records.get(key.lower(), RepositoryRecord(key=key.lower()))

    def stars(self, key: str) -> int:
        return self.get(key).stars

    def ordinal(self, key: str) -> int:
        return self.get(key).ordinal

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records.values())


# ── Value coercion ────────────────────────────────────────────────────────────

def _as_stars(value: Any) -> int:
    try:
        stars = int(value or 0)
    except (TypeError, ValueError):
        return 0
    return max(stars, 0)


def _as_text(value: Any) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value)


def _as_topics(value: Any) -> tuple[str, ...]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ()
    if isinstance(value, str):
        return tuple(t.strip() for t in value.split(";") if t.strip())
    return tuple(str(t) for t in value)


# ── File loaders ──────────────────────────────────────────────────────────────

def load_catalog_json(path: str, config: PkgRankConfig = DEFAULT_CONFIG) -> RepoCatalog:
    """Load a JSON array of repository records."""
    logger.info("Loading repository catalog from: %s", path)
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogLoadError(f"cannot load catalog {path}: {exc}") from exc
    if not isinstance(data, list):
        raise CatalogLoadError(f"catalog {path} must contain a JSON array")
    return RepoCatalog.load(data, config)


def load_catalog_csv(path: str, config: PkgRankConfig = DEFAULT_CONFIG) -> RepoCatalog:
    """Load a CSV catalog (full_name or key, stars, description, topics)."""
    logger.info("Loading repository catalog from: %s", path)
    try:
        df = pd.read_csv(path)
    except (OSError, ValueError) as exc:
        raise CatalogLoadError(f"cannot load catalog {path}: {exc}") from exc
    if "full_name" not in df.columns and "key" not in df.columns:
        raise CatalogLoadError(f"catalog {path} needs a 'full_name' or 'key' column")
    df = df.astype(object).where(pd.notna(df), None)
    return RepoCatalog.load(df.to_dict(orient="records"), config)


def load_catalog_file(path: str, config: PkgRankConfig = DEFAULT_CONFIG) -> RepoCatalog:
    """Dispatch on file extension (.csv → CSV, anything else → JSON)."""
    if os.path.splitext(path)[1].lower() == ".csv":
        return load_catalog_csv(path, config)
    return load_catalog_json(path, config)
