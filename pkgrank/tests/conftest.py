"""
pkgrank/tests/conftest.py — Shared pytest fixtures for the pkgrank test suite.

Everything here is offline: discovery pages are served by FakeFetcher, and
corpora are written under tmp_path.

Fixtures:
    catalog         — Two-repository catalog (a/x 10★, b/y 1★).
    catalog_file    — The same catalog as a JSON file.
    write_manifest  — Factory writing <root>/<rel_dir>/go.mod.
    corpus          — Corpus where github.com/a/x depends on github.com/b/y.
    make_fetcher    — Factory for FakeFetcher from {url: html | exception}.

Author: pkgrank maintainers
"""

import json
import os
import threading

import pytest

from pkgrank.errors import FetchError
from pkgrank.ingestion.catalog import RepoCatalog
from pkgrank.ingestion.path_resolver import FetchResponse


# ── Pytest configuration hooks ────────────────────────────────────────────────

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests that hit live discovery endpoints (deselected by default, "
        "pass --run-integration or -m integration to enable)",
    )


def pytest_addoption(parser):
    """Add --run-integration CLI flag to enable integration tests."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that perform live HTTP discovery.",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is passed or -m integration is used."""
    markexpr = config.getoption("-m", default="")
    if "integration" in markexpr:
        return

    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="Integration test -- pass --run-integration or -m integration to run"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ── Discovery fakes ───────────────────────────────────────────────────────────

def discovery_page(*imports: str, sources: tuple[str, ...] = ()) -> str:
    """HTML head carrying one go-import tag per entry (and optional go-source tags)."""
    metas = [f'<meta name="go-import" content="{content}">' for content in imports]
    metas += [f'<meta name="go-source" content="{content}">' for content in sources]
    return "<!DOCTYPE html><html><head>" + "".join(metas) + "</head><body>ok</body></html>"


class FakeFetcher:
    """
    Offline fetcher. Unknown URLs raise FetchError like an HTTP 404.

    When gate is set, every call blocks until gate.set() so tests can pile up
    concurrent callers behind one in-flight fetch.
    """

    def __init__(self, pages, gate=None, content_type="text/html; charset=utf-8"):
        self.pages = dict(pages)
        self.gate = gate
        self.content_type = content_type
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, url):
        with self._lock:
            self.calls.append(url)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(f"fetch {url}: HTTP 404 Not Found")
        if isinstance(page, Exception):
            raise page
        if isinstance(page, FetchResponse):
            return page
        return FetchResponse(url=url, body=page.encode("utf-8"), content_type=self.content_type)


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def page():
    return discovery_page


# ── Catalog / corpus fixtures ─────────────────────────────────────────────────

CATALOG_RECORDS = [
    {"full_name": "a/x", "stargazers_count": 10, "description": "X lib", "topics": ["go"]},
    {"full_name": "b/y", "stargazers_count": 1, "description": "Y lib", "topics": []},
]


@pytest.fixture
def catalog():
    return RepoCatalog.load(CATALOG_RECORDS)


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "repos.json"
    path.write_text(json.dumps(CATALOG_RECORDS), encoding="utf-8")
    return str(path)


@pytest.fixture
def write_manifest(tmp_path):
    """Return a writer: write_manifest(rel_dir, text, root=tmp_path/'corpus')."""
    default_root = tmp_path / "corpus"

    def _write(rel_dir, text, root=None):
        base = os.path.join(str(root or default_root), *rel_dir.split("/"))
        os.makedirs(base, exist_ok=True)
        path = os.path.join(base, "go.mod")
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(text)
        return path

    return _write


@pytest.fixture
def corpus(tmp_path, write_manifest):
    """github.com/a/x requires github.com/b/y."""
    write_manifest(
        "github.com/a/x",
        "module github.com/a/x\n\ngo 1.21\n\nrequire github.com/b/y v1.2.3\n",
    )
    write_manifest("github.com/b/y", "module github.com/b/y\n\ngo 1.21\n")
    return str(tmp_path / "corpus")
