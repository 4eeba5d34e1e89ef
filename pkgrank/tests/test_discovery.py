"""
pkgrank/tests/test_discovery.py — Tests for pkgrank.ingestion.discovery.

Covers document decoding, tag extraction, precedence of "mod" entries and
prefix matching / ambiguity.
"""

import pytest

from pkgrank.errors import AmbiguousMatchError, NoMatchError, UnsupportedEncodingError
from pkgrank.ingestion.discovery import (
    MetaImport,
    decode_document,
    match_meta_import,
    parse_meta_imports,
    path_prefix,
)


# ── decode_document ───────────────────────────────────────────────────────────

def test_decode_utf8_and_ascii():
    assert decode_document(b"<html></html>", "text/html; charset=UTF-8") == "<html></html>"
    assert decode_document(b"<html></html>", "text/html; charset=us-ascii") == "<html></html>"
    assert decode_document(b"<html></html>") == "<html></html>"


def test_decode_rejects_other_charsets():
    with pytest.raises(UnsupportedEncodingError):
        decode_document(b"<html></html>", "text/html; charset=iso-8859-1")


def test_decode_rejects_xml_declared_charset():
    body = b'<?xml version="1.0" encoding="windows-1252"?><html></html>'
    with pytest.raises(UnsupportedEncodingError):
        decode_document(body, "text/html")


def test_decode_rejects_invalid_utf8():
    with pytest.raises(UnsupportedEncodingError):
        decode_document(b"<html>\xff\xfe</html>", "text/html")


# ── parse_meta_imports ────────────────────────────────────────────────────────

def test_parse_keeps_code_host_entries_only(page):
    doc = page(
        "example.org/pkg git https://github.com/owner/pkg",
        "example.org/other hg https://hg.example.org/other",
        "example.org/short git",
    )
    imports = parse_meta_imports(doc, "github.com")
    assert imports == [MetaImport("example.org/pkg", "git", "https://github.com/owner/pkg")]


def test_parse_go_source_strips_tree_suffix(page):
    doc = page(sources=(
        "gonum.org/v1/gonum https://github.com/gonum/gonum "
        "https://github.com/gonum/gonum/tree/master{/dir} x",
    ))
    imports = parse_meta_imports(doc, "github.com")
    # For go-source the third field is the directory template.
    assert imports[0].prefix == "gonum.org/v1/gonum"
    assert imports[0].repo_root == "https://github.com/gonum/gonum"


def test_parse_stops_at_body():
    doc = (
        "<html><head></head><body>"
        '<meta name="go-import" content="example.org/pkg git https://github.com/o/p">'
        "</body></html>"
    )
    assert parse_meta_imports(doc, "github.com") == []


def test_mod_entries_ignored_by_default(page):
    doc = page(
        "example.org/pkg mod https://github.com/o/proxy",
        "example.org/pkg git https://github.com/o/pkg",
    )
    imports = parse_meta_imports(doc, "github.com")
    assert [i.vcs for i in imports] == ["git"]


def test_mod_entries_first_in_module_mode(page):
    doc = page(
        "example.org/pkg git https://github.com/o/pkg",
        "example.org/other git https://github.com/o/other",
        "example.org/pkg mod https://github.com/o/proxy",
    )
    imports = parse_meta_imports(doc, "github.com", prefer_module_mode=True)
    assert imports[0] == MetaImport("example.org/pkg", "mod", "https://github.com/o/proxy")
    # The same-prefix git entry is superseded; unrelated entries stay.
    assert [i.prefix for i in imports] == ["example.org/pkg", "example.org/other"]


# ── path_prefix / match_meta_import ───────────────────────────────────────────

def test_path_prefix_respects_components():
    assert path_prefix("k8s.io/api/v1", "k8s.io/api")
    assert path_prefix("k8s.io/api", "k8s.io/api")
    assert not path_prefix("k8s.io/apimachinery", "k8s.io/api")


def test_match_first_matching_entry():
    imports = [
        MetaImport("k8s.io/apimachinery", "git", "https://github.com/kubernetes/apimachinery"),
        MetaImport("k8s.io/api", "git", "https://github.com/kubernetes/api"),
    ]
    match = match_meta_import(imports, "k8s.io/api/core/v1")
    assert match.repo_root == "https://github.com/kubernetes/api"


def test_match_same_prefix_twice_is_not_ambiguous():
    imports = [
        MetaImport("gonum.org/v1/gonum", "git", "https://github.com/gonum/gonum"),
        MetaImport("gonum.org/v1/gonum", "https://github.com/gonum/gonum", "https://github.com/gonum/gonum"),
    ]
    assert match_meta_import(imports, "gonum.org/v1/gonum/mat").vcs == "git"


def test_match_distinct_prefixes_is_ambiguous():
    imports = [
        MetaImport("example.org", "git", "https://github.com/o/root"),
        MetaImport("example.org/pkg", "git", "https://github.com/o/pkg"),
    ]
    with pytest.raises(AmbiguousMatchError):
        match_meta_import(imports, "example.org/pkg/sub")


def test_match_mod_entry_ends_search():
    imports = [
        MetaImport("example.org/pkg", "mod", "https://github.com/o/proxy"),
        MetaImport("example.org", "git", "https://github.com/o/root"),
    ]
    assert match_meta_import(imports, "example.org/pkg").vcs == "mod"


def test_no_match_lists_mismatches():
    imports = [MetaImport("example.org/a", "git", "https://github.com/o/a")]
    with pytest.raises(NoMatchError) as excinfo:
        match_meta_import(imports, "example.org/b")
    assert excinfo.value.mismatches == ["example.org/a"]
    assert "did not match" in str(excinfo.value)


def test_no_match_without_tags():
    with pytest.raises(NoMatchError, match="no meta tags"):
        match_meta_import([], "example.org/b")
