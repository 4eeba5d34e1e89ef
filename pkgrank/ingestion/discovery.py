"""
pkgrank/ingestion/discovery.py — Import path discovery document parsing.

A vanity import path such as "gonum.org/v1/gonum" answers
"https://gonum.org/v1/gonum?go-get=1" with an HTML page whose head carries

    <meta name="go-import" content="gonum.org/v1/gonum git https://github.com/gonum/gonum">

This module turns such a document into MetaImport entries and selects the
entry that governs a given import path. The precedence and ambiguity rules
follow the ecosystem's own toolchain and are kept as-is:

    - only entries whose repository root lives on the code host are kept;
    - go-source entries are accepted too (some hosts only publish those),
      with any "/tree/..." browse suffix stripped;
    - "mod" entries either precede everything as a block (module mode) or are
      ignored;
    - the first entry whose prefix is a path-component prefix wins; another
      matching entry with a *different* prefix is an ambiguity.
"""

import re
from dataclasses import dataclass
from html.parser import HTMLParser

from pkgrank.errors import AmbiguousMatchError, NoMatchError, UnsupportedEncodingError

_ACCEPTED_CHARSETS = frozenset({"utf-8", "utf8", "ascii", "us-ascii"})
_XML_ENCODING = re.compile(rb"""^\s*<\?xml[^>]*?encoding\s*=\s*["']([^"']+)["']""", re.IGNORECASE)


@dataclass(frozen=True)
class MetaImport:
    """One parsed discovery entry: '<prefix> <vcs> <repo root>'."""

    prefix: str
    vcs: str
    repo_root: str


class _MetaTagParser(HTMLParser):
    """Collects go-import/go-source meta tags until </head> or <body>."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.tags: list[tuple[str, str]] = []
        self.done = False

    def handle_starttag(self, tag, attrs):
        if self.done:
            return
        if tag == "body":
            self.done = True
            return
        if tag != "meta":
            return
        values = {name.lower(): (value or "") for name, value in attrs}
        name = values.get("name", "")
        if name in ("go-import", "go-source"):
            self.tags.append((name, values.get("content", "")))

    def handle_endtag(self, tag):
        if tag == "head":
            self.done = True


def decode_document(body: bytes, content_type: str | None = None) -> str:
    """
    Decode a discovery document, accepting only ASCII and UTF-8.

    The declared charset is taken from the Content-Type header and from an
    XML declaration, if either is present. ASCII is read as UTF-8.

    Raises:
        UnsupportedEncodingError: declared charset is anything else, or the
            bytes are not valid UTF-8.
    """
    declared: list[str] = []
    if content_type:
        for part in content_type.split(";")[1:]:
            key, _, value = part.strip().partition("=")
            if key.strip().lower() == "charset":
                declared.append(value.strip().strip("\"'").lower())
    match = _XML_ENCODING.match(body)
    if match:
        declared.append(match.group(1).decode("ascii", "replace").lower())

    for charset in declared:
        if charset not in _ACCEPTED_CHARSETS:
            raise UnsupportedEncodingError(
                f"can't decode discovery document using charset {charset!r}"
            )
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise UnsupportedEncodingError(f"discovery document is not valid UTF-8: {exc}") from exc


def parse_meta_imports(
    document: str,
    code_host: str,
    prefer_module_mode: bool = False,
) -> list[MetaImport]:
    """
    Extract the discovery entries pointing at code_host from an HTML document.

    Args:
        document:           Decoded HTML text.
        code_host:          Hosting domain the repository root must refer to.
        prefer_module_mode: Keep "mod" entries (ahead of all others) instead
                            of dropping them.

    Returns:
        Entries in precedence order: mod entries first when preferred, then
        the non-mod entries not superseded by a mod entry of the same prefix.
    """
    parser = _MetaTagParser()
    parser.feed(document)
    parser.close()

    imports: list[MetaImport] = []
    for name, content in parser.tags:
        fields = content.split()
        if len(fields) < 3:
            continue
        repo_root = fields[2]
        if code_host not in repo_root:
            continue
        if name == "go-source":
            repo_root = repo_root.split("/tree/")[0]
        imports.append(MetaImport(prefix=fields[0], vcs=fields[1], repo_root=repo_root))

    ordered: list[MetaImport] = []
    superseded: set[str] = set()
    if prefer_module_mode:
        for entry in imports:
            if entry.vcs == "mod":
                superseded.add(entry.prefix)
                ordered.append(entry)
    for entry in imports:
        if entry.vcs != "mod" and entry.prefix not in superseded:
            ordered.append(entry)
    return ordered


def path_prefix(path: str, prefix: str) -> bool:
    """True when prefix is a prefix of path on whole path components."""
    if not path.startswith(prefix):
        return False
    rest = path[len(prefix):]
    return rest == "" or rest[0] == "/"


def match_meta_import(imports: list[MetaImport], import_path: str) -> MetaImport:
    """
    Select the entry governing import_path.

    Raises:
        NoMatchError:        no entry prefix matches.
        AmbiguousMatchError: two matching entries declare distinct prefixes.
    """
    match: MetaImport | None = None
    mismatches: list[str] = []
    for entry in imports:
        if not path_prefix(import_path, entry.prefix):
            mismatches.append(entry.prefix)
            continue
        if match is not None:
            if match.vcs == "mod" and entry.vcs != "mod":
                # Mod entries precede all others; the rest is irrelevant.
                break
            if entry.prefix == match.prefix:
                # go-import and go-source for the same root.
                continue
            raise AmbiguousMatchError(f"multiple meta tags match import path {import_path!r}")
        match = entry

    if match is None:
        raise NoMatchError(import_path, mismatches)
    return match
