"""
pkgrank/errors.py — Exception hierarchy.

Fatal errors (catalog, corpus root) abort a run. Everything under
ResolutionError and ManifestParseError is recoverable per item: the scanner
and builder log it, count it, and move on.
"""


class PkgRankError(Exception):
    """Base class for all pkgrank errors."""


class CatalogLoadError(PkgRankError):
    """The repository catalog could not be opened or parsed."""


class CorpusNotFoundError(PkgRankError):
    """The manifest corpus root does not exist or is not a directory."""


class ManifestParseError(PkgRankError):
    """A single manifest could not be parsed."""


# ── Discovery ────────────────────────────────────────────────────────────────

class ResolutionError(PkgRankError):
    """An import path could not be mapped to a repository."""


class FetchError(ResolutionError):
    """The discovery document could not be fetched."""


class UnsupportedEncodingError(ResolutionError):
    """The discovery document is not ASCII or UTF-8."""


class NoMatchError(ResolutionError):
    """Discovery tags were found but none matches the import path."""

    def __init__(self, import_path: str, mismatches: list[str]) -> None:
        self.import_path = import_path
        self.mismatches = list(mismatches)
        if self.mismatches:
            detail = ", ".join(
                f"meta tag {prefix} did not match import path {import_path}"
                for prefix in self.mismatches
            )
        else:
            detail = f"no meta tags for import path {import_path}"
        super().__init__(detail)


class AmbiguousMatchError(ResolutionError):
    """More than one discovery tag with distinct prefixes matches."""


class DisagreementError(ResolutionError):
    """The prefix page and the import path page claim different roots."""


class InvalidRepoRootError(ResolutionError):
    """The discovered repository root is not an absolute URL."""
