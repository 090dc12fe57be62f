"""Interfaces for the pluggable collaborators used by the pipeline."""

from __future__ import annotations

import os
from typing import Protocol

from ..models import LicenseSummary, PackageManifest, SourceAnalysis


class SourceAnalyzer(Protocol):
    """Parses source text and extracts dependencies and warnings.

    Implementations raise an exception without an ``errno`` (for example
    :class:`pkgverify.errors.SourceParseError`) when the text cannot be parsed.
    """

    def __call__(self, text: str, *, module: bool) -> SourceAnalysis: ...


class MinifiedDetector(Protocol):
    """Returns True when source text looks minified. Never raises."""

    def __call__(self, text: str) -> bool: ...


class LicenseDetector(Protocol):
    """Collects the licenses declared inside a package directory. Never raises."""

    def __call__(self, directory: str | os.PathLike[str]) -> LicenseSummary: ...


class ManifestReader(Protocol):
    """Reads the name and module type declared by a package directory."""

    def __call__(self, directory: str | os.PathLike[str]) -> PackageManifest: ...


class Extractor(Protocol):
    """Fetches ``package_spec`` and extracts it into ``dest``.

    Raises :class:`pkgverify.errors.AcquisitionError` on failure and leaves
    ``dest`` populated only on success.
    """

    def __call__(self, package_spec: str, dest: str | os.PathLike[str]) -> None: ...


__all__ = [
    "Extractor",
    "LicenseDetector",
    "ManifestReader",
    "MinifiedDetector",
    "SourceAnalyzer",
]
