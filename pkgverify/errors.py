"""Exception types raised by the verification pipeline."""

from __future__ import annotations


class VerifyError(RuntimeError):
    """Base class for failures that abort a verification run."""

    phase = "verify"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.phase}] {self.message}"


class AcquisitionError(VerifyError):
    """Raised when a package tarball cannot be fetched or extracted."""

    phase = "acquisition"


class ManifestError(VerifyError):
    """Raised when package.json cannot be read or parsed."""

    phase = "manifest"


class ManifestNotFoundError(ManifestError):
    """Raised when the staged directory has no package.json."""


class WalkError(VerifyError):
    """Raised when the package root itself cannot be listed."""

    phase = "walk"


class SourceParseError(ValueError):
    """Raised by source analyzers when a file cannot be parsed."""

    def __init__(self, message: str, *, line: int = 0, column: int = 0) -> None:
        super().__init__(message)
        self.line = line
        self.column = column


__all__ = [
    "AcquisitionError",
    "ManifestError",
    "ManifestNotFoundError",
    "SourceParseError",
    "VerifyError",
    "WalkError",
]
