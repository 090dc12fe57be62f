"""Core data models shared across pkgverify components."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

Location = Tuple[Tuple[int, int], Tuple[int, int]]

EMPTY_LOCATION: Location = ((0, 0), (0, 0))


class EntryKind(Enum):
    """Kind of entry produced by the directory walker."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class DirectoryEntry:
    """A file or directory discovered below the package root."""

    kind: EntryKind
    path: str


@dataclass(frozen=True)
class TarballComposition:
    """Files, extensions and on-disk size of an extracted package."""

    extensions: Tuple[str, ...]
    files: Tuple[str, ...]
    total_size_bytes: int


@dataclass(frozen=True)
class AnalysisWarning:
    """Suspicious pattern reported for a single source file."""

    file: str
    kind: str
    value: str
    location: Location = EMPTY_LOCATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "kind": self.kind,
            "value": self.value,
            "location": [list(self.location[0]), list(self.location[1])],
        }


@dataclass(frozen=True)
class SourceAnalysis:
    """File-agnostic output of a source analyzer.

    ``warnings`` holds ``(kind, value, location)`` triples; the pipeline
    stamps them with the originating file.
    """

    dependencies: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    warnings: Tuple[Tuple[str, str, Location], ...] = ()
    is_one_line_require: bool = False


@dataclass(frozen=True)
class FileAnalysisResult:
    """Analysis of one successfully read and parsed source file."""

    file: str
    dependencies: Dict[str, Dict[str, Any]]
    warnings: Tuple[AnalysisWarning, ...]
    is_minified: bool


@dataclass(frozen=True)
class SourcesSummary:
    """Aggregated output of the source fan-out."""

    dependencies: Dict[str, Dict[str, Dict[str, Any]]]
    warnings: Tuple[AnalysisWarning, ...]
    minified: Tuple[str, ...]


@dataclass(frozen=True)
class LicenseRecord:
    """Licenses found in a single source (manifest field or license file)."""

    source: str
    unique_license_ids: Tuple[str, ...]
    spdx_license_links: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uniqueLicenseIds": list(self.unique_license_ids),
            "spdxLicenseLinks": list(self.spdx_license_links),
            "from": self.source,
        }


@dataclass(frozen=True)
class LicenseSummary:
    """Licenses declared by a package."""

    unique_license_ids: Tuple[str, ...] = ()
    licenses: Tuple[LicenseRecord, ...] = ()


@dataclass(frozen=True)
class PackageManifest:
    """Fields of package.json the pipeline relies on."""

    name: Optional[str]
    type: str = "commonjs"

    @property
    def is_module(self) -> bool:
        return self.type == "module"


@dataclass(frozen=True)
class VerifyPayload:
    """Final report for one analyzed package directory."""

    files: Tuple[str, ...]
    extensions: Tuple[str, ...]
    minified: Tuple[str, ...]
    directory_size: int
    unique_license_ids: Tuple[str, ...]
    licenses: Tuple[LicenseRecord, ...]
    dependencies: Mapping[str, Mapping[str, Mapping[str, Any]]]
    warnings: Tuple[AnalysisWarning, ...]

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON-compatible report consumed by downstream tooling."""
        dependencies: Dict[str, Dict[str, Any]] = {}
        for file, deps in self.dependencies.items():
            dependencies[file] = {name: _plain(meta) for name, meta in deps.items()}
        return {
            "files": {
                "list": list(self.files),
                "extensions": list(self.extensions),
                "minified": list(self.minified),
            },
            "directorySize": self.directory_size,
            "uniqueLicenseIds": list(self.unique_license_ids),
            "licenses": [record.to_dict() for record in self.licenses],
            "ast": {
                "dependencies": dependencies,
                "warnings": [warning.to_dict() for warning in self.warnings],
            },
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


__all__ = [
    "AnalysisWarning",
    "DirectoryEntry",
    "EMPTY_LOCATION",
    "EntryKind",
    "FileAnalysisResult",
    "LicenseRecord",
    "LicenseSummary",
    "Location",
    "PackageManifest",
    "SourceAnalysis",
    "SourcesSummary",
    "TarballComposition",
    "VerifyPayload",
]
