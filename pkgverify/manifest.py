"""package.json loading for staged package directories."""

from __future__ import annotations

import json
import os
from pathlib import Path

from .errors import ManifestError, ManifestNotFoundError
from .models import PackageManifest

MANIFEST_FILENAME = "package.json"


def read_manifest(directory: str | os.PathLike[str]) -> PackageManifest:
    """Return the declared name and module type of the package in ``directory``."""
    manifest_path = Path(directory) / MANIFEST_FILENAME
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ManifestNotFoundError(f"No {MANIFEST_FILENAME} found in {directory}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Unable to read {manifest_path}: {exc}") from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Invalid JSON in {manifest_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"{manifest_path} must contain a JSON object")

    name = data.get("name")
    module_type = data.get("type")
    return PackageManifest(
        name=name if isinstance(name, str) else None,
        type=module_type if isinstance(module_type, str) else "commonjs",
    )


__all__ = ["MANIFEST_FILENAME", "read_manifest"]
