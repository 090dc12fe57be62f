"""License detection from package.json and license files."""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

from ..logging import get_logger
from ..models import LicenseRecord, LicenseSummary

SPDX_LINK_TEMPLATE = "https://spdx.org/licenses/{}.html#licenseText"

_LICENSE_FILE = re.compile(r"^(licen[cs]e|copying)([-._].*)?$", re.IGNORECASE)
_SPDX_TOKEN = re.compile(r"[A-Za-z0-9][A-Za-z0-9.+\-]*")
_SPDX_OPERATORS = {"AND", "OR"}

# Checked in order; the first rule whose phrases all appear wins.
_TEXT_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("WTFPL", ("DO WHAT THE FUCK YOU WANT TO PUBLIC LICENSE",)),
    ("AGPL-3.0", ("GNU AFFERO GENERAL PUBLIC LICENSE",)),
    ("LGPL-3.0", ("GNU LESSER GENERAL PUBLIC LICENSE", "Version 3")),
    ("LGPL-2.1", ("GNU LESSER GENERAL PUBLIC LICENSE",)),
    ("GPL-3.0", ("GNU GENERAL PUBLIC LICENSE", "Version 3")),
    ("GPL-2.0", ("GNU GENERAL PUBLIC LICENSE",)),
    ("Apache-2.0", ("Apache License", "Version 2.0")),
    ("MPL-2.0", ("Mozilla Public License", "2.0")),
    ("EPL-2.0", ("Eclipse Public License", "2.0")),
    ("EPL-1.0", ("Eclipse Public License",)),
    ("Artistic-2.0", ("The Artistic License 2.0",)),
    ("Unlicense", ("This is free and unencumbered software released into the public domain",)),
    ("ISC", ("Permission to use, copy, modify, and/or distribute this software for any purpose",)),
    ("BSD-3-Clause", ("Redistribution and use in source and binary forms", "Neither the name")),
    ("BSD-2-Clause", ("Redistribution and use in source and binary forms",)),
    ("MIT", ("Permission is hereby granted, free of charge",)),
)

_logger = get_logger("licenses")


def detect_licenses(directory: str | os.PathLike[str]) -> LicenseSummary:
    """Collect licenses from the manifest and root license files of ``directory``."""
    root = Path(directory)
    records: List[LicenseRecord] = []

    manifest_ids = _manifest_license_ids(root / "package.json")
    if manifest_ids:
        records.append(_record("package.json", manifest_ids))

    for path in _license_files(root):
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            _logger.debug("Skipping unreadable license file %s: %s", path, exc)
            continue
        license_id = license_from_text(text)
        if license_id is not None:
            records.append(_record(path.name, [license_id]))

    unique: Dict[str, None] = {}
    for record in records:
        for license_id in record.unique_license_ids:
            unique[license_id] = None

    return LicenseSummary(unique_license_ids=tuple(unique), licenses=tuple(records))


def license_from_text(text: str) -> str | None:
    """Return the SPDX id whose characteristic phrases appear in ``text``."""
    normalised = " ".join(text.split()).lower()
    for license_id, phrases in _TEXT_RULES:
        if all(phrase.lower() in normalised for phrase in phrases):
            return license_id
    return None


def parse_spdx_expression(expression: str) -> List[str]:
    """Split an SPDX expression such as ``(MIT OR Apache-2.0)`` into license ids."""
    ids: List[str] = []
    skip_next = False
    for token in _SPDX_TOKEN.findall(expression):
        upper = token.upper()
        if skip_next:
            skip_next = False
            continue
        if upper == "WITH":
            skip_next = True
            continue
        if upper in _SPDX_OPERATORS:
            continue
        if token not in ids:
            ids.append(token)
    return ids


def _manifest_license_ids(manifest_path: Path) -> List[str]:
    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return []
    if not isinstance(data, dict):
        return []

    ids: List[str] = []
    for entry in _iter_license_fields(data):
        for license_id in parse_spdx_expression(entry):
            if license_id not in ids:
                ids.append(license_id)
    return ids


def _iter_license_fields(data: Dict[str, Any]) -> Iterable[str]:
    values: List[Any] = [data.get("license")]
    legacy = data.get("licenses")
    if isinstance(legacy, list):
        values.extend(legacy)
    else:
        values.append(legacy)

    for value in values:
        if isinstance(value, dict):
            value = value.get("type")
        if isinstance(value, str) and value.strip():
            yield value


def _license_files(root: Path) -> List[Path]:
    try:
        candidates = sorted(root.iterdir(), key=lambda path: path.name)
    except OSError:
        return []
    return [path for path in candidates if _LICENSE_FILE.match(path.name) and path.is_file()]


def _record(source: str, license_ids: List[str]) -> LicenseRecord:
    return LicenseRecord(
        source=source,
        unique_license_ids=tuple(license_ids),
        spdx_license_links=tuple(SPDX_LINK_TEMPLATE.format(license_id) for license_id in license_ids),
    )


__all__ = ["detect_licenses", "license_from_text", "parse_spdx_expression"]
