"""npm registry client: resolve a package spec and extract its tarball."""

from __future__ import annotations

import io
import json
import os
import shutil
import tarfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from .config import VerifyConfig
from .errors import AcquisitionError
from .logging import get_logger

DEFAULT_TAG = "latest"
_PACKUMENT_ACCEPT = "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8"

Fetcher = Callable[[Request, float], bytes]

_logger = get_logger("registry")


@dataclass(frozen=True)
class PackageSpec:
    """A package name with an optional exact version or dist-tag."""

    name: str
    selector: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.name}@{self.selector}" if self.selector else self.name


def parse_package_spec(spec: str) -> PackageSpec:
    """Split ``name``, ``name@1.2.3``, ``@scope/name@tag`` into name and selector."""
    spec = spec.strip()
    separator = spec.find("@", 1) if spec.startswith("@") else spec.find("@")
    if separator == -1:
        name, selector = spec, None
    else:
        name, selector = spec[:separator], spec[separator + 1 :] or None

    if not name or name == "@" or (name.startswith("@") and "/" not in name):
        raise AcquisitionError(f"Invalid package spec: {spec!r}")
    return PackageSpec(name=name, selector=selector)


def _urlopen_read(request: Request, timeout: float) -> bytes:
    with urlopen(request, timeout=timeout) as response:
        return response.read()


class RegistryClient:
    """Downloads package tarballs from an npm-compatible registry."""

    def __init__(self, config: VerifyConfig, *, fetch: Fetcher | None = None) -> None:
        self.registry_url = config.registry_url
        self.token = config.token
        self.timeout = config.request_timeout
        self.max_extract_bytes = config.max_extract_bytes
        self._fetch = fetch or _urlopen_read

    def __call__(self, package_spec: str, dest: str | os.PathLike[str]) -> None:
        self.extract(package_spec, dest)

    def extract(self, package_spec: str, dest: str | os.PathLike[str]) -> None:
        """Fetch ``package_spec`` and extract its contents into ``dest``."""
        spec = parse_package_spec(package_spec)
        metadata = self.resolve(spec)
        dist = metadata.get("dist")
        tarball_url = dist.get("tarball") if isinstance(dist, dict) else None
        if not isinstance(tarball_url, str) or not tarball_url:
            raise AcquisitionError(f"{spec} has no tarball URL in the registry metadata")

        _logger.info("Downloading %s@%s", spec.name, metadata.get("version"))
        data = self._get(tarball_url, accept="application/octet-stream")

        dest_path = Path(dest)
        try:
            safe_extract(data, dest_path, max_bytes=self.max_extract_bytes)
        except AcquisitionError:
            shutil.rmtree(dest_path, ignore_errors=True)
            raise

    def resolve(self, spec: PackageSpec) -> Dict[str, Any]:
        """Return the version metadata matching ``spec``'s version or dist-tag."""
        url = f"{self.registry_url}{quote(spec.name, safe='@')}"
        raw = self._get(url, accept=_PACKUMENT_ACCEPT)
        try:
            packument = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise AcquisitionError(f"Invalid registry response for {spec.name}: {exc}") from exc

        versions = packument.get("versions") if isinstance(packument, dict) else None
        if not isinstance(versions, dict):
            raise AcquisitionError(f"Registry returned no versions for {spec.name}")

        selector = spec.selector or DEFAULT_TAG
        dist_tags = packument.get("dist-tags") or {}
        version = dist_tags.get(selector, selector) if isinstance(dist_tags, dict) else selector
        if not isinstance(version, str):
            raise AcquisitionError(f"Dist-tag {selector!r} of {spec.name} does not name a version")
        metadata = versions.get(version)
        if not isinstance(metadata, dict):
            raise AcquisitionError(f"Unable to resolve {spec.name}@{selector} to a published version")
        return metadata

    def _get(self, url: str, *, accept: str) -> bytes:
        headers = {"Accept": accept}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        request = Request(url, headers=headers)
        try:
            return self._fetch(request, self.timeout)
        except HTTPError as exc:
            raise AcquisitionError(f"Registry request to {url} failed with HTTP {exc.code}") from exc
        except (URLError, TimeoutError, OSError) as exc:
            raise AcquisitionError(f"Registry request to {url} failed: {exc}") from exc


def safe_extract(data: bytes, dest: Path, *, max_bytes: Optional[int] = None) -> None:
    """Extract a gzipped npm tarball into ``dest``, dropping its top-level folder.

    Only regular files and directories are written. Members escaping
    ``dest`` are rejected and ``max_bytes`` caps the extracted size.
    """
    dest.mkdir(parents=True, exist_ok=True)
    total = 0
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as archive:
            for member in archive:
                parts = PurePosixPath(member.name.replace("\\", "/")).parts[1:]
                if not parts:
                    continue
                if member.name.startswith("/") or ".." in parts:
                    raise AcquisitionError(f"Path traversal in tarball: {member.name}")
                target = dest.joinpath(*parts)

                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                if not member.isfile():
                    _logger.debug("Skipping non-regular tarball member %s", member.name)
                    continue

                total += member.size
                if max_bytes is not None and total > max_bytes:
                    raise AcquisitionError("Extraction size limit exceeded")

                source = archive.extractfile(member)
                if source is None:
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with source, target.open("wb") as handle:
                    shutil.copyfileobj(source, handle)
    except (tarfile.TarError, EOFError, OSError) as exc:
        raise AcquisitionError(f"Unable to extract tarball: {exc}") from exc


__all__ = ["PackageSpec", "RegistryClient", "parse_package_spec", "safe_extract"]
