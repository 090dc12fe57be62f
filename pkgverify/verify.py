"""Staging, orchestration and payload assembly for verification runs."""

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from .analysis.base import (
    Extractor,
    LicenseDetector,
    ManifestReader,
    MinifiedDetector,
    SourceAnalyzer,
)
from .analysis.javascript import analyze_source
from .analysis.licenses import detect_licenses
from .analysis.minified import looks_minified
from .composition import get_tarball_composition
from .config import DEFAULT_REGISTRY_URL, VerifyConfig, load_config, resolve_registry_url
from .logging import get_logger
from .manifest import read_manifest
from .models import LicenseSummary, SourcesSummary, TarballComposition, VerifyPayload
from .registry import RegistryClient
from .sources import analyze_sources

STAGING_PREFIX = "pkgverify-"
STAGED_PACKAGE_DIRNAME = "package"


def aggregate_licenses(
    root: str | os.PathLike[str], detector: LicenseDetector = detect_licenses
) -> LicenseSummary:
    """Return the license classifier's result for ``root`` unchanged."""
    return detector(root)


def build_payload(
    composition: TarballComposition,
    sources: SourcesSummary,
    licenses: LicenseSummary,
) -> VerifyPayload:
    """Merge the walk, fan-out and license results into the final report."""
    return VerifyPayload(
        files=composition.files,
        extensions=tuple(ext for ext in composition.extensions if ext != ""),
        minified=sources.minified,
        directory_size=composition.total_size_bytes,
        unique_license_ids=licenses.unique_license_ids,
        licenses=licenses.licenses,
        dependencies=sources.dependencies,
        warnings=sources.warnings,
    )


class Verifier:
    """Coordinates composition, source analysis and license detection."""

    def __init__(
        self,
        config: VerifyConfig | None = None,
        *,
        extractor: Extractor | None = None,
        manifest_reader: ManifestReader = read_manifest,
        analyzer: SourceAnalyzer = analyze_source,
        minified_detector: MinifiedDetector = looks_minified,
        license_detector: LicenseDetector = detect_licenses,
    ) -> None:
        self.config = config or VerifyConfig()
        self.extractor = extractor or RegistryClient(self.config)
        self.manifest_reader = manifest_reader
        self.analyzer = analyzer
        self.minified_detector = minified_detector
        self.license_detector = license_detector
        self.logger = get_logger("verify")

    async def analyze_local(
        self, root: str | os.PathLike[str], *, package_name: Optional[str] = None
    ) -> VerifyPayload:
        """Analyze an already extracted package directory."""
        root_path = Path(root)
        self.logger.info("Analyzing package directory %s", root_path)

        composition = await asyncio.to_thread(get_tarball_composition, root_path)
        self.logger.debug(
            "Composition: %d files, %d bytes",
            len(composition.files),
            composition.total_size_bytes,
        )

        await asyncio.sleep(0)
        manifest = await asyncio.to_thread(self.manifest_reader, root_path)
        local_name = package_name if package_name is not None else manifest.name

        await asyncio.sleep(0)
        sources, licenses = await asyncio.gather(
            analyze_sources(
                root_path,
                composition.files,
                package_name=local_name,
                is_module_by_default=manifest.is_module,
                analyzer=self.analyzer,
                minified_detector=self.minified_detector,
                max_concurrency=self.config.max_concurrency,
            ),
            asyncio.to_thread(aggregate_licenses, root_path, self.license_detector),
        )

        return build_payload(composition, sources, licenses)

    async def analyze_remote(
        self, package_spec: str, *, package_name: Optional[str] = None
    ) -> VerifyPayload:
        """Fetch ``package_spec`` into a staging directory and analyze it.

        The staging directory is removed on every exit path, including
        extraction failures and cancellation of the awaiting task.
        """
        staging = tempfile.mkdtemp(prefix=STAGING_PREFIX)
        dest = Path(staging) / STAGED_PACKAGE_DIRNAME
        self.logger.info("Staging %s in %s", package_spec, staging)
        extraction = asyncio.ensure_future(asyncio.to_thread(self.extractor, package_spec, dest))
        try:
            await asyncio.shield(extraction)
            return await self.analyze_local(dest, package_name=package_name)
        finally:
            await self._settle(extraction)
            self._cleanup(staging)

    async def _settle(self, extraction: asyncio.Future) -> None:
        # The extractor thread cannot be interrupted and keeps writing under
        # the staging directory until it returns.
        while not extraction.done():
            try:
                await asyncio.wait({extraction})
            except asyncio.CancelledError:
                continue

    def _cleanup(self, staging: str) -> None:
        try:
            shutil.rmtree(staging)
        except OSError as exc:
            self.logger.warning("Failed to remove staging directory %s: %s", staging, exc)


def _default_registry() -> str:
    return DEFAULT_REGISTRY_URL


def verify(
    package_spec: Optional[str] = None,
    *,
    config: VerifyConfig | None = None,
    cwd: str | os.PathLike[str] | None = None,
) -> VerifyPayload:
    """Analyze ``package_spec`` from the registry, or the working directory when omitted."""
    root = Path(cwd) if cwd is not None else Path.cwd()
    if config is None:
        resolver = resolve_registry_url if package_spec is not None else _default_registry
        config = load_config(root, registry_resolver=resolver)
    verifier = Verifier(config)
    if package_spec is None:
        return asyncio.run(verifier.analyze_local(root))
    return asyncio.run(verifier.analyze_remote(package_spec))


__all__ = ["Verifier", "aggregate_licenses", "build_payload", "verify"]
