"""Concurrent read and static analysis of package source files."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Awaitable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .analysis.base import MinifiedDetector, SourceAnalyzer
from .analysis.javascript import analyze_source
from .analysis.minified import looks_minified
from .logging import get_logger
from .models import (
    EMPTY_LOCATION,
    AnalysisWarning,
    FileAnalysisResult,
    SourcesSummary,
)

SOURCE_EXTENSIONS = frozenset({".js", ".mjs"})
MODULE_EXTENSIONS = frozenset({".mjs"})
MINIFIED_MARKER = ".min"
PARSING_ERROR = "parsing-error"

_T = TypeVar("_T")

_logger = get_logger("sources")


def is_source_file(path: str) -> bool:
    return os.path.splitext(path)[1] in SOURCE_EXTENSIONS


async def analyze_sources(
    root: str | os.PathLike[str],
    files: Sequence[str],
    *,
    package_name: Optional[str] = None,
    is_module_by_default: bool = False,
    analyzer: SourceAnalyzer = analyze_source,
    minified_detector: MinifiedDetector = looks_minified,
    max_concurrency: Optional[int] = None,
) -> SourcesSummary:
    """Read and analyze every source file in ``files`` concurrently.

    Failures are isolated per file: unreadable files are dropped, parse
    failures become a single ``parsing-error`` warning, and analyzer
    failures carrying an ``errno`` (``OSError``) are dropped silently.
    """
    root_path = Path(root)
    source_files = [file for file in files if is_source_file(file)]
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    reads = await asyncio.gather(
        *(_bounded(semaphore, asyncio.to_thread(_read_source, root_path, file)) for file in source_files),
        return_exceptions=True,
    )
    contents: List[Tuple[str, str]] = []
    for file, outcome in zip(source_files, reads):
        if isinstance(outcome, BaseException):
            _logger.debug("Dropping unreadable source %s: %s", file, outcome)
            continue
        contents.append((file, outcome))

    analyses = await asyncio.gather(
        *(
            _bounded(
                semaphore,
                asyncio.to_thread(
                    analyze_file,
                    file,
                    text,
                    package_name=package_name,
                    is_module_by_default=is_module_by_default,
                    analyzer=analyzer,
                    minified_detector=minified_detector,
                ),
            )
            for file, text in contents
        ),
        return_exceptions=True,
    )

    dependencies: Dict[str, Dict[str, Dict[str, object]]] = {}
    warnings: List[AnalysisWarning] = []
    minified: List[str] = []
    for (file, _), outcome in zip(contents, analyses):
        if isinstance(outcome, OSError):
            _logger.debug("Dropping %s after system error during analysis: %s", file, outcome)
            continue
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            _logger.debug("Failed to parse %s: %s", file, outcome)
            warnings.append(AnalysisWarning(file, PARSING_ERROR, str(outcome), EMPTY_LOCATION))
            continue
        dependencies[file] = outcome.dependencies
        warnings.extend(outcome.warnings)
        if outcome.is_minified:
            minified.append(file)

    _logger.debug(
        "Analyzed %d of %d source files (%d warnings)",
        len(dependencies),
        len(source_files),
        len(warnings),
    )
    return SourcesSummary(
        dependencies=dependencies,
        warnings=tuple(warnings),
        minified=tuple(minified),
    )


def analyze_file(
    file: str,
    text: str,
    *,
    package_name: Optional[str] = None,
    is_module_by_default: bool = False,
    analyzer: SourceAnalyzer = analyze_source,
    minified_detector: MinifiedDetector = looks_minified,
) -> FileAnalysisResult:
    """Analyze one source file's text; analyzer errors propagate to the caller."""
    module = True if os.path.splitext(file)[1] in MODULE_EXTENSIONS else is_module_by_default
    analysis = analyzer(text, module=module)

    dependencies = dict(analysis.dependencies)
    if package_name is not None:
        dependencies.pop(package_name, None)

    warnings = tuple(
        AnalysisWarning(file, kind, value, location) for kind, value, location in analysis.warnings
    )
    is_minified = (
        not analysis.is_one_line_require
        and MINIFIED_MARKER not in file
        and minified_detector(text)
    )
    return FileAnalysisResult(
        file=file,
        dependencies=dependencies,
        warnings=warnings,
        is_minified=is_minified,
    )


def _read_source(root: Path, file: str) -> str:
    return (root / file).read_text(encoding="utf-8", errors="replace")


async def _bounded(semaphore: Optional[asyncio.Semaphore], awaitable: Awaitable[_T]) -> _T:
    if semaphore is None:
        return await awaitable
    async with semaphore:
        return await awaitable


__all__ = [
    "MODULE_EXTENSIONS",
    "PARSING_ERROR",
    "SOURCE_EXTENSIONS",
    "analyze_file",
    "analyze_sources",
    "is_source_file",
]
