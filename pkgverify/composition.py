"""Directory walking and size accounting for extracted packages."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Iterator, List

from .errors import WalkError
from .logging import get_logger
from .models import DirectoryEntry, EntryKind, TarballComposition

EXCLUDED_DIRS = frozenset({"node_modules", ".vscode", ".git"})

_logger = get_logger("composition")


def iter_entries(root: str | os.PathLike[str]) -> Iterator[DirectoryEntry]:
    """Yield files and directories below ``root`` depth-first.

    A directory is yielded before its children. Entries named in
    ``EXCLUDED_DIRS`` are skipped together with everything below them, and
    symbolic links are neither files nor directories for the walk. Only a
    failure to list ``root`` itself propagates; unreadable subdirectories
    are yielded but contribute no children.
    """
    yield from _walk(os.fspath(root), is_root=True)


def _walk(directory: str, *, is_root: bool = False) -> Iterator[DirectoryEntry]:
    try:
        with os.scandir(directory) as iterator:
            entries = sorted(iterator, key=lambda entry: entry.name)
    except OSError:
        if is_root:
            raise
        _logger.debug("Skipping unreadable directory %s", directory)
        return

    for entry in entries:
        if entry.name in EXCLUDED_DIRS:
            continue
        if entry.is_file(follow_symlinks=False):
            yield DirectoryEntry(EntryKind.FILE, entry.path)
        elif entry.is_dir(follow_symlinks=False):
            yield DirectoryEntry(EntryKind.DIRECTORY, entry.path)
            yield from _walk(entry.path)


def get_tarball_composition(root: str | os.PathLike[str]) -> TarballComposition:
    """Return the files, extensions and total size of an extracted package."""
    root_path = Path(root)
    try:
        size = root_path.stat().st_size
        entries = list(iter_entries(root_path))
    except OSError as exc:
        raise WalkError(f"Unable to list package directory {root_path}: {exc}") from exc

    extensions: Dict[str, None] = {}
    files: List[str] = []
    for entry in entries:
        if entry.kind is EntryKind.FILE:
            extensions[os.path.splitext(entry.path)[1]] = None
            files.append(Path(entry.path).relative_to(root_path).as_posix())
        size += _probe_size(entry.path)

    extensions.pop("", None)
    _logger.debug("Walked %s: %d files, %d bytes", root_path, len(files), size)

    return TarballComposition(
        extensions=tuple(extensions),
        files=tuple(files),
        total_size_bytes=size,
    )


def _probe_size(path: str) -> int:
    try:
        return os.stat(path, follow_symlinks=False).st_size
    except OSError:
        return 0


__all__ = ["EXCLUDED_DIRS", "get_tarball_composition", "iter_entries"]
