"""Tests for pkgverify.composition."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from pkgverify.composition import get_tarball_composition, iter_entries
from pkgverify.errors import WalkError
from pkgverify.models import EntryKind


def test_composition_lists_files_in_discovery_order(package_builder) -> None:
    package_builder.write(
        {
            "index.js": "module.exports = require('./lib/a');\n",
            "lib/a.js": "module.exports = 1;\n",
            "lib/nested/b.mjs": "export default 2;\n",
            "package.json": "{}\n",
            "zz.md": "# notes\n",
        }
    )

    composition = get_tarball_composition(package_builder.path())

    assert composition.files == (
        "index.js",
        "lib/a.js",
        "lib/nested/b.mjs",
        "package.json",
        "zz.md",
    )
    assert composition.extensions == (".js", ".mjs", ".json", ".md")


def test_composition_never_reports_empty_extension(package_builder) -> None:
    package_builder.write({"LICENSE": "MIT\n", ".npmignore": "test/\n", "a.js": "1;\n"})

    composition = get_tarball_composition(package_builder.path())

    assert "" not in composition.extensions
    assert composition.extensions == (".js",)
    assert ".npmignore" in composition.files
    assert "LICENSE" in composition.files


def test_composition_skips_excluded_directories(package_builder) -> None:
    package_builder.write(
        {
            "index.js": "1;\n",
            "node_modules/dep/index.js": "x" * 4096,
            ".git/HEAD": "ref: refs/heads/main\n",
            ".vscode/settings.json": "{}\n",
            "lib/node_modules/inner.js": "y" * 4096,
        }
    )
    root = package_builder.path()

    composition = get_tarball_composition(root)

    assert composition.files == ("index.js",)
    assert composition.total_size_bytes == (
        os.stat(root).st_size + os.stat(root / "index.js").st_size + os.stat(root / "lib").st_size
    )


def _sum_entries(root: Path, files) -> int:
    return sum(os.stat(root / file).st_size for file in files)


def test_directory_size_covers_every_listed_file(package_builder) -> None:
    package_builder.write(
        {
            "index.js": "a" * 1000,
            "lib/util.js": "b" * 2500,
            "README.md": "c" * 10,
        }
    )
    root = package_builder.path()

    composition = get_tarball_composition(root)

    file_total = _sum_entries(root, composition.files)
    assert composition.total_size_bytes >= file_total
    assert composition.total_size_bytes == (
        os.stat(root).st_size + file_total + os.stat(root / "lib").st_size
    )


def test_failed_size_probe_contributes_zero(package_builder, monkeypatch) -> None:
    package_builder.write({"a.js": "a" * 100, "b.js": "b" * 300})
    root = package_builder.path()
    expected = os.stat(root).st_size + 100
    real_stat = os.stat

    def _flaky_stat(path, *args, **kwargs):
        if os.fspath(path).endswith("b.js"):
            raise PermissionError("denied")
        return real_stat(path, *args, **kwargs)

    monkeypatch.setattr(os, "stat", _flaky_stat)

    composition = get_tarball_composition(root)

    assert composition.files == ("a.js", "b.js")
    assert composition.total_size_bytes == expected


def test_iter_entries_yields_directory_before_children(package_builder) -> None:
    package_builder.write({"lib/a.js": "1;\n", "lib/sub/b.js": "2;\n"})
    root = package_builder.path()

    entries = [(entry.kind, Path(entry.path).relative_to(root).as_posix()) for entry in iter_entries(root)]

    assert entries == [
        (EntryKind.DIRECTORY, "lib"),
        (EntryKind.FILE, "lib/a.js"),
        (EntryKind.DIRECTORY, "lib/sub"),
        (EntryKind.FILE, "lib/sub/b.js"),
    ]


def test_symlinks_are_not_walked(package_builder) -> None:
    package_builder.write({"real.js": "1;\n"})
    root = package_builder.path()
    try:
        os.symlink(root / "missing.js", root / "dangling.js")
    except (OSError, NotImplementedError):  # pragma: no cover - platform dependent
        pytest.skip("symlinks not supported")

    composition = get_tarball_composition(root)

    assert composition.files == ("real.js",)


def test_missing_root_raises_walk_error(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    with pytest.raises(WalkError) as excinfo:
        get_tarball_composition(missing)

    assert excinfo.value.phase == "walk"
    assert str(missing) in str(excinfo.value)
