"""Tests for the npm registry client and tarball extraction."""

from __future__ import annotations

import io
import json
import tarfile
from pathlib import Path
from typing import Dict, List
from urllib.error import HTTPError

import pytest

from pkgverify.config import VerifyConfig
from pkgverify.errors import AcquisitionError
from pkgverify.registry import PackageSpec, RegistryClient, parse_package_spec, safe_extract

REGISTRY = "https://registry.example/"


def _tarball(members: Dict[str, bytes], *, prefix: str = "package/") -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for name, data in members.items():
            info = tarfile.TarInfo(name=f"{prefix}{name}")
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def _packument(name: str, versions: List[str], latest: str) -> bytes:
    return json.dumps(
        {
            "name": name,
            "dist-tags": {"latest": latest},
            "versions": {
                version: {
                    "name": name,
                    "version": version,
                    "dist": {"tarball": f"{REGISTRY}{name}/-/{name}-{version}.tgz"},
                }
                for version in versions
            },
        }
    ).encode("utf-8")


class _FakeRegistry:
    def __init__(self, responses: Dict[str, bytes]) -> None:
        self.responses = responses
        self.requests = []

    def __call__(self, request, timeout: float) -> bytes:
        self.requests.append(request)
        url = request.full_url
        if url not in self.responses:
            raise HTTPError(url, 404, "Not Found", hdrs=None, fp=None)
        return self.responses[url]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("lodash", PackageSpec("lodash")),
        ("lodash@4.17.21", PackageSpec("lodash", "4.17.21")),
        ("@types/node", PackageSpec("@types/node")),
        ("@types/node@next", PackageSpec("@types/node", "next")),
    ],
)
def test_parse_package_spec(raw: str, expected: PackageSpec) -> None:
    assert parse_package_spec(raw) == expected


@pytest.mark.parametrize("raw", ["", "@", "@scope", "@1.0.0"])
def test_parse_package_spec_rejects_invalid(raw: str) -> None:
    with pytest.raises(AcquisitionError):
        parse_package_spec(raw)


def test_extract_resolves_latest_and_strips_prefix(tmp_path: Path) -> None:
    tarball = _tarball({"package.json": b'{"name": "demo"}', "lib/index.js": b"module.exports = 1;\n"})
    fake = _FakeRegistry(
        {
            f"{REGISTRY}demo": _packument("demo", ["1.0.0", "1.1.0"], "1.1.0"),
            f"{REGISTRY}demo/-/demo-1.1.0.tgz": tarball,
        }
    )
    client = RegistryClient(VerifyConfig(registry_url=REGISTRY, token="tok"), fetch=fake)
    dest = tmp_path / "out"

    client.extract("demo", dest)

    assert (dest / "package.json").read_text(encoding="utf-8") == '{"name": "demo"}'
    assert (dest / "lib" / "index.js").exists()
    assert fake.requests[0].get_header("Authorization") == "Bearer tok"


def test_extract_honours_exact_version(tmp_path: Path) -> None:
    fake = _FakeRegistry(
        {
            f"{REGISTRY}demo": _packument("demo", ["1.0.0", "1.1.0"], "1.1.0"),
            f"{REGISTRY}demo/-/demo-1.0.0.tgz": _tarball({"package.json": b"{}"}),
        }
    )
    client = RegistryClient(VerifyConfig(registry_url=REGISTRY), fetch=fake)

    client("demo@1.0.0", tmp_path / "out")

    assert fake.requests[-1].full_url.endswith("demo-1.0.0.tgz")


def test_scoped_names_are_escaped(tmp_path: Path) -> None:
    fake = _FakeRegistry({})
    client = RegistryClient(VerifyConfig(registry_url=REGISTRY), fetch=fake)

    with pytest.raises(AcquisitionError):
        client.extract("@scope/pkg", tmp_path / "out")

    assert fake.requests[0].full_url == f"{REGISTRY}@scope%2Fpkg"


def test_unknown_version_raises_acquisition_error(tmp_path: Path) -> None:
    fake = _FakeRegistry({f"{REGISTRY}demo": _packument("demo", ["1.0.0"], "1.0.0")})
    client = RegistryClient(VerifyConfig(registry_url=REGISTRY), fetch=fake)

    with pytest.raises(AcquisitionError) as excinfo:
        client.extract("demo@^2.0.0", tmp_path / "out")

    assert excinfo.value.phase == "acquisition"
    assert not (tmp_path / "out").exists()


@pytest.mark.parametrize("dist", [None, "https://registry.example/demo.tgz", ["tarball"]])
def test_malformed_dist_raises_acquisition_error(tmp_path: Path, dist) -> None:
    packument = {"dist-tags": {"latest": "1.0.0"}, "versions": {"1.0.0": {"dist": dist}}}
    fake = _FakeRegistry({f"{REGISTRY}demo": json.dumps(packument).encode("utf-8")})
    client = RegistryClient(VerifyConfig(registry_url=REGISTRY), fetch=fake)

    with pytest.raises(AcquisitionError, match="no tarball URL"):
        client.extract("demo", tmp_path / "out")


@pytest.mark.parametrize("tag_value", [["1.0.0"], {"version": "1.0.0"}, 1])
def test_non_string_dist_tag_raises_acquisition_error(tmp_path: Path, tag_value) -> None:
    packument = {"dist-tags": {"latest": tag_value}, "versions": {"1.0.0": {"dist": {}}}}
    fake = _FakeRegistry({f"{REGISTRY}demo": json.dumps(packument).encode("utf-8")})
    client = RegistryClient(VerifyConfig(registry_url=REGISTRY), fetch=fake)

    with pytest.raises(AcquisitionError, match="does not name a version"):
        client.extract("demo", tmp_path / "out")

    assert len(fake.requests) == 1


def test_safe_extract_rejects_path_traversal(tmp_path: Path) -> None:
    data = _tarball({"../../escape.txt": b"boom"})

    with pytest.raises(AcquisitionError):
        safe_extract(data, tmp_path / "out")

    assert not (tmp_path / "escape.txt").exists()


def test_safe_extract_enforces_size_limit(tmp_path: Path) -> None:
    data = _tarball({"big.bin": b"x" * 2048})

    with pytest.raises(AcquisitionError):
        safe_extract(data, tmp_path / "out", max_bytes=1024)


def test_safe_extract_rejects_corrupt_archive(tmp_path: Path) -> None:
    with pytest.raises(AcquisitionError):
        safe_extract(b"not a tarball", tmp_path / "out")
