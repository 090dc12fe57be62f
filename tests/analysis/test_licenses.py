"""Tests for license detection."""

from __future__ import annotations

import json

from pkgverify.analysis.licenses import detect_licenses, license_from_text, parse_spdx_expression

MIT_TEXT = """
MIT License

Copyright (c) 2020 Someone

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction.
"""


def test_manifest_and_license_file_are_combined(package_builder) -> None:
    package_builder.manifest(license="(MIT OR Apache-2.0)")
    package_builder.write({"LICENSE": MIT_TEXT})

    summary = detect_licenses(package_builder.path())

    assert summary.unique_license_ids == ("MIT", "Apache-2.0")
    assert [record.source for record in summary.licenses] == ["package.json", "LICENSE"]
    manifest_record = summary.licenses[0]
    assert manifest_record.spdx_license_links == (
        "https://spdx.org/licenses/MIT.html#licenseText",
        "https://spdx.org/licenses/Apache-2.0.html#licenseText",
    )
    assert summary.licenses[1].to_dict() == {
        "uniqueLicenseIds": ["MIT"],
        "spdxLicenseLinks": ["https://spdx.org/licenses/MIT.html#licenseText"],
        "from": "LICENSE",
    }


def test_legacy_licenses_array_is_supported(package_builder) -> None:
    (package_builder.path() / "package.json").write_text(
        json.dumps({"name": "old", "licenses": [{"type": "BSD-3-Clause"}, "ISC"]}),
        encoding="utf-8",
    )

    summary = detect_licenses(package_builder.path())

    assert summary.unique_license_ids == ("BSD-3-Clause", "ISC")


def test_directory_without_licenses_yields_empty_summary(tmp_path) -> None:
    summary = detect_licenses(tmp_path)

    assert summary.unique_license_ids == ()
    assert summary.licenses == ()


def test_invalid_manifest_is_ignored(package_builder) -> None:
    package_builder.write({"package.json": "{not json", "LICENSE.md": MIT_TEXT})

    summary = detect_licenses(package_builder.path())

    assert summary.unique_license_ids == ("MIT",)


def test_spdx_expression_skips_operators_and_exceptions() -> None:
    assert parse_spdx_expression("GPL-2.0-only WITH Classpath-exception-2.0 AND MIT") == [
        "GPL-2.0-only",
        "MIT",
    ]


def test_license_text_prefers_specific_gpl_variants() -> None:
    assert license_from_text("GNU LESSER GENERAL PUBLIC LICENSE\nVersion 2.1, February 1999") == "LGPL-2.1"
    assert license_from_text("GNU AFFERO GENERAL PUBLIC LICENSE Version 3") == "AGPL-3.0"
    assert license_from_text("GNU GENERAL PUBLIC LICENSE\n Version 3, 29 June 2007") == "GPL-3.0"
    assert license_from_text("nothing recognisable") is None
