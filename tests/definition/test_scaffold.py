"""Tests for scaffolding the default installer definition."""

from __future__ import annotations

from pathlib import Path

from wixbuild.definition import (
    build_definition,
    derive_product_id,
    derive_upgrade_code,
    identity_defines,
    parse_definition,
    scaffold,
)
from wixbuild.models import BinaryTarget, ProjectMetadata


def _metadata(**overrides) -> ProjectMetadata:
    values = dict(
        name="demo",
        version="1.0.0-beta.1",
        authors=("Jane Doe <jane@example.com>",),
        description="A demo command line tool",
        binaries=(
            BinaryTarget(name="demo", path="target/release/demo.exe"),
            BinaryTarget(name="demo-helper", path="target/release/demo-helper.exe"),
        ),
    )
    values.update(overrides)
    return ProjectMetadata(**values)


def test_build_definition_uses_manifest_values() -> None:
    definition = build_definition(_metadata())

    assert definition.name == "demo"
    assert definition.manufacturer == "Jane Doe"
    assert definition.version == "$(var.Version)"
    assert definition.product_id == "$(var.ProductId)"
    assert definition.upgrade_code == derive_upgrade_code("demo")
    assert [component.install_path for component in definition.components] == [
        "bin/demo.exe",
        "bin/demo-helper.exe",
    ]
    assert definition.features[0].component_refs == ("binary0", "binary1")


def test_build_definition_honours_pinned_upgrade_code() -> None:
    definition = build_definition(_metadata(), upgrade_code="AAAAAAAA-BBBB-CCCC-DDDD-EEEEEEEEEEEE")

    assert definition.upgrade_code == "AAAAAAAA-BBBB-CCCC-DDDD-EEEEEEEEEEEE"


def test_identity_defines_follow_the_manifest_version() -> None:
    first = identity_defines(_metadata(version="1.0.0"))
    bumped = identity_defines(_metadata(version="1.1.0"))

    assert first == {"ProductId": derive_product_id("demo", "1.0.0"), "Version": "1.0.0"}
    assert bumped["ProductId"] != first["ProductId"]
    assert bumped["Version"] == "1.1.0"
    pinned = identity_defines(_metadata(), product_id="11111111-2222-3333-4444-555555555555")
    assert pinned["ProductId"] == "11111111-2222-3333-4444-555555555555"
    assert pinned["Version"] == "1.0.0"


def test_scaffold_writes_definition(tmp_path: Path) -> None:
    result = scaffold(_metadata(), tmp_path)

    assert result.written is True
    assert result.path == tmp_path / "wix" / "main.wxs"
    parsed = parse_definition(result.path)
    assert parsed.components == result.definition.components


def test_second_scaffold_leaves_existing_file_untouched(tmp_path: Path) -> None:
    first = scaffold(_metadata(), tmp_path)
    first.path.write_text(first.path.read_text(encoding="utf-8") + "<!-- edited -->\n", encoding="utf-8")
    before = first.path.read_bytes()

    second = scaffold(_metadata(version="2.0.0"), tmp_path)

    assert second.written is False
    assert first.path.read_bytes() == before


def test_scaffold_force_overwrites(tmp_path: Path) -> None:
    path = tmp_path / "wix" / "main.wxs"
    path.parent.mkdir()
    path.write_text("<Wix/>", encoding="utf-8")

    result = scaffold(_metadata(), tmp_path, force=True)

    assert result.written is True
    assert "<!-- edited -->" not in path.read_text(encoding="utf-8")
    assert parse_definition(path).name == "demo"
