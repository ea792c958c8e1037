"""Tests for validating hand-maintained installer definitions."""

from __future__ import annotations

from pathlib import Path

import pytest

from wixbuild.definition import resolve_definition, validate_existing
from wixbuild.definition.xml import WIX_NAMESPACE
from wixbuild.errors import DefinitionError, DefinitionErrorKind
from wixbuild.models import BinaryTarget, ProjectMetadata

PRODUCT_ID = "11111111-2222-3333-4444-555555555555"
UPGRADE_CODE = "AAAAAAAA-BBBB-CCCC-DDDD-EEEEEEEEEEEE"

DEFAULT_COMPONENTS = '<Component Id="binary0" Guid="*"><File Source="target/release/demo.exe"/></Component>'
DEFAULT_FEATURES = '<Feature Id="Binaries" Title="Application" Level="1"><ComponentRef Id="binary0"/></Feature>'


def _write(
    root: Path,
    *,
    product_id: str = PRODUCT_ID,
    upgrade_code: str = UPGRADE_CODE,
    manufacturer: str = "Acme",
    components: str = DEFAULT_COMPONENTS,
    features: str = DEFAULT_FEATURES,
) -> Path:
    path = root / "wix" / "main.wxs"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        f"""<?xml version="1.0"?>
<Wix xmlns="{WIX_NAMESPACE}">
  <Product Id="{product_id}" UpgradeCode="{upgrade_code}" Name="demo"
           Manufacturer="{manufacturer}" Version="1.0.0">
    <Directory Id="TARGETDIR" Name="SourceDir">
      <Directory Id="ProgramFiles64Folder">
        <Directory Id="APPLICATIONFOLDER" Name="demo">
          {components}
        </Directory>
      </Directory>
    </Directory>
    {features}
  </Product>
</Wix>
""",
        encoding="utf-8",
    )
    return path


def _kind(path: Path, root: Path, **kwargs) -> DefinitionErrorKind:
    with pytest.raises(DefinitionError) as excinfo:
        validate_existing(path, root, **kwargs)
    return excinfo.value.kind


def test_valid_definition_passes(tmp_path: Path) -> None:
    path = _write(tmp_path)

    definition = validate_existing(path, tmp_path)

    assert definition.product_id == PRODUCT_ID
    assert [component.source for component in definition.components] == ["target/release/demo.exe"]


@pytest.mark.parametrize(
    "source",
    ["../outside/evil.exe", "/etc/passwd", "C:\\Windows\\evil.exe", "target/../../evil.exe"],
)
def test_sources_outside_root_are_rejected(tmp_path: Path, source: str) -> None:
    root = tmp_path / "project"
    components = f'<Component Id="binary0" Guid="*"><File Source="{source}"/></Component>'
    path = _write(root, components=components)

    assert _kind(path, root) is DefinitionErrorKind.PATH_OUTSIDE_ROOT


def test_absolute_source_inside_root_is_accepted(tmp_path: Path) -> None:
    source = tmp_path / "target" / "release" / "demo.exe"
    components = f'<Component Id="binary0" Guid="*"><File Source="{source}"/></Component>'
    path = _write(tmp_path, components=components)

    validate_existing(path, tmp_path)


def test_duplicate_component_ids_are_rejected(tmp_path: Path) -> None:
    components = DEFAULT_COMPONENTS + '<Component Id="binary0" Guid="*"><File Source="README.md"/></Component>'
    path = _write(tmp_path, components=components)

    assert _kind(path, tmp_path) is DefinitionErrorKind.DUPLICATE_ID


def test_duplicate_feature_ids_are_rejected(tmp_path: Path) -> None:
    features = DEFAULT_FEATURES + '<Feature Id="Binaries" Title="Again" Level="1"/>'
    path = _write(tmp_path, features=features)

    assert _kind(path, tmp_path) is DefinitionErrorKind.DUPLICATE_ID


def test_malformed_xml_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "main.wxs"
    path.write_text("<Wix><Product Id=", encoding="utf-8")

    assert _kind(path, tmp_path) is DefinitionErrorKind.MALFORMED_XML


def test_missing_file_is_rejected(tmp_path: Path) -> None:
    assert _kind(tmp_path / "wix" / "main.wxs", tmp_path) is DefinitionErrorKind.MISSING_FILE


@pytest.mark.parametrize(
    "overrides",
    [
        {"product_id": ""},
        {"upgrade_code": ""},
        {"manufacturer": " "},
        {"components": '<Component Id="binary0" Guid="*"/>'},
    ],
)
def test_missing_fields_are_rejected(tmp_path: Path, overrides) -> None:
    path = _write(tmp_path, **overrides)

    assert _kind(path, tmp_path) is DefinitionErrorKind.MISSING_FIELD


@pytest.mark.parametrize("product_id", ["*", "PUT-GUID-HERE"])
def test_invalid_guids_are_rejected(tmp_path: Path, product_id: str) -> None:
    path = _write(tmp_path, product_id=product_id)

    assert _kind(path, tmp_path) is DefinitionErrorKind.INVALID_GUID


def test_unknown_component_reference_is_rejected(tmp_path: Path) -> None:
    features = '<Feature Id="Binaries" Title="Application"><ComponentRef Id="binary0"/><ComponentRef Id="ghost"/></Feature>'
    path = _write(tmp_path, features=features)

    assert _kind(path, tmp_path) is DefinitionErrorKind.UNKNOWN_REFERENCE


@pytest.mark.parametrize(
    "features",
    [
        '<Feature Id="Binaries" Title="Application"/>',
        '<Feature Id="A" Title="A"><ComponentRef Id="binary0"/></Feature>'
        '<Feature Id="B" Title="B"><ComponentRef Id="binary0"/></Feature>',
    ],
)
def test_components_must_belong_to_exactly_one_feature(tmp_path: Path, features: str) -> None:
    path = _write(tmp_path, features=features)

    assert _kind(path, tmp_path) is DefinitionErrorKind.ORPHAN_COMPONENT


def test_preprocessor_variables_are_expanded(tmp_path: Path) -> None:
    components = '<Component Id="binary0" Guid="*"><File Source="$(var.BinDir)\\demo.exe"/></Component>'
    path = _write(tmp_path, upgrade_code="$(var.UpgradeCode)", components=components)

    validate_existing(
        path,
        tmp_path,
        defines={"BinDir": str(tmp_path / "target" / "release"), "UpgradeCode": UPGRADE_CODE},
    )

    with pytest.raises(DefinitionError) as excinfo:
        validate_existing(path, tmp_path, defines={"UpgradeCode": UPGRADE_CODE})
    assert excinfo.value.kind is DefinitionErrorKind.MISSING_FIELD
    assert "BinDir" in str(excinfo.value)


def test_variable_pointing_outside_root_is_rejected(tmp_path: Path) -> None:
    root = tmp_path / "project"
    components = '<Component Id="binary0" Guid="*"><File Source="$(var.BinDir)/demo.exe"/></Component>'
    path = _write(root, components=components)

    assert (
        _kind(path, root, defines={"BinDir": str(tmp_path / "elsewhere")})
        is DefinitionErrorKind.PATH_OUTSIDE_ROOT
    )


def test_resolve_definition_scaffolds_when_missing(tmp_path: Path) -> None:
    metadata = ProjectMetadata(
        name="demo",
        version="1.0.0",
        authors=("Jane Doe",),
        binaries=(BinaryTarget(name="demo", path="target/release/demo.exe"),),
    )

    resolved = resolve_definition(metadata, tmp_path)

    assert resolved.scaffolded is True
    assert resolved.path == (tmp_path / "wix" / "main.wxs").resolve()

    again = resolve_definition(metadata, tmp_path)
    assert again.scaffolded is False


def test_resolve_definition_uses_input_relative_to_root(tmp_path: Path) -> None:
    custom = _write(tmp_path)
    moved = tmp_path / "installer" / "custom.wxs"
    moved.parent.mkdir()
    custom.rename(moved)
    metadata = ProjectMetadata(name="demo", version="1.0.0")

    resolved = resolve_definition(metadata, tmp_path, input_path="installer/custom.wxs")

    assert resolved.path == moved.resolve()
    assert resolved.scaffolded is False
    assert not (tmp_path / "wix" / "main.wxs").exists()


def test_unknown_component_group_reference_is_rejected(tmp_path: Path) -> None:
    features = (
        '<Feature Id="Binaries" Title="Application">'
        '<ComponentRef Id="binary0"/><ComponentGroupRef Id="Plugins"/></Feature>'
    )
    path = _write(tmp_path, features=features)

    with pytest.raises(DefinitionError) as excinfo:
        validate_existing(path, tmp_path)

    assert excinfo.value.kind is DefinitionErrorKind.UNKNOWN_REFERENCE
    assert "Plugins" in str(excinfo.value)


def test_scaffolded_identity_variables_must_be_defined(tmp_path: Path) -> None:
    metadata = ProjectMetadata(
        name="demo",
        version="1.0.0",
        binaries=(BinaryTarget(name="demo", path="target/release/demo.exe"),),
    )
    path = resolve_definition(metadata, tmp_path).path

    with pytest.raises(DefinitionError) as excinfo:
        validate_existing(path, tmp_path)

    assert excinfo.value.kind is DefinitionErrorKind.MISSING_FIELD
    assert "ProductId" in str(excinfo.value)
