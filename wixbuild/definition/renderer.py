"""Scaffold new installer definitions and validate existing ones."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path, PureWindowsPath
from typing import Dict, List, Mapping, Set

from ..errors import DefinitionError, DefinitionErrorKind
from ..logging import get_logger
from ..models import ProjectMetadata
from .model import (
    Component,
    Feature,
    InstallerDefinition,
    derive_product_id,
    derive_upgrade_code,
    is_guid,
)
from .xml import parse_definition, write_definition

DEFINITION_DIR = "wix"
DEFINITION_FILE = "main.wxs"
DEFAULT_FEATURE_ID = "Binaries"
INSTALL_BIN_DIR = "bin"
PRODUCT_ID_VARIABLE = "ProductId"
VERSION_VARIABLE = "Version"

_VARIABLE_PATTERN = re.compile(r"\$\((?:var\.)?([A-Za-z_][A-Za-z0-9_.]*)\)")

logger = get_logger("definition")


@dataclass
class ScaffoldResult:
    """Outcome of a scaffold call."""

    path: Path
    definition: InstallerDefinition
    written: bool


@dataclass
class ResolvedDefinition:
    """A validated definition file ready for the compile stage."""

    path: Path
    definition: InstallerDefinition
    scaffolded: bool


def default_definition_path(root: Path) -> Path:
    return root / DEFINITION_DIR / DEFINITION_FILE


def identity_defines(metadata: ProjectMetadata, *, product_id: str | None = None) -> Dict[str, str]:
    """Values for the per-version variables a scaffolded definition references."""
    return {
        PRODUCT_ID_VARIABLE: product_id or derive_product_id(metadata.name, metadata.version),
        VERSION_VARIABLE: metadata.msi_version,
    }


def build_definition(
    metadata: ProjectMetadata,
    *,
    upgrade_code: str | None = None,
) -> InstallerDefinition:
    """Synthesize the default definition for a project.

    The product id and version are written as preprocessor variables so a
    version bump in the manifest reaches the installer without re-scaffolding.
    """
    components = tuple(
        Component(
            id=f"binary{index}",
            source=binary.path,
            install_path=f"{INSTALL_BIN_DIR}/{binary.file_name}",
        )
        for index, binary in enumerate(metadata.binaries)
    )
    feature = Feature(
        id=DEFAULT_FEATURE_ID,
        title="Application",
        level=1,
        description=f"Installs the {metadata.name} executables.",
        component_refs=tuple(component.id for component in components),
    )
    return InstallerDefinition(
        product_id=f"$(var.{PRODUCT_ID_VARIABLE})",
        upgrade_code=upgrade_code or derive_upgrade_code(metadata.name),
        name=metadata.name,
        manufacturer=metadata.manufacturer,
        version=f"$(var.{VERSION_VARIABLE})",
        description=metadata.description,
        components=components,
        features=(feature,),
    )


def scaffold(
    metadata: ProjectMetadata,
    root: Path,
    *,
    force: bool = False,
    upgrade_code: str | None = None,
) -> ScaffoldResult:
    """Write ``wix/main.wxs`` unless it already exists (or ``force`` is set)."""
    path = default_definition_path(root)
    definition = build_definition(metadata, upgrade_code=upgrade_code)
    if path.exists() and not force:
        logger.info("Installer definition already exists at %s; skipping scaffold", path)
        return ScaffoldResult(path=path, definition=definition, written=False)
    if path.exists():
        logger.warning("Overwriting existing installer definition at %s", path)
    write_definition(definition, path)
    logger.info("Wrote installer definition to %s", path)
    return ScaffoldResult(path=path, definition=definition, written=True)


def validate_existing(
    path: Path,
    root: Path,
    *,
    defines: Mapping[str, str] | None = None,
) -> InstallerDefinition:
    """Parse ``path`` and check identity, component and feature invariants."""
    if not path.is_file():
        raise DefinitionError(DefinitionErrorKind.MISSING_FILE, f"{path} does not exist")
    variables = dict(defines or {})
    definition = parse_definition(path)
    resolved_root = root.resolve()

    for label, value in (("Product/@Id", definition.product_id), ("Product/@UpgradeCode", definition.upgrade_code)):
        expanded = _expand(value, variables, field_name=label)
        if not expanded:
            raise DefinitionError(DefinitionErrorKind.MISSING_FIELD, f"{path}: {label} is missing")
        if not is_guid(expanded):
            raise DefinitionError(
                DefinitionErrorKind.INVALID_GUID, f"{path}: {label} '{expanded}' is not a GUID"
            )
    for label, value in (
        ("Product/@Name", definition.name),
        ("Product/@Manufacturer", definition.manufacturer),
        ("Product/@Version", definition.version),
    ):
        if not _expand(value, variables, field_name=label).strip():
            raise DefinitionError(DefinitionErrorKind.MISSING_FIELD, f"{path}: {label} is missing")

    seen: Set[str] = set()
    for component in definition.components:
        if not component.id:
            raise DefinitionError(
                DefinitionErrorKind.MISSING_FIELD, f"{path}: a Component is missing its Id"
            )
        if component.id in seen:
            raise DefinitionError(
                DefinitionErrorKind.DUPLICATE_ID, f"{path}: component id '{component.id}' is declared twice"
            )
        seen.add(component.id)
        if not component.source:
            raise DefinitionError(
                DefinitionErrorKind.MISSING_FIELD,
                f"{path}: component '{component.id}' has no File/@Source",
            )
        source = _expand(component.source, variables, field_name=f"component '{component.id}' source")
        if not _is_under_root(source, resolved_root):
            raise DefinitionError(
                DefinitionErrorKind.PATH_OUTSIDE_ROOT,
                f"{path}: component '{component.id}' source '{source}' is outside {resolved_root}",
            )

    _check_features(definition, path)
    logger.debug(
        "Validated %s: %d components, %d features",
        path,
        len(definition.components),
        sum(1 for _ in definition.iter_features()),
    )
    return definition


def resolve_definition(
    metadata: ProjectMetadata,
    root: Path,
    *,
    input_path: Path | str | None = None,
    product_id: str | None = None,
    upgrade_code: str | None = None,
    defines: Mapping[str, str] | None = None,
) -> ResolvedDefinition:
    """Return the validated definition file the compile stage should read.

    ``defines`` are layered over the product id and version derived from
    ``metadata`` (or the pinned ``product_id``).
    """
    variables = identity_defines(metadata, product_id=product_id)
    variables.update(defines or {})
    scaffolded = False
    if input_path is not None:
        path = Path(input_path)
        if not path.is_absolute():
            path = root / path
    else:
        result = scaffold(metadata, root, upgrade_code=upgrade_code)
        path = result.path
        scaffolded = result.written
    definition = validate_existing(path, root, defines=variables)
    return ResolvedDefinition(path=path.resolve(), definition=definition, scaffolded=scaffolded)


def _check_features(definition: InstallerDefinition, path: Path) -> None:
    feature_ids: Set[str] = set()
    for feature in definition.iter_features():
        if not feature.id:
            raise DefinitionError(DefinitionErrorKind.MISSING_FIELD, f"{path}: a Feature is missing its Id")
        if feature.id in feature_ids:
            raise DefinitionError(
                DefinitionErrorKind.DUPLICATE_ID, f"{path}: feature id '{feature.id}' is declared twice"
            )
        feature_ids.add(feature.id)

    owners = definition.component_owners()
    component_ids = {component.id for component in definition.components}
    unknown = sorted(ref for ref in owners if ref not in component_ids)
    if unknown:
        raise DefinitionError(
            DefinitionErrorKind.UNKNOWN_REFERENCE,
            f"{path}: features reference undeclared components: {', '.join(unknown)}",
        )
    problems: List[str] = []
    for component in definition.components:
        features = owners.get(component.id, [])
        if len(features) != 1:
            where = ", ".join(features) if features else "no feature"
            problems.append(f"'{component.id}' ({where})")
    if problems:
        raise DefinitionError(
            DefinitionErrorKind.ORPHAN_COMPONENT,
            f"{path}: every component must belong to exactly one feature: {'; '.join(problems)}",
        )


def _expand(value: str, variables: Dict[str, str], *, field_name: str) -> str:
    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in variables:
            raise DefinitionError(
                DefinitionErrorKind.MISSING_FIELD,
                f"{field_name} uses undefined preprocessor variable '{key}'",
            )
        return variables[key]

    return _VARIABLE_PATTERN.sub(_replace, value)


def _is_under_root(source: str, root: Path) -> bool:
    windows = PureWindowsPath(source)
    if windows.drive and os.name != "nt":
        return False
    candidate = Path(source.replace("\\", "/"))
    if not candidate.is_absolute():
        candidate = root / candidate
    return candidate.resolve().is_relative_to(root)


__all__ = [
    "DEFINITION_DIR",
    "DEFINITION_FILE",
    "ResolvedDefinition",
    "ScaffoldResult",
    "build_definition",
    "default_definition_path",
    "identity_defines",
    "resolve_definition",
    "scaffold",
    "validate_existing",
]
