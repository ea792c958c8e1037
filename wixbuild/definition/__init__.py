"""Installer-definition model, rendering and validation."""

from .model import (
    Component,
    Feature,
    InstallerDefinition,
    derive_product_id,
    derive_upgrade_code,
    is_guid,
)
from .renderer import (
    ResolvedDefinition,
    ScaffoldResult,
    build_definition,
    default_definition_path,
    identity_defines,
    resolve_definition,
    scaffold,
    validate_existing,
)
from .template import render_template, template_defines
from .xml import parse_definition, to_xml, write_definition

__all__ = [
    "Component",
    "Feature",
    "InstallerDefinition",
    "ResolvedDefinition",
    "ScaffoldResult",
    "build_definition",
    "default_definition_path",
    "derive_product_id",
    "derive_upgrade_code",
    "identity_defines",
    "is_guid",
    "parse_definition",
    "render_template",
    "resolve_definition",
    "scaffold",
    "template_defines",
    "to_xml",
    "validate_existing",
    "write_definition",
]
