"""Render the annotated WiX Source template authors can start from."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..metadata import RELEASE_DIR
from ..models import BinaryTarget, ProjectMetadata
from .model import derive_upgrade_code
from .renderer import identity_defines

TEMPLATE_NAME = "main.wxs.j2"
TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
TARGET_BIN_DIR_VARIABLE = "CargoTargetBinDir"


def _create_env(templates_dir: Path) -> Environment:
    return Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def _binary_source(binary: BinaryTarget) -> str:
    # Release builds follow the target directory handed to the compiler;
    # anything else keeps the path declared in the manifest.
    if binary.path == f"{RELEASE_DIR}/{binary.file_name}":
        return f"$(var.{TARGET_BIN_DIR_VARIABLE})\\{binary.file_name}"
    return binary.path


def _binary_entries(metadata: ProjectMetadata) -> List[Dict[str, str]]:
    return [
        {"file_name": binary.file_name, "source": _binary_source(binary)}
        for binary in metadata.binaries
    ]


def render_template(metadata: ProjectMetadata, *, templates_dir: Path | None = None) -> str:
    """Return WiX Source text using preprocessor variables for manifest values."""
    env = _create_env(templates_dir or TEMPLATES_DIR)
    template = env.get_template(TEMPLATE_NAME)
    return template.render(
        name=metadata.name,
        upgrade_code=derive_upgrade_code(metadata.name),
        binaries=_binary_entries(metadata),
    )


def template_defines(
    metadata: ProjectMetadata,
    *,
    target_bin_dir: str,
    product_id: str | None = None,
) -> dict[str, str]:
    """Preprocessor variables the template expects on the compiler command line."""
    defines = {
        "ProductName": metadata.name,
        "Manufacturer": metadata.manufacturer,
        "Description": metadata.description or metadata.name,
        TARGET_BIN_DIR_VARIABLE: target_bin_dir,
    }
    defines.update(identity_defines(metadata, product_id=product_id))
    return defines


__all__ = ["render_template", "template_defines"]
