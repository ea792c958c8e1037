"""Normalize parsed project manifests into ProjectMetadata."""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import MetadataError
from .models import BinaryTarget, ProjectMetadata

MANIFEST_FILE_NAME = "Cargo.toml"
RELEASE_DIR = "target/release"

_SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)(?:\.(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


@dataclass
class MetadataOverrides:
    """Values supplied on the command line or in config that beat the manifest."""

    product_name: Optional[str] = None
    description: Optional[str] = None
    manufacturer: Optional[str] = None
    binary_name: Optional[str] = None


def load_cargo_manifest(root: Path) -> Dict[str, Any]:
    """Read and parse ``Cargo.toml`` from the project root."""
    path = root / MANIFEST_FILE_NAME
    if not path.exists():
        raise MetadataError(f"No {MANIFEST_FILE_NAME} found in {root}")
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise MetadataError(f"Failed to parse {path}: {exc}") from exc


def is_semver(version: str) -> bool:
    return bool(_SEMVER_PATTERN.match(version))


def extract_metadata(
    manifest: Mapping[str, Any],
    *,
    overrides: MetadataOverrides | None = None,
) -> ProjectMetadata:
    """Return canonical metadata for a Cargo-shaped or flat manifest mapping."""
    overrides = overrides or MetadataOverrides()
    package = manifest.get("package")
    table: Mapping[str, Any] = package if isinstance(package, Mapping) else manifest

    name = _clean(table.get("name"))
    if not name:
        raise MetadataError("Manifest is missing the package 'name' field")

    raw_version = table.get("version")
    if not isinstance(raw_version, str) or not raw_version.strip():
        raise MetadataError(f"Manifest for '{name}' is missing the 'version' field")
    version = raw_version.strip()
    if not is_semver(version):
        raise MetadataError(f"Version '{version}' of '{name}' is not a semantic version")

    authors = tuple(
        author.strip()
        for author in _as_sequence(table.get("authors"))
        if isinstance(author, str) and author.strip()
    )

    binaries = _collect_binaries(manifest, name)
    if overrides.binary_name:
        first = binaries[0]
        renamed = BinaryTarget(
            name=overrides.binary_name,
            path=_release_path(overrides.binary_name) if first.path == _release_path(first.name) else first.path,
        )
        binaries = [renamed, *binaries[1:]]

    return ProjectMetadata(
        name=overrides.product_name or name,
        version=version,
        authors=authors,
        description=overrides.description or _clean(table.get("description")),
        license=_clean(table.get("license")),
        binaries=tuple(binaries),
        manufacturer_override=overrides.manufacturer,
    )


def _collect_binaries(manifest: Mapping[str, Any], package_name: str) -> List[BinaryTarget]:
    explicit = manifest.get("binaries")
    if explicit is not None:
        binaries = [_explicit_binary(entry) for entry in _as_sequence(explicit)]
        if not binaries:
            raise MetadataError(f"Manifest for '{package_name}' declares no binaries")
        return binaries

    bin_tables = _as_sequence(manifest.get("bin"))
    names = []
    for entry in bin_tables:
        if not isinstance(entry, Mapping):
            raise MetadataError("Each [[bin]] entry must be a table")
        bin_name = _clean(entry.get("name"))
        if not bin_name:
            raise MetadataError("A [[bin]] entry is missing its 'name' field")
        names.append(bin_name)
    if not names:
        names = [package_name]
    return [BinaryTarget(name=bin_name, path=_release_path(bin_name)) for bin_name in names]


def _explicit_binary(entry: Any) -> BinaryTarget:
    if isinstance(entry, Mapping):
        bin_name = _clean(entry.get("name"))
        path = _clean(entry.get("path"))
    elif isinstance(entry, Sequence) and not isinstance(entry, str) and len(entry) == 2:
        bin_name, path = _clean(entry[0]), _clean(entry[1])
    else:
        raise MetadataError(f"Malformed binary entry: {entry!r}")
    if not bin_name:
        raise MetadataError(f"Binary entry {entry!r} is missing a name")
    if not path:
        path = _release_path(bin_name)
    return BinaryTarget(name=bin_name, path=path.replace("\\", "/"))


def _release_path(bin_name: str) -> str:
    return f"{RELEASE_DIR}/{bin_name}.exe"


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _as_sequence(value: Any) -> Sequence[Any]:
    if isinstance(value, (list, tuple)):
        return value
    return ()


__all__ = [
    "MANIFEST_FILE_NAME",
    "MetadataOverrides",
    "extract_metadata",
    "is_semver",
    "load_cargo_manifest",
]
