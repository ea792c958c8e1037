"""Typed model of a WiX installer definition."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

# Fixed namespace for name-based product identifiers. Changing it changes every
# derived upgrade code and breaks upgrades of installed products.
WIXBUILD_NAMESPACE = uuid.UUID("7f0e4c5a-3b1d-5e4f-9a2c-6d8b0e1f2a3c")

_GUID_PATTERN = re.compile(
    r"^\{?[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}\}?$"
)


def is_guid(value: Optional[str]) -> bool:
    if not value:
        return False
    if not _GUID_PATTERN.match(value):
        return False
    return value.startswith("{") == value.endswith("}")


def format_guid(value: uuid.UUID) -> str:
    return str(value).upper()


def derive_upgrade_code(name: str) -> str:
    """Stable across every version of the product ``name``."""
    return format_guid(uuid.uuid5(WIXBUILD_NAMESPACE, f"upgrade:{name}"))


def derive_product_id(name: str, version: str) -> str:
    """Changes whenever ``version`` changes so the toolchain detects upgrades."""
    return format_guid(uuid.uuid5(WIXBUILD_NAMESPACE, f"product:{name}:{version}"))


@dataclass(frozen=True)
class Component:
    """A single file installed by the package."""

    id: str
    source: str
    install_path: str

    @property
    def file_name(self) -> str:
        return self.install_path.rsplit("/", 1)[-1]

    @property
    def install_dir(self) -> str:
        head, _, _ = self.install_path.rpartition("/")
        return head


@dataclass(frozen=True)
class Feature:
    """A node in the feature tree; references components by id."""

    id: str
    title: str
    level: int = 1
    description: Optional[str] = None
    component_refs: Tuple[str, ...] = ()
    children: Tuple["Feature", ...] = ()

    def walk(self) -> Iterator["Feature"]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class InstallerDefinition:
    """Product identity, file list and feature tree of an installer."""

    product_id: str
    upgrade_code: str
    name: str
    manufacturer: str
    version: str
    description: Optional[str] = None
    components: Tuple[Component, ...] = ()
    features: Tuple[Feature, ...] = ()
    language: str = "1033"
    install_dir_name: Optional[str] = None

    def iter_features(self) -> Iterator[Feature]:
        for feature in self.features:
            yield from feature.walk()

    def component_owners(self) -> Dict[str, list[str]]:
        """Map each referenced component id to the features referencing it."""
        owners: Dict[str, list[str]] = {}
        for feature in self.iter_features():
            for ref in feature.component_refs:
                owners.setdefault(ref, []).append(feature.id)
        return owners

    def component(self, component_id: str) -> Optional[Component]:
        for component in self.components:
            if component.id == component_id:
                return component
        return None


__all__ = [
    "Component",
    "Feature",
    "InstallerDefinition",
    "derive_product_id",
    "derive_upgrade_code",
    "format_guid",
    "is_guid",
]
