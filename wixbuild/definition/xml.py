"""Conversion between InstallerDefinition and WiX Source XML."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import DefinitionError, DefinitionErrorKind
from .model import Component, Feature, InstallerDefinition

WIX_NAMESPACE = "http://schemas.microsoft.com/wix/2006/wi"
APPLICATION_FOLDER = "APPLICATIONFOLDER"

ET.register_namespace("", WIX_NAMESPACE)

_ID_UNSAFE = re.compile(r"[^A-Za-z0-9_.]")


def _tag(name: str) -> str:
    return f"{{{WIX_NAMESPACE}}}{name}"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def to_element(definition: InstallerDefinition) -> ET.Element:
    """Build the WiX element tree for a definition."""
    root = ET.Element(_tag("Wix"))
    product = ET.SubElement(
        root,
        _tag("Product"),
        {
            "Id": definition.product_id,
            "UpgradeCode": definition.upgrade_code,
            "Name": definition.name,
            "Manufacturer": definition.manufacturer,
            "Version": definition.version,
            "Language": definition.language,
            "Codepage": "1252",
        },
    )
    package_attrs = {
        "Id": "*",
        "Keywords": "Installer",
        "InstallerVersion": "450",
        "Languages": definition.language,
        "Compressed": "yes",
        "InstallScope": "perMachine",
        "SummaryCodepage": "1252",
        "Manufacturer": definition.manufacturer,
    }
    if definition.description:
        package_attrs["Description"] = definition.description
    ET.SubElement(product, _tag("Package"), package_attrs)
    ET.SubElement(
        product,
        _tag("MajorUpgrade"),
        {
            "Schedule": "afterInstallInitialize",
            "DowngradeErrorMessage": "A newer version of [ProductName] is already installed. Setup will now exit.",
        },
    )
    ET.SubElement(product, _tag("Media"), {"Id": "1", "Cabinet": "media1.cab", "EmbedCab": "yes"})

    target = ET.SubElement(product, _tag("Directory"), {"Id": "TARGETDIR", "Name": "SourceDir"})
    program_files = ET.SubElement(target, _tag("Directory"), {"Id": "ProgramFiles64Folder"})
    app_folder = ET.SubElement(
        program_files,
        _tag("Directory"),
        {"Id": APPLICATION_FOLDER, "Name": definition.install_dir_name or definition.name},
    )
    directories: Dict[str, ET.Element] = {"": app_folder}
    for component in definition.components:
        parent = _ensure_directory(directories, component.install_dir)
        element = ET.SubElement(
            parent,
            _tag("Component"),
            {"Id": component.id, "Guid": "*", "Win64": "yes"},
        )
        ET.SubElement(
            element,
            _tag("File"),
            {
                "Id": f"{component.id}File",
                "Name": component.file_name,
                "DiskId": "1",
                "Source": component.source,
                "KeyPath": "yes",
            },
        )

    for feature in definition.features:
        _append_feature(product, feature)

    ET.indent(root, space="    ")
    return root


def to_xml(definition: InstallerDefinition) -> str:
    """Serialize a definition to WiX Source text."""
    body = ET.tostring(to_element(definition), encoding="unicode")
    return f"<?xml version='1.0' encoding='utf-8'?>\n{body}\n"


def write_definition(definition: InstallerDefinition, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_xml(definition), encoding="utf-8")


def _ensure_directory(directories: Dict[str, ET.Element], relative: str) -> ET.Element:
    if relative in directories:
        return directories[relative]
    head, _, name = relative.rpartition("/")
    parent = _ensure_directory(directories, head)
    element = ET.SubElement(
        parent,
        _tag("Directory"),
        {"Id": "Dir_" + _ID_UNSAFE.sub("_", relative), "Name": name},
    )
    directories[relative] = element
    return element


def _append_feature(parent: ET.Element, feature: Feature) -> None:
    attrs = {"Id": feature.id, "Title": feature.title, "Level": str(feature.level)}
    if feature.description:
        attrs["Description"] = feature.description
    element = ET.SubElement(parent, _tag("Feature"), attrs)
    for ref in feature.component_refs:
        ET.SubElement(element, _tag("ComponentRef"), {"Id": ref})
    for child in feature.children:
        _append_feature(element, child)


# ----------------------------------------------------------------------
# Parsing


def parse_definition(path: Path) -> InstallerDefinition:
    """Read a WiX Source file into the typed model without semantic checks."""
    try:
        tree = ET.parse(path)
    except ET.ParseError as exc:
        raise DefinitionError(DefinitionErrorKind.MALFORMED_XML, f"{path}: {exc}") from exc
    return from_element(tree.getroot(), source=str(path))


def from_element(root: ET.Element, *, source: str = "<memory>") -> InstallerDefinition:
    if _local(root.tag) != "Wix":
        raise DefinitionError(
            DefinitionErrorKind.MALFORMED_XML,
            f"{source}: expected a <Wix> root element, found <{_local(root.tag)}>",
        )
    products = [child for child in root if _local(child.tag) == "Product"]
    if len(products) != 1:
        raise DefinitionError(
            DefinitionErrorKind.MALFORMED_XML,
            f"{source}: expected exactly one <Product> element, found {len(products)}",
        )
    product = products[0]

    components: List[Component] = []
    groups: Dict[str, List[str]] = {}
    install_dir_name: Optional[str] = None
    fragments = [child for child in root if _local(child.tag) == "Fragment"]
    scopes = [element for scope in (product, *fragments) for element in _walk_directories(scope, ())]
    for element, path_parts in scopes:
        tag = _local(element.tag)
        if tag == "Directory" and element.get("Id") == APPLICATION_FOLDER:
            install_dir_name = element.get("Name")
        elif tag == "Component":
            components.append(_component_from(element, path_parts))
        elif tag == "ComponentGroup":
            group_id = element.get("Id", "")
            group_components = [
                _component_from(child, path_parts)
                for child in element
                if _local(child.tag) == "Component"
            ]
            components.extend(group_components)
            groups.setdefault(group_id, []).extend(c.id for c in group_components)

    features = tuple(
        _feature_from(element, groups, source) for element in product if _local(element.tag) == "Feature"
    )

    package = next((child for child in product if _local(child.tag) == "Package"), None)
    description = package.get("Description") if package is not None else None

    return InstallerDefinition(
        product_id=product.get("Id", ""),
        upgrade_code=product.get("UpgradeCode", ""),
        name=product.get("Name", ""),
        manufacturer=product.get("Manufacturer", ""),
        version=product.get("Version", ""),
        description=description,
        components=tuple(components),
        features=features,
        language=product.get("Language", "1033"),
        install_dir_name=install_dir_name,
    )


def _walk_directories(
    element: ET.Element, path_parts: Tuple[str, ...]
) -> Iterable[Tuple[ET.Element, Tuple[str, ...]]]:
    for child in element:
        tag = _local(child.tag)
        if tag in {"Component", "ComponentGroup"}:
            yield child, path_parts
            if tag == "ComponentGroup":
                continue
        elif tag == "Directory":
            yield child, path_parts
            yield from _walk_directories(child, _directory_parts(child, path_parts))
        elif tag in {"DirectoryRef", "Fragment"}:
            yield from _walk_directories(child, path_parts)


def _directory_parts(element: ET.Element, path_parts: Tuple[str, ...]) -> Tuple[str, ...]:
    directory_id = element.get("Id", "")
    if directory_id == APPLICATION_FOLDER:
        return ()
    if directory_id == "TARGETDIR" or directory_id.endswith("Folder"):
        return path_parts
    name = element.get("Name")
    return path_parts + (name,) if name else path_parts


def _component_from(element: ET.Element, path_parts: Tuple[str, ...]) -> Component:
    file_element = next((child for child in element if _local(child.tag) == "File"), None)
    source = ""
    file_name = ""
    if file_element is not None:
        source = file_element.get("Source", "")
        file_name = file_element.get("Name") or _basename(source)
    install_path = "/".join((*path_parts, file_name)) if file_name else "/".join(path_parts)
    return Component(id=element.get("Id", ""), source=source, install_path=install_path)


def _feature_from(element: ET.Element, groups: Dict[str, List[str]], source: str) -> Feature:
    refs: List[str] = []
    children: List[Feature] = []
    for child in element:
        tag = _local(child.tag)
        if tag == "ComponentRef":
            refs.append(child.get("Id", ""))
        elif tag == "ComponentGroupRef":
            group_id = child.get("Id", "")
            if group_id not in groups:
                feature_id = element.get("Id", "")
                raise DefinitionError(
                    DefinitionErrorKind.UNKNOWN_REFERENCE,
                    f"{source}: feature '{feature_id}' references undeclared component group '{group_id}'",
                )
            refs.extend(groups[group_id])
        elif tag == "Feature":
            children.append(_feature_from(child, groups, source))
    level = element.get("Level", "1")
    return Feature(
        id=element.get("Id", ""),
        title=element.get("Title", ""),
        level=int(level) if level.isdigit() else 1,
        description=element.get("Description"),
        component_refs=tuple(refs),
        children=tuple(children),
    )


def _basename(source: str) -> str:
    return re.split(r"[\\/]", source)[-1]


__all__ = [
    "WIX_NAMESPACE",
    "from_element",
    "parse_definition",
    "to_element",
    "to_xml",
    "write_definition",
]
