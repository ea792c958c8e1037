"""Configuration loading for wixbuild (.wixbuild.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .errors import ConfigError
from .models import SigningConfig

CONFIG_FILE_NAME = ".wixbuild.yml"
ENV_SIGN_PASSWORD = "WIXBUILD_SIGN_PASSWORD"
ENV_TIMESTAMP_URL = "WIXBUILD_TIMESTAMP_URL"


@dataclass
class ProductConfig:
    """Overrides for the values derived from the project manifest."""

    name: Optional[str] = None
    description: Optional[str] = None
    manufacturer: Optional[str] = None
    binary_name: Optional[str] = None
    product_id: Optional[str] = None
    upgrade_code: Optional[str] = None


@dataclass
class ToolchainConfig:
    """Executable names and invocation settings for the WiX toolset."""

    compiler: str = "candle"
    linker: str = "light"
    signer: str = "signtool"
    timeout: Optional[float] = None
    extensions: List[str] = field(default_factory=lambda: ["WixUIExtension"])
    culture: str = "en-us"
    arch: str = "x64"


@dataclass
class SigningSettings:
    """Signing options; only used when signing is enabled."""

    enabled: bool = False
    certificate: Optional[str] = None
    timestamp_url: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    description: Optional[str] = None

    def to_signing_config(self) -> SigningConfig:
        return SigningConfig(
            certificate=self.certificate,
            timestamp_url=self.timestamp_url,
            password=self.password,
            description=self.description,
        )


@dataclass
class OutputConfig:
    """Where the definition is read from and the installer is written to."""

    directory: Optional[str] = None
    input: Optional[str] = None


@dataclass
class WixBuildConfig:
    """Represents the settings defined in .wixbuild.yml."""

    root: Path
    product: ProductConfig = field(default_factory=ProductConfig)
    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    signing: SigningSettings = field(default_factory=SigningSettings)
    output: OutputConfig = field(default_factory=OutputConfig)
    defines: Dict[str, str] = field(default_factory=dict)


def load_config(config_path: Path, *, env: Mapping[str, str] | None = None) -> WixBuildConfig:
    """Load configuration from disk, applying environment overrides."""
    environ = os.environ if env is None else env
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)
        if not isinstance(data, dict):
            raise ConfigError(f"{CONFIG_FILE_NAME} must contain a mapping at the root")

    product_data = _as_dict(data.get("product"))
    product = ProductConfig(
        name=_as_str(product_data.get("name")),
        description=_as_str(product_data.get("description")),
        manufacturer=_as_str(product_data.get("manufacturer")),
        binary_name=_as_str(product_data.get("binary_name")),
        product_id=_as_str(product_data.get("product_id")),
        upgrade_code=_as_str(product_data.get("upgrade_code")),
    )

    toolchain_data = _as_dict(data.get("toolchain"))
    toolchain = ToolchainConfig()
    if toolchain_data:
        toolchain.compiler = _as_str(toolchain_data.get("compiler")) or toolchain.compiler
        toolchain.linker = _as_str(toolchain_data.get("linker")) or toolchain.linker
        toolchain.signer = _as_str(toolchain_data.get("signer")) or toolchain.signer
        toolchain.timeout = _as_float(toolchain_data.get("timeout"))
        if "extensions" in toolchain_data:
            toolchain.extensions = _as_str_list(toolchain_data.get("extensions"))
        toolchain.culture = _as_str(toolchain_data.get("culture")) or toolchain.culture
        toolchain.arch = _as_str(toolchain_data.get("arch")) or toolchain.arch
    if toolchain.timeout is not None and toolchain.timeout <= 0:
        raise ConfigError("toolchain.timeout must be a positive number of seconds")

    sign_data = _as_dict(data.get("sign"))
    signing = SigningSettings(
        enabled=_as_bool(sign_data.get("enabled")) or False,
        certificate=_as_str(sign_data.get("certificate")),
        timestamp_url=_as_str(sign_data.get("timestamp_url")),
        password=_as_str(sign_data.get("password")),
        description=_as_str(sign_data.get("description")),
    )
    env_password = environ.get(ENV_SIGN_PASSWORD)
    if env_password:
        signing.password = env_password
    env_timestamp = environ.get(ENV_TIMESTAMP_URL)
    if env_timestamp:
        signing.timestamp_url = env_timestamp

    output_data = _as_dict(data.get("output"))
    output = OutputConfig(
        directory=_as_str(output_data.get("directory")),
        input=_as_str(output_data.get("input")),
    )

    defines = {
        str(key): str(value)
        for key, value in _as_dict(data.get("defines")).items()
        if _as_str(value) is not None
    }

    return WixBuildConfig(
        root=root,
        product=product,
        toolchain=toolchain,
        signing=signing,
        output=output,
        defines=defines,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILE_NAME).resolve()
    if config_path.name != CONFIG_FILE_NAME:
        return (config_path.parent / CONFIG_FILE_NAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return {} if loaded is None else loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []
