"""Resolve the logical toolchain names to executables."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional

from ..config import ToolchainConfig
from ..errors import ToolchainNotFoundError
from ..logging import get_logger

WIX_ENV = "WIX"
CARGO = "cargo"

Which = Callable[..., Optional[str]]

logger = get_logger("pipeline.toolchain")


@dataclass(frozen=True)
class Toolchain:
    """Executables handed to the orchestrator; it never searches PATH itself."""

    compiler: str
    linker: str
    signer: Optional[str] = None
    cargo: Optional[str] = None


def search_path(env: Mapping[str, str]) -> str:
    """PATH with the WiX installation's bin folder first when WIX is set."""
    entries = []
    wix_home = env.get(WIX_ENV)
    if wix_home:
        entries.append(str(Path(wix_home) / "bin"))
    path = env.get("PATH", "")
    if path:
        entries.append(path)
    return os.pathsep.join(entries)


def resolve_executable(name: str, *, path: str, which: Which = shutil.which) -> str:
    candidate = Path(name)
    if candidate.is_absolute() or len(candidate.parts) > 1:
        if candidate.is_file():
            return str(candidate)
        raise ToolchainNotFoundError(name, f"Executable '{name}' does not exist")
    resolved = which(name, path=path)
    if not resolved:
        raise ToolchainNotFoundError(
            name,
            f"Unable to locate '{name}' on the search path. Install the WiX Toolset "
            f"or set the {WIX_ENV} environment variable.",
        )
    logger.debug("Resolved %s to %s", name, resolved)
    return resolved


def resolve_toolchain(
    config: ToolchainConfig,
    *,
    sign: bool = False,
    build: bool = False,
    env: Mapping[str, str] | None = None,
    which: Which = shutil.which,
) -> Toolchain:
    """Resolve every executable the requested run will need."""
    path = search_path(os.environ if env is None else env)
    compiler = resolve_executable(config.compiler, path=path, which=which)
    linker = resolve_executable(config.linker, path=path, which=which)
    signer = resolve_executable(config.signer, path=path, which=which) if sign else None
    cargo = resolve_executable(CARGO, path=path, which=which) if build else None
    return Toolchain(compiler=compiler, linker=linker, signer=signer, cargo=cargo)


__all__ = ["Toolchain", "resolve_executable", "resolve_toolchain", "search_path"]
