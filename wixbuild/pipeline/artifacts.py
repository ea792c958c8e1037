"""Compute and verify the installer output path."""

from __future__ import annotations

from pathlib import Path

from ..errors import MissingArtifactError
from ..logging import get_logger
from ..models import ProjectMetadata

DEFAULT_OUTPUT_DIR = Path("target") / "wix"
INSTALLER_EXTENSION = ".msi"


def installer_name(metadata: ProjectMetadata) -> str:
    return f"{metadata.name}-{metadata.version}{INSTALLER_EXTENSION}"


def output_dir(root: Path, configured: Path | str | None = None) -> Path:
    """Absolute output directory; relative settings are taken from the root."""
    directory = Path(configured) if configured else DEFAULT_OUTPUT_DIR
    if not directory.is_absolute():
        directory = root / directory
    return directory.resolve()


class ArtifactLocator:
    """Confirms the linker really produced the installer it reported."""

    def __init__(self) -> None:
        self.logger = get_logger("pipeline.artifacts")

    def locate(self, declared: Path) -> Path:
        path = declared.resolve()
        if not path.is_file():
            raise MissingArtifactError(
                f"The linker reported success but no installer exists at {path}"
            )
        if path.stat().st_size == 0:
            raise MissingArtifactError(f"The installer at {path} is empty")
        self.logger.info("Installer available at %s", path)
        return path


__all__ = ["ArtifactLocator", "DEFAULT_OUTPUT_DIR", "installer_name", "output_dir"]
