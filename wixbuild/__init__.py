"""Build Windows installers for Cargo projects with the WiX Toolset."""

from .errors import (
    ConfigError,
    DefinitionError,
    DefinitionErrorKind,
    MetadataError,
    MissingArtifactError,
    PipelineError,
    StageTimeoutError,
    ToolchainNotFoundError,
    WixBuildError,
)
from .metadata import extract_metadata
from .models import BinaryTarget, ProjectMetadata, SigningConfig
from .packager import BuildOptions, BuildOutcome, Packager

__all__ = [
    "BinaryTarget",
    "BuildOptions",
    "BuildOutcome",
    "ConfigError",
    "DefinitionError",
    "DefinitionErrorKind",
    "MetadataError",
    "MissingArtifactError",
    "Packager",
    "PipelineError",
    "ProjectMetadata",
    "SigningConfig",
    "StageTimeoutError",
    "ToolchainNotFoundError",
    "WixBuildError",
    "extract_metadata",
]
