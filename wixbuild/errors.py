"""Typed failures raised by wixbuild and the exit codes they map to."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .pipeline.stages import RunReport, StageName


class WixBuildError(RuntimeError):
    """Base class for every failure surfaced to the CLI."""

    exit_code = 1
    # Set when the failure ended a pipeline run.
    report: "RunReport | None" = None


class ConfigError(WixBuildError):
    """Raised when the configuration file cannot be parsed."""

    exit_code = 2


class MetadataError(WixBuildError):
    """Raised when required manifest fields are missing or malformed."""

    exit_code = 3


class DefinitionErrorKind(str, Enum):
    """Reasons an installer definition is rejected."""

    MISSING_FIELD = "MissingField"
    DUPLICATE_ID = "DuplicateId"
    PATH_OUTSIDE_ROOT = "PathOutsideRoot"
    MALFORMED_XML = "MalformedXml"
    UNKNOWN_REFERENCE = "UnknownReference"
    ORPHAN_COMPONENT = "OrphanComponent"
    INVALID_GUID = "InvalidGuid"
    MISSING_FILE = "MissingFile"


class DefinitionError(WixBuildError):
    """Raised when an installer definition fails validation."""

    exit_code = 4

    def __init__(self, kind: DefinitionErrorKind, message: str) -> None:
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
        self.detail = message


class ToolchainNotFoundError(WixBuildError):
    """Raised when a toolchain executable cannot be resolved."""

    exit_code = 5

    def __init__(self, tool: str, message: str | None = None) -> None:
        super().__init__(message or f"Unable to locate the '{tool}' executable")
        self.tool = tool


_STAGE_EXIT_CODES: Dict[str, int] = {
    "build": 10,
    "compile": 11,
    "link": 12,
    "sign": 13,
}


class PipelineError(WixBuildError):
    """Raised when a pipeline stage fails; carries the captured diagnostics."""

    exit_code = 1

    def __init__(
        self,
        stage: "StageName",
        message: str,
        *,
        exit_status: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
        report: "RunReport | None" = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.exit_status = exit_status
        self.stdout = stdout
        self.stderr = stderr
        self.report = report
        self.exit_code = _STAGE_EXIT_CODES.get(stage.value, PipelineError.exit_code)

    @property
    def state(self) -> str:
        """Name of the orchestrator state the failure originated from."""
        return self.stage.state_label

    def diagnostics(self) -> str:
        """Return the captured output verbatim, stderr first."""
        parts = [part for part in (self.stderr.strip(), self.stdout.strip()) if part]
        return "\n".join(parts)


class StageTimeoutError(PipelineError):
    """Raised when a stage exceeds its allotted time and is terminated."""

    def __init__(
        self,
        stage: "StageName",
        timeout: float,
        *,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(
            stage,
            f"{stage.state_label} timed out after {timeout:g}s",
            stdout=stdout,
            stderr=stderr,
        )
        self.timeout = timeout
        self.exit_code = 14


class MissingArtifactError(WixBuildError):
    """Raised when the linker reported success but produced no installer."""

    exit_code = 15


__all__ = [
    "ConfigError",
    "DefinitionError",
    "DefinitionErrorKind",
    "MetadataError",
    "MissingArtifactError",
    "PipelineError",
    "StageTimeoutError",
    "ToolchainNotFoundError",
    "WixBuildError",
]
