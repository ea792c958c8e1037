"""Build pipeline: stage runner, orchestrator and artifact checks."""

from .artifacts import ArtifactLocator, installer_name, output_dir
from .orchestrator import BuildOrchestrator, BuildRequest
from .runner import StageRunner
from .stages import BuildState, PipelineResult, PipelineStage, RunReport, StageName
from .toolchain import Toolchain, resolve_toolchain

__all__ = [
    "ArtifactLocator",
    "BuildOrchestrator",
    "BuildRequest",
    "BuildState",
    "PipelineResult",
    "PipelineStage",
    "RunReport",
    "StageName",
    "StageRunner",
    "Toolchain",
    "installer_name",
    "output_dir",
    "resolve_toolchain",
]
