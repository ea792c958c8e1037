"""Stage descriptions, results and the run report shared by the pipeline."""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

_REDACTED = "********"


class StageName(str, Enum):
    """External tool invocations the pipeline knows about."""

    BUILD = "build"
    COMPILE = "compile"
    LINK = "link"
    SIGN = "sign"

    @property
    def state_label(self) -> str:
        return _STATE_LABELS[self]


_STATE_LABELS: Dict[StageName, str] = {
    StageName.BUILD: "Building",
    StageName.COMPILE: "Compiling",
    StageName.LINK: "Linking",
    StageName.SIGN: "Signing",
}


class BuildState(str, Enum):
    """States of the build orchestrator."""

    INIT = "Init"
    COMPILING = "Compiling"
    LINKING = "Linking"
    SIGNING = "Signing"
    DONE = "Done"
    FAILED = "Failed"

    @classmethod
    def for_stage(cls, stage: StageName) -> "BuildState":
        return cls(stage.state_label)


@dataclass(frozen=True)
class PipelineStage:
    """One external tool invocation."""

    name: StageName
    executable: str
    args: Tuple[str, ...]
    cwd: Path
    inputs: Tuple[Path, ...] = ()
    output: Optional[Path] = None
    timeout: Optional[float] = None
    redact: Tuple[str, ...] = field(default=(), repr=False)

    def command(self) -> List[str]:
        return [self.executable, *self.args]

    def display_command(self) -> str:
        """Command line for logs with secret argument values masked."""
        hidden = {value for value in self.redact if value}
        return shlex.join(_REDACTED if part in hidden else part for part in self.command())


@dataclass
class PipelineResult:
    """Raw outcome of a stage; the runner does not interpret the status."""

    stage: StageName
    exit_status: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.exit_status == 0


@dataclass
class RunReport:
    """Accumulated results and state transitions of one pipeline run."""

    states: List[BuildState] = field(default_factory=lambda: [BuildState.INIT])
    results: List[PipelineResult] = field(default_factory=list)
    artifact: Optional[Path] = None
    failed_stage: Optional[StageName] = None

    @property
    def state(self) -> BuildState:
        return self.states[-1]

    def enter(self, state: BuildState) -> None:
        self.states.append(state)

    def result_for(self, stage: StageName) -> Optional[PipelineResult]:
        for result in self.results:
            if result.stage is stage:
                return result
        return None

    def to_dict(self) -> Dict[str, object]:
        return {
            "state": self.state.value,
            "states": [state.value for state in self.states],
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "artifact": str(self.artifact) if self.artifact else None,
            "stages": [
                {
                    "stage": result.stage.value,
                    "exit_status": result.exit_status,
                    "duration": round(result.duration, 3),
                }
                for result in self.results
            ],
        }


__all__ = ["BuildState", "PipelineResult", "PipelineStage", "RunReport", "StageName"]
