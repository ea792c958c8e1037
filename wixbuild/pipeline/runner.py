"""Execute a single pipeline stage as an external process."""

from __future__ import annotations

import subprocess
import time
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..errors import StageTimeoutError, ToolchainNotFoundError
from ..logging import get_logger
from .stages import PipelineResult, PipelineStage

ProcessRunner = Callable[..., "subprocess.CompletedProcess[str]"]


class StageRunner:
    """Spawns a stage's executable, waits for it, and captures its streams.

    The exit status is reported as-is; deciding whether it means failure is
    the orchestrator's job.
    """

    def __init__(
        self,
        runner: ProcessRunner | None = None,
        *,
        capture_output: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._runner = runner or self._default_runner
        self.capture_output = capture_output
        self._clock = clock
        self.logger = get_logger("pipeline.runner")

    def execute(self, stage: PipelineStage) -> PipelineResult:
        self.logger.info("%s: %s", stage.name.state_label, stage.display_command())
        started = self._clock()
        try:
            completed = self._runner(
                stage.command(),
                cwd=stage.cwd,
                timeout=stage.timeout,
                capture_output=self.capture_output,
            )
        except FileNotFoundError as exc:
            raise ToolchainNotFoundError(
                stage.executable,
                f"Unable to start '{stage.executable}' for {stage.name.state_label.lower()}: {exc}",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise StageTimeoutError(
                stage.name,
                stage.timeout if stage.timeout is not None else exc.timeout,
                stdout=_as_text(exc.stdout),
                stderr=_as_text(exc.stderr),
            ) from exc
        duration = self._clock() - started
        result = PipelineResult(
            stage=stage.name,
            exit_status=completed.returncode,
            stdout=_as_text(completed.stdout),
            stderr=_as_text(completed.stderr),
            duration=duration,
        )
        self.logger.debug(
            "%s exited with status %d after %.2fs",
            stage.executable,
            result.exit_status,
            duration,
        )
        return result

    @staticmethod
    def _default_runner(
        args: Sequence[str],
        *,
        cwd: Path,
        timeout: Optional[float] = None,
        capture_output: bool = True,
    ) -> "subprocess.CompletedProcess[str]":
        # subprocess.run kills the child before re-raising TimeoutExpired.
        return subprocess.run(
            list(args),
            cwd=str(cwd),
            check=False,
            text=True,
            capture_output=capture_output,
            timeout=timeout,
        )


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


__all__ = ["ProcessRunner", "StageRunner"]
