"""Sequence the compile, link and optional sign stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import MissingArtifactError, PipelineError, ToolchainNotFoundError
from ..logging import get_logger
from ..models import SigningConfig
from .artifacts import ArtifactLocator
from .runner import StageRunner
from .stages import BuildState, PipelineResult, PipelineStage, RunReport, StageName
from .toolchain import Toolchain

OBJECT_EXTENSION = ".wixobj"


@dataclass
class BuildRequest:
    """Everything one pipeline run needs; built fresh for every invocation."""

    root: Path
    definition: Path
    output_dir: Path
    installer_name: str
    defines: Dict[str, str] = field(default_factory=dict)
    extensions: List[str] = field(default_factory=list)
    culture: str = "en-us"
    arch: str = "x64"
    signing: Optional[SigningConfig] = None

    @property
    def object_path(self) -> Path:
        return self.output_dir / f"{self.definition.stem}{OBJECT_EXTENSION}"

    @property
    def installer_path(self) -> Path:
        return self.output_dir / self.installer_name


class BuildOrchestrator:
    """Runs ``Init -> Compiling -> Linking -> (Signing) -> Done``.

    The first failing stage moves the run to ``Failed`` and raises; later
    stages are never attempted, nothing is retried and intermediate files are
    left on disk for inspection.
    """

    def __init__(
        self,
        runner: StageRunner,
        toolchain: Toolchain,
        *,
        timeout: Optional[float] = None,
        locator: ArtifactLocator | None = None,
    ) -> None:
        self.runner = runner
        self.toolchain = toolchain
        self.timeout = timeout
        self.locator = locator or ArtifactLocator()
        self.logger = get_logger("pipeline.orchestrator")

    # ------------------------------------------------------------------
    # Stage construction

    def compile_stage(self, request: BuildRequest) -> PipelineStage:
        args: List[str] = ["-nologo", "-arch", request.arch]
        args.extend(f"-d{key}={value}" for key, value in request.defines.items())
        args.extend(self._extension_args(request))
        args.extend(["-out", str(request.object_path), str(request.definition)])
        return PipelineStage(
            name=StageName.COMPILE,
            executable=self.toolchain.compiler,
            args=tuple(args),
            cwd=request.root,
            inputs=(request.definition,),
            output=request.object_path,
            timeout=self.timeout,
        )

    def link_stage(self, request: BuildRequest) -> PipelineStage:
        args: List[str] = ["-nologo"]
        args.extend(self._extension_args(request))
        args.append(f"-cultures:{request.culture}")
        args.extend(["-out", str(request.installer_path), str(request.object_path)])
        return PipelineStage(
            name=StageName.LINK,
            executable=self.toolchain.linker,
            args=tuple(args),
            cwd=request.root,
            inputs=(request.object_path,),
            output=request.installer_path,
            timeout=self.timeout,
        )

    def sign_stage(self, request: BuildRequest, signing: SigningConfig) -> PipelineStage:
        if not self.toolchain.signer:
            raise ToolchainNotFoundError("signtool", "Signing was requested but no signer was resolved")
        args: List[str] = ["sign"]
        if not signing.certificate:
            args.append("/a")
        elif signing.certificate_is_file:
            args.extend(["/f", signing.certificate])
            if signing.password:
                args.extend(["/p", signing.password])
        else:
            args.extend(["/sha1", signing.certificate.replace(" ", "")])
        args.extend(["/fd", "sha256"])
        if signing.timestamp_url:
            args.extend(["/t", signing.timestamp_url])
        if signing.description:
            args.extend(["/d", signing.description])
        args.append(str(request.installer_path))
        return PipelineStage(
            name=StageName.SIGN,
            executable=self.toolchain.signer,
            args=tuple(args),
            cwd=request.root,
            inputs=(request.installer_path,),
            output=request.installer_path,
            timeout=self.timeout,
            redact=(signing.password,) if signing.password else (),
        )

    def plan(self, request: BuildRequest) -> List[PipelineStage]:
        """Stages a run would execute, in order, without executing them."""
        stages = [self.compile_stage(request), self.link_stage(request)]
        if request.signing is not None:
            stages.append(self.sign_stage(request, request.signing))
        return stages

    # ------------------------------------------------------------------
    # Execution

    def run(self, request: BuildRequest) -> RunReport:
        report = RunReport()
        self.logger.info("Building %s from %s", request.installer_name, request.definition)

        compile_stage = self.compile_stage(request)
        self._execute(compile_stage, report)
        if compile_stage.output is not None and not compile_stage.output.exists():
            raise self._fail(
                report,
                PipelineError(
                    StageName.COMPILE,
                    f"Compiling reported success but {compile_stage.output} was not created",
                    exit_status=0,
                ),
            )

        link_stage = self.link_stage(request)
        link_result = self._execute(link_stage, report)
        try:
            report.artifact = self.locator.locate(request.installer_path)
        except MissingArtifactError as exc:
            report.failed_stage = StageName.LINK
            report.enter(BuildState.FAILED)
            exc.report = report
            self.logger.error(
                "Linking exited with status %d but produced no installer", link_result.exit_status
            )
            raise

        if request.signing is not None:
            self._execute(self.sign_stage(request, request.signing), report)
        else:
            self.logger.debug("No signing configuration supplied; skipping Signing")

        report.enter(BuildState.DONE)
        return report

    def _execute(self, stage: PipelineStage, report: RunReport) -> PipelineResult:
        report.enter(BuildState.for_stage(stage.name))
        try:
            result = self.runner.execute(stage)
        except PipelineError as exc:
            self._fail(report, exc)
            raise
        except ToolchainNotFoundError as exc:
            report.failed_stage = stage.name
            report.enter(BuildState.FAILED)
            exc.report = report
            raise
        report.results.append(result)
        if not result.succeeded:
            raise self._fail(
                report,
                PipelineError(
                    stage.name,
                    f"{stage.name.state_label} failed with exit status {result.exit_status}",
                    exit_status=result.exit_status,
                    stdout=result.stdout,
                    stderr=result.stderr,
                ),
            )
        return result

    def _fail(self, report: RunReport, error: PipelineError) -> PipelineError:
        report.failed_stage = error.stage
        report.enter(BuildState.FAILED)
        error.report = report
        self.logger.error("%s", error)
        diagnostics = error.diagnostics()
        if diagnostics:
            self.logger.debug("Captured output:\n%s", diagnostics)
        return error

    @staticmethod
    def _extension_args(request: BuildRequest) -> List[str]:
        args: List[str] = []
        for extension in request.extensions:
            args.extend(["-ext", extension])
        return args


__all__ = ["BuildOrchestrator", "BuildRequest"]
