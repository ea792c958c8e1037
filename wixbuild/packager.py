"""Pipeline orchestration for init/print-template/build flows."""

from __future__ import annotations

import json
import shutil
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import List, Mapping, Optional

from .config import WixBuildConfig, load_config
from .definition import (
    ResolvedDefinition,
    ScaffoldResult,
    default_definition_path,
    render_template,
    resolve_definition,
    scaffold,
    template_defines,
)
from .errors import PipelineError, WixBuildError
from .logging import get_logger
from .metadata import MetadataOverrides, RELEASE_DIR, extract_metadata, load_cargo_manifest
from .models import ProjectMetadata, SigningConfig
from .pipeline import (
    ArtifactLocator,
    BuildOrchestrator,
    BuildRequest,
    PipelineStage,
    RunReport,
    StageName,
    StageRunner,
    Toolchain,
    installer_name,
    output_dir,
    resolve_toolchain,
)
from .pipeline.runner import ProcessRunner
from .pipeline.toolchain import Which

REPORT_FILE_NAME = "wixbuild-report.json"


@dataclass
class BuildOptions:
    """Per-invocation switches, usually straight from the command line."""

    input: Optional[str] = None
    output_dir: Optional[str] = None
    sign: bool = False
    certificate: Optional[str] = None
    timestamp: Optional[str] = None
    no_build: bool = False
    dry_run: bool = False
    capture_output: bool = True
    product_name: Optional[str] = None
    description: Optional[str] = None
    manufacturer: Optional[str] = None
    binary_name: Optional[str] = None


@dataclass
class BuildOutcome:
    """Result of a build run (or of a dry-run plan)."""

    definition: Path
    installer: Optional[Path]
    dry_run: bool
    report: Optional[RunReport] = None
    plan: List[PipelineStage] = field(default_factory=list)


class Packager:
    """Coordinates metadata extraction, definition rendering and the pipeline."""

    def __init__(
        self,
        *,
        process_runner: ProcessRunner | None = None,
        which: Which = shutil.which,
        env: Mapping[str, str] | None = None,
        locator: ArtifactLocator | None = None,
    ) -> None:
        self._process_runner = process_runner
        self._which = which
        self._env = env
        self._locator = locator
        self.logger = get_logger("packager")

    def run_init(
        self,
        path: str,
        *,
        force: bool = False,
        options: BuildOptions | None = None,
    ) -> ScaffoldResult:
        """Create ``wix/main.wxs`` for a project that lacks one."""
        root = Path(path).expanduser().resolve()
        config = self._load_config(root)
        metadata = self._load_metadata(root, config, options or BuildOptions())
        result = scaffold(
            metadata,
            root,
            force=force,
            upgrade_code=config.product.upgrade_code,
        )
        if not result.written:
            raise FileExistsError(
                f"Installer definition already exists at {result.path}. Use --force to overwrite it."
            )
        return result

    def print_template(self, path: str, *, options: BuildOptions | None = None) -> str:
        """Return the annotated template for the project at ``path``."""
        root = Path(path).expanduser().resolve()
        config = self._load_config(root)
        metadata = self._load_metadata(root, config, options or BuildOptions())
        return render_template(metadata)

    def run_build(self, path: str, options: BuildOptions | None = None) -> BuildOutcome:
        """Build the installer for the project at ``path``."""
        options = options or BuildOptions()
        root = Path(path).expanduser().resolve()
        self.logger.info("Starting build run for %s", root)
        config = self._load_config(root)
        metadata = self._load_metadata(root, config, options)
        signing = self._signing_config(config, options, metadata)

        if options.dry_run:
            toolchain = Toolchain(
                compiler=config.toolchain.compiler,
                linker=config.toolchain.linker,
                signer=config.toolchain.signer if signing else None,
            )
        else:
            toolchain = resolve_toolchain(
                config.toolchain,
                sign=signing is not None,
                build=not options.no_build,
                env=self._env,
                which=self._which,
            )

        runner = StageRunner(self._process_runner, capture_output=options.capture_output)
        if not options.no_build and not options.dry_run:
            self._build_binaries(root, toolchain, runner, config)

        defines = template_defines(
            metadata,
            target_bin_dir=str(root / RELEASE_DIR),
            product_id=config.product.product_id,
        )
        defines.update(config.defines)
        definition_path = self._resolve_definition(root, metadata, config, options, defines)

        out_dir = output_dir(root, options.output_dir or config.output.directory)
        request = BuildRequest(
            root=root,
            definition=definition_path,
            output_dir=out_dir,
            installer_name=installer_name(metadata),
            defines=defines,
            extensions=list(config.toolchain.extensions),
            culture=config.toolchain.culture,
            arch=config.toolchain.arch,
            signing=signing,
        )
        orchestrator = BuildOrchestrator(
            runner,
            toolchain,
            timeout=config.toolchain.timeout,
            locator=self._locator,
        )

        if options.dry_run:
            plan = orchestrator.plan(request)
            for stage in plan:
                self.logger.info("[dry-run] %s: %s", stage.name.state_label, stage.display_command())
            return BuildOutcome(definition=definition_path, installer=None, dry_run=True, plan=plan)

        out_dir.mkdir(parents=True, exist_ok=True)
        try:
            report = orchestrator.run(request)
        except WixBuildError as exc:
            if exc.report is not None:
                self._write_report(out_dir, exc.report)
            raise
        self._write_report(out_dir, report)
        return BuildOutcome(
            definition=definition_path,
            installer=report.artifact,
            dry_run=False,
            report=report,
        )

    # ------------------------------------------------------------------
    # Helpers

    def _load_config(self, root: Path) -> WixBuildConfig:
        return load_config(root, env=self._env)

    def _load_metadata(
        self, root: Path, config: WixBuildConfig, options: BuildOptions
    ) -> ProjectMetadata:
        overrides = MetadataOverrides(
            product_name=options.product_name or config.product.name,
            description=options.description or config.product.description,
            manufacturer=options.manufacturer or config.product.manufacturer,
            binary_name=options.binary_name or config.product.binary_name,
        )
        metadata = extract_metadata(load_cargo_manifest(root), overrides=overrides)
        self.logger.debug(
            "Project %s %s with %d binaries", metadata.name, metadata.version, len(metadata.binaries)
        )
        return metadata

    def _signing_config(
        self, config: WixBuildConfig, options: BuildOptions, metadata: ProjectMetadata
    ) -> Optional[SigningConfig]:
        settings = config.signing
        if not (options.sign or settings.enabled):
            return None
        signing = settings.to_signing_config()
        return replace(
            signing,
            certificate=options.certificate or signing.certificate,
            timestamp_url=options.timestamp or signing.timestamp_url,
            description=signing.description or metadata.description or metadata.name,
        )

    def _resolve_definition(
        self,
        root: Path,
        metadata: ProjectMetadata,
        config: WixBuildConfig,
        options: BuildOptions,
        defines: Mapping[str, str],
    ) -> Path:
        input_path = options.input or config.output.input
        if options.dry_run and input_path is None:
            default_path = default_definition_path(root)
            if not default_path.exists():
                self.logger.info("[dry-run] Would scaffold %s", default_path)
                return default_path.resolve()
        resolved: ResolvedDefinition = resolve_definition(
            metadata,
            root,
            input_path=input_path,
            product_id=config.product.product_id,
            upgrade_code=config.product.upgrade_code,
            defines=defines,
        )
        if resolved.scaffolded:
            self.logger.info("Scaffolded installer definition at %s", resolved.path)
        return resolved.path

    def _build_binaries(
        self,
        root: Path,
        toolchain: Toolchain,
        runner: StageRunner,
        config: WixBuildConfig,
    ) -> None:
        stage = PipelineStage(
            name=StageName.BUILD,
            executable=toolchain.cargo or "cargo",
            args=("build", "--release"),
            cwd=root,
            output=root / RELEASE_DIR,
            timeout=config.toolchain.timeout,
        )
        result = runner.execute(stage)
        if not result.succeeded:
            raise PipelineError(
                StageName.BUILD,
                f"Building failed with exit status {result.exit_status}",
                exit_status=result.exit_status,
                stdout=result.stdout,
                stderr=result.stderr,
            )

    def _write_report(self, out_dir: Path, report: RunReport) -> None:
        payload = report.to_dict()
        payload["generated_at"] = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        path = out_dir / REPORT_FILE_NAME
        try:
            path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            self.logger.warning("Unable to write run report to %s: %s", path, exc)
            return
        self.logger.debug("Run report written to %s", path)


__all__ = ["BuildOptions", "BuildOutcome", "Packager", "REPORT_FILE_NAME"]
