"""CLI entrypoints for wixbuild commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .errors import PipelineError, WixBuildError
from .logging import configure_logging
from .packager import BuildOptions, Packager


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "count",
        "help": "Increase log verbosity; repeat for more detail (-v, -vv, -vvvv).",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = 0
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root containing Cargo.toml (defaults to current directory).",
    )


def _add_override_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-b",
        "--binary-name",
        help="Overrides the name of the first binary in the manifest.",
    )
    parser.add_argument(
        "-d",
        "--description",
        help="Overrides the manifest description used within the installer.",
    )
    parser.add_argument(
        "-m",
        "--manufacturer",
        help="Overrides the first manifest author as the installer manufacturer.",
    )
    parser.add_argument(
        "-p",
        "--product-name",
        help="Overrides the manifest package name as the product name.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wixbuild",
        description="Build Windows installers for Cargo projects with the WiX Toolset.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Create wix/main.wxs from the project manifest without building.",
    )
    _add_verbose_option(init_parser, suppress_default=True)
    _add_path_argument(init_parser)
    _add_override_options(init_parser)
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing wix/main.wxs. Use with caution.",
    )

    template_parser = subparsers.add_parser(
        "print-template",
        help="Print an annotated WiX Source template to stdout.",
    )
    _add_verbose_option(template_parser, suppress_default=True)
    _add_path_argument(template_parser)
    _add_override_options(template_parser)

    build_parser = subparsers.add_parser(
        "build",
        help="Compile, link and optionally sign the installer.",
    )
    _add_verbose_option(build_parser, suppress_default=True)
    _add_path_argument(build_parser)
    _add_override_options(build_parser)
    build_parser.add_argument(
        "-i",
        "--input",
        help="WiX Source file to use instead of wix/main.wxs.",
    )
    build_parser.add_argument(
        "-o",
        "--output-dir",
        help="Directory for intermediate files and the installer (default: target/wix).",
    )
    build_parser.add_argument(
        "-s",
        "--sign",
        action="store_true",
        help="Sign the installer with signtool after linking.",
    )
    build_parser.add_argument(
        "-c",
        "--certificate",
        help="Certificate thumbprint or .pfx path for signing (default: automatic selection).",
    )
    build_parser.add_argument(
        "-t",
        "--timestamp",
        help="Timestamp server URL used when signing.",
    )
    build_parser.add_argument(
        "--no-build",
        action="store_true",
        help="Skip `cargo build --release` and package the existing binaries.",
    )
    build_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the toolchain commands without running them or writing files.",
    )
    build_parser.add_argument(
        "--nocapture",
        action="store_true",
        help="Show output from cargo, the compiler, the linker and the signer.",
    )

    return parser


def _options_from_args(args: argparse.Namespace) -> BuildOptions:
    return BuildOptions(
        input=getattr(args, "input", None),
        output_dir=getattr(args, "output_dir", None),
        sign=bool(getattr(args, "sign", False)),
        certificate=getattr(args, "certificate", None),
        timestamp=getattr(args, "timestamp", None),
        no_build=bool(getattr(args, "no_build", False)),
        dry_run=bool(getattr(args, "dry_run", False)),
        capture_output=not bool(getattr(args, "nocapture", False)),
        product_name=getattr(args, "product_name", None),
        description=getattr(args, "description", None),
        manufacturer=getattr(args, "manufacturer", None),
        binary_name=getattr(args, "binary_name", None),
    )


def _format_error(exc: WixBuildError) -> str:
    message = f"Error[{exc.exit_code}] ({type(exc).__name__}): {exc}\n"
    if isinstance(exc, PipelineError):
        diagnostics = exc.diagnostics()
        if diagnostics:
            message += f"{diagnostics}\n"
    return message


def main(argv: list[str] | None = None, *, packager: Packager | None = None) -> None:
    """CLI entrypoint for wixbuild commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbosity=int(getattr(args, "verbose", 0) or 0))

    packager = packager or Packager()
    options = _options_from_args(args)

    try:
        if args.command == "init":
            result = packager.run_init(args.path, force=bool(args.force), options=options)
            print(f"Installer definition created at {_relativize(result.path)}")
        elif args.command == "print-template":
            sys.stdout.write(packager.print_template(args.path, options=options))
        elif args.command == "build":
            if options.timestamp and not options.sign:
                parser.exit(2, "--timestamp requires --sign\n")
            outcome = packager.run_build(args.path, options)
            if outcome.dry_run:
                print("Planned stages (dry-run):")
                for stage in outcome.plan:
                    print(f"  {stage.name.state_label}: {stage.display_command()}")
            elif outcome.installer is not None:
                print(f"Installer created at {_relativize(outcome.installer)}")
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except FileExistsError as exc:
        parser.exit(1, f"{exc}\n")
    except WixBuildError as exc:
        parser.exit(exc.exit_code, _format_error(exc))


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
