"""Click CLI: ``crossbox --arch x86_64-elf --gcc 14.1.0``

Layer: CLI (top-level entry point)
May only import from: .backends (registry), .config, .exceptions, .log,
.pipeline, .preflight, .stages

All flags are parsed and validated before anything touches the disk or
the container engine. ``main()`` maps the error taxonomy onto exit codes.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from crossbox.backends import available_backends
from crossbox.backends import get_backend
from crossbox.config import DEFAULT_ARCH
from crossbox.config import DEFAULT_ENGINE
from crossbox.config import DEFAULT_JOBS
from crossbox.config import DEFAULT_OUTPUT_DIR
from crossbox.config import BuildOptions
from crossbox.config import debug_enabled
from crossbox.exceptions import EXIT_INTERRUPTED
from crossbox.exceptions import EXIT_USAGE
from crossbox.exceptions import InvalidArgument
from crossbox.log import log
from crossbox.pipeline import build_toolchain
from crossbox.preflight import check_host_dependencies
from crossbox.stages import BINUTILS
from crossbox.stages import GCC
from crossbox.stages import GDB


@click.command(
    context_settings={"help_option_names": ["-h", "--help"]},
    help="Builds a GCC-based cross-compiler for a given platform, as well as "
    "the corresponding binutils and GDB distributions, inside a disposable "
    "container.",
)
@click.option(
    "--arch",
    default=DEFAULT_ARCH,
    show_default=True,
    metavar="TRIPLE",
    help="Target architecture triple to build for.",
)
@click.option(
    "--binutils",
    "binutils_version",
    default=BINUTILS.default_version,
    show_default=True,
    metavar="VERSION",
    help="Version of binutils to build.",
)
@click.option(
    "--gcc",
    "gcc_version",
    default=GCC.default_version,
    show_default=True,
    metavar="VERSION",
    help="Version of GCC to build.",
)
@click.option(
    "--gdb",
    "gdb_version",
    default=GDB.default_version,
    show_default=True,
    metavar="VERSION",
    help="Version of GDB to build.",
)
@click.option(
    "--force-rebuild-container",
    is_flag=True,
    default=False,
    help="Force rebuild the container image even if it already exists.",
)
@click.option(
    "--engine",
    type=click.Choice(available_backends()),
    default=DEFAULT_ENGINE,
    envvar="CROSSBOX_ENGINE",
    show_default=True,
    help="Container engine used for the sandbox.",
)
@click.option(
    "--jobs",
    type=int,
    default=DEFAULT_JOBS,
    show_default=True,
    help="Parallel make jobs inside the sandbox.",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_OUTPUT_DIR,
    show_default=True,
    help="Directory that receives sources, the installed toolchain and logs.",
)
def cli(
    arch: str,
    binutils_version: str,
    gcc_version: str,
    gdb_version: str,
    force_rebuild_container: bool,
    engine: str,
    jobs: int,
    output_dir: Path,
) -> None:
    try:
        options = BuildOptions(
            arch=arch,
            versions={
                BINUTILS.name: binutils_version,
                GCC.name: gcc_version,
                GDB.name: gdb_version,
            },
            force_rebuild_container=force_rebuild_container,
            engine=engine,
            jobs=jobs,
            output_dir=output_dir,
        )
    except ValueError as e:
        raise InvalidArgument(str(e)) from e

    backend = get_backend(options.engine, debug=debug_enabled())
    check_host_dependencies(backend.required_tools(), hint=backend.install_hint)

    runs = build_toolchain(options, backend)

    prefix = (options.output_dir / options.arch).resolve()
    for stage in runs:
        log(f"{stage.name} {stage.version}: {stage.state.value}")
    log(f"Cross-compiler for {options.arch} installed under {prefix}")


def main(argv: list[str] | None = None) -> None:
    try:
        rv = cli.main(args=argv, prog_name="crossbox", standalone_mode=False)
    except click.UsageError as e:
        e.show()
        sys.exit(EXIT_USAGE)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(EXIT_INTERRUPTED)
    sys.exit(rv if isinstance(rv, int) else 0)


if __name__ == "__main__":
    main()
