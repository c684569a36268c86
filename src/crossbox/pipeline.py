"""Stage-by-stage toolchain build.

Layer: Execution
May only import from: .backend, .config, .exceptions, .layout, .log,
.sandbox, .stages, stdlib

Each stage downloads, extracts, configures out of tree, builds and
installs one component inside the sandbox. Stages run strictly in
STAGES order and the first failing command ends the whole run.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping
from typing import Sequence

from crossbox.backend import SandboxBackend
from crossbox.backend import SandboxHandle
from crossbox.config import BuildOptions
from crossbox.exceptions import CommandFailure
from crossbox.layout import BuildLayout
from crossbox.log import log
from crossbox.log import warn
from crossbox.sandbox import CommandBridge
from crossbox.sandbox import SandboxManager
from crossbox.stages import STAGES
from crossbox.stages import StageSpec
from crossbox.stages import StageState

_SYSTEM_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"

_MISSING_LOG_NOTE = (
    "configure did not leave a config.log behind; it most likely failed "
    "before it could start writing one.\n"
)


@dataclass(frozen=True)
class BuildContext:
    """Read-only facts shared by every stage of a run."""

    target: str
    layout: BuildLayout
    handle: SandboxHandle
    working_dir: str
    jobs: int

    @property
    def prefix(self) -> str:
        return posixpath.join(self.working_dir, self.target)

    def sandbox_path(self, *parts: str) -> str:
        return posixpath.join(self.working_dir, *parts)

    def stage_env(self) -> dict[str, str]:
        # Earlier stages install into the same prefix; putting its bin/
        # first is how gcc finds the cross binutils.
        return {
            "TARGET": self.target,
            "PREFIX": self.prefix,
            "PATH": f"{self.prefix}/bin:{_SYSTEM_PATH}",
        }


@dataclass
class StageRun:
    spec: StageSpec
    version: str
    state: StageState = StageState.PENDING
    log_path: Path | None = None

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def url(self) -> str:
        return self.spec.url(self.version)

    @property
    def source_dir(self) -> str:
        return self.spec.source_dir(self.version)

    def transition(self, state: StageState) -> None:
        if self.state.terminal:
            raise RuntimeError(
                f"Stage {self.name} is already {self.state.value}; "
                f"cannot move to {state.value}."
            )
        self.state = state


class BuildPipeline:
    """Runs the stage table against one sandbox."""

    def __init__(
        self,
        bridge: CommandBridge,
        context: BuildContext,
        versions: Mapping[str, str] | None = None,
        stages: Sequence[StageSpec] = STAGES,
    ) -> None:
        versions = versions or {}
        self._bridge = bridge
        self._context = context
        self.runs = [
            StageRun(spec=spec, version=versions.get(spec.name, spec.default_version))
            for spec in stages
        ]

    def run(self) -> list[StageRun]:
        for stage in self.runs:
            self._run_stage(stage)
        return self.runs

    def _run_stage(self, stage: StageRun) -> None:
        log(f"Building {stage.name} {stage.version} for {self._context.target}...")
        try:
            stage.transition(StageState.DOWNLOADING)
            archive = self._download(stage)
            stage.transition(StageState.EXTRACTING)
            self._extract(archive)
            stage.transition(StageState.CONFIGURING)
            build_dir = self._configure(stage)
            stage.transition(StageState.BUILDING)
            self._build(stage, build_dir)
            stage.transition(StageState.INSTALLING)
            self._install(stage, build_dir)
        except BaseException:
            stage.transition(StageState.FAILED)
            raise
        stage.transition(StageState.DONE)
        log(f"Installed {stage.name} {stage.version} into {self._context.prefix}")

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _mktemp(self, *args: str) -> str:
        argv = ["mktemp", *args]
        path = self._bridge.run(argv, capture=True).stdout.strip()
        if not path:
            raise CommandFailure(argv, 1, "mktemp printed no path")
        return path

    def _download(self, stage: StageRun) -> str:
        archive = self._mktemp()
        self._bridge.run(
            [
                "curl",
                "--fail",
                "--location",
                "--silent",
                "--show-error",
                "--output",
                archive,
                stage.url,
            ]
        )
        return archive

    def _extract(self, archive: str) -> None:
        ctx = self._context
        self._bridge.run(
            ["tar", "-C", ctx.layout.src_dir, "-xf", archive],
            workdir=ctx.working_dir,
        )
        self._bridge.run(["rm", "-f", archive])

    def _configure(self, stage: StageRun) -> str:
        ctx = self._context
        build_dir = self._mktemp("-d")
        configure = ctx.sandbox_path(ctx.layout.src_dir, stage.source_dir, "configure")
        try:
            self._bridge.run(
                [
                    configure,
                    "--target",
                    ctx.target,
                    "--prefix",
                    ctx.prefix,
                    *stage.spec.configure_flags,
                ],
                env=ctx.stage_env(),
                workdir=build_dir,
            )
        finally:
            self._relocate_log(stage, build_dir)
        return build_dir

    def _relocate_log(self, stage: StageRun, build_dir: str) -> None:
        ctx = self._context
        host_log = ctx.layout.log_path(stage.spec.log_name)
        result = self._bridge.run(
            [
                "mv",
                "-f",
                posixpath.join(build_dir, "config.log"),
                ctx.sandbox_path(stage.spec.log_name),
            ],
            check=False,
        )
        if not result.ok:
            warn(f"could not move config.log for {stage.name}: {result.stderr.strip()}")
            host_log.write_text(_MISSING_LOG_NOTE)
        stage.log_path = host_log
        log(f"Configure log for {stage.name} saved to {host_log}")

    def _build(self, stage: StageRun, build_dir: str) -> None:
        ctx = self._context
        for target in stage.spec.build_targets:
            self._bridge.run(
                ["make", f"-j{ctx.jobs}", target],
                env=ctx.stage_env(),
                workdir=build_dir,
            )

    def _install(self, stage: StageRun, build_dir: str) -> None:
        ctx = self._context
        for target in stage.spec.install_targets:
            self._bridge.run(
                ["make", target],
                env=ctx.stage_env(),
                workdir=build_dir,
            )


def build_toolchain(options: BuildOptions, backend: SandboxBackend) -> list[StageRun]:
    """Prepare the workspace, run every stage in a fresh sandbox, tear it down."""
    layout = BuildLayout.for_target(options.output_dir, options.arch)
    layout.prepare()

    manager = SandboxManager(backend, options.sandbox_config(layout.base_dir))
    manager.ensure_image(force=options.force_rebuild_container)

    with manager.running() as handle:
        context = BuildContext(
            target=options.arch,
            layout=layout,
            handle=handle,
            working_dir=manager.config.working_dir,
            jobs=options.jobs,
        )
        pipeline = BuildPipeline(CommandBridge(backend, handle), context, options.versions)
        return pipeline.run()
