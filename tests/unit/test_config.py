"""Unit tests for run configuration."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import MagicMock
from unittest.mock import patch

import pytest

from crossbox.config import DOCKERFILE
from crossbox.config import IMAGE_NAME
from crossbox.config import IMAGE_TAG
from crossbox.config import WORKING_DIR
from crossbox.config import BuildOptions
from crossbox.config import debug_enabled
from crossbox.config import resolve_user


class TestBuildOptions:
    def test_defaults(self) -> None:
        options = BuildOptions()

        assert options.arch == "i686-elf"
        assert options.version("gcc") == "13.2.0"
        assert options.jobs == 16
        assert options.engine == "docker"

    def test_version_override_only_touches_that_stage(self) -> None:
        options = BuildOptions(versions={"gcc": "14.1.0"})

        assert options.version("gcc") == "14.1.0"
        assert options.version("binutils") == "2.42"
        assert options.version("gdb") == "14.1"

    @pytest.mark.parametrize("arch", ["i686", "", "x86_64 elf", "a-b-c-d-e"])
    def test_rejects_malformed_triple(self, arch: str) -> None:
        with pytest.raises(ValueError, match="target triple"):
            BuildOptions(arch=arch)

    @pytest.mark.parametrize("arch", ["i686-elf", "aarch64-none-elf", "x86_64-pc-linux-gnu"])
    def test_accepts_triples(self, arch: str) -> None:
        assert BuildOptions(arch=arch).arch == arch

    def test_rejects_bad_version(self) -> None:
        with pytest.raises(ValueError, match="Invalid gcc version"):
            BuildOptions(versions={"gcc": "../../etc"})

    def test_rejects_unknown_component(self) -> None:
        with pytest.raises(ValueError, match="Unknown toolchain component"):
            BuildOptions(versions={"clang": "17"})

    def test_rejects_zero_jobs(self) -> None:
        with pytest.raises(ValueError, match="--jobs"):
            BuildOptions(jobs=0)

    def test_sandbox_config(self, tmp_path: Path) -> None:
        with patch("crossbox.config.resolve_user", return_value="1000:100"):
            config = BuildOptions().sandbox_config(tmp_path)

        assert config.image == f"{IMAGE_NAME}:{IMAGE_TAG}"
        assert config.dockerfile == DOCKERFILE
        assert config.host_dir == str(tmp_path.resolve())
        assert config.working_dir == WORKING_DIR
        assert config.user == "1000:100"
        assert config.container_name.startswith("crossbox-")

    def test_each_run_gets_its_own_container_name(self, tmp_path: Path) -> None:
        with patch("crossbox.config.resolve_user", return_value="1000:100"):
            first = BuildOptions().sandbox_config(tmp_path)
            second = BuildOptions().sandbox_config(tmp_path)

        assert first.container_name != second.container_name

    def test_versions_are_read_only(self) -> None:
        passed = {"gcc": "14.1.0"}
        options = BuildOptions(versions=passed)
        passed["gcc"] = "1.0"

        assert options.version("gcc") == "14.1.0"
        with pytest.raises(TypeError):
            options.versions["gcc"] = "12.2.0"  # type: ignore[index]


class TestEmbeddedImage:
    def test_installs_build_toolchain(self) -> None:
        for package in ("bison", "flex", "build-essential", "curl", "xz-utils", "texinfo"):
            assert package in DOCKERFILE

    def test_entrypoint_is_bash(self) -> None:
        assert 'ENTRYPOINT ["/bin/bash", "-c"]' in DOCKERFILE


class TestResolveUser:
    def test_uses_passwd_entry_for_user(self) -> None:
        entry = MagicMock(pw_uid=1234, pw_gid=567)
        with patch.dict(os.environ, {"USER": "alice"}), patch(
            "crossbox.config.pwd.getpwnam", return_value=entry
        ) as getpwnam:
            assert resolve_user() == "1234:567"
        getpwnam.assert_called_once_with("alice")

    def test_falls_back_to_process_ids(self) -> None:
        with patch.dict(os.environ, {"USER": "nobody-here"}), patch(
            "crossbox.config.pwd.getpwnam", side_effect=KeyError("nobody-here")
        ):
            assert resolve_user() == f"{os.getuid()}:{os.getgid()}"


class TestDebugToggle:
    @pytest.mark.parametrize(
        ("env", "expected"),
        [
            ({}, False),
            ({"DEBUG": "0"}, False),
            ({"DEBUG": "1"}, True),
            ({"CROSSBOX_DEBUG": "yes"}, True),
            ({"CROSSBOX_DEBUG": "off", "DEBUG": "1"}, False),
        ],
    )
    def test_debug_enabled(self, env: dict[str, str], expected: bool) -> None:
        clean = {k: v for k, v in os.environ.items() if k not in ("DEBUG", "CROSSBOX_DEBUG")}
        clean.update(env)
        with patch.dict(os.environ, clean, clear=True):
            assert debug_enabled() is expected
