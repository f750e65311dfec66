"""Tests for the behavior backends share by default."""

from pathlib import Path

import pytest

from fakemachine.backend import host_kernel_modules_dir
from fakemachine.backend_kvm import KvmBackend
from fakemachine.exceptions import HostPathNotFoundError
from fakemachine.models import MachineConfig
from fakemachine.platform_utils import HostOS, detect_host_os, host_kernel_release
from fakemachine.settings import Settings

pytestmark = pytest.mark.skipif(detect_host_os() != HostOS.LINUX, reason="requires Linux")


def test_split_usr_module_dir(settings: Settings) -> None:
    expected = settings.host_root / "lib" / "modules" / host_kernel_release()
    assert host_kernel_modules_dir(settings) == expected


def test_merged_usr_module_dir(tmp_path: Path) -> None:
    root = tmp_path / "merged"
    moddir = root / "usr" / "lib" / "modules" / host_kernel_release()
    moddir.mkdir(parents=True)
    (root / "lib").symlink_to("usr/lib")

    assert host_kernel_modules_dir(Settings(host_root=root)) == moddir


def test_missing_module_dir(tmp_path: Path) -> None:
    (tmp_path / "lib").mkdir()
    with pytest.raises(HostPathNotFoundError, match="kernel modules for release") as exc_info:
        host_kernel_modules_dir(Settings(host_root=tmp_path))
    assert exc_info.value.path == str(tmp_path / "lib" / "modules" / host_kernel_release())


def test_missing_module_dir_names_backend(machine: MachineConfig, unsupported_settings: Settings) -> None:
    with pytest.raises(HostPathNotFoundError) as exc_info:
        KvmBackend(machine, settings=unsupported_settings).kernel_modules_dir()
    assert exc_info.value.backend == "kvm"
    assert exc_info.value.context["backend"] == "kvm"


def test_queries_are_repeatable(machine: MachineConfig, settings: Settings) -> None:
    """Queries have no side effects and may be called any number of times before start()."""
    backend = KvmBackend(machine, settings=settings)
    first = (backend.static_volumes(), backend.kernel_modules_dir(), backend.job_output_tty())
    second = (backend.static_volumes(), backend.kernel_modules_dir(), backend.job_output_tty())
    assert first == second
