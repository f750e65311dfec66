"""Shared pytest fixtures for fakemachine tests.

Backends are pointed at a fake host laid out under tmp_path: a KVM device
node stand-in, a module tree and kernel image for the running release, and
small shell scripts standing in for QEMU, the UML kernel and libslirp-helper.
"""

from __future__ import annotations

import asyncio
import errno
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from fakemachine.models import Image, MachineConfig, MountPoint
from fakemachine.platform_utils import host_kernel_release
from fakemachine.settings import Settings

# Exit code of the fake UML kernel, to check it is propagated unchanged
UML_GUEST_EXIT_CODE = 3


def write_script(path: Path, body: str) -> Path:
    """Write an executable /bin/sh script."""
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(0o755)
    return path


# ============================================================================
# Fake host
# ============================================================================


@pytest.fixture
def host_root(tmp_path: Path) -> Path:
    """Split-/usr host root with modules and kernel image for the running release."""
    root = tmp_path / "root"
    (root / "lib" / "modules" / host_kernel_release()).mkdir(parents=True)
    (root / "boot").mkdir()
    (root / "boot" / f"vmlinuz-{host_kernel_release()}").write_bytes(b"")
    return root


@pytest.fixture
def settings(tmp_path: Path, host_root: Path) -> Settings:
    """Settings for a host where both backends are supported."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    kvm_device = tmp_path / "kvm"
    kvm_device.write_bytes(b"")
    uml_modules = tmp_path / "uml-modules"
    uml_modules.mkdir()

    return Settings(
        host_root=host_root,
        kvm_device=kvm_device,
        qemu_bin=write_script(bin_dir / "qemu-system-x86_64", "exit 0"),
        uml_kernel_path=write_script(bin_dir / "linux.uml", f"exit {UML_GUEST_EXIT_CODE}"),
        uml_modules_dir=uml_modules,
        # Stays up until the backend kills it
        slirp_helper_path=write_script(bin_dir / "libslirp-helper", "exec sleep 60"),
    )


@pytest.fixture
def unsupported_settings(tmp_path: Path) -> Settings:
    """Settings for a host with none of the backend requirements."""
    missing = tmp_path / "missing"
    return Settings(
        host_root=missing,
        kvm_device=missing / "kvm",
        qemu_bin=missing / "qemu-system-x86_64",
        uml_kernel_path=missing / "linux.uml",
        uml_modules_dir=missing / "uml-modules",
        slirp_helper_path=missing / "libslirp-helper",
    )


# ============================================================================
# Machines
# ============================================================================


@pytest.fixture
def initrd(tmp_path: Path) -> Path:
    path = tmp_path / "initrd.img"
    path.write_bytes(b"")
    return path


@pytest.fixture
def machine(initrd: Path) -> MachineConfig:
    """One image, one static and one regular mount, quiet boot."""
    return MachineConfig(
        memory_mb=512,
        cpus=2,
        show_boot=False,
        initrd_path=initrd,
        images=(Image(path=Path("/tmp/a.img"), label="root", index=0),),
        mounts=(
            MountPoint(host_directory=Path("/srv/scratch"), machine_directory="/scratch", label="scratch", static=True),
            MountPoint(host_directory=Path("/home/user/src"), machine_directory="/src", label="src"),
        ),
    )


# ============================================================================
# Launch interception
# ============================================================================


@dataclass
class SpawnCall:
    """One intercepted launch."""

    argv: list[str]
    kwargs: dict[str, Any]
    process: asyncio.subprocess.Process | None = None


@dataclass
class SpawnRecorder:
    """Drop-in for asyncio.create_subprocess_exec that records every launch.

    Launches are numbered from 0 in call order.

    Attributes:
        fail_on: Launch numbers that raise instead of starting a process
        break_wait_on: Launch numbers whose process.wait() raises
    """

    fail_on: set[int] = field(default_factory=set)
    break_wait_on: set[int] = field(default_factory=set)
    calls: list[SpawnCall] = field(default_factory=list)

    async def __call__(self, *argv: str, **kwargs: Any) -> asyncio.subprocess.Process:
        call = SpawnCall(argv=list(argv), kwargs=kwargs)
        self.calls.append(call)
        launch = len(self.calls) - 1

        if launch in self.fail_on:
            raise FileNotFoundError(errno.ENOENT, "injected launch failure", argv[0])

        proc = await asyncio.create_subprocess_exec(*argv, **kwargs)
        if launch in self.break_wait_on:
            # Let the real process finish; only our view of it breaks
            await proc.wait()
            proc.wait = AsyncMock(side_effect=ChildProcessError(errno.ECHILD, "injected wait failure"))
        call.process = proc
        return proc


@pytest.fixture
def recorder() -> SpawnRecorder:
    return SpawnRecorder()
