"""Host layout helpers and the child process handle used by backends.

Kernel, module tree and /usr layout lookups take an explicit root so they
can be pointed at a fake host.
"""

import asyncio
import contextlib
import platform
import signal
from enum import Enum, auto
from functools import cache
from pathlib import Path

import psutil


class HostOS(Enum):
    """Host operating systems."""

    LINUX = auto()
    """Both backends need a Linux host."""

    OTHER = auto()


@cache
def detect_host_os() -> HostOS:
    return HostOS.LINUX if psutil.LINUX else HostOS.OTHER


def host_kernel_release() -> str:
    """Release string of the running kernel (``uname -r``)."""
    return platform.release()


def merged_usr_system(root: Path = Path("/")) -> bool:
    """Whether ``/lib`` is a symlink into ``/usr``."""
    return (root / "lib").is_symlink()


def host_modules_root(root: Path = Path("/")) -> Path:
    """Parent of the per-release module trees."""
    lib = root / "usr" / "lib" if merged_usr_system(root) else root / "lib"
    return lib / "modules"


def host_kernel_path(root: Path = Path("/")) -> Path:
    return root / "boot" / f"vmlinuz-{host_kernel_release()}"


class ChildProcess:
    """A launched guest or helper process.

    Signals go through psutil, which checks the process creation time, so a
    recycled PID is never signalled once the child has been reaped.

    Attributes:
        name: Executable name used in logs and errors ("qemu", "linux.uml", ...)
    """

    def __init__(self, proc: asyncio.subprocess.Process, name: str) -> None:
        self.name = name
        self._proc = proc
        self._ps: psutil.Process | None = None
        with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
            self._ps = psutil.Process(proc.pid)

    def __repr__(self) -> str:
        return f"ChildProcess(name={self.name!r}, pid={self.pid}, returncode={self.returncode})"

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        """Exit status, negative signal number on signal death, None while running."""
        return self._proc.returncode

    async def alive(self) -> bool:
        if self.returncode is not None:
            return False
        if self._ps is None:
            return True
        try:
            return await asyncio.to_thread(self._ps.is_running)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return False

    async def send_signal(self, sig: signal.Signals) -> None:
        """Deliver ``sig`` if the child has not exited yet.

        Raises:
            ProcessLookupError: Child vanished without a psutil handle
        """
        if self._ps is None:
            self._proc.send_signal(sig)
            return
        if await self.alive():
            with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
                await asyncio.to_thread(self._ps.send_signal, sig)

    async def wait(self) -> int:
        return await self._proc.wait()

    async def wait_for(self, timeout: float) -> int:
        """wait() bounded by ``timeout`` seconds.

        Raises:
            TimeoutError: Still running after ``timeout``
        """
        return await asyncio.wait_for(self.wait(), timeout=timeout)
