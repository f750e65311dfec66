"""Backend capability contract and shared defaults.

A backend turns a MachineConfig into a running guest. Before boot, the
initrd/init-script builders call the pure query methods (modules, volumes,
mount translation, device paths); then start() launches the guest and
supervises it until it exits.

Exactly two concrete backends exist (see registry.BACKENDS):
    kvm  - QEMU with KVM acceleration (backend_kvm.KvmBackend)
    uml  - User-mode Linux with a libslirp network helper (backend_uml.UmlBackend)

Default method bodies here delegate to the module-level helpers below so a
backend overriding a default can still reuse the shared behavior.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, ClassVar

from fakemachine import constants
from fakemachine._logging import get_logger
from fakemachine.exceptions import BackendStateError, HostPathNotFoundError, LaunchError, SupervisionError
from fakemachine.models import Image, MachineConfig, MountPoint
from fakemachine.platform_utils import ChildProcess, host_kernel_release, host_modules_root
from fakemachine.settings import Settings

logger = get_logger(__name__)

Spawner = Callable[..., Awaitable[asyncio.subprocess.Process]]
"""Signature of asyncio.create_subprocess_exec; replaced in tests to intercept launches."""


def host_kernel_modules_dir(settings: Settings, *, backend: str | None = None) -> Path:
    """Module tree matching the running kernel release.

    Looks under /usr/lib/modules on merged-/usr hosts, /lib/modules otherwise.

    Raises:
        HostPathNotFoundError: No module tree for the running release
    """
    release = host_kernel_release()
    moddir = host_modules_root(settings.host_root) / release
    if not moddir.is_dir():
        raise HostPathNotFoundError(
            f"kernel modules for release {release} not found at {moddir}",
            path=str(moddir),
            context={"release": release},
            backend=backend,
        )
    return moddir


class Backend(ABC):
    """Virtualization strategy bound to one machine configuration.

    Instances are single-use: start() may be called once. All other methods
    are pure queries and may be called any number of times before start().

    Args:
        machine: Configuration to boot; not modified
        settings: Host paths (defaults to Settings() from the environment)
        spawn: Process launcher, defaults to asyncio.create_subprocess_exec
    """

    name: ClassVar[str]

    def __init__(
        self,
        machine: MachineConfig,
        *,
        settings: Settings | None = None,
        spawn: Spawner | None = None,
    ) -> None:
        self.machine = machine
        self.settings = settings or Settings()
        self._spawn: Spawner = spawn or asyncio.create_subprocess_exec
        self._started = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"

    # ------------------------------------------------------------------
    # Capability contract
    # ------------------------------------------------------------------

    @abstractmethod
    async def supported(self) -> tuple[bool, Exception | None]:
        """Probe whether this host can run the backend.

        Returns:
            (True, None) if supported, else (False, cause) with the host error
        """

    @abstractmethod
    def image_path(self, image: Image) -> str:
        """Device path the guest will see for ``image``.

        Computed before boot and baked into the init script, so it must
        match the wiring start() produces.
        """

    def required_modules(self) -> list[str]:
        """Module object paths (relative to the module tree) to pack into the initrd."""
        return []

    def kernel_modules_dir(self) -> Path:
        """Host directory holding the modules the guest kernel can load."""
        return host_kernel_modules_dir(self.settings, backend=self.name)

    def init_modules(self) -> list[str]:
        """Module names the init script probes at boot."""
        return []

    def static_volumes(self) -> list[MountPoint]:
        """Mounts the init script always sets up."""
        return self.machine.static_volumes()

    @abstractmethod
    def mount_parameters(self, mount: MountPoint) -> tuple[str, list[str]]:
        """Filesystem type and mount options for ``mount`` inside the guest."""

    def networkd_match(self) -> str:
        """systemd-networkd interface glob for the NICs this backend provides."""
        return constants.DEFAULT_NETWORKD_MATCH

    @abstractmethod
    def job_output_tty(self) -> str:
        """Guest device the job's stdout/stderr must be written to."""

    async def start(self) -> int:
        """Boot the guest and wait for it to exit.

        Returns:
            Guest exit code (negative signal number if killed by a signal)

        Raises:
            BackendStateError: start() was already called on this instance
            HostPathNotFoundError: Host kernel image missing; raised while
                resolving boot inputs, before any process is launched
            ResourceSetupError: Socket pair could not be created
            LaunchError: A child process failed to start
            SupervisionError: Waiting on the guest failed
        """
        if self._started:
            raise BackendStateError(
                "backend instance already started; create a new one to run again",
                backend=self.name,
            )
        self._started = True
        return await self._run()

    @abstractmethod
    async def _run(self) -> int:
        """Launch and supervise the guest. Called at most once."""

    # ------------------------------------------------------------------
    # Process helpers
    # ------------------------------------------------------------------

    async def _launch(self, process_name: str, argv: list[str], **kwargs: Any) -> ChildProcess:
        """Spawn a child inheriting our stdio.

        Raises:
            LaunchError: The executable could not be started
        """
        logger.debug(f"Launching {process_name}", extra={"backend": self.name, "argv": argv})
        try:
            proc = ChildProcess(await self._spawn(*argv, **kwargs), process_name)
        except OSError as e:
            raise LaunchError(
                f"failed to launch {process_name}: {e}",
                context={"binary_path": argv[0], "error": str(e)},
                backend=self.name,
            ) from e
        logger.info(f"{process_name} started", extra={"backend": self.name, "pid": proc.pid})
        return proc

    async def _wait(self, proc: ChildProcess) -> int:
        """Block until ``proc`` exits.

        Raises:
            SupervisionError: Waiting failed
        """
        try:
            returncode = await proc.wait()
        except OSError as e:
            raise SupervisionError(
                f"failed waiting for {proc.name}: {e}",
                context={"pid": proc.pid, "error": str(e)},
                backend=self.name,
            ) from e
        logger.info(f"{proc.name} exited", extra={"backend": self.name, "returncode": returncode})
        return returncode
