"""Software backend: User-mode Linux with a libslirp network helper.

The guest kernel runs as an ordinary host process, so no virtualization
device or privileges are needed. Networking goes through libslirp-helper,
connected to the guest's vector network driver over an AF_UNIX datagram
socket pair:

    libslirp-helper --fd=A  <── socketpair ──>  linux.uml vec0:transport=fd,fd=B

Both endpoints belong to start(): they are closed, and the helper killed,
before start() returns on any path.
"""

import contextlib
import socket
from pathlib import Path

from fakemachine import constants
from fakemachine._logging import get_logger
from fakemachine.backend import Backend
from fakemachine.exceptions import HostPathNotFoundError, ResourceSetupError
from fakemachine.models import Image, MountPoint
from fakemachine.resource_cleanup import cleanup_process, close_socket
from fakemachine.system_probes import probe_executable

logger = get_logger(__name__)


class UmlBackend(Backend):
    """User-mode Linux backend."""

    name = "uml"

    async def supported(self) -> tuple[bool, Exception | None]:
        supported, cause = await probe_executable(self.settings.uml_kernel_path, "user-mode-linux not installed")
        if not supported:
            return supported, cause
        return await probe_executable(self.settings.slirp_helper_path, "libslirp-helper not installed")

    def image_path(self, image: Image) -> str:
        return f"{constants.UML_DISK_BY_PATH_PREFIX}{image.index}"

    def required_modules(self) -> list[str]:
        # Drivers the initrd needs are built into the UML kernel
        return []

    def kernel_modules_dir(self) -> Path:
        moddir = self.settings.uml_modules_dir
        if not moddir.is_dir():
            raise HostPathNotFoundError(
                f"user-mode-linux modules not found at {moddir}",
                path=str(moddir),
                backend=self.name,
            )
        return moddir

    def static_volumes(self) -> list[MountPoint]:
        # The UML module tree is mounted over the guest's /lib/modules,
        # hiding the host modules copied in with the base system
        modules = MountPoint(
            host_directory=self.settings.uml_modules_dir,
            machine_directory=constants.UML_GUEST_MODULES_DIR,
            label=constants.UML_MODULES_LABEL,
            static=True,
        )
        return [*super().static_volumes(), modules]

    def mount_parameters(self, mount: MountPoint) -> tuple[str, list[str]]:
        return "hostfs", [str(mount.host_directory)]

    def networkd_match(self) -> str:
        return constants.UML_NETWORKD_MATCH

    def job_output_tty(self) -> str:
        if self.machine.show_boot:
            return constants.UML_BOOT_TTY
        return constants.UML_JOB_TTY

    def build_helper_command(self, helper_fd: int) -> list[str]:
        """argv for libslirp-helper bound to ``helper_fd``."""
        return [str(self.settings.slirp_helper_path), f"--fd={helper_fd}", "--exit-with-parent"]

    def build_command(self, guest_fd: int) -> list[str]:
        """Build the UML kernel argv for this machine.

        Args:
            guest_fd: Descriptor number of the guest's socket pair endpoint,
                as inherited by the child

        Returns:
            Full argv, executable first
        """
        m = self.machine
        if m.cpus > 1:
            logger.debug("user-mode-linux runs a single vCPU", extra={"backend": self.name, "cpus": m.cpus})

        cmd = [
            str(self.settings.uml_kernel_path),
            f"mem={m.memory_mb}M",
            f"initrd={m.initrd_path}",
            constants.KERNEL_PANIC_POLICY,
            "nosplash",
            f"systemd.unit={constants.INIT_UNIT}",
            "console=tty0",
            f"vec0:transport=fd,fd={guest_fd},vec=0",
        ]

        if m.show_boot:
            # tty0 on our stdin/stdout, no other consoles
            cmd.extend(["con0=fd:0,fd:1", "con=none"])
        else:
            # Hide kernel messages; tty1 (job output) on our stdio, tty0 discarded
            cmd.extend(["quiet", "con1=fd:0,fd:1", "con0=null", "con=none"])

        for i, image in enumerate(m.images):
            cmd.append(f"ubd{i}={image.path}")

        return cmd

    async def _run(self) -> int:
        try:
            helper_sock, guest_sock = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
        except OSError as e:
            raise ResourceSetupError(
                f"failed to create network socket pair: {e}",
                context={"error": str(e)},
                backend=self.name,
            ) from e

        async with contextlib.AsyncExitStack() as stack:
            # Unwinds in reverse: guest stopped, helper killed, sockets closed
            stack.callback(close_socket, guest_sock, "guest socket", self.name)
            stack.callback(close_socket, helper_sock, "helper socket", self.name)

            # The guest's vec0 argument names a peer that must already be open,
            # so the helper is always launched first
            helper_fd = helper_sock.fileno()
            helper = await self._launch(
                "libslirp-helper",
                self.build_helper_command(helper_fd),
                pass_fds=(helper_fd,),
            )
            stack.push_async_callback(cleanup_process, helper, self.name, force=True)

            guest_fd = guest_sock.fileno()
            logger.info(
                "Booting guest",
                extra={
                    "backend": self.name,
                    "memory_mb": self.machine.memory_mb,
                    "images": len(self.machine.images),
                    "helper_pid": helper.pid,
                },
            )
            guest = await self._launch("linux.uml", self.build_command(guest_fd), pass_fds=(guest_fd,))
            stack.push_async_callback(cleanup_process, guest, self.name)

            return await self._wait(guest)
