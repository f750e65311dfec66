"""Hardware-accelerated backend: QEMU with KVM.

Boots the host kernel directly (-kernel/-initrd), shares directories over
virtio-9p and attaches images as virtio-blk devices whose serial is the
image label, so udev exposes them under /dev/disk/by-id/virtio-<label>.
"""

from pathlib import Path

from fakemachine import constants
from fakemachine._logging import get_logger
from fakemachine.backend import Backend
from fakemachine.exceptions import HostPathNotFoundError
from fakemachine.models import Image, MountPoint
from fakemachine.platform_utils import host_kernel_path
from fakemachine.resource_cleanup import cleanup_process
from fakemachine.system_probes import probe_kvm_device

logger = get_logger(__name__)


def qemu_option_value(value: object) -> str:
    """Escape a value for a QEMU comma-separated option list (',' becomes ',,')."""
    return str(value).replace(",", ",,")


class KvmBackend(Backend):
    """QEMU/KVM backend."""

    name = "kvm"

    async def supported(self) -> tuple[bool, Exception | None]:
        return await probe_kvm_device(self.settings.kvm_device)

    def image_path(self, image: Image) -> str:
        return f"{constants.KVM_DISK_BY_ID_PREFIX}{image.label}"

    def required_modules(self) -> list[str]:
        return list(constants.KVM_REQUIRED_MODULES)

    def init_modules(self) -> list[str]:
        return list(constants.KVM_INIT_MODULES)

    def mount_parameters(self, mount: MountPoint) -> tuple[str, list[str]]:
        return "9p", list(constants.KVM_9P_MOUNT_OPTIONS)

    def job_output_tty(self) -> str:
        # Job output goes to the virtio console (hvc0), leaving ttyS0 for boot
        # messages we discard. With show_boot, mix both on the main console.
        if self.machine.show_boot:
            return constants.KVM_BOOT_TTY
        return constants.KVM_JOB_TTY

    def kernel_cmdline(self) -> str:
        """Kernel command line passed via -append."""
        return " ".join(["console=ttyS0", constants.KERNEL_PANIC_POLICY, f"systemd.unit={constants.INIT_UNIT}"])

    def build_command(self, kernel_path: Path) -> list[str]:
        """Build the QEMU argv for this machine.

        Args:
            kernel_path: Host kernel image to boot

        Returns:
            Full argv, executable first
        """
        m = self.machine
        cmd = [
            str(self.settings.qemu_bin),
            "-cpu",
            "host",
            "-smp",
            str(m.cpus),
            "-m",
            str(m.memory_mb),
            "-enable-kvm",
            "-kernel",
            str(kernel_path),
            "-initrd",
            str(m.initrd_path),
            "-display",
            "none",
            "-no-reboot",
        ]

        if m.show_boot:
            # Serial port (console for firmware, kernel, systemd and the job)
            # wired straight to our stdio
            cmd.extend(
                [
                    "-chardev",
                    "stdio,id=for-ttyS0,signal=off",
                    "-serial",
                    "chardev:for-ttyS0",
                ]
            )
        else:
            cmd.extend(
                [
                    # virtio console bus
                    "-device",
                    "virtio-serial",
                    # ttyS0 stays the kernel console, output discarded
                    "-chardev",
                    "null,id=for-ttyS0",
                    "-serial",
                    "chardev:for-ttyS0",
                    # hvc0 carries the job's output to our stdio
                    "-chardev",
                    "stdio,id=for-hvc0,signal=off",
                    "-device",
                    "virtconsole,chardev=for-hvc0",
                ]
            )

        for mount in m.mounts:
            cmd.extend(
                [
                    "-virtfs",
                    f"local,mount_tag={qemu_option_value(mount.label)},"
                    f"path={qemu_option_value(mount.host_directory)},security_model=none",
                ]
            )

        for i, image in enumerate(m.images):
            cmd.extend(
                [
                    "-drive",
                    f"file={qemu_option_value(image.path)},if=none,format=raw,cache=unsafe,"
                    f"id=drive-virtio-disk{i}",
                    "-device",
                    f"virtio-blk-pci,drive=drive-virtio-disk{i},id=virtio-disk{i},"
                    f"serial={qemu_option_value(image.label)}",
                ]
            )

        cmd.extend(["-append", self.kernel_cmdline()])
        return cmd

    async def _run(self) -> int:
        kernel_path = host_kernel_path(self.settings.host_root)
        if not kernel_path.exists():
            raise HostPathNotFoundError(
                f"host kernel image not found at {kernel_path}",
                path=str(kernel_path),
                backend=self.name,
            )

        cmd = self.build_command(kernel_path)
        logger.info(
            "Booting guest",
            extra={
                "backend": self.name,
                "memory_mb": self.machine.memory_mb,
                "cpus": self.machine.cpus,
                "images": len(self.machine.images),
                "mounts": len(self.machine.mounts),
            },
        )

        qemu = await self._launch("qemu", cmd)
        try:
            return await self._wait(qemu)
        finally:
            # No-op after a normal exit; stops QEMU if we were cancelled
            await cleanup_process(qemu, self.name)
