"""Constants for guest wiring shared by the backends."""

from typing import Final

# ============================================================================
# Guest boot
# ============================================================================

INIT_UNIT: Final[str] = "fakemachine.service"
"""systemd unit the guest boots into (runs the job, then powers off)."""

KERNEL_PANIC_POLICY: Final[str] = "panic=-1"
"""Halt immediately on panic instead of rebooting (paired with -no-reboot)."""

DEFAULT_NETWORKD_MATCH: Final[str] = "e*"
"""systemd-networkd Name= glob for ethernet-like guest interfaces."""

IMAGE_LABEL_PATTERN: Final[str] = r"^[A-Za-z0-9_.-]{1,20}$"
"""Image labels become virtio-blk serials, which the guest sees truncated to 20 bytes."""

MOUNT_LABEL_PATTERN: Final[str] = r"^[A-Za-z0-9_.-]{1,31}$"
"""Mount labels become 9p mount tags (at most 31 bytes)."""

# ============================================================================
# Hardware-accelerated backend (QEMU + KVM)
# ============================================================================

KVM_DISK_BY_ID_PREFIX: Final[str] = "/dev/disk/by-id/virtio-"
"""udev by-id path prefix; virtio-blk devices are named after their serial."""

KVM_REQUIRED_MODULES: Final[tuple[str, ...]] = (
    "kernel/drivers/char/virtio_console.ko",
    "kernel/drivers/virtio/virtio.ko",
    "kernel/drivers/virtio/virtio_pci.ko",
    "kernel/net/9p/9pnet.ko",
    "kernel/drivers/virtio/virtio_ring.ko",
    "kernel/fs/9p/9p.ko",
    "kernel/net/9p/9pnet_virtio.ko",
    "kernel/fs/fscache/fscache.ko",
)
"""Modules packed into the initrd, in packing order."""

KVM_INIT_MODULES: Final[tuple[str, ...]] = ("virtio_pci", "virtio_console", "9pnet_virtio", "9p")
"""Modules the init script loads before mounting 9p shares."""

KVM_9P_MOUNT_OPTIONS: Final[tuple[str, ...]] = (
    "trans=virtio",
    "version=9p2000.L",
    "cache=loose",
    "msize=262144",
)

KVM_BOOT_TTY: Final[str] = "/dev/console"
KVM_JOB_TTY: Final[str] = "/dev/hvc0"

# ============================================================================
# Software backend (User-mode Linux + libslirp helper)
# ============================================================================

UML_DISK_BY_PATH_PREFIX: Final[str] = "/dev/disk/by-path/platform-uml-blkdev."
"""udev by-path prefix; ubd devices are enumerated by index."""

UML_GUEST_MODULES_DIR: Final[str] = "/lib/modules"
"""Guest directory the UML module tree is mounted over."""

UML_MODULES_LABEL: Final[str] = "modules"

UML_NETWORKD_MATCH: Final[str] = "vec*"

UML_BOOT_TTY: Final[str] = "/dev/tty0"
UML_JOB_TTY: Final[str] = "/dev/tty1"
