"""Host paths and runtime configuration from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Host environment the backends depend on.

    All settings can be overridden via environment variables with FAKEMACHINE_ prefix.
    Example: FAKEMACHINE_QEMU_BIN=/opt/qemu/bin/qemu-system-x86_64
    """

    model_config = SettingsConfigDict(
        env_prefix="FAKEMACHINE_",
        extra="ignore",
    )

    # Root under which /lib, /usr/lib/modules and /boot are looked up
    host_root: Path = Path("/")

    # Hardware-accelerated backend
    kvm_device: Path = Path("/dev/kvm")
    qemu_bin: Path = Path("/usr/bin/qemu-system-x86_64")

    # Software backend
    uml_kernel_path: Path = Path("/usr/bin/linux.uml")
    uml_modules_dir: Path = Path("/usr/lib/uml/modules")
    slirp_helper_path: Path = Path("/usr/bin/libslirp-helper")
