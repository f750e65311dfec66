"""fakemachine: run build and test jobs in a disposable virtual machine.

A backend turns a machine configuration into a running guest. The caller
resolves a backend the host supports, asks it how the guest will see its
disks, modules and consoles while building the initrd, then boots it.

Quick Start:
    ```python
    import asyncio
    from pathlib import Path

    from fakemachine import Image, MachineConfig, resolve

    machine = MachineConfig(
        memory_mb=512,
        cpus=2,
        initrd_path=Path("/tmp/initrd.img"),
        images=(Image(path=Path("/tmp/a.img"), label="root", index=0),),
    )

    async def main() -> int:
        backend = await resolve("auto", machine)
        root_device = backend.image_path(machine.images[0])  # bake into init script
        return await backend.start()

    exit_code = asyncio.run(main())
    ```

Backends:
    kvm  - QEMU with KVM acceleration (needs /dev/kvm)
    uml  - User-mode Linux with libslirp networking (no privileges needed)

Requirements:
    - Linux host
    - Python 3.12+
"""

from fakemachine.backend import Backend
from fakemachine.backend_kvm import KvmBackend
from fakemachine.backend_uml import UmlBackend
from fakemachine.exceptions import (
    BackendConfigError,
    BackendStateError,
    BackendUnsupportedError,
    FakemachineError,
    HostPathNotFoundError,
    LaunchError,
    ResourceSetupError,
    SupervisionError,
)
from fakemachine.models import BackendName, Image, MachineConfig, MountPoint
from fakemachine.registry import (
    BACKENDS,
    available_backends,
    backend_for_machine,
    backend_names,
    probe_backend,
    resolve,
)
from fakemachine.settings import Settings

__all__ = [
    "BACKENDS",
    "Backend",
    "BackendConfigError",
    "BackendName",
    "BackendStateError",
    "BackendUnsupportedError",
    "FakemachineError",
    "HostPathNotFoundError",
    "Image",
    "KvmBackend",
    "LaunchError",
    "MachineConfig",
    "MountPoint",
    "ResourceSetupError",
    "Settings",
    "SupervisionError",
    "UmlBackend",
    "available_backends",
    "backend_for_machine",
    "backend_names",
    "probe_backend",
    "resolve",
]

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fakemachine")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"
