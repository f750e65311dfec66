"""Backend registry and selector.

Maps backend names to their implementation and hands out backends that
have passed their host capability probe.
"""

from collections.abc import Mapping
from types import MappingProxyType

from fakemachine._logging import get_logger
from fakemachine.backend import Backend, Spawner
from fakemachine.backend_kvm import KvmBackend
from fakemachine.backend_uml import UmlBackend
from fakemachine.exceptions import BackendConfigError, BackendUnsupportedError
from fakemachine.models import BackendName, MachineConfig
from fakemachine.settings import Settings

logger = get_logger(__name__)

BACKENDS: Mapping[str, type[Backend]] = MappingProxyType(
    {
        BackendName.KVM.value: KvmBackend,
        BackendName.UML.value: UmlBackend,
    }
)
"""Concrete backends by name."""

PREFERRED_BACKEND: BackendName = BackendName.KVM
"""What "auto" resolves to."""


def backend_names() -> list[str]:
    """All accepted backend names, "auto" first."""
    return [BackendName.AUTO.value, *BACKENDS]


def _backend_class(name: str | BackendName) -> type[Backend]:
    if isinstance(name, BackendName):
        name = name.value
    if name == BackendName.AUTO.value:
        name = PREFERRED_BACKEND.value
    try:
        return BACKENDS[name]
    except KeyError:
        raise BackendConfigError(
            f"backend {name} does not exist (choose from: {', '.join(backend_names())})",
            context={"requested": name},
        ) from None


async def resolve(
    name: str | BackendName,
    machine: MachineConfig,
    *,
    settings: Settings | None = None,
    spawn: Spawner | None = None,
) -> Backend:
    """Construct the named backend for ``machine`` and check the host supports it.

    Args:
        name: Backend name or "auto"
        machine: Configuration the backend is bound to
        settings: Host paths (defaults to environment)
        spawn: Process launcher override

    Returns:
        A supported, not yet started backend

    Raises:
        BackendConfigError: Unknown name (nothing is constructed)
        BackendUnsupportedError: Host probe failed; cause chained
    """
    requested = name.value if isinstance(name, BackendName) else name
    backend_cls = _backend_class(requested)
    backend = backend_cls(machine, settings=settings, spawn=spawn)

    supported, cause = await backend.supported()
    if not supported:
        raise BackendUnsupportedError(
            f"not supported: {cause}",
            context={"requested": requested, "cause": str(cause)},
            backend=backend.name,
        ) from cause

    logger.debug("Backend selected", extra={"requested": requested, "backend": backend.name})
    return backend


async def probe_backend(
    name: str | BackendName,
    *,
    settings: Settings | None = None,
) -> tuple[bool, Exception | None]:
    """Probe a backend without a real machine behind it.

    Raises:
        BackendConfigError: Unknown name
    """
    backend = _backend_class(name)(MachineConfig(), settings=settings)
    return await backend.supported()


async def available_backends(*, settings: Settings | None = None) -> dict[str, str | None]:
    """Support status of every concrete backend.

    Returns:
        Backend name mapped to None when supported, else the cause text
    """
    status: dict[str, str | None] = {}
    for name in BACKENDS:
        supported, cause = await probe_backend(name, settings=settings)
        status[name] = None if supported else str(cause)
    return status


async def backend_for_machine(
    machine: MachineConfig,
    *,
    settings: Settings | None = None,
    spawn: Spawner | None = None,
) -> Backend:
    """resolve() using the backend named in the machine configuration."""
    return await resolve(machine.backend, machine, settings=settings, spawn=spawn)
