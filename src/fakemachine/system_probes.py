"""Host capability probes for the backends.

Probes never raise: they return ``(supported, cause)`` where cause is the
host-level exception explaining why the capability is missing.
"""

from pathlib import Path

import aiofiles.os

from fakemachine._logging import get_logger
from fakemachine.platform_utils import HostOS, detect_host_os

logger = get_logger(__name__)


async def probe_linux_host() -> tuple[bool, Exception | None]:
    """Both backends need a Linux host."""
    host_os = detect_host_os()
    if host_os != HostOS.LINUX:
        return False, OSError(f"unsupported host OS: {host_os.name.lower()}")
    return True, None


async def probe_path(path: Path) -> tuple[bool, Exception | None]:
    """Check that a host path exists (stat succeeds)."""
    try:
        await aiofiles.os.stat(path)
    except OSError as e:
        logger.debug("Host path probe failed", extra={"path": str(path), "error": str(e)})
        return False, e
    return True, None


async def probe_kvm_device(kvm_device: Path) -> tuple[bool, Exception | None]:
    """Check the host exposes the KVM device node."""
    supported, cause = await probe_linux_host()
    if not supported:
        return supported, cause
    return await probe_path(kvm_device)


async def probe_executable(path: Path, missing_message: str) -> tuple[bool, Exception | None]:
    """Check a binary is installed.

    Args:
        path: Binary location
        missing_message: Cause text shown to the user when it is absent
    """
    supported, cause = await probe_path(path)
    if not supported:
        error = FileNotFoundError(missing_message)
        error.__cause__ = cause
        return False, error
    return True, None
