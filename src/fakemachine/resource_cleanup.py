"""Teardown of the processes and sockets a backend owns while a guest runs.

Both helpers log failures and report them through their return value;
they run on every exit path of start(), including while an earlier
exception is propagating.
"""

import signal
import socket

from fakemachine._logging import get_logger
from fakemachine.platform_utils import ChildProcess

logger = get_logger(__name__)


async def cleanup_process(
    proc: ChildProcess | None,
    backend: str,
    *,
    force: bool = False,
    term_timeout: float = 3.0,
    kill_timeout: float = 2.0,
) -> bool:
    """Stop and reap ``proc``.

    Sends SIGTERM and escalates to SIGKILL after ``term_timeout``; with
    ``force`` the SIGTERM stage is skipped. The child is always reaped so
    no zombie outlives start().

    Args:
        proc: Child to stop; None and already-exited children are no-ops
        backend: Owning backend name, for logs
        force: SIGKILL straight away
        term_timeout: Grace period after SIGTERM
        kill_timeout: How long to wait for the kernel to reap after SIGKILL

    Returns:
        True once the child is gone, False if it could not be confirmed
    """
    if proc is None or proc.returncode is not None:
        return True

    log_extra = {"backend": backend, "process": proc.name, "pid": proc.pid}
    stages = [(signal.SIGKILL, kill_timeout)]
    if not force:
        stages.insert(0, (signal.SIGTERM, term_timeout))

    try:
        for sig, timeout in stages:
            logger.debug(f"Sending {sig.name} to {proc.name}", extra=log_extra)
            await proc.send_signal(sig)
            try:
                returncode = await proc.wait_for(timeout)
            except TimeoutError:
                logger.warning(f"{proc.name} still running {timeout}s after {sig.name}", extra=log_extra)
                continue
            logger.debug(f"{proc.name} stopped", extra={**log_extra, "returncode": returncode})
            return True
    except ProcessLookupError:
        # Reaped between the returncode check and the signal
        return True
    except Exception as e:
        logger.error(
            f"Failed to stop {proc.name}",
            extra={**log_extra, "error": str(e), "error_type": type(e).__name__},
            exc_info=True,
        )
        return False

    logger.error(f"{proc.name} survived SIGKILL", extra=log_extra)
    return False


def close_socket(sock: socket.socket, name: str, backend: str) -> bool:
    """Close a socket pair endpoint; closing twice is harmless."""
    try:
        sock.close()
    except OSError as e:
        logger.error(f"Failed to close {name}", extra={"backend": backend, "error": str(e)})
        return False
    return True
