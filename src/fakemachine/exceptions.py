"""Exception hierarchy for fakemachine.

All exceptions inherit from FakemachineError.

Hierarchy:
    FakemachineError (base)
    ├── BackendConfigError        ← unknown backend name
    ├── BackendUnsupportedError   ← host capability probe failed
    ├── HostPathNotFoundError     ← module tree / host kernel image missing
    ├── BackendStateError         ← start() called on a used instance
    ├── ResourceSetupError        ← socket pair creation failed
    ├── LaunchError               ← child process could not be started
    └── SupervisionError          ← waiting on a child failed

None of these are retried internally. A backend that raised from start()
must be discarded; retrying means constructing a fresh one.
"""

from __future__ import annotations

from typing import Any


class FakemachineError(Exception):
    """Base exception for all fakemachine errors with structured context.

    Attributes:
        message: Human-readable error message, prefixed with the backend name
            when one is known
        context: Dictionary of structured error context for logging/debugging
        backend: Name of the backend the error relates to (None if unknown)
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        *,
        backend: str | None = None,
    ):
        if backend is not None:
            message = f"{backend}: {message}"
        super().__init__(message)
        self.message = message
        self.backend = backend
        self.context = context or {}
        if backend is not None:
            self.context.setdefault("backend", backend)


class BackendConfigError(FakemachineError):
    """Requested backend name is not recognized.

    Raised by the selector before anything is constructed.
    """


class BackendUnsupportedError(FakemachineError):
    """Chosen backend cannot run on this host.

    The underlying host-level cause (missing device node, missing binary,
    missing module tree) is chained as __cause__ and kept in context["cause"].
    """


class HostPathNotFoundError(FakemachineError):
    """A host path the backend depends on does not exist.

    Attributes:
        path: The path that was looked up
    """

    def __init__(
        self,
        message: str,
        path: str,
        context: dict[str, Any] | None = None,
        *,
        backend: str | None = None,
    ):
        ctx = context or {}
        ctx["path"] = path
        super().__init__(message, ctx, backend=backend)
        self.path = path


class BackendStateError(FakemachineError):
    """Backend instance was already started.

    Instances are single-use; construct a new one against the same
    configuration to run again.
    """


class ResourceSetupError(FakemachineError):
    """Could not create the local socket pair used for guest networking."""


class LaunchError(FakemachineError):
    """A child process (emulator, guest kernel or helper) failed to start."""


class SupervisionError(FakemachineError):
    """Waiting on a running child process failed."""
