"""Tests for the exception hierarchy."""

import pytest

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


@pytest.mark.parametrize(
    "exc_cls",
    [
        BackendConfigError,
        BackendStateError,
        BackendUnsupportedError,
        LaunchError,
        ResourceSetupError,
        SupervisionError,
    ],
)
def test_all_derive_from_base(exc_cls: type[FakemachineError]) -> None:
    assert issubclass(exc_cls, FakemachineError)
    error = exc_cls("boom", backend="uml")
    assert str(error) == "uml: boom"


def test_without_backend() -> None:
    error = BackendConfigError("backend xen does not exist", context={"requested": "xen"})
    assert error.message == "backend xen does not exist"
    assert error.backend is None
    assert error.context == {"requested": "xen"}


def test_backend_recorded_in_context() -> None:
    error = LaunchError("failed", context={"binary_path": "/usr/bin/qemu"}, backend="kvm")
    assert error.context == {"binary_path": "/usr/bin/qemu", "backend": "kvm"}


def test_host_path_not_found_carries_path() -> None:
    error = HostPathNotFoundError("missing", path="/lib/modules/6.1.0", backend="kvm")
    assert issubclass(HostPathNotFoundError, FakemachineError)
    assert error.path == "/lib/modules/6.1.0"
    assert error.context["path"] == "/lib/modules/6.1.0"
    assert error.message == "kvm: missing"
