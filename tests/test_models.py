"""Unit tests for the machine configuration models."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from fakemachine.models import BackendName, Image, MachineConfig, MountPoint


class TestMachineConfig:
    """Tests for MachineConfig validation."""

    def test_defaults(self) -> None:
        """MachineConfig has sensible defaults."""
        config = MachineConfig()
        assert config.memory_mb == 2048
        assert config.cpus == 2
        assert config.show_boot is False
        assert config.images == ()
        assert config.mounts == ()
        assert config.backend is BackendName.AUTO

    def test_frozen(self, machine: MachineConfig) -> None:
        """Configuration can't change under a constructed backend."""
        with pytest.raises(ValidationError):
            machine.memory_mb = 1024  # type: ignore[misc]

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            MachineConfig(unknown_field="value")  # type: ignore[call-arg]

    @pytest.mark.parametrize("field", ["memory_mb", "cpus"])
    def test_resources_must_be_positive(self, field: str) -> None:
        with pytest.raises(ValidationError):
            MachineConfig(**{field: 0})

    def test_backend_from_string(self) -> None:
        assert MachineConfig(backend="uml").backend is BackendName.UML  # type: ignore[arg-type]

    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ValidationError):
            MachineConfig(backend="xen")  # type: ignore[arg-type]

    def test_image_index_must_match_position(self) -> None:
        """Device names follow position, so a mismatched index would break image_path()."""
        images = (
            Image(path=Path("/tmp/a.img"), label="a", index=0),
            Image(path=Path("/tmp/b.img"), label="b", index=2),
        )
        with pytest.raises(ValidationError, match="index 2 but is at position 1"):
            MachineConfig(images=images)

    def test_duplicate_image_labels_rejected(self) -> None:
        images = (
            Image(path=Path("/tmp/a.img"), label="disk", index=0),
            Image(path=Path("/tmp/b.img"), label="disk", index=1),
        )
        with pytest.raises(ValidationError, match="duplicate image labels"):
            MachineConfig(images=images)

    def test_duplicate_mount_labels_rejected(self) -> None:
        mounts = (
            MountPoint(host_directory=Path("/a"), machine_directory="/a", label="share"),
            MountPoint(host_directory=Path("/b"), machine_directory="/b", label="share"),
        )
        with pytest.raises(ValidationError, match="duplicate mount labels"):
            MachineConfig(mounts=mounts)


class TestStaticVolumes:
    """Tests for MachineConfig.static_volumes()."""

    def test_only_static_mounts(self, machine: MachineConfig) -> None:
        assert [m.label for m in machine.static_volumes()] == ["scratch"]

    def test_keeps_configured_order(self) -> None:
        mounts = tuple(
            MountPoint(host_directory=Path(f"/{name}"), machine_directory=f"/{name}", label=name, static=static)
            for name, static in [("c", True), ("a", False), ("b", True)]
        )
        assert [m.label for m in MachineConfig(mounts=mounts).static_volumes()] == ["c", "b"]

    def test_none_configured(self) -> None:
        assert MachineConfig().static_volumes() == []


class TestImage:
    def test_negative_index_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Image(path=Path("/tmp/a.img"), label="a", index=-1)

    def test_empty_label_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Image(path=Path("/tmp/a.img"), label="", index=0)

    @pytest.mark.parametrize("label", ["root,id=evil", "a" * 21, "has space", "root/1", "dïsk"])
    def test_label_must_survive_as_virtio_serial(self, label: str) -> None:
        with pytest.raises(ValidationError):
            Image(path=Path("/tmp/a.img"), label=label, index=0)

    def test_twenty_byte_label_accepted(self) -> None:
        assert Image(path=Path("/tmp/a.img"), label="a" * 20, index=0).label == "a" * 20


class TestMountPoint:
    @pytest.mark.parametrize("label", ["", "src,readonly", "a" * 32, "my share"])
    def test_label_must_be_a_valid_mount_tag(self, label: str) -> None:
        with pytest.raises(ValidationError):
            MountPoint(host_directory=Path("/src"), machine_directory="/src", label=label)

    def test_31_byte_label_accepted(self) -> None:
        mount = MountPoint(host_directory=Path("/src"), machine_directory="/src", label="m" * 31)
        assert mount.label == "m" * 31
