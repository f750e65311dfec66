"""Data models for fakemachine."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fakemachine import constants


class BackendName(str, Enum):
    """Backend identifiers accepted by the selector."""

    AUTO = "auto"
    KVM = "kvm"
    UML = "uml"


class Image(BaseModel):
    """A raw disk image attached to the guest as a block device."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: Path = Field(description="Image file on the host")
    label: str = Field(
        pattern=constants.IMAGE_LABEL_PATTERN,
        description="Label; becomes the virtio serial on kvm",
    )
    index: int = Field(ge=0, description="Position among the machine's images")


class MountPoint(BaseModel):
    """A host directory shared into the guest."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    host_directory: Path = Field(description="Directory on the host")
    machine_directory: str = Field(description="Mount location inside the guest")
    label: str = Field(pattern=constants.MOUNT_LABEL_PATTERN, description="Tag identifying the share")
    static: bool = Field(default=False, description="Always mounted by the init script")


class MachineConfig(BaseModel):
    """Finished machine configuration handed to a backend.

    Read-only once a backend is constructed around it.

    Attributes:
        memory_mb: Guest memory in MB.
        cpus: Number of vCPUs (ignored by uml, which is single-CPU).
        show_boot: Mix guest console output into the host terminal.
        initrd_path: Initrd built by the caller.
        images: Disk images, ``index`` must equal list position.
        mounts: Host directories shared into the guest.
        backend: Requested backend name.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    memory_mb: int = Field(default=2048, ge=1, description="Guest memory in MB")
    cpus: int = Field(default=2, ge=1, description="Number of vCPUs")
    show_boot: bool = Field(default=False, description="Show guest boot output")
    initrd_path: Path = Field(default=Path(), description="Initrd image on the host")
    images: tuple[Image, ...] = ()
    mounts: tuple[MountPoint, ...] = ()
    backend: BackendName = BackendName.AUTO

    @model_validator(mode="after")
    def _check_images_and_mounts(self) -> MachineConfig:
        # Both backends derive the guest device name from the position on the
        # command line, while image_path() reads the image descriptor.
        for position, image in enumerate(self.images):
            if image.index != position:
                raise ValueError(f"image {image.label!r} has index {image.index} but is at position {position}")

        image_labels = [image.label for image in self.images]
        if len(set(image_labels)) != len(image_labels):
            raise ValueError(f"duplicate image labels: {image_labels}")

        mount_labels = [mount.label for mount in self.mounts]
        if len(set(mount_labels)) != len(mount_labels):
            raise ValueError(f"duplicate mount labels: {mount_labels}")

        return self

    def static_volumes(self) -> list[MountPoint]:
        """Mount points flagged static, in configured order."""
        return [mount for mount in self.mounts if mount.static]
