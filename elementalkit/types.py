"""Core data types shared by the installation tooling."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from elementalkit.fs import FS
    from elementalkit.runner import Runner, Syscall

GPT = "gpt"
ESP = "esp"
BIOS = "bios_grub"
MSDOS = "msdos"
BOOT = "boot"

ACTIVE_IMG_NAME = "active"
PASSIVE_IMG_NAME = "passive"
RECOVERY_IMG_NAME = "recovery"


class ImageSourceKind(enum.Enum):
    """Where an image is created from."""

    NONE = "none"
    DIR = "dir"
    CHANNEL = "channel"
    DOCKER = "docker"
    FILE = "file"


@dataclass(frozen=True)
class ImageSource:
    """The source an image is created from, tagged by its kind."""

    value: str = ""
    kind: ImageSourceKind = ImageSourceKind.NONE

    @classmethod
    def empty(cls) -> ImageSource:
        return cls()

    @classmethod
    def docker(cls, source: str) -> ImageSource:
        return cls(source, ImageSourceKind.DOCKER)

    @classmethod
    def file(cls, source: str) -> ImageSource:
        return cls(source, ImageSourceKind.FILE)

    @classmethod
    def channel(cls, source: str) -> ImageSource:
        return cls(source, ImageSourceKind.CHANNEL)

    @classmethod
    def directory(cls, source: str) -> ImageSource:
        return cls(source, ImageSourceKind.DIR)

    def is_docker(self) -> bool:
        return self.kind is ImageSourceKind.DOCKER

    def is_channel(self) -> bool:
        return self.kind is ImageSourceKind.CHANNEL

    def is_dir(self) -> bool:
        return self.kind is ImageSourceKind.DIR

    def is_file(self) -> bool:
        return self.kind is ImageSourceKind.FILE


@dataclass
class Partition:
    """A partition with its commonly configurable values; size in MiB."""

    label: str = ""
    size: int = 0
    name: str = ""
    fs: str = ""
    flags: list[str] | None = None
    mount_point: str = ""
    path: str = ""
    disk: str = ""


class PartitionList(list):
    """A list of partitions searchable by name."""

    def get_by_name(self, name: str) -> Partition | None:
        return next((p for p in self if p.name == name), None)


@dataclass
class Image:
    """A file system image with its commonly configurable values; size in MiB."""

    file: str = ""
    label: str = ""
    size: int = 0
    fs: str = ""
    source: ImageSource = field(default_factory=ImageSource)
    mount_point: str = ""
    loop_device: str = ""


class ImageMap(dict):
    """Images keyed by role, with shortcuts for the well-known roles."""

    @property
    def active(self) -> Image | None:
        return self.get(ACTIVE_IMG_NAME)

    @active.setter
    def active(self, image: Image | None) -> None:
        self[ACTIVE_IMG_NAME] = image

    @property
    def passive(self) -> Image | None:
        return self.get(PASSIVE_IMG_NAME)

    @passive.setter
    def passive(self, image: Image | None) -> None:
        self[PASSIVE_IMG_NAME] = image

    @property
    def recovery(self) -> Image | None:
        return self.get(RECOVERY_IMG_NAME)

    @recovery.setter
    def recovery(self, image: Image | None) -> None:
        self[RECOVERY_IMG_NAME] = image


class SourceNotFound(Exception):
    """Raised when no source for install or upgrade can be found."""

    def __init__(self, message: str = "could not find source") -> None:
        super().__init__(message)


@runtime_checkable
class CloudInitRunner(Protocol):
    """Runs cloud-init stages from a set of paths or documents."""

    def run(self, stage: str, *args: str) -> None: ...

    def set_modifier(self, modifier: Any) -> None: ...


@runtime_checkable
class HTTPClient(Protocol):
    """Downloads a URL to a local destination."""

    def get_url(self, logger: logging.Logger, url: str, destination: str) -> None: ...


@runtime_checkable
class Mounter(Protocol):
    """Mounts and unmounts file systems."""

    def mount(self, source: str, target: str, fstype: str, options: list[str]) -> None: ...

    def unmount(self, target: str) -> None: ...


@dataclass
class Config:
    """Generic runtime configuration: the collaborators most operations use."""

    logger: logging.Logger | None = None
    fs: FS | None = None
    mounter: Mounter | None = None
    runner: Runner | None = None
    syscall: Syscall | None = None
    cloud_init_runner: CloudInitRunner | None = None
    luet: Any = None
    client: HTTPClient | None = None


@dataclass
class RunConfig(Config):
    """Everything needed for install, upgrade, reset and rebrand on a running system."""

    recovery_label: str = ""
    persistent_label: str = ""
    state_label: str = ""
    oem_label: str = ""
    system_label: str = ""
    active_label: str = ""
    passive_label: str = ""
    target: str = ""
    source: str = ""
    cloud_init: str = ""
    force_efi: bool = False
    force_gpt: bool = False
    part_layout: str = ""
    tty: str = ""
    no_format: bool = False
    force: bool = False
    strict: bool = False
    iso: str = ""
    docker_img: str = ""
    cosign: bool = False
    cosign_pub_key: str = ""
    no_verify: bool = False
    cloud_init_paths: str = ""
    grub_def_entry: str = ""
    reboot: bool = False
    power_off: bool = False
    channel_upgrades: bool = False
    upgrade_image: str = ""
    recovery_image: str = ""
    recovery_upgrade: bool = False
    img_size: int = 0
    directory: str = ""
    reset_persistent: bool = False
    eject_cd: bool = False
    part_table: str = ""
    boot_flag: str = ""
    grub_conf: str = ""
    partitions: PartitionList = field(default_factory=PartitionList)
    images: ImageMap = field(default_factory=ImageMap)


@dataclass
class BuildConfig(Config):
    """Configuration for building ISOs, raw images and artifacts."""

    label: str = ""