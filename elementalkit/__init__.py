"""Building blocks for installing and upgrading immutable OS images."""

__version__ = "0.1.0"

__all__ = [
    "chroot",
    "cleanstack",
    "common",
    "fs",
    "grub",
    "logs",
    "luet",
    "partitions",
    "runner",
    "runstage",
    "types",
]