"""General helpers for installing and maintaining a system."""

from __future__ import annotations

import io
import logging
import os
import shutil
import subprocess
import time
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from dotenv import dotenv_values
from dotenv.parser import parse_stream

from elementalkit.fs import DIR_PERM, FS, mkdir_all, temp_dir
from elementalkit.partitions import get_all_partitions
from elementalkit.types import Partition

if TYPE_CHECKING:
    from elementalkit.runner import Runner
    from elementalkit.types import RunConfig

# Root under which sysfs, udev data and the mount table are read.
SYS_ROOT = "/"

_BASE_DIRS = ("/run", "/sys", "/proc", "/dev", "/tmp", "/boot", "/usr/local", "/oem")
_UPGRADE_DIR = "elemental-upgrade"


def command_exists(command: str) -> bool:
    """Whether the command can be found on the PATH."""
    return shutil.which(command) is not None


def _run_output(runner: Runner, command: str, *args: str) -> bytes:
    try:
        return runner.run(command, *args)
    except subprocess.CalledProcessError as exc:
        return exc.output or b""
    except Exception:
        return b""


def booted_from(runner: Runner, label: str) -> bool:
    """Whether the kernel command line mentions the given label."""
    out = _run_output(runner, "cat", "/proc/cmdline")
    return label in out.decode(errors="replace")


def get_device_by_label(runner: Runner, label: str, attempts: int) -> str:
    """The device path of the partition with the given label."""
    return get_full_device_by_label(runner, label, attempts).path


def get_full_device_by_label(runner: Runner, label: str, attempts: int) -> Partition:
    """The partition with the given label, trying once a second for ``attempts`` times."""
    for _ in range(attempts):
        _run_output(runner, "udevadm", "settle")
        for part in get_all_partitions(SYS_ROOT):
            if part.label == label:
                return part
        time.sleep(1)
    raise LookupError("no device found")


def copy_file(fs: FS, source: str, target: str) -> None:
    """Copy a file within the given file system."""
    with fs.open(source) as src, fs.create(target) as dst:
        shutil.copyfileobj(src, dst)


def create_dir_structure(fs: FS, target: str) -> None:
    """Create the essential top level directories of a root tree."""
    for directory in _BASE_DIRS:
        mkdir_all(fs, os.path.join(target, directory.lstrip("/")), DIR_PERM)


def sync_data(fs: FS | None, source: str, target: str, *excludes: str) -> None:
    """Rsync the contents of source into target; both must exist."""
    if not source.endswith("/"):
        source += "/"
    if not target.endswith("/"):
        target += "/"
    if fs is not None:
        source = fs.raw_path(source)
        target = fs.raw_path(target)
        # raw_path normalises away the trailing slash, which rsync relies on.
        source = source if source.endswith("/") else source + "/"
        target = target if target.endswith("/") else target + "/"

    cmd = ["rsync", "--archive", "--xattrs", "--acls"]
    cmd += [f"--exclude={pattern}" for pattern in excludes]
    cmd += [source, target]
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise RuntimeError(f"{exc}: ") from exc
    if proc.returncode != 0:
        raise RuntimeError(
            f"exit status {proc.returncode}: {proc.stderr}\n{proc.stdout}"
        )


def reboot(runner: Runner, delay: float) -> None:
    """Reboot the system after ``delay`` seconds."""
    time.sleep(delay)
    runner.run("reboot", "-f")


def shutdown(runner: Runner, delay: float) -> None:
    """Power the system off after ``delay`` seconds."""
    time.sleep(delay)
    runner.run("poweroff", "-f")


def cosign_verify(
    fs: FS, runner: Runner, image: str, public_key: str, debug: bool
) -> str:
    """Verify an image signature; without a public key a keyless check is made."""
    args: list[str] = []
    if debug:
        args.append("-d=true")
    experimental = not public_key
    if experimental:
        os.environ["COSIGN_EXPERIMENTAL"] = "1"
    else:
        args += ["-key", public_key]
    args.append(image)

    try:
        # Each run gets its own TUF dir so concurrent runs do not collide.
        tuf_dir = temp_dir(fs, "", "cosign-tuf-")
        os.environ["TUF_ROOT"] = tuf_dir
        try:
            return runner.run("cosign", *args).decode(errors="replace")
        finally:
            os.environ.pop("TUF_ROOT", None)
            try:
                fs.remove_all(tuf_dir)
            except OSError:
                pass
    finally:
        if experimental:
            os.environ.pop("COSIGN_EXPERIMENTAL", None)


def create_squashfs(
    runner: Runner,
    logger: logging.Logger,
    source: str,
    destination: str,
    options: list[str],
) -> None:
    """Create a squashfs image at destination from source with extra options."""
    args = [source, destination, *options]
    logger.debug("Running command: mksquashfs with args: %s", args)
    try:
        runner.run("mksquashfs", *args)
    except Exception as exc:
        output = getattr(exc, "output", b"")
        logger.debug("Error running squashfs creation, stdout: %s", output)
        logger.error(
            "Error while creating squashfs from %s to %s: %s", source, destination, exc
        )
        raise


def load_env_file(fs: FS, file: str) -> dict[str, str]:
    """Parse an env file into a mapping; raise ValueError on malformed lines."""
    with fs.open(file) as f:
        text = f.read().decode()
    for binding in parse_stream(io.StringIO(text)):
        if binding.error:
            raise ValueError(f"unexpected statement in env file: {binding.original.string!r}")
        if binding.key is not None and binding.value is None:
            raise ValueError(f"missing value for key {binding.key!r} in env file")
    values = dotenv_values(stream=io.StringIO(text), interpolate=True)
    return {key: value or "" for key, value in values.items()}


def get_upgrade_temp_dir(config: RunConfig) -> str:
    """Directory for upgrade scratch files: $TMPDIR, the mounted persistent partition, or /tmp."""
    tmpdir = os.environ.get("TMPDIR", "")
    if tmpdir:
        return os.path.join(tmpdir, _UPGRADE_DIR)
    try:
        persistent = get_full_device_by_label(config.runner, config.persistent_label, 5)
    except (LookupError, OSError):
        persistent = None
    if persistent is not None and persistent.mount_point:
        return os.path.join(persistent.mount_point, _UPGRADE_DIR)
    return os.path.join("/", "tmp", _UPGRADE_DIR)


def _url_scheme(url: str) -> str:
    """The scheme of a URL, with the strictness of a URI reference parser."""
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in url):
        raise ValueError(f"parse {url!r}: invalid control character in URL")
    scheme, rest = "", url
    for i, c in enumerate(url):
        if c.isascii() and c.isalpha():
            continue
        if c.isascii() and (c.isdigit() or c in "+-."):
            if i == 0:
                break
            continue
        if c == ":":
            if i == 0:
                raise ValueError(f"parse {url!r}: missing protocol scheme")
            scheme, rest = url[:i].lower(), url[i + 1 :]
        break
    rest = rest.split("#", 1)[0].split("?", 1)[0]
    if not scheme and not rest.startswith("/"):
        if ":" in rest.split("/", 1)[0]:
            raise ValueError(
                f"parse {url!r}: first path segment in URL cannot contain colon"
            )
    return scheme


def is_local_url(url: str) -> bool:
    """Whether the URL has no scheme or the 'file' scheme; ValueError if unparsable."""
    return _url_scheme(url) in ("", "file")


def get_source(config: RunConfig, source: str, destination: str) -> None:
    """Copy a local path or download a remote URL to destination."""
    try:
        local = is_local_url(source)
    except ValueError:
        config.logger.error("Not a valid url: %s", source)
        raise
    mkdir_all(config.fs, os.path.dirname(destination), DIR_PERM)
    if local:
        copy_file(config.fs, urlparse(source).path, destination)
    else:
        config.client.get_url(config.logger, source, destination)