"""Installing GRUB to a target device and setting its persistent variables."""

from __future__ import annotations

import platform
import posixpath
from typing import TYPE_CHECKING

from elementalkit.fs import exists, is_dir

if TYPE_CHECKING:
    from elementalkit.types import RunConfig

EFI_DEVICE = "/sys/firmware/efi"
EFI_DIR = "/boot/efi"
STATE_PART_NAME = "state"


def _join(*parts: str) -> str:
    """Join path parts and clean the result; absolute later parts do not reset it."""
    joined = "/".join(part for part in parts if part)
    return posixpath.normpath(joined) if joined else ""


def _grub_arch() -> str:
    machine = platform.machine().lower()
    return "arm64" if machine in ("arm64", "aarch64") else "x86_64"


def _quiet_exists(fs, path: str) -> bool:
    try:
        return exists(fs, path)
    except OSError:
        return False


def _quiet_is_dir(fs, path: str) -> bool:
    try:
        return is_dir(fs, path)
    except OSError:
        return False


class Grub:
    """Installs GRUB using the collaborators of a run configuration."""

    def __init__(self, config: RunConfig) -> None:
        self.config = config

    def _current_tty(self) -> str:
        out = self.config.runner.run("tty")
        return out.decode(errors="replace").strip().removeprefix("/dev/")

    def install(self) -> None:
        """Install GRUB to the target, copy its config and add any extra TTY to it."""
        cfg = self.config
        logger = cfg.logger
        arch = _grub_arch()
        grub_args: list[str] = []

        logger.info("Installing GRUB..")
        tty = cfg.tty or self._current_tty()

        if cfg.force_efi or _quiet_exists(cfg.fs, EFI_DEVICE):
            logger.info("Installing grub efi for arch %s", arch)
            grub_args += [f"--target={arch}-efi", f"--efi-directory={EFI_DIR}"]

        state_part = cfg.partitions.get_by_name(STATE_PART_NAME)
        active_img = cfg.images.active
        if state_part is None or active_img is None:
            logger.error("State partition and/or Active image configuration is missing")
            raise RuntimeError("Failed setting grub arguments")

        grub_args += [
            f"--root-directory={active_img.mount_point}",
            f"--boot-directory={state_part.mount_point}",
            "--removable",
            cfg.target,
        ]

        logger.debug("Running grub with the following args: [%s]", " ".join(grub_args))
        try:
            cfg.runner.run("grub2-install", *grub_args)
        except Exception as exc:
            output = getattr(exc, "output", b"") or b""
            logger.error("%s", output.decode(errors="replace"))
            raise

        grub_dir = ""
        for candidate in ("grub", "grub2"):
            path = _join(state_part.mount_point, candidate)
            if _quiet_is_dir(cfg.fs, path):
                grub_dir = path
        logger.info("Found grub config dir %s", grub_dir)

        conf_path = _join(active_img.mount_point, cfg.grub_conf)
        try:
            grub_conf = cfg.fs.read_file(conf_path).decode(errors="replace")
        except OSError:
            logger.error("Failed reading grub config file: %s", conf_path)
            raise

        target_path = f"{grub_dir}/grub.cfg"
        with cfg.fs.create(target_path) as target:
            tty_exists = _quiet_exists(cfg.fs, f"/dev/{tty}")
            if tty_exists and tty not in ("", "console", "tty1"):
                logger.info("Adding extra tty (%s) to grub.cfg", tty)
                content = grub_conf.replace("console=tty1", f"console=tty1 console={tty}")
            else:
                content = grub_conf
            logger.info("Copying grub contents from %s to %s", cfg.grub_conf, target_path)
            target.write(content.encode())

        logger.info("Grub install to device %s complete", cfg.target)

    def set_persistent_variables(self, grub_env_file: str, variables: dict[str, str]) -> None:
        """Store each key/value pair as a GRUB environment variable in the given file."""
        logger = self.config.logger
        for key, value in variables.items():
            logger.debug(
                "Running grub2-editenv with params: %s set %s=%s", grub_env_file, key, value
            )
            try:
                self.config.runner.run("grub2-editenv", grub_env_file, "set", f"{key}={value}")
            except Exception as exc:
                output = getattr(exc, "output", b"") or b""
                logger.error(
                    "Failed setting grub variables: %s", output.decode(errors="replace")
                )
                raise