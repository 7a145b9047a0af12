"""Running commands inside a chroot with bind-mounted system directories."""

from __future__ import annotations

import os
import subprocess
from typing import TYPE_CHECKING, Callable

from elementalkit.fs import DIR_PERM, mkdir_all

if TYPE_CHECKING:
    from elementalkit.types import RunConfig

_DEFAULT_MOUNTS = ("/dev", "/dev/pts", "/proc", "/sys")


class Chroot:
    """A chroot environment at ``path``, prepared with bind mounts."""

    def __init__(self, path: str, config: RunConfig) -> None:
        self.path = path
        self.config = config
        self.default_mounts = list(_DEFAULT_MOUNTS)
        self.extra_mounts: dict[str, str] = {}
        self.active_mounts: list[str] = []

    def set_extra_mounts(self, extra_mounts: dict[str, str]) -> None:
        """Extra bind mounts: keys are host paths, values are paths inside the chroot."""
        self.extra_mounts = extra_mounts

    def _mount_point(self, inner: str) -> str:
        return self.path.removesuffix("/") + inner

    def _bind(self, source: str, inner: str) -> None:
        mount_point = self._mount_point(inner)
        mkdir_all(self.config.fs, mount_point, DIR_PERM)
        self.config.mounter.mount(source, mount_point, "bind", ["bind"])
        self.active_mounts.append(mount_point)

    def prepare(self) -> None:
        """Bind mount the default and extra mounts; undo them all on failure."""
        if self.active_mounts:
            raise RuntimeError("There are already active mountpoints for this instance")
        try:
            for mnt in self.default_mounts:
                self._bind(mnt, mnt)
            for source in sorted(self.extra_mounts):
                self._bind(source, self.extra_mounts[source])
        except Exception:
            try:
                self.close()
            except RuntimeError:
                pass
            raise

    def close(self) -> None:
        """Unmount every active mount in reverse order."""
        logger = self.config.logger
        failures: list[str] = []
        while self.active_mounts:
            current = self.active_mounts.pop()
            logger.debug("Unmounting %s from chroot", current)
            try:
                self.config.mounter.unmount(current)
            except Exception as exc:
                logger.error("Error unmounting %s: %s", current, exc)
                failures.append(current)
        if failures:
            self.active_mounts = failures
            raise RuntimeError(
                "failed closing chroot environment. Unmount failures: "
                f"[{' '.join(failures)}]"
            )

    def __enter__(self) -> Chroot:
        self.prepare()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _enter_and_call(self, callback: Callable[[], None], old_root: int) -> None:
        logger = self.config.logger
        syscall = self.config.syscall
        try:
            syscall.chdir(self.path)
        except Exception as exc:
            logger.error("Cant chdir %s: %s", self.path, exc)
            raise
        try:
            syscall.chroot(self.path)
        except Exception as exc:
            logger.error("Cant chroot %s: %s", self.path, exc)
            raise

        error: BaseException | None = None
        try:
            callback()
        except Exception as exc:
            error = exc
        try:
            os.fchdir(old_root)
        except OSError as exc:
            logger.error("Cant change to old root dir")
            error = error or exc
        else:
            try:
                syscall.chroot(".")
            except Exception as exc:
                logger.error("Cant chroot back to old root")
                error = error or exc
        if error is not None:
            raise error

    def run_callback(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` inside the chroot, then return to the old root."""
        logger = self.config.logger
        try:
            old_root = os.open("/", os.O_RDONLY)
        except OSError:
            logger.error("Cant open /")
            raise
        try:
            owns_mounts = not self.active_mounts
            if owns_mounts:
                try:
                    self.prepare()
                except Exception:
                    logger.error("Cant mount default mounts")
                    raise
            error: BaseException | None = None
            try:
                self._enter_and_call(callback, old_root)
            except Exception as exc:
                error = exc
            if owns_mounts:
                try:
                    self.close()
                except RuntimeError as exc:
                    error = error or exc
            if error is not None:
                raise error
        finally:
            os.close(old_root)

    def run(self, command: str, *args: str) -> bytes:
        """Run a command inside the chroot and return its combined output."""
        output = b""

        def call() -> None:
            nonlocal output
            try:
                output = self.config.runner.run(command, *args)
            except subprocess.CalledProcessError as exc:
                output = exc.output or b""
                raise

        try:
            self.run_callback(call)
        except Exception as exc:
            logger = self.config.logger
            logger.error(
                "Cant run command %s with args %s on chroot: %s", command, list(args), exc
            )
            logger.debug("Output from command: %s", output)
            raise
        return output