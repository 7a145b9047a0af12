"""Running external commands and the system calls used to enter a chroot."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class Runner(Protocol):
    """Runs external commands and returns their combined output."""

    logger: logging.Logger | None

    def run(self, command: str, *args: str) -> bytes: ...


@dataclass
class RealRunner:
    """Runs commands on the host with stdout and stderr combined."""

    logger: logging.Logger | None = None

    def init_cmd(self, command: str, *args: str) -> list[str]:
        """The argument vector for a command."""
        return [command, *args]

    def run_cmd(self, cmd: list[str]) -> bytes:
        """Run an argument vector; raise CalledProcessError on a non-zero exit."""
        proc = subprocess.run(
            cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=False
        )
        if proc.returncode != 0:
            raise subprocess.CalledProcessError(proc.returncode, cmd, output=proc.stdout)
        return proc.stdout

    def run(self, command: str, *args: str) -> bytes:
        cmd = self.init_cmd(command, *args)
        if self.logger is not None:
            self.logger.debug("Running cmd: '%s %s'", command, " ".join(args))
        return self.run_cmd(cmd)


@runtime_checkable
class Syscall(Protocol):
    """The system calls needed to switch into and out of a chroot."""

    def chroot(self, path: str) -> None: ...

    def chdir(self, path: str) -> None: ...


class RealSyscall:
    """System calls performed on the host."""

    def chroot(self, path: str) -> None:
        os.chroot(path)

    def chdir(self, path: str) -> None:
        os.chdir(path)