import io
import os
import subprocess
from unittest import mock

import pytest

from elementalkit.logs import new_buffer_logger, new_null_logger
from elementalkit.runner import RealRunner, RealSyscall


def test_real_runner_runs_pwd():
    out = RealRunner().run("pwd")
    assert out.decode().strip() == os.getcwd()


def test_logger_set_and_get_on_real_runner():
    runner = RealRunner()
    assert runner.logger is None
    logger = new_null_logger()
    runner.logger = logger
    assert runner.logger is logger


def test_init_cmd_builds_argument_vector():
    assert RealRunner().init_cmd("echo", "a", "b") == ["echo", "a", "b"]


def test_output_is_combined():
    out = RealRunner().run("sh", "-c", "echo out; echo err >&2")
    text = out.decode()
    assert "out" in text
    assert "err" in text


def test_non_zero_exit_raises_with_output():
    with pytest.raises(subprocess.CalledProcessError) as info:
        RealRunner().run("sh", "-c", "echo failing; exit 3")
    assert info.value.returncode == 3
    assert b"failing" in info.value.output


def test_logs_the_command_when_on_debug():
    buffer = io.StringIO()
    logger = new_buffer_logger(buffer)
    logger.setLevel("DEBUG")
    runner = RealRunner(logger=logger)
    with pytest.raises(OSError):
        runner.run("command", "with", "args")
    assert "command with args" in buffer.getvalue()


def test_chroot_calls_the_system():
    with mock.patch("os.chroot") as chroot:
        result = RealSyscall().chroot("/tmp/")
    assert result is None
    assert chroot.call_args_list == [mock.call("/tmp/")]


def test_chroot_failure_propagates():
    with mock.patch("os.chroot", side_effect=PermissionError(1, "not permitted")):
        with pytest.raises(PermissionError):
            RealSyscall().chroot("/tmp/")


def test_chdir_changes_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(os.getcwd())
    RealSyscall().chdir(str(tmp_path))
    assert os.path.realpath(os.getcwd()) == os.path.realpath(tmp_path)