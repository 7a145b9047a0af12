import io
import logging

import pytest

from elementalkit.cleanstack import MultiError
from elementalkit.fs import FS
from elementalkit.logs import new_buffer_logger
from elementalkit.runstage import (
    CLOUD_INIT_PATHS,
    DOT_NOTATION_MODIFIER,
    CmdlineYAMLError,
    run_stage,
)
from elementalkit.types import RunConfig

IGNORED = "Some errors found but were ignored"


class FakeCloudInit:
    def __init__(self, fail=None):
        self.calls = []
        self.modifier = None
        self.fail = fail or (lambda stage, args, modifier: None)

    def run(self, stage, *args):
        self.calls.append((stage, args, self.modifier))
        exc = self.fail(stage, args, self.modifier)
        if exc is not None:
            raise exc

    def set_modifier(self, modifier):
        self.modifier = modifier


@pytest.fixture
def buf():
    return io.StringIO()


@pytest.fixture
def fs(tmp_path):
    return FS(tmp_path)


def make_config(fs, buf, runner):
    logger = new_buffer_logger(buf)
    logger.setLevel(logging.DEBUG)
    return RunConfig(fs=fs, logger=logger, cloud_init_runner=runner)


def write_cmdline(fs, text):
    fs.mkdir("/proc")
    fs.write_file("/proc/cmdline", text.encode())


def test_fails_if_strict_mode_is_enabled(fs, buf):
    write_cmdline(fs, "quiet")
    runner = FakeCloudInit(
        lambda stage, args, mod: RuntimeError("boom") if mod is None else None
    )
    config = make_config(fs, buf, runner)
    config.cloud_init_paths = "/extra"
    config.strict = True
    with pytest.raises(MultiError) as info:
        run_stage("c3po", config)
    assert len(info.value.errors) == 3
    assert "boom" in str(info.value)


def test_does_not_fail_but_prints_errors_by_default(fs, buf):
    write_cmdline(fs, "stages.c3po[0].datasource")
    runner = FakeCloudInit(
        lambda stage, args, mod: MultiError([CmdlineYAMLError("bad type")])
        if mod == DOT_NOTATION_MODIFIER
        else None
    )
    config = make_config(fs, buf, runner)
    assert run_stage("c3po", config) is None
    assert "parsing returned errors" in buf.getvalue()
    assert IGNORED not in buf.getvalue()


def test_goes_over_extra_paths(fs, buf):
    write_cmdline(fs, "quiet")
    runner = FakeCloudInit()
    config = make_config(fs, buf, runner)
    config.cloud_init_paths = "/extra/one /extra/two"
    assert run_stage("luke", config) is None
    assert "Adding extra paths: /extra/one /extra/two" in buf.getvalue()
    expected = (*CLOUD_INIT_PATHS, "/extra/one", "/extra/two")
    path_calls = [(stage, args) for stage, args, mod in runner.calls if mod is None]
    assert path_calls == [
        ("luke.before", expected),
        ("luke", expected),
        ("luke.after", expected),
    ]
    assert (fs.raw_path("/extra/two")) and FS.stat(fs, "/extra/two").st_mode


def test_parses_cmdline_uri(fs, buf):
    write_cmdline(fs, "quiet cos.setup=/some/dir/test.yaml")
    runner = FakeCloudInit()
    config = make_config(fs, buf, runner)
    assert run_stage("padme", config) is None
    assert ("padme", ("/some/dir/test.yaml",), None) in runner.calls
    assert "Found cos.setup stanza on cmdline with value /some/dir/test.yaml" in buf.getvalue()


def test_runs_cmdline_with_dot_notation(fs, buf):
    cmdline = "BOOT=death-star single stages.leia[0].commands[0]='echo beepboop'"
    write_cmdline(fs, cmdline)
    runner = FakeCloudInit()
    config = make_config(fs, buf, runner)
    assert run_stage("leia", config) is None
    dotted = [(stage, args) for stage, args, mod in runner.calls if mod == DOT_NOTATION_MODIFIER]
    assert dotted == [
        ("leia.before", (cmdline,)),
        ("leia", (cmdline,)),
        ("leia.after", (cmdline,)),
    ]
    assert runner.modifier is None
    assert "/proc/cmdline parsing returned errors while unmarshalling" not in buf.getvalue()
    assert IGNORED not in buf.getvalue()


def test_ignores_yaml_errors(fs, buf):
    write_cmdline(fs, "BOOT=death-star stages[0]='utterly broken by breaking schema'")
    runner = FakeCloudInit(
        lambda stage, args, mod: CmdlineYAMLError("cannot unmarshal")
        if mod == DOT_NOTATION_MODIFIER
        else None
    )
    config = make_config(fs, buf, runner)
    config.strict = True
    assert run_stage("leia", config) is None
    assert "/proc/cmdline parsing returned errors while unmarshalling" in buf.getvalue()
    assert IGNORED not in buf.getvalue()


def test_other_cmdline_errors_are_reported(fs, buf):
    write_cmdline(fs, "quiet")
    runner = FakeCloudInit(
        lambda stage, args, mod: MultiError([RuntimeError("broken")])
        if mod == DOT_NOTATION_MODIFIER
        else None
    )
    config = make_config(fs, buf, runner)
    config.strict = True
    with pytest.raises(MultiError) as info:
        run_stage("leia", config)
    assert len(info.value.errors) == 3
    assert runner.modifier is None


def test_missing_cmdline_is_ignored_unless_strict(fs, buf):
    runner = FakeCloudInit()
    config = make_config(fs, buf, runner)
    assert run_stage("leia", config) is None
    assert IGNORED in buf.getvalue()

    config.strict = True
    with pytest.raises(MultiError) as info:
        run_stage("leia", config)
    assert isinstance(info.value.errors[0], FileNotFoundError)