"""Running cloud-init stages from configured paths and the kernel command line."""

from __future__ import annotations

from typing import TYPE_CHECKING

from elementalkit.cleanstack import MultiError
from elementalkit.fs import DIR_PERM, mkdir_all

if TYPE_CHECKING:
    from elementalkit.types import RunConfig

CLOUD_INIT_PATHS = ("/system/oem", "/oem/", "/usr/local/cloud-config/")
# Modifier asking the cloud-init runner to read documents in dot notation.
DOT_NOTATION_MODIFIER = "dotnotation"

_CMDLINE = "/proc/cmdline"
_SETUP_KEY = "cos.setup"


class CmdlineYAMLError(ValueError):
    """A document could be read only partially while unmarshalling YAML."""


def _sub_errors(error: BaseException) -> list[BaseException] | None:
    if isinstance(error, MultiError):
        return error.errors
    if isinstance(error, BaseExceptionGroup):
        return list(error.exceptions)
    return None


def _only_yaml_partial_errors(error: BaseException) -> bool:
    errors = _sub_errors(error)
    if errors is None:
        return True
    return all(isinstance(err, CmdlineYAMLError) for err in errors)


def _stages(stage: str) -> tuple[str, str, str]:
    return f"{stage}.before", stage, f"{stage}.after"


def run_stage(stage: str, config: RunConfig) -> None:
    """Run a stage with its before and after stages; errors raise only in strict mode."""
    logger = config.logger
    runner = config.cloud_init_runner
    errors: list[BaseException] = []
    paths = list(CLOUD_INIT_PATHS)

    if config.cloud_init_paths:
        logger.debug("Adding extra paths: %s", config.cloud_init_paths)
        paths += config.cloud_init_paths.split(" ")

    for path in paths:
        try:
            mkdir_all(config.fs, path, DIR_PERM)
        except OSError as exc:
            logger.debug("Failed creating cloud-init config path: %s %s", path, exc)

    try:
        cmdline = config.fs.read_file(_CMDLINE).decode(errors="replace")
    except OSError as exc:
        errors.append(exc)
        cmdline = ""

    setup_uri = ""
    for token in cmdline.split(" "):
        if "=" in token:
            parts = token.split("=")
            if parts[0] == _SETUP_KEY:
                setup_uri = parts[1]
                logger.debug("Found cos.setup stanza on cmdline with value %s", setup_uri)

    stages = _stages(stage)
    for name in stages:
        try:
            runner.run(name, *paths)
        except Exception as exc:
            errors.append(exc)

    if setup_uri:
        for name in stages:
            try:
                runner.run(name, setup_uri)
            except Exception as exc:
                errors.append(exc)

    runner.set_modifier(DOT_NOTATION_MODIFIER)
    try:
        for name in stages:
            try:
                runner.run(name, cmdline)
            except Exception as exc:
                if _only_yaml_partial_errors(exc):
                    logger.debug(
                        "/proc/cmdline parsing returned errors while unmarshalling. "
                        "Ignoring as /proc/cmdline fields are turned to a YAML document, "
                        "and partial failures are valid"
                    )
                    logger.debug("%s", exc)
                else:
                    errors.append(exc)
    finally:
        runner.set_modifier(None)

    if not errors:
        return
    combined = MultiError(errors)
    if not config.strict:
        logger.info(
            "Some errors found but were ignored. Enable --strict mode to fail on those "
            "or --debug to see them in the log"
        )
        logger.warning("%s", combined)
        return
    raise combined