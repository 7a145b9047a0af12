"""Package specifications for installing from release channels."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_VERSION = ">=0"


@dataclass
class LuetPackage:
    """A package to install: category, name and version constraint."""

    name: str
    category: str = ""
    version: str = DEFAULT_VERSION
    uri: list[str] = field(default_factory=list)


def package_data(spec: str) -> tuple[str, str]:
    """Split 'category/name' into its parts; a bare name has an empty category."""
    if "/" in spec:
        parts = spec.split("/")
        return parts[0], parts[1]
    return "", spec


def parse_package(spec: str) -> LuetPackage:
    """Parse 'category/name@version'; the version defaults to '>=0'."""
    version = DEFAULT_VERSION
    if "@" in spec:
        parts = spec.split("@")
        version = parts[1]
        spec = parts[0]
    category, name = package_data(spec)
    return LuetPackage(name=name, category=category, version=version)