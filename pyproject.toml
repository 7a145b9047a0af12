[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "elementalkit"
version = "0.1.0"
description = "Building blocks for installing and upgrading immutable OS images: chroot handling, GRUB setup, partitions, cloud-init stages and clean-up stacks."
requires-python = ">=3.11"
dependencies = [
    "python-dotenv",
]
keywords = ["installer", "grub", "chroot", "cloud-init", "partitions", "squashfs", "immutable-os"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Installation/Setup",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["elementalkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
