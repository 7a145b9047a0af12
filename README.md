# elementalkit

Building blocks for tools that install, upgrade and reset immutable
operating system images on Linux hosts.

## What is in the package

- **Configuration types** (`elementalkit.types`): the `RunConfig` and
  `BuildConfig` dataclasses (both extend `Config`, which holds the logger,
  `fs`, `mounter`, `runner`, `syscall`, `cloud_init_runner` and `client`),
  `Partition`, `PartitionList` (with `get_by_name()`), `Image`, `ImageMap`
  (with `active`, `passive` and `recovery` properties), `ImageSource` with its
  `ImageSourceKind`, the `SourceNotFound` exception, and the
  `CloudInitRunner`, `HTTPClient` and `Mounter` protocols.
- **Filesystem access** (`elementalkit.fs`): `FS`, a file system view whose
  paths resolve below an optional root directory; `ReadOnlyFS`, which raises
  `PermissionError` on every modification; and the helpers `exists`, `is_dir`,
  `mkdir_all`, `temp_dir` and `temp_file`.
- **Commands and system calls** (`elementalkit.runner`): `RealRunner.run()`
  runs a program and returns its combined stdout and stderr, raising
  `subprocess.CalledProcessError` on a non-zero exit; `RealSyscall` wraps
  `os.chroot` and `os.chdir`. `Runner` and `Syscall` are the protocols they
  satisfy.
- **Chroot environments** (`elementalkit.chroot`): `Chroot` bind-mounts
  `/dev`, `/dev/pts`, `/proc` and `/sys` plus any mounts given to
  `set_extra_mounts()`, runs commands (`run()`) or callables
  (`run_callback()`) inside the new root, and unmounts in reverse order on
  `close()`. It can also be used as a context manager.
- **Bootloader** (`elementalkit.grub`): `Grub.install()` runs
  `grub2-install`, adding EFI arguments when `force_efi` is set or
  `/sys/firmware/efi` exists, then writes `grub.cfg` into the `grub` or
  `grub2` directory of the `state` partition, adding an extra `console=` for
  the configured or current TTY. `Grub.set_persistent_variables()` runs
  `grub2-editenv ... set key=value` for each pair.
- **Cloud-init stages** (`elementalkit.runstage`): `run_stage()` runs
  `<stage>.before`, `<stage>` and `<stage>.after` through the configured
  `CloudInitRunner` from the default and extra cloud-init paths, from a
  `cos.setup=` URI on `/proc/cmdline`, and from the command line itself in dot
  notation. Errors are collected; they are raised as one `MultiError` only
  when `config.strict` is set, otherwise logged. `CmdlineYAMLError` marks
  partial YAML failures that are always ignored.
- **Clean-up** (`elementalkit.cleanstack`): `CleanStack` collects undo jobs
  with `push()` and runs them last-in-first-out in `cleanup()`, which raises a
  `MultiError` holding the given error and every job failure.
- **Partitions** (`elementalkit.partitions`): `get_all_partitions()` and
  `get_partition_fs()` read block devices from `/sys/block`, udev data under
  `/run/udev/data` and `/proc/mounts`, all below a `sys_root` argument.
- **Utilities** (`elementalkit.common`): `command_exists`, `booted_from`,
  `get_device_by_label`, `get_full_device_by_label`, `copy_file`,
  `create_dir_structure`, `sync_data` (calls `rsync`), `reboot`, `shutdown`,
  `cosign_verify`, `create_squashfs` (calls `mksquashfs`), `load_env_file`,
  `get_upgrade_temp_dir`, `is_local_url` and `get_source`.
- **Package specifications** (`elementalkit.luet`): `parse_package()` turns
  strings such as `system/cos@0.8.1` into a `LuetPackage`; `package_data()`
  splits `category/name`.
- **Logging** (`elementalkit.logs`): `new_logger()`, `new_null_logger()`,
  `new_buffer_logger()`, `debug_level()` and `is_debug_level()`, all built on
  the standard `logging` module.

## Installation

```
pip install elementalkit
```

Many operations call system programs (`grub2-install`, `grub2-editenv`,
`rsync`, `mksquashfs`, `cosign`, `udevadm`, `reboot`, `poweroff`) and most
need root privileges.

## Example

```python
from elementalkit.chroot import Chroot
from elementalkit.cleanstack import CleanStack
from elementalkit.fs import FS
from elementalkit.logs import new_logger
from elementalkit.runner import RealRunner, RealSyscall
from elementalkit.types import RunConfig

config = RunConfig(
    logger=new_logger(),
    fs=FS(),
    runner=RealRunner(),
    syscall=RealSyscall(),
    mounter=my_mounter,  # any object with mount() and unmount()
)

cleanup = CleanStack()
chroot = Chroot("/mnt/newroot", config)
chroot.prepare()
cleanup.push(chroot.close)
try:
    output = chroot.run("ls", "/")
finally:
    cleanup.cleanup(None)
```

Cloud-init stages, given a `cloud_init_runner` in the configuration:

```python
from elementalkit.runstage import run_stage

run_stage("network", config)
```

## What the package does not do

- It has no command-line tool; it is a library.
- It ships no `Mounter`, `CloudInitRunner` or `HTTPClient` implementation.
  Mounting, executing cloud-init documents and downloading remote sources in
  `get_source()` are done by objects the caller supplies.
- It does not unpack container images or install packages from release
  channels; `elementalkit.luet` only parses package specifications.

## Running the tests

```
pip install elementalkit[test]
pytest
```