"""Checks that must pass before anything touches the disks."""

import os
import shutil
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

from archtui.errors import CommandFailed, DependencyInstallFailed, NotPrivileged, PromptUnavailable, UnsupportedFirmware
from archtui.log import get_logger
from archtui.utils import CommandRunner

logger = get_logger("preconditions")

EFI_DIR = "/sys/firmware/efi"


def check_privilege(geteuid: Callable[[], int] = os.geteuid) -> None:
  if geteuid() != 0:
    raise NotPrivileged("Root privileges are required. Run as root (e.g. sudo su) before starting the installer.")


def check_firmware_mode(efi_dir: str = EFI_DIR) -> None:
  # The bootloader is always installed for x86_64-efi into the ESP.
  if not Path(efi_dir).is_dir():
    raise UnsupportedFirmware(
      "Legacy BIOS detected. This installer only supports UEFI firmware. "
      "Reboot, enable UEFI, or switch to another installer."
    )


def ensure_prompt_capability(stream: TextIO | None = None) -> None:
  stream = stream if stream is not None else sys.stdin
  if stream is None or not stream.isatty():
    raise PromptUnavailable("An interactive terminal is required to answer the installer prompts.")


def ensure_tools(
  runner: CommandRunner,
  tools: dict[str, str],
  which: Callable[[str], str | None] = shutil.which,
) -> list[str]:
  """
  Make sure every command the pipeline runs is available.

  Missing commands are installed through pacman from the package that
  provides them. Returns the list of installed packages.
  """
  missing = sorted(name for name in tools if which(name) is None)
  if not missing:
    return []

  packages = sorted({tools[name] for name in missing})
  logger.info("Missing tools %s - installing %s with pacman", ", ".join(missing), " ".join(packages))

  try:
    runner.cmd(["pacman", "-Sy", "--noconfirm", *packages])
  except CommandFailed as e:
    raise DependencyInstallFailed(f"Failed to install {' '.join(packages)}: {e}") from e

  if not runner.dry_run:
    still_missing = [name for name in missing if which(name) is None]
    if still_missing:
      raise DependencyInstallFailed(f"Still missing after install: {', '.join(still_missing)}")

  return packages
