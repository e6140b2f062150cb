"""
Block device discovery.

Devices are enumerated with lsblk's JSON output. Every call runs lsblk again;
results are never cached between calls.
"""

import json
import re
import shutil
from collections.abc import Callable
from typing import Any

from archtui.errors import CommandFailed
from archtui.log import get_logger
from archtui.types import DeviceCandidate
from archtui.utils import CommandRunner

logger = get_logger("disks")

LSBLK_COLUMNS = "NAME,PATH,SIZE,TYPE"
VIRTUAL_PREFIXES = ("loop", "ram", "zram", "sr", "fd", "nbd", "dm-", "md")


def is_virtual_device(device: dict[str, Any]) -> bool:
  name = str(device.get("name") or "")
  return device.get("type") != "disk" or name.startswith(VIRTUAL_PREFIXES)


def _has_partitions(device: dict[str, Any]) -> bool:
  return any(child.get("type") == "part" for child in device.get("children") or [])


def _device_path(device: dict[str, Any]) -> str:
  return str(device.get("path") or f"/dev/{device['name']}")


def parse_lsblk(output: str) -> list[dict[str, Any]]:
  data = json.loads(output or "{}")
  devices = data.get("blockdevices") or []
  if not isinstance(devices, list):
    raise ValueError("lsblk output has no blockdevices list")
  return devices


def parse_os_prober(output: str) -> set[str]:
  """
  Return the partition paths listed by os-prober (path:long name:label:type).

  EFI entries name the loader after the partition, as in
  /dev/sda1@/EFI/Microsoft/Boot/bootmgfw.efi; only the partition is kept.
  """
  return {line.split(":", 1)[0].split("@", 1)[0].strip() for line in output.splitlines() if ":" in line}


def partition_belongs_to(partition: str, device: str) -> bool:
  return bool(re.fullmatch(rf"{re.escape(device)}p?\d+", partition))


def list_other_systems(runner: CommandRunner, which: Callable[[str], str | None] = shutil.which) -> set[str] | None:
  """Run os-prober; None when the tool is unavailable or fails."""
  if which("os-prober") is None:
    return None
  try:
    return parse_os_prober(runner.capture(["os-prober"], read_only=True))
  except CommandFailed as e:
    logger.warning("os-prober failed, falling back to partition heuristic: %s", e)
    return None


def candidates_from_lsblk(devices: list[dict[str, Any]]) -> list[DeviceCandidate]:
  return [
    DeviceCandidate(
      path=_device_path(device),
      size=str(device.get("size") or "?"),
      has_existing_install=_has_partitions(device),
    )
    for device in devices
    if not is_virtual_device(device)
  ]


def enumerate_devices(runner: CommandRunner) -> list[DeviceCandidate]:
  """
  List installable disks in lsblk order, excluding loop and other virtual devices.

  Candidates only carry the partition table heuristic; os-prober runs once,
  for the selected disk, in detect_existing_installation.
  """
  output = runner.capture(["lsblk", "--json", "--output", LSBLK_COLUMNS], read_only=True)
  candidates = candidates_from_lsblk(parse_lsblk(output))
  logger.info("Found %d candidate disk(s): %s", len(candidates), ", ".join(c.path for c in candidates) or "none")
  return candidates


def detect_existing_installation(
  runner: CommandRunner,
  device: str,
  which: Callable[[str], str | None] = shutil.which,
) -> bool:
  """
  Report whether device already hosts an operating system.

  os-prober is authoritative when installed; otherwise any partition on the
  device counts as an existing installation.
  """
  listed = list_other_systems(runner, which)
  if listed is not None:
    found = any(partition_belongs_to(partition, device) for partition in listed)
  else:
    output = runner.capture(["lsblk", "--json", "--output", LSBLK_COLUMNS, device], read_only=True)
    found = any(_has_partitions(entry) for entry in parse_lsblk(output))

  logger.info("Existing installation on %s: %s", device, "yes" if found else "no")
  return found


def partition_path(disk: str, number: int) -> str:
  # nvme/mmcblk devices use p suffix
  if disk[-1:].isdigit():
    return f"{disk}p{number}"
  return f"{disk}{number}"
