"""
Type definitions for the installer.

This module contains the custom type definitions shared across the stages.
"""

from typing import TypedDict
from enum import Enum
from dataclasses import dataclass


class DefaultsConfig(TypedDict):
  """Configuration defaults loaded from config.json."""

  locale: str
  keymap: str
  timezone: str
  hostname: str
  root_mount: str
  boot_mount: str
  esp_size: str
  log_path: str
  timezone_url: str
  timezone_timeout: float
  bootloader_id: str
  base_packages: list[str]


class InstallMode(Enum):
  """Strategy used to prepare the target device."""

  ERASE = "erase"
  ALONGSIDE = "alongside"
  MANUAL = "manual"

  @property
  def label(self) -> str:
    return {
      InstallMode.ERASE: "Erase disk and install fresh",
      InstallMode.ALONGSIDE: "Install alongside existing OS(es)",
      InstallMode.MANUAL: "Manual partitioning",
    }[self]


class PartitionState(Enum):
  """Progress of the disk preparation stage."""

  NOT_STARTED = "not_started"
  ERASING = "erasing"
  HANDOFF = "handoff"
  MOUNTED = "mounted"
  FAILED = "failed"


@dataclass(frozen=True)
class DeviceCandidate:
  """A block device that can be selected as installation target."""

  path: str
  size: str
  has_existing_install: bool = False

  @property
  def label(self) -> str:
    suffix = " · partitioned" if self.has_existing_install else ""
    return f"{self.size}{suffix}"


@dataclass(frozen=True)
class DesktopRole:
  """Package set and display manager installed for a desktop selection."""

  name: str
  description: str
  packages: tuple[str, ...] = ()
  service: str | None = None
