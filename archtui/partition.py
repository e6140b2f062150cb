"""
Disk preparation for the selected install mode.

Guided erase wipes the device and lays out exactly two GPT partitions: an
EFI system partition and a Linux root filling the rest. Alongside and manual
modes hand the device to cfdisk and wait for the operator.
"""

import os
from collections.abc import Callable
from textwrap import dedent

from archtui.context import InstallPlan
from archtui.disks import partition_path
from archtui.errors import Cancelled, CommandFailed, InstallerError, PartitionFailed
from archtui.input import Prompter
from archtui.log import get_logger
from archtui.tui import TUI
from archtui.types import InstallMode, PartitionState
from archtui.utils import CommandRunner
from archtui.validations import validate_device_path

logger = get_logger("partition")

ESP_TYPE = "ef00"
LINUX_TYPE = "8300"


def prepare_mountpoints(
  runner: CommandRunner,
  root_mount: str,
  boot_mount: str,
  is_mount: Callable[[str], bool] = os.path.ismount,
) -> None:
  """Unmount and empty the target root left behind by an earlier attempt."""
  for mountpoint in (root_mount, boot_mount):
    if runner.dry_run or is_mount(mountpoint):
      _ = runner.check(["umount", "--recursive", mountpoint])

  if not runner.dry_run and (is_mount(root_mount) or is_mount(boot_mount)):
    raise PartitionFailed(f"{root_mount} is still mounted; unmount it manually and restart the installer")

  runner.make_dirs(root_mount)
  runner.clear_directory(root_mount)


def guided_commands(disk: str, esp_size: str, root_mount: str, boot_mount: str) -> list[list[str]]:
  esp = partition_path(disk, 1)
  root = partition_path(disk, 2)
  return [
    ["wipefs", "--all", "--force", disk],
    ["sgdisk", "--zap-all", disk],
    ["sgdisk", f"--new=1:0:+{esp_size}", f"--typecode=1:{ESP_TYPE}", disk],
    ["sgdisk", "--new=2:0:0", f"--typecode=2:{LINUX_TYPE}", disk],
    ["partprobe", disk],
    ["mkfs.fat", "-F", "32", esp],
    ["mkfs.ext4", "-F", root],
    ["mount", root, root_mount],
    ["mkdir", "-p", boot_mount],
    ["mount", esp, boot_mount],
  ]


class DiskPreparation:
  """
  Runs one disk preparation strategy.

  NOT_STARTED moves to ERASING or HANDOFF depending on the install mode and
  ends in MOUNTED or FAILED. Both end states are final: a second run raises.
  """

  def __init__(
    self,
    plan: InstallPlan,
    runner: CommandRunner,
    prompter: Prompter,
    ui: TUI,
    root_mount: str,
    boot_mount: str,
    esp_size: str,
    verify_mounts: bool = True,
    is_mount: Callable[[str], bool] = os.path.ismount,
  ) -> None:
    self.plan: InstallPlan = plan
    self.runner: CommandRunner = runner
    self.prompter: Prompter = prompter
    self.ui: TUI = ui
    self.root_mount: str = root_mount
    self.boot_mount: str = boot_mount
    self.esp_size: str = esp_size
    self.verify_mounts: bool = verify_mounts
    self.is_mount: Callable[[str], bool] = is_mount
    self.state: PartitionState = PartitionState.NOT_STARTED

  def run(self) -> PartitionState:
    if self.state is not PartitionState.NOT_STARTED:
      raise PartitionFailed(f"Disk preparation cannot run again from state {self.state.value}")

    if not validate_device_path(self.plan.device):
      self.state = PartitionState.FAILED
      raise PartitionFailed(f"Refusing to partition invalid device path: {self.plan.device}")

    try:
      if self.plan.mode is InstallMode.ERASE:
        self.state = PartitionState.ERASING
        self._erase_and_mount()
      else:
        self.state = PartitionState.HANDOFF
        self._handoff()

    except CommandFailed as e:
      self.state = PartitionState.FAILED
      raise PartitionFailed(f"Partitioning {self.plan.device} failed: {e}") from e

    except InstallerError:
      self.state = PartitionState.FAILED
      raise

    self.state = PartitionState.MOUNTED
    logger.info("Target root mounted at %s (boot at %s)", self.root_mount, self.boot_mount)
    return self.state

  def _erase_and_mount(self) -> None:
    logger.info("Guided partitioning on %s", self.plan.device)
    prepare_mountpoints(self.runner, self.root_mount, self.boot_mount, self.is_mount)
    # Destructive commands are never retried
    for argv in guided_commands(self.plan.device, self.esp_size, self.root_mount, self.boot_mount):
      self.runner.cmd(argv)

  def _instructions(self) -> str:
    if self.plan.mode is InstallMode.ALONGSIDE:
      steps = (
        "Shrink an existing partition to free space, then create a new partition for the root "
        "filesystem (and an EFI system partition if the disk has none)."
      )
    else:
      steps = "Create a partition for the root filesystem and an EFI system partition."

    return dedent(f"""\
      You will now be taken to cfdisk on {self.plan.device}.
      {steps}
      Write the table and quit cfdisk when you are done.

      Afterwards format the new partitions and mount them, from another TTY:
        root -> {self.root_mount}
        EFI  -> {self.boot_mount}""")

  def _handoff(self) -> None:
    logger.info("Handing %s to the operator (%s)", self.plan.device, self.plan.mode.value)
    prepare_mountpoints(self.runner, self.root_mount, self.boot_mount, self.is_mount)

    with self.ui.suspended():
      self.prompter.message("Partitioning", self._instructions())
      self.runner.interactive(["cfdisk", self.plan.device])

      while True:
        ready = self.prompter.confirm(
          "Partitioning",
          f"Are the root and EFI partitions formatted and mounted at {self.root_mount} and {self.boot_mount}?",
          default=True,
        )
        if not ready:
          raise Cancelled("Manual partitioning aborted by operator")

        if self._mounts_ready():
          return

        if not self.prompter.confirm("Mount check", "Mount points not found. Check again?", default=True):
          raise PartitionFailed(f"{self.root_mount} and {self.boot_mount} must be mounted before installing")

  def _mounts_ready(self) -> bool:
    if not self.verify_mounts:
      logger.warning("Mount verification disabled - trusting %s is prepared", self.root_mount)
      return True

    if self.runner.dry_run:
      return True

    missing = [mp for mp in (self.root_mount, self.boot_mount) if not self.is_mount(mp)]
    for mountpoint in missing:
      logger.warning("%s is not a mount point", mountpoint)
    return not missing
