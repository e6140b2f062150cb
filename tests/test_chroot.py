import os
import stat
from dataclasses import replace
from pathlib import Path

import pytest
from conftest import FakeExecutor

from archtui.chroot import MASK, SCRIPT_NAME, configure_target, generate_chroot, script_payload
from archtui.context import InstallPlan
from archtui.errors import ConfigurationFailed
from archtui.utils import CommandRunner


@pytest.fixture
def script_dir(target: Path) -> Path:
  path = target / "root"
  path.mkdir()
  return path


def test_payload_carries_every_setting(plan: InstallPlan) -> None:
  payload = script_payload(plan, "Arch")
  assert payload["USERNAME"] == "alice"
  assert payload["PASSWORD"] == "s3cret"
  assert payload["TARGET_DISK"] == "/dev/sdx"
  assert payload["LOCALE_GEN_ENTRY"] == "en_US.UTF-8 UTF-8"
  assert script_payload(plan, "Arch", mask_secrets=True)["PASSWORD"] == MASK


def test_script_sections_in_order(plan: InstallPlan) -> None:
  script = generate_chroot(plan, "Arch")
  assert script.startswith("#!/usr/bin/env bash\nset -euo pipefail\n")

  markers = ["USERNAME=alice", "locale-gen", "/etc/vconsole.conf", "/etc/hostname", "systemctl enable NetworkManager", "chpasswd", "grub-install"]
  positions = [script.index(marker) for marker in markers]
  assert positions == sorted(positions)
  assert "--bootloader-id=$BOOTLOADER_ID" in script
  assert "/etc/sudoers.d/10-wheel" in script


def test_hostile_values_stay_quoted(plan: InstallPlan) -> None:
  hostile = replace(plan, username="x'; rm -rf / #", password="$(reboot)")
  script = generate_chroot(hostile, "Arch")

  assert "USERNAME='x'\"'\"'; rm -rf / #'" in script
  assert "PASSWORD='$(reboot)'" in script
  # the body only expands the variables
  body = script.split("BOOTLOADER_ID=", 1)[1]
  assert "rm -rf" not in body
  assert "$(reboot)" not in body


def test_desktop_section(plan: InstallPlan) -> None:
  script = generate_chroot(replace(plan, desktop="kde"), "Arch")
  assert "pacman -S --noconfirm --needed plasma kde-applications sddm" in script
  assert "systemctl enable sddm" in script

  bare = generate_chroot(plan, "Arch")
  assert "pacman -S" not in bare
  assert "systemctl enable gdm" not in bare


def test_configure_target_runs_and_removes_script(executor: FakeExecutor, runner: CommandRunner, plan: InstallPlan, target: Path, script_dir: Path) -> None:
  script = script_dir / SCRIPT_NAME
  seen: dict[str, object] = {}

  def inspect(_argv: list[str]) -> None:
    seen["mode"] = stat.S_IMODE(os.stat(script).st_mode)
    seen["text"] = script.read_text()

  executor.on("arch-chroot", effect=inspect)
  configure_target(runner, plan, str(target), "Arch")

  assert executor.commands("arch-chroot") == [["arch-chroot", str(target), f"/root/{SCRIPT_NAME}"]]
  assert seen["mode"] == 0o700
  assert "PASSWORD=s3cret" in str(seen["text"])
  assert not script.exists()


def test_script_removed_after_failure(executor: FakeExecutor, runner: CommandRunner, plan: InstallPlan, target: Path, script_dir: Path) -> None:
  executor.on("arch-chroot", returncode=1)

  with pytest.raises(ConfigurationFailed) as excinfo:
    configure_target(runner, plan, str(target), "Arch")

  assert excinfo.value.exit_code == 6
  assert not (script_dir / SCRIPT_NAME).exists()


def test_dry_run_masks_password(executor: FakeExecutor, plan: InstallPlan, target: Path, capsys: pytest.CaptureFixture[str]) -> None:
  configure_target(CommandRunner(True, None, executor), plan, str(target), "Arch")

  out = capsys.readouterr().out
  assert executor.calls == []
  assert "s3cret" not in out
  assert MASK in out
