import io
import json
import urllib.error
from pathlib import Path

import pytest
from pytest import MonkeyPatch
from conftest import CANCEL, FakeExecutor, ScriptedPrompter

import archtui.validations
from archtui.collector import (
  discover_keymaps,
  discover_locales,
  guess_timezone,
  offered_install_modes,
  set_desktop,
  set_disk,
  set_keymap,
  set_password,
  set_timezone,
)
from archtui.errors import Cancelled, ValidationFailed
from archtui.types import InstallMode
from archtui.utils import CommandRunner


@pytest.fixture(autouse=True)
def no_zoneinfo(tmp_path: Path, monkeypatch: MonkeyPatch) -> None:
  monkeypatch.setattr(archtui.validations, "ZONEINFO_DIR", str(tmp_path / "no-zoneinfo"))


def no_tool(_name: str) -> None:
  return None


class FakeResponse(io.BytesIO):
  def __enter__(self) -> "FakeResponse":
    return self

  def __exit__(self, *_args: object) -> None:
    self.close()


def test_locales_from_supported_list(tmp_path: Path) -> None:
  supported = tmp_path / "SUPPORTED"
  supported.write_text("de_DE.UTF-8 UTF-8\nde_DE ISO-8859-1\nen_US.UTF-8 UTF-8\nen_US.UTF-8 UTF-8\n")
  assert discover_locales(str(supported), str(tmp_path / "missing")) == ["de_DE.UTF-8", "en_US.UTF-8"]


def test_locales_from_locale_gen(tmp_path: Path) -> None:
  locale_gen = tmp_path / "locale.gen"
  locale_gen.write_text("# Configuration file for locale-gen\n#\n#en_GB.UTF-8 UTF-8\n#en_GB ISO-8859-1\n#  fi_FI.UTF-8 UTF-8\n")
  assert discover_locales(str(tmp_path / "missing"), str(locale_gen)) == ["en_GB.UTF-8", "fi_FI.UTF-8"]


def test_locales_never_empty(tmp_path: Path) -> None:
  empty = tmp_path / "SUPPORTED"
  empty.write_text("")
  assert discover_locales(str(empty), str(tmp_path / "missing")) == ["en_US.UTF-8"]


def test_keymaps_from_localectl(executor: FakeExecutor, runner: CommandRunner, tmp_path: Path) -> None:
  executor.on("localectl", stdout="de\nfr\nus\n")
  assert discover_keymaps(runner, str(tmp_path), lambda name: f"/usr/bin/{name}") == ["de", "fr", "us"]


def test_keymaps_from_directory(runner: CommandRunner, tmp_path: Path) -> None:
  (tmp_path / "i386" / "qwertz").mkdir(parents=True)
  (tmp_path / "i386" / "qwertz" / "de-latin1.map.gz").write_bytes(b"")
  (tmp_path / "i386" / "qwertz" / "de-latin1.map").write_bytes(b"")
  (tmp_path / "README").write_text("")
  assert discover_keymaps(runner, str(tmp_path), no_tool) == ["de-latin1"]


def test_keymaps_never_empty(runner: CommandRunner, tmp_path: Path) -> None:
  assert discover_keymaps(runner, str(tmp_path / "missing"), no_tool) == ["us"]


def test_keymap_applies_to_live_session(executor: FakeExecutor, runner: CommandRunner) -> None:
  warnings: list[str] = []
  prompter = ScriptedPrompter({"Keyboard layout": ["de"]})
  assert set_keymap(prompter, runner, "us", ["de", "us"], warnings) == "de"
  assert executor.commands("loadkeys") == [["loadkeys", "de"]]
  assert warnings == []


def test_keymap_load_failure_is_advisory(executor: FakeExecutor, runner: CommandRunner) -> None:
  executor.on("loadkeys", returncode=1)
  warnings: list[str] = []
  prompter = ScriptedPrompter({"Keyboard layout": ["de"]})
  assert set_keymap(prompter, runner, "us", ["de", "us"], warnings) == "de"
  assert len(warnings) == 1 and "loadkeys de failed" in warnings[0]


def test_timezone_guess_success() -> None:
  seen: dict[str, object] = {}

  def opener(url: str, timeout: float) -> FakeResponse:
    seen.update(url=url, timeout=timeout)
    return FakeResponse(b"UTC\n")

  assert guess_timezone("https://example.invalid/tz", 3, opener) == "UTC"
  assert seen == {"url": "https://example.invalid/tz", "timeout": 3}


@pytest.mark.parametrize("error", [urllib.error.URLError("offline"), TimeoutError("timed out")])
def test_timezone_guess_failure_returns_none(error: Exception) -> None:
  def opener(_url: str, timeout: float) -> FakeResponse:
    raise error

  assert guess_timezone("https://example.invalid/tz", 3, opener) is None


def test_timezone_guess_rejects_garbage() -> None:
  assert guess_timezone("u", 3, lambda _url, timeout: FakeResponse(b"<html>rate limited</html>")) is None


def test_timezone_guess_is_only_a_default() -> None:
  prompter = ScriptedPrompter()
  assert set_timezone(prompter, "UTC", None) == "UTC"
  assert prompter.calls == [("text", "Timezone", "UTC")]

  prompter = ScriptedPrompter({"Timezone": ["UTC"]})
  assert set_timezone(prompter, "UTC", "Europe/Zurich") == "UTC"
  assert prompter.calls == [("text", "Timezone", "Europe/Zurich")]


def test_password_three_mismatches_abort() -> None:
  prompter = ScriptedPrompter({"Password": ["a", "b", "c"], "Confirm password": ["x", "y", "z"]})
  with pytest.raises(ValidationFailed) as excinfo:
    set_password(prompter, "alice")

  assert excinfo.value.exit_code == 3
  assert prompter.titles("secret").count("Password") == 3
  assert [title for title, _ in prompter.messages] == ["Mismatch", "Mismatch"]


def test_password_match_stops_prompting() -> None:
  prompter = ScriptedPrompter({"Password": ["a", "hunter2", "never"], "Confirm password": ["b", "hunter2", "never"]})
  assert set_password(prompter, "alice") == "hunter2"
  assert len(prompter.titles("secret")) == 4
  assert prompter.answers["Password"] == ["never"]


def test_password_cancel_is_not_a_mismatch() -> None:
  prompter = ScriptedPrompter({"Password": [CANCEL]})
  with pytest.raises(Cancelled):
    set_password(prompter, "alice")


def test_desktop_choices() -> None:
  prompter = ScriptedPrompter({"Desktop Environment": ["kde"]})
  assert set_desktop(prompter) == "kde"
  offered = prompter.calls[0][2]
  assert offered == ["gnome", "kde", "cinnamon", "xfce", "hyprland", "sway", "i3", "none"]


def test_offered_install_modes() -> None:
  assert offered_install_modes(True) == [InstallMode.ALONGSIDE, InstallMode.ERASE, InstallMode.MANUAL]
  assert offered_install_modes(False) == [InstallMode.ERASE, InstallMode.MANUAL]


def _lsblk(children: bool) -> str:
  disk: dict[str, object] = {"name": "sdx", "path": "/dev/sdx", "size": "20G", "type": "disk"}
  if children:
    disk["children"] = [{"name": "sdx1", "path": "/dev/sdx1", "size": "20G", "type": "part"}]
  return json.dumps({"blockdevices": [{"name": "loop0", "path": "/dev/loop0", "size": "1G", "type": "loop"}, disk]})


def test_disk_without_existing_os_offers_two_modes(executor: FakeExecutor, runner: CommandRunner) -> None:
  executor.on("lsblk", stdout=_lsblk(children=False))
  prompter = ScriptedPrompter({"Disk": ["/dev/sdx"], "Installation mode": ["erase"]})
  assert set_disk(prompter, runner, no_tool) == ("/dev/sdx", InstallMode.ERASE)

  offered = dict((title, values) for kind, title, values in prompter.calls if kind == "select")
  assert offered["Disk"] == ["/dev/sdx"]
  assert offered["Installation mode"] == ["erase", "manual"]


def test_disk_with_existing_os_offers_three_modes(executor: FakeExecutor, runner: CommandRunner) -> None:
  executor.on("lsblk", stdout=_lsblk(children=True))
  prompter = ScriptedPrompter({"Disk": ["/dev/sdx"], "Installation mode": ["alongside"]})
  assert set_disk(prompter, runner, no_tool) == ("/dev/sdx", InstallMode.ALONGSIDE)

  offered = dict((title, values) for kind, title, values in prompter.calls if kind == "select")
  assert offered["Installation mode"] == ["alongside", "erase", "manual"]


def test_no_disks_is_fatal(executor: FakeExecutor, runner: CommandRunner) -> None:
  executor.on("lsblk", stdout=json.dumps({"blockdevices": [{"name": "loop0", "type": "loop"}]}))
  with pytest.raises(ValidationFailed):
    set_disk(ScriptedPrompter(), runner, no_tool)


def test_disk_selection_runs_os_prober_once(executor: FakeExecutor, runner: CommandRunner) -> None:
  executor.on("lsblk", stdout=_lsblk(children=True))
  executor.on("os-prober", stdout="/dev/sdx1@/EFI/Microsoft/Boot/bootmgfw.efi:Windows Boot Manager:Windows:efi\n")
  prompter = ScriptedPrompter({"Disk": ["/dev/sdx"], "Installation mode": ["alongside"]})

  assert set_disk(prompter, runner, lambda name: f"/usr/bin/{name}") == ("/dev/sdx", InstallMode.ALONGSIDE)
  assert len(executor.commands("os-prober")) == 1
