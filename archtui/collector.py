"""
Interactive collection of the installation settings.

Each set_* function asks for one field and returns the answer. Aborting a
prompt raises Cancelled from the prompter and ends the run.
"""

import os
import shutil
import urllib.error
import urllib.request
from collections.abc import Callable
from pathlib import Path
from typing import Any

from archtui.disks import detect_existing_installation, enumerate_devices
from archtui.errors import CommandFailed, ValidationFailed
from archtui.input import Prompter
from archtui.log import get_logger
from archtui.registry import desktop_options
from archtui.retry import Accepted, bounded_retry
from archtui.types import InstallMode
from archtui.utils import CommandRunner
from archtui.validations import validate_hostname, validate_timezone, validate_username

logger = get_logger("collector")

SUPPORTED_LOCALES = "/usr/share/i18n/SUPPORTED"
LOCALE_GEN = "/etc/locale.gen"
KEYMAP_DIR = "/usr/share/kbd/keymaps"
FALLBACK_LOCALE = "en_US.UTF-8"
FALLBACK_KEYMAP = "us"
PASSWORD_ATTEMPTS = 3

Opener = Callable[..., Any]


def _unique(items: list[str]) -> list[str]:
  return list(dict.fromkeys(item for item in items if item))


def discover_locales(supported: str = SUPPORTED_LOCALES, locale_gen: str = LOCALE_GEN) -> list[str]:
  """UTF-8 locales available in the live environment, never empty."""
  locales: list[str] = []
  if os.access(supported, os.R_OK):
    lines = Path(supported).read_text(errors="replace").splitlines()
    locales = [line.split()[0] for line in lines if line.strip().endswith("UTF-8")]

  elif os.access(locale_gen, os.R_OK):
    lines = Path(locale_gen).read_text(errors="replace").splitlines()
    locales = [
      line.lstrip("#").split()[0]
      for line in lines
      if line.strip().endswith("UTF-8") and line.lstrip("#").strip()
    ]

  return _unique(locales) or [FALLBACK_LOCALE]


def discover_keymaps(
  runner: CommandRunner,
  keymap_dir: str = KEYMAP_DIR,
  which: Callable[[str], str | None] = shutil.which,
) -> list[str]:
  """Console keymaps available in the live environment, never empty."""
  keymaps: list[str] = []
  if which("localectl") is not None:
    try:
      keymaps = runner.capture(["localectl", "list-keymaps"], read_only=True).split()
    except CommandFailed as e:
      logger.warning("localectl list-keymaps failed: %s", e)

  if not keymaps and os.path.isdir(keymap_dir):
    keymaps = sorted(
      {
        name.split(".map", 1)[0]
        for _root, _dirs, files in os.walk(keymap_dir)
        for name in files
        if ".map" in name
      }
    )

  return _unique(keymaps) or [FALLBACK_KEYMAP]


def guess_timezone(url: str, timeout: float, opener: Opener = urllib.request.urlopen) -> str | None:
  """Best-effort timezone lookup from the public IP; None on any failure."""
  try:
    with opener(url, timeout=timeout) as response:
      guess = response.read().decode("utf-8", errors="replace").strip()

  except (urllib.error.URLError, OSError, ValueError) as e:
    logger.warning("Timezone lookup failed (%s) - using default", e)
    return None

  if not validate_timezone(guess):
    logger.warning("Timezone lookup returned an unusable value: %r", guess[:64])
    return None

  return guess


def set_locale(prompter: Prompter, default: str, locales: list[str]) -> str:
  locale = prompter.select(
    "Language / Locale",
    "Choose your locale",
    [(tag, "") for tag in locales],
    default=default if default in locales else None,
  )
  logger.info("Selected locale: %s", locale)
  return locale


def set_keymap(prompter: Prompter, runner: CommandRunner, default: str, keymaps: list[str], warnings: list[str]) -> str:
  keymap = prompter.select(
    "Keyboard layout",
    "Choose console keymap",
    [(name, "") for name in keymaps],
    default=default if default in keymaps else None,
  )
  logger.info("Selected keymap: %s", keymap)

  # Applying the layout to the live session is a convenience only
  if runner.check(["loadkeys", keymap]) != 0:
    message = f"loadkeys {keymap} failed - the live session keeps its current layout"
    logger.warning(message)
    warnings.append(message)

  return keymap


def set_timezone(prompter: Prompter, default: str, guess: str | None) -> str:
  timezone = prompter.text(
    "Timezone",
    "Enter your IANA timezone (e.g. Europe/Zurich)",
    default=guess or default,
    validate=validate_timezone,
    error="Unknown timezone - use Region/City as found under /usr/share/zoneinfo.",
  )
  logger.info("Selected timezone: %s", timezone)
  return timezone


def set_host(prompter: Prompter, default: str) -> str:
  host = prompter.text(
    "Hostname",
    "Enter a hostname for the system",
    default=default,
    validate=validate_hostname,
    error="Invalid hostname - must follow RFC 1123 (letters, digits, hyphens).",
  )
  logger.info("Hostname set to: %s", host)
  return host


def set_username(prompter: Prompter) -> str:
  user_name = prompter.text(
    "User",
    "Choose a new username",
    validate=validate_username,
    error="Invalid username - use lowercase letters, digits, hyphen or underscore.",
  )
  logger.info("Username set to: %s", user_name)
  return user_name


def set_password(prompter: Prompter, user_name: str, limit: int = PASSWORD_ATTEMPTS) -> str:
  """
  Ask for the password and its confirmation until both match.

  After limit mismatching pairs the run fails; an unconfirmed password is
  never used.
  """

  def ask() -> tuple[str, str]:
    first = prompter.secret("Password", f"Enter password for {user_name}")
    second = prompter.secret("Confirm password", "Re-enter the same password")
    return first, second

  def mismatch(attempt: int) -> None:
    logger.warning("Password confirmation mismatch (attempt %d/%d)", attempt, limit)
    prompter.message("Mismatch", "Passwords did not match - please try again.", style="red")

  result = bounded_retry(ask, lambda pair: pair[0] == pair[1], limit, on_reject=mismatch)
  if not isinstance(result, Accepted):
    raise ValidationFailed(f"Failed to set matching password after {result.attempts} attempts")

  logger.info("Password set successfully")
  return result.value[0]


def set_desktop(prompter: Prompter) -> str:
  desktop = prompter.select("Desktop Environment", "Select DE/WM to install", desktop_options(), default="none")
  logger.info("Desktop set to: %s", desktop)
  return desktop


def offered_install_modes(existing_install: bool) -> list[InstallMode]:
  if existing_install:
    return [InstallMode.ALONGSIDE, InstallMode.ERASE, InstallMode.MANUAL]
  return [InstallMode.ERASE, InstallMode.MANUAL]


def set_disk(
  prompter: Prompter,
  runner: CommandRunner,
  which: Callable[[str], str | None] = shutil.which,
) -> tuple[str, InstallMode]:
  candidates = enumerate_devices(runner)
  if not candidates:
    raise ValidationFailed("No installable disk found")

  disk = prompter.select("Disk", "Select installation disk", [(c.path, c.label) for c in candidates])

  existing = detect_existing_installation(runner, disk, which)
  modes = offered_install_modes(existing)
  if existing:
    prompt = f"Existing OSes detected on {disk}. Choose action"
  else:
    prompt = f"No existing OS found on {disk}. Choose how to partition it"

  choice = prompter.select("Installation mode", prompt, [(mode.value, mode.label) for mode in modes])
  mode = InstallMode(choice)
  logger.info("Selected disk %s with install mode: %s", disk, mode.value)
  return disk, mode
