"""
Input checks shared by the prompts, the command line and the config loader.

Field validators return a bool so prompts can re-ask; the JSON validator
raises, because a broken config.json is not something to re-ask about.
"""

import re
from pathlib import Path
from typing import Any

ZONEINFO_DIR = "/usr/share/zoneinfo"

# useradd's default NAME_REGEX, capped at the utmp name length
USERNAME_RE = re.compile(r"[a-z_][a-z0-9_-]{0,31}")
RESERVED_USERNAMES = frozenset({"root", "bin", "daemon", "nobody", "mail", "ftp", "http", "systemd-network"})
HOST_LABEL_RE = re.compile(r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?")
LOCALE_RE = re.compile(r"[a-z]{2,3}(?:_[A-Z]{2})?(?:\.[A-Za-z0-9-]+)?(?:@[a-z]+)?")


def validate_username(username: str) -> bool:
  return bool(USERNAME_RE.fullmatch(username or "")) and username not in RESERVED_USERNAMES


def validate_timezone(timezone: str, zoneinfo_dir: str | None = None) -> bool:
  """Validate an IANA timezone against the live zoneinfo database, or its shape when absent."""
  if not timezone or timezone.startswith("/") or ".." in timezone.split("/"):
    return False

  if not re.fullmatch(r"[A-Za-z0-9_+-]+(/[A-Za-z0-9_+-]+){0,2}", timezone):
    return False

  zoneinfo = Path(zoneinfo_dir or ZONEINFO_DIR)
  if zoneinfo.is_dir():
    return (zoneinfo / timezone).is_file()

  return timezone == "UTC" or "/" in timezone


def validate_locale(locale: str) -> bool:
  return locale in ("C", "POSIX", "C.UTF-8") or bool(LOCALE_RE.fullmatch(locale or ""))


def validate_keymap(keymap: str) -> bool:
  return bool(re.fullmatch(r"[A-Za-z0-9_.+-]+", keymap or ""))


def validate_hostname(hostname: str) -> bool:
  """RFC 1123 host name: dot separated labels, 253 characters at most."""
  if not hostname or len(hostname) > 253:
    return False
  return all(HOST_LABEL_RE.fullmatch(label) for label in hostname.split("."))


def validate_device_path(path: str) -> bool:
  return bool(re.fullmatch(r"/dev/[A-Za-z0-9/_-]+", path or ""))


def validate_defaults_json(data: Any) -> dict[str, Any]:
  """Validate and return defaults JSON data with proper typing."""
  if not isinstance(data, dict):
    raise ValueError("Defaults JSON must be an object")

  required_keys = {
    "locale",
    "keymap",
    "timezone",
    "hostname",
    "root_mount",
    "boot_mount",
    "esp_size",
    "log_path",
    "timezone_url",
    "timezone_timeout",
    "bootloader_id",
    "base_packages",
  }
  missing_keys = required_keys - data.keys()
  if missing_keys:
    raise KeyError(f"Missing required keys: {sorted(missing_keys)}")

  if not isinstance(data["base_packages"], list) or not data["base_packages"]:
    raise ValueError("base_packages field must be a non-empty list")

  if not isinstance(data["timezone_timeout"], (int, float)) or data["timezone_timeout"] <= 0:
    raise ValueError("timezone_timeout must be a positive number")

  if not str(data["boot_mount"]).startswith(str(data["root_mount"]).rstrip("/") + "/"):
    raise ValueError("boot_mount must be nested under root_mount")

  return data


def validate_cli_arguments(
  locale: str | None,
  keymap: str | None,
  timezone: str | None,
  hostname: str | None,
) -> list[str]:
  """
  Validate the command line overrides and return list of error messages.

  Returns empty list if all arguments are valid, list of error messages otherwise.
  """
  validators: list[tuple[bool, str]] = []

  if locale:
    validators.append((validate_locale(locale), f"Invalid locale: {locale} (expected format: language[_COUNTRY][.encoding])"))

  if keymap:
    validators.append((validate_keymap(keymap), f"Invalid keymap: {keymap}"))

  if timezone:
    validators.append((validate_timezone(timezone), f"Invalid timezone: {timezone} (expected an IANA name such as Europe/Zurich)"))

  if hostname:
    validators.append((validate_hostname(hostname), f"Invalid hostname: {hostname} (must follow RFC 1123 format)"))

  return [msg for valid, msg in validators if not valid]
