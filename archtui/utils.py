import json
import os
import shlex
import shutil
import subprocess
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape

from archtui.errors import CommandFailed, PreconditionError
from archtui.log import get_logger
from archtui.tui import TUI
from archtui.types import DefaultsConfig
from archtui.validations import validate_defaults_json

console = Console()
logger = get_logger("utils")

Executor = Callable[..., subprocess.CompletedProcess[str]]


def get_resource_path(relative_path: str) -> str:
  """
  Get absolute path to a resource shipped beside the package.
  For frozen single-file builds, files are extracted to a temporary directory.
  """
  if getattr(sys, "frozen", False):
    base_path = getattr(sys, "_MEIPASS", os.path.dirname(sys.executable))
  else:
    base_path = os.path.dirname(os.path.abspath(__file__))

  return os.path.join(base_path, relative_path)


def _load_config_json() -> dict[str, Any]:
  config_file = get_resource_path("config.json")
  try:
    with open(config_file, "r") as f:
      data = json.load(f)

  except (FileNotFoundError, json.JSONDecodeError) as e:
    raise PreconditionError(f"Error loading config.json: {e}") from e

  if not isinstance(data, dict):
    raise PreconditionError("Invalid config.json format: top level must be an object")
  return data


def load_defaults() -> DefaultsConfig:
  """Load default values from the config.json file."""
  config_data = _load_config_json()
  try:
    data = validate_defaults_json(config_data.get("defaults"))

  except (KeyError, ValueError) as e:
    raise PreconditionError(f"Invalid config.json format: {e}") from e

  return DefaultsConfig(
    **{k: str(v) for k, v in data.items() if k not in ("base_packages", "timezone_timeout")},
    timezone_timeout=float(data["timezone_timeout"]),
    base_packages=[str(pkg) for pkg in data["base_packages"]],
  )


def load_required_tools() -> dict[str, str]:
  """Load the command -> providing package map from config.json."""
  tools = _load_config_json().get("tools", {})
  if not isinstance(tools, dict):
    raise PreconditionError("Invalid config.json format: tools must be an object")
  return {str(k): str(v) for k, v in tools.items()}


def format_step_name(name: str) -> str:
  """
  Format step name from function name string.

  Args:
      name: Step function name

  Returns:
      Formatted step name (e.g., "Disk Setup")
  """
  return name.replace("step_", "").replace("_", " ").title().lstrip("0123456789 ")


class CommandRunner:
  """
  Executes external commands on behalf of the stages.

  In dry run mode mutating operations are only printed; read-only queries
  (capture with read_only=True) still run so the operator sees real devices.
  The executor is injectable so the pipeline can run against a fake.
  """

  def __init__(self, dry_run: bool, ui: TUI | None = None, executor: Executor = subprocess.run) -> None:
    self.dry_run: bool = dry_run
    self.ui: TUI | None = ui
    self.executor: Executor = executor

  def _print(self, message: str) -> None:
    if self.ui is not None:
      self.ui.print(message)
    else:
      console.print(message)

  def _dry(self, description: str) -> None:
    self._print(f"[bold green][dim][DRY RUN] {escape(description)}[/][/]")

  def _execute(self, argv: Sequence[str], capture: bool = True) -> subprocess.CompletedProcess[str]:
    argv_list = list(argv)
    logger.info("CMD %s", shlex.join(argv_list))
    try:
      result = self.executor(
        argv_list,
        text=True,
        capture_output=capture,
        check=False,
      )

    except (FileNotFoundError, PermissionError) as e:
      logger.info("RC %s -> 127", argv_list[0])
      raise CommandFailed(argv_list, 127, str(e)) from e

    logger.info("RC %s -> %d", argv_list[0], result.returncode)
    if capture and result.stdout:
      logger.debug("STDOUT %s", result.stdout.strip())
    if capture and result.stderr:
      logger.debug("STDERR %s", result.stderr.strip())
    return result

  def cmd(self, argv: Sequence[str]) -> None:
    """Run a command with its output attached to the terminal; raise on failure."""
    if self.dry_run:
      self._dry(shlex.join(argv))
      return

    result = self._execute(argv, capture=False)
    if result.returncode != 0:
      raise CommandFailed(argv, result.returncode)

  def capture(self, argv: Sequence[str], read_only: bool = False) -> str:
    """Run a command and return its stdout; raise on failure."""
    if self.dry_run and not read_only:
      self._dry(shlex.join(argv))
      return ""

    result = self._execute(argv)
    if result.returncode != 0:
      raise CommandFailed(argv, result.returncode, result.stderr or "")
    return result.stdout or ""

  def check(self, argv: Sequence[str], read_only: bool = False) -> int:
    """Run a command and return its exit status without raising."""
    if self.dry_run and not read_only:
      self._dry(shlex.join(argv))
      return 0

    try:
      return self._execute(argv).returncode
    except CommandFailed as e:
      return e.returncode

  def interactive(self, argv: Sequence[str]) -> None:
    """Hand the terminal to an interactive program until it exits."""
    if self.dry_run:
      self._dry(shlex.join(argv))
      return

    result = self._execute(argv, capture=False)
    if result.returncode != 0:
      raise CommandFailed(argv, result.returncode)

  def write(self, lines: list[str], path: str, append: bool = False, mode: int | None = None) -> None:
    assert isinstance(lines, list)
    if self.dry_run:
      verb = "Appending to" if append else "Writing to"
      self._print(f"[bold green][dim][DRY RUN] {verb} {escape(path)}:[/][/]")
      for line in lines:
        self._print(f"[dim]{escape(line)}[/]")
      return

    logger.info("WRITE %s (%d lines%s)", path, len(lines), ", append" if append else "")
    flags = os.O_WRONLY | os.O_CREAT | (os.O_APPEND if append else os.O_TRUNC)
    fd = os.open(path, flags, mode if mode is not None else 0o644)
    if mode is not None:
      os.fchmod(fd, mode)

    with os.fdopen(fd, "w") as f:
      for line in lines:
        print(line, file=f)

  def remove(self, path: str) -> None:
    if self.dry_run:
      self._dry(f"rm -f {path}")
      return

    logger.info("REMOVE %s", path)
    Path(path).unlink(missing_ok=True)

  def make_dirs(self, path: str) -> None:
    if self.dry_run:
      self._dry(f"mkdir -p {path}")
      return

    os.makedirs(path, exist_ok=True)

  def clear_directory(self, path: str) -> None:
    """Delete everything below path, keeping path itself."""
    if self.dry_run:
      self._dry(f"rm -rf {path}/*")
      return

    directory = Path(path)
    if not directory.is_dir():
      return

    logger.info("CLEAR %s", path)
    for entry in directory.iterdir():
      if entry.is_dir() and not entry.is_symlink():
        shutil.rmtree(entry)
      else:
        entry.unlink()
