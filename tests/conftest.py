import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

from archtui.context import ContextConfig, InstallerContext, InstallPlan
from archtui.errors import Cancelled
from archtui.tui import TUI
from archtui.types import DefaultsConfig, InstallMode
from archtui.utils import CommandRunner, load_defaults

CANCEL = object()

Effect = Callable[[list[str]], None]


class FakeExecutor:
  """Stands in for subprocess.run and records every command."""

  def __init__(self) -> None:
    self.calls: list[list[str]] = []
    self.responses: list[tuple[tuple[str, ...], int, str, str, Effect | None]] = []

  def on(self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "", effect: Effect | None = None) -> None:
    self.responses.append((prefix, returncode, stdout, stderr, effect))

  def __call__(self, argv: Sequence[str], **_kwargs: Any) -> subprocess.CompletedProcess[str]:
    argv = list(argv)
    self.calls.append(argv)
    for prefix, returncode, stdout, stderr, effect in reversed(self.responses):
      if tuple(argv[: len(prefix)]) == prefix:
        if effect is not None:
          effect(argv)
        return subprocess.CompletedProcess(argv, returncode, stdout, stderr)
    return subprocess.CompletedProcess(argv, 0, "", "")

  def commands(self, name: str) -> list[list[str]]:
    return [argv for argv in self.calls if argv[0] == name]

  def names(self) -> list[str]:
    return [argv[0] for argv in self.calls]


class ScriptedPrompter:
  """Answers prompts from a script keyed by prompt title."""

  def __init__(self, answers: dict[str, list[Any]] | None = None) -> None:
    self.answers: dict[str, list[Any]] = {k: list(v) for k, v in (answers or {}).items()}
    self.calls: list[tuple[str, str, Any]] = []
    self.messages: list[tuple[str, str]] = []

  def _next(self, title: str, default: Any = None) -> Any:
    queue = self.answers.get(title)
    if not queue:
      if default is None:
        raise AssertionError(f"No scripted answer for prompt {title!r}")
      return default
    answer = queue.pop(0)
    if answer is CANCEL:
      raise Cancelled(f"{title} cancelled")
    return default if answer is None else answer

  def select(self, title: str, prompt: str, options: Sequence[tuple[str, str]], default: str | None = None) -> str:
    values = [value for value, _ in options]
    self.calls.append(("select", title, values))
    answer = self._next(title, default)
    assert answer in values, f"{answer!r} is not offered by {title!r}: {values}"
    return answer

  def text(self, title: str, prompt: str, default: str | None = None, validate: Any = None, error: str = "") -> str:
    self.calls.append(("text", title, default))
    answer = self._next(title, default)
    if validate is not None:
      assert validate(answer), f"{answer!r} rejected by {title!r}"
    return answer

  def secret(self, title: str, prompt: str) -> str:
    self.calls.append(("secret", title, None))
    return self._next(title)

  def confirm(self, title: str, prompt: str, default: bool = False) -> bool:
    self.calls.append(("confirm", title, default))
    return bool(self._next(title, default))

  def message(self, title: str, text: str, style: str = "blue") -> None:
    self.messages.append((title, text))

  def titles(self, kind: str) -> list[str]:
    return [title for call_kind, title, _ in self.calls if call_kind == kind]


@pytest.fixture
def executor() -> FakeExecutor:
  return FakeExecutor()


@pytest.fixture
def runner(executor: FakeExecutor) -> CommandRunner:
  return CommandRunner(False, None, executor)


@pytest.fixture
def target(tmp_path: Path) -> Path:
  root = tmp_path / "target"
  root.mkdir()
  return root


@pytest.fixture
def defaults(target: Path) -> DefaultsConfig:
  data = load_defaults()
  data["root_mount"] = str(target)
  data["boot_mount"] = str(target / "boot")
  return data


@pytest.fixture
def plan() -> InstallPlan:
  return InstallPlan(
    locale="en_US.UTF-8",
    keymap="us",
    timezone="UTC",
    hostname="archlinux",
    username="alice",
    password="s3cret",
    desktop="none",
    device="/dev/sdx",
    mode=InstallMode.ERASE,
  )


@pytest.fixture
def make_context(tmp_path: Path, defaults: DefaultsConfig, executor: FakeExecutor) -> Callable[..., InstallerContext]:
  def _make(prompter: ScriptedPrompter, dry: bool = False, verify_mounts: bool = True) -> InstallerContext:
    config = ContextConfig(dry=dry, log_path=str(tmp_path / "install.log"), verify_mounts=verify_mounts)
    ui = TUI(dry_mode=dry)
    return InstallerContext(config, defaults, ui, CommandRunner(dry, ui, executor), prompter)  # type: ignore[arg-type]

  return _make
