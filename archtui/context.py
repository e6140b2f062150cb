from __future__ import annotations

from dataclasses import dataclass, field, fields

from archtui.errors import ValidationFailed
from archtui.input import Prompter
from archtui.tui import TUI
from archtui.types import DefaultsConfig, InstallMode
from archtui.utils import CommandRunner


@dataclass
class ContextConfig:
  """Typed configuration object with all command line arguments."""

  dry: bool
  log_path: str
  locale: str | None = None
  keymap: str | None = None
  timezone: str | None = None
  hostname: str | None = None
  verify_mounts: bool = True


@dataclass
class ConfigurationRecord:
  """
  Settings collected from the operator, one field per prompt.

  The record lives only in memory. Once collection is done it is turned into
  an immutable InstallPlan and never modified again.
  """

  locale: str | None = None
  keymap: str | None = None
  timezone: str | None = None
  hostname: str | None = None
  username: str | None = None
  password: str | None = field(default=None, repr=False)
  desktop: str | None = None
  device: str | None = None
  mode: InstallMode | None = None

  def missing(self) -> list[str]:
    return [f.name for f in fields(self) if getattr(self, f.name) is None]

  def finalize(self) -> InstallPlan:
    missing = self.missing()
    if missing:
      raise ValidationFailed(f"Configuration incomplete, unset fields: {', '.join(missing)}")

    assert self.mode is not None
    return InstallPlan(
      locale=str(self.locale),
      keymap=str(self.keymap),
      timezone=str(self.timezone),
      hostname=str(self.hostname),
      username=str(self.username),
      password=str(self.password),
      desktop=str(self.desktop),
      device=str(self.device),
      mode=self.mode,
    )


@dataclass(frozen=True)
class InstallPlan:
  """The finalized, read-only configuration handed to the destructive stages."""

  locale: str
  keymap: str
  timezone: str
  hostname: str
  username: str
  password: str = field(repr=False)
  desktop: str
  device: str
  mode: InstallMode

  def summary(self) -> list[tuple[str, str]]:
    return [
      ("Locale", self.locale),
      ("Keymap", self.keymap),
      ("Timezone", self.timezone),
      ("Hostname", self.hostname),
      ("Username", self.username),
      ("Password", "********"),
      ("Desktop", self.desktop),
      ("Target disk", self.device),
      ("Install mode", self.mode.label),
    ]


class InstallerContext:
  """
  Holds the collaborators and state for one installer run.

  The context is passed between the installation steps. Collection fills
  record; from the disk setup onwards the steps only read plan.
  """

  def __init__(
    self,
    config: ContextConfig,
    defaults: DefaultsConfig,
    ui: TUI,
    runner: CommandRunner,
    prompter: Prompter,
  ) -> None:
    self.config: ContextConfig = config
    self.defaults: DefaultsConfig = defaults
    self.ui: TUI = ui
    self.runner: CommandRunner = runner
    self.prompter: Prompter = prompter

    self.record: ConfigurationRecord = ConfigurationRecord()
    self.plan: InstallPlan | None = None

  @property
  def dry(self) -> bool:
    """Access dry run flag from config."""
    return self.config.dry

  @property
  def root_mount(self) -> str:
    return self.defaults["root_mount"]

  @property
  def boot_mount(self) -> str:
    return self.defaults["boot_mount"]

  def require_plan(self) -> InstallPlan:
    if self.plan is None:
      raise ValidationFailed("Installation settings have not been finalized")
    return self.plan
