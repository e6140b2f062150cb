from collections.abc import Callable

from rich.console import Console
from rich.markup import escape

from archtui.bootstrap import install_base
from archtui.chroot import configure_target
from archtui.collector import (
  discover_keymaps,
  discover_locales,
  guess_timezone,
  set_desktop,
  set_disk,
  set_host,
  set_keymap,
  set_locale,
  set_password,
  set_timezone,
  set_username,
)
from archtui.context import InstallerContext
from archtui.errors import Cancelled
from archtui.partition import DiskPreparation
from archtui.types import InstallMode

console = Console()

Step = Callable[[InstallerContext, list[str]], None]


def step_0_settings(ctx: InstallerContext, warnings: list[str]) -> None:
  ctx.ui.initialize()
  prompter = ctx.prompter
  record = ctx.record
  defaults = ctx.defaults

  if ctx.dry:
    console.print("Skipping root and system checks in dry run mode")

  if not prompter.confirm("Welcome", "Welcome to the Arch TUI Installer! Begin the guided setup?", default=True):
    raise Cancelled("Installation aborted at welcome screen")

  record.locale = set_locale(prompter, ctx.config.locale or defaults["locale"], discover_locales())
  record.keymap = set_keymap(
    prompter,
    ctx.runner,
    ctx.config.keymap or defaults["keymap"],
    discover_keymaps(ctx.runner),
    warnings,
  )

  guess = None if ctx.config.timezone else guess_timezone(defaults["timezone_url"], defaults["timezone_timeout"])
  record.timezone = set_timezone(prompter, ctx.config.timezone or defaults["timezone"], guess)
  record.hostname = set_host(prompter, ctx.config.hostname or defaults["hostname"])
  record.username = set_username(prompter)
  record.password = set_password(prompter, record.username)
  record.desktop = set_desktop(prompter)
  record.device, record.mode = set_disk(prompter, ctx.runner)

  ctx.plan = record.finalize()

  console.print()
  for label, value in ctx.plan.summary():
    console.print(f" • {label}: {escape(value)}")
  console.print()

  if ctx.plan.mode is InstallMode.ERASE:
    console.print(f"[bold yellow]WARNING:[/] All data on {escape(ctx.plan.device)} will be erased.", style="bold")

  if not prompter.confirm("Confirm", "Are you sure you want to continue?", default=False):
    raise Cancelled("Installation aborted. No changes were made to the system.")

  console.print()


def step_1_disk_setup(ctx: InstallerContext, _warnings: list[str]) -> None:
  preparation = DiskPreparation(
    plan=ctx.require_plan(),
    runner=ctx.runner,
    prompter=ctx.prompter,
    ui=ctx.ui,
    root_mount=ctx.root_mount,
    boot_mount=ctx.boot_mount,
    esp_size=ctx.defaults["esp_size"],
    verify_mounts=ctx.config.verify_mounts,
  )
  _ = preparation.run()


def step_2_system_bootstrap(ctx: InstallerContext, _warnings: list[str]) -> None:
  _ = ctx.require_plan()
  install_base(ctx.runner, ctx.root_mount, ctx.defaults["base_packages"])


def step_3_system_configuration(ctx: InstallerContext, _warnings: list[str]) -> None:
  configure_target(ctx.runner, ctx.require_plan(), ctx.root_mount, ctx.defaults["bootloader_id"])


def get_install_steps() -> list[Step]:
  """Installation steps in their fixed order."""
  return [
    step_0_settings,
    step_1_disk_setup,
    step_2_system_bootstrap,
    step_3_system_configuration,
  ]
