#!/usr/bin/env python3

import argparse
import sys
from argparse import Namespace
from collections.abc import Sequence
from contextlib import suppress
from textwrap import dedent
from typing import override

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from archtui.ascii import print_logo
from archtui.context import ContextConfig, InstallerContext
from archtui.errors import InstallerError, PreconditionError
from archtui.input import Prompter
from archtui.log import configure_logging, get_logger
from archtui.preconditions import check_firmware_mode, check_privilege, ensure_prompt_capability, ensure_tools
from archtui.steps import Step, get_install_steps
from archtui.tui import TUI
from archtui.types import DefaultsConfig
from archtui.utils import CommandRunner, format_step_name, load_defaults, load_required_tools
from archtui.validations import validate_cli_arguments

__version__ = "0.1.0"

console = Console()
logger = get_logger("main")


class IndentedHelpFormatter(argparse.RawDescriptionHelpFormatter):
  def __init__(self, prog: str, **kwargs) -> None:
    super().__init__(prog, max_help_position=30, width=80, **kwargs)

  @override
  def _format_action_invocation(self, action: argparse.Action) -> str:
    options = action.option_strings
    if not options:
      return super()._format_action_invocation(action)

    parts: list[str] = []
    if len(options) == 1:
      parts.append(f"{'':4}{options[0]}")

    else:
      parts.append(f"{', '.join(options)}")

    if action.nargs != 0:
      default_metavar = self._get_default_metavar_for_optional(action)
      parts[-1] += f" {self._format_args(action, default_metavar)}"

    return parts[-1]


def _create_argument_parser(defaults: DefaultsConfig) -> argparse.ArgumentParser:
  """Create and configure the argument parser."""
  parser = argparse.ArgumentParser(
    prog="arch-tui-installer",
    formatter_class=IndentedHelpFormatter,
    description=dedent("""
      A guided terminal installer for Arch Linux, run from the live ISO.

      It collects locale, keyboard, timezone, user and disk settings,
      partitions the chosen disk (or hands it to you), bootstraps the
      base system and configures it inside the new root.
      UEFI firmware is required.
    """),
    epilog=dedent("""
      Exit status:
        0 success, 2 precondition failed, 3 validation failed,
        4 partitioning failed, 5 base install failed,
        6 target configuration failed, 130 cancelled, 1 unexpected error

      Examples:
        %(prog)s --dry                              # Preview installation steps
        %(prog)s --keymap de --locale de_DE.UTF-8   # Different prompt defaults
    """),
  )

  _ = parser.add_argument(
    "-d",
    "--dry",
    action="store_true",
    help="preview installation steps without executing commands or writing files",
    dest="dry",
  )

  _ = parser.add_argument(
    "-l",
    "--log",
    metavar="PATH",
    type=str,
    default=defaults["log_path"],
    help="log file receiving every message and command status [default: %(default)s]",
    dest="log_path",
  )

  _ = parser.add_argument(
    "--locale",
    metavar="LOCALE",
    type=str,
    help=f"default answer for the locale prompt [default: {defaults['locale']}]",
    dest="locale",
  )

  _ = parser.add_argument(
    "-k",
    "--keymap",
    metavar="KEYMAP",
    type=str,
    help=f"default answer for the keymap prompt [default: {defaults['keymap']}]",
    dest="keymap",
  )

  _ = parser.add_argument(
    "-t",
    "--timezone",
    metavar="TIMEZONE",
    type=str,
    help="default answer for the timezone prompt; skips the online lookup",
    dest="timezone",
  )

  _ = parser.add_argument(
    "--hostname",
    metavar="HOSTNAME",
    type=str,
    help=f"default answer for the hostname prompt [default: {defaults['hostname']}]",
    dest="hostname",
  )

  _ = parser.add_argument(
    "--no-verify-mounts",
    action="store_false",
    help="do not check the mount points after manual partitioning",
    dest="verify_mounts",
  )

  _ = parser.add_argument("--version", action="version", version=f"arch-tui-installer {__version__}")

  return parser


def _create_context_config(args: Namespace) -> ContextConfig:
  """Create a typed ContextConfig from an argparse Namespace."""
  return ContextConfig(
    dry=bool(getattr(args, "dry", False)),
    log_path=str(args.log_path),
    locale=getattr(args, "locale", None),
    keymap=getattr(args, "keymap", None),
    timezone=getattr(args, "timezone", None),
    hostname=getattr(args, "hostname", None),
    verify_mounts=bool(getattr(args, "verify_mounts", True)),
  )


def _check_system_requirements(config: ContextConfig, runner: CommandRunner) -> None:
  """Check if the system meets installation requirements."""
  if not config.dry:
    check_privilege()
    check_firmware_mode()

  ensure_prompt_capability()

  if not config.dry:
    _ = ensure_tools(runner, load_required_tools())


def _report_failure(error: InstallerError) -> None:
  if isinstance(error, PreconditionError):
    console.print()
    console.print(Panel(escape(error.message), title="Unsupported system", border_style="red", expand=False, padding=(1, 2)))
    if sys.stdin is not None and sys.stdin.isatty():
      with suppress(EOFError, KeyboardInterrupt):
        _ = console.input("[dim]Press <Enter> to exit[/]")
    return

  console.print(f"\n[prompt.invalid]{escape(error.message)}[/]")
  if error.exit_code not in (2, 3, 130):
    console.print("\n[prompt.invalid]Installation cannot continue. The target was left as is for inspection.[/]")


def _run_installation(ctx: InstallerContext, steps: Sequence[Step], warnings: list[str]) -> None:
  """Run the installation steps in order; the first failure ends the run."""
  # Settings collection runs before the status panel and is not counted
  destructive = len(steps) - 1

  for index, step in enumerate(steps):
    name = format_step_name(step.__name__)
    if index:
      ctx.ui.show_stage(index, destructive, name)

    logger.info("Stage %s started", name)
    step(ctx, warnings)
    logger.info("Stage %s done", name)

  ctx.ui.cleanup()


def run(ctx: InstallerContext, steps: Sequence[Step] | None = None) -> int:
  """Run the pipeline and map its outcome to the process exit status."""
  warnings: list[str] = []

  try:
    _run_installation(ctx, steps if steps is not None else get_install_steps(), warnings)

  except InstallerError as e:
    ctx.ui.cleanup()
    logger.error("%s failure: %s", e.kind.capitalize(), e.message)
    _report_failure(e)
    return e.exit_code

  except KeyboardInterrupt:
    ctx.ui.cleanup()
    logger.error("Installation interrupted by user")
    console.print("\n\n[prompt.invalid]Installation interrupted by user. Exiting...[/]")
    return 130

  if warnings:
    console.print("\n[bold yellow]Warnings encountered during installation:[/]")
    for warning in warnings:
      console.print(f" • {escape(warning)}")

  if ctx.dry:
    logger.info("Dry run completed")
    console.print("\n[bold green]Dry run completed successfully![/]")
    console.print("[bold green]Run without --dry flag to perform actual installation.[/]")
    return 0

  logger.info("Installation complete")
  ctx.prompter.message("Finished", "Installation complete! You may reboot now.", style="green")
  return 0


def main(argv: Sequence[str] | None = None) -> int:
  """Main entry point for the installer."""
  try:
    defaults = load_defaults()
  except PreconditionError as e:
    _report_failure(e)
    return e.exit_code

  parser = _create_argument_parser(defaults)
  config = _create_context_config(parser.parse_args(argv))

  errors = validate_cli_arguments(config.locale, config.keymap, config.timezone, config.hostname)
  if errors:
    console.print("\n[prompt.invalid]Invalid arguments provided:[/]")
    console.print("\n".join(f" • {escape(err)}" for err in errors))
    console.print("\n[yellow]Use --help for valid options[/]")
    return 1

  log_path = configure_logging(config.log_path)
  logger.info("STARTING ARCH TUI INSTALLER %s%s", __version__, " (dry run)" if config.dry else "")

  ui = TUI(dry_mode=config.dry)
  runner = CommandRunner(config.dry, ui)

  try:
    _check_system_requirements(config, runner)
  except InstallerError as e:
    logger.error("Precondition failed: %s", e.message)
    _report_failure(e)
    return e.exit_code

  ctx = InstallerContext(config, defaults, ui, runner, Prompter())

  print_logo()
  console.print()
  if config.dry:
    console.print("[bold yellow]DRY RUN MODE[/] - No actual changes will be made to your system")
  console.print(f"[dim]Logging to {escape(log_path)}[/]")

  return run(ctx)


def cli() -> None:
  try:
    sys.exit(main())

  except KeyboardInterrupt:
    console.print("\n[prompt.invalid]Installation interrupted. Exiting...[/]")
    sys.exit(130)

  except Exception as e:
    logger.exception("Unexpected error")
    console.print(f"\n[prompt.invalid]Fatal error: {escape(str(e))}[/]")
    sys.exit(1)


if __name__ == "__main__":
  cli()
