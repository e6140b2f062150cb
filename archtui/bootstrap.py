from archtui.arch import fstab_path, generate_fstab, install_base_system
from archtui.errors import BootstrapFailed, CommandFailed
from archtui.log import get_logger
from archtui.utils import CommandRunner

logger = get_logger("bootstrap")


def install_base(runner: CommandRunner, root_mount: str, packages: list[str]) -> None:
  """
  Bootstrap the base system into root_mount and append its filesystem table.

  On failure the target root is left as it is for inspection.
  """
  logger.info("Installing base system into %s: %s", root_mount, " ".join(packages))
  try:
    runner.cmd(install_base_system(root_mount, packages))
    fstab = runner.capture(generate_fstab(root_mount))
    runner.write(fstab.splitlines(), fstab_path(root_mount), append=True)

  except CommandFailed as e:
    raise BootstrapFailed(f"Base system installation failed: {e}") from e

  except OSError as e:
    raise BootstrapFailed(f"Writing {fstab_path(root_mount)} failed: {e}") from e
