"""
Error kinds raised by the installer stages.

Every fatal condition unwinds to the entry point as one of these classes; the
entry point logs the message and exits with the class' exit code.
"""

import shlex
from collections.abc import Sequence


class InstallerError(Exception):
  exit_code: int = 1
  kind: str = "error"

  def __init__(self, message: str) -> None:
    super().__init__(message)
    self.message: str = message


class PreconditionError(InstallerError):
  exit_code = 2
  kind = "precondition"


class NotPrivileged(PreconditionError):
  pass


class UnsupportedFirmware(PreconditionError):
  pass


class DependencyInstallFailed(PreconditionError):
  pass


class PromptUnavailable(DependencyInstallFailed):
  """No interactive terminal to run the prompts on."""


class Cancelled(InstallerError):
  exit_code = 130
  kind = "cancelled"


class ValidationFailed(InstallerError):
  exit_code = 3
  kind = "validation"


class PartitionFailed(InstallerError):
  exit_code = 4
  kind = "partition"


class BootstrapFailed(InstallerError):
  exit_code = 5
  kind = "bootstrap"


class ConfigurationFailed(InstallerError):
  exit_code = 6
  kind = "configuration"


class CommandFailed(Exception):
  """A wrapped command exited non-zero or could not be started."""

  def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
    self.argv: list[str] = list(argv)
    self.returncode: int = returncode
    self.stderr: str = stderr
    message = f"Command '{shlex.join(self.argv)}' failed with exit status {returncode}"
    if stderr.strip():
      message += f": {stderr.strip()}"
    super().__init__(message)
