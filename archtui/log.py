import logging
import os
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

console = Console()

LOGGER_NAME = "archtui"
FALLBACK_LOG_NAME = "arch-tui-installer.log"


def configure_logging(log_path: str, level: int = logging.INFO, also_console: bool = True) -> str:
  """
  Configure the installer logger.

  Every record goes to the log file; when also_console is set it is echoed
  to the terminal through rich. If log_path cannot be opened the file is
  created in the working directory instead.

  Returns the path of the log file actually in use.
  """
  logger = logging.getLogger(LOGGER_NAME)
  logger.setLevel(logging.DEBUG)
  logger.propagate = False

  for handler in list(logger.handlers):
    logger.removeHandler(handler)
    handler.close()

  file_format = logging.Formatter(
    fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S%z",
  )

  chosen_path = log_path
  try:
    Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")

  except OSError:
    chosen_path = str(Path.cwd() / FALLBACK_LOG_NAME)
    file_handler = logging.FileHandler(chosen_path, encoding="utf-8")

  file_handler.setFormatter(file_format)
  file_handler.setLevel(logging.DEBUG)
  logger.addHandler(file_handler)

  if also_console:
    rich_handler = RichHandler(
      console=console,
      markup=False,
      show_time=False,
      show_path=False,
      rich_tracebacks=True,
    )
    rich_handler.setLevel(level)
    logger.addHandler(rich_handler)

  logger.info("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
  return chosen_path


def get_logger(name: str) -> logging.Logger:
  return logging.getLogger(f"{LOGGER_NAME}.{name}")
