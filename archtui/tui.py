import shutil
import sys
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager

from rich import box
from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

console = Console()

STAGE_MARKERS = {
  "Settings": "*",
  "Disk Setup": "#",
  "System Bootstrap": "^",
  "System Configuration": "@",
}

STATUS_STYLE = "bold blue"
BORDER_STYLE = "blue"
OUTPUT_HISTORY = 500


def progress_bar(done: int, total: int) -> str:
  return "[" + "▓" * done + "░" * max(total - done, 0) + "]"


class TUI:
  """
  Status panel pinned above the command output of the running stage.

  When stdout is not a terminal every status line and message is printed
  as is, so logs and pipes stay readable.
  """

  def __init__(self, dry_mode: bool = False):
    self.enabled: bool = sys.stdout.isatty()
    self.dry_mode: bool = dry_mode
    self.active: bool = False
    self.status: Text = Text()
    self.output: deque[str] = deque(maxlen=OUTPUT_HISTORY)
    self.layout: Layout | None = None
    self.live: Live | None = None

  def initialize(self) -> None:
    if self.enabled:
      self.active = True

  def _status_panel(self) -> Panel:
    title = "arch-tui (dry run)" if self.dry_mode else "arch-tui"
    return Panel(self.status, title=title, title_align="left", box=box.SQUARE, border_style=BORDER_STYLE, padding=(0, 1), expand=False)

  def _output_view(self) -> Group:
    # 3 lines of status panel plus one spare
    rows = max(1, shutil.get_terminal_size().lines - 4)
    return Group(*(Text.from_markup(line) for line in list(self.output)[-rows:]))

  def _show(self) -> None:
    if self.layout is None:
      self.layout = Layout()
      self.layout.split_column(Layout(name="status", size=3), Layout(name="output", ratio=1))

    self.layout["status"].update(self._status_panel())
    self.layout["output"].update(self._output_view())

    if self.live is None:
      self.live = Live(self.layout, console=console, refresh_per_second=10, screen=False)
      self.live.start()

  def show_stage(self, index: int, total: int, name: str) -> None:
    line = f"{progress_bar(index, total)} {name} · Step {index}/{total}"
    if not self.enabled:
      console.print(f"[{STATUS_STYLE}]{line}[/]")
      return

    if not self.active:
      return

    marker = STAGE_MARKERS.get(name)
    self.status = Text(f"{marker} {line}" if marker else line, style=STATUS_STYLE)
    self._show()

  def print(self, message: str) -> None:
    """Append to the output area while the panel is up, else print directly."""
    if self.live is None:
      console.print(message)
      return

    self.output.append(message)
    self._show()

  @contextmanager
  def suspended(self) -> Iterator[None]:
    """Take the panel down while cfdisk or a prompt owns the terminal."""
    resume = self.live is not None
    self._stop()
    try:
      yield
    finally:
      if resume and self.active:
        self._show()

  def _stop(self) -> None:
    if self.live is not None:
      self.live.stop()
      self.live = None

  def cleanup(self) -> None:
    self._stop()
    self.active = False
