from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager

from rich.columns import Columns
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from archtui.errors import Cancelled

console = Console()

Option = tuple[str, str]


@contextmanager
def _cancellable(title: str) -> Iterator[None]:
  try:
    yield
  except (KeyboardInterrupt, EOFError) as e:
    console.print()
    raise Cancelled(f"{title} cancelled") from e


def _heading(title: str) -> None:
  console.print()
  console.print(f"[bold blue]{escape(title)}[/]")


def _ask(prompt: str, default: str | None) -> str:
  # Prompt.ask returns default verbatim on empty input, so None must not reach it
  if default is None:
    return Prompt.ask(prompt).strip()
  return Prompt.ask(prompt, default=default).strip()


class Prompter:
  """
  Terminal prompts used to collect the installation settings.

  Every operation returns the operator's answer or raises Cancelled when the
  prompt is aborted with Ctrl-C or end of input.
  """

  def select(self, title: str, prompt: str, options: Sequence[Option], default: str | None = None) -> str:
    if not options:
      raise ValueError(f"{title}: no options to choose from")

    values = [value for value, _ in options]
    with _cancellable(title):
      _heading(title)
      entries = [
        f"[bold]{i:>3}.[/] {escape(value)}" + (f" [dim]{escape(desc)}[/]" if desc else "")
        for i, (value, desc) in enumerate(options, start=1)
      ]
      if len(entries) > 12:
        console.print(Columns(entries, equal=True, expand=False))
      else:
        for entry in entries:
          console.print(f" {entry}")

      while True:
        answer = _ask(prompt, default)
        if answer.isdigit() and 1 <= int(answer) <= len(values):
          return values[int(answer) - 1]
        if answer in values:
          return answer
        console.print("\n[prompt.invalid.choice]Please select one of the available options (number or name)")

  def text(
    self,
    title: str,
    prompt: str,
    default: str | None = None,
    validate: Callable[[str], bool] | None = None,
    error: str = "Invalid value - try again.",
  ) -> str:
    with _cancellable(title):
      _heading(title)
      while True:
        value = _ask(prompt, default)
        if not value or (validate is not None and not validate(value)):
          console.print(f"\n[prompt.invalid]{escape(error)}[/]")
          continue
        return value

  def secret(self, title: str, prompt: str) -> str:
    with _cancellable(title):
      _heading(title)
      return Prompt.ask(prompt, password=True)

  def confirm(self, title: str, prompt: str, default: bool = False) -> bool:
    with _cancellable(title):
      _heading(title)
      return Confirm.ask(prompt, default=default)

  def message(self, title: str, text: str, style: str = "blue") -> None:
    """Show a modal message and wait for Enter."""
    with _cancellable(title):
      console.print()
      console.print(Panel(escape(text), title=escape(title), border_style=style, expand=False, padding=(1, 2)))
      _ = console.input("[dim]Press <Enter> to continue[/]")
