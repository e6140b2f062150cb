import pytest

from archtui.tui import TUI, progress_bar


def test_progress_bar() -> None:
  assert progress_bar(1, 3) == "[▓░░]"
  assert progress_bar(3, 3) == "[▓▓▓]"


def test_plain_output_without_terminal(capsys: pytest.CaptureFixture[str]) -> None:
  ui = TUI(dry_mode=True)
  ui.initialize()

  ui.show_stage(2, 3, "System Bootstrap")
  ui.print("[DRY RUN] pacstrap -K /mnt base")
  with ui.suspended():
    ui.print("inside")
  ui.cleanup()

  out = capsys.readouterr().out
  assert "[▓▓░] System Bootstrap · Step 2/3" in out
  assert "[DRY RUN] pacstrap -K /mnt base" in out
  assert "inside" in out
  assert ui.live is None
