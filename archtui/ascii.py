from rich.console import Console

console = Console()

# ============================================================================
# ARCH LINUX
# ============================================================================
_arch_logo: str = """[bold blue]
       /\\
      /  \\
     /\\   \\
    /      \\
   /   ,,   \\
  /   |  |  -\\
 /_-''    ''-_\\[/]"""

_title: str = "[bold white]Arch TUI Installer[/]"


def print_logo(clear: bool = True) -> None:
  if clear:
    console.clear()
  console.print(f"{_arch_logo}\n{_title}\n[blue]A guided Arch Linux install from the live ISO.[/]")
