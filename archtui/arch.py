"""Arch Linux specific commands"""


def install_base_system(root_mount: str, packages: list[str]) -> list[str]:
  # -K initialises an empty pacman keyring in the target
  return ["pacstrap", "-K", root_mount, *packages]


def generate_fstab(root_mount: str) -> list[str]:
  return ["genfstab", "-U", root_mount]


def fstab_path(root_mount: str) -> str:
  return f"{root_mount.rstrip('/')}/etc/fstab"


def chroot(root_mount: str, *argv: str) -> list[str]:
  return ["arch-chroot", root_mount, *argv]


def install_packages(packages: list[str] | tuple[str, ...]) -> list[str]:
  return ["pacman", "-S", "--noconfirm", "--needed", *packages]


def locale_gen_entry(locale: str) -> str:
  """Line enabling locale in /etc/locale.gen, e.g. 'en_US.UTF-8 UTF-8'."""
  if "." in locale:
    charset = locale.split(".", 1)[1].split("@", 1)[0]
    return f"{locale} {charset}"
  return f"{locale} ISO-8859-1"
