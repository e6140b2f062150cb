"""
Target configuration inside the changed root.

The settings reach the script as a block of shell assignments quoted with
shlex.quote; the script body only ever expands those variables in double
quotes, so no setting is interpreted as shell syntax.
"""

import shlex
from textwrap import dedent

from archtui.arch import chroot, install_packages, locale_gen_entry
from archtui.context import InstallPlan
from archtui.errors import CommandFailed, ConfigurationFailed
from archtui.log import get_logger
from archtui.registry import get_desktop
from archtui.utils import CommandRunner

logger = get_logger("chroot")

SCRIPT_NAME = "arch-tui-postinstall.sh"
SCRIPT_DIR = "/root"
MASK = "********"


def script_payload(plan: InstallPlan, bootloader_id: str, mask_secrets: bool = False) -> dict[str, str]:
  return {
    "LOCALE": plan.locale,
    "LOCALE_GEN_ENTRY": locale_gen_entry(plan.locale),
    "TIMEZONE": plan.timezone,
    "KEYMAP": plan.keymap,
    "TARGET_HOSTNAME": plan.hostname,
    "USERNAME": plan.username,
    "PASSWORD": MASK if mask_secrets else plan.password,
    "DESKTOP": plan.desktop,
    "TARGET_DISK": plan.device,
    "BOOTLOADER_ID": bootloader_id,
  }


def _section_header() -> str:
  return dedent("""\
    #!/usr/bin/env bash
    set -euo pipefail
    log() { echo "[chroot] $*"; }
  """)


def _section_payload(payload: dict[str, str]) -> str:
  return "".join(f"{key}={shlex.quote(value)}\n" for key, value in payload.items())


def _section_locale_and_time() -> str:
  return dedent("""\
    # Locale & time
    echo "$LOCALE_GEN_ENTRY" >> /etc/locale.gen
    locale-gen
    echo "LANG=$LOCALE" > /etc/locale.conf
    ln -sf "/usr/share/zoneinfo/$TIMEZONE" /etc/localtime
    hwclock --systohc
  """)


def _section_console_keymap() -> str:
  return dedent("""\
    # Console keymap
    echo "KEYMAP=$KEYMAP" > /etc/vconsole.conf
  """)


def _section_hostname() -> str:
  return dedent("""\
    # Hostname
    echo "$TARGET_HOSTNAME" > /etc/hostname
    printf '127.0.0.1 localhost\\n::1 localhost\\n127.0.1.1 %s\\n' "$TARGET_HOSTNAME" > /etc/hosts
  """)


def _section_network() -> str:
  return dedent("""\
    # NetworkManager
    systemctl enable NetworkManager
  """)


def _section_users() -> str:
  return dedent("""\
    # User accounts
    useradd -m -G wheel "$USERNAME"
    printf '%s:%s\\n' "$USERNAME" "$PASSWORD" | chpasswd
    printf 'root:%s\\n' "$PASSWORD" | chpasswd
    echo '%wheel ALL=(ALL:ALL) ALL' > /etc/sudoers.d/10-wheel
    chmod 0440 /etc/sudoers.d/10-wheel
  """)


def _section_desktop(desktop: str) -> str:
  role = get_desktop(desktop)
  lines = ["# Desktop environment", 'log "Desktop: $DESKTOP"']
  if role.packages:
    lines.append(shlex.join(install_packages(role.packages)))
  if role.service:
    lines.append(shlex.join(["systemctl", "enable", role.service]))
  return "\n".join(lines) + "\n"


def _section_bootloader() -> str:
  return dedent("""\
    # Bootloader - UEFI only
    if [[ ! -d /sys/firmware/efi ]]; then
      log "ERROR: Legacy BIOS detected inside chroot"
      exit 1
    fi
    grub-install --target=x86_64-efi --efi-directory=/boot "--bootloader-id=$BOOTLOADER_ID"
    grub-mkconfig -o /boot/grub/grub.cfg

    log "Configuration in chroot complete"
  """)


def generate_chroot(plan: InstallPlan, bootloader_id: str, mask_secrets: bool = False) -> str:
  parts: list[str] = [
    _section_header(),
    _section_payload(script_payload(plan, bootloader_id, mask_secrets)),
    _section_locale_and_time(),
    _section_console_keymap(),
    _section_hostname(),
    _section_network(),
    _section_users(),
    _section_desktop(plan.desktop),
    _section_bootloader(),
  ]
  return "\n".join(parts)


def configure_target(runner: CommandRunner, plan: InstallPlan, root_mount: str, bootloader_id: str) -> None:
  """
  Run the configuration script inside the target root.

  The script carries the password, so it is removed from the target whether
  or not it succeeded.
  """
  script_in_target = f"{SCRIPT_DIR}/{SCRIPT_NAME}"
  script_on_host = f"{root_mount.rstrip('/')}{script_in_target}"
  script = generate_chroot(plan, bootloader_id, mask_secrets=runner.dry_run)

  try:
    runner.write(script.splitlines(), script_on_host, mode=0o700)
    runner.cmd(chroot(root_mount, script_in_target))

  except CommandFailed as e:
    raise ConfigurationFailed(f"Target configuration failed: {e}") from e

  except OSError as e:
    raise ConfigurationFailed(f"Writing {script_on_host} failed: {e}") from e

  finally:
    runner.remove(script_on_host)
    logger.info("Removed %s", script_on_host)
