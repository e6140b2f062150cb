"""
Desktop and role registry.

Each selectable desktop maps to the packages installed in the target and the
display manager enabled for it. "none" installs nothing.
"""

from typing import Final

from archtui.types import DesktopRole

DESKTOPS: Final[dict[str, DesktopRole]] = {
  "gnome": DesktopRole("gnome", "GNOME", ("gnome", "gdm"), "gdm"),
  "kde": DesktopRole("kde", "KDE Plasma", ("plasma", "kde-applications", "sddm"), "sddm"),
  "cinnamon": DesktopRole("cinnamon", "Cinnamon", ("cinnamon", "gdm"), "gdm"),
  "xfce": DesktopRole("xfce", "Xfce", ("xfce4", "xfce4-goodies", "lightdm", "lightdm-gtk-greeter"), "lightdm"),
  "hyprland": DesktopRole("hyprland", "Hyprland (Wayland)", ("hyprland", "waybar", "xdg-desktop-portal-hyprland")),
  "sway": DesktopRole("sway", "Sway (Wayland)", ("sway", "swaybg", "xorg-xwayland")),
  "i3": DesktopRole("i3", "i3 (X11 minimal)", ("i3-wm", "i3status", "dmenu")),
  "none": DesktopRole("none", "None - bare bones"),
}


def get_desktop(name: str) -> DesktopRole:
  try:
    return DESKTOPS[name]
  except KeyError:
    raise ValueError(f"Unknown desktop selection: {name}") from None


def desktop_options() -> list[tuple[str, str]]:
  return [(role.name, role.description) for role in DESKTOPS.values()]
