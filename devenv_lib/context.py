"""Runtime context for devenv: environment detection and package selection.

Everything that depends on the process environment (Codespaces detection,
the current shell, sudo access, the target home directory) is resolved once
into an ``EnvConfig`` and handed to the orchestrators.
"""

import copy
import grp
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from .paths import DEVENV_CONFIG, DOTFILES_DIR, LINUXBREW_PREFIX, get_user_home

DEFAULT_SETTINGS: dict = {
    "packages": {
        "base": ["nvim", "tmux", "zshrc", "starship"],
        "terminal": ["alacritty", "kitty", "ghostty"],
        "optional": ["zellij"],
    },
    "linker": {
        "strategy": "symlink",
    },
    "environment": {
        "default_shell": "zsh",
        "directories": [".config", ".local/share/nvim", ".cache/nvim"],
        "tpm_url": "https://github.com/tmux-plugins/tpm",
    },
    "hooks": {
        "homebrew": {
            "comment": "Homebrew",
            "command": f"{LINUXBREW_PREFIX}/bin/brew shellenv",
            "marker": "linuxbrew",
            "requires_path": str(LINUXBREW_PREFIX),
        },
        "starship": {
            "comment": "Starship prompt",
            "command": "starship init {shell}",
            "requires_command": "starship",
        },
    },
}


def load_settings(path: Path = DEVENV_CONFIG) -> dict:
    """
    Load devenv.toml, filling in any missing tables from the defaults.

    Returns:
        Settings dictionary (never shares state with DEFAULT_SETTINGS)
    """
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    if not path.exists():
        return settings

    with open(path, "rb") as f:
        data = tomllib.load(f)

    for table, values in data.items():
        if isinstance(values, dict) and isinstance(settings.get(table), dict):
            settings[table].update(values)
        else:
            settings[table] = values
    return settings


def is_constrained(environ: Mapping[str, str]) -> bool:
    """Check if we are running inside a GitHub Codespace."""
    return bool(environ.get("CODESPACES"))


def _group_names() -> List[str]:
    names = []
    for gid in os.getgroups():
        try:
            names.append(grp.getgrgid(gid).gr_name)
        except KeyError:
            continue
    return names


def has_privileges(
    environ: Mapping[str, str],
    euid: Optional[int] = None,
    groups: Optional[Iterable[str]] = None,
) -> bool:
    """
    Check whether privileged steps (system package installs) may run.

    True in a Codespace, as root, or for members of the sudo group.
    """
    if is_constrained(environ):
        return True
    euid = os.geteuid() if euid is None else euid
    if euid == 0:
        return True
    groups = _group_names() if groups is None else groups
    return "sudo" in groups


@dataclass(frozen=True)
class EnvConfig:
    """Immutable runtime configuration shared by every step."""

    home: Path
    dotfiles_dir: Path
    constrained: bool = False
    privileged: bool = False
    shell: str = ""
    user: str = ""
    dry_run: bool = False
    verbose: bool = False
    settings: dict = field(default_factory=lambda: copy.deepcopy(DEFAULT_SETTINGS))

    @property
    def context_name(self) -> str:
        return "GitHub Codespaces" if self.constrained else "local"


def detect_context(
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
    dotfiles_dir: Optional[Path] = None,
    dry_run: bool = False,
    verbose: bool = False,
    settings: Optional[dict] = None,
) -> EnvConfig:
    """
    Build the EnvConfig for this run.

    Args:
        environ: Environment mapping (defaults to os.environ)
        home: Override the target home directory
        dotfiles_dir: Override the package directory
        dry_run: Only show what would be done
        verbose: Enable verbose output
        settings: Parsed devenv.toml (loaded from disk if not given)
    """
    environ = os.environ if environ is None else environ
    return EnvConfig(
        home=Path(home) if home else get_user_home(environ),
        dotfiles_dir=Path(dotfiles_dir) if dotfiles_dir else DOTFILES_DIR,
        constrained=is_constrained(environ),
        privileged=has_privileges(environ),
        shell=environ.get("SHELL", ""),
        user=environ.get("SUDO_USER") or environ.get("USER", ""),
        dry_run=dry_run,
        verbose=verbose,
        settings=settings if settings is not None else load_settings(),
    )


def select_packages(config: EnvConfig) -> List[str]:
    """
    Choose which dotfile packages to link.

    Terminal emulator packages are left out in a Codespace. Optional
    packages are only included when their directory exists.
    """
    pkgs = config.settings.get("packages", {})
    selected = list(pkgs.get("base", []))
    if not config.constrained:
        selected += pkgs.get("terminal", [])
    for name in pkgs.get("optional", []):
        if (config.dotfiles_dir / name).is_dir():
            selected.append(name)
    return selected
