"""Centralized path constants for devenv.

This module provides all path constants used throughout devenv,
ensuring consistency and making paths easy to update.
"""

import os
from pathlib import Path
from typing import Mapping, Optional

# Project paths (relative to this file's location)
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
CONFIGS_DIR = PROJECT_ROOT / "configs"
DOTFILES_DIR = PROJECT_ROOT / "dotfiles"
TEMPLATES_DIR = CONFIGS_DIR / "templates"

# Config file paths
DEVENV_CONFIG = CONFIGS_DIR / "devenv.toml"
PACKAGES_CONFIG = CONFIGS_DIR / "packages.toml"
TOOLS_CONFIG = CONFIGS_DIR / "tools.toml"

# Homebrew on Linux
LINUXBREW_PREFIX = Path("/home/linuxbrew/.linuxbrew")

BACKUP_SUFFIX = ".backup"


# User paths
def get_user_home(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Get real user's home directory (handles sudo).

    When running under sudo, returns the original user's home directory,
    not root's home.
    """
    environ = os.environ if environ is None else environ
    sudo_user = environ.get("SUDO_USER")
    if sudo_user:
        import pwd
        try:
            return Path(pwd.getpwnam(sudo_user).pw_dir)
        except KeyError:
            pass
    return Path.home()


def get_tpm_dir(home: Path) -> Path:
    """Get the tmux plugin manager checkout location."""
    return home / ".tmux" / "plugins" / "tpm"
