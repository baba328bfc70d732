"""devenv - provision a development environment from a dotfiles checkout."""

from .context import EnvConfig, detect_context, select_packages
from .linker import DotfileLinker, LinkResult, Package
from .tools import ToolInstaller
from .environment import EnvironmentSetup
from .packages import PackageManager, detect_pm, ensure_packages
from .files import ensure_symlink, ensure_dir, ensure_block, render_template

__all__ = [
    "EnvConfig",
    "detect_context",
    "select_packages",
    "DotfileLinker",
    "LinkResult",
    "Package",
    "ToolInstaller",
    "EnvironmentSetup",
    "PackageManager",
    "detect_pm",
    "ensure_packages",
    "ensure_symlink",
    "ensure_dir",
    "ensure_block",
    "render_template",
]
