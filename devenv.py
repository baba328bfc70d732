#!/usr/bin/env python3
"""
devenv - provision a development environment from a dotfiles checkout.

Installs system packages and tools (Starship, Homebrew, Nushell, Zellij,
Neovim), links dotfile packages into $HOME with backups, and configures the
shell and tmux. Safe to re-run: installed tools are skipped and existing
links are left alone.

Usage:
    ./devenv.py                     # Full install (same as `install`)
    ./devenv.py install --dry-run   # Show what would change
    ./devenv.py deps                # System packages and tools only
    ./devenv.py tools neovim        # Install specific tools
    ./devenv.py link                # Link dotfile packages only
    ./devenv.py link tmux nvim      # Link specific packages
    ./devenv.py unlink tmux         # Remove links, restore backups
    ./devenv.py configure           # Default shell, tpm, directories
    ./devenv.py post                # tmux plugins, shell init hooks
    ./devenv.py info                # Show detected context

Set CODESPACES=1 to get the Codespaces behaviour (no terminal emulator
packages, no default shell change).
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add the checkout to path
sys.path.insert(0, str(Path(__file__).parent))

from devenv_lib.base import BaseOrchestrator
from devenv_lib.context import EnvConfig, detect_context, select_packages
from devenv_lib.environment import EnvironmentSetup
from devenv_lib.linker import DotfileLinker, LinkResult
from devenv_lib.packages import detect_pm, ensure_packages, load_package_manifest, update_system
from devenv_lib.paths import PACKAGES_CONFIG, PROJECT_ROOT
from devenv_lib.tools import ToolInstaller


class DevEnv(BaseOrchestrator):
    """Sequences the provisioning steps for one EnvConfig."""

    def __init__(self, config: EnvConfig):
        super().__init__(dry_run=config.dry_run, verbose=config.verbose)
        self.config = config
        self.failures: List[str] = []

    def _absorb(self, step: BaseOrchestrator) -> None:
        """Fold a step's changes and warnings into the run summary."""
        self.changes.extend(step.changes)
        self.warnings.extend(step.warnings)

    # -------------------------------------------------------------------------
    # Dependencies
    # -------------------------------------------------------------------------

    def install_packages(self, groups: Optional[List[str]] = None, update: bool = False) -> None:
        """Install system packages from packages.toml."""
        self.log("=== Installing System Packages ===")

        if not PACKAGES_CONFIG.exists():
            self.log("packages.toml not found, skipping")
            return

        pm = detect_pm()
        packages = load_package_manifest(PACKAGES_CONFIG, groups=groups, pm=pm)
        self.log(f"Package Manager: {pm.name}")
        self.log(f"Package groups: {', '.join(groups) if groups else 'all'}")
        self.log_verbose(f"Packages to ensure: {', '.join(packages)}")

        if self.dry_run:
            return

        if update:
            update_system(pm)
        installed = ensure_packages(packages, pm)
        if installed:
            self.record_change(f"Installed {len(installed)} packages")

    def install_tools(self, names: Optional[List[str]] = None) -> None:
        installer = ToolInstaller(self.config)
        installer.run(names)
        self._absorb(installer)

    def install_dependencies(self, groups: Optional[List[str]] = None, update: bool = False) -> None:
        """System packages then tools, only with sudo access."""
        if not self.config.privileged:
            self.warn("Skipping system dependencies installation (no sudo access)")
            self.warn("Please install manually: stow, zsh, tmux, neovim, starship, fzf, ripgrep")
            return

        self.install_packages(groups, update=update)
        self.install_tools()

    # -------------------------------------------------------------------------
    # Dotfiles
    # -------------------------------------------------------------------------

    def link_dotfiles(self, packages: Optional[List[str]] = None) -> LinkResult:
        linker = DotfileLinker(self.config)
        result = linker.link(packages or select_packages(self.config))
        self._absorb(linker)
        self.failures.extend(f"link {name}: {msg}" for name, msg in result.failed.items())
        return result

    def unlink_dotfiles(self, packages: Optional[List[str]] = None) -> LinkResult:
        linker = DotfileLinker(self.config)
        result = linker.unlink(packages or select_packages(self.config))
        self._absorb(linker)
        self.failures.extend(f"unlink {name}: {msg}" for name, msg in result.failed.items())
        return result

    # -------------------------------------------------------------------------
    # Environment
    # -------------------------------------------------------------------------

    def configure(self) -> None:
        setup = EnvironmentSetup(self.config)
        setup.configure()
        self._absorb(setup)

    def post_install(self) -> None:
        setup = EnvironmentSetup(self.config)
        setup.post_install()
        self._absorb(setup)

    # -------------------------------------------------------------------------
    # Full Install
    # -------------------------------------------------------------------------

    def install_all(self) -> None:
        """Run every step in order."""
        self.log("=" * 60)
        self.log("devenv - Development Environment Setup")
        self.log("=" * 60)
        self.log(f"Running in {self.config.context_name} environment")
        self.log(f"Home: {self.config.home}")
        self.log(f"Dotfiles: {self.config.dotfiles_dir}")
        self.log("")

        self.install_dependencies()
        self.link_dotfiles()
        self.configure()
        self.post_install()

        self.report()
        self.log("Installation complete!")
        if self.config.constrained:
            self.log("Your Codespace is ready! Neovim plugins will install on first launch.")
            self.log("To use zsh, run: exec zsh")
        else:
            self.log("Please restart your terminal or run: exec zsh")

    def report(self) -> None:
        self.summarize("devenv summary")
        for failure in self.failures:
            self.error(f"Failed: {failure}")


def build_parser() -> argparse.ArgumentParser:
    # Common flags shared by all subcommands
    common_parser = argparse.ArgumentParser(add_help=False)
    common_parser.add_argument(
        "-n", "--dry-run",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Show what would be done without making changes",
    )
    common_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable verbose output",
    )
    common_parser.add_argument(
        "--home",
        type=Path,
        default=argparse.SUPPRESS,
        help="Target home directory (default: the invoking user's home)",
    )
    common_parser.add_argument(
        "--dotfiles-dir",
        type=Path,
        default=argparse.SUPPRESS,
        help="Directory containing one subdirectory per dotfile package",
    )

    parser = argparse.ArgumentParser(
        description="devenv - provision a development environment",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
        parents=[common_parser],
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("install", help="Full install (default)", parents=[common_parser])

    deps_parser = subparsers.add_parser(
        "deps", help="Install system packages and tools", parents=[common_parser]
    )
    deps_parser.add_argument(
        "--groups",
        type=str,
        help="Comma-separated list of package groups",
    )
    deps_parser.add_argument(
        "--update",
        action="store_true",
        help="Update system packages before installing",
    )

    tools_parser = subparsers.add_parser(
        "tools", help="Install third-party tools only", parents=[common_parser]
    )
    tools_parser.add_argument("names", nargs="*", help="Tools to install (default: all)")

    link_parser = subparsers.add_parser(
        "link", help="Link dotfile packages into home", parents=[common_parser]
    )
    link_parser.add_argument("packages", nargs="*", help="Packages to link (default: selection)")

    unlink_parser = subparsers.add_parser(
        "unlink", help="Remove dotfile links and restore backups", parents=[common_parser]
    )
    unlink_parser.add_argument("packages", nargs="*", help="Packages to unlink (default: selection)")

    subparsers.add_parser(
        "configure", help="Default shell, tmux plugin manager, directories", parents=[common_parser]
    )
    subparsers.add_parser(
        "post", help="tmux plugins and shell init hooks", parents=[common_parser]
    )
    subparsers.add_parser("info", help="Show detected context", parents=[common_parser])

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    command = args.command or "install"
    verbose = getattr(args, "verbose", False)

    try:
        config = detect_context(
            home=getattr(args, "home", None),
            dotfiles_dir=getattr(args, "dotfiles_dir", None),
            dry_run=getattr(args, "dry_run", False),
            verbose=verbose,
        )
        env = DevEnv(config)

        if command == "install":
            env.install_all()

        elif command == "deps":
            groups = args.groups.split(",") if args.groups else None
            env.install_dependencies(groups, update=args.update)
            env.report()

        elif command == "tools":
            env.install_tools(args.names or None)
            env.report()

        elif command == "link":
            env.link_dotfiles(args.packages or None)
            env.report()

        elif command == "unlink":
            env.unlink_dotfiles(args.packages or None)
            env.report()

        elif command == "configure":
            env.configure()
            env.report()

        elif command == "post":
            env.post_install()
            env.report()

        elif command == "info":
            print(f"Context: {config.context_name}")
            print(f"Privileged: {config.privileged}")
            print(f"Shell: {config.shell or 'unknown'}")
            print(f"Home: {config.home}")
            print(f"Dotfiles Dir: {config.dotfiles_dir}")
            print(f"Packages: {', '.join(select_packages(config))}")
            print(f"Link Strategy: {config.settings['linker']['strategy']}")
            print(f"Project Root: {PROJECT_ROOT}")
            print(f"Python: {sys.version}")

    except KeyboardInterrupt:
        print("\nAborted.")
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if verbose:
            import traceback
            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
