"""Dotfile linking: expose package files in the home directory via symlinks.

A package is a directory under the dotfiles directory whose tree mirrors the
home directory, e.g. ``dotfiles/tmux/.tmux.conf`` -> ``~/.tmux.conf``.
Linking a package first moves aside every conflicting regular file, then
creates one symlink per file.
"""

import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .base import BaseOrchestrator
from .context import EnvConfig
from .files import backup_path_for, ensure_symlink, latest_backup, move_aside, points_to

STRATEGIES = ("symlink", "stow")


@dataclass
class Package:
    """A named directory of configuration files."""

    name: str
    root: Path

    def exists(self) -> bool:
        return self.root.is_dir()

    def files(self) -> List[Path]:
        """All regular files in the package, sorted for a stable order."""
        return sorted(p for p in self.root.rglob("*") if p.is_file())

    def targets(self, home: Path) -> List[Tuple[Path, Path]]:
        """Pairs of (package file, target path in home)."""
        return [(src.absolute(), home / src.relative_to(self.root)) for src in self.files()]


@dataclass
class LinkResult:
    """Outcome of a link or unlink run."""

    linked: List[Path] = field(default_factory=list)
    unchanged: List[Path] = field(default_factory=list)
    backups: List[Tuple[Path, Path]] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)
    restored: List[Tuple[Path, Path]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class DotfileLinker(BaseOrchestrator):
    """Links dotfile packages into the home directory."""

    def __init__(self, config: EnvConfig, strategy: Optional[str] = None):
        super().__init__(dry_run=config.dry_run, verbose=config.verbose)
        self.config = config
        self.home = config.home
        self.dotfiles_dir = config.dotfiles_dir
        self.strategy = strategy or config.settings.get("linker", {}).get("strategy", "symlink")
        if self.strategy not in STRATEGIES:
            raise ValueError(
                f"Unknown link strategy '{self.strategy}' (expected one of: {', '.join(STRATEGIES)})"
            )

    def package(self, name: str) -> Package:
        return Package(name=name, root=self.dotfiles_dir / name)

    # -------------------------------------------------------------------------
    # Linking
    # -------------------------------------------------------------------------

    def link(self, packages: Sequence[str]) -> LinkResult:
        """
        Link every package in order.

        A missing package is skipped with a warning. A package that fails to
        link is recorded in ``result.failed`` and the remaining packages are
        still processed.
        """
        self.log(f"=== Linking Dotfiles ({self.strategy}) ===")
        result = LinkResult()

        for name in packages:
            pkg = self.package(name)
            if not pkg.exists():
                self.warn(f"Package {name} not found, skipping...")
                result.skipped.append(name)
                continue

            self.log(f"Processing {name}...")
            try:
                self._backup_conflicts(pkg, result)
                if self.strategy == "stow":
                    self._stow(pkg)
                else:
                    self._link_files(pkg, result)
            except OSError as e:
                self.error(f"Failed to link {name}: {e}")
                self.warn("You may need to resolve conflicts manually")
                result.failed[name] = str(e)

        return result

    def _backup_conflicts(self, pkg: Package, result: LinkResult) -> None:
        """Move aside every target that exists and is not a symlink."""
        for src, target in pkg.targets(self.home):
            # Parent directory already symlinked into the package
            if points_to(target, src):
                continue
            if target.is_symlink() or not target.exists():
                continue

            if self.dry_run:
                self.warn(f"Would back up existing {target} to {backup_path_for(target)}")
                continue

            backup = move_aside(target)
            self.warn(f"Backing up existing {target} to {backup}")
            result.backups.append((target, backup))
            self.record_change(f"Backed up {target}")

    def _link_files(self, pkg: Package, result: LinkResult) -> None:
        self.log(f"Linking {pkg.name}...")
        for src, target in pkg.targets(self.home):
            if points_to(target, src):
                self.log_verbose(f"  {target} already linked")
                result.unchanged.append(target)
                continue

            self.log_verbose(f"  {target} -> {src}")
            if self.dry_run:
                continue

            if ensure_symlink(target, src):
                result.linked.append(target)
                self.record_change(f"Linked {target}")

    def _stow(self, pkg: Package) -> None:
        self.log(f"Stowing {pkg.name}...")
        if not shutil.which("stow"):
            raise OSError("stow is not installed")

        cmd = ["stow", "-v", "-d", str(self.dotfiles_dir), "-t", str(self.home), pkg.name]
        # Conflicts are not moved aside in dry-run, so --simulate would fail on them
        if self.dry_run:
            self.log(f"Would run: {' '.join(cmd)}")
            return

        proc = subprocess.run(cmd, capture_output=True, text=True)
        if self.verbose and proc.stderr:
            self.log(proc.stderr.strip())
        if proc.returncode != 0:
            raise OSError(proc.stderr.strip() or f"stow exited with {proc.returncode}")
        self.record_change(f"Stowed {pkg.name}")

    # -------------------------------------------------------------------------
    # Unlinking
    # -------------------------------------------------------------------------

    def unlink(self, packages: Sequence[str]) -> LinkResult:
        """
        Remove links into the given packages and restore backups.

        Only symlinks that point at the package's own files are removed.
        """
        self.log("=== Unlinking Dotfiles ===")
        result = LinkResult()

        for name in packages:
            pkg = self.package(name)
            if not pkg.exists():
                self.warn(f"Package {name} not found, skipping...")
                result.skipped.append(name)
                continue

            self.log(f"Unlinking {name}...")
            try:
                for src, target in pkg.targets(self.home):
                    self._unlink_file(src, target, result)
            except OSError as e:
                self.error(f"Failed to unlink {name}: {e}")
                result.failed[name] = str(e)

        return result

    def _unlink_file(self, src: Path, target: Path, result: LinkResult) -> None:
        if not (target.is_symlink() and points_to(target, src)):
            return

        backup = latest_backup(target)
        self.log_verbose(f"  Removing {target}")
        if backup:
            self.log(f"  Restoring {backup} to {target}")
        if self.dry_run:
            return

        target.unlink()
        result.removed.append(target)
        self.record_change(f"Removed link {target}")
        if backup:
            backup.rename(target)
            result.restored.append((backup, target))
            self.record_change(f"Restored {target}")
