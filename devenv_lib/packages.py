"""
System packages for devenv: the distro-level prerequisites of the dotfiles.

packages.toml groups package names (``core`` for the shell and search tools,
``dev`` for compilers and client libraries) using their Debian names, and
renames them per manager under ``[aliases.<pm>]``. An alias of ``""`` marks
a package that has no equivalent on that distro.
"""

import shutil
import subprocess
import tomllib
from enum import Enum, auto
from pathlib import Path
from typing import Optional


class PackageManager(Enum):
    APT = auto()
    PACMAN = auto()
    DNF = auto()


INSTALL_COMMANDS = {
    PackageManager.APT: ["sudo", "apt-get", "install", "-y", "-qq"],
    PackageManager.PACMAN: ["sudo", "pacman", "-S", "--noconfirm", "--needed"],
    PackageManager.DNF: ["sudo", "dnf", "install", "-y", "-q"],
}

# Each prints installed package names, one per line
QUERY_COMMANDS = {
    PackageManager.APT: ["dpkg-query", "-W", "-f=${Package}\n"],
    PackageManager.PACMAN: ["pacman", "-Qq"],
    PackageManager.DNF: ["rpm", "-qa", "--queryformat", "%{NAME}\n"],
}

UPGRADE_COMMANDS = {
    PackageManager.APT: [
        ["sudo", "apt-get", "update"],
        ["sudo", "apt-get", "upgrade", "-y"],
    ],
    PackageManager.PACMAN: [["sudo", "pacman", "-Syu", "--noconfirm"]],
    PackageManager.DNF: [["sudo", "dnf", "upgrade", "-y"]],
}

# apt-get update runs at most once per devenv run
_apt_lists_fresh = False


def detect_pm() -> PackageManager:
    """Pick the first supported package manager found on PATH."""
    for pm, command in (
        (PackageManager.APT, "apt-get"),
        (PackageManager.PACMAN, "pacman"),
        (PackageManager.DNF, "dnf"),
    ):
        if shutil.which(command):
            return pm
    raise RuntimeError("No supported package manager (apt-get, pacman, dnf) found")


def get_installed_packages(pm: Optional[PackageManager] = None) -> set[str]:
    """Names of every installed package, from a single query."""
    pm = pm or detect_pm()
    result = subprocess.run(QUERY_COMMANDS[pm], capture_output=True, text=True)
    if result.returncode != 0:
        return set()
    return set(result.stdout.split())


def _refresh_apt_lists() -> None:
    global _apt_lists_fresh
    if _apt_lists_fresh:
        return
    print("Updating package lists...")
    subprocess.run(["sudo", "apt-get", "update", "-qq"], check=True)
    _apt_lists_fresh = True


def install(packages: list[str], pm: Optional[PackageManager] = None) -> None:
    """Install packages unconditionally. Use ensure_packages to skip installed ones."""
    pm = pm or detect_pm()
    if not packages:
        return
    if pm == PackageManager.APT:
        _refresh_apt_lists()
    subprocess.run(INSTALL_COMMANDS[pm] + packages, check=True)


def ensure_packages(
    packages: list[str],
    pm: Optional[PackageManager] = None,
) -> list[str]:
    """
    Install whichever of the given packages are missing.

    A failed install raises CalledProcessError: without its system packages
    the rest of the setup cannot work.

    Returns:
        Packages that were newly installed
    """
    pm = pm or detect_pm()

    installed = get_installed_packages(pm)
    missing = [p for p in packages if p not in installed]

    if not missing:
        print("All packages already installed")
        return []

    print(f"Installing: {', '.join(missing)}")
    install(missing, pm)
    return missing


def manifest_groups(manifest: dict) -> list[str]:
    """Group names in file order, excluding the aliases table."""
    return [
        name for name, table in manifest.items()
        if name != "aliases" and isinstance(table, dict) and "packages" in table
    ]


def load_package_manifest(
    manifest_path: Path,
    groups: Optional[list[str]] = None,
    pm: Optional[PackageManager] = None,
) -> list[str]:
    """
    Resolve packages.toml into package names for this distro.

    Args:
        manifest_path: Path to packages.toml
        groups: Groups to include, e.g. ["core"]. All groups when None.
        pm: Manager whose aliases apply (auto-detected if not specified)

    Returns:
        Deduplicated names in manifest order. Packages aliased to "" are
        dropped.
    """
    pm = pm or detect_pm()

    with open(manifest_path, "rb") as f:
        manifest = tomllib.load(f)

    aliases = manifest.get("aliases", {}).get(pm.name.lower(), {})

    packages: list[str] = []
    for group in groups or manifest_groups(manifest):
        for pkg in manifest.get(group, {}).get("packages", []):
            resolved = aliases.get(pkg, pkg)
            if resolved and resolved not in packages:
                packages.append(resolved)
    return packages


def update_system(pm: Optional[PackageManager] = None) -> None:
    """Refresh package lists and upgrade what is installed (deps --update)."""
    pm = pm or detect_pm()
    for cmd in UPGRADE_COMMANDS[pm]:
        print(f"Running: {' '.join(cmd)}")
        subprocess.run(cmd, check=True)
