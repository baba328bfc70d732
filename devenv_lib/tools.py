"""Third-party tool installation for devenv - prompt, shell, multiplexer, editor.

Each tool in tools.toml declares how to detect it (``command``,
``check_cmd``, ``version_regex``, ``min_version``) and an ordered list of
install ``strategies``. The first strategy that is available on this system
and leaves the tool at an acceptable version wins.
"""

import os
import re
import shutil
import subprocess
import tempfile
import tomllib
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from urllib.request import urlopen

from .base import BaseOrchestrator
from .context import EnvConfig
from .paths import TOOLS_CONFIG

# Command that must be on PATH for a strategy to be tried
STRATEGY_REQUIRES = {
    "brew": "brew",
    "apt": "apt-get",
    "ppa": "apt-get",
    "cargo": "cargo",
    "script": None,
    "binary": None,
}


def load_tools_config(path: Path = TOOLS_CONFIG) -> dict:
    """Load tool definitions from tools.toml."""
    if not path.exists():
        return {}
    with open(path, "rb") as f:
        return tomllib.load(f)


def parse_version(version: str) -> Optional[Tuple[int, ...]]:
    """Parse the major.minor part of a version string."""
    match = re.match(r"v?(\d+)(?:\.(\d+))?", version.strip())
    if not match:
        return None
    return tuple(int(part) for part in match.groups(default="0"))


def meets_minimum(installed: str, minimum: str) -> bool:
    """Check if installed version meets minimum requirement."""
    inst_parts = parse_version(installed)
    min_parts = parse_version(minimum)
    if inst_parts is None or min_parts is None:
        return True  # If we can't parse, assume it's fine
    return inst_parts >= min_parts


class ToolInstaller(BaseOrchestrator):
    """Checks for third-party tools and installs the missing ones."""

    meets_minimum = staticmethod(meets_minimum)

    def __init__(
        self,
        config: EnvConfig,
        tools: Optional[dict] = None,
        tools_path: Path = TOOLS_CONFIG,
    ):
        super().__init__(dry_run=config.dry_run, verbose=config.verbose)
        self.config = config
        self.tools_path = tools_path
        self.tools = load_tools_config(tools_path) if tools is None else tools
        self._strategies: Dict[str, Callable[[str, dict], bool]] = {
            "brew": self._install_brew,
            "apt": self._install_apt,
            "ppa": self._install_ppa,
            "cargo": self._install_cargo,
            "script": self._install_script,
            "binary": self._install_binary,
        }

    def names(self) -> List[str]:
        return [k for k, v in self.tools.items() if isinstance(v, dict)]

    # -------------------------------------------------------------------------
    # Capability checks
    # -------------------------------------------------------------------------

    def _search_path(self, tc: dict) -> str:
        path = os.environ.get("PATH", "")
        path_add = self._expand(tc.get("path_add", ""))
        if path_add and Path(path_add).is_dir():
            path = path_add + os.pathsep + path
        return path

    def _expand(self, value: str) -> str:
        return value.replace("$HOME", str(self.config.home))

    def check(self, name: str) -> Tuple[bool, Optional[str]]:
        """
        Check if a tool is installed and get its version.

        Returns:
            Tuple of (is_installed, version_string)
        """
        tc = self.tools.get(name, {})
        search_path = self._search_path(tc)
        command = tc.get("command", name)
        if not shutil.which(command, path=search_path):
            return False, None

        check_cmd = tc.get("check_cmd")
        version_regex = tc.get("version_regex")
        if not check_cmd or not version_regex:
            return True, None

        env = os.environ.copy()
        env["PATH"] = search_path
        try:
            result = subprocess.run(
                check_cmd,
                shell=True,
                capture_output=True,
                text=True,
                env=env,
            )
        except OSError:
            return True, None

        match = re.search(version_regex, result.stdout + result.stderr)
        return True, match.group(1) if match else None

    def is_acceptable(self, name: str) -> bool:
        """Check if a tool is present at an acceptable version."""
        installed, version = self.check(name)
        if not installed:
            return False
        min_version = self.tools.get(name, {}).get("min_version")
        if version and min_version:
            return meets_minimum(version, min_version)
        return True

    def _update_path(self, name: str) -> None:
        """Make a freshly installed tool visible to later steps of this run."""
        path_add = self._expand(self.tools.get(name, {}).get("path_add", ""))
        if not path_add or not Path(path_add).is_dir():
            return
        current = os.environ.get("PATH", "")
        if path_add not in current.split(os.pathsep):
            self.log_verbose(f"  Adding {path_add} to PATH")
            os.environ["PATH"] = path_add + os.pathsep + current

    # -------------------------------------------------------------------------
    # Install strategies
    # -------------------------------------------------------------------------

    def _run(self, cmd, shell: bool = False) -> bool:
        shown = cmd if isinstance(cmd, str) else " ".join(cmd)
        self.log_verbose(f"    $ {shown}")
        if self.dry_run:
            return True
        result = subprocess.run(
            cmd,
            shell=shell,
            executable="/bin/bash" if shell else None,
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            self.log(f"  Command failed: {shown}")
            if result.stderr:
                self.log_verbose(result.stderr.strip())
            return False
        return True

    def _install_brew(self, name: str, tc: dict) -> bool:
        return self._run(["brew", "install", tc.get("formula", name)])

    def _install_apt(self, name: str, tc: dict) -> bool:
        return self._run(["sudo", "apt-get", "install", "-y", "-qq", tc.get("apt_package", name)])

    def _install_ppa(self, name: str, tc: dict) -> bool:
        ppa = tc.get("ppa")
        if not ppa:
            return False
        return (
            self._run(["sudo", "apt-get", "install", "-y", "-qq", "software-properties-common"])
            and self._run(["sudo", "add-apt-repository", "-y", ppa])
            and self._run(["sudo", "apt-get", "update", "-qq"])
            and self._run(["sudo", "apt-get", "install", "-y", "-qq", tc.get("apt_package", name)])
        )

    def _install_cargo(self, name: str, tc: dict) -> bool:
        return self._run(["cargo", "install", tc.get("crate", name)])

    def _install_script(self, name: str, tc: dict) -> bool:
        script = tc.get("install_script")
        if not script:
            return False
        return self._run(script, shell=True)

    def _get_latest_version(self, name: str) -> Optional[str]:
        """Fetch the latest release tag of a tool."""
        tc = self.tools.get(name, {})
        latest_url = tc.get("latest_url")
        if not latest_url:
            return None

        try:
            with urlopen(latest_url, timeout=10) as resp:
                content = resp.read().decode("utf-8")
        except OSError as e:
            self.log_verbose(f"  Failed to fetch latest version: {e}")
            return None

        latest_regex = tc.get("latest_regex")
        if latest_regex:
            match = re.search(latest_regex, content)
            return match.group(1) if match else None
        return content.strip() or None

    def _install_binary(self, name: str, tc: dict) -> bool:
        """Install a release tarball under /opt and link its binary."""
        version = self._get_latest_version(name)
        if not version:
            self.log("  Could not determine latest version")
            return False

        url = tc.get("install_url", "").format(version=version)
        install_path = Path(tc.get("install_path", f"/opt/{name}"))
        binary = install_path / tc.get("binary", f"bin/{tc.get('command', name)}")
        link = Path("/usr/local/bin") / tc.get("command", name)

        self.log(f"  Downloading {url}")
        if self.dry_run:
            return True

        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(delete=False, suffix=".tar.gz") as tmp:
                tmp_path = tmp.name
                with urlopen(url, timeout=60) as resp:
                    shutil.copyfileobj(resp, tmp)

            self.log(f"  Extracting to {install_path.parent}")
            subprocess.run(
                ["sudo", "tar", "-C", str(install_path.parent), "-xzf", tmp_path],
                check=True,
            )
            subprocess.run(["sudo", "ln", "-sf", str(binary), str(link)], check=True)
            return True
        except (OSError, subprocess.CalledProcessError) as e:
            self.log(f"  ERROR: {e}")
            return False
        finally:
            if tmp_path and Path(tmp_path).exists():
                os.unlink(tmp_path)

    # -------------------------------------------------------------------------
    # Orchestration
    # -------------------------------------------------------------------------

    def available_strategies(self, name: str) -> List[str]:
        """Strategies for a tool whose prerequisite command is present."""
        available = []
        for strategy in self.tools.get(name, {}).get("strategies", ["script"]):
            if strategy not in self._strategies:
                self.warn(f"Unknown install strategy '{strategy}' for {name}")
                continue
            required = STRATEGY_REQUIRES[strategy]
            if required and not shutil.which(required):
                continue
            available.append(strategy)
        return available

    def ensure_tool(self, name: str) -> bool:
        """
        Ensure a tool is installed and meets version requirements.

        Returns:
            True if tool is available (installed or was installed)
        """
        if name not in self.tools:
            self.warn(f"Unknown tool: {name}")
            return False

        tc = self.tools[name]
        installed, version = self.check(name)
        min_version = tc.get("min_version")
        too_old = bool(version and min_version and not meets_minimum(version, min_version))
        if installed and not too_old:
            self.log_verbose(f"{name} is installed" + (f" ({version})" if version else ""))
            self._update_path(name)
            return True

        if too_old:
            self.log(f"{name} {version} is too old (need >= {min_version})")
        self.log(f"Installing {name}...")

        strategies = self.available_strategies(name)
        for strategy in strategies:
            self.log(f"  Trying {strategy}...")
            if not self._strategies[strategy](name, tc):
                continue
            if self.dry_run:
                return True
            self._update_path(name)
            if self.is_acceptable(name):
                self.log(f"  {name} installed successfully with {strategy}")
                self.record_change(f"Installed {name} ({strategy})")
                return True
            self.log(f"  {strategy} did not provide a usable {name}, trying other methods...")

        tried = ", ".join(strategies) or "no available method"
        self.warn(f"Could not install {name} - tried {tried}")
        return False

    def run(self, names: Optional[List[str]] = None) -> Dict[str, bool]:
        """
        Ensure every tool (or the given subset) is installed.

        Failures are warnings; they never abort the run.
        """
        self.log("=== Installing Tools ===")

        if not self.tools and not self.tools_path.exists():
            self.log(f"{self.tools_path.name} not found, skipping")
            return {}

        return {name: self.ensure_tool(name) for name in (names or self.names())}
