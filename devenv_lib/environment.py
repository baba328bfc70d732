"""Environment configuration and post-install steps for devenv."""

import shutil
import subprocess
from pathlib import Path
from typing import Dict, List

from .base import BaseOrchestrator
from .context import EnvConfig
from .files import ensure_block, ensure_dir, render_template
from .git import ensure_clone
from .paths import TEMPLATES_DIR, get_tpm_dir

SHELL_HOOK_TEMPLATE = TEMPLATES_DIR / "shell_hook.sh.j2"


class EnvironmentSetup(BaseOrchestrator):
    """Default shell, tmux plugin manager, directories and shell init hooks."""

    def __init__(self, config: EnvConfig):
        super().__init__(dry_run=config.dry_run, verbose=config.verbose)
        self.config = config
        self.home = config.home
        self.settings = config.settings.get("environment", {})

    # -------------------------------------------------------------------------
    # Configure
    # -------------------------------------------------------------------------

    def set_default_shell(self) -> bool:
        """
        Make zsh the login shell.

        Never fatal: a Codespace cannot change it, and without sudo we skip.
        """
        shell_name = self.settings.get("default_shell", "zsh")
        shell_path = shutil.which(shell_name)
        if not shell_path:
            self.warn(f"{shell_name} not found, cannot make it the default shell")
            return False

        if self.config.shell == shell_path:
            self.log_verbose(f"{shell_name} is already the default shell")
            return False

        if self.config.constrained:
            self.warn(f"Cannot change default shell in Codespaces, but {shell_name} is available")
            return False

        if not self.config.privileged:
            self.warn(f"Skipping default shell change (no sudo access), run: chsh -s {shell_path}")
            return False

        self.log(f"Setting {shell_name} as default shell...")
        if self.dry_run:
            return True

        result = subprocess.run(
            ["sudo", "chsh", "-s", shell_path, self.config.user],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            self.warn(f"Failed to change default shell: {result.stderr.strip()}")
            return False

        self.record_change(f"Default shell set to {shell_path}")
        return True

    def install_plugin_manager(self) -> bool:
        """Clone the tmux plugin manager if it is not there yet."""
        tpm_dir = get_tpm_dir(self.home)
        if tpm_dir.exists():
            self.log_verbose(f"Tmux Plugin Manager already present at {tpm_dir}")
            return False

        self.log("Installing Tmux Plugin Manager...")
        changed, message = ensure_clone(self.settings["tpm_url"], tpm_dir, dry_run=self.dry_run)
        self.log_verbose(f"  {message}")
        if changed and not self.dry_run:
            self.record_change("Installed Tmux Plugin Manager")
        return changed

    def create_directories(self) -> List[Path]:
        """Create cache and config directories the linked tools expect."""
        created = []
        for rel in self.settings.get("directories", []):
            path = self.home / rel
            if path.is_dir():
                continue
            self.log_verbose(f"Creating directory: {path}")
            if not self.dry_run:
                ensure_dir(path)
                self.record_change(f"Created {path}")
            created.append(path)
        return created

    def configure(self) -> None:
        self.log("=== Configuring Development Environment ===")
        self.set_default_shell()
        self.install_plugin_manager()
        self.create_directories()

    # -------------------------------------------------------------------------
    # Post-install
    # -------------------------------------------------------------------------

    def install_tmux_plugins(self) -> bool:
        tpm_dir = get_tpm_dir(self.home)
        if not ((self.home / ".tmux.conf").exists() and tpm_dir.is_dir()):
            return False

        self.log("Installing tmux plugins...")
        if self.dry_run:
            return True

        try:
            result = subprocess.run(
                [str(tpm_dir / "bin" / "install_plugins")],
                capture_output=True,
                text=True,
            )
        except OSError as e:
            self.warn(f"Failed to install tmux plugins: {e}")
            return False

        if result.returncode != 0:
            self.warn("Failed to install tmux plugins")
            return False
        self.record_change("Installed tmux plugins")
        return True

    def _hook_applies(self, hook: dict) -> bool:
        requires_path = hook.get("requires_path")
        if requires_path and not Path(requires_path).is_dir():
            return False
        requires_command = hook.get("requires_command")
        if requires_command and not shutil.which(requires_command):
            return False
        return True

    def render_hook(self, hook: dict, shell: str) -> str:
        """Render the init block for one hook and shell."""
        return render_template(
            SHELL_HOOK_TEMPLATE,
            {"comment": hook["comment"], "command": hook["command"].format(shell=shell)},
        )

    def add_shell_hooks(self) -> Dict[str, List[str]]:
        """
        Append init blocks for installed tools to ~/.bashrc and ~/.zshrc.

        ~/.bashrc is created if needed; ~/.zshrc only gets hooks if it exists.
        A block is skipped when its marker is already in the file.

        Returns:
            Mapping of rc file name to the hooks added to it
        """
        added: Dict[str, List[str]] = {}
        rc_files = {"bash": self.home / ".bashrc", "zsh": self.home / ".zshrc"}

        for name, hook in self.config.settings.get("hooks", {}).items():
            if not self._hook_applies(hook):
                self.log_verbose(f"Skipping {name} shell hook (not installed)")
                continue

            for shell, rc in rc_files.items():
                if shell == "zsh" and not rc.exists():
                    continue
                marker = hook.get("marker") or hook["command"].format(shell=shell)
                if rc.exists() and marker.encode() in rc.read_bytes():
                    continue

                self.log(f"Adding {hook['comment']} to {shell}...")
                if not self.dry_run:
                    ensure_block(rc, self.render_hook(hook, shell), marker)
                    self.record_change(f"Added {name} hook to {rc}")
                added.setdefault(rc.name, []).append(name)

        return added

    def post_install(self) -> None:
        self.log("=== Running Post-installation Setup ===")
        self.install_tmux_plugins()
        self.log("Neovim plugins will be installed on first launch")
        self.add_shell_hooks()
