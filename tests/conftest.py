import copy
from pathlib import Path

import pytest

from devenv_lib.context import DEFAULT_SETTINGS, EnvConfig


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def dotfiles(tmp_path: Path) -> Path:
    """A dotfiles checkout with tmux, nvim and zshrc packages."""
    root = tmp_path / "dotfiles"
    (root / "tmux").mkdir(parents=True)
    (root / "tmux" / ".tmux.conf").write_text("set -g mouse on\n")
    (root / "nvim" / ".config" / "nvim").mkdir(parents=True)
    (root / "nvim" / ".config" / "nvim" / "init.lua").write_text("vim.opt.number = true\n")
    (root / "zshrc").mkdir()
    (root / "zshrc" / ".zshrc").write_text("export EDITOR=nvim\n")
    return root


@pytest.fixture
def make_config(home: Path, dotfiles: Path):
    def _make(**overrides) -> EnvConfig:
        values = {
            "home": home,
            "dotfiles_dir": dotfiles,
            "shell": "/bin/bash",
            "user": "dev",
            "settings": copy.deepcopy(DEFAULT_SETTINGS),
        }
        values.update(overrides)
        return EnvConfig(**values)

    return _make
