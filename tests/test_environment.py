"""Tests for environment configuration and post-install steps."""

import subprocess

import pytest

from devenv_lib.environment import EnvironmentSetup
from devenv_lib.paths import get_tpm_dir

STARSHIP_ONLY = {
    "starship": {
        "comment": "Starship prompt",
        "command": "starship init {shell}",
        "requires_command": "starship",
    }
}


def with_hooks(config_factory, hooks, **overrides):
    config = config_factory(**overrides)
    config.settings["hooks"] = hooks
    return config


def test_create_directories(make_config, home):
    setup = EnvironmentSetup(make_config())

    created = setup.create_directories()

    assert created == [home / ".config", home / ".local/share/nvim", home / ".cache/nvim"]
    assert all(path.is_dir() for path in created)
    assert setup.create_directories() == []


def test_default_shell_not_changed_in_codespaces(make_config, monkeypatch):
    monkeypatch.setattr("devenv_lib.environment.shutil.which", lambda cmd: "/usr/bin/zsh")
    monkeypatch.setattr("devenv_lib.environment.subprocess.run", lambda *a, **kw: pytest.fail("ran chsh"))
    setup = EnvironmentSetup(make_config(constrained=True, privileged=True))

    assert not setup.set_default_shell()
    assert "Cannot change default shell in Codespaces" in setup.warnings[0]


def test_default_shell_already_zsh(make_config, monkeypatch):
    monkeypatch.setattr("devenv_lib.environment.shutil.which", lambda cmd: "/usr/bin/zsh")
    setup = EnvironmentSetup(make_config(shell="/usr/bin/zsh", privileged=True))

    assert not setup.set_default_shell()
    assert setup.warnings == []


def test_default_shell_changed_with_sudo(make_config, monkeypatch):
    calls = []

    def fake_run(cmd, **kw):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr("devenv_lib.environment.shutil.which", lambda cmd: "/usr/bin/zsh")
    monkeypatch.setattr("devenv_lib.environment.subprocess.run", fake_run)
    setup = EnvironmentSetup(make_config(privileged=True))

    assert setup.set_default_shell()
    assert calls == [["sudo", "chsh", "-s", "/usr/bin/zsh", "dev"]]


def test_default_shell_skipped_without_sudo(make_config, monkeypatch):
    monkeypatch.setattr("devenv_lib.environment.shutil.which", lambda cmd: "/usr/bin/zsh")
    setup = EnvironmentSetup(make_config(privileged=False))

    assert not setup.set_default_shell()
    assert "no sudo access" in setup.warnings[0]


def test_chsh_failure_is_a_warning(make_config, monkeypatch):
    monkeypatch.setattr("devenv_lib.environment.shutil.which", lambda cmd: "/usr/bin/zsh")
    monkeypatch.setattr(
        "devenv_lib.environment.subprocess.run",
        lambda cmd, **kw: subprocess.CompletedProcess(cmd, 1, stdout="", stderr="chsh: PAM: Authentication failure"),
    )
    setup = EnvironmentSetup(make_config(privileged=True))

    assert not setup.set_default_shell()
    assert "Authentication failure" in setup.warnings[0]


def test_plugin_manager_cloned_once(make_config, home, monkeypatch):
    clones = []

    def fake_clone(url, dest, dry_run=False):
        clones.append((url, dest))
        dest.mkdir(parents=True)
        return True, f"Cloned {url} to {dest}"

    monkeypatch.setattr("devenv_lib.environment.ensure_clone", fake_clone)
    setup = EnvironmentSetup(make_config())

    assert setup.install_plugin_manager()
    assert not setup.install_plugin_manager()
    assert clones == [("https://github.com/tmux-plugins/tpm", get_tpm_dir(home))]


def test_tmux_plugins_need_config_and_tpm(make_config, monkeypatch):
    monkeypatch.setattr("devenv_lib.environment.subprocess.run", lambda *a, **kw: pytest.fail("ran tpm"))
    assert not EnvironmentSetup(make_config()).install_tmux_plugins()


def test_tmux_plugin_failure_is_a_warning(make_config, home, monkeypatch):
    (home / ".tmux.conf").write_text("set -g @plugin 'tmux-plugins/tpm'\n")
    get_tpm_dir(home).mkdir(parents=True)
    monkeypatch.setattr(
        "devenv_lib.environment.subprocess.run",
        lambda cmd, **kw: subprocess.CompletedProcess(cmd, 1, stdout="", stderr=""),
    )
    setup = EnvironmentSetup(make_config())

    assert not setup.install_tmux_plugins()
    assert setup.warnings == ["Failed to install tmux plugins"]


def test_render_hook(make_config):
    setup = EnvironmentSetup(make_config())
    assert setup.render_hook(STARSHIP_ONLY["starship"], "zsh") == (
        '\n# Starship prompt\neval "$(starship init zsh)"\n'
    )


def test_shell_hooks_added_once(make_config, home, monkeypatch):
    monkeypatch.setattr("devenv_lib.environment.shutil.which", lambda cmd: "/usr/local/bin/starship")
    (home / ".zshrc").write_text("export EDITOR=nvim\n")
    setup = EnvironmentSetup(with_hooks(make_config, STARSHIP_ONLY))

    assert setup.add_shell_hooks() == {".bashrc": ["starship"], ".zshrc": ["starship"]}
    bashrc = (home / ".bashrc").read_text()
    zshrc = (home / ".zshrc").read_text()
    assert 'eval "$(starship init bash)"' in bashrc
    assert zshrc.startswith("export EDITOR=nvim\n")
    assert 'eval "$(starship init zsh)"' in zshrc

    assert setup.add_shell_hooks() == {}
    assert (home / ".bashrc").read_text() == bashrc
    assert (home / ".zshrc").read_text() == zshrc


def test_shell_hooks_skip_missing_zshrc(make_config, home, monkeypatch):
    monkeypatch.setattr("devenv_lib.environment.shutil.which", lambda cmd: "/usr/local/bin/starship")
    setup = EnvironmentSetup(with_hooks(make_config, STARSHIP_ONLY))

    assert setup.add_shell_hooks() == {".bashrc": ["starship"]}
    assert not (home / ".zshrc").exists()


def test_shell_hooks_need_the_tool(make_config, home, monkeypatch):
    monkeypatch.setattr("devenv_lib.environment.shutil.which", lambda cmd: None)
    setup = EnvironmentSetup(with_hooks(make_config, STARSHIP_ONLY))

    assert setup.add_shell_hooks() == {}
    assert not (home / ".bashrc").exists()


def test_shell_hook_respects_existing_marker(make_config, home, tmp_path):
    prefix = tmp_path / "linuxbrew"
    prefix.mkdir()
    hooks = {
        "homebrew": {
            "comment": "Homebrew",
            "command": f"{prefix}/bin/brew shellenv",
            "marker": "linuxbrew",
            "requires_path": str(prefix),
        }
    }
    (home / ".bashrc").write_text('eval "$(/home/linuxbrew/.linuxbrew/bin/brew shellenv)"\n')
    setup = EnvironmentSetup(with_hooks(make_config, hooks))

    assert setup.add_shell_hooks() == {}


def test_shell_hooks_dry_run(make_config, home, monkeypatch):
    monkeypatch.setattr("devenv_lib.environment.shutil.which", lambda cmd: "/usr/local/bin/starship")
    setup = EnvironmentSetup(with_hooks(make_config, STARSHIP_ONLY, dry_run=True))

    assert setup.add_shell_hooks() == {".bashrc": ["starship"]}
    assert not (home / ".bashrc").exists()


def test_shell_hooks_latin1_bashrc(make_config, home, monkeypatch):
    monkeypatch.setattr("devenv_lib.environment.shutil.which", lambda cmd: "/usr/local/bin/starship")
    (home / ".bashrc").write_bytes(b"# caf\xe9\n")
    setup = EnvironmentSetup(with_hooks(make_config, STARSHIP_ONLY))

    assert setup.add_shell_hooks() == {".bashrc": ["starship"]}
    bashrc = (home / ".bashrc").read_bytes()
    assert bashrc.startswith(b"# caf\xe9\n")
    assert b'eval "$(starship init bash)"' in bashrc
    assert setup.add_shell_hooks() == {}
