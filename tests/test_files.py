"""Tests for idempotent file helpers."""

import pytest

from devenv_lib.files import (
    backup_path_for,
    ensure_block,
    ensure_dir,
    ensure_symlink,
    latest_backup,
    move_aside,
    render_template,
)


def test_backup_path_counts_up(tmp_path):
    target = tmp_path / ".zshrc"
    assert backup_path_for(target) == tmp_path / ".zshrc.backup"

    (tmp_path / ".zshrc.backup").write_text("1")
    assert backup_path_for(target) == tmp_path / ".zshrc.backup.1"

    (tmp_path / ".zshrc.backup.1").write_text("2")
    assert backup_path_for(target) == tmp_path / ".zshrc.backup.2"


def test_latest_backup(tmp_path):
    target = tmp_path / ".zshrc"
    assert latest_backup(target) is None

    for name in (".zshrc.backup", ".zshrc.backup.2", ".zshrc.backup.10", ".zshrc.backupx"):
        (tmp_path / name).write_text(name)

    assert latest_backup(target) == tmp_path / ".zshrc.backup.10"


def test_move_aside_handles_directories(tmp_path):
    config = tmp_path / "kitty"
    config.mkdir()
    (config / "kitty.conf").write_text("font_size 12\n")

    backup = move_aside(config)

    assert backup == tmp_path / "kitty.backup"
    assert (backup / "kitty.conf").read_text() == "font_size 12\n"
    assert not config.exists()


def test_ensure_dir_is_idempotent(tmp_path):
    path = tmp_path / ".cache" / "nvim"
    assert ensure_dir(path)
    assert not ensure_dir(path)
    assert path.is_dir()


def test_ensure_symlink(tmp_path):
    source = tmp_path / "source"
    source.write_text("x")
    other = tmp_path / "other"
    other.write_text("y")
    link = tmp_path / "deep" / "link"

    assert ensure_symlink(link, source)
    assert not ensure_symlink(link, source)
    assert ensure_symlink(link, other)
    assert link.read_text() == "y"


def test_ensure_symlink_refuses_regular_file(tmp_path):
    source = tmp_path / "source"
    source.write_text("x")
    existing = tmp_path / "existing"
    existing.write_text("keep me")

    with pytest.raises(FileExistsError):
        ensure_symlink(existing, source)
    assert existing.read_text() == "keep me"


def test_ensure_block_appends_once(tmp_path):
    rc = tmp_path / ".bashrc"
    rc.write_text("alias ll='ls -l'\n")
    block = '\n# Starship prompt\neval "$(starship init bash)"\n'

    assert ensure_block(rc, block, "starship init bash")
    assert not ensure_block(rc, block, "starship init bash")
    assert rc.read_text() == "alias ll='ls -l'\n" + block


def test_ensure_block_creates_file(tmp_path):
    rc = tmp_path / ".bashrc"
    assert ensure_block(rc, "export A=1\n", "export A=")
    assert rc.read_text() == "export A=1\n"


def test_render_template(tmp_path):
    template = tmp_path / "hook.j2"
    template.write_text("# {{ comment }}\n{{ command }}\n")

    assert render_template(template, {"comment": "c", "command": "cmd"}) == "# c\ncmd\n"


def test_render_template_rejects_missing_variables(tmp_path):
    from jinja2 import UndefinedError

    template = tmp_path / "hook.j2"
    template.write_text("{{ missing }}")

    with pytest.raises(UndefinedError):
        render_template(template, {})


def test_ensure_block_latin1_file(tmp_path):
    rc = tmp_path / ".bashrc"
    rc.write_bytes(b"# caf\xe9\n")

    assert ensure_block(rc, "export A=1\n", "export A=")
    assert not ensure_block(rc, "export A=1\n", "export A=")
    assert rc.read_bytes() == b"# caf\xe9\nexport A=1\n"
