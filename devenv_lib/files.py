"""File management with idempotent operations and templating."""

import re
from pathlib import Path
from typing import Optional, Union

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .paths import BACKUP_SUFFIX


def ensure_dir(path: Union[str, Path], mode: Optional[int] = None) -> bool:
    """
    Idempotently ensure a directory exists.

    Returns:
        True if the directory was created
    """
    path = Path(path)
    if path.is_dir():
        return False
    path.mkdir(parents=True, exist_ok=True)
    if mode is not None:
        path.chmod(mode)
    return True


def backup_path_for(path: Union[str, Path]) -> Path:
    """
    Get a backup path that does not exist yet.

    The first backup is ``<path>.backup``; later ones get a counter
    (``.backup.1``, ``.backup.2``, ...) so an earlier backup is never
    overwritten.
    """
    path = Path(path)
    candidate = path.with_name(path.name + BACKUP_SUFFIX)
    counter = 1
    while candidate.exists() or candidate.is_symlink():
        candidate = path.with_name(f"{path.name}{BACKUP_SUFFIX}.{counter}")
        counter += 1
    return candidate


def latest_backup(path: Union[str, Path]) -> Optional[Path]:
    """Find the most recent backup of a path, if any."""
    path = Path(path)
    pattern = re.compile(re.escape(path.name + BACKUP_SUFFIX) + r"(?:\.(\d+))?$")
    best: Optional[Path] = None
    best_rank = -1
    if not path.parent.is_dir():
        return None
    for sibling in path.parent.iterdir():
        match = pattern.match(sibling.name)
        if not match:
            continue
        rank = int(match.group(1)) if match.group(1) else 0
        if rank > best_rank:
            best, best_rank = sibling, rank
    return best


def move_aside(path: Union[str, Path]) -> Path:
    """
    Rename a file or directory to its next free backup path.

    Returns:
        The backup path
    """
    path = Path(path)
    backup = backup_path_for(path)
    path.rename(backup)
    return backup


def points_to(link_path: Union[str, Path], target: Union[str, Path]) -> bool:
    """Check if link_path already resolves to target."""
    link_path = Path(link_path)
    if not (link_path.exists() or link_path.is_symlink()):
        return False
    return link_path.resolve() == Path(target).resolve()


def ensure_symlink(
    link_path: Union[str, Path],
    target: Union[str, Path],
) -> bool:
    """
    Idempotently ensure a symlink exists.

    Returns:
        True if link was created or changed

    Raises:
        FileExistsError: link_path exists and is not a symlink
    """
    link_path = Path(link_path)
    target = Path(target)

    # Check current state
    if link_path.is_symlink():
        if points_to(link_path, target):
            return False
        # Wrong target - remove and recreate
        link_path.unlink()
    elif link_path.exists():
        raise FileExistsError(f"{link_path} exists but is not a symlink")

    link_path.parent.mkdir(parents=True, exist_ok=True)
    link_path.symlink_to(target)
    return True


def ensure_block(
    path: Union[str, Path],
    block: str,
    marker: str,
) -> bool:
    """
    Append a block of text to a file unless marker is already present.

    Writes through symlinks, so a linked rc file is updated in place.
    Compares and appends bytes: rc files are not always UTF-8.

    Returns:
        True if the block was appended
    """
    path = Path(path)
    existing = path.read_bytes() if path.exists() else b""
    if marker.encode() in existing:
        return False

    with open(path, "ab") as f:
        f.write(block.encode())
    return True


def render_template(
    template_path: Union[str, Path],
    context: dict,
) -> str:
    """
    Render a Jinja2 template file.

    Args:
        template_path: Path to template file
        context: Dictionary of variables to substitute

    Returns:
        Rendered template content
    """
    template_path = Path(template_path)
    env = Environment(
        loader=FileSystemLoader(str(template_path.parent)),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    return env.get_template(template_path.name).render(**context)
