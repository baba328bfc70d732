"""Git operations for devenv plugin checkouts."""

import subprocess
from pathlib import Path
from typing import Tuple


def is_git_repo(path: Path) -> bool:
    """Check if a path is a git repository."""
    return (path / ".git").exists()


def ensure_clone(
    repo_url: str,
    dest_path: Path,
    dry_run: bool = False,
) -> Tuple[bool, str]:
    """
    Clone a repository unless something already exists at dest_path.

    Args:
        repo_url: Repository URL
        dest_path: Destination path for the clone
        dry_run: If True, only show what would happen

    Returns:
        Tuple of (changed, message)

    Raises:
        subprocess.CalledProcessError: git clone failed
    """
    dest_path = Path(dest_path)
    if dest_path.exists():
        kind = "checkout" if is_git_repo(dest_path) else "directory"
        return False, f"{dest_path} already exists ({kind})"

    if dry_run:
        return True, f"Would clone {repo_url} to {dest_path}"

    # Ensure parent directory exists
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    subprocess.run(
        ["git", "clone", "--depth", "1", repo_url, str(dest_path)],
        capture_output=True,
        text=True,
        check=True,
    )
    return True, f"Cloned {repo_url} to {dest_path}"
