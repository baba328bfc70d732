"""Base orchestrator class for devenv components."""

import os
import sys
from datetime import datetime
from typing import List, TextIO


class Colors:
    """ANSI escape codes used for log tags."""

    RESET = "\033[0m"
    RED = "\033[0;31m"
    GREEN = "\033[0;32m"
    YELLOW = "\033[1;33m"


def _use_color(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def _tag(text: str, color: str, stream: TextIO) -> str:
    if _use_color(stream):
        return f"{color}{text}{Colors.RESET}"
    return text


class BaseOrchestrator:
    """
    Base class for devenv orchestrator components.

    Provides common functionality for dry-run mode, logging, and change tracking.
    All orchestrator classes (DotfileLinker, ToolInstaller, EnvironmentSetup, ...)
    should inherit from this class.
    """

    def __init__(self, dry_run: bool = False, verbose: bool = False):
        """
        Initialize the orchestrator.

        Args:
            dry_run: If True, only show what would be done without making changes
            verbose: If True, enable verbose output
        """
        self.dry_run = dry_run
        self.verbose = verbose
        self.changes: List[str] = []
        self.warnings: List[str] = []

    def _prefix(self) -> str:
        return "[DRY-RUN] " if self.dry_run else ""

    def log(self, msg: str) -> None:
        """
        Log a message with a timestamp and optional dry-run prefix.

        Args:
            msg: Message to log
        """
        stamp = _tag(f"[{datetime.now():%Y-%m-%d %H:%M:%S}]", Colors.GREEN, sys.stdout)
        print(f"{stamp} {self._prefix()}{msg}")

    def log_verbose(self, msg: str) -> None:
        """
        Log a message only if verbose mode is enabled.

        Args:
            msg: Message to log
        """
        if self.verbose:
            self.log(msg)

    def warn(self, msg: str) -> None:
        """
        Log a warning. Warnings never stop the run.

        Args:
            msg: Warning text
        """
        self.warnings.append(msg)
        print(f"{_tag('[WARNING]', Colors.YELLOW, sys.stdout)} {self._prefix()}{msg}")

    def error(self, msg: str) -> None:
        """Log an error to stderr."""
        print(f"{_tag('[ERROR]', Colors.RED, sys.stderr)} {self._prefix()}{msg}", file=sys.stderr)

    def record_change(self, description: str) -> None:
        """
        Record a change that was made.

        Args:
            description: Description of the change
        """
        self.changes.append(description)

    def summarize(self, title: str = "Summary") -> None:
        """
        Print a summary of changes made.

        Args:
            title: Title for the summary section
        """
        self.log("")
        self.log("=" * 60)
        self.log(title)
        if self.dry_run:
            self.log("Dry-run complete - no changes were made")
        elif self.changes:
            self.log(f"Changes made: {len(self.changes)}")
            for change in self.changes:
                self.log(f"  - {change}")
        else:
            self.log("No changes needed - environment is up to date")
        if self.warnings:
            self.log(f"Warnings: {len(self.warnings)}")
            for warning in self.warnings:
                self.log(f"  - {warning}")
        self.log("=" * 60)
