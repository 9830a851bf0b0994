"""
Working-directory tracking for Terminai.

``cd`` cannot run in a child shell (the change would die with it), so the
session keeps its own working directory and passes it explicitly to every
spawned command.  The process-wide cwd is never touched.
"""

import os
import shlex
from pathlib import Path
from typing import Optional


class DirectoryChangeError(OSError):
    """A ``cd`` target that does not exist or is not a directory."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"cd: no such file or directory: {target}")


def is_cd_command(line: str) -> bool:
    """True for ``cd`` alone or ``cd <arg>``."""
    return line == "cd" or line.startswith("cd ")


def parse_cd(line: str) -> Optional[str]:
    """
    Extract the argument of a ``cd`` line, or None for a bare ``cd``.

    Quotes are honoured (``cd "My Dir"``); unbalanced quotes fall back to
    the raw remainder of the line.
    """
    rest = line[2:].strip()
    if not rest:
        return None
    try:
        parts = shlex.split(rest, posix=(os.name != "nt"))
    except ValueError:
        return rest
    if not parts:
        return None
    # Non-POSIX splitting keeps the quote characters
    return parts[0].strip('"')


class DirectoryTracker:
    """Owns the session's working directory."""

    def __init__(self, start: Optional[str] = None, home: Optional[str] = None):
        self._home = home
        self.working_directory = os.path.abspath(start or os.getcwd())
        self.previous_directory: Optional[str] = None

    @property
    def home(self) -> str:
        return self._home or str(Path.home())

    @property
    def basename(self) -> str:
        """Last path component, or the root itself."""
        return os.path.basename(self.working_directory.rstrip("/\\")) or self.working_directory

    def resolve(self, argument: Optional[str]) -> str:
        """Turn a ``cd`` argument into an absolute, normalised path."""
        if not argument:
            return os.path.normpath(self.home)
        if argument == "-":
            return self.previous_directory or self.working_directory
        if argument == "~" or argument.startswith("~/") or argument.startswith("~\\"):
            argument = self.home + argument[1:]
        if not os.path.isabs(argument):
            argument = os.path.join(self.working_directory, argument)
        return os.path.normpath(argument)

    def change_directory(self, argument: Optional[str] = None) -> str:
        """
        Change the working directory to *argument* (default: home).

        Raises DirectoryChangeError naming the resolved target when it is
        missing or not a directory; the working directory is unchanged.
        Returns the new working directory.
        """
        target = self.resolve(argument)
        if not os.path.isdir(target):
            raise DirectoryChangeError(target)
        if target != self.working_directory:
            self.previous_directory = self.working_directory
        self.working_directory = target
        return target
