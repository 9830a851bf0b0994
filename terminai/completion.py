"""
Tab completion for the Terminai prompt.

First word: built-ins plus executables found on PATH.
Later words: entries of the directory named by the partial path.
"""

import os
import platform
import re
import stat
from typing import Callable, Iterable, List, Mapping, Optional, Tuple

from prompt_toolkit.completion import Completer, Completion

BUILTIN_COMMANDS = ["ls", "cd", "pwd", "echo", "cat", "grep", "find", "exit", "quit"]
WINDOWS_EXECUTABLE_EXTENSIONS = (".exe", ".cmd", ".bat", ".com")
MAX_PATH_COMMANDS = 50


class CompletionEngine:
    """Produces completion candidates for a partially typed line."""

    def __init__(
        self,
        cwd_provider: Callable[[], str],
        env: Optional[Mapping[str, str]] = None,
        system: Optional[str] = None,
    ):
        self._cwd = cwd_provider
        self._env = env
        self.system = system or platform.system()

    @property
    def windows(self) -> bool:
        return self.system == "Windows"

    def complete(self, line: str) -> Tuple[List[str], str]:
        """
        Return ``(candidates, token)`` for *line*.

        *token* is the partial text the candidates replace.  Filesystem
        trouble never escapes: the result is simply empty.
        """
        if not re.search(r"\s", line):
            hits = [cmd for cmd in self.command_names() if cmd.startswith(line)]
            return hits, line
        token = re.split(r"\s", line)[-1]
        return self.file_completions(token)

    def command_names(self) -> List[str]:
        """Built-ins followed by PATH executables, without duplicates."""
        return list(dict.fromkeys(BUILTIN_COMMANDS + self.path_commands()))

    def path_commands(self) -> List[str]:
        """Executable names on PATH (first 50, in PATH order)."""
        env = os.environ if self._env is None else self._env
        search_path = env.get("PATH", "")
        separator = ";" if self.windows else ":"

        commands: List[str] = []
        for directory in filter(None, search_path.split(separator)):
            try:
                entries = list(os.scandir(directory))
            except OSError:
                continue
            for entry in entries:
                name = self._executable_name(entry)
                if name:
                    commands.append(name)
        return list(dict.fromkeys(commands))[:MAX_PATH_COMMANDS]

    def _executable_name(self, entry: os.DirEntry) -> Optional[str]:
        try:
            if self.windows:
                stem, ext = os.path.splitext(entry.name)
                if ext.lower() in WINDOWS_EXECUTABLE_EXTENSIONS:
                    return stem
                return None
            st = entry.stat()
            if stat.S_ISREG(st.st_mode) and st.st_mode & 0o111:
                return entry.name
        except OSError:
            return None
        return None

    def file_completions(self, partial: str) -> Tuple[List[str], str]:
        """Entries of the directory implied by *partial*, matching its tail."""
        pattern = partial
        search_dir = self._cwd()

        cut = max(partial.rfind("/"), partial.rfind("\\"))
        if cut != -1:
            dir_part = partial[:cut + 1]
            pattern = partial[cut + 1:]
            dir_part = os.path.expanduser(dir_part)
            if os.path.isabs(dir_part):
                search_dir = dir_part
            else:
                search_dir = os.path.join(search_dir, dir_part)

        include_hidden = self.windows or pattern.startswith(".")
        separator = "\\" if self.windows else "/"
        try:
            entries = sorted(os.scandir(search_dir), key=lambda e: e.name)
            matches = []
            for entry in entries:
                if not entry.name.startswith(pattern):
                    continue
                if entry.name.startswith(".") and not include_hidden:
                    continue
                if entry.is_dir():
                    matches.append(entry.name + separator)
                else:
                    matches.append(entry.name)
        except OSError:
            return [], pattern
        return matches, pattern


class ShellCompleter(Completer):
    """prompt_toolkit adapter around :class:`CompletionEngine`."""

    def __init__(self, engine: CompletionEngine):
        self.engine = engine

    def get_completions(self, document, complete_event) -> Iterable[Completion]:
        candidates, token = self.engine.complete(document.text_before_cursor)
        for candidate in candidates:
            yield Completion(candidate, start_position=-len(token))
