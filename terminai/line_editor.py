"""
Line editing for Terminai.

The session talks to the terminal only through :class:`LineEditor`:
read a line, prefill the next one, clear a prefill, ask yes/no.  Two
implementations exist: prompt_toolkit for interactive terminals and a
readline-backed ``input()`` fallback for everything else.
"""

import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional

from prompt_toolkit.history import History

from terminai.completion import CompletionEngine
from terminai.history import HistoryStore
from terminai.output import print_debug


@dataclass
class Prompt:
    """The ``[AI] user@host dir % `` prompt, in plain and styled form."""

    user: str
    host: str
    directory: str
    tag: str = "[AI]"

    def __str__(self) -> str:
        return f"{self.tag} {self.user}@{self.host} {self.directory} % "

    def fragments(self, suggestion_pending: bool = False) -> List[tuple]:
        tag_class = "class:prompt-tag-pending" if suggestion_pending else "class:prompt-tag"
        return [
            (tag_class, self.tag),
            ("", " "),
            ("class:prompt-user", f"{self.user}@{self.host}"),
            ("", " "),
            ("class:prompt-dir", self.directory),
            ("", " "),
            ("class:prompt-symbol", "% "),
        ]


class LineEditor(ABC):
    """What the session needs from a line editor."""

    @abstractmethod
    def read_line(self, prompt: Prompt) -> str:
        """
        Read one line.

        Raises KeyboardInterrupt on Ctrl+C and EOFError on end of input.
        """

    @abstractmethod
    def set_line(self, text: str):
        """Prefill the next :meth:`read_line` with *text*."""

    @abstractmethod
    def clear(self):
        """Discard any prefilled text."""

    @abstractmethod
    def confirm(self, question: str) -> bool:
        """Ask a yes/no question; anything but y/yes (or an interrupt) is no."""


def _is_yes(answer: str) -> bool:
    return answer.strip().lower() in ("y", "yes")


class RecallHistory(History):
    """prompt_toolkit history backed by a :class:`HistoryStore`."""

    def __init__(self, store: HistoryStore):
        self.store = store
        super().__init__()

    def load_history_strings(self) -> Iterable[str]:
        # Newest first, as prompt_toolkit expects
        return list(self.store.entries)

    def store_string(self, string: str) -> None:
        self.store.append(string)


class PromptToolkitEditor(LineEditor):
    """Interactive editor: highlighting, completion, recall."""

    def __init__(self, history: HistoryStore, completion: CompletionEngine):
        from prompt_toolkit import PromptSession
        from prompt_toolkit.lexers import PygmentsLexer
        from prompt_toolkit.styles import merge_styles, Style as PTStyle
        from prompt_toolkit.styles.pygments import style_from_pygments_cls
        from terminai.completion import ShellCompleter
        from terminai.highlighting import ShellLexer, TerminaiStyle, PROMPT_STYLE

        style = merge_styles([
            style_from_pygments_cls(TerminaiStyle),
            PTStyle.from_dict(PROMPT_STYLE),
        ])
        self._session = PromptSession(
            lexer=PygmentsLexer(ShellLexer),
            style=style,
            history=RecallHistory(history),
            completer=ShellCompleter(completion),
            complete_while_typing=False,
        )
        self._confirm_session = PromptSession()
        self._prefill = ""

    def read_line(self, prompt: Prompt) -> str:
        prefill, self._prefill = self._prefill, ""
        # Ctrl+C arrives as a key press here; leave the session's own
        # SIGINT handler in place for when a command is running.
        return self._session.prompt(
            prompt.fragments(suggestion_pending=bool(prefill)),
            default=prefill,
            handle_sigint=False,
        )

    def set_line(self, text: str):
        self._prefill = text

    def clear(self):
        self._prefill = ""

    def confirm(self, question: str) -> bool:
        try:
            return _is_yes(self._confirm_session.prompt(question, handle_sigint=False))
        except (KeyboardInterrupt, EOFError):
            print()
            return False


class PlainLineEditor(LineEditor):
    """``input()`` editor with readline recall when readline is present."""

    def __init__(self, history: HistoryStore, completion: Optional[CompletionEngine] = None):
        self.history = history
        self.completion = completion
        self._prefill = ""
        self._readline = None
        self._matches: List[str] = []

    def setup_readline(self):
        """
        Set up readline so arrow-up/down recalls previous commands.
        Must be called once, after the history store is loaded.
        """
        try:
            # On Windows, the built-in readline stub doesn't work.
            # Try pyreadline3 first, then fall back to the stdlib module.
            try:
                import pyreadline3  # noqa: F401  (import activates it)
                import readline
            except ImportError:
                import readline
        except ImportError:
            # readline completely unavailable – arrow keys won't work,
            # but file persistence still will.
            self._readline = None
            return

        self._readline = readline
        readline.clear_history()
        # readline wants oldest first
        for cmd in reversed(self.history.entries):
            readline.add_history(cmd)
        if self.completion is not None:
            readline.set_completer_delims(" \t\n")
            readline.set_completer(self._complete)
            readline.parse_and_bind("tab: complete")

    def _complete(self, text: str, state: int) -> Optional[str]:
        if state == 0:
            line = self._readline.get_line_buffer()[:self._readline.get_endidx()]
            candidates, token = self.completion.complete(line)
            head = text[:len(text) - len(token)] if token else text
            self._matches = [head + candidate for candidate in candidates]
        return self._matches[state] if state < len(self._matches) else None

    def read_line(self, prompt: Prompt) -> str:
        prefill, self._prefill = self._prefill, ""
        if prefill and self._readline is not None:
            self._readline.set_startup_hook(lambda: self._readline.insert_text(prefill))
        elif prefill:
            # No way to prefill: show it so the user can retype or accept
            print(f"(suggested) {prefill}")
        try:
            line = input(str(prompt))
        finally:
            if self._readline is not None:
                self._readline.set_startup_hook(None)
        if line.strip():
            self.history.append(line)
        return line

    def set_line(self, text: str):
        self._prefill = text

    def clear(self):
        self._prefill = ""

    def confirm(self, question: str) -> bool:
        try:
            return _is_yes(input(question))
        except (KeyboardInterrupt, EOFError):
            print()
            return False


def create_line_editor(history: HistoryStore, completion: CompletionEngine) -> LineEditor:
    """
    prompt_toolkit on a real terminal; readline/input() otherwise.

    Call after the history store has been loaded.
    """
    if sys.stdin.isatty() and sys.stdout.isatty():
        try:
            return PromptToolkitEditor(history, completion)
        except Exception as e:
            print_debug(f"prompt_toolkit unavailable, using plain input: {e}")
    editor = PlainLineEditor(history, completion)
    editor.setup_readline()
    return editor
