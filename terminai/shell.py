"""
Interactive session for Terminai.
Reads lines, runs them through the user's shell, and routes failures to the
AI suggestion flow.
"""

import getpass
import platform
import signal
from enum import Enum
from typing import Optional, Dict, Any

from terminai.completion import CompletionEngine
from terminai.config import Config
from terminai.context import capture_directory_context, DirectoryContext
from terminai.directory import DirectoryTracker, DirectoryChangeError, is_cd_command, parse_cd
from terminai.history import HistoryStore
from terminai.line_editor import LineEditor, Prompt, create_line_editor
from terminai.output import (
    print_error,
    print_warning,
    print_info,
    print_success,
    print_dim,
    print_header,
    print_debug,
)
from terminai.process import ProcessSupervisor, ExitOutcome, resolve_shell
from terminai.suggestion import SuggestionStateMachine, CommandRequest
from terminai.translator import Translator

EXIT_COMMANDS = ("exit", "quit")


class InterruptAction(Enum):
    """What an interrupt did."""
    FORWARDED = "forwarded"      # sent to the running command
    CANCELLED = "cancelled"      # dropped a pending suggestion
    EXIT = "exit"                # ended the session


class TerminaiShell:
    """
    The session: one working directory, at most one running command, at
    most one live suggestion, and the recall history.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        translator: Optional[Translator] = None,
        editor: Optional[LineEditor] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        directory: Optional[DirectoryTracker] = None,
        history: Optional[HistoryStore] = None,
        use_ai: bool = True,
    ):
        """
        Initialize the session.

        Args:
            config: Configuration object (creates default if None)
            translator: Translation collaborator (built from config if None)
            editor: Line editor (prompt_toolkit or plain input if None)
            supervisor: Process supervisor (shell resolved from config if None)
            directory: Working-directory tracker (starts in the process cwd)
            history: History store (config directory's history file if None)
            use_ai: False disables AI suggestions for this session
        """
        self.config = config or Config()
        self.running = True

        self.supervisor = supervisor or ProcessSupervisor(
            resolve_shell(preferred=self.config.get_shell_preference())
        )
        self.directory = directory or DirectoryTracker()

        self.history = history or HistoryStore(
            self.config.history_file,
            save_limit=int(self.config.get("history_size", 1000)),
        )
        self.history.load()

        self.completion = CompletionEngine(lambda: self.directory.working_directory)
        self.editor = editor or create_line_editor(self.history, self.completion)

        if translator is None and use_ai and self.config.get("ai_enabled", True):
            translator = self._initialize_llm()
        self.translator = translator

        self.suggestions = SuggestionStateMachine(
            translator=self.translator,
            editor=self.editor,
            context_provider=self.capture_context,
        )
        self.last_outcome: Optional[ExitOutcome] = None

    def _initialize_llm(self) -> Optional[Translator]:
        """Build the translator if an API key can be found (or entered)."""
        api_key = self.config.ensure_api_key()
        if not api_key:
            return None
        translator = Translator(
            model=self.config.get("llm_model"),
            timeout=float(self.config.get("translation_timeout", 30)),
            shell_name=self.supervisor.shell.executable,
            listing_limit=int(self.config.get("directory_listing_limit", 4000)),
        )
        if not translator.initialize_llm(api_key):
            print_warning("[Warning] Failed to initialize AI translation; continuing without it.")
            return None
        return translator

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------
    @property
    def working_directory(self) -> str:
        return self.directory.working_directory

    @property
    def running_process(self):
        return self.supervisor.running_process

    @property
    def ai_enabled(self) -> bool:
        return self.suggestions.translator_available

    def capture_context(self) -> DirectoryContext:
        """Fresh DirectoryContext for a translation request."""
        return capture_directory_context(self.working_directory, self.supervisor.shell)

    def build_prompt(self) -> Prompt:
        try:
            user = getpass.getuser()
        except (KeyError, OSError):
            user = "user"
        host = platform.node().split(".")[0] or "localhost"
        return Prompt(user=user, host=host, directory=self.directory.basename)

    def print_banner(self):
        """Print welcome banner."""
        print_header("\n" + "=" * 60)
        print_info("  Terminai - AI-Enhanced Shell Wrapper")
        print(f"  Shell: {self.supervisor.shell.executable}")
        if self.ai_enabled:
            print_success("  AI: command translation active")
            print_dim("  Type commands as usual, or plain English when you")
            print_dim("  don't remember the command.")
        else:
            print_dim("  AI: not available (set OPENAI_API_KEY to enable)")
        print_header("=" * 60)
        print_dim('  Type "exit" or press Ctrl+C at an empty prompt to quit\n')

    # ------------------------------------------------------------------
    # Main REPL
    # ------------------------------------------------------------------
    def run(self):
        """Main shell loop."""
        self.print_banner()
        previous_handlers = self._install_signal_handlers()
        try:
            while self.running:
                try:
                    line = self.editor.read_line(self.build_prompt())
                except KeyboardInterrupt:
                    self.handle_interrupt()
                    continue
                except EOFError:
                    print("\nGoodbye!")
                    break

                try:
                    self.handle_input(line)
                except KeyboardInterrupt:
                    # Arrived between the command's close event and the
                    # next prompt: treat it as a cancellation, not an exit.
                    self.suggestions.cancel()
                    print_warning("\n[Interrupted]")
                except Exception as e:
                    print_error(f"[Error] {e}")
                    print_debug("Unhandled error while handling input", exc_info=True)
        finally:
            self._restore_signal_handlers(previous_handlers)
            self.cleanup()

    def handle_input(self, raw: str):
        """
        Route one submitted line.

        A pending suggestion is consumed here, before anything runs, so it
        can never be replayed.
        """
        user_input = raw.strip()
        pending = self.suggestions.take_pending()

        if not user_input:
            if pending is not None:
                print_dim("[AI] Suggestion discarded.")
            return

        if user_input in EXIT_COMMANDS:
            print("Goodbye!")
            self.running = False
            self.cleanup()
            return

        if is_cd_command(user_input):
            self._handle_cd(user_input)
            return

        if pending is not None:
            request = CommandRequest.from_suggestion(user_input, pending)
        else:
            request = CommandRequest(user_input)
        self.execute(request)

    def execute(self, request: CommandRequest) -> ExitOutcome:
        """Run *request* and hand the outcome to the suggestion flow."""
        outcome = self.supervisor.run(request.text, self.working_directory)
        self.last_outcome = outcome

        if outcome.spawn_error:
            print_error(
                f"[Error] Could not start {self.supervisor.shell.executable}: "
                f"{outcome.spawn_error}"
            )
        elif outcome.interrupted:
            print_warning("[Interrupted]")

        self.suggestions.on_command_finished(request, outcome)
        return outcome

    def _handle_cd(self, user_input: str):
        """
        Change the session's working directory.

        Runs in-process: a child shell's cd would not outlive the child.
        """
        try:
            self.directory.change_directory(parse_cd(user_input))
        except DirectoryChangeError as e:
            print_error(str(e))

    # ------------------------------------------------------------------
    # Interrupts
    # ------------------------------------------------------------------
    def handle_interrupt(self) -> InterruptAction:
        """
        Dispatch one interrupt, judged on the state at delivery time:
        running command -> forward it; pending suggestion -> cancel it;
        otherwise -> end the session.
        """
        if self.supervisor.interrupt():
            print_warning("\n[Interrupting running command...]")
            return InterruptAction.FORWARDED
        if self.suggestions.cancel():
            print_warning("\n[AI] Suggestion cancelled.")
            return InterruptAction.CANCELLED
        print("\nGoodbye!")
        self.running = False
        self.cleanup()
        return InterruptAction.EXIT

    def _on_sigint(self, signum, frame):
        if self.supervisor.interrupt():
            print_warning("\n[Interrupting running command...]")
            return
        # Nothing to forward to: let the code that is waiting decide
        raise KeyboardInterrupt

    def _on_terminate(self, signum, frame):
        raise SystemExit(128 + signum)

    def _install_signal_handlers(self) -> Dict[int, Any]:
        previous: Dict[int, Any] = {}
        wanted = {signal.SIGINT: self._on_sigint, signal.SIGTERM: self._on_terminate}
        if hasattr(signal, "SIGHUP"):
            wanted[signal.SIGHUP] = self._on_terminate
        for signum, handler in wanted.items():
            try:
                previous[signum] = signal.signal(signum, handler)
            except (ValueError, OSError) as e:
                # Not the main thread, or unsupported on this platform
                print_debug(f"Could not install handler for signal {signum}: {e}")
        return previous

    def _restore_signal_handlers(self, previous: Dict[int, Any]):
        for signum, handler in previous.items():
            try:
                signal.signal(signum, handler)
            except (ValueError, OSError) as e:
                print_debug(f"Could not restore handler for signal {signum}: {e}")

    def cleanup(self):
        """Flush history and stop any running command. Safe to call repeatedly."""
        self.supervisor.terminate()
        self.history.save()
