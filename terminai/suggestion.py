"""
AI suggestion flow for Terminai.

After a command fails, the state machine decides whether to ask the
translator for a replacement, prefills the suggestion into the input line,
and remembers that the next submitted line *is* that suggestion (edited or
not).  A suggestion that fails in turn gets exactly one "fix" offer per
failure, each requiring an explicit yes.

    Idle --fail--> AwaitingSuggestion --result--> SuggestionOffered
    SuggestionOffered --line submitted--> Idle (line runs as a suggestion)
    suggestion fails --> FixOffered --yes + result--> SuggestionOffered
                                    --no / no result--> Idle
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, TYPE_CHECKING

from terminai.context import DirectoryContext
from terminai.output import print_info, print_dim, print_warning, print_error, print_debug
from terminai.process import ExitOutcome
from terminai.translator import TranslationResult, TranslationCancelled

if TYPE_CHECKING:
    from terminai.line_editor import LineEditor
    from terminai.translator import Translator


class SuggestionState(Enum):
    IDLE = "idle"
    AWAITING_SUGGESTION = "awaiting_suggestion"
    SUGGESTION_OFFERED = "suggestion_offered"
    FIX_OFFERED = "fix_offered"


@dataclass
class SuggestionContext:
    """The live suggestion: what the user originally typed, and what we offered."""

    original_user_text: str
    command: str
    explanation: Optional[str] = None
    is_pending_suggestion: bool = True


@dataclass
class CommandRequest:
    """A line to execute plus its provenance."""

    text: str
    is_suggestion: bool = False
    original_user_text: Optional[str] = None

    @classmethod
    def from_suggestion(cls, text: str, context: SuggestionContext) -> "CommandRequest":
        return cls(text=text, is_suggestion=True, original_user_text=context.original_user_text)


class SuggestionStateMachine:
    """Tracks at most one live suggestion and routes failures."""

    def __init__(
        self,
        translator: Optional["Translator"],
        editor: "LineEditor",
        context_provider: Callable[[], Optional[DirectoryContext]],
    ):
        """
        Args:
            translator: Translation collaborator (None when AI is off)
            editor: Line editor the suggestion is prefilled into
            context_provider: Builds a fresh DirectoryContext per request
        """
        self.translator = translator
        self.editor = editor
        self._context_provider = context_provider
        self.state = SuggestionState.IDLE
        self.context: Optional[SuggestionContext] = None

    @property
    def translator_available(self) -> bool:
        return self.translator is not None and getattr(self.translator, "llm_enabled", True)

    @property
    def has_pending(self) -> bool:
        return self.context is not None and self.context.is_pending_suggestion

    # ------------------------------------------------------------------
    # Line submission / cancellation
    # ------------------------------------------------------------------
    def take_pending(self) -> Optional[SuggestionContext]:
        """
        Consume the live suggestion as the next line is submitted.

        Read once, then cleared, whatever the user did to the line.
        """
        context = self.context if self.has_pending else None
        self._reset()
        return context

    def cancel(self) -> bool:
        """Drop a pending suggestion and its prefilled text. True if one existed."""
        if self.state is SuggestionState.IDLE and self.context is None:
            return False
        self._reset()
        self.editor.clear()
        return True

    def _reset(self):
        self.context = None
        self.state = SuggestionState.IDLE

    # ------------------------------------------------------------------
    # Command completion
    # ------------------------------------------------------------------
    def on_command_finished(self, request: CommandRequest, outcome: ExitOutcome):
        """Decide what follows a finished command."""
        if not outcome.failed:
            # Success, spawn failure, or the user's own interrupt
            self._reset()
            return

        if request.is_suggestion:
            print_warning("[AI] The suggested command also failed.")
            if self.translator_available and request.original_user_text is not None:
                self._offer_fix(request, outcome)
            else:
                self._reset()
            return

        if not self.translator_available:
            print_dim("[AI] Command failed and AI translation is not available.")
            self._reset()
            return

        self._offer_translation(request.text)

    def _offer_translation(self, text: str):
        self.state = SuggestionState.AWAITING_SUGGESTION
        print_info("[AI] Command failed. Asking AI for a suggestion...")
        result = self._ask(lambda context: self.translator.translate(text, context))
        if result is None:
            return
        self._offer(text, result)

    def _offer_fix(self, request: CommandRequest, outcome: ExitOutcome):
        self.state = SuggestionState.FIX_OFFERED
        if not self.editor.confirm("[AI] Ask AI to fix the command? (y/N): "):
            self._reset()
            return

        original = request.original_user_text
        self.state = SuggestionState.AWAITING_SUGGESTION
        print_info("[AI] Asking AI to fix the failed command...")
        result = self._ask(lambda context: self.translator.translate_fix(
            original,
            request.text,
            outcome.status_code,
            outcome.stderr,
            context,
        ))
        if result is None:
            return
        self._offer(original, result)

    def _ask(self, call) -> Optional[TranslationResult]:
        """Run one collaborator call; None (and Idle) if nothing usable came back."""
        try:
            context = self._context_provider()
            result = call(context)
        except (TranslationCancelled, KeyboardInterrupt):
            # Ctrl+C while the context is captured or the request is in flight
            print_warning("\n[Cancelled]")
            self._reset()
            return None
        except Exception as e:
            print_debug(f"Suggestion request failed: {e}", exc_info=True)
            result = None

        if result is None or not result.command:
            print_error("[AI] No suggestion available.")
            self._reset()
            return None
        return result

    def _offer(self, original_text: str, result: TranslationResult):
        """Prefill *result* and make it the live suggestion."""
        self.context = SuggestionContext(
            original_user_text=original_text,
            command=result.command,
            explanation=result.explanation,
        )
        self.state = SuggestionState.SUGGESTION_OFFERED
        print_info(f"[AI] Suggestion: {result.command}")
        if result.explanation:
            print_dim(f"     {result.explanation}")
        print_dim("     Edit it below and press Enter to run, or Ctrl+C to cancel.")
        self.editor.set_line(result.command)
