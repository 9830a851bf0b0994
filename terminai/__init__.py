"""
Terminai - an AI-enhanced shell wrapper.

Runs your commands through your own shell.  When one fails, Terminai asks an
LLM for the command you probably meant, puts it on the input line for you to
edit or accept, and offers one fix attempt if that suggestion fails too.
"""

__version__ = "0.3.0"
__author__ = "Terminai Contributors"

from terminai.shell import TerminaiShell
from terminai.suggestion import SuggestionStateMachine, SuggestionState
from terminai.history import HistoryStore

__all__ = ["TerminaiShell", "SuggestionStateMachine", "SuggestionState", "HistoryStore"]
