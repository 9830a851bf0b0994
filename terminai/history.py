"""
Command history persistence for Terminai.

On disk the history file is oldest-first (append order), one command per
line.  In memory the recall buffer is newest-first.  ``load`` and ``save``
each reverse exactly once.
"""

import os
import tempfile
from pathlib import Path
from typing import List, Optional

from terminai.output import print_warning, print_debug

SAVE_LIMIT = 1000
RECALL_LIMIT = 1000
RECALL_TRUNCATE_TO = 500


class HistoryStore:
    """Track command history with on-disk persistence."""

    def __init__(
        self,
        history_file: Optional[Path] = None,
        save_limit: int = SAVE_LIMIT,
        recall_limit: int = RECALL_LIMIT,
        truncate_to: int = RECALL_TRUNCATE_TO,
    ):
        self.history_file = Path(history_file) if history_file else None
        self.save_limit = save_limit
        self.recall_limit = recall_limit
        self.truncate_to = truncate_to
        self.entries: List[str] = []  # newest first

    def load(self) -> List[str]:
        """Install the on-disk history as the recall buffer."""
        if not self.history_file or not self.history_file.exists():
            return self.entries
        try:
            text = self.history_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            print_warning(f"[Warning] Could not load history: {e}")
            return self.entries

        lines = [line for line in text.splitlines() if line.strip()]
        lines.reverse()
        self.entries = lines[:self.recall_limit]
        print_debug(f"Loaded {len(self.entries)} history entries")
        return self.entries

    def append(self, command: str):
        """Put *command* at the front of the recall buffer."""
        self.entries.insert(0, command)
        # Hysteresis: trim to half once the cap is exceeded
        if len(self.entries) > self.recall_limit:
            del self.entries[self.truncate_to:]

    def save(self) -> bool:
        """
        Write the buffer oldest-first, keeping the newest ``save_limit``.

        The file is replaced atomically and its directory created if
        needed.  Safe to call repeatedly.  Returns False on failure.
        """
        if not self.history_file or not self.entries:
            return True

        oldest_first = list(reversed(self.entries))[-self.save_limit:]
        payload = "".join(f"{line}\n" for line in oldest_first)
        directory = self.history_file.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".history-", dir=str(directory), text=True,
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                    f.write(payload)
                os.replace(tmp_path, self.history_file)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as e:
            print_warning(f"[Warning] Could not save history: {e}")
            return False
        return True
