"""
Command translation for Terminai.
Turns failed input (usually natural language) into a shell command using an LLM.
"""

import json
import platform
import re
import threading
from dataclasses import dataclass
from typing import Optional, List, Any, Callable

from terminai.agents import AGENT_REGISTRY
from terminai.context import DirectoryContext
from terminai.output import print_debug

LLM_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT = 30.0
# Extra time the worker thread gets beyond the HTTP client's own timeout
TIMEOUT_GRACE = 5.0
DEFAULT_LISTING_LIMIT = 4000


@dataclass
class TranslationResult:
    command: str
    explanation: Optional[str] = None


class TranslationError(Exception):
    """The collaborator failed (network, auth, timeout or parse)."""


class TranslationCancelled(Exception):
    """The user interrupted an in-flight translation."""


class Translator:
    """Maps text plus directory context to a candidate command."""

    def __init__(
        self,
        model: str = LLM_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        shell_name: Optional[str] = None,
        listing_limit: int = DEFAULT_LISTING_LIMIT,
        client: Any = None,
    ):
        """
        Args:
            model: Chat model name
            timeout: Seconds before a request is abandoned
            shell_name: Shell the commands will run in (for the prompt)
            listing_limit: Max characters of directory listing sent along
            client: Pre-built OpenAI-compatible client (mainly for tests)
        """
        self.model = model
        self.timeout = timeout
        self.shell_name = shell_name or "sh"
        self.listing_limit = listing_limit
        self.llm_client = client
        self.llm_enabled = client is not None

    def initialize_llm(self, api_key: str) -> bool:
        """Create the OpenAI client. Returns False if that is impossible."""
        if not api_key:
            return False
        try:
            from openai import OpenAI
            self.llm_client = OpenAI(api_key=api_key, timeout=self.timeout, max_retries=1)
        except Exception as e:
            print_debug(f"Failed to initialize LLM client: {e}")
            return False
        self.llm_enabled = True
        return True

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def translate(
        self, text: str, context: Optional[DirectoryContext] = None
    ) -> Optional[TranslationResult]:
        """
        Translate *text* into a command.

        Returns None when no suggestion is available.  Raises
        TranslationCancelled if the user interrupts the request.
        """
        prompt = self._create_prompt(text, context)
        return self._request("translate", prompt)

    def translate_fix(
        self,
        original_text: str,
        failed_command: str,
        exit_code: int,
        error_text: str,
        context: Optional[DirectoryContext] = None,
    ) -> Optional[TranslationResult]:
        """Ask for a corrected command after a suggested one failed."""
        prompt = self._create_fix_prompt(
            original_text, failed_command, exit_code, error_text, context,
        )
        return self._request("fix", prompt)

    def _request(self, agent_type: str, prompt: str) -> Optional[TranslationResult]:
        if not self.llm_enabled:
            return None
        try:
            response = self._run_with_timeout(lambda: self._call_llm(agent_type, prompt))
            print_debug(f"LLM raw response: {response}")
            return self._parse_response(response)
        except TranslationError as e:
            print_debug(f"Translation failed: {e}")
            return None

    def _run_with_timeout(self, func: Callable[[], str]) -> str:
        """
        Run *func* on a worker thread and wait at most the timeout.

        The main thread stays interruptible while it waits; Ctrl+C turns
        into TranslationCancelled.  An abandoned worker is a daemon and is
        itself bounded by the HTTP client's timeout.
        """
        done = threading.Event()
        box = {}

        def _worker():
            try:
                box["value"] = func()
            except Exception as e:
                box["error"] = e
            finally:
                done.set()

        threading.Thread(target=_worker, daemon=True).start()
        try:
            finished = done.wait(self.timeout + TIMEOUT_GRACE)
        except KeyboardInterrupt:
            raise TranslationCancelled() from None

        if not finished:
            raise TranslationError(f"request timed out after {self.timeout:.0f}s")
        if "error" in box:
            raise TranslationError(str(box["error"])) from box["error"]
        return box["value"]

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------
    def _context_lines(self, context: Optional[DirectoryContext]) -> List[str]:
        os_name = "macOS" if platform.system() == "Darwin" else platform.system()
        lines = [
            "Context:",
            f"- Operating System: {os_name}",
            f"- Shell: {self.shell_name}",
        ]
        if context is None:
            return lines

        lines.append(f"- Current Directory: {context.current_directory}")
        if context.environment is not None:
            for marker in context.environment.describe():
                lines.append(f"- {marker}")
        if context.error:
            lines.append(f"- Directory listing unavailable: {context.error}")
        elif context.contents:
            listing = context.contents
            if len(listing) > self.listing_limit:
                listing = listing[:self.listing_limit] + "\n... (listing truncated)"
            lines.append("")
            lines.append("Directory listing:")
            lines.append(listing)
        return lines

    def _create_prompt(self, text: str, context: Optional[DirectoryContext]) -> str:
        """Create the user message for a plain translation."""
        lines = [f'User input: "{text}"', ""]
        lines.extend(self._context_lines(context))
        return "\n".join(lines)

    def _create_fix_prompt(
        self,
        original_text: str,
        failed_command: str,
        exit_code: int,
        error_text: str,
        context: Optional[DirectoryContext],
    ) -> str:
        """Build the user message for a fix request."""
        # Truncate very long error output: keep first 60 + last 30 lines
        err_lines = error_text.strip().splitlines()
        if len(err_lines) > 100:
            truncated = (
                "\n".join(err_lines[:60])
                + f"\n\n... ({len(err_lines) - 90} lines omitted) ...\n\n"
                + "\n".join(err_lines[-30:])
            )
        else:
            truncated = "\n".join(err_lines) or "(no error output)"

        lines = [
            f'The user originally asked: "{original_text}"',
            "",
            f"You previously suggested this command: {failed_command}",
            "",
            f"But it failed with exit code {exit_code} and this error output:",
            truncated,
            "",
            "Please provide a corrected command that addresses the error "
            "and fulfills the user's original request.",
            "",
        ]
        lines.extend(self._context_lines(context))
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # LLM plumbing
    # ------------------------------------------------------------------
    def _call_llm(self, agent_type: str, user_message: str) -> str:
        """Call the LLM with the given agent's system prompt and params."""
        if agent_type not in AGENT_REGISTRY:
            raise ValueError(f"Unknown agent type: {agent_type}")
        cfg = AGENT_REGISTRY[agent_type]
        response = self.llm_client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": cfg["system"]},
                {"role": "user", "content": user_message},
            ],
            temperature=cfg["temperature"],
            max_tokens=cfg["max_tokens"],
        )
        content = response.choices[0].message.content
        return (content or "").strip()

    def _parse_response(self, response: str) -> Optional[TranslationResult]:
        """Extract ``{"command": ..., "explanation": ...}`` from the reply."""
        # Sometimes the model wraps JSON in markdown code blocks
        response = re.sub(r'```json\s*', '', response)
        response = re.sub(r'```\s*', '', response)
        response = response.strip()

        try:
            data = json.loads(response)
        except json.JSONDecodeError as e:
            raise TranslationError(f"could not parse response: {e}") from e

        if not isinstance(data, dict):
            raise TranslationError("response is not a JSON object")
        command = data.get("command")
        if not isinstance(command, str) or not command.strip():
            print_debug("No command found in LLM response")
            return None
        explanation = data.get("explanation")
        if explanation is not None and not isinstance(explanation, str):
            explanation = str(explanation)
        return TranslationResult(command=command.strip(), explanation=explanation or None)
