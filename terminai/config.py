"""
Configuration management for Terminai.
Handles user settings, the saved API key, and the config directory layout.
"""

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Dict, Any, Optional

from dotenv import load_dotenv, find_dotenv, set_key, unset_key

from terminai.output import print_warning, print_error, print_info, print_dim, print_debug

# Load a project .env if one exists (searching upward from the cwd).
# Variables already exported in the environment win.
_dotenv_path = find_dotenv(usecwd=True)
if _dotenv_path:
    load_dotenv(_dotenv_path, override=False)

API_KEY_ENV = "OPENAI_API_KEY"
SHELL_PREFERENCE_ENV = "TERMINAI_SHELL"


class Config:
    """Manages Terminai configuration and settings."""

    DEFAULT_CONFIG = {
        "shell": None,  # Auto-detected
        "ai_enabled": True,
        "llm_model": "gpt-4o-mini",
        "llm_api_key": None,  # Never written to config.json
        "translation_timeout": 30,
        "history_size": 1000,
        "api_key_prompt_attempts": 3,
        "api_key_prompt_timeout": 60,
        "directory_listing_limit": 4000,
    }

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize config system.

        Args:
            config_dir: Override default config directory
        """
        if config_dir:
            self.config_dir = Path(config_dir).expanduser()
        else:
            self.config_dir = Path.home() / ".terminai"

        self.config_file = self.config_dir / "config.json"
        self.env_file = self.config_dir / ".env"
        self.history_file = self.config_dir / "history"
        # Session-only shell choice (--shell); never saved
        self.shell_override: Optional[str] = None

        self._ensure_directories()
        self.settings = self._load_config()
        self._load_env_vars()

    def _ensure_directories(self):
        """Create config directory if it doesn't exist."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            print_warning(f"[Warning] Could not create {self.config_dir}: {e}")

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file or create default."""
        config = self.DEFAULT_CONFIG.copy()
        if not self.config_file.exists():
            return config
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                # Merge with defaults (in case new keys added)
                config.update(loaded)
            else:
                print_warning("[Warning] Config file is not a JSON object, using defaults")
        except (json.JSONDecodeError, OSError):
            print_warning("[Warning] Config file corrupted, using defaults")
        return config

    def _load_env_vars(self):
        """Load the saved key file; exported variables take precedence."""
        if self.env_file.exists():
            load_dotenv(self.env_file, override=False)
        api_key = os.getenv(API_KEY_ENV)
        if api_key:
            self.settings["llm_api_key"] = api_key

    def save(self):
        """Save current configuration to file."""
        settings_to_save = self.settings.copy()
        # Never save API keys to config file - they live in .env
        settings_to_save.pop("llm_api_key", None)

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(settings_to_save, f, indent=2)
        except OSError as e:
            print_warning(f"[Warning] Could not save config: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        value = self.settings.get(key, default)
        return default if value is None else value

    def set(self, key: str, value: Any):
        """Set a configuration value and save."""
        self.settings[key] = value
        self.save()

    def get_shell_preference(self) -> Optional[str]:
        """Explicit shell choice: --shell, then TERMINAI_SHELL, then config."""
        return (
            self.shell_override
            or os.getenv(SHELL_PREFERENCE_ENV)
            or self.settings.get("shell")
        )

    # ------------------------------------------------------------------
    # API key
    # ------------------------------------------------------------------
    def get_llm_api_key(self) -> Optional[str]:
        """Get LLM API key from environment or the saved key file."""
        return os.getenv(API_KEY_ENV) or self.settings.get("llm_api_key")

    def save_api_key(self, api_key: str):
        """Persist *api_key* to ``<config-dir>/.env`` (owner read/write only)."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        if not self.env_file.exists():
            self.env_file.touch(mode=0o600)
        set_key(str(self.env_file), API_KEY_ENV, api_key)
        try:
            os.chmod(self.env_file, 0o600)
        except OSError:
            print_debug(f"Could not restrict permissions on {self.env_file}")
        os.environ[API_KEY_ENV] = api_key
        self.settings["llm_api_key"] = api_key

    def clear_saved_api_key(self) -> bool:
        """Remove the saved key. Returns True if one was removed."""
        self.settings["llm_api_key"] = None
        if not self.env_file.exists():
            return False
        removed, _ = unset_key(str(self.env_file), API_KEY_ENV)
        return bool(removed)

    def ensure_api_key(self, interactive: Optional[bool] = None) -> Optional[str]:
        """
        Resolve the API key, prompting for it when none is configured.

        The prompt is a bounded loop: at most ``api_key_prompt_attempts``
        tries, each abandoned after ``api_key_prompt_timeout`` seconds.
        Returns None when no key could be obtained; AI features are then
        disabled for the session.
        """
        api_key = self.get_llm_api_key()
        if api_key:
            return api_key

        if interactive is None:
            interactive = sys.stdin.isatty() and sys.stdout.isatty()
        if not interactive:
            return None

        print_info("[Terminai] OpenAI API key not found.")
        print_dim(f"           Set {API_KEY_ENV} in your environment or .env, or enter it now.")
        print_dim(f"           It will be saved to {self.env_file}")

        attempts = int(self.get("api_key_prompt_attempts", 3))
        timeout = float(self.get("api_key_prompt_timeout", 60))

        for attempt in range(1, attempts + 1):
            try:
                answer = asyncio.run(_prompt_secret("API key: ", timeout))
            except asyncio.TimeoutError:
                print_warning("\n[Warning] Input timeout. Continuing without AI features.")
                return None
            except (KeyboardInterrupt, EOFError):
                print()
                return None

            answer = answer.strip()
            if answer:
                try:
                    self.save_api_key(answer)
                except OSError as e:
                    print_warning(f"[Warning] Could not save API key: {e}")
                    self.settings["llm_api_key"] = answer
                return answer
            print_error(f"[Error] API key cannot be empty ({attempt}/{attempts})")

        print_warning("[Warning] No API key entered. Continuing without AI features.")
        return None


async def _prompt_secret(message: str, timeout: float) -> str:
    """Read one masked line, giving up after *timeout* seconds."""
    from prompt_toolkit import PromptSession

    session = PromptSession()
    return await asyncio.wait_for(
        session.prompt_async(message, is_password=True),
        timeout=timeout,
    )
