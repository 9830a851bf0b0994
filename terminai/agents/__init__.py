"""
Agent registry: builds AGENT_REGISTRY from agent modules and prompts.
"""

from pathlib import Path
from typing import Any, Dict

from terminai.agents import translate as _translate
from terminai.agents import fix as _fix

_PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"


def _load_prompt(name: str) -> str:
    path = _PROMPTS_DIR / f"{name}.txt"
    return path.read_text(encoding="utf-8").strip()


def _build_registry() -> Dict[str, Dict[str, Any]]:
    registry: Dict[str, Dict[str, Any]] = {}
    all_agents = _translate.AGENTS | _fix.AGENTS
    for name, cfg in all_agents.items():
        registry[name] = {
            "system": _load_prompt(name),
            "temperature": cfg["temperature"],
            "max_tokens": cfg["max_tokens"],
        }
    return registry


AGENT_REGISTRY: Dict[str, Dict[str, Any]] = _build_registry()

__all__ = ["AGENT_REGISTRY"]
