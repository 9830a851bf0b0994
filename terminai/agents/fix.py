"""Corrects a previously suggested command that failed."""

AGENTS = {
    "fix": {"temperature": 0.2, "max_tokens": 400},
}
