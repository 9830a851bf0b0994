"""Natural language (or a failed command) to a single shell command."""

AGENTS = {
    "translate": {"temperature": 0.2, "max_tokens": 300},
}
