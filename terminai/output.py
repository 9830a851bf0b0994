"""
Console output helpers for Terminai.

Every user-visible message goes through these so colour handling stays in
one place.  ``print_debug`` is the diagnostic channel: silent unless the
``DEBUG`` environment variable is set (``terminai --debug`` sets it).
"""

import os
import platform
import sys
import traceback


def _supports_color() -> bool:
    """Check if the terminal supports ANSI colors."""
    if os.getenv("NO_COLOR"):
        return False
    if not hasattr(sys.stdout, "isatty") or not sys.stdout.isatty():
        return False
    return True

_COLOR = _supports_color()

# Enable ANSI escape sequences on Windows 10+
if _COLOR and platform.system() == "Windows":
    os.system("")


def _c(code: str, text: str) -> str:
    """Wrap *text* with an ANSI escape if colors are enabled."""
    return f"\033[{code}m{text}\033[0m" if _COLOR else text


def debug_enabled() -> bool:
    return bool(os.getenv("DEBUG"))


def print_success(msg: str):
    """Print a green success message."""
    print(_c("32", msg))


def print_error(msg: str):
    """Print a red error message."""
    print(_c("31", msg))


def print_warning(msg: str):
    """Print a yellow warning message."""
    print(_c("33", msg))


def print_info(msg: str):
    """Print a cyan informational message."""
    print(_c("36", msg))


def print_header(msg: str):
    """Print a bold header message."""
    print(_c("1", msg))


def print_dim(msg: str):
    """Print a dimmed/muted message."""
    print(_c("2", msg))


def print_debug(msg: str, exc_info: bool = False):
    """
    Print a diagnostic line when ``DEBUG`` is set.

    Goes to stderr so it never mixes with command output that a user may
    be piping.  With *exc_info* the active exception's traceback follows.
    """
    if not debug_enabled():
        return
    print(_c("2", f"[debug] {msg}"), file=sys.stderr)
    if exc_info:
        traceback.print_exc()
