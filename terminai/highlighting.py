"""
Syntax highlighting for the Terminai input line.

  Command word (after start, |, &&, ;)  bold cyan
  Flags   (-m, --verbose)              grey
  Strings ("...", '...')               green
  Variables ($VAR, ${VAR})             yellow
  Pipes & operators (|, &&)            cyan
  Comments (#...)                      dark grey / italic

Uses Pygments for lexing and prompt_toolkit for rendering.
"""

from pygments.lexer import RegexLexer
from pygments.token import (
    Token,
    Comment,
    String,
    Name,
    Number,
    Operator,
    Punctuation,
)
from pygments.style import Style as PygmentsStyle


class ShellLexer(RegexLexer):
    """
    Two-state lexer for single-line commands.

    ``root`` expects a command word; ``args`` covers its arguments until an
    operator starts the next command.
    """

    name = "TerminaiInput"
    aliases = ["terminai"]

    tokens = {
        "root": [
            (r"\s+", Token.Text),
            (r"#.*$", Comment.Single),
            # VAR=value prefixes stay in command position
            (r"[A-Za-z_]\w*=\S*", Name.Variable),
            (r"[^\s|;&<>]+", Name.Builtin, "args"),
            (r".", Token.Text),
        ],
        "args": [
            (r"#.*$", Comment.Single),
            (r'"(?:\\.|[^"\\])*"', String.Double),
            (r"'[^']*'", String.Single),
            (r"`[^`]*`", String.Backtick),
            (r"\$\{[^}]+\}", Name.Variable),
            (r"\$[A-Za-z_]\w*", Name.Variable),
            (r"--[A-Za-z0-9][\w-]*", Name.Tag),
            (r"(?<=\s)-[A-Za-z0-9]+", Name.Tag),
            # Next command in the chain
            (r"\|\||&&|\|", Operator, "#pop"),
            (r";", Punctuation, "#pop"),
            (r"[12]?>{1,2}|<", Operator),
            (r"\b\d+\b", Number.Integer),
            (r"[^\s|;&<>\"'`$]+", Token.Text),
            (r"\s+", Token.Text),
            (r".", Token.Text),
        ],
    }


class TerminaiStyle(PygmentsStyle):
    """Pygments colour theme for the input line."""

    default_style = ""
    styles = {
        Token.Text:        "",
        Name.Builtin:      "#66d9ef bold",      # command word
        Comment.Single:    "#6a6a6a italic",
        String.Double:     "#a6e22e",
        String.Single:     "#a6e22e",
        String.Backtick:   "#a6e22e",
        Name.Variable:     "#e6db74",
        Name.Tag:          "#888888",           # flags
        Operator:          "#66d9ef",
        Punctuation:       "#66d9ef",
        Number.Integer:    "#ae81ff",
    }


# Prompt segments of "[AI] user@host dir % "
PROMPT_STYLE = {
    "prompt-tag":         "#00d7d7 bold",
    "prompt-tag-pending": "#ffaf00 bold",   # a suggestion is in the line
    "prompt-user":        "#888888",
    "prompt-dir":         "#ffffff bold",
    "prompt-symbol":      "#6a6a6a",
}
