"""Terminal output shared by the API launcher, the chat shell and the configuration check."""

from enum import Enum
from typing import Any

_RESET = "\033[0m"


class Style(Enum):
    """What a line of terminal output means, mapped to its ANSI color."""

    HEADING = "\033[94m"
    PROMPT = "\033[96m"
    OK = "\033[92m"
    WARNING = "\033[33m"
    ANSWER = "\033[93m"
    ERROR = "\033[91m"


def styled(text: str, style: Style) -> str:
    return f"{style.value}{text}{_RESET}"


def emit(text: str, style: Style, **kwargs: Any) -> None:
    """Print *text* in the color of *style*; keyword arguments go to ``print``."""
    print(styled(text, style), **kwargs)


def report(label: str, ok: bool, hint: str = "") -> Style:
    """
    Print one indented status line of the configuration check.

    A failing line carries *hint*, telling the user which setting to add.  Returns the style used.
    """
    style = Style.OK if ok else Style.WARNING
    line = f"  - {label}: {'OK' if ok else 'not configured'}"
    if hint and not ok:
        line += f" ({hint})"
    emit(line, style)
    return style
