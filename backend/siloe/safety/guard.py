import re

MAX_INPUT_CHARS = 1000

_ANGLE_BRACKETS = re.compile(r"[<>]")


def sanitize_input(text: str, max_chars: int = MAX_INPUT_CHARS) -> str:
    """Trim, drop angle brackets and cap length before text goes into a prompt."""
    return _ANGLE_BRACKETS.sub("", (text or "").strip())[:max_chars]


def is_valid_biblical_content(text: str) -> bool:
    return bool(text and text.strip())
