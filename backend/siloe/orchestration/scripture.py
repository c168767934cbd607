import re
from typing import Optional, Tuple

from ..core.errors import InputError
from ..models.study import ScriptureReference

# "John 3:16-21", "1 John 3:1", "Psalm 23", "Song of Solomon 2:4"
# No book has more than 150 chapters or 176 verses in a chapter
_REFERENCE = re.compile(
    r"^(?P<num>[1-3])?\s*(?P<name>[A-Za-z][A-Za-z .]*?)\s+"
    r"(?P<chapter>\d{1,3})"
    r"(?::(?P<start>\d{1,3})(?:\s*-\s*(?P<end>\d{1,3}))?)?$"
)

_LOWER_WORDS = {"of", "the", "and"}


def _book_name(num: Optional[str], name: str) -> str:
    words = [w for w in re.split(r"\s+", name.strip(" .")) if w]
    titled = [
        w.lower() if i > 0 and w.lower() in _LOWER_WORDS else w[:1].upper() + w[1:].lower()
        for i, w in enumerate(words)
    ]
    book = " ".join(titled)
    return f"{num} {book}" if num else book


def _match(reference: str) -> Tuple[re.Match, Optional[int], Optional[int]]:
    """Match a reference and return it with its first and last verse (None for chapter-only)."""
    m = _REFERENCE.match((reference or "").strip())
    if not m:
        raise InputError(f"Unrecognized scripture reference: {reference!r}")
    start = m.group("start")
    if not start:
        return m, None, None
    first = int(start)
    last = int(m.group("end")) if m.group("end") else first
    if last < first:
        raise InputError(f"Verse range runs backwards in {reference!r}")
    return m, first, last


def parse_reference(reference: str) -> ScriptureReference:
    """Split a reference into book, chapter and verse numbers.

    A chapter-only reference yields an empty verse list.

    Raises:
        InputError: if the text is not a book/chapter[:verse[-verse]] reference
    """
    m, first, last = _match(reference)
    verses = list(range(first, last + 1)) if first is not None else []
    return ScriptureReference(
        book=_book_name(m.group("num"), m.group("name")),
        chapter=int(m.group("chapter")),
        verses=verses,
    )


def format_reference(reference: str) -> str:
    """Normalize spacing and book capitalization; free text passes through trimmed."""
    text = re.sub(r"\s+", " ", (reference or "").strip())
    try:
        m, first, last = _match(text)
    except InputError:
        return text
    out = f"{_book_name(m.group('num'), m.group('name'))} {int(m.group('chapter'))}"
    if first is not None:
        out += f":{first}"
        if last != first:
            out += f"-{last}"
    return out
