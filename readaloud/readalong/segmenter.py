"""
Segmenter Module

Splits extracted article text into speakable units (words or sentences).
Each unit keeps the spacing and paragraph information needed to render
the article again with one span per unit.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from readaloud.utils.config import config

WHITESPACE_RE = re.compile(r"\s+")
# Runs of terminal punctuation; the capture group keeps them in re.split output
TERMINAL_RE = re.compile(r"([.!?]+)")
PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t\r\f\v]*\n")
PARAGRAPH_SEPARATOR = "\n\n"


class Granularity(str, Enum):
    """Size of the unit that is spoken and highlighted at a time."""

    WORD = "word"
    SENTENCE = "sentence"

    @classmethod
    def parse(cls, value: Union[str, "Granularity"]) -> "Granularity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown granularity {value!r} (expected 'word' or 'sentence')"
            ) from None


@dataclass(frozen=True)
class Unit:
    """A single speakable piece of article text."""

    index: int  # 0-based, stable for one extraction result
    text: str  # Never empty after trimming
    trailing_separator: str = " "  # "" for the final unit
    paragraph_break_before: bool = False

    @property
    def word_count(self) -> int:
        return max(1, len(self.text.split()))


def segment(content: str, granularity: Union[str, Granularity] = Granularity.WORD) -> List[Unit]:
    """
    Split normalized article text into units.

    Args:
        content: Article text, paragraphs separated by a blank line
        granularity: Split into words or into sentences

    Returns:
        Ordered list of Unit objects (empty if there is nothing to speak)
    """
    granularity = Granularity.parse(granularity)
    if not content or not content.strip():
        return []

    if granularity is Granularity.WORD:
        texts = content.split()
    else:
        texts = _split_sentences(content)

    if not texts:
        return []

    breaks = _locate_paragraph_breaks(content, texts)
    last = len(texts) - 1
    return [
        Unit(
            index=i,
            text=text,
            trailing_separator="" if i == last else " ",
            paragraph_break_before=breaks[i],
        )
        for i, text in enumerate(texts)
    ]


def _split_sentences(content: str) -> List[str]:
    """Split on terminal punctuation runs, keeping each run on its sentence."""
    parts = TERMINAL_RE.split(content)
    sentences: List[str] = []
    prefix = ""

    # re.split with one group alternates text, punctuation, text, ...
    for i in range(0, len(parts), 2):
        body = parts[i]
        punctuation = parts[i + 1] if i + 1 < len(parts) else ""
        raw = WHITESPACE_RE.sub(" ", prefix + body + punctuation)
        prefix = ""

        if not body.strip():
            if not punctuation:
                continue
            # Bare punctuation belongs to whatever sentence it follows
            if sentences:
                sentences[-1] = sentences[-1] + raw.rstrip()
            else:
                prefix = raw.strip()
            continue

        sentences.append(raw.strip())

    return sentences


def _locate_paragraph_breaks(content: str, texts: Sequence[str]) -> List[bool]:
    """
    Find which units start a new paragraph in the source text.

    Each unit is searched for forward from the end of the previous match so
    matches never overlap. A unit that cannot be found (text normalized away
    upstream) is treated as not starting a paragraph, and the cursor stays put.
    """
    breaks: List[bool] = []
    cursor = 0

    for i, text in enumerate(texts):
        match = _unit_pattern(text).search(content, cursor)
        if match is None:
            breaks.append(False)
            continue

        gap = content[cursor:match.start()]
        breaks.append(i > 0 and PARAGRAPH_BREAK_RE.search(gap) is not None)
        cursor = match.end()

    return breaks


def _unit_pattern(text: str) -> "re.Pattern[str]":
    # Sentence text has its inner whitespace collapsed; match any run in the source
    return re.compile(r"\s+".join(re.escape(token) for token in text.split()))


def reconstruct_with_offsets(
    units: Sequence[Unit],
    paragraph_breaks: bool = True,
) -> Tuple[str, List[int]]:
    """
    Rebuild the spoken text and the character offset where each unit starts.

    Args:
        units: Units in order
        paragraph_breaks: Put a blank line before units that start a paragraph

    Returns:
        Tuple of (text, start offset per unit)
    """
    pieces: List[str] = []
    offsets: List[int] = []
    length = 0

    for unit in units:
        if paragraph_breaks and pieces and unit.paragraph_break_before:
            previous = pieces[-1]
            joined = previous.rstrip(" ") + PARAGRAPH_SEPARATOR
            pieces[-1] = joined
            length += len(joined) - len(previous)

        offsets.append(length)
        piece = unit.text + unit.trailing_separator
        pieces.append(piece)
        length += len(piece)

    return "".join(pieces), offsets


def reconstruct(units: Sequence[Unit], paragraph_breaks: bool = True) -> str:
    """Rebuild the normalized article text from its units."""
    text, _ = reconstruct_with_offsets(units, paragraph_breaks)
    return text


class Segmenter:
    """
    Configured front end for ``segment``.

    Keeps the default granularity so callers that only hold article text
    (the reader, the CLI) don't have to thread it through.
    """

    def __init__(self, granularity: Optional[Union[str, Granularity]] = None):
        """
        Initialize the segmenter.

        Args:
            granularity: Default unit size (defaults to the configured one)
        """
        self.granularity = Granularity.parse(granularity or config.granularity)

    def split(
        self,
        content: str,
        granularity: Optional[Union[str, Granularity]] = None,
    ) -> List[Unit]:
        """Split ``content`` with the given or the default granularity."""
        return segment(content, granularity or self.granularity)
