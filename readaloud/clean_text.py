"""
Text Cleaning Module

Normalizes extracted article text before segmentation: one space between
words, one blank line between paragraphs, plain quotes, no invisible
characters. Cleaning never rewrites words, so what is spoken is what is
highlighted.
"""

import re
from pathlib import Path
from typing import List, Optional

from readaloud.utils import logger

PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
ZERO_WIDTH_RE = re.compile("[\u200b\u200c\u200d\u2060\ufeff\u00ad]")


class TextCleaner:
    """Clean and normalize article text for speech."""

    def __init__(self, remove_citations: bool = True):
        self.remove_citations = remove_citations

    def clean(self, text: str) -> str:
        """
        Apply all cleaning operations to text.

        Args:
            text: Raw text (blank lines separate paragraphs)

        Returns:
            Cleaned text with paragraphs joined by a blank line
        """
        text = self._normalize_characters(text)
        text = self._fix_quotes(text)
        if self.remove_citations:
            text = self._remove_artifacts(text)

        paragraphs = self.split_paragraphs(text)
        return "\n\n".join(paragraphs)

    def split_paragraphs(self, text: str) -> List[str]:
        """Split on blank lines and collapse whitespace inside each paragraph."""
        paragraphs = []
        for paragraph in PARAGRAPH_SPLIT_RE.split(text):
            paragraph = self._normalize_whitespace(paragraph)
            if paragraph:
                paragraphs.append(paragraph)
        return paragraphs

    def _normalize_characters(self, text: str) -> str:
        """Normalize line endings and invisible or odd whitespace."""
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = ZERO_WIDTH_RE.sub("", text)
        text = text.replace("\u00a0", " ").replace("\t", " ")
        return text

    def _fix_quotes(self, text: str) -> str:
        """Normalize quote characters."""
        # Smart quotes to straight quotes
        text = text.replace("\u201c", '"')
        text = text.replace("\u201d", '"')
        text = text.replace("\u2018", "'")
        text = text.replace("\u2019", "'")
        text = text.replace("\u00ab", '"')
        text = text.replace("\u00bb", '"')

        return text

    def _remove_artifacts(self, text: str) -> str:
        """Remove web artifacts that sound terrible when read."""
        # Citation markers like [1] or [citation needed]
        text = re.sub(r"\[(?:\d+|citation needed|edit)\]", "", text, flags=re.IGNORECASE)

        return text

    def _normalize_whitespace(self, text: str) -> str:
        text = re.sub(r"\s+", " ", text)

        # No space before closing punctuation
        text = re.sub(r" +([,.!?;:])", r"\1", text)

        return text.strip()


def clean_text(text: str, output_path: Optional[Path] = None) -> str:
    """
    Clean text for reading aloud.

    Args:
        text: Raw text to clean
        output_path: Optional path to save cleaned text

    Returns:
        Cleaned text
    """
    cleaner = TextCleaner()
    cleaned = cleaner.clean(text)

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(cleaned, encoding="utf-8")
        logger.success(f"Saved cleaned text to {output_path}")

    return cleaned
