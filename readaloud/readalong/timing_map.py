"""
Timing Map Module

Exports the estimated speaking schedule of an article as JSON so a
renderer (or a person debugging highlight drift) can see which unit is
expected to be audible at which point in the utterance.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from readaloud.utils import logger


@dataclass
class TimingEntry:
    """Single timing entry linking an estimated time window to a unit."""

    index: int  # Unit index
    start: float  # Start time in seconds from the start of speech
    end: float  # End time in seconds
    text: str  # The unit text
    paragraph: int = 0  # Paragraph number (0-based)

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON export."""
        return {
            "index": self.index,
            "start": round(self.start, 3),
            "end": round(self.end, 3),
            "text": self.text,
            "paragraph": self.paragraph,
        }


@dataclass
class TimingMap:
    """Estimated timing for one article."""

    title: str
    granularity: str
    rate: float
    words_per_minute: float
    entries: List[TimingEntry] = field(default_factory=list)
    estimated: bool = True
    version: str = "1.0"

    @property
    def duration(self) -> float:
        return self.entries[-1].end if self.entries else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON export."""
        return {
            "version": self.version,
            "title": self.title,
            "granularity": self.granularity,
            "rate": self.rate,
            "wordsPerMinute": self.words_per_minute,
            "estimated": self.estimated,
            "duration": round(self.duration, 3),
            "unitCount": len(self.entries),
            "entries": [e.to_dict() for e in self.entries],
        }

    def save(self, output_path: Path) -> Path:
        """Save timing map to JSON file."""
        output_path = Path(output_path).with_suffix(".json")
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

        logger.success(f"Saved timing map: {output_path}")
        return output_path

    @classmethod
    def load(cls, path: Path) -> "TimingMap":
        """Load timing map from JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        entries = [
            TimingEntry(
                index=e["index"],
                start=e["start"],
                end=e["end"],
                text=e["text"],
                paragraph=e.get("paragraph", 0),
            )
            for e in data.get("entries", [])
        ]

        return cls(
            title=data.get("title", ""),
            granularity=data.get("granularity", "word"),
            rate=data.get("rate", 1.0),
            words_per_minute=data.get("wordsPerMinute", 150),
            entries=entries,
            estimated=data.get("estimated", True),
            version=data.get("version", "1.0"),
        )
