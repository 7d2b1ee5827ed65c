"""
Progress Estimator Module

Estimates which unit is being spoken when the whole article is handed to
the speech engine as a single utterance.

This is an approximation. The estimator never asks the engine where it is
(most engines can't say); it assumes a fixed reading speed scaled by the
engine's rate multiplier and walks a precomputed schedule on the wall
clock. The highlight will drift from the audio on long articles; the
controller pulls it back to the first unit on the engine's start signal
and clears it on end or error.
"""

from bisect import bisect_right
from typing import List, Optional, Sequence, Tuple

from readaloud.readalong.segmenter import Unit
from readaloud.readalong.timing_map import TimingEntry, TimingMap

DEFAULT_WORDS_PER_MINUTE = 150.0


class ProgressEstimator:
    """
    Wall-clock schedule of estimated unit windows.

    A unit lasts ``word_count * 60 / (words_per_minute * rate_multiplier)``
    seconds, so word units all get the same window and sentence units get
    one proportional to their length.
    """

    def __init__(
        self,
        units: Sequence[Unit],
        start_time: float,
        rate_multiplier: float = 1.0,
        words_per_minute: float = DEFAULT_WORDS_PER_MINUTE,
    ):
        """
        Build the schedule.

        Args:
            units: Units being spoken, in order
            start_time: Scheduler time at which speech started
            rate_multiplier: Engine rate (1.0 = normal speed)
            words_per_minute: Assumed reading speed at rate 1.0
        """
        if rate_multiplier <= 0:
            raise ValueError(f"rate_multiplier must be positive, got {rate_multiplier}")
        if words_per_minute <= 0:
            raise ValueError(f"words_per_minute must be positive, got {words_per_minute}")

        self.units = tuple(units)
        self.start_time = start_time
        self.rate_multiplier = rate_multiplier
        self.words_per_minute = words_per_minute
        self.seconds_per_word = 60.0 / (words_per_minute * rate_multiplier)

        self.durations = [unit.word_count * self.seconds_per_word for unit in self.units]
        self.schedule: List[Tuple[int, float]] = []
        self._ends: List[float] = []

        elapsed = 0.0
        for unit, duration in zip(self.units, self.durations):
            self.schedule.append((unit.index, elapsed))
            elapsed += duration
            self._ends.append(elapsed)

        self._paused_at: Optional[float] = None
        self._paused_total = 0.0

    @property
    def total_duration(self) -> float:
        return self._ends[-1] if self._ends else 0.0

    @property
    def shortest_duration(self) -> float:
        return min(self.durations) if self.durations else 0.0

    @property
    def is_paused(self) -> bool:
        return self._paused_at is not None

    def suggested_tick_interval(self, ceiling: float) -> float:
        """Tick often enough not to skip a unit, but no slower than ``ceiling``."""
        shortest = self.shortest_duration
        if shortest <= 0:
            return ceiling
        return min(ceiling, shortest)

    def restart(self, now: float) -> None:
        """Re-anchor the schedule at ``now`` (engine reported speech start)."""
        self.start_time = now
        self._paused_at = None
        self._paused_total = 0.0

    def pause(self, now: float) -> None:
        if self._paused_at is None:
            self._paused_at = now

    def resume(self, now: float) -> None:
        if self._paused_at is not None:
            self._paused_total += max(0.0, now - self._paused_at)
            self._paused_at = None

    def elapsed(self, now: float) -> float:
        """Speaking time covered at ``now``, excluding paused stretches."""
        if self._paused_at is not None:
            now = self._paused_at
        return max(0.0, now - self.start_time - self._paused_total)

    def tick(self, now: float) -> int:
        """
        Index of the unit whose estimated window contains ``now``.

        Clamped to the first and last unit; -1 only when there are no units.
        """
        if not self.units:
            return -1
        position = bisect_right(self._ends, self.elapsed(now))
        position = min(position, len(self.units) - 1)
        return self.units[position].index

    def to_timing_map(self, title: str = "", granularity: str = "word") -> TimingMap:
        """Export the schedule as a timing map."""
        entries = []
        paragraph = 0
        for unit, (_, start), end in zip(self.units, self.schedule, self._ends):
            if unit.paragraph_break_before:
                paragraph += 1
            entries.append(TimingEntry(
                index=unit.index,
                start=start,
                end=end,
                text=unit.text,
                paragraph=paragraph,
            ))

        return TimingMap(
            title=title,
            granularity=granularity,
            rate=self.rate_multiplier,
            words_per_minute=self.words_per_minute,
            entries=entries,
        )
