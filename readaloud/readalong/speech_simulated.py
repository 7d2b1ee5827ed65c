"""
Simulated Speech Engine

A silent engine that follows the speech engine contract on timers: start
right away, optional word boundaries, end after the estimated speaking
time. Handy for dry runs on machines without system voices.
"""

import re
from typing import List, Optional, Tuple

from readaloud.readalong.speech_engine import Scheduler, SpeechEngine, TimerHandle, Utterance
from readaloud.utils.config import config

WORD_RE = re.compile(r"\S+")


class SimulatedSpeechEngine(SpeechEngine):
    """Timer-driven stand-in for a real voice."""

    name = "simulated"

    def __init__(
        self,
        scheduler: Scheduler,
        words_per_minute: Optional[float] = None,
        emit_boundaries: bool = True,
    ):
        """
        Initialize the simulated engine.

        Args:
            scheduler: Event loop used for all timers
            words_per_minute: Speaking speed at rate 1.0
            emit_boundaries: Report a boundary event at each word
        """
        self.scheduler = scheduler
        self.words_per_minute = words_per_minute or config.words_per_minute
        self.emit_boundaries = emit_boundaries

        self._utterance: Optional[Utterance] = None
        self._words: List[Tuple[float, int]] = []  # (speaking time, char offset)
        self._duration = 0.0
        self._spoken = 0.0  # speaking time covered before the current run
        self._run_started: Optional[float] = None
        self._handles: List[TimerHandle] = []
        self._paused = False
        self._begun = False

    def speak(self, utterance: Utterance) -> None:
        self.cancel()
        seconds_per_word = 60.0 / (self.words_per_minute * max(utterance.rate, 0.01))
        matches = list(WORD_RE.finditer(utterance.text))

        self._utterance = utterance
        self._words = [(i * seconds_per_word, m.start()) for i, m in enumerate(matches)]
        self._duration = len(matches) * seconds_per_word
        self._spoken = 0.0
        self._paused = False
        self._begun = False
        self._handles.append(self.scheduler.call_later(0, self._begin, utterance))

    def _begin(self, utterance: Utterance) -> None:
        if utterance is not self._utterance or self._paused:
            return
        self._begun = True
        utterance.fire_start()
        self._run()

    def _run(self) -> None:
        """Schedule the remaining boundaries and the end from ``_spoken`` on."""
        utterance = self._utterance
        self._run_started = self.scheduler.time()

        if self.emit_boundaries:
            for at, offset in self._words:
                if at >= self._spoken:
                    self._handles.append(
                        self.scheduler.call_later(at - self._spoken, self._boundary, utterance, offset)
                    )
        self._handles.append(
            self.scheduler.call_later(self._duration - self._spoken, self._finish, utterance)
        )

    def _boundary(self, utterance: Utterance, offset: int) -> None:
        if utterance is self._utterance and not self._paused:
            utterance.fire_boundary(offset)

    def _finish(self, utterance: Utterance) -> None:
        if utterance is not self._utterance or self._paused:
            return
        self._clear()
        utterance.fire_end()

    def _cancel_timers(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles = []

    def _clear(self) -> None:
        self._cancel_timers()
        self._utterance = None
        self._run_started = None
        self._paused = False

    def pause(self) -> None:
        if self._utterance is None or self._paused:
            return
        if self._run_started is not None:
            self._spoken += self.scheduler.time() - self._run_started
            self._run_started = None
        self._paused = True
        self._cancel_timers()

    def resume(self) -> None:
        if self._utterance is None or not self._paused:
            return
        self._paused = False
        if self._begun:
            self._run()
        else:
            self._handles.append(self.scheduler.call_later(0, self._begin, self._utterance))

    def cancel(self) -> None:
        if self._utterance is not None:
            self._clear()

    @property
    def is_speaking(self) -> bool:
        return self._utterance is not None and not self._paused

    @property
    def is_paused(self) -> bool:
        return self._utterance is not None and self._paused
