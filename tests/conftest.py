"""Pytest configuration helpers."""

import sys
from pathlib import Path
from typing import Any, Callable, List, Optional

import pytest


def _ensure_repo_on_path() -> None:
    """Allow tests to import from repo modules without setting PYTHONPATH."""
    repo_root = Path(__file__).resolve().parents[1]
    path_str = str(repo_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


_ensure_repo_on_path()

from readaloud.readalong.speech_engine import SpeechEngine, Utterance  # noqa: E402


class FakeTimer:
    def __init__(self, when: float, seq: int, callback: Callable[..., Any], args: tuple):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock with the ``time``/``call_later`` slice of an event loop."""

    def __init__(self, now: float = 0.0):
        self.now = now
        self._timers: List[FakeTimer] = []
        self._seq = 0

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimer:
        timer = FakeTimer(self.now + max(0.0, delay), self._seq, callback, args)
        self._seq += 1
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running every timer that falls due in order."""
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self._timers.remove(timer)
            self.now = max(self.now, timer.when)
            timer.callback(*timer.args)
        self.now = target
        self._timers = [t for t in self._timers if not t.cancelled]


class FakeSpeechEngine(SpeechEngine):
    """Records calls; the test decides when the utterance starts and ends."""

    name = "fake"

    def __init__(self):
        self.utterances: List[Utterance] = []
        self.calls: List[str] = []
        self.current: Optional[Utterance] = None
        self.paused = False
        self.closed = False
        self.speak_error: Optional[Exception] = None

    def speak(self, utterance: Utterance) -> None:
        self.calls.append("speak")
        if self.speak_error is not None:
            raise self.speak_error
        self.utterances.append(utterance)
        self.current = utterance
        self.paused = False

    def pause(self) -> None:
        self.calls.append("pause")
        if self.current is not None:
            self.paused = True

    def resume(self) -> None:
        self.calls.append("resume")
        self.paused = False

    def cancel(self) -> None:
        self.calls.append("cancel")
        self.current = None
        self.paused = False

    def close(self) -> None:
        self.closed = True
        super().close()

    @property
    def is_speaking(self) -> bool:
        return self.current is not None and not self.paused

    @property
    def is_paused(self) -> bool:
        return self.current is not None and self.paused

    @property
    def texts(self) -> List[str]:
        return [u.text for u in self.utterances]

    # Drive the current utterance

    def start(self) -> None:
        self.current.fire_start()

    def boundary(self, char_offset: int) -> None:
        self.current.fire_boundary(char_offset)

    def end(self) -> None:
        utterance, self.current = self.current, None
        utterance.fire_end()

    def error(self, error: Exception) -> None:
        utterance, self.current = self.current, None
        utterance.fire_error(error)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def engine() -> FakeSpeechEngine:
    return FakeSpeechEngine()
