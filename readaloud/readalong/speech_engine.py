"""
Speech Engine Interface

Contract between the speech session controller and whatever actually
produces audio. Engines receive an Utterance and report its lifecycle
through the callbacks it carries: start, optional word boundaries, and
exactly one of end or error.

Engine Selection:
1. pyttsx3 (system voices, offline) - DEFAULT
2. simulated (no audio, timer driven; used for dry runs and tests)

Set READALOUD_ENGINE to override the configured engine:
  READALOUD_ENGINE=pyttsx3
  READALOUD_ENGINE=simulated
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from readaloud.utils import logger
from readaloud.utils.config import config


class SpeechEngineError(RuntimeError):
    """Raised when a speech engine cannot be loaded or used."""


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """The slice of an asyncio event loop the reader relies on."""

    def time(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


@dataclass(eq=False)
class Utterance:
    """A piece of text to speak plus the callbacks for its lifecycle."""

    text: str
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0
    on_start: Optional[Callable[[], None]] = None
    on_end: Optional[Callable[[], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None
    on_boundary: Optional[Callable[[int], None]] = None  # character offset into text
    finished: bool = field(default=False, init=False)

    def fire_start(self) -> None:
        if not self.finished and self.on_start:
            self.on_start()

    def fire_boundary(self, char_offset: int) -> None:
        if not self.finished and self.on_boundary:
            self.on_boundary(char_offset)

    def fire_end(self) -> None:
        # end and error are terminal and mutually exclusive
        if self.finished:
            return
        self.finished = True
        if self.on_end:
            self.on_end()

    def fire_error(self, error: Exception) -> None:
        if self.finished:
            return
        self.finished = True
        if self.on_error:
            self.on_error(error)


class SpeechEngine(ABC):
    """
    Base class for speech engines.

    All methods return immediately; results arrive later through the
    utterance callbacks. One engine instance is shared by the whole
    process, and at most one utterance is in flight at a time.
    """

    name = "base"

    @abstractmethod
    def speak(self, utterance: Utterance) -> None:
        """Queue ``utterance`` for speaking."""

    @abstractmethod
    def pause(self) -> None:
        """Pause the current utterance."""

    @abstractmethod
    def resume(self) -> None:
        """Resume a paused utterance."""

    @abstractmethod
    def cancel(self) -> None:
        """Drop the current utterance. No further callbacks are delivered for it."""

    def close(self) -> None:
        """Release the engine."""
        self.cancel()

    @property
    @abstractmethod
    def is_speaking(self) -> bool:
        ...

    @property
    @abstractmethod
    def is_paused(self) -> bool:
        ...


def get_speech_engine(
    name: Optional[str] = None,
    scheduler: Optional[Scheduler] = None,
    voice: Optional[str] = None,
) -> SpeechEngine:
    """
    Create the configured speech engine, falling back to the simulated one.

    Args:
        name: Engine name (defaults to config / READALOUD_ENGINE)
        scheduler: Event loop used to pump the engine and run timers
        voice: Preferred system voice

    Returns:
        A ready SpeechEngine
    """
    if scheduler is None:
        raise ValueError("A scheduler (event loop) is required to drive a speech engine")

    name = (name or config.speech_engine).lower()

    if name == "pyttsx3":
        from readaloud.readalong.speech_pyttsx3 import Pyttsx3SpeechEngine

        try:
            return Pyttsx3SpeechEngine(scheduler, voice=voice or config.voice)
        except SpeechEngineError as e:
            logger.warning(f"pyttsx3 not available ({e}), using the simulated engine")
    elif name != "simulated":
        raise ValueError(f"Unknown speech engine {name!r} (expected 'pyttsx3' or 'simulated')")

    from readaloud.readalong.speech_simulated import SimulatedSpeechEngine

    return SimulatedSpeechEngine(scheduler)
