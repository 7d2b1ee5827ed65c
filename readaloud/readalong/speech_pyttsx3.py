"""
Speech Engine using pyttsx3

Speaks through the operating system's voices (SAPI5, NSSpeechSynthesizer,
eSpeak) via pyttsx3. The pyttsx3 loop runs in external mode and is pumped
from the event loop, so every callback arrives on the same thread as the
rest of the reader.

pyttsx3 cannot pause. Pausing stops the driver and remembers the word that
was being spoken; resuming speaks the rest of the text from that word.
Boundary offsets are rebased so they always refer to the original text.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from readaloud.readalong.speech_engine import Scheduler, SpeechEngine, SpeechEngineError, Utterance
from readaloud.utils import logger


@dataclass
class _ActiveUtterance:
    """Bookkeeping for the utterance currently owned by the driver."""

    utterance: Utterance
    name: Optional[str]  # pyttsx3 utterance name; None while paused
    base_offset: int = 0  # where the spoken text starts in utterance.text
    word_offset: int = 0  # start of the last reported word
    started: bool = False
    paused: bool = False


class Pyttsx3SpeechEngine(SpeechEngine):
    """
    SpeechEngine backed by pyttsx3.

    Only one utterance is owned at a time; speaking a new one drops the
    previous one without callbacks.
    """

    name = "pyttsx3"
    BASE_RATE = 200  # pyttsx3 default words per minute
    PUMP_INTERVAL = 0.05

    def __init__(
        self,
        scheduler: Scheduler,
        voice: Optional[str] = None,
        pump_interval: Optional[float] = None,
    ):
        """
        Initialize the pyttsx3 engine.

        Args:
            scheduler: Event loop that pumps the pyttsx3 loop
            voice: Substring of a system voice id or name
            pump_interval: Seconds between pyttsx3 loop iterations
        """
        self.scheduler = scheduler
        self.voice = voice
        self.pump_interval = pump_interval or self.PUMP_INTERVAL

        self._engine = self._load_engine()
        self._current: Optional[_ActiveUtterance] = None
        self._counter = 0
        self._pitch_warned = False
        self._closed = False

        self._engine.connect("started-utterance", self._on_started)
        self._engine.connect("started-word", self._on_word)
        self._engine.connect("finished-utterance", self._on_finished)
        self._engine.connect("error", self._on_error)

        self._engine.startLoop(False)
        self._pump_handle = self.scheduler.call_later(self.pump_interval, self._pump)

    def _load_engine(self):
        """Load the pyttsx3 driver and apply the preferred voice."""
        try:
            import pyttsx3
        except ImportError as e:
            raise SpeechEngineError(
                "pyttsx3 not found. Install with: pip install pyttsx3"
            ) from e

        logger.info("Loading pyttsx3 speech engine...")
        try:
            engine = pyttsx3.init()
        except Exception as e:
            raise SpeechEngineError(f"pyttsx3 could not start a voice driver: {e}") from e

        if self.voice:
            for v in engine.getProperty("voices"):
                if self.voice.lower() in v.id.lower() or self.voice.lower() in (v.name or "").lower():
                    engine.setProperty("voice", v.id)
                    break
            else:
                logger.warning(f"Voice '{self.voice}' not found, using the system default")

        logger.success("pyttsx3 speech engine loaded")
        return engine

    def list_voices(self) -> List[Dict[str, str]]:
        """Return available voices on this system."""
        return [
            {"id": v.id, "name": v.name or "", "languages": str(v.languages)}
            for v in self._engine.getProperty("voices")
        ]

    def _next_name(self) -> str:
        self._counter += 1
        return f"readaloud-{self._counter}"

    def _say(self, text: str, utterance: Utterance) -> str:
        name = self._next_name()
        self._engine.setProperty("rate", int(self.BASE_RATE * utterance.rate))
        self._engine.setProperty("volume", max(0.0, min(1.0, utterance.volume)))
        self._engine.say(text, name)
        return name

    def speak(self, utterance: Utterance) -> None:
        if self._closed:
            raise SpeechEngineError("Speech engine is closed")
        if self._current is not None:
            self.cancel()

        if utterance.pitch != 1.0 and not self._pitch_warned:
            logger.warning("pyttsx3 does not support pitch; ignoring it")
            self._pitch_warned = True

        name = self._say(utterance.text, utterance)
        self._current = _ActiveUtterance(utterance=utterance, name=name)

    def pause(self) -> None:
        current = self._current
        if current is None or current.paused:
            return
        current.paused = True
        # The driver's finished-utterance for this name no longer matches
        current.name = None
        self._engine.stop()

    def resume(self) -> None:
        current = self._current
        if current is None or not current.paused:
            return

        remaining = current.utterance.text[current.word_offset:]
        if not remaining.strip():
            self._current = None
            current.utterance.fire_end()
            return

        current.paused = False
        current.base_offset = current.word_offset
        current.name = self._say(remaining, current.utterance)

    def cancel(self) -> None:
        if self._current is None:
            return
        self._current = None
        self._engine.stop()

    def close(self) -> None:
        if self._closed:
            return
        self.cancel()
        self._closed = True
        if self._pump_handle is not None:
            self._pump_handle.cancel()
            self._pump_handle = None
        self._engine.endLoop()

    @property
    def is_speaking(self) -> bool:
        return self._current is not None and not self._current.paused

    @property
    def is_paused(self) -> bool:
        return self._current is not None and self._current.paused

    def _pump(self) -> None:
        """Run one iteration of the pyttsx3 loop and reschedule."""
        self._pump_handle = None
        if self._closed:
            return
        try:
            self._engine.iterate()
        except Exception as e:
            logger.error(f"pyttsx3 loop failed: {e}")
            current, self._current = self._current, None
            if current is not None:
                current.utterance.fire_error(e)
        self._pump_handle = self.scheduler.call_later(self.pump_interval, self._pump)

    def _match(self, name: str) -> Optional[_ActiveUtterance]:
        current = self._current
        if current is None or current.name is None or current.name != name:
            return None
        return current

    def _on_started(self, name: str) -> None:
        current = self._match(name)
        if current is None or current.started:
            return
        current.started = True
        current.utterance.fire_start()

    def _on_word(self, name: str, location: int, length: int) -> None:
        current = self._match(name)
        if current is None:
            return
        current.word_offset = current.base_offset + location
        current.utterance.fire_boundary(current.word_offset)

    def _on_finished(self, name: str, completed: bool) -> None:
        current = self._match(name)
        if current is None:
            return
        self._current = None
        current.utterance.fire_end()

    def _on_error(self, name: str, exception: Exception) -> None:
        current = self._match(name)
        if current is None:
            return
        self._current = None
        current.utterance.fire_error(exception)
