"""
Speech Session Controller

Owns one playback session: the units being read, the playback state, the
index of the unit currently audible, and the generation counter.

Every callback that can arrive later (engine start/end/error/boundary,
estimator ticks, the watchdog) is bound to the generation that was live
when it was scheduled. A callback whose generation is no longer current
belongs to a session that has been replaced and does nothing.

Two driving policies:

- UNIT: one utterance per unit. The engine's end signal advances the
  highlight, so boundaries are exact; there is a short gap between units.
- WHOLE: the whole article as one utterance. Audio is seamless; the
  highlight follows the progress estimator (or word boundary events when
  the engine sends them) and may drift.
"""

from bisect import bisect_right
from enum import Enum
from functools import partial
from typing import Callable, List, Optional, Sequence, Tuple, Union

from readaloud.readalong.highlight import HighlightPublisher
from readaloud.readalong.progress import ProgressEstimator
from readaloud.readalong.segmenter import Unit, reconstruct_with_offsets
from readaloud.readalong.speech_engine import Scheduler, SpeechEngine, TimerHandle, Utterance
from readaloud.utils import logger
from readaloud.utils.config import config


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


class DrivingPolicy(str, Enum):
    UNIT = "unit"
    WHOLE = "whole"

    @classmethod
    def parse(cls, value: Union[str, "DrivingPolicy"]) -> "DrivingPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown driving policy {value!r} (expected 'unit' or 'whole')"
            ) from None


StateListener = Callable[[PlaybackState], None]


class SpeechSessionController:
    """
    Playback state machine between the units of an article and a speech engine.

    Control calls (start, pause, resume, stop) return immediately. State
    and index updates made by a control call are visible before it returns;
    everything else happens in engine or timer callbacks on the scheduler.
    """

    WATCHDOG_FACTOR = 4.0

    def __init__(
        self,
        engine: SpeechEngine,
        scheduler: Scheduler,
        *,
        policy: Optional[Union[str, DrivingPolicy]] = None,
        publisher: Optional[HighlightPublisher] = None,
        rate: Optional[float] = None,
        pitch: Optional[float] = None,
        volume: Optional[float] = None,
        words_per_minute: Optional[float] = None,
        tick_interval: Optional[float] = None,
        use_boundary_events: Optional[bool] = None,
        watchdog_seconds: Optional[float] = None,
    ):
        """
        Initialize the controller.

        Args:
            engine: Speech engine to drive
            scheduler: Event loop for timers (``time`` and ``call_later``)
            policy: UNIT or WHOLE (defaults to config)
            publisher: Receives every index change
            rate: Engine rate multiplier
            pitch: Engine pitch
            volume: Engine volume
            words_per_minute: Estimator reading speed at rate 1.0
            tick_interval: Longest gap between estimator ticks, in seconds
            use_boundary_events: Let engine word boundaries drive the WHOLE policy
            watchdog_seconds: Stop if an utterance runs this long past its estimate (0 = off)

        Raises:
            ValueError: if rate or words_per_minute is not positive
        """
        self.engine = engine
        self.scheduler = scheduler
        self.policy = DrivingPolicy.parse(policy or config.policy)
        self.publisher = publisher or HighlightPublisher()

        self.rate = rate if rate is not None else config.speech_rate
        self.pitch = pitch if pitch is not None else config.speech_pitch
        self.volume = volume if volume is not None else config.speech_volume
        self.words_per_minute = (
            words_per_minute if words_per_minute is not None else config.words_per_minute
        )
        self.tick_interval = tick_interval or config.tick_interval
        if self.rate <= 0:
            raise ValueError(f"rate must be positive, got {self.rate}")
        if self.words_per_minute <= 0:
            raise ValueError(f"words_per_minute must be positive, got {self.words_per_minute}")
        if use_boundary_events is None:
            use_boundary_events = bool(config.get("speech", "use_boundary_events", default=True))
        self.use_boundary_events = use_boundary_events
        if watchdog_seconds is None:
            watchdog_seconds = float(config.get("speech", "watchdog_seconds", default=0))
        self.watchdog_seconds = watchdog_seconds

        self._units: Tuple[Unit, ...] = ()
        self._state = PlaybackState.IDLE
        self._current_index = -1
        self._generation = 0
        self._listeners: List[StateListener] = []

        # Per-session driving state
        self._engine_active = False
        self._position = 0  # UNIT: position of the unit in flight
        self._pending_advance = False  # UNIT: unit finished while paused
        self._estimator: Optional[ProgressEstimator] = None
        self._offsets: List[int] = []
        self._start_seen = False
        self._boundary_driven = False
        self._tick_handle: Optional[TimerHandle] = None
        self._watchdog_handle: Optional[TimerHandle] = None

    # -- read-only surface -------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def units(self) -> Tuple[Unit, ...]:
        return self._units

    @property
    def is_active(self) -> bool:
        """True while something is audible or paused mid-article."""
        return self._state in (PlaybackState.PLAYING, PlaybackState.PAUSED)

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` on every state transition; returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # -- control surface ---------------------------------------------------

    def start(self, units: Sequence[Unit]) -> None:
        """Read ``units`` from the first one, replacing any current session."""
        units = tuple(units)
        if not units:
            logger.info("Nothing to read")
            return

        if self.is_active:
            self.stop()
        elif self.engine.is_speaking or self.engine.is_paused:
            self._engine_call("cancel")

        self._generation += 1
        self._units = units
        self._reset_driving_state()
        logger.debug(
            f"Session {self._generation}: {len(units)} units, {self.policy.value} policy"
        )

        self._set_state(PlaybackState.PLAYING)
        self._set_index(units[0].index)

        if self.policy is DrivingPolicy.UNIT:
            self._speak_unit(0)
        else:
            self._speak_whole()

    def pause(self) -> None:
        if self._state is not PlaybackState.PLAYING:
            return

        self._engine_call("pause")
        self._cancel_timer("_tick_handle")
        self._cancel_timer("_watchdog_handle")
        if self._estimator is not None:
            self._estimator.pause(self.scheduler.time())
        self._set_state(PlaybackState.PAUSED)

    def resume(self) -> None:
        if self._state is not PlaybackState.PAUSED:
            return

        self._engine_call("resume")
        self._set_state(PlaybackState.PLAYING)

        if self.policy is DrivingPolicy.UNIT:
            if self._pending_advance:
                self._pending_advance = False
                self._advance()
            elif self._engine_active:
                self._arm_watchdog(self._units[self._position].word_count)
        else:
            if self._estimator is not None:
                self._estimator.resume(self.scheduler.time())
            if self._start_seen and not self._boundary_driven:
                self._schedule_tick()
            if self._engine_active:
                self._arm_watchdog(sum(unit.word_count for unit in self._units))

    def stop(self) -> None:
        """Stop playback and clear the highlight. Safe to call in any state."""
        if self._state is PlaybackState.STOPPED:
            return
        if self._state is PlaybackState.IDLE:
            self._set_state(PlaybackState.STOPPED)
            return

        self._cancel_timers()
        if self._engine_active or self.engine.is_speaking or self.engine.is_paused:
            self._engine_call("cancel")
        self._engine_active = False
        self._estimator = None

        self._clear_index()
        self._set_state(PlaybackState.STOPPED)

    def reset(self) -> None:
        """Stop and discard the session (new extraction or view teardown)."""
        if self.is_active:
            self.stop()
        self._units = ()
        self._reset_driving_state()
        self.publisher.reset()
        self._set_state(PlaybackState.IDLE)

    # -- state helpers -----------------------------------------------------

    def _reset_driving_state(self) -> None:
        self._cancel_timers()
        self._engine_active = False
        self._position = 0
        self._pending_advance = False
        self._estimator = None
        self._offsets = []
        self._start_seen = False
        self._boundary_driven = False

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state:
            return
        logger.debug(f"Playback {self._state.value} -> {state.value}")
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"State listener failed on '{state.value}': {e}")

    def _set_index(self, index: int) -> None:
        """Move the highlight forward; never backwards within a session."""
        if index == self._current_index:
            return
        if self._current_index >= 0 and index < self._current_index:
            logger.debug(f"Ignoring backwards move {self._current_index} -> {index}")
            return
        self._current_index = index
        self.publisher.on_index_changed(index)

    def _clear_index(self) -> None:
        if self._current_index == -1:
            return
        self._current_index = -1
        self.publisher.on_index_changed(-1)

    def _is_live(self, generation: int) -> bool:
        return generation == self._generation and self.is_active

    def _finish(self) -> None:
        """Terminal transition after the engine is done (end, error)."""
        self._cancel_timers()
        self._engine_active = False
        self._estimator = None
        self._pending_advance = False
        self._clear_index()
        self._set_state(PlaybackState.STOPPED)

    # -- engine and timers -------------------------------------------------

    def _engine_call(self, method: str) -> None:
        try:
            getattr(self.engine, method)()
        except Exception as e:
            logger.warning(f"Speech engine {method} failed: {e}")

    def _submit(self, utterance: Utterance, words: int) -> None:
        self._engine_active = True
        self._arm_watchdog(words)
        try:
            self.engine.speak(utterance)
        except Exception as e:
            logger.warning(f"Speech engine rejected utterance, stopping playback: {e}")
            self._finish()

    def _cancel_timer(self, attr: str) -> None:
        handle = getattr(self, attr)
        if handle is not None:
            handle.cancel()
            setattr(self, attr, None)

    def _cancel_timers(self) -> None:
        self._cancel_timer("_tick_handle")
        self._cancel_timer("_watchdog_handle")

    def _arm_watchdog(self, words: int) -> None:
        self._cancel_timer("_watchdog_handle")
        if not self.watchdog_seconds or self.watchdog_seconds <= 0:
            return
        expected = words * 60.0 / (self.words_per_minute * max(self.rate, 0.01))
        timeout = max(self.watchdog_seconds, self.WATCHDOG_FACTOR * expected)
        self._watchdog_handle = self.scheduler.call_later(
            timeout, partial(self._on_watchdog, self._generation, self._position)
        )

    def _on_watchdog(self, generation: int, position: int) -> None:
        self._watchdog_handle = None
        if not self._is_live(generation) or position != self._position:
            return
        if self._state is not PlaybackState.PLAYING:
            return
        logger.warning("Speech engine stalled, stopping playback")
        self.stop()

    def _on_engine_error(self, generation: int, error: Exception) -> None:
        if not self._is_live(generation):
            return
        logger.warning(f"Speech engine error, playback stopped: {error}")
        self._finish()

    # -- UNIT policy -------------------------------------------------------

    def _speak_unit(self, position: int) -> None:
        generation = self._generation
        unit = self._units[position]
        self._position = position

        utterance = Utterance(
            text=unit.text,
            rate=self.rate,
            pitch=self.pitch,
            volume=self.volume,
            on_start=partial(self._on_unit_start, generation, position),
            on_end=partial(self._on_unit_end, generation, position),
            on_error=partial(self._on_engine_error, generation),
        )
        self._submit(utterance, unit.word_count)

    def _on_unit_start(self, generation: int, position: int) -> None:
        if self._is_live(generation) and position == self._position:
            logger.debug(f"Speaking unit {self._units[position].index}")

    def _on_unit_end(self, generation: int, position: int) -> None:
        if not self._is_live(generation) or position != self._position:
            return

        self._cancel_timer("_watchdog_handle")
        self._engine_active = False

        if position + 1 >= len(self._units):
            self._finish()
            return

        if self._state is PlaybackState.PAUSED:
            # Keep the highlight frozen; move on when resumed
            self._pending_advance = True
            return

        self._advance()

    def _advance(self) -> None:
        position = self._position + 1
        self._set_index(self._units[position].index)
        self._speak_unit(position)

    # -- WHOLE policy ------------------------------------------------------

    def _speak_whole(self) -> None:
        generation = self._generation
        text, self._offsets = reconstruct_with_offsets(self._units)
        self._estimator = ProgressEstimator(
            self._units,
            start_time=self.scheduler.time(),
            rate_multiplier=self.rate,
            words_per_minute=self.words_per_minute,
        )

        utterance = Utterance(
            text=text,
            rate=self.rate,
            pitch=self.pitch,
            volume=self.volume,
            on_start=partial(self._on_whole_start, generation),
            on_end=partial(self._on_whole_end, generation),
            on_error=partial(self._on_engine_error, generation),
            on_boundary=partial(self._on_boundary, generation) if self.use_boundary_events else None,
        )
        self._submit(utterance, sum(unit.word_count for unit in self._units))

    def _on_whole_start(self, generation: int) -> None:
        if not self._is_live(generation) or self._start_seen or self._estimator is None:
            return

        self._start_seen = True
        now = self.scheduler.time()
        self._estimator.restart(now)
        self._set_index(self._units[0].index)

        if self._state is PlaybackState.PAUSED:
            self._estimator.pause(now)
        elif not self._boundary_driven:
            self._schedule_tick()

    def _schedule_tick(self) -> None:
        self._cancel_timer("_tick_handle")
        interval = self._estimator.suggested_tick_interval(self.tick_interval)
        self._tick_handle = self.scheduler.call_later(
            interval, partial(self._on_tick, self._generation)
        )

    def _on_tick(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._tick_handle = None
        if self._state is not PlaybackState.PLAYING or self._estimator is None:
            return
        if self._boundary_driven:
            return

        self._set_index(self._estimator.tick(self.scheduler.time()))
        self._schedule_tick()

    def _on_boundary(self, generation: int, char_offset: int) -> None:
        if generation != self._generation or self._state is not PlaybackState.PLAYING:
            return
        if not self._offsets:
            return

        # Real progress from the engine beats the estimate from here on
        if not self._boundary_driven:
            self._boundary_driven = True
            self._cancel_timer("_tick_handle")

        position = max(0, bisect_right(self._offsets, char_offset) - 1)
        self._set_index(self._units[position].index)

    def _on_whole_end(self, generation: int) -> None:
        if not self._is_live(generation):
            return
        self._finish()
