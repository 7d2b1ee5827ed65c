import sys
import types

import pytest

from readaloud.readalong.speech_engine import SpeechEngineError, Utterance, get_speech_engine
from readaloud.readalong.speech_pyttsx3 import Pyttsx3SpeechEngine
from readaloud.readalong.speech_simulated import SimulatedSpeechEngine


class FakeVoice:
    def __init__(self, voice_id, name):
        self.id = voice_id
        self.name = name
        self.languages = ["en_US"]


class FakeDriver:
    """Stands in for the object returned by pyttsx3.init()."""

    def __init__(self):
        self.callbacks = {}
        self.said = []
        self.properties = {}
        self.voices = [
            FakeVoice("com.apple.voice.Alex", "Alex"),
            FakeVoice("HKEY_LOCAL_MACHINE\\Zira", "Microsoft Zira"),
        ]
        self.stop_count = 0
        self.iterations = 0
        self.loop_mode = None
        self.loop_ended = False
        self.iterate_error = None

    def connect(self, topic, callback):
        self.callbacks[topic] = callback

    def startLoop(self, use_driver_loop=True):  # noqa: N802
        self.loop_mode = use_driver_loop

    def endLoop(self):  # noqa: N802
        self.loop_ended = True

    def iterate(self):
        self.iterations += 1
        if self.iterate_error is not None:
            raise self.iterate_error

    def say(self, text, name=None):
        self.said.append((text, name))

    def stop(self):
        self.stop_count += 1

    def setProperty(self, key, value):  # noqa: N802
        self.properties[key] = value

    def getProperty(self, key):  # noqa: N802
        if key == "voices":
            return self.voices
        return self.properties.get(key)

    def fire(self, topic, *args):
        self.callbacks[topic](*args)

    @property
    def last_name(self):
        return self.said[-1][1]


@pytest.fixture
def driver(monkeypatch):
    fake = FakeDriver()
    monkeypatch.setitem(sys.modules, "pyttsx3", types.SimpleNamespace(init=lambda: fake))
    return fake


def _recording_utterance(text, **kwargs):
    events = []
    utterance = Utterance(
        text=text,
        on_start=lambda: events.append("start"),
        on_end=lambda: events.append("end"),
        on_error=lambda e: events.append(f"error: {e}"),
        on_boundary=lambda offset: events.append(offset),
        **kwargs,
    )
    return utterance, events


def test_runs_external_loop_pumped_by_scheduler(driver, scheduler):
    engine = Pyttsx3SpeechEngine(scheduler, pump_interval=0.05)

    assert driver.loop_mode is False
    scheduler.advance(0.16)
    assert driver.iterations == 3

    engine.close()
    scheduler.advance(1)
    assert driver.iterations == 3
    assert driver.loop_ended


def test_speak_applies_rate_and_volume(driver, scheduler):
    engine = Pyttsx3SpeechEngine(scheduler)
    utterance, _ = _recording_utterance("Hello there", rate=1.5, volume=3.0)

    engine.speak(utterance)

    assert driver.said[-1][0] == "Hello there"
    assert driver.properties["rate"] == 300
    assert driver.properties["volume"] == 1.0
    assert engine.is_speaking


def test_lifecycle_events_are_forwarded(driver, scheduler):
    engine = Pyttsx3SpeechEngine(scheduler)
    utterance, events = _recording_utterance("Hello brave world")
    engine.speak(utterance)
    name = driver.last_name

    driver.fire("started-utterance", name)
    driver.fire("started-utterance", name)
    driver.fire("started-word", name, 6, 5)
    driver.fire("started-word", "someone-else", 0, 5)
    driver.fire("finished-utterance", name, True)

    assert events == ["start", 6, "end"]
    assert not engine.is_speaking


def test_driver_error_is_reported_once(driver, scheduler):
    engine = Pyttsx3SpeechEngine(scheduler)
    utterance, events = _recording_utterance("Hello")
    engine.speak(utterance)
    name = driver.last_name

    driver.fire("error", name, RuntimeError("no audio"))
    driver.fire("finished-utterance", name, False)

    assert events == ["error: no audio"]


def test_pause_stops_driver_and_resume_speaks_the_rest(driver, scheduler):
    engine = Pyttsx3SpeechEngine(scheduler)
    utterance, events = _recording_utterance("Hello brave new world")
    engine.speak(utterance)
    first = driver.last_name
    driver.fire("started-utterance", first)
    driver.fire("started-word", first, 6, 5)

    engine.pause()
    assert engine.is_paused
    assert driver.stop_count == 1

    # The stopped utterance reports finishing; that is not the real end
    driver.fire("finished-utterance", first, False)
    assert "end" not in events

    engine.resume()
    assert driver.said[-1][0] == "brave new world"
    second = driver.last_name
    assert second != first

    driver.fire("started-utterance", second)
    driver.fire("started-word", second, 6, 3)
    driver.fire("finished-utterance", second, True)

    assert events == ["start", 6, 12, "end"]


def test_cancel_silences_late_driver_events(driver, scheduler):
    engine = Pyttsx3SpeechEngine(scheduler)
    utterance, events = _recording_utterance("Hello")
    engine.speak(utterance)
    name = driver.last_name

    engine.cancel()
    driver.fire("finished-utterance", name, False)

    assert events == []
    assert driver.stop_count == 1


def test_loop_failure_errors_current_utterance(driver, scheduler):
    engine = Pyttsx3SpeechEngine(scheduler, pump_interval=0.05)
    utterance, events = _recording_utterance("Hello")
    engine.speak(utterance)

    driver.iterate_error = RuntimeError("driver crashed")
    scheduler.advance(0.05)

    assert events == ["error: driver crashed"]
    assert not engine.is_speaking


def test_closed_engine_rejects_speech(driver, scheduler):
    engine = Pyttsx3SpeechEngine(scheduler)
    engine.close()

    with pytest.raises(SpeechEngineError):
        engine.speak(Utterance(text="Hello"))


def test_voice_is_selected_by_substring(driver, scheduler):
    engine = Pyttsx3SpeechEngine(scheduler, voice="zira")

    assert driver.properties["voice"] == "HKEY_LOCAL_MACHINE\\Zira"
    assert [v["name"] for v in engine.list_voices()] == ["Alex", "Microsoft Zira"]


def test_missing_pyttsx3_raises_engine_error(monkeypatch, scheduler):
    monkeypatch.setitem(sys.modules, "pyttsx3", None)

    with pytest.raises(SpeechEngineError, match="pip install pyttsx3"):
        Pyttsx3SpeechEngine(scheduler)


def test_driver_init_failure_raises_engine_error(monkeypatch, scheduler):
    def broken_init():
        raise OSError("no speech driver")

    monkeypatch.setitem(sys.modules, "pyttsx3", types.SimpleNamespace(init=broken_init))

    with pytest.raises(SpeechEngineError, match="no speech driver"):
        Pyttsx3SpeechEngine(scheduler)


def test_factory_falls_back_to_simulated_engine(monkeypatch, scheduler):
    monkeypatch.setitem(sys.modules, "pyttsx3", None)

    engine = get_speech_engine("pyttsx3", scheduler)
    assert isinstance(engine, SimulatedSpeechEngine)


def test_factory_builds_pyttsx3_engine(driver, scheduler):
    engine = get_speech_engine("PYTTSX3", scheduler)
    assert isinstance(engine, Pyttsx3SpeechEngine)
    engine.close()


def test_factory_rejects_unknown_engine_and_missing_scheduler(scheduler):
    with pytest.raises(ValueError, match="Unknown speech engine"):
        get_speech_engine("festival", scheduler)
    with pytest.raises(ValueError, match="scheduler"):
        get_speech_engine("simulated", None)
