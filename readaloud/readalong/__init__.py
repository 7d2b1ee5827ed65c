"""
Read-Along Module

Speaks an article unit by unit and keeps a single "currently spoken"
position in sync with the voice, for highlighting and auto-scrolling.
"""

from readaloud.readalong.segmenter import Granularity, Segmenter, Unit, reconstruct, segment
from readaloud.readalong.progress import ProgressEstimator
from readaloud.readalong.highlight import HighlightPublisher, HighlightSignal, UnitGeometry
from readaloud.readalong.speech_engine import SpeechEngine, SpeechEngineError, Utterance, get_speech_engine
from readaloud.readalong.controller import DrivingPolicy, PlaybackState, SpeechSessionController
from readaloud.readalong.timing_map import TimingMap, TimingEntry
from readaloud.readalong.reader import ArticleReader

__all__ = [
    "Granularity",
    "Segmenter",
    "Unit",
    "reconstruct",
    "segment",
    "ProgressEstimator",
    "HighlightPublisher",
    "HighlightSignal",
    "UnitGeometry",
    "SpeechEngine",
    "SpeechEngineError",
    "Utterance",
    "get_speech_engine",
    "DrivingPolicy",
    "PlaybackState",
    "SpeechSessionController",
    "TimingMap",
    "TimingEntry",
    "ArticleReader",
]
