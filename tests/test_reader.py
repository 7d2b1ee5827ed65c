import asyncio

import pytest

from readaloud.extract_text import Article, ExtractionError
from readaloud.readalong.controller import PlaybackState, SpeechSessionController
from readaloud.readalong.reader import ArticleReader
from readaloud.readalong.segmenter import Segmenter


class FakeExtractor:
    def __init__(self, result=None, side_effect=None):
        self.result = result
        self.side_effect = side_effect
        self.urls = []

    def extract(self, url):
        self.urls.append(url)
        if self.side_effect is not None:
            self.side_effect()
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def make_reader(engine, scheduler):
    def factory(result=None, side_effect=None, granularity="word"):
        controller = SpeechSessionController(
            engine, scheduler, policy="unit", rate=1.0, words_per_minute=150, watchdog_seconds=0
        )
        extractor = FakeExtractor(result, side_effect)
        return ArticleReader(controller, extractor=extractor, segmenter=Segmenter(granularity))

    return factory


ARTICLE = Article(title="Story", content="One two. Three four.\n\nFive.", url="https://example.com")


def test_load_segments_article(make_reader):
    reader = make_reader(ARTICLE, granularity="sentence")

    article = reader.load("https://example.com")

    assert article is ARTICLE
    assert [u.text for u in reader.units] == ["One two.", "Three four.", "Five."]
    assert reader.state is PlaybackState.IDLE
    assert reader.current_index == -1


def test_loading_stops_current_playback(make_reader, engine):
    reader = make_reader(ARTICLE)
    reader.load("https://example.com")
    reader.play()
    assert reader.state is PlaybackState.PLAYING

    reader.load("https://example.com/next")

    assert reader.state is PlaybackState.IDLE
    assert reader.current_index == -1
    assert "cancel" in engine.calls


def test_extraction_error_propagates_and_clears_article(make_reader):
    reader = make_reader(ARTICLE)
    reader.load("https://example.com")

    reader.extractor.result = ExtractionError(ExtractionError.FETCH_FAILED, "timeout")
    with pytest.raises(ExtractionError):
        reader.load("https://example.com/broken")

    assert reader.article is None
    assert reader.units == []


def test_superseded_load_does_not_replace_newer_result(make_reader):
    reader = make_reader(ARTICLE)
    reader.extractor.side_effect = lambda: reader.load_text("Newer text.", title="Newer")

    assert reader.load("https://example.com/slow") is None
    assert reader.article.title == "Newer"
    assert [u.text for u in reader.units] == ["Newer", "text."]


def test_load_async_runs_extraction_off_the_loop(make_reader):
    reader = make_reader(ARTICLE)

    article = asyncio.run(reader.load_async("https://example.com"))

    assert article is ARTICLE
    assert len(reader.units) == 5


def test_load_async_failure_of_superseded_load_is_ignored(make_reader):
    reader = make_reader(ExtractionError(ExtractionError.FETCH_FAILED))
    reader.extractor.side_effect = lambda: reader.load_text("Newer text.")

    assert asyncio.run(reader.load_async("https://example.com")) is None
    assert len(reader.units) == 2


def test_load_async_failure_propagates(make_reader):
    reader = make_reader(ExtractionError(ExtractionError.EXTRACTION_FAILED))

    with pytest.raises(ExtractionError):
        asyncio.run(reader.load_async("https://example.com"))


def test_load_text_cleans_content(make_reader):
    reader = make_reader()
    article = reader.load_text("Local   \u201ctext\u201d[2].\n\n\nDone.", title="notes")

    assert article.content == "Local \"text\".\n\nDone."
    assert reader.units[-1].paragraph_break_before


def test_play_pause_resume_stop(make_reader, engine):
    reader = make_reader(ARTICLE)
    reader.load("https://example.com")

    reader.play()
    assert reader.current_index == 0
    reader.pause()
    assert reader.state is PlaybackState.PAUSED
    reader.resume()
    engine.end()
    assert reader.current_index == 1
    reader.stop()
    assert reader.state is PlaybackState.STOPPED
    assert reader.current_index == -1


def test_play_without_article_stays_idle(make_reader, engine):
    reader = make_reader()
    reader.play()

    assert reader.state is PlaybackState.IDLE
    assert engine.utterances == []


def test_close_releases_engine_and_blocks_further_use(make_reader, engine):
    reader = make_reader(ARTICLE)
    reader.load("https://example.com")
    reader.play()

    reader.close()

    assert engine.closed
    assert reader.state is PlaybackState.IDLE
    assert reader.article is None

    reader.play()
    assert engine.texts == ["One"]


def test_toggle_pause_switches_between_playing_and_paused(make_reader, engine):
    reader = make_reader(ARTICLE)
    reader.load("https://example.com")

    reader.toggle_pause()
    assert reader.state is PlaybackState.IDLE

    reader.play()
    reader.toggle_pause()
    assert reader.state is PlaybackState.PAUSED
    reader.toggle_pause()
    assert reader.state is PlaybackState.PLAYING
    assert engine.calls == ["speak", "pause", "resume"]
