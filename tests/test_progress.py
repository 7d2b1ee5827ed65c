import pytest

from readaloud.readalong.progress import ProgressEstimator
from readaloud.readalong.segmenter import segment


def _words(text="one two three four"):
    return segment(text, "word")


def test_word_units_share_one_window_length():
    estimator = ProgressEstimator(_words(), start_time=0.0, words_per_minute=150)

    assert estimator.seconds_per_word == pytest.approx(0.4)
    assert estimator.durations == pytest.approx([0.4] * 4)
    assert estimator.total_duration == pytest.approx(1.6)
    assert [start for _, start in estimator.schedule] == pytest.approx([0.0, 0.4, 0.8, 1.2])


def test_sentence_windows_scale_with_word_count():
    units = segment("One two three. Four.", "sentence")
    estimator = ProgressEstimator(units, start_time=0.0, words_per_minute=60)

    assert estimator.durations == pytest.approx([3.0, 1.0])


def test_rate_multiplier_shortens_windows():
    estimator = ProgressEstimator(_words(), start_time=0.0, rate_multiplier=2.0, words_per_minute=150)
    assert estimator.total_duration == pytest.approx(0.8)


@pytest.mark.parametrize(
    "now, expected",
    [
        (10.0, 0),
        (10.1, 0),
        (10.5, 1),
        (11.0, 2),
        (11.5, 3),
        (99.0, 3),  # past the end: clamped to the last unit
        (5.0, 0),  # before the start: clamped to the first unit
    ],
)
def test_tick_finds_unit_for_elapsed_time(now, expected):
    estimator = ProgressEstimator(_words(), start_time=10.0, words_per_minute=150)
    assert estimator.tick(now) == expected


def test_tick_without_units():
    assert ProgressEstimator([], start_time=0.0).tick(5.0) == -1


def test_paused_time_is_not_counted():
    estimator = ProgressEstimator(_words(), start_time=0.0, words_per_minute=150)

    estimator.pause(0.5)
    assert estimator.is_paused
    assert estimator.tick(30.0) == 1

    estimator.resume(30.0)
    assert estimator.elapsed(30.3) == pytest.approx(0.8)
    assert estimator.tick(30.5) == 2


def test_restart_reanchors_schedule():
    estimator = ProgressEstimator(_words(), start_time=0.0, words_per_minute=150)
    estimator.pause(1.0)
    estimator.restart(5.0)

    assert not estimator.is_paused
    assert estimator.tick(5.1) == 0


def test_suggested_tick_interval_never_skips_a_unit():
    estimator = ProgressEstimator(_words(), start_time=0.0, words_per_minute=150)

    assert estimator.suggested_tick_interval(0.2) == pytest.approx(0.2)
    assert estimator.suggested_tick_interval(1.0) == pytest.approx(0.4)


@pytest.mark.parametrize("kwargs", [{"rate_multiplier": 0}, {"words_per_minute": -1}])
def test_rejects_non_positive_speeds(kwargs):
    with pytest.raises(ValueError):
        ProgressEstimator(_words(), start_time=0.0, **kwargs)


def test_to_timing_map_numbers_paragraphs():
    units = segment("First one.\n\nSecond one. Third one.", "sentence")
    timing = ProgressEstimator(units, start_time=0.0, words_per_minute=120).to_timing_map(
        "Title", "sentence"
    )

    assert [e.paragraph for e in timing.entries] == [0, 1, 1]
    assert [e.text for e in timing.entries] == ["First one.", "Second one.", "Third one."]
    assert timing.entries[1].start == pytest.approx(1.0)
    assert timing.duration == pytest.approx(3.0)
    assert timing.estimated is True
