from readaloud.clean_text import TextCleaner, clean_text


def test_paragraphs_are_separated_by_one_blank_line():
    raw = "  First   line\nstill first.\n\n\n\n  Second\t paragraph.  \n \n"
    assert TextCleaner().clean(raw) == "First line still first.\n\nSecond paragraph."


def test_windows_line_endings_and_invisible_characters():
    raw = "Zero\u200bwidth\r\n\r\nsoft\u00adhyphen and\u00a0nbsp"
    assert TextCleaner().clean(raw) == "Zerowidth\n\nsofthyphen and nbsp"


def test_smart_quotes_become_plain():
    raw = "\u201cQuoted,\u201d she said. It\u2019s \u00abfine\u00bb."
    assert TextCleaner().clean(raw) == "\"Quoted,\" she said. It's \"fine\"."


def test_citation_markers_are_removed():
    raw = "Paris is the capital[1] of France [citation needed]. History[edit]"
    assert TextCleaner().clean(raw) == "Paris is the capital of France. History"


def test_citation_markers_kept_when_disabled():
    raw = "Paris is the capital[1]."
    assert TextCleaner(remove_citations=False).clean(raw) == "Paris is the capital[1]."


def test_split_paragraphs_drops_empty_ones():
    assert TextCleaner().split_paragraphs("a\n\n \n\nb  c") == ["a", "b c"]


def test_clean_text_saves_output(tmp_path):
    output = tmp_path / "out" / "clean.txt"
    cleaned = clean_text("One  two.\n\n\nThree.", output)

    assert cleaned == "One two.\n\nThree."
    assert output.read_text(encoding="utf-8") == cleaned
