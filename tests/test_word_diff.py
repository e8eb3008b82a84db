from llmbench.core.diff import compute_word_diff, segments_to_lines, tokenize
from llmbench.core.models import DiffSegment, SegmentType


def _join(segments):
    return "".join(s.text for s in segments)


def _types(segments):
    return [s.type for s in segments]


def test_tokenize_splits_words_whitespace_and_punctuation():
    assert tokenize("Hello, world!\n") == ["Hello", ",", " ", "world", "!", "\n"]


def test_tokenize_empty_text():
    assert tokenize("") == []


def test_tokens_concatenate_back_to_text():
    text = "  multiple   spaces,\tand\npunctuation?! done "
    assert "".join(tokenize(text)) == text


def test_single_word_substitution():
    diff = compute_word_diff("the cat sat", "the dog sat")

    assert diff.segments_a == [
        DiffSegment("the ", SegmentType.COMMON),
        DiffSegment("cat", SegmentType.REMOVED),
        DiffSegment(" sat", SegmentType.COMMON),
    ]
    assert diff.segments_b == [
        DiffSegment("the ", SegmentType.COMMON),
        DiffSegment("dog", SegmentType.ADDED),
        DiffSegment(" sat", SegmentType.COMMON),
    ]
    assert diff.unique_count_a == 1
    assert diff.unique_count_b == 1


def test_identical_texts_yield_one_common_segment_per_side():
    text = "same words,\nsame order."
    diff = compute_word_diff(text, text)

    assert diff.segments_a == [DiffSegment(text, SegmentType.COMMON)]
    assert diff.segments_b == [DiffSegment(text, SegmentType.COMMON)]
    assert diff.is_identical


def test_each_side_reconstructs_its_own_text():
    pairs = [
        ("", "something new"),
        ("something old", ""),
        ("a b c d e", "a x c y e z"),
        ("Line one.\nLine two.", "Line one!\nLine 2.\nLine three."),
        ("repeat repeat repeat", "repeat"),
    ]
    for text_a, text_b in pairs:
        diff = compute_word_diff(text_a, text_b)
        assert _join(diff.segments_a) == text_a
        assert _join(diff.segments_b) == text_b


def test_segment_types_are_side_specific():
    diff = compute_word_diff("alpha beta gamma", "alpha delta gamma epsilon")

    assert SegmentType.ADDED not in _types(diff.segments_a)
    assert SegmentType.REMOVED not in _types(diff.segments_b)


def test_adjacent_segments_never_share_a_type():
    diff = compute_word_diff("one two three four", "five six seven eight")
    for segments in (diff.segments_a, diff.segments_b):
        for left, right in zip(segments, segments[1:]):
            assert left.type is not right.type


def test_empty_inputs():
    diff = compute_word_diff("", "")
    assert diff.segments_a == []
    assert diff.segments_b == []


def test_segments_accessor_accepts_panel_names():
    diff = compute_word_diff("a", "b")
    assert diff.segments("A") is diff.segments_a
    assert diff.segments("b") is diff.segments_b


def test_to_dict_uses_type_values():
    data = compute_word_diff("x", "y").to_dict()
    assert data["segmentsA"] == [{"text": "x", "type": "removed"}]
    assert data["segmentsB"] == [{"text": "y", "type": "added"}]


def test_segments_to_lines_cuts_at_newlines():
    segments = [
        DiffSegment("first\nsec", SegmentType.COMMON),
        DiffSegment("ond", SegmentType.ADDED),
        DiffSegment("\n\nlast", SegmentType.COMMON),
    ]
    lines = segments_to_lines(segments)

    assert len(lines) == 4
    assert lines[0] == [DiffSegment("first", SegmentType.COMMON)]
    assert lines[1] == [DiffSegment("sec", SegmentType.COMMON), DiffSegment("ond", SegmentType.ADDED)]
    assert lines[2] == []
    assert lines[3] == [DiffSegment("last", SegmentType.COMMON)]
