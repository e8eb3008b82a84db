"""
Word-level diff engine.

Computes the differences between two generated texts at word
granularity and returns one segment sequence per panel:
- Panel A carries "removed" segments (words only in A)
- Panel B carries "added" segments (words only in B)
- "common" segments appear in both with identical text

Segments of each side concatenate back to that side's text exactly,
including whitespace and newlines.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from llmbench.core.models import DiffSegment, SegmentType


# Word runs, whitespace runs, or a single punctuation character
_TOKEN_PATTERN = re.compile(r'\w+|\s+|[^\w\s]')

# Edit operations produced by the shortest edit script
_EQUAL = 0
_DELETE = 1
_INSERT = 2


@dataclass
class WordDiffResult:
    """Parallel segment sequences for the two panels."""
    segments_a: list[DiffSegment] = field(default_factory=list)
    segments_b: list[DiffSegment] = field(default_factory=list)

    @property
    def unique_count_a(self) -> int:
        """Number of segments found only in panel A."""
        return sum(1 for s in self.segments_a if s.type is SegmentType.REMOVED)

    @property
    def unique_count_b(self) -> int:
        """Number of segments found only in panel B."""
        return sum(1 for s in self.segments_b if s.type is SegmentType.ADDED)

    @property
    def is_identical(self) -> bool:
        return self.unique_count_a == 0 and self.unique_count_b == 0

    def segments(self, side: str) -> list[DiffSegment]:
        """Get the segment list for panel 'A' or 'B'."""
        return self.segments_a if str(side).upper() == 'A' else self.segments_b

    def to_dict(self) -> dict:
        return {
            'segmentsA': [s.to_dict() for s in self.segments_a],
            'segmentsB': [s.to_dict() for s in self.segments_b],
        }


def tokenize(text: str) -> list[str]:
    """
    Split text into word, whitespace and punctuation tokens.

    The tokens concatenate back to the original text.
    """
    if not text:
        return []
    return _TOKEN_PATTERN.findall(text)


def compute_word_diff(text_a: str, text_b: str) -> WordDiffResult:
    """
    Compute word-level diff between two texts.

    Args:
        text_a: Text of panel A
        text_b: Text of panel B

    Returns:
        WordDiffResult with one segment sequence per panel
    """
    tokens_a = tokenize(text_a or "")
    tokens_b = tokenize(text_b or "")

    result = WordDiffResult()
    for op, token in _edit_script(tokens_a, tokens_b):
        if op == _EQUAL:
            _append(result.segments_a, token, SegmentType.COMMON)
            _append(result.segments_b, token, SegmentType.COMMON)
        elif op == _DELETE:
            _append(result.segments_a, token, SegmentType.REMOVED)
        else:
            _append(result.segments_b, token, SegmentType.ADDED)

    return result


def segments_to_lines(segments: Iterable[DiffSegment]) -> list[list[DiffSegment]]:
    """
    Split segments into visual lines.

    Segments containing newlines are cut at each newline; empty pieces
    are dropped, so an empty line is an empty list.
    """
    lines: list[list[DiffSegment]] = [[]]

    for segment in segments:
        parts = segment.text.split('\n')
        for i, part in enumerate(parts):
            if i > 0:
                lines.append([])
            if part:
                lines[-1].append(DiffSegment(part, segment.type))

    return lines


def _append(segments: list[DiffSegment], token: str, seg_type: SegmentType) -> None:
    """Append a token, extending the last segment when the type matches."""
    if segments and segments[-1].type is seg_type:
        segments[-1] = DiffSegment(segments[-1].text + token, seg_type)
    else:
        segments.append(DiffSegment(token, seg_type))


def _edit_script(a: Sequence[str], b: Sequence[str]) -> list[tuple[int, str]]:
    """
    Shortest edit script between two token sequences.

    Common prefix and suffix are matched directly; the middle is solved
    with the Myers O(ND) algorithm. Within a change region deletions are
    emitted before insertions.
    """
    prefix = 0
    limit = min(len(a), len(b))
    while prefix < limit and a[prefix] == b[prefix]:
        prefix += 1

    suffix = 0
    limit -= prefix
    while suffix < limit and a[len(a) - 1 - suffix] == b[len(b) - 1 - suffix]:
        suffix += 1

    middle_a = a[prefix:len(a) - suffix]
    middle_b = b[prefix:len(b) - suffix]

    ops: list[tuple[int, str]] = [(_EQUAL, t) for t in a[:prefix]]
    ops.extend(_reorder_changes(_myers(middle_a, middle_b)))
    ops.extend((_EQUAL, t) for t in a[len(a) - suffix:])
    return ops


def _myers(a: Sequence[str], b: Sequence[str]) -> list[tuple[int, str]]:
    """Myers shortest edit script with trace-based backtracking."""
    n, m = len(a), len(b)
    if n == 0:
        return [(_INSERT, t) for t in b]
    if m == 0:
        return [(_DELETE, t) for t in a]

    v: dict[int, int] = {1: 0}
    trace: list[dict[int, int]] = []

    for d in range(n + m + 1):
        trace.append(v.copy())
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and v[k - 1] < v[k + 1]):
                x = v[k + 1]
            else:
                x = v[k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            v[k] = x
            if x >= n and y >= m:
                return _backtrack(a, b, trace)

    # Unreachable: d = n + m always reaches the end
    return [(_DELETE, t) for t in a] + [(_INSERT, t) for t in b]


def _backtrack(
    a: Sequence[str],
    b: Sequence[str],
    trace: list[dict[int, int]]
) -> list[tuple[int, str]]:
    """Walk the trace from (n, m) back to the origin."""
    x, y = len(a), len(b)
    ops: list[tuple[int, str]] = []

    for d in range(len(trace) - 1, -1, -1):
        v = trace[d]
        k = x - y
        if k == -d or (k != d and v.get(k - 1, -1) < v.get(k + 1, -1)):
            prev_k = k + 1
        else:
            prev_k = k - 1
        prev_x = v.get(prev_k, 0)
        prev_y = prev_x - prev_k

        while x > prev_x and y > prev_y:
            ops.append((_EQUAL, a[x - 1]))
            x -= 1
            y -= 1

        if d > 0:
            if x == prev_x:
                ops.append((_INSERT, b[y - 1]))
            else:
                ops.append((_DELETE, a[x - 1]))

        x, y = prev_x, prev_y

    ops.reverse()
    return ops


def _reorder_changes(ops: list[tuple[int, str]]) -> list[tuple[int, str]]:
    """Within each run of non-equal ops, move deletions ahead of insertions."""
    result: list[tuple[int, str]] = []
    deletes: list[tuple[int, str]] = []
    inserts: list[tuple[int, str]] = []

    for op in ops:
        if op[0] == _EQUAL:
            result.extend(deletes)
            result.extend(inserts)
            deletes.clear()
            inserts.clear()
            result.append(op)
        elif op[0] == _DELETE:
            deletes.append(op)
        else:
            inserts.append(op)

    result.extend(deletes)
    result.extend(inserts)
    return result
