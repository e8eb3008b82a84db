"""
Diff module for comparing two generated texts.

Provides the word-level diff engine used by the side-by-side view and
the paginated export.
"""

from llmbench.core.diff.word_diff import (
    WordDiffResult,
    compute_word_diff,
    segments_to_lines,
    tokenize,
)

__all__ = [
    'WordDiffResult',
    'compute_word_diff',
    'segments_to_lines',
    'tokenize',
]
