"""
Structured (JSON) export of a comparison.
"""

from __future__ import annotations

import json
import re
from typing import Optional

from llmbench.core.models import Comparison, PanelOutput, word_count


def _panel_word_count(output: Optional[PanelOutput]) -> Optional[int]:
    if output is None or not output.has_text:
        return None
    return word_count(output.text)


def build_export_record(comparison: Comparison) -> dict:
    """
    Full serialization of a comparison plus derived word counts.

    Word counts are None for panels without successful text.
    """
    record = comparison.to_dict()
    record['wordCountA'] = _panel_word_count(comparison.output_a)
    record['wordCountB'] = _panel_word_count(comparison.output_b)
    return record


def export_as_json(comparison: Comparison) -> str:
    """
    Export comparison as structured JSON.

    Output is stable: equal comparisons produce byte-identical text.
    """
    return json.dumps(build_export_record(comparison), indent=2, ensure_ascii=False)


def safe_filename(name: str, extension: str) -> str:
    """
    File name for an export, e.g. 'My Run #2' -> 'my-run--2.pdf'.
    """
    stem = re.sub(r'[^a-z0-9]', '-', (name or "comparison"), flags=re.IGNORECASE).lower()
    return f"{stem or 'comparison'}.{extension.lstrip('.')}"
