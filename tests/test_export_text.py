import json

from llmbench.core.export import (
    build_export_record,
    export_as_json,
    export_as_markdown,
    export_as_text,
    safe_filename,
)
from llmbench.core.export.text_export import format_timestamp, provenance_summary
from llmbench.core.models import Annotation, AnnotationType, PanelId, PanelOutput


def _annotate(comparison):
    comparison.annotations_a.append(Annotation(
        id="a1",
        panel_id=PanelId.A,
        line_number=1,
        type=AnnotationType.QUESTION,
        content="why a cat?",
        created_at="2025-03-01T12:01:00.000Z",
    ))
    comparison.annotations_a.append(Annotation(
        id="a2",
        panel_id=PanelId.A,
        line_number=1,
        end_line_number=2,
        type=AnnotationType.PATTERN,
        content="rhyme",
        created_at="2025-03-01T12:02:00.000Z",
    ))
    return comparison


def test_json_export_adds_word_counts(comparison):
    record = json.loads(export_as_json(comparison))

    assert record["name"] == "Cats and dogs"
    assert record["wordCountA"] == 6
    assert record["wordCountB"] == 6
    assert record["outputA"]["provenance"]["modelDisplayName"] == "Claude Sonnet 4"


def test_json_export_is_stable(comparison):
    assert export_as_json(comparison) == export_as_json(comparison)


def test_word_count_is_none_for_error_panel(comparison):
    comparison.output_b = PanelOutput.failure("timeout")
    assert build_export_record(comparison)["wordCountB"] is None


def test_text_export_layout(comparison):
    text = export_as_text(_annotate(comparison))

    assert text.startswith("═" * 55 + "\nLLMBENCH COMPARISON LOG\n")
    assert "Comparison: Cats and dogs" in text
    assert "Created: 2025-03-01 12:00:00 UTC" in text
    assert "Prompt: Write one sentence about a pet." in text
    assert "PANEL A — Claude Sonnet 4 (t=0.7, 1.2s, 6 words)" in text
    assert "PANEL B — GPT-4o (t=1, 2.5s, 6 words)" in text
    assert "    [Q] L1: why a cat?" in text
    assert "    [PAT] L1-2: rhyme" in text
    assert text.rstrip().endswith("Exported from LLMbench")


def test_text_export_with_error_panel(comparison):
    comparison.output_b = PanelOutput.failure("timeout", comparison.output_b.provenance)
    text = export_as_text(comparison)

    assert "[Error: timeout]" in text
    assert "on the mat" in text
    assert "PANEL B — GPT-4o (t=1, 2.5s)" in text


def test_text_export_without_outputs(comparison):
    comparison.output_a = None
    comparison.output_b = None
    text = export_as_text(comparison)
    assert "PANEL A\n" in text
    assert "PANEL B\n" in text


def test_text_export_keeps_a_blank_line_for_panels_without_annotations(comparison):
    lines = export_as_text(comparison).split("\n")

    mat = lines.index("on the mat")
    assert lines[mat + 1:mat + 3] == ["", ""]
    assert lines[mat + 3].startswith("PANEL B")
    assert lines[-4:-2] == ["", ""]


def test_markdown_export(comparison):
    comparison.output_b = PanelOutput.failure("quota exceeded")
    markdown = export_as_markdown(_annotate(comparison))

    assert markdown.startswith("# Cats and dogs\n")
    assert "**Created:** 2025-03-01" in markdown
    assert "## Prompt\n\nWrite one sentence about a pet." in markdown
    assert "**Model:** Claude Sonnet 4 (anthropic) | **Temperature:** 0.7 | **Response time:** 1.2s" in markdown
    assert "*Error: quota exceeded*" in markdown
    assert "### Annotations (Panel A)" in markdown
    assert "- **[PATTERN]** (L1-2): rhyme" in markdown
    assert "### Annotations (Panel B)" not in markdown


def test_format_timestamp():
    assert format_timestamp("2025-03-01T12:00:00.000Z") == "2025-03-01 12:00:00 UTC"
    assert format_timestamp("2025-03-01T12:00:00", date_only=True) == "2025-03-01"
    assert format_timestamp("not a date") == "not a date"
    assert format_timestamp("") == ""


def test_provenance_summary_without_provenance():
    assert provenance_summary(PanelOutput.success("x")) is None
    assert provenance_summary(None) is None


def test_safe_filename():
    assert safe_filename("My Run #2", "pdf") == "my-run--2.pdf"
    assert safe_filename("", ".md") == "comparison.md"
