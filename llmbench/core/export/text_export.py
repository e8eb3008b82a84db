"""
Plain-text and Markdown export of a comparison.

Both renderings are deterministic: timestamps are formatted from the
stored ISO strings, never from the local clock or locale.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from llmbench.core.models import (
    DEFAULT_COMPARISON_NAME,
    Annotation,
    Comparison,
    PanelOutput,
)
from llmbench import APP_NAME


HEAVY_RULE = "═" * 55
LIGHT_RULE = "─" * 40
EM_DASH = "—"


def format_timestamp(value: str, date_only: bool = False) -> str:
    """Format a stored ISO timestamp; unparseable values pass through."""
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return value
    if date_only:
        return parsed.strftime('%Y-%m-%d')
    suffix = " UTC" if parsed.utcoffset() is not None and not parsed.utcoffset() else ""
    return parsed.strftime('%Y-%m-%d %H:%M:%S') + suffix


def format_number(value: float) -> str:
    """Compact number formatting: 1.0 -> '1', 0.7 -> '0.7'."""
    return f"{value:g}"


def provenance_summary(output: Optional[PanelOutput], include_words: bool = True) -> Optional[str]:
    """
    One-line provenance, e.g. 'GPT-4o (t=0.7, 2.3s, 120 words)'.

    Returns None when the output carries no provenance.
    """
    if output is None or output.provenance is None:
        return None
    p = output.provenance
    details = [f"t={format_number(p.temperature)}", f"{p.response_time_seconds:.1f}s"]
    if include_words and output.has_text:
        details.append(f"{output.word_count} words")
    return f"{p.display_name} ({', '.join(details)})"


def annotation_line(annotation: Annotation) -> str:
    """'[PAT] L3-5: content' for text exports."""
    return f"[{annotation.type.prefix}] {annotation.line_ref}: {annotation.content}"


def _format_annotations_text(annotations: list[Annotation]) -> list[str]:
    if not annotations:
        return [""]
    lines = ["", "  Annotations:"]
    for annotation in annotations:
        lines.append(f"    {annotation_line(annotation)}")
    return lines


def _panel_body(output: Optional[PanelOutput]) -> list[str]:
    if output is None:
        return []
    if output.is_error:
        return [f"[Error: {output.error}]"]
    if output.text:
        return [output.text]
    return []


def export_as_text(comparison: Comparison) -> str:
    """
    Export comparison as formatted plain text.

    Panels with an error render a single '[Error: <message>]' line in
    place of body text.
    """
    lines: list[str] = [
        HEAVY_RULE,
        f"{APP_NAME.upper()} COMPARISON LOG",
        HEAVY_RULE,
        f"Comparison: {comparison.name or 'Untitled'}",
        f"Created: {format_timestamp(comparison.created_at)}",
        f"Prompt: {comparison.prompt}",
        "",
    ]

    for panel, output, annotations in comparison.iter_panels():
        summary = provenance_summary(output)
        header = f"PANEL {panel.value}"
        if summary:
            header = f"{header} {EM_DASH} {summary}"
        lines.append(header)
        lines.append(LIGHT_RULE)
        lines.extend(_panel_body(output))
        lines.extend(_format_annotations_text(annotations))
        lines.append("")

    lines.append(HEAVY_RULE)
    lines.append(f"Exported from {APP_NAME}")

    return "\n".join(lines)


def export_as_markdown(comparison: Comparison) -> str:
    """Export comparison as a Markdown document."""
    lines: list[str] = [
        f"# {comparison.name or DEFAULT_COMPARISON_NAME}",
        "",
        f"**Created:** {format_timestamp(comparison.created_at, date_only=True)}",
        f"**Updated:** {format_timestamp(comparison.updated_at, date_only=True)}",
        "",
        "## Prompt",
        "",
        comparison.prompt,
        "",
    ]

    for panel, output, annotations in comparison.iter_panels():
        lines.extend(["---", "", f"## Panel {panel.value}"])
        if output is not None and output.provenance is not None:
            p = output.provenance
            lines.append("")
            lines.append(
                f"**Model:** {p.display_name} ({p.provider}) | "
                f"**Temperature:** {format_number(p.temperature)} | "
                f"**Response time:** {p.response_time_seconds:.1f}s"
            )
        lines.append("")
        if output is not None and output.is_error:
            lines.append(f"*Error: {output.error}*")
        elif output is not None and output.text:
            lines.append(output.text)
        lines.append("")

        if annotations:
            lines.append(f"### Annotations (Panel {panel.value})")
            lines.append("")
            for annotation in annotations:
                lines.append(
                    f"- **[{annotation.type.key.upper()}]** ({annotation.line_ref}): {annotation.content}"
                )
            lines.append("")

    lines.extend(["---", "", f"*Exported from {APP_NAME}*"])
    return "\n".join(lines)

