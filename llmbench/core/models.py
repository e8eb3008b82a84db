"""
Core data models for the comparison workbench.

This module defines all data structures shared across the application:
- Panel identifiers and generated outputs with provenance
- Line-anchored annotations and their type catalogue
- Word diff segments
- The Comparison record (unit of save/load/export)

All models are designed to be:
- UI-agnostic (can be used with any frontend)
- Serializable (camelCase dictionaries, matching saved session files)
- Tolerant on load (malformed records fall back to safe defaults)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Optional


# =============================================================================
# Enumerations
# =============================================================================

class PanelId(Enum):
    """One of the two independent text slots being compared."""
    A = "A"
    B = "B"

    @classmethod
    def from_value(cls, value: Any) -> 'PanelId':
        """Create from a string or PanelId, raising KeyError if unknown."""
        if isinstance(value, PanelId):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise KeyError(f"Unknown panel id: {value!r}") from None

    @property
    def other(self) -> 'PanelId':
        return PanelId.B if self is PanelId.A else PanelId.A


class SegmentType(Enum):
    """Classification of a diff segment."""
    COMMON = "common"     # Present in both texts
    ADDED = "added"       # Only in panel B
    REMOVED = "removed"   # Only in panel A


class AnnotationType(Enum):
    """
    Closed set of annotation categories.

    Each member carries its label, short prefix code, on-screen colors
    (light, dark) and the RGB badge color used in PDF export.
    """
    OBSERVATION = ("observation", "Observation", "OBS", "#2563eb", "#60a5fa", (96, 165, 250))
    QUESTION = ("question", "Question", "Q", "#d97706", "#fbbf24", (251, 191, 36))
    METAPHOR = ("metaphor", "Metaphor", "MET", "#9333ea", "#c084fc", (192, 132, 252))
    PATTERN = ("pattern", "Pattern", "PAT", "#16a34a", "#4ade80", (74, 222, 128))
    CONTEXT = ("context", "Context", "CTX", "#64748b", "#94a3b8", (148, 163, 184))
    CRITIQUE = ("critique", "Critique", "CRT", "#8b2942", "#c55a75", (157, 78, 89))

    def __init__(
        self,
        key: str,
        label: str,
        prefix: str,
        light_color: str,
        dark_color: str,
        badge_rgb: tuple[int, int, int]
    ):
        self.key = key
        self.label = label
        self.prefix = prefix
        self.light_color = light_color
        self.dark_color = dark_color
        self.badge_rgb = badge_rgb

    def color(self, dark: bool = False) -> str:
        """Get the display color for the current theme."""
        return self.dark_color if dark else self.light_color

    @classmethod
    def from_string(cls, value: Any) -> 'AnnotationType':
        """
        Create from a stored string value.

        Raises:
            ValueError: If the value names no annotation type
        """
        if isinstance(value, AnnotationType):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.key == text:
                return member
        raise ValueError(f"Unknown annotation type: {value!r}")


DEFAULT_ANNOTATION_TYPE = AnnotationType.OBSERVATION


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def new_id() -> str:
    return str(uuid.uuid4())


def word_count(text: Optional[str]) -> int:
    """Count whitespace-separated words."""
    if not text:
        return 0
    return len(text.split())


# =============================================================================
# Diff Models
# =============================================================================

@dataclass(frozen=True)
class DiffSegment:
    """A contiguous run of diff-classified text."""
    text: str
    type: SegmentType

    @property
    def is_common(self) -> bool:
        return self.type is SegmentType.COMMON

    def to_dict(self) -> dict:
        return {'text': self.text, 'type': self.type.value}

    @classmethod
    def from_dict(cls, data: dict) -> 'DiffSegment':
        return cls(text=str(data.get('text', '')), type=SegmentType(data.get('type', 'common')))


# =============================================================================
# Output Models
# =============================================================================

@dataclass
class Provenance:
    """
    Metadata describing which generation call produced a panel's text.
    """
    provider: str = ""
    model: str = ""
    model_display_name: str = ""
    temperature: float = 1.0
    system_prompt: str = ""
    response_time_ms: int = 0
    generated_at: str = ""

    @property
    def response_time_seconds(self) -> float:
        return self.response_time_ms / 1000

    @property
    def display_name(self) -> str:
        return self.model_display_name or self.model

    def to_dict(self) -> dict:
        return {
            'provider': self.provider,
            'model': self.model,
            'modelDisplayName': self.model_display_name,
            'temperature': self.temperature,
            'systemPrompt': self.system_prompt,
            'responseTimeMs': self.response_time_ms,
            'generatedAt': self.generated_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional['Provenance']:
        if not isinstance(data, dict):
            return None
        try:
            temperature = float(data.get('temperature', 1.0))
        except (TypeError, ValueError):
            temperature = 1.0
        try:
            response_time_ms = int(data.get('responseTimeMs', 0) or 0)
        except (TypeError, ValueError):
            response_time_ms = 0
        return cls(
            provider=str(data.get('provider', '')),
            model=str(data.get('model', '')),
            model_display_name=str(data.get('modelDisplayName', '')),
            temperature=temperature,
            system_prompt=str(data.get('systemPrompt', '')),
            response_time_ms=response_time_ms,
            generated_at=str(data.get('generatedAt', '')),
        )


@dataclass(frozen=True)
class PanelOutput:
    """
    Immutable content of one panel.

    Exactly one of `text` or `error` is meaningful: an output with an
    error is display-only and never enters the diff engine.
    """
    text: str = ""
    provenance: Optional[Provenance] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def has_text(self) -> bool:
        """True when the panel holds successful (possibly empty) text."""
        return self.error is None

    @property
    def word_count(self) -> int:
        return word_count(self.text) if self.has_text else 0

    @property
    def line_count(self) -> int:
        if not self.has_text or not self.text:
            return 0
        return self.text.count('\n') + 1

    @classmethod
    def success(cls, text: str, provenance: Optional[Provenance] = None) -> 'PanelOutput':
        return cls(text=text, provenance=provenance)

    @classmethod
    def failure(cls, error: str, provenance: Optional[Provenance] = None) -> 'PanelOutput':
        return cls(text="", provenance=provenance, error=error)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            'text': self.text,
            'provenance': self.provenance.to_dict() if self.provenance else None,
        }
        if self.error is not None:
            data['error'] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Optional['PanelOutput']:
        if not isinstance(data, dict):
            return None
        error = data.get('error')
        text = data.get('text')
        return cls(
            text=text if isinstance(text, str) else "",
            provenance=Provenance.from_dict(data.get('provenance')),
            error=str(error) if error else None,
        )


# =============================================================================
# Annotation Models
# =============================================================================

class AnnotationError(ValueError):
    """Raised when an annotation anchor violates the line invariants."""
    pass


def validate_anchor(line_number: int, end_line_number: Optional[int]) -> None:
    """
    Check the line anchor invariants.

    Raises:
        AnnotationError: If line_number < 1 or end_line_number < line_number
    """
    if not isinstance(line_number, int) or isinstance(line_number, bool) or line_number < 1:
        raise AnnotationError(f"Line number must be a positive integer, got {line_number!r}")
    if end_line_number is not None:
        if not isinstance(end_line_number, int) or isinstance(end_line_number, bool):
            raise AnnotationError(f"End line number must be an integer, got {end_line_number!r}")
        if end_line_number < line_number:
            raise AnnotationError(
                f"End line {end_line_number} precedes start line {line_number}"
            )


@dataclass
class Annotation:
    """
    A line-anchored annotation on one panel.

    The anchor (line_number, end_line_number) is fixed after creation;
    only type and content change on edit.
    """
    id: str
    panel_id: PanelId
    line_number: int
    type: AnnotationType
    content: str
    created_at: str
    end_line_number: Optional[int] = None
    line_content: str = ""
    added_by: Optional[str] = None
    orphaned: bool = False

    def __post_init__(self) -> None:
        validate_anchor(self.line_number, self.end_line_number)

    @property
    def is_block(self) -> bool:
        """Whether this annotation spans a line range."""
        return self.end_line_number is not None

    @property
    def display_line(self) -> int:
        """Line at which the annotation renders (end line for blocks)."""
        return self.end_line_number if self.end_line_number is not None else self.line_number

    @property
    def line_ref(self) -> str:
        """Compact line reference, e.g. 'L3' or 'L3-5'."""
        if self.end_line_number is not None:
            return f"L{self.line_number}-{self.end_line_number}"
        return f"L{self.line_number}"

    def covers(self, line: int) -> bool:
        return self.line_number <= line <= self.display_line

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            'id': self.id,
            'outputId': self.panel_id.value,
            'lineNumber': self.line_number,
        }
        if self.end_line_number is not None:
            data['endLineNumber'] = self.end_line_number
        data.update({
            'lineContent': self.line_content,
            'type': self.type.key,
            'content': self.content,
            'createdAt': self.created_at,
        })
        if self.orphaned:
            data['orphaned'] = True
        if self.added_by is not None:
            data['addedBy'] = self.added_by
        return data

    @classmethod
    def from_dict(cls, data: Any, panel_id: PanelId) -> Optional['Annotation']:
        """
        Build from a stored record.

        Returns None for records whose anchor cannot be recovered.
        Unknown types fall back to observation.
        """
        if not isinstance(data, dict):
            return None
        try:
            line_number = int(data.get('lineNumber'))
        except (TypeError, ValueError):
            logging.warning(f"Annotation - Skipping record without line number: {data.get('id')}")
            return None

        end_line_number = data.get('endLineNumber')
        if end_line_number is not None:
            try:
                end_line_number = int(end_line_number)
            except (TypeError, ValueError):
                end_line_number = None

        try:
            ann_type = AnnotationType.from_string(data.get('type', DEFAULT_ANNOTATION_TYPE.key))
        except ValueError:
            ann_type = DEFAULT_ANNOTATION_TYPE

        try:
            return cls(
                id=str(data.get('id') or new_id()),
                panel_id=panel_id,
                line_number=line_number,
                end_line_number=end_line_number,
                type=ann_type,
                content=str(data.get('content', '')),
                created_at=str(data.get('createdAt', '')),
                line_content=str(data.get('lineContent', '')),
                added_by=data.get('addedBy'),
                orphaned=bool(data.get('orphaned', False)),
            )
        except AnnotationError as e:
            logging.warning(f"Annotation - Skipping record with invalid anchor: {e}")
            return None


# =============================================================================
# Comparison Model
# =============================================================================

DEFAULT_COMPARISON_NAME = "Untitled Comparison"


@dataclass
class Comparison:
    """
    Aggregate session record.

    Owns one output per panel plus its annotation set. Saving always
    replaces both annotation lists in full.
    """
    id: str
    name: str
    prompt: str
    output_a: Optional[PanelOutput]
    output_b: Optional[PanelOutput]
    annotations_a: list[Annotation] = field(default_factory=list)
    annotations_b: list[Annotation] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def output(self, panel: PanelId | str) -> Optional[PanelOutput]:
        panel = PanelId.from_value(panel)
        return self.output_a if panel is PanelId.A else self.output_b

    def annotations(self, panel: PanelId | str) -> list[Annotation]:
        panel = PanelId.from_value(panel)
        return self.annotations_a if panel is PanelId.A else self.annotations_b

    def iter_panels(self) -> Iterator[tuple[PanelId, Optional[PanelOutput], list[Annotation]]]:
        """Yield (panel, output, annotations) for A then B."""
        for panel in PanelId:
            yield panel, self.output(panel), self.annotations(panel)

    @property
    def has_both_texts(self) -> bool:
        """Both panels hold successful text (required for diffing)."""
        return (
            self.output_a is not None and self.output_a.has_text and
            self.output_b is not None and self.output_b.has_text
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'prompt': self.prompt,
            'outputA': self.output_a.to_dict() if self.output_a else None,
            'outputB': self.output_b.to_dict() if self.output_b else None,
            'annotationsA': [a.to_dict() for a in self.annotations_a],
            'annotationsB': [a.to_dict() for a in self.annotations_b],
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'Comparison':
        """
        Build from a saved record, never raising.

        Missing annotation arrays default to empty and missing outputs
        to None.
        """
        if not isinstance(data, dict):
            logging.warning("Comparison - Load input is not a mapping; using empty comparison")
            data = {}

        def load_annotations(key: str, panel: PanelId) -> list[Annotation]:
            raw = data.get(key)
            if not isinstance(raw, list):
                return []
            loaded = (Annotation.from_dict(item, panel) for item in raw)
            return [a for a in loaded if a is not None]

        return cls(
            id=str(data.get('id') or new_id()),
            name=str(data.get('name') or DEFAULT_COMPARISON_NAME),
            prompt=str(data.get('prompt') or ''),
            output_a=PanelOutput.from_dict(data.get('outputA')),
            output_b=PanelOutput.from_dict(data.get('outputB')),
            annotations_a=load_annotations('annotationsA', PanelId.A),
            annotations_b=load_annotations('annotationsB', PanelId.B),
            created_at=str(data.get('createdAt') or ''),
            updated_at=str(data.get('updatedAt') or ''),
        )
