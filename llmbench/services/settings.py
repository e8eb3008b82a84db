"""
Application settings management.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, asdict, replace
from pathlib import Path
from typing import Any, Callable, Optional
from enum import Enum

from llmbench.core.export.layout import LayoutStyles, PageGeometry, PageSize, TextStyle
from llmbench.core.models import PanelId


# Environment variables consulted when a slot has no stored API key
API_KEY_ENV_VARS = {
    'anthropic': 'ANTHROPIC_API_KEY',
    'openai': 'OPENAI_API_KEY',
    'google': 'GOOGLE_API_KEY',
}


class AnnotationBrightness(Enum):
    """Annotation text brightness and its opacity."""
    LOW = 0.2
    MEDIUM = 0.45
    HIGH = 0.7
    FULL = 1.0

    @property
    def opacity(self) -> float:
        return self.value


class LineHighlightIntensity(Enum):
    """Background alpha (0-255) for annotated lines."""
    OFF = 0
    LOW = 0x06
    MEDIUM = 0x0A
    HIGH = 0x12
    FULL = 0x1A

    @property
    def alpha(self) -> int:
        return self.value


@dataclass
class ProviderSlot:
    """Provider configuration for one panel."""
    provider: str = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key: str = ""
    base_url: str = ""
    custom_model_id: str = ""
    temperature: float = 1.0
    system_prompt: str = ""
    max_tokens: int = 4096

    @property
    def effective_model(self) -> str:
        """Custom model id when set, else the selected model."""
        return self.custom_model_id or self.model

    def resolved_api_key(self) -> str:
        """Stored key, falling back to the provider's environment variable."""
        if self.api_key:
            return self.api_key
        env_var = API_KEY_ENV_VARS.get(self.provider)
        return os.environ.get(env_var, "") if env_var else ""


def _default_slot_b() -> ProviderSlot:
    return ProviderSlot(provider="openai", model="gpt-4o")


@dataclass
class DisplaySettings:
    """Side-by-side view settings."""
    prose_font_family: str = "Georgia"
    prose_font_size: int = 11
    dark_mode: bool = False
    annotations_visible: bool = True
    brightness: AnnotationBrightness = AnnotationBrightness.HIGH
    line_highlight: LineHighlightIntensity = LineHighlightIntensity.MEDIUM
    highlight_annotated_lines: bool = True
    window_width: int = 1400
    window_height: int = 900


@dataclass
class ExportSettings:
    """PDF export settings (millimetres and points)."""
    page_size: str = "A4"
    margin: float = 15.0
    column_gap: float = 6.0
    body_font_size: float = 9.0
    title_font_size: float = 18.0
    highlight_diff: bool = True
    export_directory: str = ""

    def geometry(self) -> PageGeometry:
        return PageGeometry(PageSize.from_string(self.page_size), self.margin, self.column_gap)

    def styles(self) -> LayoutStyles:
        """Layout styles with the configured body and title sizes."""
        return replace(
            LayoutStyles(),
            title=TextStyle(self.title_font_size, bold=True),
            body=TextStyle(self.body_font_size),
            body_line_height=self.body_font_size * 0.5,
        )


@dataclass
class ColorSettings:
    """Color settings for diff highlighting."""
    added_background: str = "#bbf7d0"
    removed_background: str = "#fecaca"
    annotated_line_color: str = "#2563eb"

    # Dark theme overrides
    dark_added_background: str = "#14532d"
    dark_removed_background: str = "#7f1d1d"

    def added(self, dark: bool = False) -> str:
        return self.dark_added_background if dark else self.added_background

    def removed(self, dark: bool = False) -> str:
        return self.dark_removed_background if dark else self.removed_background


@dataclass
class ApplicationSettings:
    """Main application settings container."""
    slot_a: ProviderSlot = field(default_factory=ProviderSlot)
    slot_b: ProviderSlot = field(default_factory=_default_slot_b)
    display: DisplaySettings = field(default_factory=DisplaySettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    colors: ColorSettings = field(default_factory=ColorSettings)

    recent_comparisons: list[str] = field(default_factory=list)
    last_directory: str = ""

    def slot(self, panel: PanelId | str) -> ProviderSlot:
        return self.slot_a if PanelId.from_value(panel) is PanelId.A else self.slot_b


class SettingsManager:
    """Manager for loading/saving application settings."""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = settings_path or self._get_default_path()
        self._settings: Optional[ApplicationSettings] = None
        self._observers: list[Callable[[ApplicationSettings], None]] = []

    @staticmethod
    def _get_default_path() -> Path:
        """Get the default settings file path."""
        if os.name == 'nt':
            # Windows
            app_data = os.environ.get('APPDATA', os.path.expanduser('~'))
            return Path(app_data) / 'LLMbench' / 'settings.json'
        else:
            # Linux/Mac
            config_home = os.environ.get('XDG_CONFIG_HOME',
                                         os.path.expanduser('~/.config'))
            return Path(config_home) / 'llmbench' / 'settings.json'

    @property
    def settings(self) -> ApplicationSettings:
        """Get current settings, loading from disk if needed."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    def load(self) -> ApplicationSettings:
        """Load settings from disk."""
        if not self.settings_path.exists():
            return ApplicationSettings()

        try:
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError("settings root is not an object")
            return self._from_dict(data)
        except (OSError, ValueError) as e:
            logging.warning(f"SettingsManager - Using defaults, could not read {self.settings_path}: {e}")
            return ApplicationSettings()

    def save(self, settings: Optional[ApplicationSettings] = None) -> bool:
        """Save settings to disk."""
        settings = settings or self._settings
        if settings is None:
            return False

        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)

            data = self._to_dict(settings)

            with open(self.settings_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)

            self._settings = settings
            self._notify_observers()
            return True

        except OSError as e:
            logging.error(f"SettingsManager - Failed to save settings: {e}")
            return False

    def reset(self) -> ApplicationSettings:
        """Reset to default settings."""
        self._settings = ApplicationSettings()
        self.save()
        return self._settings

    def add_observer(self, callback: Callable[[ApplicationSettings], None]) -> None:
        """Add a callback to be notified of settings changes."""
        self._observers.append(callback)

    def remove_observer(self, callback: Callable[[ApplicationSettings], None]) -> None:
        """Remove a settings change observer."""
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify_observers(self) -> None:
        """Notify all observers of settings change."""
        for callback in self._observers:
            try:
                callback(self._settings)
            except Exception as e:
                logging.error(f"SettingsManager - Observer failed: {e}")

    def add_recent_comparison(self, path: str, limit: int = 10) -> None:
        """Add a comparison file to the recent list."""
        recent = self.settings.recent_comparisons

        # Remove if already exists
        if path in recent:
            recent.remove(path)

        # Add to front
        recent.insert(0, path)
        self.settings.recent_comparisons = recent[:limit]

        self.save()

    def _to_dict(self, settings: ApplicationSettings) -> dict:
        """Convert settings to dictionary for JSON serialization."""
        def convert(obj: Any) -> Any:
            if isinstance(obj, Enum):
                return obj.name
            elif hasattr(obj, '__dataclass_fields__'):
                return {k: convert(getattr(obj, k)) for k in asdict(obj)}
            elif isinstance(obj, list):
                return [convert(item) for item in obj]
            elif isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            else:
                return obj

        return convert(settings)

    def _from_dict(self, data: dict) -> ApplicationSettings:
        """Convert dictionary back to settings objects."""
        def get_enum(enum_class: type, value: Any) -> Enum:
            if isinstance(value, str):
                try:
                    return enum_class[value.upper()]
                except KeyError:
                    return None
            return None

        def section(name: str) -> dict:
            value = data.get(name, {})
            return value if isinstance(value, dict) else {}

        def build(cls: type, values: dict) -> Any:
            """Dataclass from known keys only; unknown keys are ignored."""
            known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
            return cls(**known)

        slot_a = build(ProviderSlot, section('slot_a'))
        slot_b = build(ProviderSlot, {**asdict(_default_slot_b()), **section('slot_b')})

        display_data = dict(section('display'))
        display_data['brightness'] = get_enum(
            AnnotationBrightness, display_data.get('brightness')) or DisplaySettings().brightness
        display_data['line_highlight'] = get_enum(
            LineHighlightIntensity, display_data.get('line_highlight')) or DisplaySettings().line_highlight
        display = build(DisplaySettings, display_data)

        return ApplicationSettings(
            slot_a=slot_a,
            slot_b=slot_b,
            display=display,
            export=build(ExportSettings, section('export')),
            colors=build(ColorSettings, section('colors')),
            recent_comparisons=list(data.get('recent_comparisons', [])),
            last_directory=data.get('last_directory', ''),
        )
