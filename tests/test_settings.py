import json

from llmbench.core.export.layout import PageSize
from llmbench.core.models import PanelId
from llmbench.services.settings import (
    AnnotationBrightness,
    ApplicationSettings,
    LineHighlightIntensity,
    ProviderSlot,
    SettingsManager,
)


def test_defaults():
    settings = ApplicationSettings()
    assert settings.slot_a.provider == "anthropic"
    assert settings.slot_a.model == "claude-sonnet-4-20250514"
    assert settings.slot(PanelId.B).provider == "openai"
    assert settings.slot("b").model == "gpt-4o"
    assert settings.slot_a.temperature == 1.0
    assert settings.export.page_size == "A4"


def test_enum_values():
    assert AnnotationBrightness.MEDIUM.opacity == 0.45
    assert LineHighlightIntensity.OFF.alpha == 0
    assert LineHighlightIntensity.FULL.alpha == 26


def test_missing_file_gives_defaults(tmp_path):
    manager = SettingsManager(tmp_path / "settings.json")
    assert manager.settings == ApplicationSettings()


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "config" / "settings.json"
    manager = SettingsManager(path)
    settings = manager.settings
    settings.slot_b = ProviderSlot(provider="ollama", model="mistral", temperature=0.3)
    settings.display.dark_mode = True
    settings.display.brightness = AnnotationBrightness.LOW
    settings.export.page_size = "Letter"

    assert manager.save()

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["display"]["brightness"] == "LOW"

    reloaded = SettingsManager(path).settings
    assert reloaded.slot_b.provider == "ollama"
    assert reloaded.slot_b.temperature == 0.3
    assert reloaded.display.dark_mode
    assert reloaded.display.brightness is AnnotationBrightness.LOW
    assert reloaded.export.page_size == "Letter"


def test_unknown_keys_and_bad_enums_fall_back(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({
        "slot_a": {"provider": "google", "retired_option": 1},
        "display": {"brightness": "BLINDING", "line_highlight": "high"},
        "plugins": {"x": 1},
    }), encoding="utf-8")

    settings = SettingsManager(path).settings

    assert settings.slot_a.provider == "google"
    assert settings.slot_b.provider == "openai"
    assert settings.display.brightness is AnnotationBrightness.HIGH
    assert settings.display.line_highlight is LineHighlightIntensity.HIGH


def test_unreadable_file_gives_defaults(tmp_path, caplog):
    path = tmp_path / "settings.json"
    path.write_text("[1, 2", encoding="utf-8")

    assert SettingsManager(path).settings == ApplicationSettings()
    assert "Using defaults" in caplog.text


def test_observers_notified_on_save(tmp_path):
    manager = SettingsManager(tmp_path / "settings.json")
    seen = []
    manager.add_observer(seen.append)

    manager.save(manager.settings)
    manager.reset()

    assert len(seen) == 2
    assert seen[-1] == ApplicationSettings()


def test_recent_comparisons_are_unique_and_bounded(tmp_path):
    manager = SettingsManager(tmp_path / "settings.json")
    for n in range(5):
        manager.add_recent_comparison(f"/tmp/{n}.json", limit=3)
    manager.add_recent_comparison("/tmp/3.json", limit=3)

    assert manager.settings.recent_comparisons == ["/tmp/3.json", "/tmp/4.json", "/tmp/2.json"]


def test_api_key_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    assert ProviderSlot(provider="openai").resolved_api_key() == "sk-from-env"
    assert ProviderSlot(provider="openai", api_key="sk-stored").resolved_api_key() == "sk-stored"
    assert ProviderSlot(provider="ollama").resolved_api_key() == ""


def test_effective_model_prefers_custom_id():
    slot = ProviderSlot(provider="openai-compatible", model="custom", custom_model_id="mixtral-8x7b")
    assert slot.effective_model == "mixtral-8x7b"


def test_export_settings_build_layout_inputs():
    export = ApplicationSettings().export
    export.page_size = "letter"
    export.margin = 20.0
    export.body_font_size = 10.0

    geometry = export.geometry()
    styles = export.styles()

    assert geometry.page_size is PageSize.LETTER
    assert geometry.margin == 20.0
    assert styles.body.size == 10.0
    assert styles.body_line_height == 5.0
    assert styles.title.bold
