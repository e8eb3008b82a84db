"""Shared fixtures for llmbench tests."""

import os

# Qt must pick the platform before the first QApplication is created
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

from llmbench.core.models import Comparison, PanelOutput, Provenance


@pytest.fixture(scope="session")
def qapp():
    """One QApplication for every Qt-dependent test."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def provenance_a():
    return Provenance(
        provider="anthropic",
        model="claude-sonnet-4-20250514",
        model_display_name="Claude Sonnet 4",
        temperature=0.7,
        response_time_ms=1234,
        generated_at="2025-03-01T12:00:00.000Z",
    )


@pytest.fixture
def provenance_b():
    return Provenance(
        provider="openai",
        model="gpt-4o",
        model_display_name="GPT-4o",
        temperature=1.0,
        response_time_ms=2500,
        generated_at="2025-03-01T12:00:01.000Z",
    )


@pytest.fixture
def comparison(provenance_a, provenance_b):
    """Saved comparison with text in both panels and no annotations."""
    return Comparison(
        id="cmp-1",
        name="Cats and dogs",
        prompt="Write one sentence about a pet.",
        output_a=PanelOutput.success("the cat sat\non the mat", provenance_a),
        output_b=PanelOutput.success("the dog sat\non the mat", provenance_b),
        created_at="2025-03-01T12:00:00.000Z",
        updated_at="2025-03-01T12:00:00.000Z",
    )
