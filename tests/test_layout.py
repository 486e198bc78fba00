from __future__ import annotations

import random
from pathlib import Path

from mixreel.domain.errors import CompletionError
from mixreel.domain.models import Artist, FadeIn, Pulse, VisualStyle, WaveformOverlay
from mixreel.visuals.background import BackgroundEnricher, procedural_background
from mixreel.visuals.layout import PALETTE, LayoutBuilder, Visuals


def _builder() -> LayoutBuilder:
    return LayoutBuilder(width=640, height=360, rng=random.Random(0))


def test_build_escapes_names_and_sets_viewport() -> None:
    visuals = Visuals(background_color="#667eea", style=VisualStyle.CLASSIC)

    layout = _builder().build("<b>DJ & Co</b>", "Live @ \"Club\"", visuals)

    assert "&lt;b&gt;DJ &amp; Co&lt;/b&gt;" in layout.html
    assert "<b>DJ" not in layout.html
    assert "width: 640px;" in layout.html
    assert "height: 360px;" in layout.html
    assert 'class="waveform"' not in layout.html
    assert (layout.width, layout.height) == (640, 360)


def test_layout_has_no_css_animations() -> None:
    visuals = Visuals(background_color="#4facfe", style=VisualStyle.ENHANCED)
    layout = _builder().build("Artist", "Mix", visuals, waveform=[0.5] * 10)
    assert "@keyframes" not in layout.html
    assert "animation:" not in layout.html


def test_classic_directives_fade_in_texts() -> None:
    visuals = Visuals(background_color="#667eea", style=VisualStyle.CLASSIC)
    directives = _builder().build("A", "B", visuals, waveform=[0.3, 0.4]).directives

    assert [type(d) for d in directives] == [FadeIn, FadeIn]
    assert directives[1].delay_seconds == 0.5


def test_enhanced_adds_pulse_and_waveform() -> None:
    visuals = Visuals(background_color="#667eea", style=VisualStyle.ENHANCED)
    layout = _builder().build("A", "B", visuals, waveform=[0.3, 0.4])

    kinds = [type(d) for d in layout.directives]
    assert Pulse in kinds
    assert WaveformOverlay in kinds
    assert layout.directives[-1].amplitudes == [0.3, 0.4]
    assert 'class="waveform"' in layout.html


def test_background_css_overrides_style_gradient() -> None:
    visuals = Visuals(background_color="#667eea", style=VisualStyle.MODERN, background_css="black")
    layout = _builder().build("A", "B", visuals)
    assert "background: black;" in layout.html


def test_generate_visuals_picks_from_palette() -> None:
    visuals = _builder().generate_visuals(Artist(name="X"), VisualStyle.MINIMAL)
    assert visuals.background_color in PALETTE
    assert visuals.style == VisualStyle.MINIMAL


def test_write_saves_html(tmp_path: Path) -> None:
    builder = _builder()
    layout = builder.build("A", "B", Visuals(background_color="#667eea", style=VisualStyle.CLASSIC))
    path = builder.write(layout, tmp_path / "job")
    assert path.read_text(encoding="utf-8") == layout.html


def test_procedural_background_is_deterministic_per_artist() -> None:
    artist = Artist(name="NEBULA DRIFT", genre="trance")
    first = procedural_background(artist, "#667eea")

    assert first == procedural_background(artist, "#667eea")
    assert first != procedural_background(Artist(name="Other", genre="trance"), "#667eea")
    assert first.count("gradient(") == 3


class StubCompletion:
    def __init__(self, reply: str = "", error: bool = False) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    def complete(self, prompt: str, **options) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise CompletionError("sin servicio")
        return self.reply


def test_enrich_sets_background_and_mood() -> None:
    completion = StubCompletion('"Neon haze drifting over a midnight skyline"\nextra')
    visuals = Visuals(background_color="#667eea", style=VisualStyle.ENHANCED)

    enriched = BackgroundEnricher(completion).enrich(Artist(name="NEBULA DRIFT", genre="trance"), visuals)

    assert enriched.background_css.startswith("radial-gradient")
    assert enriched.mood == "Neon haze drifting over a midnight skyline"
    assert "trance" in completion.prompts[0]
    assert visuals.background_css is None


def test_enrich_survives_completion_failure() -> None:
    visuals = Visuals(background_color="#667eea", style=VisualStyle.CLASSIC)

    enriched = BackgroundEnricher(StubCompletion(error=True)).enrich(Artist(name="X"), visuals)

    assert enriched.background_css is not None
    assert enriched.mood is None


def test_enrich_without_completion_service() -> None:
    visuals = Visuals(background_color="#667eea", style=VisualStyle.CLASSIC)
    assert BackgroundEnricher().enrich(Artist(name="X"), visuals).mood is None
