from __future__ import annotations

import pytest

from mixreel.domain.models import FadeIn, Pulse, Rotate, SlideIn, WaveformOverlay
from mixreel.visuals.animations import evaluate_directive, frame_updates, waveform_bars


def test_fade_in_respects_delay_and_duration() -> None:
    directive = FadeIn(target_selector=".mix-title", duration_seconds=2.0, delay_seconds=0.5)

    assert evaluate_directive(directive, 0.0, 30.0)["style"]["opacity"] == "0.0000"
    assert evaluate_directive(directive, 1.5, 30.0)["style"]["opacity"] == "0.5000"
    assert evaluate_directive(directive, 10.0, 30.0)["style"]["opacity"] == "1.0000"


def test_slide_in_reaches_rest_position() -> None:
    directive = SlideIn(target_selector=".artist-name", duration_seconds=1.0, distance_px=100)

    assert evaluate_directive(directive, 0.0, 30.0)["style"]["transform"] == "translateX(100.00px)"
    assert evaluate_directive(directive, 0.5, 30.0)["style"]["transform"] == "translateX(50.00px)"
    assert evaluate_directive(directive, 3.0, 30.0)["style"]["transform"] == "translateX(0.00px)"


def test_pulse_and_rotate() -> None:
    pulse = evaluate_directive(Pulse(target_selector=".pulse-bg"), 0.0, 30.0)
    assert pulse["style"]["transform"] == "scale(1.0000)"

    rotate = Rotate(target_selector=".disc", degrees_per_second=90)
    assert evaluate_directive(rotate, 5.0, 30.0)["style"]["transform"] == "rotate(90.00deg)"


def test_same_instant_gives_same_state() -> None:
    directives = [
        FadeIn(target_selector=".artist-name"),
        Pulse(target_selector=".pulse-bg", speed=0.5),
        WaveformOverlay(amplitudes=[0.2, 0.8, 0.5]),
    ]
    assert frame_updates(directives, 12.34, 30.0) == frame_updates(directives, 12.34, 30.0)


def test_waveform_bars_reveal_with_progress() -> None:
    amplitudes = [1.0, 0.5, 0.25, 0.1]

    assert all(bar["opacity"] == 0 for bar in waveform_bars(amplitudes, 0.0))

    half = waveform_bars(amplitudes, 0.5)
    assert [bar["opacity"] for bar in half] == [1.0, 1.0, 0.0, 0.0]
    assert half[1]["height"] == pytest.approx(50.0)

    done = waveform_bars(amplitudes, 1.0)
    assert [bar["height"] for bar in done] == pytest.approx([100.0, 50.0, 25.0, 10.0])


def test_waveform_directive_carries_bars() -> None:
    update = evaluate_directive(WaveformOverlay(amplitudes=[0.3, 0.6]), 15.0, 30.0)

    assert update["selector"] == ".waveform"
    assert update["style"] == {}
    assert len(update["bars"]) == 2
    assert update["bars"][0]["opacity"] == 1.0
