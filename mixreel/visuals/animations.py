"""
Evaluación de directivas de animación.
Funciones puras: dado un instante t, devuelven los estilos a aplicar. El
navegador solo recibe el resultado, nunca calcula tiempos por su cuenta.
"""
import math
from typing import Dict, List, Sequence

from ..domain.models import (
    AnimationDirective,
    FadeIn,
    Pulse,
    Rotate,
    SlideIn,
    WaveformOverlay,
)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def waveform_bars(amplitudes: Sequence[float], progress: float) -> List[Dict[str, float]]:
    """
    Altura (%) y opacidad de cada barra según el progreso del video.

    La barra i se revela cuando progress * n supera i.
    """
    n = len(amplitudes)
    bars = []
    for index, amplitude in enumerate(amplitudes):
        reveal = _clamp(progress * n - index)
        bars.append({
            "height": round(amplitude * 100 * reveal, 4),
            "opacity": round(reveal, 4),
        })
    return bars


def evaluate_directive(directive: AnimationDirective, t: float, total: float) -> Dict:
    """
    Calcula el estado de una directiva en el instante t.

    Args:
        directive: Directiva a evaluar
        t: Segundo actual del video
        total: Duración total del video

    Returns:
        {"selector": str, "style": {prop: valor}} y, para la forma de onda,
        además "bars": [{"height", "opacity"}]
    """
    if isinstance(directive, FadeIn):
        opacity = _clamp((t - directive.delay_seconds) / directive.duration_seconds)
        return {"selector": directive.target_selector, "style": {"opacity": f"{opacity:.4f}"}}

    if isinstance(directive, SlideIn):
        progress = _clamp(t / directive.duration_seconds)
        offset = (1 - progress) * directive.distance_px
        return {
            "selector": directive.target_selector,
            "style": {"transform": f"translateX({offset:.2f}px)"},
        }

    if isinstance(directive, Pulse):
        scale = 1 + math.sin(t * directive.speed) * directive.amplitude
        return {"selector": directive.target_selector, "style": {"transform": f"scale({scale:.4f})"}}

    if isinstance(directive, Rotate):
        degrees = (t * directive.degrees_per_second) % 360
        return {"selector": directive.target_selector, "style": {"transform": f"rotate({degrees:.2f}deg)"}}

    if isinstance(directive, WaveformOverlay):
        progress = _clamp(t / total) if total > 0 else 1.0
        return {
            "selector": directive.target_selector,
            "style": {},
            "bars": waveform_bars(directive.amplitudes, progress),
        }

    raise TypeError(f"Directiva desconocida: {type(directive).__name__}")


def frame_updates(directives: Sequence[AnimationDirective], t: float, total: float) -> List[Dict]:
    """Estados de todas las directivas para un frame, en orden."""
    return [evaluate_directive(directive, t, total) for directive in directives]
