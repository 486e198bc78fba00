"""
Generador de Layouts
Arma el documento HTML/CSS de cada estilo visual y las directivas de
animación que lo acompañan.
"""
import html
import logging
import random
import uuid
from pathlib import Path
from string import Template
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from ..domain.models import (
    AnimationDirective,
    Artist,
    FadeIn,
    Pulse,
    VisualStyle,
    WaveformOverlay,
)

logger = logging.getLogger(__name__)

PALETTE = ["#667eea", "#764ba2", "#f093fb", "#f5576c", "#4facfe"]

STYLE_CSS = {
    VisualStyle.CLASSIC: "",
    VisualStyle.MODERN: """
        .artist-name {
            background: linear-gradient(45deg, #fff, #ccc);
            -webkit-background-clip: text;
            -webkit-text-fill-color: transparent;
            background-clip: text;
        }
    """,
    VisualStyle.MINIMAL: """
        body { background-attachment: fixed; }
        .artist-name, .mix-title { color: #333; text-shadow: none; }
    """,
    VisualStyle.ENHANCED: """
        body::before {
            content: '';
            position: absolute;
            top: 0; left: 0; right: 0; bottom: 0;
            background: radial-gradient(circle, rgba(255,255,255,0.1) 4px, transparent 5px) 0 0 / 60px 60px repeat;
            pointer-events: none;
        }
    """,
}

# Sin animaciones CSS: cada frame lo determinan solo las directivas
PAGE_TEMPLATE = Template("""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<style>
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body {
        width: ${width}px;
        height: ${height}px;
        background: ${background};
        display: flex;
        flex-direction: column;
        justify-content: center;
        align-items: center;
        font-family: 'Arial', sans-serif;
        color: white;
        overflow: hidden;
        position: relative;
    }
    .artist-name {
        font-size: 64px;
        font-weight: bold;
        margin-bottom: 30px;
        text-shadow: 2px 2px 8px rgba(0,0,0,0.7);
    }
    .mix-title {
        font-size: 42px;
        margin-bottom: 50px;
        opacity: 0.9;
        text-align: center;
    }
    .logo {
        position: absolute;
        bottom: 60px;
        right: 60px;
        font-size: 28px;
        opacity: 0.8;
    }
    .waveform {
        position: absolute;
        bottom: 200px;
        left: 50%;
        margin-left: -200px;
        display: flex;
        align-items: flex-end;
        gap: 2px;
        height: 100px;
        width: 400px;
    }
    .waveform-bar {
        background: linear-gradient(to top, ${color}, rgba(255,255,255,0.8));
        width: 4px;
        min-height: 2px;
        border-radius: 2px;
    }
    .pulse-bg {
        position: absolute;
        top: 0; left: 0;
        width: 100%; height: 100%;
        background: radial-gradient(circle at center, rgba(255,255,255,0.1) 0%, transparent 70%);
        pointer-events: none;
    }
    ${style_css}
</style>
</head>
<body>
    <div class="pulse-bg"></div>
    <div class="artist-name">${artist_name}</div>
    <div class="mix-title">${title}</div>
    ${waveform_div}
    <div class="logo">${brand}</div>
</body>
</html>
""")


class Visuals(BaseModel):
    """Decisiones visuales de un job (color base y fondo opcional)."""
    background_color: str
    style: VisualStyle
    background_css: Optional[str] = None
    mood: Optional[str] = None


class Layout(BaseModel):
    html: str
    directives: List[AnimationDirective] = Field(default_factory=list)
    width: int
    height: int


def background_for(color: str, style: VisualStyle) -> str:
    """Gradiente de fondo según el estilo."""
    if style == VisualStyle.MODERN:
        return f"linear-gradient(135deg, {color} 0%, #000 100%)"
    if style == VisualStyle.MINIMAL:
        return f"linear-gradient(to bottom, {color}22 0%, {color}11 100%)"
    if style == VisualStyle.ENHANCED:
        return f"radial-gradient(circle at 30% 70%, {color} 0%, #000 50%, {color}44 100%)"
    return f"linear-gradient(45deg, {color} 0%, #000 100%)"


def directives_for(style: VisualStyle, waveform: Optional[Sequence[float]] = None) -> List[AnimationDirective]:
    directives: List[AnimationDirective] = [
        FadeIn(target_selector=".artist-name", duration_seconds=2.0),
        FadeIn(target_selector=".mix-title", duration_seconds=2.0, delay_seconds=0.5),
    ]
    if style == VisualStyle.ENHANCED:
        directives.append(Pulse(target_selector=".pulse-bg", speed=0.5, amplitude=0.1))
        if waveform:
            directives.append(WaveformOverlay(amplitudes=list(waveform)))
    return directives


class LayoutBuilder:
    """Construye el HTML y las directivas para un artista y un mix."""

    def __init__(
        self,
        width: int = 1080,
        height: int = 1080,
        brand: str = "Mixreel",
        rng: Optional[random.Random] = None
    ):
        self.width = width
        self.height = height
        self.brand = brand
        self.rng = rng or random.Random()

    def generate_visuals(self, artist: Artist, style: VisualStyle) -> Visuals:
        color = self.rng.choice(PALETTE)
        logger.debug(f"Color base para {artist.name}: {color}")
        return Visuals(background_color=color, style=style)

    def build(
        self,
        artist_name: str,
        title: str,
        visuals: Visuals,
        waveform: Optional[Sequence[float]] = None
    ) -> Layout:
        """
        Genera el layout completo.

        Args:
            artist_name: Nombre a mostrar
            title: Título del mix
            visuals: Color, estilo y fondo opcional
            waveform: Amplitudes para el estilo enhanced

        Returns:
            Layout con HTML y directivas
        """
        style = visuals.style
        background = visuals.background_css or background_for(visuals.background_color, style)
        show_waveform = style == VisualStyle.ENHANCED

        page = PAGE_TEMPLATE.substitute(
            width=self.width,
            height=self.height,
            background=background,
            color=visuals.background_color,
            style_css=STYLE_CSS[style],
            artist_name=html.escape(artist_name),
            title=html.escape(title),
            waveform_div='<div class="waveform"></div>' if show_waveform else "",
            brand=html.escape(self.brand),
        )
        return Layout(
            html=page,
            directives=directives_for(style, waveform if show_waveform else None),
            width=self.width,
            height=self.height,
        )

    def write(self, layout: Layout, work_dir: Path) -> Path:
        """Guarda el HTML en el directorio del job (útil para depurar)."""
        work_dir.mkdir(parents=True, exist_ok=True)
        path = work_dir / f"layout_{uuid.uuid4().hex[:8]}.html"
        path.write_text(layout.html, encoding="utf-8")
        return path
