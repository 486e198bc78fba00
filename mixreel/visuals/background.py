"""
Fondo "IA" procedural.
Genera un fondo CSS en capas, determinista por artista y género, y
opcionalmente una línea de ambiente pedida al servicio de texto.
"""
import hashlib
import logging
import random
from typing import List, Optional

from ..domain.errors import CompletionError
from ..domain.models import Artist
from ..llm.completion import TextCompletionService
from .layout import Visuals

logger = logging.getLogger(__name__)

GENRE_COLORS = {
    "electronic": ["#00f5ff", "#7b2ff7", "#1a1a6e"],
    "techno": ["#8e9eab", "#3a3a3a", "#c0c0c0"],
    "house": ["#ff9a44", "#fc6076", "#ffd86f"],
    "trance": ["#a18cd1", "#fbc2eb", "#5ee7df"],
    "ambient": ["#cfd9df", "#e2ebf0", "#89f7fe"],
    "dubstep": ["#f7ff00", "#db36a4", "#000000"],
    "experimental": ["#43e97b", "#fa709a", "#30cfd0"],
}

GENRE_ELEMENTS = {
    "electronic": "synthesizer waves, digital frequencies, circuit patterns",
    "techno": "industrial textures, metallic surfaces, mechanical elements",
    "house": "warm gradients, smooth transitions, flowing energy",
    "trance": "ethereal lights, cosmic elements, transcendent atmosphere",
    "ambient": "soft clouds, atmospheric mist, dreamy landscapes",
    "dubstep": "sharp edges, electric sparks, high-contrast patterns",
    "experimental": "unusual textures, avant-garde forms, unexpected combinations",
}

MOOD_PROMPT = (
    "Describe in one short sentence (max 15 words, no quotes) the visual mood "
    "of a music video background for DJ {artist}, a {genre} artist, featuring {elements}."
)


def _seeded_rng(artist: Artist) -> random.Random:
    digest = hashlib.sha256(f"{artist.name}|{artist.genre}".encode()).hexdigest()
    return random.Random(int(digest[:16], 16))


def procedural_background(artist: Artist, base_color: str) -> str:
    """Tres capas de gradiente con posiciones y colores fijos por artista."""
    rng = _seeded_rng(artist)
    colors: List[str] = GENRE_COLORS.get(artist.genre.lower(), GENRE_COLORS["electronic"])
    first, second = rng.sample(colors, 2)
    x1, y1 = rng.randint(10, 45), rng.randint(10, 90)
    x2, y2 = rng.randint(55, 90), rng.randint(10, 90)
    angle = rng.choice([45, 90, 135, 160])

    return (
        f"radial-gradient(circle at {x1}% {y1}%, {first}aa 0%, transparent 55%), "
        f"radial-gradient(circle at {x2}% {y2}%, {second}88 0%, transparent 50%), "
        f"linear-gradient({angle}deg, {base_color} 0%, #000 100%)"
    )


class BackgroundEnricher:
    """Enriquece las decisiones visuales con un fondo procedural."""

    def __init__(self, completion: Optional[TextCompletionService] = None):
        self.completion = completion

    def enrich(self, artist: Artist, visuals: Visuals) -> Visuals:
        background = procedural_background(artist, visuals.background_color)
        mood = self._describe_mood(artist) if self.completion is not None else None
        logger.info(f"🎨 Fondo procedural generado para {artist.name}")
        return visuals.model_copy(update={"background_css": background, "mood": mood})

    def _describe_mood(self, artist: Artist) -> Optional[str]:
        genre = artist.genre.lower()
        prompt = MOOD_PROMPT.format(
            artist=artist.name,
            genre=genre,
            elements=GENRE_ELEMENTS.get(genre, GENRE_ELEMENTS["electronic"]),
        )
        try:
            text = self.completion.complete(prompt, temperature=0.8, max_tokens=60)
        except CompletionError as e:
            # La descripción es opcional; el fondo ya está generado
            logger.warning(f"Sin descripción de ambiente: {e}")
            return None
        lines = text.strip().strip('"').splitlines()
        return lines[0][:200] if lines else None
