"""
Catálogo de Artistas
Lee data/artists.json y resuelve el artista y el mix de cada pedido.
"""
import json
import logging
import random
import re
from pathlib import Path
from typing import List, Optional, Tuple

from .domain.errors import ValidationError
from .domain.models import Artist, ArtistMix

logger = logging.getLogger(__name__)

DEFAULT_MIX_SECONDS = 3600.0


def parse_duration_label(label: Optional[str]) -> float:
    """
    Convierte la duración declarada de un mix a segundos.

    Acepta "72 Min", "60:00", "1:02:03" y números sueltos (minutos).
    Si no se reconoce devuelve una hora.
    """
    if not isinstance(label, str) or not label.strip():
        return DEFAULT_MIX_SECONDS

    text = label.lower().strip()
    if "min" in text:
        digits = re.sub(r"[^\d]", "", text)
        return int(digits) * 60.0 if digits else DEFAULT_MIX_SECONDS

    if ":" in text:
        parts = text.split(":")
        if all(p.strip().isdigit() for p in parts) and len(parts) in (2, 3):
            values = [int(p) for p in parts]
            if len(values) == 2:
                return values[0] * 60.0 + values[1]
            return values[0] * 3600.0 + values[1] * 60.0 + values[2]

    digits = re.sub(r"[^\d]", "", text)
    if digits and int(digits) > 0:
        return int(digits) * 60.0
    return DEFAULT_MIX_SECONDS


def _artist_from_record(record: dict) -> Artist:
    mixes = [
        ArtistMix(
            title=mix.get("mixTitle") or "Untitled Mix",
            source_url=mix.get("mixArweaveURL") or "",
            duration_label=mix.get("mixDuration") or "",
            year=str(mix["mixDateYear"]) if mix.get("mixDateYear") else None,
        )
        for mix in record.get("mixes", []) or []
    ]
    return Artist(
        name=record.get("artistName") or "Unknown Artist",
        genre=record.get("artistGenre") or "electronic",
        mixes=mixes,
    )


class ArtistCatalog:
    """Base de artistas y mixes disponibles."""

    def __init__(self, path: Path, rng: Optional[random.Random] = None):
        self.path = Path(path)
        self.rng = rng or random.Random()
        self._artists: Optional[List[Artist]] = None

    @property
    def artists(self) -> List[Artist]:
        if self._artists is None:
            self._artists = self._load()
        return self._artists

    def _load(self) -> List[Artist]:
        if not self.path.exists():
            logger.warning(f"Catálogo no encontrado: {self.path}. Se usa uno vacío")
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Catálogo con JSON inválido: {self.path}", str(e)) from e
        if not isinstance(records, list):
            raise ValidationError(f"El catálogo debe ser una lista de artistas: {self.path}")

        artists = [_artist_from_record(record) for record in records]
        logger.info(f"📚 {len(artists)} artistas cargados desde {self.path}")
        return artists

    def random(self) -> Artist:
        if not self.artists:
            raise ValidationError("No hay artistas en el catálogo", str(self.path))
        return self.rng.choice(self.artists)

    def get(self, name: str) -> Artist:
        """
        Busca un artista por nombre (sin distinguir mayúsculas, coincidencia
        parcial en ambos sentidos). Si no aparece, elige uno al azar.
        """
        if not self.artists:
            raise ValidationError("No hay artistas en el catálogo", str(self.path))

        wanted = name.lower().strip()
        for artist in self.artists:
            current = artist.name.lower()
            if wanted and (wanted in current or current in wanted):
                logger.info(f"Artista encontrado: {artist.name}")
                return artist

        logger.warning(f"Artista '{name}' no encontrado, se elige uno al azar")
        return self.random()

    def pick_mix(self, artist: Artist, min_duration_seconds: float = 0.0) -> ArtistMix:
        """
        Elige un mix con URL válida. Se prefieren los que alcanzan la duración
        pedida; si ninguno llega se usa cualquiera (el clip se acorta al mix).
        """
        valid = [mix for mix in artist.mixes if mix.source_url.startswith(("http://", "https://"))]
        if not valid:
            raise ValidationError(f"{artist.name} no tiene mixes con URL válida")

        long_enough = [
            mix for mix in valid
            if parse_duration_label(mix.duration_label) >= min_duration_seconds
        ]
        if not long_enough:
            logger.warning(
                f"⚠️ Ningún mix de {artist.name} llega a {min_duration_seconds:.0f}s; se usa uno más corto"
            )
            long_enough = valid
        return self.rng.choice(long_enough)

    def select(self, selector: str, min_duration_seconds: float = 0.0) -> Tuple[Artist, ArtistMix]:
        """Resuelve 'random' o un nombre a (artista, mix)."""
        if not selector or selector.lower() == "random":
            artist = self.random()
        else:
            artist = self.get(selector)
        mix = self.pick_mix(artist, min_duration_seconds)
        logger.info(f"🎧 Mix seleccionado: {mix.title} ({artist.name})")
        return artist, mix
