"""
Request Parser
Valida pedidos (dict o JSON) y los convierte en MediaRequest. Incluye el
adaptador de lenguaje natural, que vive fuera del pipeline principal.
"""
import json
import logging
import re
from typing import Any, Dict, Optional, Union

import pydantic

from ..domain.errors import CompletionError, ValidationError
from ..domain.models import MediaRequest, VisualStyle
from ..llm.completion import TextCompletionService

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """Convert this request for a short DJ-mix video into JSON.
Keys: artist_selector (artist name or "random"), target_duration_seconds (number),
visual_style (classic|modern|minimal|enhanced), fade_in_seconds, fade_out_seconds,
quality_tier (low|medium|high|ultra), urgency (low|medium|high).
Reply with JSON only.

Request: {text}"""

DURATION_PATTERNS = [
    (re.compile(r"(\d+)\s*sec(?:ond)?s?\b", re.I), 1),
    (re.compile(r"(\d+)\s*min(?:ute)?s?\b", re.I), 60),
    (re.compile(r"(\d+)\s*hours?\b", re.I), 3600),
]

ARTIST_PATTERN = re.compile(r"(?:video for|audio for|mix (?:by|from)|for)\s+([^.,]+)", re.I)


def strip_fences(text: str) -> str:
    """Quita los bloques ```json ... ``` que suelen envolver la respuesta."""
    match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
    if match:
        return match.group(1).strip()
    return text.strip()


def extract_duration(text: str, default: float = 30.0) -> float:
    for pattern, factor in DURATION_PATTERNS:
        match = pattern.search(text)
        if match:
            return float(match.group(1)) * factor
    return default


def extract_artist(text: str) -> Optional[str]:
    match = ARTIST_PATTERN.search(text)
    if match:
        name = match.group(1).strip()
        # "for 30 seconds" no es un artista
        if name and not name[0].isdigit():
            return name
    return None


def extract_style(text: str) -> VisualStyle:
    lowered = text.lower()
    for style in VisualStyle:
        if style.value in lowered:
            return style
    return VisualStyle.CLASSIC


class RequestParser:
    """Validador y parseador de pedidos de video."""

    def parse(self, raw_input: Union[str, Dict[str, Any]]) -> MediaRequest:
        """
        Convierte un JSON (string o dict) en un MediaRequest validado.

        Raises:
            ValidationError: JSON inválido o campos fuera de rango
        """
        if isinstance(raw_input, str):
            try:
                data = json.loads(strip_fences(raw_input))
            except json.JSONDecodeError as e:
                logger.error(f"Error decodificando el pedido: {e}")
                raise ValidationError("El pedido no es un JSON válido", str(e)) from e
        else:
            data = raw_input

        if not isinstance(data, dict):
            raise ValidationError("El pedido debe ser un objeto JSON")

        try:
            return MediaRequest(**data)
        except pydantic.ValidationError as e:
            raise ValidationError("Pedido inválido", str(e)) from e

    def from_prompt(
        self,
        text: str,
        completion: Optional[TextCompletionService] = None
    ) -> MediaRequest:
        """
        Interpreta un pedido en lenguaje natural.

        Con servicio de texto se le pide el JSON; si no hay servicio o la
        respuesta no sirve, se extraen duración, artista y estilo del texto y
        el resto queda con los valores por defecto.
        """
        if completion is not None:
            try:
                reply = completion.complete(PROMPT_TEMPLATE.format(text=text), temperature=0.2)
                return self.parse(reply)
            except (CompletionError, ValidationError) as e:
                logger.warning(f"No se pudo interpretar con el servicio de texto ({e}); usando valores por defecto")

        return self.parse({
            "artist_selector": extract_artist(text) or "random",
            "target_duration_seconds": extract_duration(text),
            "visual_style": extract_style(text).value,
        })
