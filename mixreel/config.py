"""
Configuración del pipeline.
Combina config/config.yaml (opcional) con variables de entorno (.env).
Las variables de entorno tienen prioridad sobre el YAML.
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .domain.models import QualityTier

load_dotenv()
logger = logging.getLogger(__name__)


class AudioQuality(BaseModel):
    """Bitrate y frecuencia de muestreo del clip de audio."""
    bitrate: str
    sample_rate: int


class VideoQuality(BaseModel):
    """Parámetros del encoder para un tier de calidad."""
    video_bitrate: str
    audio_bitrate: str
    preset: str
    crf: int


def default_audio_quality() -> Dict[QualityTier, AudioQuality]:
    return {
        QualityTier.LOW: AudioQuality(bitrate="96k", sample_rate=22050),
        QualityTier.MEDIUM: AudioQuality(bitrate="128k", sample_rate=44100),
        QualityTier.HIGH: AudioQuality(bitrate="192k", sample_rate=44100),
        QualityTier.ULTRA: AudioQuality(bitrate="320k", sample_rate=48000),
    }


def default_video_quality() -> Dict[QualityTier, VideoQuality]:
    return {
        QualityTier.LOW: VideoQuality(video_bitrate="1000k", audio_bitrate="128k", preset="fast", crf=28),
        QualityTier.MEDIUM: VideoQuality(video_bitrate="1500k", audio_bitrate="128k", preset="medium", crf=23),
        QualityTier.HIGH: VideoQuality(video_bitrate="2500k", audio_bitrate="192k", preset="slow", crf=20),
        QualityTier.ULTRA: VideoQuality(video_bitrate="4000k", audio_bitrate="320k", preset="slower", crf=18),
    }


def bitrate_to_int(bitrate: str) -> int:
    """'2500k' -> 2500000"""
    value = bitrate.strip().lower()
    if value.endswith("k"):
        return int(float(value[:-1]) * 1000)
    if value.endswith("m"):
        return int(float(value[:-1]) * 1_000_000)
    return int(value)


class Settings(BaseModel):
    """Configuración inyectada en cada componente (sin singletons globales)."""

    output_dir: Path = Path("./output")
    scratch_dir: Path = Path("./temp")
    cache_dir: Path = Path("./cache")
    catalog_path: Path = Path("./data/artists.json")

    # Video
    width: int = 1080
    height: int = 1080
    fps: int = 30

    # Timeouts (segundos, salvo los de navegador en ms)
    ffmpeg_timeout: float = 600.0
    probe_timeout: float = 30.0
    download_timeout: float = 120.0
    connect_timeout: float = 15.0
    page_load_timeout_ms: int = 30000
    render_settle_timeout_ms: int = 2000

    # Política de fallos
    stage_retries: int = 0
    fallback_enabled: bool = True

    # Limpieza
    retention_hours: float = 24.0
    sweep_interval_minutes: int = 60

    # LLM (opcional)
    openrouter_api_key: Optional[str] = None
    llm_model: str = "qwen/qwen3-235b-a22b-2507"

    audio_quality: Dict[QualityTier, AudioQuality] = Field(default_factory=default_audio_quality)
    video_quality: Dict[QualityTier, VideoQuality] = Field(default_factory=default_video_quality)

    @classmethod
    def load(cls, config_path: str = "config/config.yaml") -> "Settings":
        """
        Carga la configuración desde YAML y la sobreescribe con el entorno.

        Args:
            config_path: Ruta al archivo YAML (se ignora si no existe)

        Returns:
            Settings listo para usar
        """
        data: Dict[str, Any] = {}
        path = Path(config_path)
        if path.exists():
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            logger.debug(f"Configuración cargada desde {path}")

        env_map = {
            "MIXREEL_OUTPUT_DIR": "output_dir",
            "MIXREEL_SCRATCH_DIR": "scratch_dir",
            "MIXREEL_CACHE_DIR": "cache_dir",
            "MIXREEL_CATALOG_PATH": "catalog_path",
            "FFMPEG_TIMEOUT": "ffmpeg_timeout",
            "PROBE_TIMEOUT": "probe_timeout",
            "DOWNLOAD_TIMEOUT": "download_timeout",
            "RENDER_SETTLE_TIMEOUT_MS": "render_settle_timeout_ms",
            "STAGE_RETRIES": "stage_retries",
            "FALLBACK_ENABLED": "fallback_enabled",
            "RETENTION_HOURS": "retention_hours",
            "OPENROUTER_API_KEY": "openrouter_api_key",
            "LLM_MODEL_PRIMARY": "llm_model",
        }
        for env_name, field_name in env_map.items():
            value = os.getenv(env_name)
            if value is not None and value != "":
                data[field_name] = value

        # Los tiers que no aparecen en el YAML conservan los valores por defecto
        defaults = {"audio_quality": default_audio_quality, "video_quality": default_video_quality}
        for field_name, factory in defaults.items():
            if data.get(field_name):
                merged = {tier.value: q.model_dump() for tier, q in factory().items()}
                merged.update(data[field_name])
                data[field_name] = merged

        return cls(**data)

    def ensure_dirs(self) -> None:
        """Crea los directorios de trabajo (idempotente)."""
        for dir_path in [self.output_dir, self.scratch_dir, self.cache_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)
