"""
Adquisición de Audio
Descarga (o recibe) el audio fuente, elige la ventana del clip, aplica
ganancia y fades, y lo re-codifica según el tier de calidad.
"""
import logging
import random
import time
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import httpx
from pydantic import BaseModel
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from ..config import Settings
from ..domain.errors import CompositionError, NetworkError, ProbeError, ValidationError
from ..domain.models import AudioClip, QualityTier
from ..infrastructure.ffmpeg import FFmpegRunner
from ..utils.cancellation import CancellationToken, check

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ["mp3", "wav", "m4a", "aac", "ogg", "flac"]

# Margen que se deja sin usar al final del mix al elegir el inicio
TAIL_MARGIN_SECONDS = 5.0


class AcquireOptions(BaseModel):
    """Parámetros del clip a extraer."""
    duration_seconds: float
    fade_in_seconds: float = 2.0
    fade_out_seconds: float = 2.0
    start_time_seconds: Optional[float] = None
    volume_gain: float = 1.0
    quality_tier: QualityTier = QualityTier.HIGH


def compute_clip_start(
    original_duration: float,
    clip_duration: float,
    rng: Optional[random.Random] = None
) -> float:
    """
    Elige un inicio aleatorio evitando los extremos del mix.

    Args:
        original_duration: Duración del audio fuente
        clip_duration: Duración del clip pedido
        rng: Generador aleatorio (inyectable para tests)

    Returns:
        Segundo de inicio dentro de [min_start, max_start]
    """
    rng = rng or random
    max_start = max(0.0, original_duration - clip_duration - TAIL_MARGIN_SECONDS)
    min_start = min(TAIL_MARGIN_SECONDS, max_start)
    return rng.uniform(min_start, max_start)


def plan_fades(
    clip_duration: float,
    fade_in: float,
    fade_out: float
) -> Tuple[float, float, float]:
    """
    Ajusta los fades a la duración del clip.

    Returns:
        (fade_in, fade_out_start, fade_out) ya acotados
    """
    if fade_in < 0 or fade_out < 0:
        raise ValidationError(
            "Los fades no pueden ser negativos",
            f"fade_in={fade_in} fade_out={fade_out}"
        )
    fade_in = min(fade_in, clip_duration)
    fade_out = min(fade_out, clip_duration)
    fade_out_start = max(0.0, clip_duration - fade_out)
    return fade_in, fade_out_start, fade_out


def build_audio_filters(
    clip_duration: float,
    fade_in: float,
    fade_out: float,
    volume_gain: float = 1.0
) -> List[str]:
    """Cadena de filtros -af: volumen, fade in y fade out."""
    fade_in, fade_out_start, fade_out = plan_fades(clip_duration, fade_in, fade_out)

    filters = []
    if volume_gain != 1.0:
        filters.append(f"volume={volume_gain:g}")
    if fade_in > 0:
        filters.append(f"afade=t=in:st=0:d={fade_in:g}")
    if fade_out > 0:
        filters.append(f"afade=t=out:st={fade_out_start:g}:d={fade_out:g}")
    return filters


def _is_remote(source_ref: str) -> bool:
    return source_ref.startswith(("http://", "https://"))


class AudioAcquirer:
    """Produce un AudioClip listo para componer."""

    def __init__(
        self,
        settings: Settings,
        runner: Optional[FFmpegRunner] = None,
        client: Optional[httpx.Client] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Args:
            settings: Configuración (directorios, timeouts, tabla de calidad)
            runner: Ejecutor de FFmpeg (inyectable para tests)
            client: Cliente HTTP (inyectable para tests)
            rng: Generador aleatorio para elegir el inicio del clip
        """
        self.settings = settings
        self.runner = runner or FFmpegRunner(
            timeout=settings.ffmpeg_timeout,
            probe_timeout=settings.probe_timeout
        )
        self.client = client or httpx.Client(
            timeout=httpx.Timeout(settings.download_timeout, connect=settings.connect_timeout),
            follow_redirects=True
        )
        self.rng = rng or random.Random()
        self.settings.scratch_dir.mkdir(parents=True, exist_ok=True)

    def acquire(
        self,
        source_ref: str,
        options: AcquireOptions,
        work_dir: Optional[Path] = None,
        token: Optional[CancellationToken] = None
    ) -> AudioClip:
        """
        Descarga o toma el audio, lo recorta y lo re-codifica.

        Args:
            source_ref: URL http(s) o ruta local
            options: Duración, fades, inicio, ganancia y tier
            work_dir: Directorio de trabajo del job (scratch por defecto)
            token: Token de cancelación

        Returns:
            AudioClip con el archivo final en work_dir

        Raises:
            NetworkError: Timeout, DNS, conexión o estado HTTP de error
            ValidationError: Archivo local inexistente o parámetros inválidos
            ProbeError: Audio ilegible o sin duración
            CompositionError: FFmpeg falló al re-codificar
        """
        if options.duration_seconds <= 0:
            raise ValidationError("La duración del clip debe ser positiva", str(options.duration_seconds))
        if options.volume_gain <= 0:
            raise ValidationError("La ganancia debe ser positiva", str(options.volume_gain))

        work_dir = Path(work_dir or self.settings.scratch_dir)
        work_dir.mkdir(parents=True, exist_ok=True)
        quality = self.settings.audio_quality[options.quality_tier]
        output_path = work_dir / f"clip_{uuid.uuid4().hex[:12]}.mp3"

        remote = _is_remote(source_ref)
        downloaded: Optional[Path] = None

        try:
            if remote:
                downloaded = work_dir / f"source_{uuid.uuid4().hex[:12]}{self._suffix_for(source_ref)}"
                self._download(source_ref, downloaded, token)
                input_path = downloaded
            else:
                input_path = Path(source_ref)
                if not input_path.exists():
                    raise ValidationError("Archivo de audio no encontrado", str(input_path))

            check(token, "probe de audio")
            info = self.runner.probe(str(input_path))
            if info.audio is None:
                raise ProbeError("El archivo no contiene audio", str(input_path))
            original_duration = info.duration
            if original_duration <= 0:
                raise ProbeError("Duración de audio inválida", str(input_path))

            clip_duration = min(options.duration_seconds, original_duration)
            if clip_duration < options.duration_seconds:
                logger.warning(
                    f"Audio más corto ({original_duration:.1f}s) que lo pedido "
                    f"({options.duration_seconds:.1f}s); se usa completo"
                )
            clip_start = self._resolve_start(options, original_duration, clip_duration)
            fade_in, _, fade_out = plan_fades(
                clip_duration, options.fade_in_seconds, options.fade_out_seconds
            )
            filters = build_audio_filters(
                clip_duration, options.fade_in_seconds, options.fade_out_seconds, options.volume_gain
            )

            logger.info(
                f"🎵 Recortando {clip_duration:.1f}s desde {clip_start:.1f}s "
                f"(tier {options.quality_tier.value}, {quality.bitrate})"
            )
            args = ["-ss", f"{clip_start:.3f}", "-i", str(input_path), "-t", f"{clip_duration:.3f}"]
            if filters:
                args += ["-af", ",".join(filters)]
            args += [
                "-vn",
                "-acodec", "libmp3lame",
                "-b:a", quality.bitrate,
                "-ar", str(quality.sample_rate),
                str(output_path)
            ]
            self.runner.run(
                args,
                token=token,
                expected_duration=clip_duration,
                error_cls=CompositionError,
                label="codificación de audio"
            )
        except Exception:
            self._remove(output_path)
            if downloaded is not None:
                self._remove(downloaded)
            raise

        if downloaded is not None:
            self._remove(downloaded)

        logger.info(f"✅ Clip de audio listo: {output_path.name}")
        return AudioClip(
            source_url=source_ref if remote else None,
            source_path=None if remote else source_ref,
            local_path=str(output_path),
            original_duration_seconds=original_duration,
            clip_start_seconds=clip_start,
            clip_duration_seconds=clip_duration,
            sample_rate=quality.sample_rate,
            bitrate=quality.bitrate,
            codec="mp3",
            fade_in_seconds=fade_in,
            fade_out_seconds=fade_out,
        )

    def _resolve_start(
        self,
        options: AcquireOptions,
        original_duration: float,
        clip_duration: float
    ) -> float:
        if clip_duration >= original_duration:
            return 0.0
        if options.start_time_seconds is None:
            return compute_clip_start(original_duration, clip_duration, self.rng)

        start = options.start_time_seconds
        if start < 0 or start > original_duration - clip_duration:
            raise ValidationError(
                "Inicio de clip fuera de rango",
                f"start={start} dur={clip_duration} original={original_duration:.1f}"
            )
        return start

    def _download(self, url: str, target: Path, token: Optional[CancellationToken]) -> None:
        """Descarga en streaming con presupuesto total de tiempo."""
        budget = self.settings.download_timeout
        deadline = time.monotonic() + budget
        logger.info(f"📥 Descargando audio: {url}")

        try:
            with self.client.stream("GET", url) as response:
                response.raise_for_status()
                with open(target, "wb") as f:
                    for chunk in response.iter_bytes(chunk_size=64 * 1024):
                        check(token, "descarga de audio")
                        if time.monotonic() > deadline:
                            raise NetworkError(f"La descarga excedió {budget:.0f}s", url)
                        f.write(chunk)
        except httpx.TimeoutException as e:
            raise NetworkError("Timeout descargando audio", url) from e
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"HTTP {e.response.status_code} descargando audio", url) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Error de red descargando audio: {e}", url) from e

        if target.stat().st_size == 0:
            raise NetworkError("La descarga devolvió un archivo vacío", url)

    @staticmethod
    def _suffix_for(url: str) -> str:
        suffix = Path(url.split("?", 1)[0]).suffix.lower()
        return suffix if suffix.lstrip(".") in SUPPORTED_FORMATS else ".mp3"

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"No se pudo borrar {path}: {e}")

    def waveform(self, clip: AudioClip, points: int = 100) -> List[float]:
        """
        Envolvente de amplitud del clip (RMS por ventana).

        Args:
            clip: Clip ya codificado
            points: Cantidad de barras

        Returns:
            Lista de `points` valores normalizados a [0.1, 1.0]
        """
        try:
            segment = AudioSegment.from_file(clip.local_path)
        except (CouldntDecodeError, FileNotFoundError) as e:
            raise ProbeError("No se pudo decodificar el clip para la forma de onda", clip.local_path) from e

        if points <= 0 or len(segment) == 0:
            return []

        window_ms = max(1, len(segment) // points)
        levels = []
        for i in range(points):
            chunk = segment[i * window_ms:(i + 1) * window_ms]
            levels.append(chunk.rms if len(chunk) else 0)

        peak = max(levels)
        if peak == 0:
            return [0.1] * points
        return [round(0.1 + 0.9 * level / peak, 4) for level in levels]

    def stats(self) -> dict:
        return {
            "scratch_dir": str(self.settings.scratch_dir),
            "supported_formats": SUPPORTED_FORMATS,
            "quality_tiers": {
                tier.value: {"bitrate": q.bitrate, "sample_rate": q.sample_rate}
                for tier, q in self.settings.audio_quality.items()
            },
        }

    def close(self) -> None:
        self.client.close()
