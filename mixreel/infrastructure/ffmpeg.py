"""
Invocación de FFmpeg / FFprobe.
Toda llamada lleva timeout explícito, reporta progreso y respeta el token
de cancelación. Los componentes construyen el comando; este módulo lo ejecuta.
"""

import json
import logging
import subprocess
import threading
import time
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Callable, Optional, Type

from ..domain.errors import CancelledError, CompositionError, MixreelError, ProbeError
from ..utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass
class StreamInfo:
    codec: Optional[str] = None
    bitrate: Optional[int] = None
    sample_rate: Optional[int] = None
    channels: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[float] = None


@dataclass
class MediaInfo:
    """Resultado normalizado de ffprobe."""
    duration: float
    bitrate: Optional[int]
    format_name: str
    size: Optional[int]
    audio: Optional[StreamInfo] = None
    video: Optional[StreamInfo] = None
    tags: dict = field(default_factory=dict)


def _to_float(raw_value: Any) -> Optional[float]:
    if raw_value in (None, "N/A", ""):
        return None
    return float(raw_value)


def _to_int(raw_value: Any) -> Optional[int]:
    if raw_value in (None, "N/A", ""):
        return None
    return int(float(raw_value))


def _parse_rate(raw_value: Any) -> Optional[float]:
    """'30000/1001' -> 29.97"""
    if raw_value in (None, "N/A", "", "0/0"):
        return None
    try:
        return float(Fraction(str(raw_value)))
    except (ValueError, ZeroDivisionError):
        return None


def parse_probe_payload(payload: dict) -> MediaInfo:
    """Convierte el JSON de ffprobe en MediaInfo."""
    format_entry = payload.get("format", {}) or {}
    streams = payload.get("streams", []) or []

    audio = None
    video = None
    for stream in streams:
        codec_type = stream.get("codec_type")
        if codec_type == "audio" and audio is None:
            audio = StreamInfo(
                codec=stream.get("codec_name"),
                bitrate=_to_int(stream.get("bit_rate")),
                sample_rate=_to_int(stream.get("sample_rate")),
                channels=_to_int(stream.get("channels")),
            )
        elif codec_type == "video" and video is None:
            video = StreamInfo(
                codec=stream.get("codec_name"),
                bitrate=_to_int(stream.get("bit_rate")),
                width=_to_int(stream.get("width")),
                height=_to_int(stream.get("height")),
                fps=_parse_rate(stream.get("avg_frame_rate")) or _parse_rate(stream.get("r_frame_rate")),
            )

    return MediaInfo(
        duration=_to_float(format_entry.get("duration")) or 0.0,
        bitrate=_to_int(format_entry.get("bit_rate")),
        format_name=format_entry.get("format_name") or "unknown",
        size=_to_int(format_entry.get("size")),
        audio=audio,
        video=video,
        tags=format_entry.get("tags", {}) or {},
    )


class FFmpegRunner:
    """Ejecuta ffmpeg/ffprobe con timeout, progreso y cancelación."""

    POLL_INTERVAL = 0.1

    def __init__(
        self,
        ffmpeg_bin: str = "ffmpeg",
        ffprobe_bin: str = "ffprobe",
        timeout: float = 600.0,
        probe_timeout: float = 30.0
    ):
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self.timeout = timeout
        self.probe_timeout = probe_timeout

    def run(
        self,
        args: list[str],
        timeout: Optional[float] = None,
        token: Optional[CancellationToken] = None,
        expected_duration: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
        error_cls: Type[MixreelError] = CompositionError,
        label: str = "ffmpeg",
    ) -> None:
        """
        Ejecuta ffmpeg con los argumentos dados (sin el binario).

        Args:
            args: Argumentos de ffmpeg (entradas, filtros, salida)
            timeout: Límite en segundos (usa el default si es None)
            token: Token de cancelación
            expected_duration: Duración esperada de la salida, para el porcentaje
            on_progress: Callback con el porcentaje (0-100)
            error_cls: Tipo de error a lanzar si ffmpeg falla
            label: Nombre de la operación para los logs

        Raises:
            error_cls: Si ffmpeg no existe, termina con error o excede el timeout
            CancelledError: Si el token se cancela durante la ejecución
        """
        timeout = timeout or self.timeout
        cmd = [
            self.ffmpeg_bin, "-y",
            "-hide_banner", "-nostats",
            "-loglevel", "error",
            "-progress", "pipe:1",
            *args
        ]
        logger.debug(f"Ejecutando: {' '.join(cmd)}")

        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True
            )
        except FileNotFoundError as e:
            raise error_cls(
                "ffmpeg no encontrado en PATH",
                "Instala FFmpeg para poder codificar"
            ) from e

        stderr_lines: list[str] = []
        last_logged = [-10.0]

        def _read_progress():
            for line in proc.stdout:
                key, _, value = line.strip().partition("=")
                if key not in ("out_time_us", "out_time_ms") or not expected_duration:
                    continue
                seconds = (_to_int(value) or 0) / 1_000_000
                percent = min(100.0, seconds / expected_duration * 100)
                if on_progress:
                    on_progress(percent)
                if percent - last_logged[0] >= 10:
                    last_logged[0] = percent
                    logger.debug(f"⏳ {label}: {percent:.0f}%")

        def _read_stderr():
            for line in proc.stderr:
                stderr_lines.append(line.rstrip())

        readers = [
            threading.Thread(target=_read_progress, daemon=True),
            threading.Thread(target=_read_stderr, daemon=True),
        ]
        for reader in readers:
            reader.start()

        deadline = time.monotonic() + timeout
        try:
            while proc.poll() is None:
                if token is not None and token.cancelled:
                    self._kill(proc)
                    raise CancelledError(f"{label} cancelado", token.reason)
                if time.monotonic() > deadline:
                    self._kill(proc)
                    raise error_cls(f"{label} excedió el timeout de {timeout:.0f}s")
                time.sleep(self.POLL_INTERVAL)
        finally:
            for reader in readers:
                reader.join(timeout=1.0)

        if proc.returncode != 0:
            tail = "\n".join(stderr_lines[-10:])
            logger.error(f"Error en {label} (código {proc.returncode}): {tail}")
            raise error_cls(f"{label} terminó con código {proc.returncode}", tail or None)

        if on_progress:
            on_progress(100.0)

    def _kill(self, proc: subprocess.Popen) -> None:
        try:
            proc.kill()
            proc.wait(timeout=5)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"No se pudo terminar ffmpeg: {e}")

    def probe(self, path: str, timeout: Optional[float] = None) -> MediaInfo:
        """
        Obtiene duración, códecs y bitrates de un archivo multimedia.

        Raises:
            ProbeError: Si ffprobe no existe, falla, excede el timeout o devuelve basura
        """
        cmd = [
            self.ffprobe_bin, "-v", "error",
            "-print_format", "json",
            "-show_format", "-show_streams",
            str(path)
        ]
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=timeout or self.probe_timeout
            )
        except FileNotFoundError as e:
            raise ProbeError("ffprobe no encontrado en PATH") from e
        except subprocess.TimeoutExpired as e:
            raise ProbeError(f"ffprobe excedió el timeout leyendo {path}") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise ProbeError(f"ffprobe no pudo leer {path}", stderr or None) from e

        try:
            payload = json.loads(completed.stdout)
        except json.JSONDecodeError as e:
            raise ProbeError("ffprobe devolvió JSON inválido") from e

        return parse_probe_payload(payload)
