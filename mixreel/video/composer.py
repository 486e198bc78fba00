"""
Compositor de Video
Codifica los frames (o una imagen en bucle), los une con el clip de audio y
escribe los metadatos del contenedor. También convierte formatos y agrega
texto sobre un video ya compuesto.
"""

import logging
import shutil
import uuid
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, Field

from ..config import Settings
from ..domain.errors import CompositionError, ProbeError, ValidationError
from ..domain.models import AudioClip, FrameSequence, QualityTier, VideoArtifact
from ..infrastructure.ffmpeg import FFmpegRunner, MediaInfo
from ..utils.cancellation import CancellationToken, check

logger = logging.getLogger(__name__)

FRAME_PATTERN = "frame_%06d.png"

# formato -> (códec de video, códec de audio)
CONTAINER_CODECS = {
    "mp4": ("libx264", "aac"),
    "mov": ("libx264", "aac"),
    "mkv": ("libx264", "aac"),
    "webm": ("libvpx-vp9", "libopus"),
}

OVERLAY_POSITIONS = {
    "top": ("(w-text_w)/2", "50"),
    "center": ("(w-text_w)/2", "(h-text_h)/2"),
    "bottom": ("(w-text_w)/2", "h-text_h-50"),
}

METADATA_KEYS = ("artist", "title", "description")


class ComposeOptions(BaseModel):
    quality_tier: QualityTier = QualityTier.HIGH
    metadata_tags: Dict[str, str] = Field(default_factory=dict)
    fps: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


class ConvertOptions(BaseModel):
    quality_tier: QualityTier = QualityTier.HIGH
    width: Optional[int] = None
    height: Optional[int] = None


def metadata_args(tags: Dict[str, str]) -> list[str]:
    """Argumentos -metadata para las etiquetas conocidas (artist, title, description)."""
    args = []
    for key in METADATA_KEYS:
        value = tags.get(key)
        if value:
            args += ["-metadata", f"{key}={value}"]
    return args


def _escape_filter_path(path: Path) -> str:
    return str(path).replace("\\", "/").replace(":", "\\:").replace("'", "\\'")


class VideoComposer:
    """Compone el video final con FFmpeg."""

    def __init__(self, settings: Settings, runner: Optional[FFmpegRunner] = None):
        """
        Args:
            settings: Configuración (directorios, fps, tabla de calidad)
            runner: Ejecutor de FFmpeg (inyectable para tests)
        """
        self.settings = settings
        self.runner = runner or FFmpegRunner(
            timeout=settings.ffmpeg_timeout,
            probe_timeout=settings.probe_timeout
        )
        self.output_dir = Path(settings.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _output_path(self, prefix: str = "video", extension: str = "mp4") -> Path:
        return self.output_dir / f"{prefix}_{uuid.uuid4().hex[:12]}.{extension}"

    def compose(
        self,
        visual: Union[FrameSequence, Path, str],
        audio: AudioClip,
        options: Optional[ComposeOptions] = None,
        work_dir: Optional[Path] = None,
        token: Optional[CancellationToken] = None
    ) -> VideoArtifact:
        """
        Une la parte visual con el audio.

        Args:
            visual: Secuencia de frames o ruta a una imagen fija
            audio: Clip de audio ya procesado
            options: Tier de calidad, metadatos y overrides de fps/resolución
            work_dir: Directorio para el video temporal sin audio
            token: Token de cancelación

        Returns:
            VideoArtifact del archivo final

        Raises:
            ValidationError: Si falta algún archivo de entrada
            CompositionError: Si FFmpeg falla o excede el timeout
        """
        options = options or ComposeOptions()
        quality = self.settings.video_quality[options.quality_tier]

        if not Path(audio.local_path).exists():
            raise ValidationError("Archivo de audio no encontrado", audio.local_path)

        output_path = self._output_path()
        work_dir = Path(work_dir or self.settings.scratch_dir)
        work_dir.mkdir(parents=True, exist_ok=True)

        if isinstance(visual, FrameSequence):
            self._check_frames(visual)
            fps = options.fps or visual.fps
            temp_video = work_dir / f"silent_{uuid.uuid4().hex[:12]}.mp4"

            logger.info(f"🎞️ Codificando {visual.frame_count} frames (tier {options.quality_tier.value})")
            try:
                self.runner.run(
                    self._frames_args(visual, fps, quality, temp_video, options),
                    token=token,
                    expected_duration=visual.total_duration_seconds,
                    label="codificación de frames"
                )
                check(token, "composición")
                self.runner.run(
                    self._mux_args(temp_video, audio, quality.audio_bitrate, options.metadata_tags, output_path),
                    token=token,
                    expected_duration=audio.clip_duration_seconds,
                    label="multiplexado"
                )
            except Exception:
                output_path.unlink(missing_ok=True)
                raise
            finally:
                temp_video.unlink(missing_ok=True)

            shutil.rmtree(visual.frame_directory, ignore_errors=True)
            logger.debug(f"🧹 Frames eliminados: {visual.frame_directory}")
        else:
            image_path = Path(visual)
            if not image_path.exists():
                raise ValidationError("Imagen fija no encontrada", str(image_path))
            fps = options.fps or self.settings.fps
            width = options.width or self.settings.width
            height = options.height or self.settings.height

            logger.info(f"🖼️ Codificando imagen fija en bucle (tier {options.quality_tier.value})")
            try:
                self.runner.run(
                    self._still_args(image_path, audio, fps, width, height, quality, options, output_path),
                    token=token,
                    expected_duration=audio.clip_duration_seconds,
                    label="codificación de imagen fija"
                )
            except Exception:
                output_path.unlink(missing_ok=True)
                raise

        artifact = self._artifact(output_path, options.quality_tier, options.metadata_tags)
        logger.info(f"✅ Video compuesto: {output_path.name} ({artifact.duration_seconds:.1f}s)")
        return artifact

    def _check_frames(self, frames: FrameSequence) -> None:
        frame_dir = Path(frames.frame_directory)
        if frames.frame_count <= 0 or not frame_dir.is_dir():
            raise ValidationError("Secuencia de frames vacía o inexistente", str(frame_dir))
        if not (frame_dir / (FRAME_PATTERN % 0)).exists():
            raise ValidationError("Falta el primer frame de la secuencia", str(frame_dir))

    def _frames_args(self, frames, fps, quality, temp_video, options) -> list[str]:
        args = [
            "-framerate", str(fps),
            "-i", str(Path(frames.frame_directory) / FRAME_PATTERN),
            "-c:v", "libx264",
            "-pix_fmt", "yuv420p",
            "-preset", quality.preset,
            "-crf", str(quality.crf),
            "-b:v", quality.video_bitrate,
            "-r", str(fps),
        ]
        if options.width and options.height:
            args += ["-vf", f"scale={options.width}:{options.height}"]
        return args + [str(temp_video)]

    def _mux_args(self, temp_video, audio, audio_bitrate, tags, output_path) -> list[str]:
        return [
            "-i", str(temp_video),
            "-i", audio.local_path,
            "-c:v", "copy",
            "-c:a", "aac",
            "-b:a", audio_bitrate,
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-shortest",
            *metadata_args(tags),
            "-movflags", "+faststart",
            str(output_path)
        ]

    def _still_args(self, image_path, audio, fps, width, height, quality, options, output_path) -> list[str]:
        return [
            "-loop", "1",
            "-framerate", str(fps),
            "-i", str(image_path),
            "-i", audio.local_path,
            "-c:v", "libx264",
            "-tune", "stillimage",
            "-preset", quality.preset,
            "-crf", str(quality.crf),
            "-b:v", quality.video_bitrate,
            "-pix_fmt", "yuv420p",
            "-vf", f"scale={width}:{height}",
            "-c:a", "aac",
            "-b:a", quality.audio_bitrate,
            "-shortest",
            *metadata_args(options.metadata_tags),
            "-movflags", "+faststart",
            str(output_path)
        ]

    def convert(
        self,
        input_path: Union[Path, str],
        target_format: str,
        options: Optional[ConvertOptions] = None,
        token: Optional[CancellationToken] = None
    ) -> VideoArtifact:
        """
        Re-codifica un video a otro contenedor (mp4, webm, mov, mkv).

        Raises:
            ValidationError: Formato no soportado o entrada inexistente
            CompositionError: Si FFmpeg falla
        """
        options = options or ConvertOptions()
        target_format = target_format.lower().lstrip(".")
        if target_format not in CONTAINER_CODECS:
            raise ValidationError(
                f"Formato no soportado: {target_format}",
                f"usar uno de {', '.join(CONTAINER_CODECS)}"
            )
        input_path = Path(input_path)
        if not input_path.exists():
            raise ValidationError("Video de entrada no encontrado", str(input_path))

        quality = self.settings.video_quality[options.quality_tier]
        video_codec, audio_codec = CONTAINER_CODECS[target_format]
        output_path = self._output_path("converted", target_format)

        args = [
            "-i", str(input_path),
            "-map_metadata", "0",
            "-c:v", video_codec,
            "-b:v", quality.video_bitrate,
        ]
        if video_codec == "libx264":
            args += ["-preset", quality.preset, "-crf", str(quality.crf), "-pix_fmt", "yuv420p"]
        else:
            args += ["-crf", str(quality.crf), "-deadline", "good"]
        args += ["-c:a", audio_codec, "-b:a", quality.audio_bitrate]
        if options.width and options.height:
            args += ["-vf", f"scale={options.width}:{options.height}"]
        args.append(str(output_path))

        logger.info(f"🔄 Convirtiendo {input_path.name} a {target_format}")
        try:
            self.runner.run(args, token=token, label=f"conversión a {target_format}")
        except Exception:
            output_path.unlink(missing_ok=True)
            raise

        return self._artifact(output_path, options.quality_tier)

    def add_text_overlay(
        self,
        input_path: Union[Path, str],
        text: str,
        position: str = "bottom",
        font_size: int = 48,
        color: str = "white",
        start_seconds: float = 0.0,
        duration_seconds: Optional[float] = None,
        quality_tier: QualityTier = QualityTier.HIGH,
        token: Optional[CancellationToken] = None
    ) -> VideoArtifact:
        """
        Dibuja texto sobre el video durante una ventana de tiempo.

        El texto se pasa por archivo y sin expansión, así que comillas, dos
        puntos o '%' aparecen literalmente.

        Args:
            input_path: Video de entrada
            text: Texto a mostrar
            position: top, center o bottom
            font_size: Tamaño en px
            color: Color de fuente (nombre o #RRGGBB)
            start_seconds: Inicio de la ventana
            duration_seconds: Duración de la ventana (hasta el final si es None)
            quality_tier: Tier para re-codificar el video
            token: Token de cancelación
        """
        input_path = Path(input_path)
        if not input_path.exists():
            raise ValidationError("Video de entrada no encontrado", str(input_path))
        if position not in OVERLAY_POSITIONS:
            raise ValidationError(f"Posición inválida: {position}", "usar top, center o bottom")
        if not text.strip():
            raise ValidationError("El texto del overlay está vacío")

        quality = self.settings.video_quality[quality_tier]
        x, y = OVERLAY_POSITIONS[position]
        self.settings.scratch_dir.mkdir(parents=True, exist_ok=True)
        text_file = self.settings.scratch_dir / f"overlay_{uuid.uuid4().hex[:8]}.txt"
        text_file.write_text(text, encoding="utf-8")

        drawtext = (
            f"drawtext=textfile='{_escape_filter_path(text_file)}':expansion=none"
            f":fontsize={font_size}:fontcolor={color}:x={x}:y={y}"
            f":box=1:boxcolor=black@0.4:boxborderw=12"
        )
        if duration_seconds is not None:
            drawtext += f":enable='between(t,{start_seconds:g},{start_seconds + duration_seconds:g})'"
        elif start_seconds > 0:
            drawtext += f":enable='gte(t,{start_seconds:g})'"

        output_path = self._output_path("overlay")
        args = [
            "-i", str(input_path),
            "-vf", drawtext,
            "-c:v", "libx264",
            "-preset", quality.preset,
            "-crf", str(quality.crf),
            "-pix_fmt", "yuv420p",
            "-c:a", "copy",
            str(output_path)
        ]

        logger.info(f"📝 Agregando texto ({position}) a {input_path.name}")
        try:
            self.runner.run(args, token=token, label="overlay de texto")
        except Exception:
            output_path.unlink(missing_ok=True)
            raise
        finally:
            text_file.unlink(missing_ok=True)

        return self._artifact(output_path, quality_tier)

    def create_color_video(
        self,
        duration_seconds: float,
        color: str = "blue",
        width: Optional[int] = None,
        height: Optional[int] = None,
        token: Optional[CancellationToken] = None
    ) -> Path:
        """Video mudo de un solo color (fuente lavfi)."""
        if duration_seconds <= 0:
            raise ValidationError("La duración debe ser positiva", str(duration_seconds))

        width = width or self.settings.width
        height = height or self.settings.height
        output_path = self._output_path("color")
        args = [
            "-f", "lavfi",
            "-i", f"color=c={color}:s={width}x{height}:d={duration_seconds:g}:r={self.settings.fps}",
            "-c:v", "libx264",
            "-pix_fmt", "yuv420p",
            "-t", f"{duration_seconds:g}",
            str(output_path)
        ]
        try:
            self.runner.run(args, token=token, expected_duration=duration_seconds, label="video de color")
        except Exception:
            output_path.unlink(missing_ok=True)
            raise
        return output_path

    def info(self, path: Union[Path, str]) -> VideoArtifact:
        """Lee un video existente como VideoArtifact."""
        path = Path(path)
        if not path.exists():
            raise ValidationError("Video no encontrado", str(path))
        return self._describe(path, self.runner.probe(str(path)))

    def _artifact(
        self,
        path: Path,
        quality_tier: Optional[QualityTier] = None,
        tags: Optional[Dict[str, str]] = None
    ) -> VideoArtifact:
        """Verifica el archivo recién generado; si no es legible lo borra."""
        try:
            media = self.runner.probe(str(path))
        except ProbeError as e:
            path.unlink(missing_ok=True)
            raise CompositionError("El video generado no se puede leer", str(e)) from e
        if media.video is None:
            path.unlink(missing_ok=True)
            raise CompositionError("El video generado no contiene pista de video", str(path))
        return self._describe(path, media, quality_tier, tags)

    def _describe(
        self,
        path: Path,
        media: MediaInfo,
        quality_tier: Optional[QualityTier] = None,
        tags: Optional[Dict[str, str]] = None
    ) -> VideoArtifact:
        if media.video is None:
            raise ProbeError("El archivo no contiene video", str(path))

        declared = self.settings.video_quality[quality_tier] if quality_tier else None
        file_size = media.size if media.size is not None else path.stat().st_size
        merged_tags = {k: str(v) for k, v in media.tags.items() if k in METADATA_KEYS}
        merged_tags.update({k: v for k, v in (tags or {}).items() if k in METADATA_KEYS and v})

        return VideoArtifact(
            path=str(path),
            duration_seconds=media.duration,
            width=media.video.width or self.settings.width,
            height=media.video.height or self.settings.height,
            fps=media.video.fps or float(self.settings.fps),
            video_codec=media.video.codec or "unknown",
            audio_codec=media.audio.codec if media.audio else None,
            video_bitrate=declared.video_bitrate if declared else None,
            audio_bitrate=declared.audio_bitrate if declared else None,
            file_size_bytes=file_size,
            metadata_tags=merged_tags,
            quality_tier=quality_tier,
        )
