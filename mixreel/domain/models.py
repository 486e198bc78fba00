"""
Modelos de Dominio
Definen la estructura de datos central del pipeline de video.
"""
import math
from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QualityTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ULTRA = "ultra"


class AudioSource(str, Enum):
    REMOTE = "remote"
    UPLOADED = "uploaded"


class VisualStyle(str, Enum):
    CLASSIC = "classic"
    MODERN = "modern"
    MINIMAL = "minimal"
    ENHANCED = "enhanced"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RenderMode(str, Enum):
    """Secuencia de frames animados o una sola imagen en bucle."""
    FRAMES = "frames"
    STILL = "still"


class MediaRequest(BaseModel):
    """
    Pedido de contenido. Inmutable una vez creado.
    """
    model_config = ConfigDict(frozen=True)

    artist_selector: str = Field("random", description="Nombre del artista o 'random'")
    target_duration_seconds: float = Field(30.0, gt=0)
    visual_style: VisualStyle = VisualStyle.CLASSIC
    audio_source: AudioSource = AudioSource.REMOTE
    fade_in_seconds: float = Field(2.0, ge=0)
    fade_out_seconds: float = Field(2.0, ge=0)
    quality_tier: QualityTier = QualityTier.HIGH

    urgency: Urgency = Urgency.MEDIUM
    uploaded_audio_path: Optional[str] = None
    start_time_seconds: Optional[float] = Field(None, ge=0)
    volume_gain: float = Field(1.0, gt=0)
    include_ai_background: bool = False
    render_mode: RenderMode = RenderMode.FRAMES

    @model_validator(mode="after")
    def _check_upload(self) -> "MediaRequest":
        if self.audio_source == AudioSource.UPLOADED and not self.uploaded_audio_path:
            raise ValueError("uploaded_audio_path es obligatorio cuando audio_source='uploaded'")
        return self


class AudioClip(BaseModel):
    """Fragmento de audio recortado, con fades y re-codificado."""
    source_url: Optional[str] = None
    source_path: Optional[str] = None
    local_path: str
    original_duration_seconds: float
    clip_start_seconds: float
    clip_duration_seconds: float
    sample_rate: int
    bitrate: str
    codec: str
    fade_in_seconds: float = 0.0
    fade_out_seconds: float = 0.0

    @model_validator(mode="after")
    def _check_window(self) -> "AudioClip":
        max_start = self.original_duration_seconds - self.clip_duration_seconds
        # Tolerancia de redondeo de ffprobe
        if self.clip_start_seconds < 0 or self.clip_start_seconds > max_start + 1e-6:
            raise ValueError(
                f"Ventana de clip inválida: start={self.clip_start_seconds} "
                f"dur={self.clip_duration_seconds} original={self.original_duration_seconds}"
            )
        return self

    @property
    def clip_end_seconds(self) -> float:
        return self.clip_start_seconds + self.clip_duration_seconds


# --- Directivas de animación (unión cerrada) ---

class FadeIn(BaseModel):
    kind: Literal["fadeIn"] = "fadeIn"
    target_selector: str
    duration_seconds: float = Field(2.0, gt=0)
    delay_seconds: float = Field(0.0, ge=0)


class SlideIn(BaseModel):
    kind: Literal["slideIn"] = "slideIn"
    target_selector: str
    duration_seconds: float = Field(1.0, gt=0)
    distance_px: float = 100.0


class Pulse(BaseModel):
    kind: Literal["pulse"] = "pulse"
    target_selector: str
    speed: float = 2.0
    amplitude: float = 0.1


class Rotate(BaseModel):
    kind: Literal["rotate"] = "rotate"
    target_selector: str
    degrees_per_second: float = 30.0


class WaveformOverlay(BaseModel):
    """Barras de forma de onda que se revelan según el progreso del render."""
    kind: Literal["waveform"] = "waveform"
    target_selector: str = ".waveform"
    amplitudes: List[float] = Field(default_factory=list)


AnimationDirective = Annotated[
    Union[FadeIn, SlideIn, Pulse, Rotate, WaveformOverlay],
    Field(discriminator="kind"),
]


class FrameSequence(BaseModel):
    """Conjunto ordenado de imágenes, una por frame de salida."""
    frame_directory: str
    ordered_frame_paths: List[str]
    frame_count: int
    fps: int
    width: int
    height: int
    total_duration_seconds: float

    @staticmethod
    def expected_frame_count(total_duration_seconds: float, fps: int) -> int:
        # round() previo evita que 30 * 0.1 = 3.0000000000000004 sume un frame
        return math.ceil(round(total_duration_seconds * fps, 6))


class VideoArtifact(BaseModel):
    path: str
    duration_seconds: float
    width: int
    height: int
    fps: float
    video_codec: str
    audio_codec: Optional[str] = None
    video_bitrate: Optional[str] = None
    audio_bitrate: Optional[str] = None
    file_size_bytes: int = 0
    metadata_tags: Dict[str, str] = Field(default_factory=dict)
    quality_tier: Optional[QualityTier] = None


class RealArtifact(BaseModel):
    kind: Literal["real"] = "real"
    video: VideoArtifact


class SyntheticArtifact(BaseModel):
    """
    Resultado de reemplazo cuando el pipeline real no terminó.
    No es media real: no ofrecer 'descargar' ni 'compartir'.
    """
    kind: Literal["synthetic"] = "synthetic"
    reason: str
    path: Optional[str] = None
    duration_seconds: Optional[float] = None
    metadata_tags: Dict[str, str] = Field(default_factory=dict)


Artifact = Annotated[Union[RealArtifact, SyntheticArtifact], Field(discriminator="kind")]


# --- Workflow ---

class WorkflowStep(str, Enum):
    LOAD_ARTIST_DATA = "load_artist_data"
    ACQUIRE_REMOTE_AUDIO = "acquire_remote_audio"
    PROCESS_UPLOADED_AUDIO = "process_uploaded_audio"
    GENERATE_VISUALS = "generate_visuals"
    BUILD_LAYOUT = "build_layout"
    AI_BACKGROUND = "ai_background"
    COMPOSE_VIDEO = "compose_video"
    QUALITY_OPTIMIZATION = "quality_optimization"


class Classification(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPREHENSIVE = "comprehensive"


class WorkflowPlan(BaseModel):
    steps: List[WorkflowStep]
    classification: Classification
    skippable_steps: List[WorkflowStep] = Field(default_factory=list)


class StepStatus(BaseModel):
    success: bool
    skipped: bool = False
    timestamp: datetime = Field(default_factory=datetime.now)
    error: Optional[str] = None


class WorkflowResult(BaseModel):
    job_id: str
    plan: WorkflowPlan
    step_status: Dict[WorkflowStep, StepStatus] = Field(default_factory=dict)
    artifact: Optional[Artifact] = None
    failed_step: Optional[WorkflowStep] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.failed_step is None and isinstance(self.artifact, RealArtifact)

    @property
    def last_successful_step(self) -> Optional[WorkflowStep]:
        last = None
        for step in self.plan.steps:
            status = self.step_status.get(step)
            if status is None or not status.success:
                break
            last = step
        return last


# --- Catálogo de artistas ---

class ArtistMix(BaseModel):
    title: str
    source_url: str
    duration_label: str = ""
    year: Optional[str] = None


class Artist(BaseModel):
    name: str
    genre: str = "electronic"
    mixes: List[ArtistMix] = Field(default_factory=list)
