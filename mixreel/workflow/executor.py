"""
Ejecutor de workflows.
Corre los pasos del plan en orden, registra el estado de cada uno y se
detiene en el primer fallo. Nunca lanza: el resultado describe qué pasó.
"""
import logging
import shutil
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from ..audio.acquirer import AcquireOptions, AudioAcquirer
from ..catalog import ArtistCatalog
from ..config import Settings
from ..domain.errors import MixreelError, NetworkError, ValidationError
from ..domain.models import (
    Artist,
    ArtistMix,
    AudioClip,
    AudioSource,
    FrameSequence,
    MediaRequest,
    QualityTier,
    RealArtifact,
    RenderMode,
    StepStatus,
    SyntheticArtifact,
    VideoArtifact,
    VisualStyle,
    WorkflowPlan,
    WorkflowResult,
    WorkflowStep,
)
from ..utils.backoff import retrying
from ..utils.cancellation import CancellationToken, check
from ..video.composer import ComposeOptions, ConvertOptions, VideoComposer
from ..visuals.background import BackgroundEnricher
from ..visuals.layout import Layout, LayoutBuilder, Visuals
from ..visuals.renderer import FrameRenderer, RenderOptions

logger = logging.getLogger(__name__)

WAVEFORM_POINTS = 100


@dataclass
class JobContext:
    """Estado que se va completando paso a paso."""
    job_id: str
    request: MediaRequest
    work_dir: Path
    token: Optional[CancellationToken] = None
    artist: Optional[Artist] = None
    mix: Optional[ArtistMix] = None
    clip: Optional[AudioClip] = None
    visuals: Optional[Visuals] = None
    waveform: List[float] = field(default_factory=list)
    layout: Optional[Layout] = None
    video: Optional[VideoArtifact] = None

    @property
    def title(self) -> str:
        if self.request.uploaded_audio_path:
            return Path(self.request.uploaded_audio_path).stem
        return self.mix.title if self.mix else "Untitled Mix"

    def metadata_tags(self) -> Dict[str, str]:
        artist_name = self.artist.name if self.artist else "Unknown Artist"
        description = self.visuals.mood if self.visuals and self.visuals.mood else None
        if not description:
            genre = self.artist.genre if self.artist else "electronic"
            year = f" ({self.mix.year})" if self.mix and self.mix.year else ""
            description = f"{genre} mix by {artist_name}{year}"
        return {"artist": artist_name, "title": self.title, "description": description}


class WorkflowExecutor:
    """Ejecuta un WorkflowPlan con fail-fast y modo degradado opcional."""

    def __init__(
        self,
        settings: Settings,
        catalog: ArtistCatalog,
        acquirer: AudioAcquirer,
        renderer: FrameRenderer,
        composer: VideoComposer,
        layout_builder: Optional[LayoutBuilder] = None,
        enricher: Optional[BackgroundEnricher] = None
    ):
        self.settings = settings
        self.catalog = catalog
        self.acquirer = acquirer
        self.renderer = renderer
        self.composer = composer
        self.layout_builder = layout_builder or LayoutBuilder(settings.width, settings.height)
        self.enricher = enricher or BackgroundEnricher()

        self._handlers: Dict[WorkflowStep, Callable[[JobContext], None]] = {
            WorkflowStep.LOAD_ARTIST_DATA: self._load_artist_data,
            WorkflowStep.ACQUIRE_REMOTE_AUDIO: self._acquire_remote_audio,
            WorkflowStep.PROCESS_UPLOADED_AUDIO: self._process_uploaded_audio,
            WorkflowStep.GENERATE_VISUALS: self._generate_visuals,
            WorkflowStep.BUILD_LAYOUT: self._build_layout,
            WorkflowStep.AI_BACKGROUND: self._ai_background,
            WorkflowStep.COMPOSE_VIDEO: self._compose_video,
            WorkflowStep.QUALITY_OPTIMIZATION: self._quality_optimization,
        }

    def execute(
        self,
        plan: WorkflowPlan,
        request: MediaRequest,
        token: Optional[CancellationToken] = None,
        job_id: Optional[str] = None,
        skip: Iterable[WorkflowStep] = ()
    ) -> WorkflowResult:
        """
        Ejecuta el plan en orden.

        Args:
            plan: Pasos a ejecutar
            request: Pedido original
            token: Token de cancelación
            job_id: Identificador del job (se genera si falta)
            skip: Pasos opcionales a omitir (solo los de plan.skippable_steps)

        Returns:
            WorkflowResult con estado por paso, artefacto y paso fallido
        """
        job_id = job_id or uuid.uuid4().hex[:12]
        work_dir = Path(self.settings.scratch_dir) / job_id
        work_dir.mkdir(parents=True, exist_ok=True)
        ctx = JobContext(job_id=job_id, request=request, work_dir=work_dir, token=token)
        result = WorkflowResult(job_id=job_id, plan=plan)

        skip = set(skip)
        not_skippable = skip - set(plan.skippable_steps)
        if not_skippable:
            names = ", ".join(sorted(s.value for s in not_skippable))
            result.error = str(ValidationError("Pasos no omitibles", names))
            result.failed_step = plan.steps[0] if plan.steps else None
            shutil.rmtree(work_dir, ignore_errors=True)
            return result

        logger.info(f"▶️ Job {job_id}: {len(plan.steps)} pasos ({plan.classification.value})")

        try:
            for step in plan.steps:
                if step in skip:
                    logger.info(f"⏭️ [{job_id}] {step.value} omitido")
                    result.step_status[step] = StepStatus(success=True, skipped=True)
                    continue

                logger.info(f"🔹 [{job_id}] {step.value}")
                try:
                    check(token, step.value)
                    self._handlers[step](ctx)
                except MixreelError as e:
                    self._fail(result, step, e)
                    break
                except Exception as e:
                    logger.exception(f"Error inesperado en {step.value}")
                    self._fail(result, step, e)
                    break

                result.step_status[step] = StepStatus(success=True)

            if result.failed_step is None:
                if ctx.video is None:
                    result.failed_step = WorkflowStep.COMPOSE_VIDEO
                    result.error = "El plan no produjo ningún video"
                else:
                    result.artifact = RealArtifact(video=ctx.video)
                    logger.info(f"✅ Job {job_id} terminado: {ctx.video.path}")

            if result.failed_step is not None and self.settings.fallback_enabled:
                result.artifact = self._synthetic(ctx, result.error or "fallo desconocido")
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        return result

    def _fail(self, result: WorkflowResult, step: WorkflowStep, error: Exception) -> None:
        logger.error(f"❌ [{result.job_id}] {step.value} falló: {error}")
        result.step_status[step] = StepStatus(success=False, error=str(error))
        result.failed_step = step
        result.error = str(error)

    # --- Pasos ---

    def _load_artist_data(self, ctx: JobContext) -> None:
        if ctx.request.audio_source == AudioSource.UPLOADED:
            # Con audio propio el catálogo solo aporta nombre y género
            selector = ctx.request.artist_selector
            if not self.catalog.artists:
                name = selector if selector != "random" else "Unknown Artist"
                ctx.artist = Artist(name=name)
            elif selector == "random":
                ctx.artist = self.catalog.random()
            else:
                ctx.artist = self.catalog.get(selector)
        else:
            ctx.artist, ctx.mix = self.catalog.select(
                ctx.request.artist_selector,
                min_duration_seconds=ctx.request.target_duration_seconds,
            )

    def _acquire_options(self, ctx: JobContext) -> AcquireOptions:
        request = ctx.request
        return AcquireOptions(
            duration_seconds=request.target_duration_seconds,
            fade_in_seconds=request.fade_in_seconds,
            fade_out_seconds=request.fade_out_seconds,
            start_time_seconds=request.start_time_seconds,
            volume_gain=request.volume_gain,
            quality_tier=request.quality_tier,
        )

    def _acquire_remote_audio(self, ctx: JobContext) -> None:
        if ctx.mix is None:
            raise ValidationError("No hay mix seleccionado para descargar")

        attempts = 1 + max(0, self.settings.stage_retries)
        for attempt in retrying(attempts, (NetworkError,), min_wait=1.0, max_wait=10.0):
            with attempt:
                ctx.clip = self.acquirer.acquire(
                    ctx.mix.source_url,
                    self._acquire_options(ctx),
                    work_dir=ctx.work_dir,
                    token=ctx.token,
                )

    def _process_uploaded_audio(self, ctx: JobContext) -> None:
        ctx.clip = self.acquirer.acquire(
            ctx.request.uploaded_audio_path,
            self._acquire_options(ctx),
            work_dir=ctx.work_dir,
            token=ctx.token,
        )

    def _generate_visuals(self, ctx: JobContext) -> None:
        ctx.visuals = self.layout_builder.generate_visuals(ctx.artist, ctx.request.visual_style)
        if ctx.request.visual_style == VisualStyle.ENHANCED and ctx.clip is not None:
            ctx.waveform = self.acquirer.waveform(ctx.clip, WAVEFORM_POINTS)

    def _build_layout(self, ctx: JobContext) -> None:
        ctx.layout = self.layout_builder.build(
            ctx.artist.name,
            ctx.title,
            ctx.visuals,
            waveform=ctx.waveform,
        )
        self.layout_builder.write(ctx.layout, ctx.work_dir)

    def _ai_background(self, ctx: JobContext) -> None:
        ctx.visuals = self.enricher.enrich(ctx.artist, ctx.visuals)
        self._build_layout(ctx)

    def _compose_video(self, ctx: JobContext) -> None:
        if ctx.clip is None or ctx.layout is None:
            raise ValidationError("Faltan audio o layout para componer")

        visual: Union[FrameSequence, Path]
        options = RenderOptions(
            width=ctx.layout.width,
            height=ctx.layout.height,
            fps=self.settings.fps,
            total_duration_seconds=ctx.clip.clip_duration_seconds,
        )
        if ctx.request.render_mode == RenderMode.STILL:
            visual = self.renderer.render_still(ctx.layout.html, options, work_dir=ctx.work_dir)
        else:
            visual = self.renderer.render_frames(
                ctx.layout.html,
                ctx.layout.directives,
                options,
                work_dir=ctx.work_dir,
                token=ctx.token,
            )

        ctx.video = self.composer.compose(
            visual,
            ctx.clip,
            ComposeOptions(
                quality_tier=ctx.request.quality_tier,
                metadata_tags=ctx.metadata_tags(),
                fps=self.settings.fps,
            ),
            work_dir=ctx.work_dir,
            token=ctx.token,
        )

    def _quality_optimization(self, ctx: JobContext) -> None:
        """Sin apuro: re-codifica con el tier ultra y reemplaza el archivo."""
        if ctx.video is None:
            raise ValidationError("No hay video para optimizar")
        if ctx.video.quality_tier == QualityTier.ULTRA:
            logger.info("El video ya está en tier ultra")
            return

        previous = Path(ctx.video.path)
        try:
            optimized = self.composer.convert(
                previous,
                "mp4",
                ConvertOptions(quality_tier=QualityTier.ULTRA),
                token=ctx.token,
            )
        except MixreelError:
            # El job falla: no dejar el video compuesto huérfano en la salida
            previous.unlink(missing_ok=True)
            ctx.video = None
            raise
        previous.unlink(missing_ok=True)
        ctx.video = optimized

    # --- Modo degradado ---

    def _synthetic(self, ctx: JobContext, reason: str) -> SyntheticArtifact:
        """Video mudo de un color; si tampoco se puede, solo metadatos."""
        duration = ctx.clip.clip_duration_seconds if ctx.clip else ctx.request.target_duration_seconds
        color = ctx.visuals.background_color if ctx.visuals else "blue"
        tags = ctx.metadata_tags()

        try:
            path = self.composer.create_color_video(duration, color=color)
        except MixreelError as e:
            logger.warning(f"⚠️ Sin video de reemplazo ({e}); se devuelven solo metadatos")
            return SyntheticArtifact(reason=reason, duration_seconds=duration, metadata_tags=tags)

        logger.warning(f"⚠️ Job {ctx.job_id}: se entrega video sintético ({reason})")
        return SyntheticArtifact(reason=reason, path=str(path), duration_seconds=duration, metadata_tags=tags)
