"""
Renderizador de Frames
Carga un layout HTML en Chromium, aplica las directivas de animación frame a
frame y captura una imagen PNG por cada frame de salida.
"""
import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional, Sequence

from playwright.sync_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeoutError
from pydantic import BaseModel, Field

from ..config import Settings
from ..domain.errors import RenderError, ValidationError
from ..domain.models import AnimationDirective, FrameSequence
from ..utils.cancellation import CancellationToken, check
from .animations import frame_updates
from .browser import BrowserPool

logger = logging.getLogger(__name__)

FRAME_PATTERN = "frame_%06d.png"

# Aplica los estilos y confirma el frame en el siguiente requestAnimationFrame
APPLY_SCRIPT = """
() => {
    window.__mixreelFrame = -1;
    window.__mixreelApply = (updates, frame) => {
        for (const update of updates) {
            const element = document.querySelector(update.selector);
            if (!element) continue;
            for (const [prop, value] of Object.entries(update.style)) {
                element.style[prop] = value;
            }
            if (update.bars) {
                element.innerHTML = update.bars.map(bar =>
                    `<div class="waveform-bar" style="height: ${bar.height}%; opacity: ${bar.opacity}"></div>`
                ).join('');
            }
        }
        requestAnimationFrame(() => { window.__mixreelFrame = frame; });
    };
}
"""

APPLY_CALL = "([updates, frame]) => window.__mixreelApply(updates, frame)"
SETTLED_CHECK = "frame => window.__mixreelFrame === frame"


class RenderOptions(BaseModel):
    width: int = Field(1080, gt=0)
    height: int = Field(1080, gt=0)
    fps: int = Field(30, gt=0)
    total_duration_seconds: float = Field(30.0, gt=0)


class FrameRenderer:
    """Produce secuencias de frames (o una imagen fija) desde HTML."""

    def __init__(self, settings: Settings, pool: Optional[BrowserPool] = None):
        self.settings = settings
        self.pool = pool or BrowserPool()

    def render_frames(
        self,
        html_layout: str,
        directives: Sequence[AnimationDirective],
        options: RenderOptions,
        work_dir: Optional[Path] = None,
        token: Optional[CancellationToken] = None
    ) -> FrameSequence:
        """
        Renderiza un frame por cada 1/fps segundos del video.

        Args:
            html_layout: Documento HTML completo
            directives: Directivas de animación evaluadas en cada frame
            options: Resolución, fps y duración total
            work_dir: Directorio del job (scratch por defecto)
            token: Token de cancelación

        Returns:
            FrameSequence con los PNG en orden temporal

        Raises:
            RenderError: Fallo del navegador o timeout esperando un frame
            CancelledError: Si se cancela entre frames
        """
        if not html_layout.strip():
            raise ValidationError("El layout HTML está vacío")

        total = options.total_duration_seconds
        frame_count = FrameSequence.expected_frame_count(total, options.fps)
        frames_dir = Path(work_dir or self.settings.scratch_dir) / f"frames_{uuid.uuid4().hex[:12]}"
        frames_dir.mkdir(parents=True, exist_ok=True)

        log_every = max(1, frame_count // 10)
        frame_paths = []
        logger.info(f"🎬 Renderizando {frame_count} frames ({options.width}x{options.height} @ {options.fps}fps)")

        try:
            with self.pool.page(options.width, options.height) as page:
                self._load(page, html_layout)
                page.evaluate(APPLY_SCRIPT)

                for index in range(frame_count):
                    check(token, "render de frames")
                    t = index / options.fps
                    updates = frame_updates(directives, t, total)
                    frame_path = frames_dir / (FRAME_PATTERN % index)

                    page.evaluate(APPLY_CALL, [updates, index])
                    page.wait_for_function(
                        SETTLED_CHECK,
                        arg=index,
                        timeout=self.settings.render_settle_timeout_ms
                    )
                    page.screenshot(path=str(frame_path), type="png", full_page=False)
                    frame_paths.append(str(frame_path))

                    if index % log_every == 0:
                        logger.info(f"⏳ Frames {index}/{frame_count} ({index * 100 // frame_count}%)")

        except PlaywrightTimeoutError as e:
            shutil.rmtree(frames_dir, ignore_errors=True)
            raise RenderError("Timeout esperando que la página aplique el frame", str(e)) from e
        except PlaywrightError as e:
            shutil.rmtree(frames_dir, ignore_errors=True)
            raise RenderError("Error del navegador durante el render", str(e)) from e
        except Exception:
            shutil.rmtree(frames_dir, ignore_errors=True)
            raise

        logger.info(f"✅ {frame_count} frames renderizados")
        return FrameSequence(
            frame_directory=str(frames_dir),
            ordered_frame_paths=frame_paths,
            frame_count=frame_count,
            fps=options.fps,
            width=options.width,
            height=options.height,
            total_duration_seconds=total,
        )

    def render_still(
        self,
        html_layout: str,
        options: RenderOptions,
        work_dir: Optional[Path] = None
    ) -> Path:
        """Captura una sola imagen del layout (modo imagen en bucle)."""
        if not html_layout.strip():
            raise ValidationError("El layout HTML está vacío")

        still_path = Path(work_dir or self.settings.scratch_dir) / f"still_{uuid.uuid4().hex[:12]}.png"
        still_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with self.pool.page(options.width, options.height) as page:
                self._load(page, html_layout)
                page.screenshot(path=str(still_path), type="png", full_page=False)
        except PlaywrightError as e:
            still_path.unlink(missing_ok=True)
            raise RenderError("Error capturando la imagen fija", str(e)) from e

        logger.info(f"🖼️ Imagen fija capturada: {still_path.name}")
        return still_path

    def _load(self, page: Page, html_layout: str) -> None:
        page.set_content(
            html_layout,
            wait_until="load",
            timeout=self.settings.page_load_timeout_ms
        )
