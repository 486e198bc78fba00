"""
Pipeline principal.
Arma los componentes a partir de Settings, ejecuta pedidos (uno o en lote)
y expone la CLI: python -m mixreel.pipeline
"""

import json
import logging
import queue
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .audio.acquirer import AudioAcquirer
from .catalog import ArtistCatalog
from .config import Settings
from .director.parser import RequestParser
from .domain.errors import MixreelError
from .domain.models import (
    AudioSource,
    MediaRequest,
    QualityTier,
    RealArtifact,
    RenderMode,
    Urgency,
    VisualStyle,
    WorkflowResult,
    WorkflowStep,
)
from .llm.completion import OpenRouterCompletion
from .storage.cleanup import TempSweeper
from .utils.cache import ContentCache
from .utils.cancellation import CancellationToken
from .video.composer import VideoComposer
from .visuals.background import BackgroundEnricher
from .visuals.browser import BrowserPool
from .visuals.layout import LayoutBuilder
from .visuals.renderer import FrameRenderer
from .workflow.executor import WorkflowExecutor
from .workflow.planner import WorkflowPlanner

load_dotenv()
logger = logging.getLogger(__name__)
console = Console()


class MixVideoPipeline:
    """Orquestador: pedido -> plan -> ejecución -> artefacto."""

    def __init__(self, settings: Optional[Settings] = None):
        """
        Inicializa el pipeline.

        Args:
            settings: Configuración (se carga de config/config.yaml + entorno si es None)
        """
        self.settings = settings or Settings.load()
        self.settings.ensure_dirs()

        self.cache = ContentCache(str(self.settings.cache_dir))
        self.completion = OpenRouterCompletion(
            api_key=self.settings.openrouter_api_key,
            model=self.settings.llm_model,
            cache=self.cache,
        )
        completion = self.completion if self.completion.available else None

        self.catalog = ArtistCatalog(self.settings.catalog_path)
        self.browser_pool = BrowserPool()
        self.acquirer = AudioAcquirer(self.settings)
        self.renderer = FrameRenderer(self.settings, self.browser_pool)
        self.composer = VideoComposer(self.settings)
        self.planner = WorkflowPlanner()
        self.parser = RequestParser()
        self.executor = WorkflowExecutor(
            self.settings,
            self.catalog,
            self.acquirer,
            self.renderer,
            self.composer,
            layout_builder=LayoutBuilder(self.settings.width, self.settings.height),
            enricher=BackgroundEnricher(completion),
        )
        self.sweeper = TempSweeper(
            [self.settings.scratch_dir, self.settings.output_dir],
            retention_hours=self.settings.retention_hours,
            interval_minutes=self.settings.sweep_interval_minutes,
        )

    def run(
        self,
        request: MediaRequest,
        token: Optional[CancellationToken] = None,
        skip: Sequence[WorkflowStep] = ()
    ) -> WorkflowResult:
        """Ejecuta un pedido completo y devuelve el resultado (nunca lanza por fallos de etapa)."""
        plan = self.planner.plan(request)
        logger.info(f"Plan: {[step.value for step in plan.steps]} ({plan.classification.value})")
        return self.executor.execute(plan, request, token=token, skip=skip)

    def run_batch(
        self,
        requests: Sequence[MediaRequest],
        max_workers: int = 2,
        token: Optional[CancellationToken] = None
    ) -> List[WorkflowResult]:
        """
        Ejecuta pedidos independientes en paralelo.

        Cada hilo toma pedidos de una cola compartida y reutiliza su propio
        navegador; al vaciarse la cola lo cierra.

        Returns:
            Resultados en el mismo orden que los pedidos
        """
        pending: "queue.Queue[int]" = queue.Queue()
        for index in range(len(requests)):
            pending.put(index)
        results: List[Optional[WorkflowResult]] = [None] * len(requests)

        def worker() -> None:
            try:
                while True:
                    try:
                        index = pending.get_nowait()
                    except queue.Empty:
                        return
                    results[index] = self.run(requests[index], token=token)
            finally:
                self.browser_pool.release()

        workers = max(1, min(max_workers, len(requests)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mixreel") as pool:
            futures = [pool.submit(worker) for _ in range(workers)]
            for future in futures:
                future.result()

        return [result for result in results if result is not None]

    def stats(self) -> dict:
        return {
            "output_dir": str(self.settings.output_dir),
            "scratch_dir": str(self.settings.scratch_dir),
            "artists": len(self.catalog.artists),
            "audio": self.acquirer.stats(),
            "cache": self.cache.get_stats(),
            "browsers_launched": self.browser_pool.launched_count,
        }

    def close(self) -> None:
        self.sweeper.stop()
        self.browser_pool.release()
        self.acquirer.close()
        self.cache.close()


def print_result(result: WorkflowResult) -> None:
    table = Table(title=f"Job {result.job_id} ({result.plan.classification.value})")
    table.add_column("Paso")
    table.add_column("Estado")
    table.add_column("Detalle")
    for step in result.plan.steps:
        status = result.step_status.get(step)
        if status is None:
            table.add_row(step.value, "[dim]pendiente[/dim]", "")
        elif status.skipped:
            table.add_row(step.value, "[yellow]omitido[/yellow]", "")
        elif status.success:
            table.add_row(step.value, "[green]ok[/green]", status.timestamp.strftime("%H:%M:%S"))
        else:
            table.add_row(step.value, "[red]falló[/red]", status.error or "")
    console.print(table)

    artifact = result.artifact
    if isinstance(artifact, RealArtifact):
        video = artifact.video
        console.print(Panel(
            f"[bold green]✅ {video.path}[/bold green]\n"
            f"{video.duration_seconds:.1f}s · {video.width}x{video.height} · "
            f"{video.video_codec}/{video.audio_codec} · {video.file_size_bytes / 1024 / 1024:.1f} MB",
            title="Video listo"
        ))
    elif artifact is not None:
        console.print(Panel(
            f"[bold yellow]⚠️ Resultado sintético (no es el video real)[/bold yellow]\n"
            f"Motivo: {artifact.reason}\n"
            f"Archivo: {artifact.path or '-'}",
            title="Modo degradado"
        ))
    else:
        console.print(f"[red]❌ Falló en {result.failed_step.value if result.failed_step else '?'}: {result.error}[/red]")


def build_request(args) -> MediaRequest:
    parser = RequestParser()
    if args.request:
        raw = Path(args.request).read_text(encoding="utf-8")
        return parser.parse(raw)

    data = {
        "artist_selector": args.artist,
        "target_duration_seconds": args.duration,
        "visual_style": args.style,
        "quality_tier": args.quality,
        "fade_in_seconds": args.fade_in,
        "fade_out_seconds": args.fade_out,
        "urgency": args.urgency,
        "render_mode": args.render_mode,
        "include_ai_background": args.ai_background,
    }
    if args.audio:
        data["audio_source"] = AudioSource.UPLOADED.value
        data["uploaded_audio_path"] = args.audio
    if args.start is not None:
        data["start_time_seconds"] = args.start
    return parser.parse(data)


def main():
    "Punto de entrada CLI."
    import argparse

    parser = argparse.ArgumentParser(
        description="Mixreel - Videos cortos a partir de mixes",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--artist", default="random", help="Nombre del artista o 'random'")
    parser.add_argument("--duration", type=float, default=30.0, help="Duración del clip en segundos")
    parser.add_argument("--style", choices=[s.value for s in VisualStyle], default=VisualStyle.CLASSIC.value)
    parser.add_argument("--quality", choices=[q.value for q in QualityTier], default=QualityTier.HIGH.value)
    parser.add_argument("--urgency", choices=[u.value for u in Urgency], default=Urgency.MEDIUM.value)
    parser.add_argument("--render-mode", choices=[m.value for m in RenderMode], default=RenderMode.FRAMES.value)
    parser.add_argument("--fade-in", type=float, default=2.0)
    parser.add_argument("--fade-out", type=float, default=2.0)
    parser.add_argument("--start", type=float, help="Segundo de inicio del clip (aleatorio si se omite)")
    parser.add_argument("--audio", help="Usar un archivo de audio local en lugar del catálogo")
    parser.add_argument("--ai-background", action="store_true", help="Agregar fondo procedural")
    parser.add_argument("--request", help="Archivo JSON con el pedido completo")
    parser.add_argument("--prompt", help="Pedido en lenguaje natural")
    parser.add_argument("--batch", help="Archivo JSON con una lista de pedidos")
    parser.add_argument("--workers", type=int, default=2, help="Hilos para --batch")
    parser.add_argument("--skip", nargs="+", choices=[s.value for s in WorkflowStep], default=[],
                        help="Pasos opcionales a omitir")
    parser.add_argument("--sweep", action="store_true", help="Solo limpiar archivos viejos")
    parser.add_argument("--stats", action="store_true", help="Mostrar estadísticas")
    parser.add_argument("-v", "--verbose", action="store_true")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    pipeline = MixVideoPipeline()
    token = CancellationToken()

    try:
        if args.sweep:
            summary = pipeline.sweeper.sweep()
            console.print(Panel(json.dumps(summary, indent=2), title="Limpieza"))
            return
        if args.stats:
            console.print(Panel(json.dumps(pipeline.stats(), indent=2, default=str), title="Estadísticas"))
            return

        pipeline.sweeper.start()

        if args.batch:
            records = json.loads(Path(args.batch).read_text(encoding="utf-8"))
            requests = [pipeline.parser.parse(record) for record in records]
            console.print(Panel(
                f"[bold cyan]Lote de {len(requests)} pedidos ({args.workers} hilos)[/bold cyan]",
                title="Mixreel"
            ))
            for result in pipeline.run_batch(requests, max_workers=args.workers, token=token):
                print_result(result)
            return

        if args.prompt:
            completion = pipeline.completion if pipeline.completion.available else None
            request = pipeline.parser.from_prompt(args.prompt, completion)
        else:
            request = build_request(args)

        console.print(Panel(
            f"[bold cyan]{request.artist_selector} · {request.target_duration_seconds:.0f}s · "
            f"{request.visual_style.value} · {request.quality_tier.value}[/bold cyan]",
            title="Mixreel"
        ))
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
            progress.add_task("Generando video...", total=None)
            result = pipeline.run(request, token=token, skip=[WorkflowStep(s) for s in args.skip])
        print_result(result)
        if not result.success:
            sys.exit(1)

    except KeyboardInterrupt:
        token.cancel("interrumpido con Ctrl+C")
        console.print("[yellow]Cancelado[/yellow]")
        sys.exit(130)
    except MixreelError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(2)
    finally:
        pipeline.close()


if __name__ == "__main__":
    main()
