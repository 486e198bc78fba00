"""
Limpieza de archivos viejos.
Borra del scratch y de la salida todo lo que supere la retención configurada,
para que el disco no crezca sin límite.
"""
import logging
import shutil
import threading
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TempSweeper:
    """Barrido por antigüedad (mtime) de directorios de trabajo."""

    def __init__(
        self,
        directories: Iterable[Path],
        retention_hours: float = 24.0,
        interval_minutes: int = 60,
        max_deletions: int = 500
    ):
        self.directories = [Path(d) for d in directories]
        self.retention_hours = max(retention_hours, 0.0)
        self.interval_minutes = max(interval_minutes, 1)
        self.max_deletions = max(max_deletions, 1)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @staticmethod
    def _hours_since(unix_ts: float, now_ts: float) -> float:
        return max(0.0, (now_ts - unix_ts) / 3600.0)

    @staticmethod
    def _entries(directory: Path) -> List[Tuple[Path, float]]:
        """Entradas con su mtime (lstat: los symlinks rotos también cuentan)."""
        entries = []
        for entry in directory.iterdir():
            try:
                entries.append((entry, entry.lstat().st_mtime))
            except FileNotFoundError:
                continue
        return entries

    def sweep(self, now_ts: Optional[float] = None) -> Dict[str, int]:
        """
        Ejecuta una pasada de limpieza.

        Returns:
            Resumen con archivos/directorios borrados y errores
        """
        now_ts = now_ts if now_ts is not None else time.time()
        summary = {"deleted_files": 0, "deleted_dirs": 0, "errors": 0}
        deletions_left = self.max_deletions

        for directory in self.directories:
            if not directory.is_dir():
                continue
            for entry, mtime in sorted(self._entries(directory), key=lambda item: item[1]):
                if deletions_left <= 0:
                    break
                if self._hours_since(mtime, now_ts) < self.retention_hours:
                    continue
                try:
                    if entry.is_dir() and not entry.is_symlink():
                        shutil.rmtree(entry)
                        summary["deleted_dirs"] += 1
                    else:
                        entry.unlink(missing_ok=True)
                        summary["deleted_files"] += 1
                    deletions_left -= 1
                except FileNotFoundError:
                    # Otro proceso (p. ej. el ejecutor) lo borró primero
                    continue
                except OSError as exc:
                    logger.warning(f"No se pudo borrar {entry}: {exc}")
                    summary["errors"] += 1

        if summary["deleted_files"] or summary["deleted_dirs"]:
            logger.info(
                f"🧹 Limpieza: {summary['deleted_files']} archivos y "
                f"{summary['deleted_dirs']} directorios eliminados"
            )
        return summary

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.sweep()
            except OSError as exc:
                logger.error(f"Error en la limpieza periódica: {exc}")
            self._stop.wait(self.interval_minutes * 60)

    def start(self) -> None:
        """Lanza la limpieza periódica en un hilo daemon (idempotente)."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="temp-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Limpieza periódica cada {self.interval_minutes} min (retención {self.retention_hours}h)")

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
