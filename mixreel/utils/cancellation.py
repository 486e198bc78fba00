"""
Token de cancelación que se pasa a cada etapa del pipeline.
"""
import threading
from typing import Optional

from ..domain.errors import CancelledError


class CancellationToken:
    """Señal cooperativa de cancelación (thread-safe)."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelado por el usuario") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "") -> None:
        if self._event.is_set():
            where = f" durante {stage}" if stage else ""
            raise CancelledError(f"Operación cancelada{where}", self.reason)

    def wait(self, timeout: float) -> bool:
        """Duerme hasta `timeout` o hasta que se cancele. True si fue cancelado."""
        return self._event.wait(timeout)


def check(token: Optional[CancellationToken], stage: str = "") -> None:
    """Atajo para cuando el token es opcional."""
    if token is not None:
        token.raise_if_cancelled(stage)
