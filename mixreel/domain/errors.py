"""
Errores tipados del pipeline.
Cada etapa lanza su propio tipo; el ejecutor de workflows los captura en el
límite de cada paso.
"""
from typing import Optional


class MixreelError(Exception):
    """Error base de todas las etapas."""

    stage = "pipeline"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class NetworkError(MixreelError):
    """Fallo de descarga o de conectividad."""
    stage = "network"


class ProbeError(MixreelError):
    """Archivo multimedia ilegible o corrupto."""
    stage = "probe"


class RenderError(MixreelError):
    """Fallo de la superficie de renderizado (navegador) o timeout."""
    stage = "render"


class CompositionError(MixreelError):
    """Fallo de FFmpeg al codificar o multiplexar."""
    stage = "composition"


class ValidationError(MixreelError):
    """Entrada o parámetro inválido, o archivo requerido inexistente."""
    stage = "validation"


class CancelledError(MixreelError):
    """La operación fue cancelada por quien la invocó."""
    stage = "cancelled"


class CompletionError(MixreelError):
    """El servicio de texto no está configurado o no respondió."""
    stage = "completion"
