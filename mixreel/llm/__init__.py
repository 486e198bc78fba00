"""Servicio de completado de texto (opcional)."""

from .completion import OpenRouterCompletion, TextCompletionService

__all__ = ["OpenRouterCompletion", "TextCompletionService"]
