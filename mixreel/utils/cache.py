"""
Cache en disco para respuestas del servicio de texto y fondos generados.
Evita repetir llamadas al LLM para el mismo prompt.
"""

import hashlib
import json
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from diskcache import Cache


class ContentCache:
    """Cache persistente en disco."""

    def __init__(self, cache_dir: str = "./cache", default_ttl_hours: int = 24):
        """
        Inicializa el cache.

        Args:
            cache_dir: Directorio para almacenar el cache
            default_ttl_hours: Tiempo de vida por defecto en horas
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.cache = Cache(str(self.cache_dir))
        self.default_ttl = timedelta(hours=default_ttl_hours)

    @staticmethod
    def make_key(namespace: str, *parts: Any) -> str:
        """Clave estable a partir de un namespace y partes serializables."""
        raw = json.dumps(parts, sort_keys=True, default=str)
        digest = hashlib.sha256(raw.encode()).hexdigest()[:16]
        return f"{namespace}:{digest}"

    def get(self, key: str) -> Optional[Any]:
        return self.cache.get(key)

    def set(self, key: str, value: Any, ttl_hours: Optional[int] = None) -> None:
        ttl = timedelta(hours=ttl_hours) if ttl_hours else self.default_ttl
        self.cache.set(key, value, expire=ttl.total_seconds())

    def get_stats(self) -> dict:
        return {
            "size_bytes": self.cache.volume(),
            "items_count": len(self.cache),
            "directory": str(self.cache_dir)
        }

    def close(self) -> None:
        self.cache.close()
