"""
Reintentos con exponential backoff y rate limiting para servicios externos.
"""

import logging
import threading
import time
from collections import defaultdict
from datetime import datetime, timedelta

from tenacity import (
    Retrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

logger = logging.getLogger(__name__)


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 60.0,
    exceptions: tuple = (Exception,),
):
    """
    Decorador para reintentar funciones con exponential backoff.

    Args:
        max_attempts: Número máximo de intentos
        min_wait: Tiempo mínimo de espera entre intentos (segundos)
        max_wait: Tiempo máximo de espera entre intentos (segundos)
        exceptions: Tupla de excepciones que disparan un reintento

    Returns:
        Decorador configurado
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def retrying(
    max_attempts: int,
    exceptions: tuple,
    min_wait: float = 1.0,
    max_wait: float = 10.0,
) -> Retrying:
    """
    Igual que with_retry pero para usar en línea (for attempt in retrying(...)).
    Re-lanza la última excepción original al agotar los intentos.
    """
    return Retrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


class RateLimiter:
    """
    Rate limiter por endpoint (ventana fija).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._window_start: dict[str, datetime] = defaultdict(lambda: datetime.min)
        self._request_counts: dict[str, int] = defaultdict(int)
        self._limits: dict[str, dict] = {
            "default": {"requests": 60, "period_seconds": 60},
            "openrouter": {"requests": 100, "period_seconds": 60},
        }

    def set_limit(self, endpoint: str, requests: int, period_seconds: int) -> None:
        self._limits[endpoint] = {
            "requests": requests,
            "period_seconds": period_seconds
        }

    def _get_limit(self, endpoint: str) -> dict:
        return self._limits.get(endpoint, self._limits["default"])

    def wait_if_needed(self, endpoint: str) -> float:
        """
        Espera si es necesario para cumplir con el rate limit.

        Returns:
            Tiempo esperado en segundos
        """
        with self._lock:
            limit = self._get_limit(endpoint)
            now = datetime.now()
            period = timedelta(seconds=limit["period_seconds"])

            if now - self._window_start[endpoint] > period:
                self._request_counts[endpoint] = 0
                self._window_start[endpoint] = now

            waited = 0.0
            if self._request_counts[endpoint] >= limit["requests"]:
                waited = (period - (now - self._window_start[endpoint])).total_seconds()
                if waited > 0:
                    logger.info(f"Rate limit alcanzado para {endpoint}. Esperando {waited:.1f}s")
                    time.sleep(waited)
                self._request_counts[endpoint] = 0
                self._window_start[endpoint] = datetime.now()

            self._request_counts[endpoint] += 1
            return max(0.0, waited)


# Instancia compartida por todos los clientes de servicios externos
global_rate_limiter = RateLimiter()
