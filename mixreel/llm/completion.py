"""
Servicio de completado de texto.
El pipeline solo conoce el protocolo; OpenRouter (SDK de OpenAI) es la
implementación por defecto.
"""

import logging
import os
from typing import Optional, Protocol

import openai
from dotenv import load_dotenv
from openai import OpenAI

from ..domain.errors import CompletionError
from ..utils.backoff import RateLimiter, global_rate_limiter, with_retry
from ..utils.cache import ContentCache

load_dotenv()
logger = logging.getLogger(__name__)


class TextCompletionService(Protocol):
    """Cualquier cosa que convierta un prompt en texto."""

    def complete(self, prompt: str, **options) -> str:
        ...


class OpenRouterCompletion:
    """Cliente de completado sobre OpenRouter."""

    BASE_URL = "https://openrouter.ai/api/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        cache: Optional[ContentCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        client: Optional[OpenAI] = None
    ):
        """
        Args:
            api_key: Clave de OpenRouter (OPENROUTER_API_KEY por defecto)
            model: Modelo a usar (LLM_MODEL_PRIMARY por defecto)
            cache: Cache de respuestas
            rate_limiter: Limitador compartido
            client: Cliente OpenAI ya construido (tests)
        """
        self.api_key = api_key or os.getenv("OPENROUTER_API_KEY")
        self.model = model or os.getenv("LLM_MODEL_PRIMARY", "qwen/qwen3-235b-a22b-2507")
        self.cache = cache
        self.rate_limiter = rate_limiter or global_rate_limiter

        if client is not None:
            self.client = client
        elif self.api_key:
            self.client = OpenAI(base_url=self.BASE_URL, api_key=self.api_key)
        else:
            logger.warning("OPENROUTER_API_KEY no configurada")
            self.client = None

    @property
    def available(self) -> bool:
        return self.client is not None

    def complete(
        self,
        prompt: str,
        system: str = "",
        temperature: float = 0.7,
        max_tokens: int = 500,
        **options
    ) -> str:
        """
        Completa un prompt (con cache por prompt + modelo + parámetros).

        Raises:
            CompletionError: Si el cliente no está configurado o la API falla
        """
        if not self.client:
            raise CompletionError("Cliente OpenRouter no configurado")

        cache_key = ContentCache.make_key("completion", self.model, system, prompt, temperature, max_tokens)
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Respuesta tomada del cache")
                return cached

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            text = self._call_llm(messages, temperature=temperature, max_tokens=max_tokens)
        except openai.OpenAIError as e:
            raise CompletionError(f"Error llamando a {self.model}", str(e)) from e

        if not text:
            raise CompletionError(f"{self.model} devolvió una respuesta vacía")

        if self.cache is not None:
            self.cache.set(cache_key, text)
        return text

    @with_retry(max_attempts=3, min_wait=2.0, max_wait=30.0, exceptions=(openai.APIConnectionError, openai.RateLimitError))
    def _call_llm(self, messages: list[dict], temperature: float, max_tokens: int) -> Optional[str]:
        self.rate_limiter.wait_if_needed("openrouter")
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            extra_headers={"X-Title": "Mixreel"}
        )
        return response.choices[0].message.content
