"""
Pool de navegadores headless (Playwright / Chromium).
La API síncrona de Playwright no se puede compartir entre hilos, así que se
mantiene un navegador por hilo de trabajo y se reutiliza entre renders.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from playwright.sync_api import Browser, Error as PlaywrightError, Page, sync_playwright

from ..domain.errors import RenderError

logger = logging.getLogger(__name__)

LAUNCH_ARGS = ["--disable-dev-shm-usage", "--no-sandbox"]


class BrowserPool:
    """Un navegador Chromium por hilo, páginas de vida corta."""

    def __init__(self, headless: bool = True, launch_args: Optional[List[str]] = None):
        self.headless = headless
        self.launch_args = launch_args or LAUNCH_ARGS
        self._local = threading.local()
        self._lock = threading.Lock()
        self._launched = 0

    def _browser(self) -> Browser:
        browser = getattr(self._local, "browser", None)
        if browser is not None:
            if browser.is_connected():
                return browser
            # Chromium murió: hay que detener el Playwright viejo antes de otro start()
            logger.warning("⚠️ Chromium desconectado, se reinicia")
            self.release()

        with self._lock:
            try:
                playwright = sync_playwright().start()
            except PlaywrightError as e:
                raise RenderError("No se pudo iniciar Playwright", str(e)) from e
            try:
                browser = playwright.chromium.launch(headless=self.headless, args=self.launch_args)
            except PlaywrightError as e:
                playwright.stop()
                raise RenderError("No se pudo iniciar Chromium", str(e)) from e
            self._launched += 1

        self._local.playwright = playwright
        self._local.browser = browser
        logger.info(f"🌐 Chromium iniciado en {threading.current_thread().name}")
        return browser

    @contextmanager
    def page(self, width: int, height: int) -> Iterator[Page]:
        """
        Abre una página con el viewport pedido y la cierra siempre al salir.

        Raises:
            RenderError: Si el navegador no arranca o no puede abrir la página
        """
        browser = self._browser()
        try:
            page = browser.new_page(viewport={"width": width, "height": height})
        except PlaywrightError as e:
            raise RenderError("No se pudo abrir una página", str(e)) from e

        try:
            yield page
        finally:
            try:
                page.close()
            except PlaywrightError as e:
                logger.warning(f"Error cerrando página: {e}")

    def release(self) -> None:
        """Cierra el navegador del hilo actual (si lo hay)."""
        browser = getattr(self._local, "browser", None)
        playwright = getattr(self._local, "playwright", None)
        self._local.browser = None
        self._local.playwright = None

        if browser is not None:
            try:
                browser.close()
            except PlaywrightError as e:
                logger.warning(f"Error cerrando Chromium: {e}")
        if playwright is not None:
            try:
                playwright.stop()
            except PlaywrightError as e:
                logger.warning(f"Error deteniendo Playwright: {e}")
            logger.info("🔒 Chromium cerrado")

    @property
    def launched_count(self) -> int:
        return self._launched
