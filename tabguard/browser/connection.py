"""
BrowserConnection - подключение к уже запущенному Chrome через CDP.

Пользователь запускает Chrome с --remote-debugging-port, и агент
работает в его авторизованной сессии, не запуская свой браузер.
"""

import logging
from typing import List, Optional

from playwright.async_api import (
    async_playwright,
    Playwright,
    Browser,
    Page,
    Error as PlaywrightError,
)

from ..config import BrowserConfig, get_config


logger = logging.getLogger(__name__)


class BrowserError(Exception):
    """Базовое исключение для ошибок браузера."""
    pass


class BrowserConnectionError(BrowserError):
    """Не удалось подключиться к Chrome."""
    pass


class BrowserConnection:
    """
    Подключение к Chrome через Chrome DevTools Protocol.

    Example:
        ```python
        connection = BrowserConnection()
        pages = await connection.get_all_pages()
        await connection.disconnect()
        ```
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        """
        Args:
            config: Конфигурация браузера. Если не указана,
                   используется глобальная конфигурация.
        """
        self.config = config or get_config().browser
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    @property
    def endpoint(self) -> str:
        return self.config.cdp_endpoint

    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def connect(self) -> Browser:
        """
        Подключается к Chrome (если ещё не подключены).

        Raises:
            BrowserConnectionError: Если Chrome недоступен
        """
        if self.is_connected():
            return self._browser

        try:
            logger.info(f"Подключение к Chrome: {self.endpoint}")
            if self._playwright is None:
                self._playwright = await async_playwright().start()

            self._browser = await self._playwright.chromium.connect_over_cdp(
                self.endpoint,
                timeout=self.config.connect_timeout,
            )
            self._browser.on("disconnected", self._on_disconnected)
            logger.info("Подключение к Chrome установлено")
            return self._browser

        except PlaywrightError as e:
            logger.error(f"Ошибка подключения к Chrome: {e}")
            raise BrowserConnectionError(
                f"Failed to connect to Chrome at {self.endpoint}. "
                f"Make sure Chrome is running with --remote-debugging-port: {e}"
            ) from e

    async def get_all_pages(self) -> List[Page]:
        """Все открытые страницы во всех контекстах браузера."""
        browser = await self.connect()
        pages: List[Page] = []
        for context in browser.contexts:
            pages.extend(page for page in context.pages if not page.is_closed())
        return pages

    async def disconnect(self) -> None:
        """
        Отключается от Chrome.

        Сам браузер пользователя не закрывается: для connect_over_cdp
        close() лишь разрывает соединение.
        """
        if self._browser is not None:
            try:
                await self._browser.close()
                logger.info("Отключено от Chrome")
            except PlaywrightError as e:
                logger.warning(f"Ошибка при отключении: {e}")
            self._browser = None

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    def _on_disconnected(self, _browser: Browser) -> None:
        logger.warning("Браузер отключился")
        self._browser = None
