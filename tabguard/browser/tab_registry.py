"""
TabRegistry - стабильные идентификаторы вкладок и выбор активной.

Браузер не сообщает, какая вкладка активна с точки зрения ОС,
поэтому активная вкладка определяется цепочкой эвристик:

1. Страница, у которой document.hasFocus() == true
2. Последняя вкладка, отмеченная через mark_focused()
3. Первая вкладка, не являющаяся служебной/пустой
4. Последняя вкладка в списке
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError, Page

from ..constants import Security


logger = logging.getLogger(__name__)


@dataclass
class TabSummary:
    """
    Описание вкладки для list_tabs.

    Attributes:
        tab_id: Стабильный идентификатор
        title: Заголовок страницы
        url: Текущий URL
        active: Вкладка считается активной
        window_id: Идентификатор окна (если удалось получить через CDP)
    """
    tab_id: str
    title: str
    url: str
    active: bool
    window_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "tabId": self.tab_id,
            "title": self.title,
            "url": self.url,
            "active": self.active,
        }
        if self.window_id is not None:
            data["windowId"] = self.window_id
        return data


def is_internal_url(url: str) -> bool:
    """Служебные страницы браузера и about:blank."""
    return url == Security.BLANK_URL or url.startswith(Security.INTERNAL_URL_PREFIXES)


class TabRegistry:
    """
    Реестр вкладок.

    Идентификатор вкладки - targetId из CDP (если доступен) или
    локальный "tab-N". Идентификатор не меняется, пока страница открыта.
    refresh() нужно вызывать перед любым поиском по id.

    Example:
        ```python
        registry = TabRegistry()
        pages = context.pages
        await registry.refresh(pages)
        page = await registry.get_active_page(pages)
        tab_id = await registry.get_id(page)
        ```
    """

    def __init__(self):
        self._ids: Dict[Page, str] = {}
        self._pages: Dict[str, Page] = {}
        self._counter = 0
        self._last_focused_id: Optional[str] = None

    async def refresh(self, pages: Sequence[Page]) -> None:
        """Забывает закрытые вкладки и назначает id новым."""
        current = set(pages)
        for page in [p for p in self._ids if p not in current]:
            tab_id = self._ids.pop(page)
            self._pages.pop(tab_id, None)
            logger.debug(f"Вкладка закрыта: {tab_id}")

        if self._last_focused_id and self._last_focused_id not in self._pages:
            self._last_focused_id = None

        for page in pages:
            await self.get_id(page)

    async def get_id(self, page: Page) -> str:
        """Идентификатор вкладки (мемоизирован)."""
        existing = self._ids.get(page)
        if existing is not None:
            return existing

        tab_id = await self._get_target_id(page)
        if not tab_id or tab_id in self._pages:
            self._counter += 1
            tab_id = f"tab-{self._counter}"

        # Повторная проверка: пока ждали CDP, id мог назначить другой вызов
        existing = self._ids.get(page)
        if existing is not None:
            return existing

        self._ids[page] = tab_id
        self._pages[tab_id] = page
        logger.debug(f"Новая вкладка {tab_id}: {page.url}")
        return tab_id

    def get_page(self, tab_id: str) -> Optional[Page]:
        """Страница по id или None."""
        return self._pages.get(tab_id)

    async def mark_focused(self, page: Page) -> None:
        """Запоминает вкладку как последнюю использованную."""
        self._last_focused_id = await self.get_id(page)

    async def get_active_page(self, pages: Sequence[Page]) -> Optional[Page]:
        """
        Определяет активную вкладку.

        Args:
            pages: Текущий снимок открытых страниц

        Returns:
            Page | None: Активная страница; None для пустого списка
        """
        await self.refresh(pages)
        if not pages:
            return None

        focused = await self._find_focused_page(pages)
        if focused is not None:
            return focused

        if self._last_focused_id:
            last_focused = self.get_page(self._last_focused_id)
            if last_focused is not None:
                return last_focused

        for page in pages:
            if not is_internal_url(page.url):
                return page

        return pages[-1]

    async def list_tabs(self, pages: Sequence[Page]) -> List[TabSummary]:
        """Описание всех вкладок; ровно одна отмечена активной."""
        active_page = await self.get_active_page(pages)
        active_id = await self.get_id(active_page) if active_page is not None else None

        summaries = []
        for page in pages:
            tab_id = await self.get_id(page)
            summaries.append(TabSummary(
                tab_id=tab_id,
                title=await safe_title(page),
                url=page.url,
                active=tab_id == active_id,
                window_id=await self._get_window_id(page),
            ))
        return summaries

    async def _find_focused_page(self, pages: Sequence[Page]) -> Optional[Page]:
        async def has_focus(page: Page) -> bool:
            if is_internal_url(page.url):
                return False
            try:
                return bool(await page.evaluate("() => document.hasFocus()"))
            except PlaywrightError as e:
                logger.debug(f"Проверка фокуса не удалась для {page.url}: {e}")
                return False

        states = await asyncio.gather(*(has_focus(page) for page in pages))
        for page, focused in zip(pages, states):
            if focused:
                return page
        return None

    async def _get_target_id(self, page: Page) -> Optional[str]:
        target_info = await self._get_target_info(page)
        return target_info.get("targetId") if target_info else None

    async def _get_target_info(self, page: Page) -> Optional[Dict[str, Any]]:
        try:
            session = await page.context.new_cdp_session(page)
            try:
                result = await session.send("Target.getTargetInfo")
            finally:
                await session.detach()
        except PlaywrightError as e:
            logger.debug(f"CDP недоступен для вкладки: {e}")
            return None
        return result.get("targetInfo") if isinstance(result, dict) else None

    async def _get_window_id(self, page: Page) -> Optional[str]:
        try:
            session = await page.context.new_cdp_session(page)
            try:
                info = await session.send("Target.getTargetInfo")
                target_id = (info.get("targetInfo") or {}).get("targetId")
                if not target_id:
                    return None
                result = await session.send(
                    "Browser.getWindowForTarget", {"targetId": target_id}
                )
            finally:
                await session.detach()
        except PlaywrightError as e:
            logger.debug(f"Не удалось получить windowId: {e}")
            return None
        window_id = result.get("windowId")
        return str(window_id) if window_id is not None else None


async def safe_title(page: Page) -> str:
    """Заголовок страницы; пустая строка, если страница недоступна."""
    try:
        return await page.title()
    except PlaywrightError:
        return ""
