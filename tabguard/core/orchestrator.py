"""
GuardedTools - инструменты браузера под контролем политики.

Каждое действие проходит один и тот же путь:

    выбор вкладки -> RequestContext -> decide()
        -> отказ: аудит "denied", POLICY_BLOCKED
        -> нужен токен: ConfirmationStore.create(), аудит
           "needs_confirmation", NEEDS_CONFIRMATION
        -> бюджет шагов (для изменяющих действий)
        -> действие в браузере -> аудит "allowed" / "confirmed"
        -> для извлечения контента - поиск prompt-injection

Состояние сессии хранится в GuardContext, который создаётся явно
и передаётся в GuardedTools. Глобальных синглтонов нет: несколько
независимых сессий (и тестов) могут работать параллельно.
"""

import base64
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from playwright.async_api import (
    Page,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from ..browser.connection import BrowserError
from ..browser.screenshots import downscale_png
from ..browser.tab_registry import TabRegistry, safe_title
from ..config import BrowserConfig, PolicyConfig
from ..constants import Limits, ReasonCodes, Timeouts
from ..security.audit import AuditLogger, AuditOutcome
from ..security.confirmations import ConfirmationStore
from ..security.injection import scan_text
from ..security.policy import PolicyDecision, RequestContext, decide
from ..security.redaction import redact_url
from .response import ErrorCode, ToolResponse, fail, ok
from .session_manager import SessionManager


logger = logging.getLogger(__name__)


class PageSource(Protocol):
    """Источник открытых страниц (BrowserConnection или подмена в тестах)."""

    async def get_all_pages(self) -> List[Page]:
        ...


@dataclass
class GuardContext:
    """
    Состояние одной сессии автоматизации.

    Attributes:
        config: Конфигурация политики
        tabs: Реестр вкладок
        session: Бюджет шагов и активная вкладка
        confirmations: Токены подтверждения
        audit: Журнал аудита
    """
    config: PolicyConfig
    tabs: TabRegistry = field(default_factory=TabRegistry)
    session: SessionManager = field(default_factory=SessionManager)
    confirmations: ConfirmationStore = field(default_factory=ConfirmationStore)
    audit: Optional[AuditLogger] = None

    def __post_init__(self):
        if self.audit is None:
            self.audit = AuditLogger(self.config)

    @classmethod
    def from_config(cls, config: PolicyConfig) -> "GuardContext":
        return cls(
            config=config,
            session=SessionManager(config.max_steps),
        )


_JS_QUERY_ALL = """
(nodes, payload) => nodes.slice(0, payload.limit).map((node) => {
    const text = node.innerText || node.textContent || '';
    const attrs = {};
    for (const name of payload.attrs) {
        const value = node.getAttribute(name);
        if (value !== null) {
            attrs[name] = value;
        }
    }
    return { text: text.trim(), attrs };
})
"""

_EXTRACTION_MODES = ("text", "html")
_WAIT_UNTIL = ("load", "domcontentloaded", "networkidle")


class GuardedTools:
    """
    Инструменты для внешнего агента.

    Example:
        ```python
        context = GuardContext.from_config(load_policy_config())
        tools = GuardedTools(context, BrowserConnection())

        result = await tools.click_element("#delete-account")
        if result.error_code is ErrorCode.NEEDS_CONFIRMATION:
            token = result.data["confirmationId"]
            # ... человек подтверждает ...
            await tools.confirm_action(token)
            result = await tools.click_element("#delete-account", confirmation_id=token)
        ```
    """

    def __init__(
        self,
        context: GuardContext,
        connection: PageSource,
        browser_config: Optional[BrowserConfig] = None,
    ):
        self.context = context
        self.connection = connection
        self.browser_config = browser_config or BrowserConfig()

    # ------------------------------------------------------------------
    # Вкладки
    # ------------------------------------------------------------------

    async def get_active_tab(self, tab_id: Optional[str] = None) -> ToolResponse:
        """URL и заголовок вкладки, к которой применяются действия."""
        resolved = await self._resolve_page(tab_id)
        if isinstance(resolved, ToolResponse):
            return resolved
        page = resolved

        return ok({
            "tabId": await self.context.tabs.get_id(page),
            "url": page.url,
            "title": await safe_title(page),
        })

    async def list_tabs(self) -> ToolResponse:
        """Все вкладки; ровно одна отмечена активной."""
        pages = await self._get_pages()
        if isinstance(pages, ToolResponse):
            return pages

        summaries = await self.context.tabs.list_tabs(pages)
        return ok({"tabs": [summary.to_dict() for summary in summaries]})

    async def activate_tab(self, tab_id: str) -> ToolResponse:
        """Делает вкладку активной для последующих действий без tab_id."""
        pages = await self._get_pages()
        if isinstance(pages, ToolResponse):
            return pages

        await self.context.tabs.refresh(pages)
        page = self.context.tabs.get_page(tab_id)
        if page is None:
            return fail(ErrorCode.TAB_NOT_FOUND, f"Tab not found: {tab_id}")

        try:
            await page.bring_to_front()
        except PlaywrightError as e:
            return fail(ErrorCode.ACTION_FAILED, f"Failed to activate tab: {e}")

        self.context.session.set_active_tab_id(tab_id)
        await self.context.tabs.mark_focused(page)
        logger.info(f"Активная вкладка: {tab_id}")
        return ok({"tabId": tab_id})

    # ------------------------------------------------------------------
    # Навигация и извлечение
    # ------------------------------------------------------------------

    async def navigate_and_extract(
        self,
        url: str,
        extraction_mode: str = "text",
        include_warnings: bool = True,
        tab_id: Optional[str] = None,
        confirmation_id: Optional[str] = None,
    ) -> ToolResponse:
        """Переходит на URL и возвращает содержимое страницы."""
        if extraction_mode not in _EXTRACTION_MODES:
            return fail(ErrorCode.INVALID_INPUT, f"Unknown extraction mode: {extraction_mode}")

        resolved = await self._resolve_page(tab_id)
        if isinstance(resolved, ToolResponse):
            return resolved
        page = resolved

        request = RequestContext(
            tool_name="navigate_and_extract",
            action_type="navigate",
            url=url,
            is_navigation=True,
        )
        blocked, confirmed = await self._authorize(
            request, f"Navigate to {redact_url(url)} and extract content", confirmation_id,
            budgeted=True, label="Navigation",
        )
        if blocked:
            return blocked

        try:
            await page.goto(url, wait_until="domcontentloaded")
            try:
                await page.wait_for_load_state("networkidle", timeout=Timeouts.WAIT_FOR_NAVIGATION)
            except PlaywrightTimeoutError:
                # Страница может держать постоянные соединения (websocket, polling)
                logger.debug(f"Network idle таймаут для {url}, продолжаем")
            await self.context.tabs.mark_focused(page)
            extracted = await self._extract(page, extraction_mode)
        except PlaywrightError as e:
            return await self._action_failed(request, "Failed to navigate", e)

        warnings = scan_text(extracted["text"]) if include_warnings else []
        audit_id = await self._log_success(request, confirmed, url=page.url)
        return ok(self._content_payload(extracted, extraction_mode, audit_id), warnings)

    async def extract_content(
        self,
        extraction_mode: str = "text",
        include_warnings: bool = True,
        tab_id: Optional[str] = None,
        confirmation_id: Optional[str] = None,
    ) -> ToolResponse:
        """Содержимое текущей страницы без навигации (только чтение)."""
        if extraction_mode not in _EXTRACTION_MODES:
            return fail(ErrorCode.INVALID_INPUT, f"Unknown extraction mode: {extraction_mode}")

        resolved = await self._resolve_page(tab_id)
        if isinstance(resolved, ToolResponse):
            return resolved
        page = resolved

        request = RequestContext(
            tool_name="extract_content",
            action_type="extract",
            url=page.url,
            is_read_only=True,
        )
        blocked, confirmed = await self._authorize(
            request, f"Read content of {redact_url(page.url)}", confirmation_id,
            budgeted=False, label="Extraction",
        )
        if blocked:
            return blocked

        try:
            extracted = await self._extract(page, extraction_mode)
        except PlaywrightError as e:
            return await self._action_failed(request, "Failed to extract content", e)

        warnings = scan_text(extracted["text"]) if include_warnings else []
        audit_id = await self._log_success(request, confirmed, url=page.url)
        return ok(self._content_payload(extracted, extraction_mode, audit_id), warnings)

    # ------------------------------------------------------------------
    # Взаимодействие с элементами
    # ------------------------------------------------------------------

    async def click_element(
        self,
        selector: str,
        tab_id: Optional[str] = None,
        confirmation_id: Optional[str] = None,
    ) -> ToolResponse:
        """Клик по элементу."""
        resolved = await self._resolve_page(tab_id)
        if isinstance(resolved, ToolResponse):
            return resolved
        page = resolved
        url = page.url

        request = RequestContext(
            tool_name="click_element",
            action_type="click",
            url=url,
            selector=selector,
            element_text=await self._safe_element_text(page, selector),
        )
        blocked, confirmed = await self._authorize(
            request, f"Click {selector} on {redact_url(url)}", confirmation_id,
            budgeted=True, label="Click",
        )
        if blocked:
            return blocked

        try:
            await page.wait_for_selector(selector, timeout=Timeouts.ELEMENT_WAIT)
            await page.click(selector)
        except PlaywrightError as e:
            return await self._action_failed(request, "Failed to click element", e)

        await self.context.tabs.mark_focused(page)
        audit_id = await self._log_success(request, confirmed, url=page.url)
        return ok({"message": f"Clicked element: {selector}", "auditId": audit_id})

    async def fill_input(
        self,
        selector: str,
        value: str,
        tab_id: Optional[str] = None,
        confirmation_id: Optional[str] = None,
    ) -> ToolResponse:
        """Заполняет поле ввода. Значение в аудит не попадает."""
        resolved = await self._resolve_page(tab_id)
        if isinstance(resolved, ToolResponse):
            return resolved
        page = resolved
        url = page.url

        request = RequestContext(
            tool_name="fill_input",
            action_type="fill",
            url=url,
            selector=selector,
        )
        blocked, confirmed = await self._authorize(
            request, f"Fill {selector} on {redact_url(url)}", confirmation_id,
            budgeted=True, label="Fill",
        )
        if blocked:
            return blocked

        try:
            await page.wait_for_selector(selector, timeout=Timeouts.ELEMENT_WAIT)
            await page.fill(selector, value)
        except PlaywrightError as e:
            return await self._action_failed(request, "Failed to fill input", e)

        await self.context.tabs.mark_focused(page)
        audit_id = await self._log_success(request, confirmed, url=page.url)
        return ok({"message": f"Filled input: {selector}", "auditId": audit_id})

    async def keyboard_type(
        self,
        text: str,
        tab_id: Optional[str] = None,
        confirmation_id: Optional[str] = None,
    ) -> ToolResponse:
        """Печатает текст в элемент с фокусом."""
        resolved = await self._resolve_page(tab_id)
        if isinstance(resolved, ToolResponse):
            return resolved
        page = resolved
        url = page.url

        request = RequestContext(tool_name="keyboard_type", action_type="keyboard_type", url=url)
        blocked, confirmed = await self._authorize(
            request, f"Type text on {redact_url(url)}", confirmation_id,
            budgeted=True, label="Keyboard input",
        )
        if blocked:
            return blocked

        try:
            await page.keyboard.type(text)
        except PlaywrightError as e:
            return await self._action_failed(request, "Failed to type text", e)

        await self.context.tabs.mark_focused(page)
        audit_id = await self._log_success(request, confirmed, url=page.url)
        return ok({"message": "Typed text via keyboard.", "auditId": audit_id})

    async def press_key(
        self,
        key: str,
        tab_id: Optional[str] = None,
        confirmation_id: Optional[str] = None,
    ) -> ToolResponse:
        """Нажимает клавишу. Enter считается чувствительным действием."""
        resolved = await self._resolve_page(tab_id)
        if isinstance(resolved, ToolResponse):
            return resolved
        page = resolved
        url = page.url

        request = RequestContext(tool_name="press_key", action_type="press_key", url=url, key=key)
        blocked, confirmed = await self._authorize(
            request, f"Press {key} on {redact_url(url)}", confirmation_id,
            budgeted=True, label="Key press",
        )
        if blocked:
            return blocked

        try:
            await page.keyboard.press(key)
        except PlaywrightError as e:
            return await self._action_failed(request, "Failed to press key", e)

        await self.context.tabs.mark_focused(page)
        audit_id = await self._log_success(request, confirmed, url=page.url)
        return ok({"message": f"Pressed key: {key}", "auditId": audit_id})

    # ------------------------------------------------------------------
    # Ожидание, запросы, скриншоты
    # ------------------------------------------------------------------

    async def wait_for_selector(
        self,
        selector: str,
        timeout_ms: Optional[int] = None,
        tab_id: Optional[str] = None,
        confirmation_id: Optional[str] = None,
    ) -> ToolResponse:
        """Ждёт появления элемента. Таймаут - это found=False, а не ошибка."""
        resolved = await self._resolve_page(tab_id)
        if isinstance(resolved, ToolResponse):
            return resolved
        page = resolved
        url = page.url

        request = RequestContext(
            tool_name="wait_for_selector",
            action_type="wait_for_selector",
            url=url,
            selector=selector,
        )
        blocked, confirmed = await self._authorize(
            request, f"Wait for {selector} on {redact_url(url)}", confirmation_id,
            budgeted=False, label="Wait",
        )
        if blocked:
            return blocked

        found = True
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms or Timeouts.WAIT_FOR_SELECTOR)
        except PlaywrightTimeoutError:
            found = False
        except PlaywrightError as e:
            return await self._action_failed(request, "Failed to wait for selector", e)

        title = await safe_title(page)
        audit_id = await self._log_success(request, confirmed, url=page.url)
        return ok({
            "found": found,
            "url": page.url,
            "title": title,
            "auditId": audit_id,
        })

    async def wait_for_navigation(
        self,
        timeout_ms: Optional[int] = None,
        wait_until: str = "load",
        tab_id: Optional[str] = None,
        confirmation_id: Optional[str] = None,
    ) -> ToolResponse:
        """Ждёт состояния загрузки страницы."""
        if wait_until not in _WAIT_UNTIL:
            return fail(ErrorCode.INVALID_INPUT, f"Unknown wait_until value: {wait_until}")

        resolved = await self._resolve_page(tab_id)
        if isinstance(resolved, ToolResponse):
            return resolved
        page = resolved
        url = page.url

        request = RequestContext(
            tool_name="wait_for_navigation",
            action_type="wait_for_navigation",
            url=url,
            is_navigation=True,
        )
        blocked, confirmed = await self._authorize(
            request, f"Wait for navigation on {redact_url(url)}", confirmation_id,
            budgeted=False, label="Navigation wait",
        )
        if blocked:
            return blocked

        try:
            await page.wait_for_load_state(
                wait_until, timeout=timeout_ms or Timeouts.WAIT_FOR_NAVIGATION
            )
        except PlaywrightError as e:
            return await self._action_failed(request, "Failed to wait for navigation", e)

        title = await safe_title(page)
        audit_id = await self._log_success(request, confirmed, url=page.url)
        return ok({"url": page.url, "title": title, "auditId": audit_id})

    async def query_selector_all(
        self,
        selector: str,
        attributes: Optional[Sequence[str]] = None,
        max_items: Optional[int] = None,
        tab_id: Optional[str] = None,
        confirmation_id: Optional[str] = None,
    ) -> ToolResponse:
        """Текст и атрибуты всех элементов по селектору."""
        resolved = await self._resolve_page(tab_id)
        if isinstance(resolved, ToolResponse):
            return resolved
        page = resolved
        url = page.url

        request = RequestContext(
            tool_name="query_selector_all",
            action_type="query_selector_all",
            url=url,
            selector=selector,
        )
        blocked, confirmed = await self._authorize(
            request, f"Query {selector} on {redact_url(url)}", confirmation_id,
            budgeted=False, label="Query",
        )
        if blocked:
            return blocked

        payload = {
            "attrs": list(attributes or []),
            "limit": max_items or Limits.MAX_QUERY_ITEMS,
        }
        try:
            items = await page.eval_on_selector_all(selector, _JS_QUERY_ALL, payload)
        except PlaywrightError as e:
            return await self._action_failed(request, "Failed to query elements", e)

        warnings = scan_text("\n".join(item.get("text", "") for item in items))
        audit_id = await self._log_success(request, confirmed, url=page.url)
        return ok({"items": items, "auditId": audit_id}, warnings)

    async def screenshot_tab(
        self,
        full_page: bool = False,
        path: Optional[str] = None,
        tab_id: Optional[str] = None,
        confirmation_id: Optional[str] = None,
    ) -> ToolResponse:
        """Скриншот вкладки: base64 PNG или файл по path."""
        resolved = await self._resolve_page(tab_id)
        if isinstance(resolved, ToolResponse):
            return resolved
        page = resolved
        url = page.url

        request = RequestContext(tool_name="screenshot_tab", action_type="screenshot", url=url)
        blocked, confirmed = await self._authorize(
            request, f"Take screenshot on {redact_url(url)}", confirmation_id,
            budgeted=False, label="Screenshot",
        )
        if blocked:
            return blocked

        try:
            raw = await page.screenshot(full_page=full_page, type="png", timeout=Timeouts.SCREENSHOT)
        except PlaywrightError as e:
            return await self._action_failed(request, "Failed to take screenshot", e)

        image = downscale_png(
            raw,
            self.browser_config.screenshot_max_width,
            self.browser_config.screenshot_max_height,
        )
        if path:
            target = Path(path)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(image)
            except OSError as e:
                return await self._action_failed(request, "Failed to save screenshot", e)
            audit_id = await self._log_success(request, confirmed, url=url)
            return ok({"path": str(target), "message": f"Screenshot saved to: {target}", "auditId": audit_id})

        audit_id = await self._log_success(request, confirmed, url=url)

        return ok({
            "screenshot": base64.b64encode(image).decode("ascii"),
            "message": "Screenshot captured as base64",
            "auditId": audit_id,
        })

    # ------------------------------------------------------------------
    # Подтверждения и сессия
    # ------------------------------------------------------------------

    async def confirm_action(self, confirmation_id: str) -> ToolResponse:
        """
        Одобряет токен. Само действие выполняется повторным вызовом
        исходного инструмента с confirmation_id.
        """
        entry = self.context.confirmations.approve(confirmation_id)
        if entry is None:
            return fail(ErrorCode.CONFIRMATION_EXPIRED, "Confirmation ID expired or invalid.")

        return ok({
            "confirmationId": entry.id,
            "actionSummary": entry.summary,
            "toolName": entry.tool_name,
        })

    async def deny_action(self, confirmation_id: str) -> ToolResponse:
        """Отклоняет и удаляет токен."""
        if not self.context.confirmations.deny(confirmation_id):
            return fail(ErrorCode.CONFIRMATION_EXPIRED, "Confirmation ID expired or invalid.")
        return ok({"confirmationId": confirmation_id, "denied": True})

    async def reset_session(self) -> ToolResponse:
        """Восстанавливает бюджет шагов и удаляет все ожидающие токены."""
        self.context.session.reset()
        self.context.confirmations.clear()
        return ok({"reset": True})

    async def get_session_status(self) -> ToolResponse:
        """Бюджет шагов, активная вкладка и число ожидающих подтверждений."""
        session = self.context.session
        return ok({
            "stepCount": session.step_count,
            "maxSteps": session.max_steps,
            "stepsRemaining": session.steps_remaining,
            "activeTabId": session.get_active_tab_id(),
            "pendingConfirmations": len(self.context.confirmations),
        })

    # ------------------------------------------------------------------
    # Внутреннее
    # ------------------------------------------------------------------

    async def _get_pages(self) -> Union[List[Page], ToolResponse]:
        try:
            pages = await self.connection.get_all_pages()
        except BrowserError as e:
            return fail(ErrorCode.BROWSER_UNAVAILABLE, str(e))
        if not pages:
            return fail(ErrorCode.NO_TABS, "No tabs found in the browser")
        return pages

    async def _resolve_page(self, tab_id: Optional[str]) -> Union[Page, ToolResponse]:
        """
        Вкладка для действия.

        Порядок: явный tab_id -> вкладка, выбранная через activate_tab
        (если ещё открыта) -> эвристика TabRegistry.get_active_page().
        """
        pages = await self._get_pages()
        if isinstance(pages, ToolResponse):
            return pages

        tabs = self.context.tabs
        await tabs.refresh(pages)

        if tab_id:
            page = tabs.get_page(tab_id)
            if page is None:
                return fail(ErrorCode.TAB_NOT_FOUND, f"Tab not found: {tab_id}")
        else:
            page = None
            active_tab_id = self.context.session.get_active_tab_id()
            if active_tab_id:
                page = tabs.get_page(active_tab_id)
            if page is None:
                page = await tabs.get_active_page(pages)
            if page is None:
                return fail(ErrorCode.NO_TABS, "No active tab found")

        await tabs.mark_focused(page)
        return page

    async def _authorize(
        self,
        request: RequestContext,
        summary: str,
        confirmation_id: Optional[str],
        *,
        budgeted: bool,
        label: str,
    ) -> Tuple[Optional[ToolResponse], bool]:
        """
        Проверка политики, токена и бюджета.

        Returns:
            Tuple[ToolResponse | None, bool]: (ответ-отказ или None,
            был ли использован одобренный токен)
        """
        decision = decide(request, self.context.config)

        if not decision.allowed:
            logger.warning(
                f"{request.tool_name} заблокирован политикой: {', '.join(decision.reason_codes)}"
            )
            audit_id = await self._log(request, AuditOutcome.DENIED, decision.reason_codes)
            return fail(
                ErrorCode.POLICY_BLOCKED,
                f"{label} blocked by policy.",
                data=self._policy_data(decision, audit_id),
            ), False

        confirmed = False
        if confirmation_id:
            entry = self.context.confirmations.consume_approved(confirmation_id, request.tool_name)
            if entry is None:
                codes = [ReasonCodes.CONFIRMATION_INVALID]
                audit_id = await self._log(request, AuditOutcome.DENIED, codes)
                return fail(
                    ErrorCode.CONFIRMATION_EXPIRED,
                    "Confirmation ID expired or invalid.",
                    data={"auditId": audit_id, "reasonCodes": codes},
                ), False
            confirmed = True
            logger.info(f"{request.tool_name}: использован токен {confirmation_id}")

        if decision.requires_confirmation and not confirmed:
            pending = self.context.confirmations.create(summary, request.tool_name)
            audit_id = await self._log(request, AuditOutcome.NEEDS_CONFIRMATION, decision.reason_codes)
            data = self._policy_data(decision, audit_id)
            data.update({"confirmationId": pending.id, "actionSummary": pending.summary})
            return fail(
                ErrorCode.NEEDS_CONFIRMATION,
                f"{label} requires confirmation.",
                data=data,
            ), False

        if budgeted and not self.context.session.record_step():
            codes = [ReasonCodes.MAX_STEPS_EXCEEDED]
            audit_id = await self._log(request, AuditOutcome.DENIED, codes)
            return fail(
                ErrorCode.MAX_STEPS_EXCEEDED,
                "Session step limit exceeded. Use reset_session to continue.",
                data={"auditId": audit_id, "reasonCodes": codes},
            ), False

        return None, confirmed

    async def _action_failed(
        self,
        request: RequestContext,
        message: str,
        error: Exception,
    ) -> ToolResponse:
        logger.error(f"{request.tool_name}: {message}: {error}")
        await self._log(request, AuditOutcome.DENIED, [ReasonCodes.ACTION_FAILED])
        return fail(ErrorCode.ACTION_FAILED, f"{message}: {error}")

    async def _log_success(
        self,
        request: RequestContext,
        confirmed: bool,
        url: Optional[str] = None,
    ) -> str:
        outcome = AuditOutcome.CONFIRMED if confirmed else AuditOutcome.ALLOWED
        return await self.context.audit.log_event(
            request.tool_name,
            request.action_type,
            outcome,
            url=url or request.url,
            selector=request.selector,
        )

    async def _log(
        self,
        request: RequestContext,
        outcome: AuditOutcome,
        reason_codes: Sequence[str],
    ) -> str:
        return await self.context.audit.log_event(
            request.tool_name,
            request.action_type,
            outcome,
            url=request.url,
            selector=request.selector,
            reason_codes=reason_codes,
        )

    @staticmethod
    def _policy_data(decision: PolicyDecision, audit_id: str) -> Dict[str, Any]:
        return {"auditId": audit_id, "reasonCodes": list(decision.reason_codes)}

    @staticmethod
    async def _extract(page: Page, extraction_mode: str) -> Dict[str, Any]:
        text = await page.inner_text("body")
        truncated = len(text) > Limits.MAX_CONTENT_LENGTH
        extracted: Dict[str, Any] = {
            "url": page.url,
            "title": await page.title(),
            "text": text[:Limits.MAX_CONTENT_LENGTH],
            "truncated": truncated,
        }
        if extraction_mode == "html":
            html = await page.content()
            extracted["html"] = html[:Limits.MAX_CONTENT_LENGTH]
            extracted["truncated"] = truncated or len(html) > Limits.MAX_CONTENT_LENGTH
        return extracted

    @staticmethod
    def _content_payload(extracted: Dict[str, Any], extraction_mode: str, audit_id: str) -> Dict[str, Any]:
        payload = {
            "url": extracted["url"],
            "title": extracted["title"],
            "truncated": extracted["truncated"],
            "auditId": audit_id,
        }
        if extraction_mode == "html":
            payload["html"] = extracted["html"]
        else:
            payload["text"] = extracted["text"]
        return payload

    @staticmethod
    async def _safe_element_text(page: Page, selector: str) -> Optional[str]:
        """Текст элемента для классификации; None если элемента нет."""
        try:
            return await page.eval_on_selector(
                selector, "(el) => (el.textContent || '').trim()"
            )
        except PlaywrightError:
            return None
