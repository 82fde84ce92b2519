"""
PolicyEngine - решение по каждому запрошенному действию.

Чистая функция над конфигурацией и контекстом запроса:
без I/O и без исключений для корректного ввода.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..config import ConfirmationMode, PolicyConfig
from ..constants import ReasonCodes
from .allowlist import is_url_allowed
from .sensitive import DEFAULT_RULES, SensitiveActionRules, is_sensitive_action


@dataclass
class RequestContext:
    """
    Контекст одного запроса инструмента.

    Attributes:
        tool_name: Имя инструмента (click_element, fill_input, ...)
        action_type: Тип действия (navigate, click, fill, ...)
        url: Цель навигации или URL текущей страницы
        selector: CSS селектор
        element_text: Видимый текст целевого элемента
        key: Клавиша (для press_key)
        is_navigation: Действие меняет адрес страницы
        is_read_only: Действие только читает страницу
    """
    tool_name: str
    action_type: str
    url: Optional[str] = None
    selector: Optional[str] = None
    element_text: Optional[str] = None
    key: Optional[str] = None
    is_navigation: bool = False
    is_read_only: bool = False


@dataclass(frozen=True)
class PolicyDecision:
    """
    Решение политики.

    Attributes:
        allowed: Действие разрешено allowlist
        requires_confirmation: Нужен токен подтверждения
        reason_codes: Коды причин (в порядке появления)
        sensitive: Действие классифицировано как чувствительное
    """
    allowed: bool
    requires_confirmation: bool
    reason_codes: Tuple[str, ...]
    sensitive: bool


def decide(
    context: RequestContext,
    config: PolicyConfig,
    rules: SensitiveActionRules = DEFAULT_RULES,
) -> PolicyDecision:
    """
    Принимает решение по действию.

    Порядок:
    1. Классификация чувствительности (независимо от allow/deny)
    2. Allowlist - только если есть URL и действие не read-only;
       отказ возвращается сразу
    3. Требование подтверждения по чувствительности и режиму

    Args:
        context: Контекст запроса
        config: Конфигурация политики
        rules: Таблица правил чувствительности

    Returns:
        PolicyDecision: Решение
    """
    sensitive = is_sensitive_action(
        context.action_type,
        selector=context.selector,
        url=context.url,
        element_text=context.element_text,
        key=context.key,
        rules=rules,
    )

    if context.url and not context.is_read_only:
        allowed, denial_codes = is_url_allowed(context.url, config)
        if not allowed:
            return PolicyDecision(
                allowed=False,
                requires_confirmation=False,
                reason_codes=tuple(denial_codes),
                sensitive=sensitive,
            )

    reason_codes: List[str] = []
    if sensitive:
        reason_codes.append(ReasonCodes.SENSITIVE_ACTION)

    requires_confirmation = _requires_confirmation(context, config.confirmation_mode, sensitive)
    if requires_confirmation:
        reason_codes.append(ReasonCodes.CONFIRMATION_REQUIRED)

    return PolicyDecision(
        allowed=True,
        requires_confirmation=requires_confirmation,
        reason_codes=tuple(reason_codes),
        sensitive=sensitive,
    )


def _requires_confirmation(
    context: RequestContext,
    mode: ConfirmationMode,
    sensitive: bool,
) -> bool:
    # Чувствительные действия подтверждаются в любом режиме
    if sensitive:
        return True

    if mode is ConfirmationMode.ALWAYS_CONFIRM:
        return not context.is_read_only

    if mode is ConfirmationMode.CONFIRM_ON_NAVIGATION:
        return context.is_navigation

    return False
