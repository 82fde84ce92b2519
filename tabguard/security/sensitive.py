"""
Классификация чувствительных действий.

Правила описаны декларативно: набор ключевых слов на каждое
измерение (селектор, URL, текст элемента) плюс типы действий и клавиши,
которые всегда считаются чувствительными.
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from ..constants import Security


@dataclass(frozen=True)
class SensitiveActionRules:
    """
    Таблица правил чувствительности.

    Attributes:
        selector_keywords: Подстроки селектора
        url_keywords: Подстроки URL
        element_text_keywords: Подстроки видимого текста элемента
        action_types: Типы действий, чувствительные всегда
        submit_keys: Клавиши, чувствительные для press_key
    """
    selector_keywords: FrozenSet[str]
    url_keywords: FrozenSet[str]
    element_text_keywords: FrozenSet[str]
    action_types: FrozenSet[str] = frozenset({"submit"})
    submit_keys: FrozenSet[str] = Security.SUBMIT_KEYS


DEFAULT_RULES = SensitiveActionRules(
    selector_keywords=frozenset({
        "submit", "confirm", "delete", "remove", "unsubscribe",
        "checkout", "purchase", "pay", "order", "transfer",
    }),
    url_keywords=frozenset({
        "checkout", "billing", "payment", "confirm", "delete",
        "unsubscribe", "order",
    }),
    element_text_keywords=frozenset({
        "submit", "confirm", "delete", "remove", "unsubscribe",
        "place order", "pay", "purchase", "checkout",
    }),
)


def _contains_any(value: Optional[str], keywords: FrozenSet[str]) -> bool:
    if not value:
        return False
    value = value.lower()
    return any(keyword in value for keyword in keywords)


def is_sensitive_action(
    action_type: str,
    *,
    selector: Optional[str] = None,
    url: Optional[str] = None,
    element_text: Optional[str] = None,
    key: Optional[str] = None,
    rules: SensitiveActionRules = DEFAULT_RULES,
) -> bool:
    """
    Определяет, является ли действие чувствительным.

    Классификация монотонна: добавление ключевого слова в любое
    измерение не может сделать действие нечувствительным.

    Args:
        action_type: Тип действия (click, fill, press_key, submit, ...)
        selector: CSS селектор цели
        url: URL страницы или цели навигации
        element_text: Видимый текст элемента
        key: Клавиша для press_key
        rules: Таблица правил

    Returns:
        bool: True если действие требует подтверждения
    """
    action_type = (action_type or "").lower()

    if action_type in rules.action_types:
        return True

    if action_type == "press_key" and key and key.lower() in rules.submit_keys:
        return True

    return (
        _contains_any(selector, rules.selector_keywords)
        or _contains_any(url, rules.url_keywords)
        or _contains_any(element_text, rules.element_text_keywords)
    )
