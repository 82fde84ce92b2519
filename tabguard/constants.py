"""
Централизованные константы для tabguard.

Все magic numbers и hardcoded values собраны здесь
для удобства настройки и поддержки.
"""

from typing import FrozenSet, Tuple


class Timeouts:
    """Таймауты в миллисекундах."""

    # Ожидание элемента перед click / fill
    ELEMENT_WAIT = 5000

    # wait_for_selector по умолчанию
    WAIT_FOR_SELECTOR = 5000

    # wait_for_navigation по умолчанию
    WAIT_FOR_NAVIGATION = 10000

    # Скриншоты
    SCREENSHOT = 10000


class Limits:
    """Лимиты для предотвращения переполнения."""

    # Бюджет шагов сессии по умолчанию
    MAX_STEPS = 30

    # Ожидающие подтверждения
    CONFIRMATION_TTL_SECONDS = 5 * 60
    MAX_PENDING_CONFIRMATIONS = 50

    # Длина селектора в аудит-логе (режим truncate)
    SELECTOR_LOG_LENGTH = 120

    # query_selector_all
    MAX_QUERY_ITEMS = 50

    # Сколько совпадений prompt-injection показывать
    MAX_INJECTION_MATCHES = 3

    # Извлечённый текст страницы
    MAX_CONTENT_LENGTH = 50000

    # Сколько записей аудита показывать в консоли
    AUDIT_TAIL = 20


class Security:
    """Настройки безопасности."""

    # Маска для редактируемых значений
    REDACTED = "[REDACTED]"

    # Префиксы служебных страниц браузера (не считаются вкладками пользователя)
    INTERNAL_URL_PREFIXES: Tuple[str, ...] = (
        "chrome-extension://",
        "chrome://",
        "devtools://",
    )

    BLANK_URL = "about:blank"

    # Клавиши, отправляющие формы
    SUBMIT_KEYS: FrozenSet[str] = frozenset({"enter", "numpadenter"})


class ReasonCodes:
    """Коды причин в решениях политики и в аудит-логе."""

    ALLOWLIST_MISSING = "allowlist_missing"
    ALLOWLIST_BLOCKED = "allowlist_blocked"
    PATH_PREFIX_BLOCKED = "path_prefix_blocked"
    SENSITIVE_ACTION = "sensitive_action"
    CONFIRMATION_REQUIRED = "confirmation_required"
    CONFIRMATION_INVALID = "confirmation_invalid"
    MAX_STEPS_EXCEEDED = "max_steps_exceeded"
    ACTION_FAILED = "action_failed"


class Screenshots:
    """Настройки скриншотов."""

    MAX_WIDTH = 1280
    MAX_HEIGHT = 800
