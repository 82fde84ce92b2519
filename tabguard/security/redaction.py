"""
Редактирование данных перед записью в аудит-лог.

- URL: маскируются значения query/fragment параметров с "опасными" ключами
- Селекторы: plaintext / truncate / hash
- Метаданные: рекурсивная маскировка по именам ключей
"""

import hashlib
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ..config import SelectorLogMode
from ..constants import Limits, Security


# Подстроки ключей query/fragment параметров
SENSITIVE_QUERY_PARAMS = ("token", "code", "session", "auth", "key")

# Подстроки ключей метаданных
SENSITIVE_KEYS = (
    "value",
    "cookie",
    "cookies",
    "authorization",
    "auth",
    "localstorage",
    "sessionstorage",
    "token",
    "code",
    "session",
    "key",
    "password",
)


def is_sensitive_key(key: str) -> bool:
    """Ключ содержит одну из чувствительных подстрок (без учёта регистра)."""
    lower = key.lower()
    return any(part in lower for part in SENSITIVE_QUERY_PARAMS) or any(
        part in lower for part in SENSITIVE_KEYS
    )


def _redact_params(raw: str) -> str:
    pairs = parse_qsl(raw, keep_blank_values=True)
    redacted = [
        (key, Security.REDACTED if is_sensitive_key(key) else value)
        for key, value in pairs
    ]
    # safe="[]" чтобы маска оставалась читаемой и повторное редактирование
    # давало тот же результат
    return urlencode(redacted, safe="[]")


def _redact_raw(url: str) -> str:
    # Для строк, которые urlsplit не разбирает (например, битый IPv6 хост)
    rest, hash_mark, fragment = url.partition("#")
    base, query_mark, query = rest.partition("?")
    if query:
        query = _redact_params(query)
    if "=" in fragment:
        fragment = _redact_params(fragment)
    return base + query_mark + query + hash_mark + fragment


def redact_url(url: str) -> str:
    """
    Маскирует чувствительные параметры query и fragment.

    Операция идемпотентна. Относительные URL ("/reset?token=...") и
    строки без схемы редактируются так же, как абсолютные; строка без
    параметров возвращается без изменений.

    Example:
        ```python
        redact_url("https://example.com/cb?code=abc&page=2#access_token=xyz")
        # "https://example.com/cb?code=[REDACTED]&page=2#access_token=[REDACTED]"
        ```
    """
    try:
        parsed = urlsplit(url)
    except ValueError:
        return _redact_raw(url)

    if not parsed.query and "=" not in parsed.fragment:
        return url

    query = _redact_params(parsed.query) if parsed.query else ""

    fragment = parsed.fragment
    if fragment and "=" in fragment:
        fragment = _redact_params(fragment)

    return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, query, fragment))


def redact_selector(selector: str, mode: SelectorLogMode) -> str:
    """
    Редактирует селектор согласно режиму.

    Args:
        selector: CSS селектор
        mode: plaintext - как есть; truncate - до 120 символов с "…";
            hash - SHA-256 hex

    Returns:
        str: Селектор для записи в лог
    """
    if mode is SelectorLogMode.PLAINTEXT:
        return selector

    if mode is SelectorLogMode.HASH:
        return hashlib.sha256(selector.encode("utf-8")).hexdigest()

    if len(selector) <= Limits.SELECTOR_LOG_LENGTH:
        return selector
    return selector[:Limits.SELECTOR_LOG_LENGTH] + "…"


def redact_metadata(value: Any) -> Any:
    """
    Рекурсивно маскирует чувствительные ключи в словарях и списках.

    Ключ с именем "url" (строковое значение) проходит через redact_url.
    """
    if isinstance(value, (list, tuple)):
        return [redact_metadata(item) for item in value]

    if isinstance(value, dict):
        result = {}
        for key, entry in value.items():
            key_str = str(key)
            if is_sensitive_key(key_str):
                result[key] = Security.REDACTED
            elif key_str.lower() == "url" and isinstance(entry, str):
                result[key] = redact_url(entry)
            else:
                result[key] = redact_metadata(entry)
        return result

    return value
