"""
Allowlist доменов и префиксов пути.

Разбор значений из конфигурации и проверка URL против allowlist.
"""

import logging
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from ..config import PolicyConfig
from ..constants import ReasonCodes


logger = logging.getLogger(__name__)


def parse_allowed_domains(raw: Optional[str]) -> List[str]:
    """
    Разбирает список доменов, разделённых запятыми.

    Args:
        raw: Строка вида "example.com, Docs.Example.com"

    Returns:
        List[str]: Хосты в нижнем регистре, без пустых значений
    """
    if not raw:
        return []
    return [entry.strip().lower() for entry in raw.split(",") if entry.strip()]


def parse_allowed_path_prefixes(raw: Optional[str]) -> Dict[str, List[str]]:
    """
    Разбирает пары "домен:/префикс", разделённые точкой с запятой.

    Один домен может встречаться несколько раз. Записи без домена
    или с префиксом, не начинающимся с "/", пропускаются.

    Example:
        ```python
        parse_allowed_path_prefixes("example.com:/billing;example.com:/settings")
        # {"example.com": ["/billing", "/settings"]}
        ```
    """
    if not raw:
        return {}

    prefixes: Dict[str, List[str]] = {}
    for entry in raw.split(";"):
        entry = entry.strip()
        if not entry or ":" not in entry:
            continue

        domain, _, path_prefix = entry.partition(":")
        domain = domain.strip().lower()
        path_prefix = path_prefix.strip()
        if not domain or not path_prefix.startswith("/"):
            logger.debug(f"Пропущена запись префикса пути: {entry!r}")
            continue

        prefixes.setdefault(domain, []).append(path_prefix)

    return prefixes


def _split_host_and_path(url: str) -> Tuple[str, str]:
    """Хост (в нижнем регистре) и путь URL; пустой хост для не-http(s)."""
    try:
        parsed = urlsplit(url.strip())
        host = (parsed.hostname or "").lower()
    except ValueError:
        return "", ""
    if parsed.scheme.lower() not in ("http", "https"):
        return "", parsed.path
    return host, parsed.path or "/"


def is_url_allowed(url: str, config: PolicyConfig) -> Tuple[bool, List[str]]:
    """
    Проверяет URL против allowlist.

    Args:
        url: Проверяемый URL
        config: Конфигурация политики

    Returns:
        Tuple[bool, List[str]]: (разрешено, коды причин отказа)
    """
    if not config.allowed_domains:
        return False, [ReasonCodes.ALLOWLIST_MISSING]

    host, path = _split_host_and_path(url)
    if not host or host not in config.allowed_domains:
        return False, [ReasonCodes.ALLOWLIST_BLOCKED]

    prefixes = config.allowed_path_prefixes.get(host)
    if prefixes and not any(path.startswith(prefix) for prefix in prefixes):
        return False, [ReasonCodes.PATH_PREFIX_BLOCKED]

    return True, []
