"""
Конфигурация приложения.

Модуль содержит настройки политики безопасности и подключения к браузеру,
загружаемые из переменных окружения (и, опционально, из JSON-файла).
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from dotenv import load_dotenv

from .constants import Limits, Screenshots

# Загружаем переменные окружения из .env файла
load_dotenv()

logger = logging.getLogger(__name__)


class ConfirmationMode(Enum):
    """
    Режим запроса подтверждений.

    Values:
        AUTO: Подтверждение только для чувствительных действий
        CONFIRM_ON_NAVIGATION: Плюс любая навигация
        CONFIRM_ON_SENSITIVE: Только чувствительные действия (по умолчанию)
        ALWAYS_CONFIRM: Любое не read-only действие
    """
    AUTO = "auto"
    CONFIRM_ON_NAVIGATION = "confirm-on-navigation"
    CONFIRM_ON_SENSITIVE = "confirm-on-sensitive"
    ALWAYS_CONFIRM = "always-confirm"


class SelectorLogMode(Enum):
    """Как записывать селекторы в аудит-лог."""
    PLAINTEXT = "plaintext"
    TRUNCATE = "truncate"
    HASH = "hash"


DEFAULT_CONFIRMATION_MODE = ConfirmationMode.CONFIRM_ON_SENSITIVE
DEFAULT_SELECTOR_LOG_MODE = SelectorLogMode.TRUNCATE


def default_audit_log_path() -> Path:
    """Путь аудит-лога по умолчанию (во временной директории системы)."""
    return Path(tempfile.gettempdir()) / "tabguard-audit.log"


@dataclass(frozen=True)
class PolicyConfig:
    """
    Конфигурация политики. Загружается один раз и не меняется.

    Attributes:
        allowed_domains: Хосты, на которых разрешена автоматизация
        allowed_path_prefixes: Для хоста - список разрешённых префиксов пути
        confirmation_mode: Режим подтверждений
        audit_log_path: Файл аудит-лога (JSON lines)
        max_steps: Бюджет изменяющих действий на сессию
        selector_log_mode: Режим записи селекторов в аудит-лог
    """

    allowed_domains: FrozenSet[str] = frozenset()
    allowed_path_prefixes: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    confirmation_mode: ConfirmationMode = DEFAULT_CONFIRMATION_MODE
    audit_log_path: Path = field(default_factory=default_audit_log_path)
    max_steps: int = Limits.MAX_STEPS
    selector_log_mode: SelectorLogMode = DEFAULT_SELECTOR_LOG_MODE

    @classmethod
    def from_sources(
        cls,
        env: Mapping[str, str],
        file_values: Optional[Mapping[str, Any]] = None,
    ) -> "PolicyConfig":
        """
        Собирает конфигурацию. Переменные окружения важнее значений из файла.

        Args:
            env: Переменные окружения
            file_values: Значения из JSON-файла политики (те же ключи)

        Returns:
            PolicyConfig: Нормализованная конфигурация
        """
        # Импорт здесь: allowlist зависит от этого модуля
        from .security.allowlist import parse_allowed_domains, parse_allowed_path_prefixes

        file_values = file_values or {}

        def lookup(name: str) -> Optional[str]:
            value = env.get(name)
            if value is None:
                value = file_values.get(name)
            return None if value is None else str(value)

        audit_log_path = lookup("TABGUARD_AUDIT_LOG_PATH")

        return cls(
            allowed_domains=frozenset(parse_allowed_domains(lookup("TABGUARD_ALLOWED_DOMAINS"))),
            allowed_path_prefixes={
                domain: tuple(prefixes)
                for domain, prefixes in parse_allowed_path_prefixes(
                    lookup("TABGUARD_ALLOWED_PATH_PREFIXES")
                ).items()
            },
            confirmation_mode=normalize_confirmation_mode(lookup("TABGUARD_CONFIRMATION_MODE")),
            audit_log_path=Path(audit_log_path) if audit_log_path else default_audit_log_path(),
            max_steps=parse_positive_int(lookup("TABGUARD_MAX_STEPS"), Limits.MAX_STEPS),
            selector_log_mode=normalize_selector_log_mode(
                lookup("TABGUARD_AUDIT_LOG_SELECTOR_MODE")
            ),
        )


@dataclass
class BrowserConfig:
    """Конфигурация подключения к браузеру."""

    # Endpoint Chrome, запущенного с --remote-debugging-port
    cdp_endpoint: str = "http://localhost:9222"

    # Таймаут подключения (мс)
    connect_timeout: int = 10000

    # Ограничения размера скриншота
    screenshot_max_width: int = Screenshots.MAX_WIDTH
    screenshot_max_height: int = Screenshots.MAX_HEIGHT


@dataclass
class Config:
    """Основная конфигурация приложения."""

    policy: PolicyConfig = field(default_factory=PolicyConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)

    # Уровень логирования
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Config":
        """
        Создаёт конфигурацию из переменных окружения.

        Если задан TABGUARD_POLICY_CONFIG_PATH, значения политики
        дополнительно читаются из JSON-файла.

        Returns:
            Config: Объект конфигурации с настройками из .env
        """
        file_values = read_policy_file(os.getenv("TABGUARD_POLICY_CONFIG_PATH"))

        browser_config = BrowserConfig(
            cdp_endpoint=os.getenv("TABGUARD_CDP_ENDPOINT", "http://localhost:9222"),
            connect_timeout=parse_positive_int(os.getenv("TABGUARD_CONNECT_TIMEOUT"), 10000),
            screenshot_max_width=parse_positive_int(
                os.getenv("TABGUARD_SCREENSHOT_MAX_WIDTH"), Screenshots.MAX_WIDTH
            ),
            screenshot_max_height=parse_positive_int(
                os.getenv("TABGUARD_SCREENSHOT_MAX_HEIGHT"), Screenshots.MAX_HEIGHT
            ),
        )

        return cls(
            policy=PolicyConfig.from_sources(os.environ, file_values),
            browser=browser_config,
            log_level=os.getenv("LOG_LEVEL", "WARNING"),
        )


def normalize_confirmation_mode(value: Optional[str]) -> ConfirmationMode:
    """Неизвестный или пустой режим -> режим по умолчанию."""
    try:
        return ConfirmationMode((value or "").strip().lower())
    except ValueError:
        if value:
            logger.warning(f"Неизвестный режим подтверждений '{value}', используется {DEFAULT_CONFIRMATION_MODE.value}")
        return DEFAULT_CONFIRMATION_MODE


def normalize_selector_log_mode(value: Optional[str]) -> SelectorLogMode:
    """Неизвестный или пустой режим -> truncate."""
    try:
        return SelectorLogMode((value or "").strip().lower())
    except ValueError:
        return DEFAULT_SELECTOR_LOG_MODE


def parse_positive_int(value: Optional[str], fallback: int) -> int:
    """Разбирает положительное целое, иначе возвращает fallback."""
    if not value:
        return fallback
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return fallback
    return parsed if parsed > 0 else fallback


def read_policy_file(path: Optional[str]) -> Dict[str, Any]:
    """
    Читает JSON-файл политики.

    Нечитаемый или невалидный файл не является фатальной ошибкой:
    пишем предупреждение и работаем только с переменными окружения.
    """
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Не удалось прочитать файл политики {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Файл политики {path} должен содержать JSON-объект")
        return {}
    return data


# Глобальный экземпляр конфигурации
_config: Config | None = None


def get_config() -> Config:
    """
    Получает глобальный экземпляр конфигурации.

    Returns:
        Config: Объект конфигурации
    """
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def load_policy_config() -> PolicyConfig:
    """Конфигурация политики из глобальной конфигурации."""
    return get_config().policy


def reset_config() -> None:
    """Сбрасывает глобальную конфигурацию (для тестов)."""
    global _config
    _config = None
