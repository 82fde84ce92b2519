"""
AuditLogger - журнал решений политики.

Каждое событие редактируется и дописывается одной JSON-строкой
в файл аудита (append-only).
"""

import asyncio
import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..config import PolicyConfig
from .redaction import redact_selector, redact_url


logger = logging.getLogger(__name__)


class AuditOutcome(Enum):
    """Исход действия в аудит-логе."""
    ALLOWED = "allowed"
    DENIED = "denied"
    NEEDS_CONFIRMATION = "needs_confirmation"
    CONFIRMED = "confirmed"


@dataclass
class AuditEvent:
    """
    Запись аудита (уже отредактированная).

    Attributes:
        id: Идентификатор события
        timestamp: Время в ISO-8601 (UTC)
        tool_name: Имя инструмента
        action_type: Тип действия
        outcome: Исход
        reason_codes: Коды причин
        url: Отредактированный URL
        selector: Отредактированный селектор
    """
    id: str
    timestamp: str
    tool_name: str
    action_type: str
    outcome: AuditOutcome
    reason_codes: List[str] = field(default_factory=list)
    url: Optional[str] = None
    selector: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация в формат строки лога."""
        data: Dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "toolName": self.tool_name,
            "actionType": self.action_type,
            "outcome": self.outcome.value,
            "reasonCodes": list(self.reason_codes),
        }
        if self.url is not None:
            data["url"] = self.url
        if self.selector is not None:
            data["selector"] = self.selector
        return data


class AuditLogger:
    """
    Журнал аудита.

    Ошибки записи НЕ прерывают основное действие (fail-open):
    OSError логируется на уровне ERROR, а вызывающий код всё равно
    получает id события для корреляции.

    Example:
        ```python
        audit = AuditLogger(policy_config)
        audit_id = await audit.log_event(
            "click_element", "click", AuditOutcome.DENIED,
            url="https://evil.example/", reason_codes=["allowlist_blocked"],
        )
        ```
    """

    def __init__(self, config: PolicyConfig):
        self._path = Path(config.audit_log_path)
        self._selector_mode = config.selector_log_mode
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def log_event(
        self,
        tool_name: str,
        action_type: str,
        outcome: AuditOutcome,
        *,
        url: Optional[str] = None,
        selector: Optional[str] = None,
        reason_codes: Optional[Iterable[str]] = None,
    ) -> str:
        """
        Редактирует и записывает событие.

        Returns:
            str: Идентификатор события
        """
        event = AuditEvent(
            id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            tool_name=tool_name,
            action_type=action_type,
            outcome=outcome,
            reason_codes=list(reason_codes or []),
            url=redact_url(url) if url else None,
            selector=redact_selector(selector, self._selector_mode) if selector else None,
        )

        line = json.dumps(event.to_dict(), ensure_ascii=False) + "\n"
        try:
            # Запись в файл вне event loop
            await asyncio.to_thread(self._append, line)
        except OSError as e:
            # fail-open: аудит не должен блокировать действие
            logger.error(f"Не удалось записать событие аудита {event.id} в {self._path}: {e}")

        logger.debug(f"Аудит: {tool_name}/{action_type} -> {outcome.value} ({event.id})")
        return event.id

    def tail(self, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Последние записи аудита.

        Повреждённые строки пропускаются. Нет файла - пустой список.
        """
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                lines = f.readlines()
        except FileNotFoundError:
            return []

        records: List[Dict[str, Any]] = []
        for raw in lines[-limit:] if limit > 0 else []:
            raw = raw.strip()
            if not raw:
                continue
            try:
                records.append(json.loads(raw))
            except json.JSONDecodeError:
                logger.debug(f"Пропущена повреждённая строка аудита: {raw[:80]}")
        return records

    def _append(self, line: str) -> None:
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(line)
                f.flush()
