"""
Единый формат ответа инструментов.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


PROTOCOL_VERSION = 2


class ErrorCode(Enum):
    """
    Коды ошибок инструментов.

    Values:
        POLICY_BLOCKED: Отказ allowlist / префикса пути
        NEEDS_CONFIRMATION: Нужен токен подтверждения
        CONFIRMATION_EXPIRED: Токен неизвестен, истёк или чужой
        MAX_STEPS_EXCEEDED: Бюджет шагов исчерпан
        NO_TABS: В браузере нет вкладок
        TAB_NOT_FOUND: Вкладка с таким id не найдена
        ACTION_FAILED: Ошибка браузера при выполнении
        INVALID_INPUT: Неверные параметры инструмента
        BROWSER_UNAVAILABLE: Нет подключения к Chrome
    """
    POLICY_BLOCKED = "POLICY_BLOCKED"
    NEEDS_CONFIRMATION = "NEEDS_CONFIRMATION"
    CONFIRMATION_EXPIRED = "CONFIRMATION_EXPIRED"
    MAX_STEPS_EXCEEDED = "MAX_STEPS_EXCEEDED"
    NO_TABS = "NO_TABS"
    TAB_NOT_FOUND = "TAB_NOT_FOUND"
    ACTION_FAILED = "ACTION_FAILED"
    INVALID_INPUT = "INVALID_INPUT"
    BROWSER_UNAVAILABLE = "BROWSER_UNAVAILABLE"


@dataclass
class ToolError:
    code: ErrorCode
    message: str


@dataclass
class ToolResponse:
    """
    Ответ инструмента.

    Attributes:
        ok: Успех
        data: Полезная нагрузка (при отказе - коды причин, id аудита,
            данные подтверждения)
        error: Ошибка (при отказе)
        warnings: Предупреждения (например, prompt-injection)
    """
    ok: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[ToolError] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def error_code(self) -> Optional[ErrorCode]:
        return self.error.code if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "ok": self.ok,
            "success": self.ok,
            "protocolVersion": PROTOCOL_VERSION,
            "warnings": list(self.warnings),
        }
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = {"code": self.error.code.value, "message": self.error.message}
        return result


def ok(data: Optional[Dict[str, Any]] = None, warnings: Optional[List[str]] = None) -> ToolResponse:
    return ToolResponse(ok=True, data=data, warnings=list(warnings or []))


def fail(
    code: ErrorCode,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    warnings: Optional[List[str]] = None,
) -> ToolResponse:
    return ToolResponse(
        ok=False,
        data=data,
        error=ToolError(code=code, message=message),
        warnings=list(warnings or []),
    )
