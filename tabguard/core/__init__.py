"""
Core модуль TabGuard.

Содержит:
- GuardedTools: Инструменты браузера под контролем политики
- GuardContext: Состояние сессии (политика, вкладки, токены, аудит)
- SessionManager: Бюджет шагов
- execute_tool: Диспетчер вызовов по имени инструмента
"""

from .orchestrator import GuardContext, GuardedTools
from .response import ErrorCode, ToolResponse
from .session_manager import SessionManager
from .tools import TOOL_DEFINITIONS, execute_tool

__all__ = [
    "GuardContext",
    "GuardedTools",
    "ErrorCode",
    "ToolResponse",
    "SessionManager",
    "TOOL_DEFINITIONS",
    "execute_tool",
]
