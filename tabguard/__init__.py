"""
TabGuard - слой безопасности для автоматизации браузера.

Внешний агент управляет уже открытым Chrome пользователя через
набор инструментов; каждое действие проходит через политику
(allowlist, чувствительные действия, подтверждения, бюджет шагов)
и записывается в аудит-лог.
"""

from .config import Config, PolicyConfig, BrowserConfig, ConfirmationMode, SelectorLogMode

# Browser module
from .browser import BrowserConnection, BrowserError, TabRegistry

# Security module
from .security import AuditLogger, ConfirmationStore, PolicyDecision, RequestContext, decide

# Core module
from .core import GuardContext, GuardedTools, SessionManager, ToolResponse, ErrorCode, execute_tool

__version__ = "1.0.0"
__all__ = [
    # Config
    "Config",
    "PolicyConfig",
    "BrowserConfig",
    "ConfirmationMode",
    "SelectorLogMode",
    # Browser
    "BrowserConnection",
    "BrowserError",
    "TabRegistry",
    # Security
    "AuditLogger",
    "ConfirmationStore",
    "PolicyDecision",
    "RequestContext",
    "decide",
    # Core
    "GuardContext",
    "GuardedTools",
    "SessionManager",
    "ToolResponse",
    "ErrorCode",
    "execute_tool",
]
