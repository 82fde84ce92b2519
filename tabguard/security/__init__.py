"""
Security модуль TabGuard.

Политика действий, подтверждения, аудит с редактированием
секретов и поиск prompt-injection в контенте страниц.
"""

from .audit import AuditLogger, AuditOutcome
from .confirmations import ConfirmationStore, PendingConfirmation
from .injection import detect_prompt_injection, scan_text
from .policy import PolicyDecision, RequestContext, decide
from .redaction import redact_url, redact_selector, redact_metadata

__all__ = [
    "AuditLogger",
    "AuditOutcome",
    "ConfirmationStore",
    "PendingConfirmation",
    "detect_prompt_injection",
    "scan_text",
    "PolicyDecision",
    "RequestContext",
    "decide",
    "redact_url",
    "redact_selector",
    "redact_metadata",
]
