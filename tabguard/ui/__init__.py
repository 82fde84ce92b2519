"""
UI модуль TabGuard.

Консоль оператора: вкладки, ожидающие подтверждения, аудит.
"""

from .cli import CLI

__all__ = [
    "CLI",
]
