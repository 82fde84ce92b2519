"""
Browser module.

Подключение к Chrome через CDP (Playwright), реестр вкладок
и обработка скриншотов.
"""

from .connection import BrowserConnection, BrowserError, BrowserConnectionError
from .tab_registry import TabRegistry, TabSummary
from .screenshots import downscale_png

__all__ = [
    "BrowserConnection",
    "BrowserError",
    "BrowserConnectionError",
    "TabRegistry",
    "TabSummary",
    "downscale_png",
]
