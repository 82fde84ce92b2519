"""
TabGuard - контроль действий AI-агента в браузере пользователя.

Запуск:
    python main.py

Требования:
    - Python 3.10+
    - Установленные зависимости: pip install -e .
    - Chrome, запущенный с --remote-debugging-port=9222
    - Allowlist доменов в .env (TABGUARD_ALLOWED_DOMAINS)
"""

import asyncio
import sys
import logging

from tabguard.config import get_config
from tabguard.ui.cli import CLI


# Настройка логирования
def setup_logging(level: str = "WARNING") -> None:
    """Настраивает логирование."""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=log_format,
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )

    # Уменьшаем шум от библиотек
    logging.getLogger("playwright").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


async def main() -> None:
    """Точка входа в приложение."""
    config = get_config()
    setup_logging(config.log_level)

    cli = CLI(config=config)
    await cli.run()


def run() -> None:
    """Синхронная обёртка для запуска."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nВыход...")


if __name__ == "__main__":
    run()
