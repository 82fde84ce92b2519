"""Tests for the main.py entry point."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import main
from tabguard.config import Config


class TestMain:

    def test_main_runs_cli_with_loaded_config(self):
        config = Config()
        cli = MagicMock()
        cli.run = AsyncMock()

        with patch.object(main, "get_config", return_value=config), \
                patch.object(main, "setup_logging") as setup_logging, \
                patch.object(main, "CLI", return_value=cli) as cli_class:
            asyncio.run(main.main())

        setup_logging.assert_called_once_with(config.log_level)
        cli_class.assert_called_once_with(config=config)
        cli.run.assert_awaited_once()
