"""
CLI - консоль оператора TabGuard.

Позволяет человеку вручную выполнять инструменты, видеть вкладки,
одобрять или отклонять ожидающие подтверждения и читать аудит-лог.
Использует rich для таблиц и панелей.
"""

import asyncio
import logging
import shlex
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, Confirm
from rich.table import Table
from rich.text import Text
from rich import box

from .. import __version__
from ..browser.connection import BrowserConnection
from ..config import Config, get_config
from ..constants import Limits
from ..core.orchestrator import GuardContext, GuardedTools
from ..core.response import ErrorCode, ToolResponse
from ..core.tools import execute_tool
from ..security.policy import RequestContext, decide

logger = logging.getLogger(__name__)


class CLI:
    """
    Консоль оператора.

    Предоставляет:
    - Ручной вызов инструментов (navigate, click, fill...)
    - Окно подтверждения для действий, требующих токена
    - Просмотр вкладок, ожидающих токенов и аудит-лога
    - Проверку политики без выполнения (check)

    Example:
        ```python
        cli = CLI()
        await cli.run()
        ```
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Args:
            config: Конфигурация (по умолчанию - глобальная из .env)
        """
        # На Windows принудительно устанавливаем UTF-8 для консоли
        if sys.platform == "win32":
            try:
                sys.stdout.reconfigure(encoding="utf-8")
                sys.stderr.reconfigure(encoding="utf-8")
            except (AttributeError, TypeError):
                pass

        self.console = Console()
        self.config = config or get_config()
        self.connection = BrowserConnection(self.config.browser)
        self.context = GuardContext.from_config(self.config.policy)
        self.tools = GuardedTools(self.context, self.connection, self.config.browser)

    def _print_banner(self) -> None:
        """Выводит баннер при запуске."""
        self.console.print(Panel(
            f"[bold cyan]TabGuard[/bold cyan] v{__version__}\n"
            "[dim]Контроль действий агента в браузере[/dim]\n"
            f"[dim]Chrome: {self.connection.endpoint}[/dim]",
            border_style="cyan",
            box=box.DOUBLE,
        ))
        self.console.print(
            "[dim]Введите команду или 'help' для справки[/dim]\n"
        )

    def _print_help(self) -> None:
        """Выводит справку по командам."""
        help_table = Table(
            title="📖 Справка по командам",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold cyan"
        )

        help_table.add_column("Команда", style="cyan", width=32)
        help_table.add_column("Описание", style="white")

        help_table.add_row("help", "Показать эту справку")
        help_table.add_row("policy", "Текущая политика")
        help_table.add_row("status", "Бюджет шагов и активная вкладка")
        help_table.add_row("tabs", "Список вкладок")
        help_table.add_row("activate <tab_id>", "Сделать вкладку активной")
        help_table.add_row("navigate <url>", "Перейти и извлечь текст")
        help_table.add_row("extract", "Текст текущей страницы")
        help_table.add_row("click <selector>", "Клик по элементу")
        help_table.add_row("fill <selector> <value>", "Заполнить поле")
        help_table.add_row("pending", "Ожидающие подтверждения")
        help_table.add_row("confirm <id> / deny <id>", "Одобрить / отклонить токен")
        help_table.add_row("audit [n]", "Последние записи аудита")
        help_table.add_row("check <tool> <url> [selector]", "Решение политики без выполнения")
        help_table.add_row("reset", "Сбросить сессию")
        help_table.add_row("exit / quit / выход", "Выйти из программы")

        self.console.print()
        self.console.print(help_table)
        self.console.print()

    def _print_policy(self) -> None:
        """Выводит действующую политику."""
        policy = self.config.policy
        table = Table(title="🛡️ Политика", box=box.ROUNDED)
        table.add_column("Параметр", style="cyan")
        table.add_column("Значение", style="white")

        domains = ", ".join(sorted(policy.allowed_domains)) or "[red]не задан (всё запрещено)[/red]"
        prefixes = "; ".join(
            f"{domain}: {', '.join(items)}"
            for domain, items in sorted(policy.allowed_path_prefixes.items())
        ) or "—"

        table.add_row("Разрешённые домены", domains)
        table.add_row("Префиксы путей", prefixes)
        table.add_row("Режим подтверждений", policy.confirmation_mode.value)
        table.add_row("Бюджет шагов", str(policy.max_steps))
        table.add_row("Селекторы в аудите", policy.selector_log_mode.value)
        table.add_row("Аудит-лог", str(policy.audit_log_path))

        self.console.print()
        self.console.print(table)
        self.console.print()

    def _print_status(self) -> None:
        """Выводит состояние сессии."""
        session = self.context.session
        status_table = Table(title="📊 Статус", box=box.ROUNDED)
        status_table.add_column("Параметр", style="cyan")
        status_table.add_column("Значение", style="white")

        browser_status = "🟢 Подключен" if self.connection.is_connected() else "🔴 Не подключен"
        status_table.add_row("Браузер", browser_status)
        status_table.add_row("Шаги", f"{session.step_count} / {session.max_steps}")
        status_table.add_row("Активная вкладка", session.get_active_tab_id() or "—")
        status_table.add_row("Ожидают подтверждения", str(len(self.context.confirmations)))

        self.console.print()
        self.console.print(status_table)
        self.console.print()

    def _print_tabs(self, data: Dict[str, Any]) -> None:
        table = Table(title="🗂️ Вкладки", box=box.ROUNDED)
        table.add_column("", width=2)
        table.add_column("ID", style="cyan")
        table.add_column("Заголовок", style="white")
        table.add_column("URL", style="dim")

        for tab in data.get("tabs", []):
            marker = "●" if tab.get("active") else ""
            table.add_row(marker, tab["tabId"], tab.get("title") or "—", tab.get("url", ""))

        self.console.print(table)

    def _print_pending(self) -> None:
        pending = self.context.confirmations.pending()
        if not pending:
            self.console.print("[dim]Нет ожидающих подтверждений[/dim]")
            return

        table = Table(title="⏳ Ожидают подтверждения", box=box.ROUNDED)
        table.add_column("ID", style="cyan")
        table.add_column("Инструмент", style="white")
        table.add_column("Действие", style="white")
        table.add_column("Одобрено", style="green")

        for entry in pending:
            table.add_row(entry.id, entry.tool_name, entry.summary, "да" if entry.approved else "нет")

        self.console.print(table)

    def _print_audit(self, limit: int) -> None:
        records = self.context.audit.tail(limit)
        if not records:
            self.console.print("[dim]Аудит-лог пуст[/dim]")
            return

        table = Table(title=f"📜 Аудит ({self.context.audit.path})", box=box.ROUNDED)
        table.add_column("Время", style="dim")
        table.add_column("Инструмент", style="cyan")
        table.add_column("Исход", style="white")
        table.add_column("Причины", style="yellow")
        table.add_column("URL", style="dim")

        outcome_styles = {
            "allowed": "green",
            "confirmed": "green",
            "needs_confirmation": "yellow",
            "denied": "red",
        }
        for record in records:
            outcome = record.get("outcome", "")
            style = outcome_styles.get(outcome, "white")
            table.add_row(
                record.get("timestamp", ""),
                record.get("toolName", ""),
                f"[{style}]{outcome}[/{style}]",
                ", ".join(record.get("reasonCodes", [])),
                record.get("url", ""),
            )

        self.console.print(table)

    def _print_response(self, response: ToolResponse) -> None:
        """Выводит ответ инструмента."""
        for warning in response.warnings:
            self.console.print(f"[bold yellow]⚠️ {warning}[/bold yellow]")

        if response.ok:
            data = dict(response.data or {})
            text = data.pop("text", None)
            data.pop("screenshot", None)
            lines = [f"[bold]{key}:[/bold] {value}" for key, value in data.items()]
            if text:
                preview = text[:500] + "..." if len(text) > 500 else text
                lines.append(f"\n[white]{preview}[/white]")
            self.console.print(Panel(
                "\n".join(lines) or "OK",
                title="[bold green]✓ Готово[/bold green]",
                border_style="green",
                box=box.ROUNDED,
            ))
            return

        data = response.data or {}
        reasons = ", ".join(data.get("reasonCodes", []))
        body = f"[bold]{response.error.code.value}[/bold]\n{response.error.message}"
        if reasons:
            body += f"\n\n[dim]Причины: {reasons}[/dim]"
        self.console.print(Panel(
            body,
            title="[bold red]✗ Отказ[/bold red]",
            border_style="red",
            box=box.ROUNDED,
        ))

    def ask_confirmation(self, summary: str, reasons: List[str]) -> bool:
        """
        Показывает окно подтверждения для действия.

        Args:
            summary: Описание действия
            reasons: Коды причин

        Returns:
            bool: True если оператор подтвердил
        """
        warning_content = Text()
        warning_content.append("\n⚠️  ", style="bold yellow")
        warning_content.append("ТРЕБУЕТСЯ ПОДТВЕРЖДЕНИЕ\n\n", style="bold yellow")
        warning_content.append("Действие: ", style="bold")
        warning_content.append(f"{summary}\n\n", style="white")
        warning_content.append("Причины: ", style="bold")
        warning_content.append(f"{', '.join(reasons) or '—'}\n", style="red")

        self.console.print()
        self.console.print(Panel(
            warning_content,
            title="[bold red]🛡️ Security Check[/bold red]",
            border_style="red",
            box=box.DOUBLE
        ))

        confirmed = Confirm.ask(
            "[bold yellow]Разрешить это действие?[/bold yellow]",
            default=False
        )

        if confirmed:
            self.console.print("[green]✓ Действие разрешено[/green]\n")
        else:
            self.console.print("[red]✗ Действие отклонено[/red]\n")

        return confirmed

    async def _run_tool(self, tool_name: str, tool_input: Dict[str, Any]) -> None:
        """
        Выполняет инструмент. Если нужен токен - спрашивает оператора
        и повторяет вызов с одобренным токеном.
        """
        response = await execute_tool(self.tools, tool_name, tool_input)

        if response.error_code is ErrorCode.NEEDS_CONFIRMATION:
            data = response.data or {}
            confirmation_id = data["confirmationId"]
            if not self.ask_confirmation(data.get("actionSummary", tool_name), data.get("reasonCodes", [])):
                await self.tools.deny_action(confirmation_id)
                return

            await self.tools.confirm_action(confirmation_id)
            response = await execute_tool(
                self.tools, tool_name, {**tool_input, "confirmation_id": confirmation_id}
            )

        self._print_response(response)
        if response.ok and tool_name == "list_tabs":
            self._print_tabs(response.data or {})

    def _check(self, args: List[str]) -> None:
        """Решение политики без выполнения действия."""
        if len(args) < 2:
            self.console.print("[red]Использование: check <tool> <url> [selector][/red]")
            return

        tool_name, url = args[0], args[1]
        selector = args[2] if len(args) > 2 else None
        action_types = {
            "navigate_and_extract": "navigate",
            "click_element": "click",
            "fill_input": "fill",
        }
        request = RequestContext(
            tool_name=tool_name,
            action_type=action_types.get(tool_name, tool_name),
            url=url,
            selector=selector,
            is_navigation=tool_name == "navigate_and_extract",
        )
        decision = decide(request, self.config.policy)

        verdict = "[green]разрешено[/green]" if decision.allowed else "[red]запрещено[/red]"
        if decision.allowed and decision.requires_confirmation:
            verdict = "[yellow]требует подтверждения[/yellow]"
        self.console.print(
            f"{verdict} [dim]({', '.join(decision.reason_codes) or 'без причин'})[/dim]"
        )

    async def _handle(self, command: str, args: List[str]) -> bool:
        """
        Обрабатывает одну команду.

        Returns:
            bool: False для выхода
        """
        match command:
            case "exit" | "quit" | "выход" | "q":
                self.console.print("[dim]До свидания! 👋[/dim]")
                return False
            case "help":
                self._print_help()
            case "policy":
                self._print_policy()
            case "status":
                self._print_status()
            case "tabs":
                await self._run_tool("list_tabs", {})
            case "activate" if args:
                await self._run_tool("activate_tab", {"tab_id": args[0]})
            case "navigate" if args:
                await self._run_tool("navigate_and_extract", {"url": args[0]})
            case "extract":
                await self._run_tool("extract_content", {})
            case "click" if args:
                await self._run_tool("click_element", {"selector": args[0]})
            case "fill" if len(args) >= 2:
                await self._run_tool("fill_input", {"selector": args[0], "value": " ".join(args[1:])})
            case "pending":
                self._print_pending()
            case "confirm" if args:
                self._print_response(await self.tools.confirm_action(args[0]))
            case "deny" if args:
                self._print_response(await self.tools.deny_action(args[0]))
            case "audit":
                limit = int(args[0]) if args and args[0].isdigit() else Limits.AUDIT_TAIL
                self._print_audit(limit)
            case "check":
                self._check(args)
            case "reset":
                await self.tools.reset_session()
                self.console.print("[green]✓ Сессия сброшена[/green]")
            case _:
                self.console.print(f"[red]Неизвестная команда или не хватает аргументов: {command}[/red]")
        return True

    async def run(self) -> None:
        """
        Главный цикл CLI.

        Выводит баннер и обрабатывает команды оператора.
        """
        self._print_banner()

        try:
            while True:
                try:
                    line = Prompt.ask("\n[bold cyan]tabguard[/bold cyan]").strip()
                    if not line:
                        continue

                    try:
                        parts = shlex.split(line)
                    except ValueError as e:
                        self.console.print(f"[red]Ошибка разбора команды: {e}[/red]")
                        continue

                    if not await self._handle(parts[0].lower(), parts[1:]):
                        break

                except KeyboardInterrupt:
                    self.console.print("\n[yellow]Прервано пользователем[/yellow]")
                    continue
                except asyncio.CancelledError:
                    continue

        finally:
            if self.connection.is_connected():
                self.console.print("[dim]Отключение от Chrome...[/dim]")
            await self.connection.disconnect()
