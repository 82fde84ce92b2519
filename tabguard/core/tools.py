"""
Определения инструментов и диспетчер вызовов.

TOOL_DEFINITIONS описывает инструменты в формате function calling
(name / description / input_schema), а execute_tool() направляет
вызов по имени в GuardedTools.
"""

import logging
from typing import Any, Dict, List, Optional

from .orchestrator import GuardedTools
from .response import ErrorCode, ToolResponse, fail


logger = logging.getLogger(__name__)


_TAB_ID = {
    "type": "string",
    "description": "Идентификатор вкладки из list_tabs (по умолчанию - активная вкладка)"
}

_CONFIRMATION_ID = {
    "type": "string",
    "description": "Токен из ответа NEEDS_CONFIRMATION, одобренный через confirm_action"
}


TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "get_active_tab",
        "description": "URL и заголовок вкладки, к которой будут применяться действия.",
        "input_schema": {
            "type": "object",
            "properties": {"tab_id": _TAB_ID},
            "required": []
        }
    },
    {
        "name": "list_tabs",
        "description": "Список всех открытых вкладок. Ровно одна отмечена как активная.",
        "input_schema": {"type": "object", "properties": {}, "required": []}
    },
    {
        "name": "activate_tab",
        "description": "Делает вкладку активной для следующих действий без tab_id.",
        "input_schema": {
            "type": "object",
            "properties": {"tab_id": _TAB_ID},
            "required": ["tab_id"]
        }
    },
    {
        "name": "navigate_and_extract",
        "description": "Переход на URL из allowlist и извлечение текста или HTML страницы.",
        "input_schema": {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "URL страницы (например, https://example.com)"
                },
                "extraction_mode": {
                    "type": "string",
                    "enum": ["text", "html"],
                    "description": "Что вернуть: видимый текст или HTML"
                },
                "include_warnings": {
                    "type": "boolean",
                    "description": "Искать в тексте признаки prompt-injection (по умолчанию true)"
                },
                "tab_id": _TAB_ID,
                "confirmation_id": _CONFIRMATION_ID
            },
            "required": ["url"]
        }
    },
    {
        "name": "extract_content",
        "description": "Текст или HTML текущей страницы без навигации. Только чтение.",
        "input_schema": {
            "type": "object",
            "properties": {
                "extraction_mode": {
                    "type": "string",
                    "enum": ["text", "html"],
                    "description": "Что вернуть: видимый текст или HTML"
                },
                "include_warnings": {
                    "type": "boolean",
                    "description": "Искать в тексте признаки prompt-injection"
                },
                "tab_id": _TAB_ID,
                "confirmation_id": _CONFIRMATION_ID
            },
            "required": []
        }
    },
    {
        "name": "click_element",
        "description": "Клик по элементу. Удаление, оплата, отправка форм и т.п. требуют подтверждения.",
        "input_schema": {
            "type": "object",
            "properties": {
                "selector": {"type": "string", "description": "CSS селектор элемента"},
                "tab_id": _TAB_ID,
                "confirmation_id": _CONFIRMATION_ID
            },
            "required": ["selector"]
        }
    },
    {
        "name": "fill_input",
        "description": "Заполнение поля ввода. Значение не записывается в аудит-лог.",
        "input_schema": {
            "type": "object",
            "properties": {
                "selector": {"type": "string", "description": "CSS селектор поля ввода"},
                "value": {"type": "string", "description": "Значение для ввода"},
                "tab_id": _TAB_ID,
                "confirmation_id": _CONFIRMATION_ID
            },
            "required": ["selector", "value"]
        }
    },
    {
        "name": "keyboard_type",
        "description": "Печать текста в элемент, который сейчас в фокусе.",
        "input_schema": {
            "type": "object",
            "properties": {
                "text": {"type": "string", "description": "Текст для ввода"},
                "tab_id": _TAB_ID,
                "confirmation_id": _CONFIRMATION_ID
            },
            "required": ["text"]
        }
    },
    {
        "name": "press_key",
        "description": "Нажатие клавиши (Enter, Tab, Escape...). Enter считается отправкой формы.",
        "input_schema": {
            "type": "object",
            "properties": {
                "key": {"type": "string", "description": "Имя клавиши в формате Playwright"},
                "tab_id": _TAB_ID,
                "confirmation_id": _CONFIRMATION_ID
            },
            "required": ["key"]
        }
    },
    {
        "name": "wait_for_selector",
        "description": "Ожидание появления элемента. При таймауте возвращает found=false.",
        "input_schema": {
            "type": "object",
            "properties": {
                "selector": {"type": "string", "description": "CSS селектор"},
                "timeout_ms": {"type": "integer", "description": "Таймаут в мс (по умолчанию 5000)"},
                "tab_id": _TAB_ID,
                "confirmation_id": _CONFIRMATION_ID
            },
            "required": ["selector"]
        }
    },
    {
        "name": "wait_for_navigation",
        "description": "Ожидание загрузки страницы после действия.",
        "input_schema": {
            "type": "object",
            "properties": {
                "timeout_ms": {"type": "integer", "description": "Таймаут в мс (по умолчанию 10000)"},
                "wait_until": {
                    "type": "string",
                    "enum": ["load", "domcontentloaded", "networkidle"],
                    "description": "Состояние загрузки"
                },
                "tab_id": _TAB_ID,
                "confirmation_id": _CONFIRMATION_ID
            },
            "required": []
        }
    },
    {
        "name": "query_selector_all",
        "description": "Текст и атрибуты всех элементов по селектору.",
        "input_schema": {
            "type": "object",
            "properties": {
                "selector": {"type": "string", "description": "CSS селектор"},
                "attributes": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Атрибуты для извлечения (href, aria-label...)"
                },
                "max_items": {"type": "integer", "description": "Максимум элементов (по умолчанию 50)"},
                "tab_id": _TAB_ID,
                "confirmation_id": _CONFIRMATION_ID
            },
            "required": ["selector"]
        }
    },
    {
        "name": "screenshot_tab",
        "description": "Скриншот вкладки: base64 PNG или сохранение в файл.",
        "input_schema": {
            "type": "object",
            "properties": {
                "full_page": {"type": "boolean", "description": "Вся страница, а не только viewport"},
                "path": {"type": "string", "description": "Путь для сохранения PNG"},
                "tab_id": _TAB_ID,
                "confirmation_id": _CONFIRMATION_ID
            },
            "required": []
        }
    },
    {
        "name": "confirm_action",
        "description": "Одобрение токена подтверждения. Затем повторите исходный вызов с confirmation_id.",
        "input_schema": {
            "type": "object",
            "properties": {"confirmation_id": _CONFIRMATION_ID},
            "required": ["confirmation_id"]
        }
    },
    {
        "name": "deny_action",
        "description": "Отклонение токена подтверждения.",
        "input_schema": {
            "type": "object",
            "properties": {"confirmation_id": _CONFIRMATION_ID},
            "required": ["confirmation_id"]
        }
    },
    {
        "name": "reset_session",
        "description": "Сброс счётчика шагов и всех ожидающих подтверждений.",
        "input_schema": {"type": "object", "properties": {}, "required": []}
    },
    {
        "name": "get_session_status",
        "description": "Использованные шаги, остаток бюджета и число ожидающих подтверждений.",
        "input_schema": {"type": "object", "properties": {}, "required": []}
    },
]


def get_tool_by_name(name: str) -> Optional[Dict[str, Any]]:
    """
    Получает определение инструмента по имени.

    Returns:
        Dict | None: Определение или None если не найдено
    """
    for tool in TOOL_DEFINITIONS:
        if tool["name"] == name:
            return tool
    return None


def get_all_tool_names() -> List[str]:
    return [tool["name"] for tool in TOOL_DEFINITIONS]


def _validate_input(definition: Dict[str, Any], tool_input: Dict[str, Any]) -> Optional[str]:
    """Сообщение об ошибке или None, если параметры корректны."""
    schema = definition["input_schema"]
    properties = schema.get("properties", {})

    for name in schema.get("required", []):
        if tool_input.get(name) is None:
            return f"Missing required parameter: {name}"

    for name, value in tool_input.items():
        prop = properties.get(name)
        if prop is None:
            return f"Unknown parameter: {name}"
        if value is None:
            continue
        expected = prop.get("type")
        if expected == "string" and not isinstance(value, str):
            return f"Parameter {name} must be a string"
        if expected == "boolean" and not isinstance(value, bool):
            return f"Parameter {name} must be a boolean"
        if expected == "integer" and (isinstance(value, bool) or not isinstance(value, int) or value <= 0):
            return f"Parameter {name} must be a positive integer"
        if expected == "array" and not (
            isinstance(value, list) and all(isinstance(item, str) for item in value)
        ):
            return f"Parameter {name} must be a list of strings"
    return None


async def execute_tool(
    tools: GuardedTools,
    tool_name: str,
    tool_input: Optional[Dict[str, Any]] = None,
) -> ToolResponse:
    """
    Выполняет инструмент по имени.

    Args:
        tools: Экземпляр GuardedTools
        tool_name: Имя инструмента
        tool_input: Параметры (JSON-объект)

    Returns:
        ToolResponse: Ответ инструмента
    """
    tool_input = dict(tool_input or {})
    definition = get_tool_by_name(tool_name)
    if definition is None:
        return fail(ErrorCode.INVALID_INPUT, f"Unknown tool: {tool_name}")

    error = _validate_input(definition, tool_input)
    if error:
        return fail(ErrorCode.INVALID_INPUT, error)

    logger.info(f"Выполнение инструмента: {tool_name}")

    match tool_name:
        case "get_active_tab":
            return await tools.get_active_tab(**tool_input)
        case "list_tabs":
            return await tools.list_tabs()
        case "activate_tab":
            return await tools.activate_tab(**tool_input)
        case "navigate_and_extract":
            return await tools.navigate_and_extract(**tool_input)
        case "extract_content":
            return await tools.extract_content(**tool_input)
        case "click_element":
            return await tools.click_element(**tool_input)
        case "fill_input":
            return await tools.fill_input(**tool_input)
        case "keyboard_type":
            return await tools.keyboard_type(**tool_input)
        case "press_key":
            return await tools.press_key(**tool_input)
        case "wait_for_selector":
            return await tools.wait_for_selector(**tool_input)
        case "wait_for_navigation":
            return await tools.wait_for_navigation(**tool_input)
        case "query_selector_all":
            return await tools.query_selector_all(**tool_input)
        case "screenshot_tab":
            return await tools.screenshot_tab(**tool_input)
        case "confirm_action":
            return await tools.confirm_action(**tool_input)
        case "deny_action":
            return await tools.deny_action(**tool_input)
        case "reset_session":
            return await tools.reset_session()
        case "get_session_status":
            return await tools.get_session_status()
        case _:
            return fail(ErrorCode.INVALID_INPUT, f"Unknown tool: {tool_name}")
