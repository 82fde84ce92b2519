"""
Эвристический поиск prompt-injection в извлечённом тексте.

Результат носит рекомендательный характер: предупреждения
прикладываются к ответу инструмента, действие не блокируется.
"""

import re
from dataclasses import dataclass, field
from typing import List, Pattern

from ..constants import Limits


INJECTION_PATTERNS: List[Pattern[str]] = [
    re.compile(r"ignore\s+all\s+previous\s+instructions", re.IGNORECASE),
    re.compile(r"disregard\s+the\s+above", re.IGNORECASE),
    re.compile(r"you\s+are\s+chatgpt", re.IGNORECASE),
    re.compile(r"system\s+prompt", re.IGNORECASE),
    re.compile(r"developer\s+message", re.IGNORECASE),
    re.compile(r"override\s+the\s+rules", re.IGNORECASE),
    re.compile(r"do\s+not\s+follow\s+these\s+rules", re.IGNORECASE),
    re.compile(r"act\s+as\s+an?\s+agent", re.IGNORECASE),
    re.compile(r"exfiltrate", re.IGNORECASE),
    re.compile(r"confidential", re.IGNORECASE),
]

# Небольшой бонус за общие слова "prompt" / "instruction"
GENERIC_PATTERN = re.compile(r"prompt|instruction", re.IGNORECASE)
GENERIC_BONUS = 0.5


@dataclass
class InjectionResult:
    """Оценка и найденные фразы."""
    score: float = 0.0
    matches: List[str] = field(default_factory=list)


def detect_prompt_injection(text: str) -> InjectionResult:
    """
    Ищет инструкции, адресованные агенту, в тексте страницы.

    Args:
        text: Извлечённый текст

    Returns:
        InjectionResult: Оценка = число совпавших паттернов (+0.5
        за общие упоминания prompt/instruction)
    """
    result = InjectionResult()
    if not text:
        return result

    for pattern in INJECTION_PATTERNS:
        match = pattern.search(text)
        if match:
            result.matches.append(match.group(0))
            result.score += 1

    if GENERIC_PATTERN.search(text):
        result.score += GENERIC_BONUS

    return result


def build_injection_warnings(result: InjectionResult) -> List[str]:
    """Предупреждения для ответа инструмента (пусто при нулевой оценке)."""
    if result.score <= 0:
        return []

    warnings = [f"Potential prompt-injection content detected ({result.score:.1f})."]
    if result.matches:
        shown = ", ".join(result.matches[:Limits.MAX_INJECTION_MATCHES])
        warnings.append(f"Matched phrases: {shown}.")
    return warnings


def scan_text(text: str) -> List[str]:
    """detect_prompt_injection + build_injection_warnings."""
    return build_injection_warnings(detect_prompt_injection(text))
