"""
ConfirmationStore - одноразовые токены подтверждения.

Жизненный цикл токена:
    create() -> approve() -> consume_approved()
или
    create() -> deny()

Токены живут только в памяти, ограничены по TTL и по количеству.
"""

import logging
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..constants import Limits


logger = logging.getLogger(__name__)


@dataclass
class PendingConfirmation:
    """
    Ожидающее подтверждение.

    Attributes:
        id: Непрозрачный токен
        summary: Описание действия для человека
        tool_name: Инструмент, запросивший подтверждение
        expires_at: Момент истечения (по часам хранилища, секунды)
        approved: Подтверждено человеком
    """
    id: str
    summary: str
    tool_name: str
    expires_at: float
    approved: bool = False


class ConfirmationStore:
    """
    Хранилище токенов подтверждения.

    Токен может быть использован только один раз и только тем
    инструментом, который его запросил.

    Example:
        ```python
        store = ConfirmationStore()
        pending = store.create("Click #delete on https://example.com", "click_element")

        store.approve(pending.id)
        entry = store.consume_approved(pending.id, "click_element")  # entry
        store.consume_approved(pending.id, "click_element")          # None
        ```
    """

    def __init__(
        self,
        ttl_seconds: float = Limits.CONFIRMATION_TTL_SECONDS,
        max_entries: int = Limits.MAX_PENDING_CONFIRMATIONS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            ttl_seconds: Время жизни токена
            max_entries: Максимум одновременно ожидающих токенов
            clock: Источник времени (подменяется в тестах)
        """
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._pending: "OrderedDict[str, PendingConfirmation]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._pending)

    def create(self, summary: str, tool_name: str) -> PendingConfirmation:
        """
        Создаёт новый токен.

        Перед вставкой удаляет истёкшие записи; при заполнении
        вытесняет одну самую старую.
        """
        with self._lock:
            self._purge_expired()
            if len(self._pending) >= self._max_entries:
                oldest_id, _ = self._pending.popitem(last=False)
                logger.warning(f"Хранилище подтверждений заполнено, вытеснен токен {oldest_id}")

            entry = PendingConfirmation(
                id=str(uuid.uuid4()),
                summary=summary,
                tool_name=tool_name,
                expires_at=self._clock() + self._ttl,
            )
            self._pending[entry.id] = entry

        logger.info(f"Запрошено подтверждение {entry.id} ({tool_name}): {summary}")
        return entry

    def approve(self, confirmation_id: str) -> Optional[PendingConfirmation]:
        """
        Отмечает токен как подтверждённый.

        Повторное подтверждение того же токена возвращает ту же запись
        и не продлевает срок жизни.

        Returns:
            PendingConfirmation | None: Запись или None если токен
            неизвестен или истёк
        """
        with self._lock:
            entry = self._get_valid(confirmation_id)
            if entry is None:
                return None
            entry.approved = True

        logger.info(f"Подтверждение {confirmation_id} одобрено")
        return entry

    def consume_approved(
        self,
        confirmation_id: str,
        tool_name: str,
    ) -> Optional[PendingConfirmation]:
        """
        Использует одобренный токен (однократно).

        Returns:
            PendingConfirmation | None: Запись, если токен действителен,
            одобрен и принадлежит tool_name; иначе None
        """
        with self._lock:
            entry = self._get_valid(confirmation_id)
            if entry is None or not entry.approved or entry.tool_name != tool_name:
                return None
            del self._pending[confirmation_id]
            return entry

    def deny(self, confirmation_id: str) -> bool:
        """Удаляет токен. Возвращает True если что-то было удалено."""
        with self._lock:
            removed = self._pending.pop(confirmation_id, None) is not None
        if removed:
            logger.info(f"Подтверждение {confirmation_id} отклонено")
        return removed

    def clear(self) -> None:
        """Удаляет все токены."""
        with self._lock:
            self._pending.clear()

    def pending(self) -> List[PendingConfirmation]:
        """Действующие токены, от старых к новым."""
        with self._lock:
            self._purge_expired()
            return list(self._pending.values())

    def _get_valid(self, confirmation_id: str) -> Optional[PendingConfirmation]:
        entry = self._pending.get(confirmation_id)
        if entry is None:
            return None
        if entry.expires_at < self._clock():
            del self._pending[confirmation_id]
            return None
        return entry

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._pending.items() if entry.expires_at < now]
        for key in expired:
            del self._pending[key]
