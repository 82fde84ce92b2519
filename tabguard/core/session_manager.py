"""
SessionManager - бюджет шагов и активная вкладка сессии.
"""

import logging
import threading
import time
from typing import Optional

from ..constants import Limits


logger = logging.getLogger(__name__)


class SessionManager:
    """
    Состояние одной сессии автоматизации.

    Считает изменяющие действия и не даёт превысить max_steps
    до явного reset(). Хранит вкладку, выбранную вызывающим
    через activate_tab.

    Attributes:
        max_steps: Бюджет шагов
    """

    def __init__(self, max_steps: int = Limits.MAX_STEPS):
        self.max_steps = max_steps
        self._step_count = 0
        self._last_action_at: Optional[float] = None
        self._active_tab_id: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def step_count(self) -> int:
        return self._step_count

    @property
    def steps_remaining(self) -> int:
        return max(self.max_steps - self._step_count, 0)

    @property
    def last_action_at(self) -> Optional[float]:
        return self._last_action_at

    def record_step(self) -> bool:
        """
        Списывает один шаг из бюджета.

        Returns:
            bool: False (без увеличения счётчика), если бюджет исчерпан
        """
        with self._lock:
            if self._step_count >= self.max_steps:
                logger.warning(f"Бюджет шагов исчерпан ({self.max_steps})")
                return False
            self._step_count += 1
            self._last_action_at = time.time()
            return True

    def set_active_tab_id(self, tab_id: Optional[str]) -> None:
        self._active_tab_id = tab_id

    def get_active_tab_id(self) -> Optional[str]:
        return self._active_tab_id

    def reset(self) -> None:
        """Обнуляет счётчик, активную вкладку и время последнего действия."""
        with self._lock:
            self._step_count = 0
            self._last_action_at = None
            self._active_tab_id = None
        logger.info("Сессия сброшена")
