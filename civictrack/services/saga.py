"""
Compensating-action sequence for multi-step writes.

Each completed step registers how to undo itself. When a later step
fails, compensations run in reverse order; a compensation that fails
is logged and skipped, and the original error is what propagates.
"""

from typing import Any, Callable, List, Tuple
import logging

logger = logging.getLogger(__name__)


class Saga:
    def __init__(self, name: str):
        self.name = name
        self._compensations: List[Tuple[str, Callable[[], Any]]] = []

    def add_compensation(self, description: str, action: Callable[[], Any]) -> None:
        self._compensations.append((description, action))

    def compensate(self) -> int:
        """Undo completed steps, newest first. Returns how many failed."""
        failures = 0
        while self._compensations:
            description, action = self._compensations.pop()
            try:
                action()
                logger.info(f"[{self.name}] compensated: {description}")
            except Exception:
                failures += 1
                logger.error(f"[{self.name}] compensation failed: {description}", exc_info=True)
        return failures

    def __enter__(self) -> "Saga":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            logger.warning(f"[{self.name}] failed ({exc_type.__name__}); rolling back")
            self.compensate()
        else:
            self._compensations.clear()
        return False
