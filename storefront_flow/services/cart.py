"""
In-memory cart and notifier collaborators.

The flow engine inserts lines through CartSink and reports feedback through
Notifier. These implementations back one HTTP session each: the cart keeps the
lines for the /cart endpoint and the notifier keeps the messages so the
response can show them to the customer.
"""

import logging
import threading
from dataclasses import dataclass
from typing import List, Literal

from ..flow.interfaces import CartSink, Notifier
from ..flow.models import CartLine

logger = logging.getLogger(__name__)


class InMemoryCart(CartSink):
    """Append-only list of cart lines."""

    def __init__(self):
        self._lines: List[CartLine] = []
        self._lock = threading.Lock()

    def add_line(self, line: CartLine) -> None:
        with self._lock:
            self._lines.append(line)
        logger.info("Cart line added: %s x%d at %.2f", line.name, line.quantity, line.unit_price)

    @property
    def lines(self) -> List[CartLine]:
        with self._lock:
            return list(self._lines)

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total_price(self) -> float:
        return round(sum(line.line_total for line in self.lines), 2)


@dataclass(frozen=True)
class Notification:
    level: Literal["error", "success"]
    message: str


class LoggingNotifier(Notifier):
    """Logs every message and keeps them until drained."""

    def __init__(self):
        self._pending: List[Notification] = []

    def error(self, message: str) -> None:
        logger.info("Notify error: %s", message)
        self._pending.append(Notification("error", message))

    def success(self, message: str) -> None:
        logger.info("Notify success: %s", message)
        self._pending.append(Notification("success", message))

    def drain(self) -> List[Notification]:
        """Return and forget the pending messages."""
        pending, self._pending = self._pending, []
        return pending
