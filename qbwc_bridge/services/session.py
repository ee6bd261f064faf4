"""
Ticket-based session for a QuickBooks Web Connector round.

QBWC serializes its calls per company file, so a single active ticket is
enough to gate the round. The ticket is minted on a successful handshake,
required on every work call, and dropped on close or re-authentication.
"""
import logging
import threading
import uuid
from typing import Optional

logger = logging.getLogger(__name__)


class TicketSession:
    """Holds the one active QBWC ticket, if any."""

    def __init__(self, username: str, password: str):
        self._username = username
        self._password = password
        self._ticket: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def ticket(self) -> Optional[str]:
        return self._ticket

    @property
    def active(self) -> bool:
        return self._ticket is not None

    def check_credentials(self, username, password) -> bool:
        return username == self._username and password == self._password

    def open(self) -> str:
        """Mint a new ticket, replacing any previous one."""
        with self._lock:
            self._ticket = f"ticket_{uuid.uuid4().hex}"
            ticket = self._ticket
        logger.info(f"Session opened with ticket {ticket}")
        return ticket

    def is_valid(self, ticket) -> bool:
        with self._lock:
            return self._ticket is not None and ticket == self._ticket

    def close(self):
        with self._lock:
            previous, self._ticket = self._ticket, None
        if previous:
            logger.info(f"Session {previous} closed")
