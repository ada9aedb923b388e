"""
Session Registry

Maps connection ids to live bot sessions. Owned by the session controller;
nothing else mutates it.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .client import ProtocolClient
from .telemetry import TelemetryTimer

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """
    A logged-in bot paired with the control socket that asked for it.

    The session owns its client (only the session quits it) and its
    telemetry timer (cancelled at teardown).
    """
    connection_id: str
    sid: str  # owning control socket; used for lookup and sends only
    client: ProtocolClient
    username: str
    timer: Optional[TelemetryTimer] = field(default=None, repr=False)


class SessionRegistry:
    """Exclusive-access store of live sessions keyed by connection id"""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.RLock()

    def put(self, connection_id: str, session: Session) -> None:
        """Store a session, replacing any previous entry without tearing it down"""
        with self._lock:
            self._sessions[connection_id] = session
        logger.debug(f"Registered session {connection_id} ({len(self)} live)")

    def get(self, connection_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(connection_id)

    def remove(self, connection_id: str) -> Optional[Session]:
        """Remove and return the session, or None if it was not registered"""
        with self._lock:
            return self._sessions.pop(connection_id, None)

    def find_by_socket(self, sid: str) -> List[Session]:
        with self._lock:
            return [s for s in self._sessions.values() if s.sid == sid]

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
