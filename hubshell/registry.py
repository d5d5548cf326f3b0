"""
Session registry.

The registry is the only state shared between the console thread and
the per-connection reader threads. Callers get sessions by lookup and
must expect None: a peer can disconnect at any moment.
"""

import contextlib
import itertools
import socket
import sys
import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .errors import TransportError


class Session:
    """A connected agent, keyed by its connection."""
    def __init__(self, session_id: int, conn: socket.socket, addr: Tuple[str, int], context: str):
        self.id = session_id
        self.conn = conn
        self.address = addr[0]
        self.port = addr[1]
        # Working directory of this process at accept time, not the peer's.
        self.context = context
        self.connected_at = datetime.now()
        self._transfers = 0
        self._state_lock = threading.Lock()
        self._send_lock = threading.Lock()

    @property
    def transfer_in_progress(self) -> bool:
        with self._state_lock:
            return self._transfers > 0

    @contextlib.contextmanager
    def transferring(self):
        """Mark a transfer as running; transfers may overlap."""
        with self._state_lock:
            self._transfers += 1
        try:
            yield
        finally:
            with self._state_lock:
                self._transfers -= 1

    @property
    def label(self) -> str:
        return f"{self.address}:{self.port}"

    def send(self, data: bytes):
        """Write one message to the peer. Raises TransportError on failure."""
        try:
            with self._send_lock:
                self.conn.sendall(data)
        except OSError as e:
            raise TransportError(f"send to {self.label} failed: {e}") from e

    def close(self):
        try:
            self.conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already disconnected.
            pass
        self.conn.close()


class SessionRegistry:
    def __init__(self):
        self._sessions: Dict[int, Session] = {}
        self._ids = itertools.count(1)
        self.lock = threading.Lock()

    def add(self, conn: socket.socket, addr: Tuple[str, int], context: str) -> Session:
        with self.lock:
            session = Session(next(self._ids), conn, addr, context)
            self._sessions[session.id] = session
        return session

    def remove(self, session_id: int) -> Optional[Session]:
        with self.lock:
            return self._sessions.pop(session_id, None)

    def get(self, session_id: int) -> Optional[Session]:
        with self.lock:
            return self._sessions.get(session_id)

    def snapshot(self) -> List[Session]:
        """Live sessions in accept order."""
        with self.lock:
            return list(self._sessions.values())

    def terminate(self, session_id: int) -> bool:
        """Close a session and drop it from the registry."""
        session = self.remove(session_id)
        if session is None:
            return False
        session.close()
        return True

    def close_all(self):
        with self.lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            try:
                session.close()
            except OSError as e:
                print(f"[!] Error closing {session.label}: {e}", file=sys.stderr)

    def __len__(self) -> int:
        with self.lock:
            return len(self._sessions)

    def __contains__(self, session_id: int) -> bool:
        with self.lock:
            return session_id in self._sessions
