"""
Transport listener.

Responsibilities:
- Bind the control port (failure is fatal to the caller)
- Accept agent connections and register them as sessions
- Read each connection on its own thread and split bursts into messages
- Drop the session on peer shutdown or transport error
"""

import os
import select
import socket
import sys
import threading
from typing import Callable, Optional

from . import config, protocol
from .errors import TransportError
from .registry import Session, SessionRegistry

MessageHandler = Callable[[Session, str], None]


class Listener:
    def __init__(
        self,
        registry: SessionRegistry,
        on_message: MessageHandler,
        host: str = config.DEFAULT_HOST,
        port: int = config.DEFAULT_PORT,
        settle_interval: float = config.DEFAULT_SETTLE_INTERVAL,
        max_message_size: int = config.DEFAULT_MAX_MESSAGE_SIZE,
    ):
        self.registry = registry
        self.on_message = on_message
        self.host = host
        self.port = port
        self.settle_interval = settle_interval
        self.max_message_size = max_message_size
        self.running = False
        self._server_sock: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None

    def start(self):
        """Bind and start accepting in the background."""
        server_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            server_sock.bind((self.host, self.port))
            server_sock.listen(config.LISTEN_BACKLOG)
        except OSError as e:
            server_sock.close()
            raise TransportError(f"cannot listen on {self.host}:{self.port}: {e}") from e

        self._server_sock = server_sock
        self.port = server_sock.getsockname()[1]
        self.running = True
        self._accept_thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._accept_thread.start()
        print(f"[+] Listening on {self.host}:{self.port}")

    def stop(self):
        """Stop accepting and close every live session."""
        self.running = False
        if self._accept_thread is not None:
            self._accept_thread.join(timeout=config.ACCEPT_POLL_INTERVAL * 2)
        if self._server_sock is not None:
            self._server_sock.close()
            self._server_sock = None
        self.registry.close_all()

    def _accept_loop(self):
        while self.running:
            try:
                # Use select to allow graceful shutdown
                ready, _, _ = select.select([self._server_sock], [], [], config.ACCEPT_POLL_INTERVAL)
                if not ready:
                    continue
                conn, addr = self._server_sock.accept()
            except (OSError, ValueError) as e:
                if self.running:
                    print(f"[!] Accept failed: {e}", file=sys.stderr)
                continue
            session = self.registry.add(conn, addr, os.getcwd())
            print(f"\n[+] CONNECTED: {session.label}")
            threading.Thread(
                target=self.handle_connection,
                args=(session,),
                daemon=True
            ).start()

    def handle_connection(self, session: Session):
        """Deliver a session's messages in arrival order until it goes away."""
        try:
            while True:
                data = self._read_message(session)
                if not data:
                    if session.id in self.registry:
                        print(f"\n[-] CONNECTION CLOSED: {session.label}")
                    break
                text = data.decode("utf-8", errors="replace")
                for message in protocol.split_messages(text):
                    self.on_message(session, message)
        except (OSError, ValueError, TransportError) as e:
            # A terminated session's socket fails here too; stay quiet for those.
            if session.id in self.registry:
                print(f"\n[!] Error: {session.label}: {e}", file=sys.stderr)
        finally:
            self.registry.terminate(session.id)

    def _read_message(self, session: Session) -> bytes:
        """
        Read one burst: a chunk plus whatever follows within the settle interval.

        Returns b"" on EOF before any data.
        """
        conn = session.conn
        data = conn.recv(config.RECV_BUFFER_SIZE)
        if not data:
            return b""
        buffer = bytearray(data)
        while True:
            if len(buffer) > self.max_message_size:
                raise TransportError(
                    f"message exceeds {self.max_message_size} bytes"
                )
            ready, _, _ = select.select([conn], [], [], self.settle_interval)
            if not ready:
                break
            chunk = conn.recv(config.RECV_BUFFER_SIZE)
            if not chunk:
                # EOF after data; the next read reports the close.
                break
            buffer.extend(chunk)
        return bytes(buffer)
