#!/usr/bin/env python3
"""
hubshell Controller

Responsibilities:
- Listen for agent connections
- Route inbound agent messages (output, file content, upload requests)
- Run the operator console against the session registry
- Shut everything down when the operator exits
"""

import argparse
import sys

from . import __version__, protocol, transfer
from .config import ListenerConfig
from .console import Console
from .errors import FileIOError, ProtocolError, TransportError
from .listener import Listener
from .registry import Session, SessionRegistry


class Controller:
    def __init__(self, cfg: ListenerConfig, input_func=input):
        self.config = cfg
        self.download_dir = cfg.download_dir()
        self.registry = SessionRegistry()
        self.listener = Listener(
            self.registry,
            self.handle_message,
            host=cfg.HOST,
            port=cfg.PORT,
            settle_interval=cfg.SETTLE_INTERVAL,
            max_message_size=cfg.MAX_MESSAGE_SIZE,
        )
        self.console = Console(self.registry, input_func=input_func)

    def run(self) -> int:
        """Listen, hand the terminal to the operator, and clean up on exit."""
        self.listener.start()
        try:
            self.console.run()
        finally:
            self.shutdown()
        return 0

    def shutdown(self):
        print("Exiting server...")
        self.listener.stop()

    def handle_message(self, session: Session, text: str):
        """Process one message from an agent. Runs on the session's reader thread."""
        try:
            msg = protocol.decode_message(text)
        except ProtocolError as e:
            print(f"\n[?] Unknown message from client {session.label}: {e}", file=sys.stderr)
            return

        msg_type = msg["type"]
        if msg_type == "output":
            print(f"\n[Client {session.label}]: {msg['text']}")
        elif msg_type == "file_content":
            self.save_file(session, msg["name"], msg["data"])
        elif msg_type == "upload_request":
            transfer.send_file(session, msg["path"])
        else:
            print(f"\n[?] Unknown message from client {session.label}: {msg['text']}")

    def save_file(self, session: Session, name: str, data: bytes):
        try:
            with session.transferring():
                path = transfer.receive_file(name, data, self.download_dir)
        except FileIOError as e:
            print(f"\n[!] Error saving file from {session.label}: {e}", file=sys.stderr)
            return
        print(f"\n[i] File saved as: {path} ({len(data)} bytes from {session.label})")


def main():
    cfg = ListenerConfig()
    try:
        cfg.load_from_env()
    except ValueError as e:
        print(f"[!] Invalid environment setting: {e}", file=sys.stderr)
        sys.exit(1)

    parser = argparse.ArgumentParser(description="hubshell controller: single-operator TCP control point")
    parser.add_argument("--host", help=f"Address to bind (default: {cfg.HOST})")
    parser.add_argument("--port", "-p", type=int,
                        help=f"Port to listen on (default: {cfg.PORT})")
    parser.add_argument("--download-dir", "-d",
                        help="Where received files are saved (default: current directory)")
    parser.add_argument("--settle", type=float,
                        help=f"Seconds of quiet that end an inbound message (default: {cfg.SETTLE_INTERVAL})")
    parser.add_argument("--max-message-size", type=int,
                        help=f"Largest inbound message in bytes (default: {cfg.MAX_MESSAGE_SIZE})")
    args = parser.parse_args()

    if args.host: cfg.HOST = args.host
    if args.port is not None: cfg.PORT = args.port
    if args.download_dir: cfg.DOWNLOAD_DIR = args.download_dir
    if args.settle is not None: cfg.SETTLE_INTERVAL = args.settle
    if args.max_message_size is not None: cfg.MAX_MESSAGE_SIZE = args.max_message_size

    print(f"[i] hubshell controller v{__version__}")
    print(f"[i] Received files go to {cfg.download_dir()}\n")

    controller = Controller(cfg)
    try:
        status = controller.run()
    except TransportError as e:
        print(f"[!] {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(status)


if __name__ == "__main__":
    main()
