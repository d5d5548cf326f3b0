import os
from typing import Optional

# ========= Static config =========
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 6969
LISTEN_BACKLOG = 5
ACCEPT_POLL_INTERVAL = 1.0
RECV_BUFFER_SIZE = 65536

# A message is one burst of bytes; keep reading while the peer is still sending.
DEFAULT_SETTLE_INTERVAL = 0.05
DEFAULT_MAX_MESSAGE_SIZE = 64 * 1024 * 1024


# ========= Runtime Configuration =========
class ListenerConfig:
    def __init__(self):
        self.HOST: str = DEFAULT_HOST
        self.PORT: int = DEFAULT_PORT
        self.DOWNLOAD_DIR: Optional[str] = None
        self.SETTLE_INTERVAL: float = DEFAULT_SETTLE_INTERVAL
        self.MAX_MESSAGE_SIZE: int = DEFAULT_MAX_MESSAGE_SIZE

    def load_from_env(self):
        self.HOST = os.environ.get("HUBSHELL_HOST", self.HOST)
        self.PORT = int(os.environ.get("HUBSHELL_PORT", self.PORT))
        self.DOWNLOAD_DIR = os.environ.get("HUBSHELL_DOWNLOAD_DIR", self.DOWNLOAD_DIR)

    def download_dir(self) -> str:
        """Directory where inbound FILE_CONTENT payloads are saved."""
        return os.path.abspath(self.DOWNLOAD_DIR or os.getcwd())
