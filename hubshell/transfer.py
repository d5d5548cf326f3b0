"""
File transfer engine.

Files move as a single base64 FILE_CONTENT message, read fully into
memory. No chunking and no resume.
"""

import os
import sys
import tempfile

from . import protocol
from .errors import FileIOError, ProtocolError
from .registry import Session


def send_file(session: Session, local_path: str) -> bool:
    """
    Push a local file to the peer.

    On a read failure the peer gets a textual error instead of a file
    and the operator sees the reason. Returns True if FILE_CONTENT was sent.
    Raises TransportError if the connection itself fails.
    """
    full_path = os.path.abspath(local_path)
    with session.transferring():
        try:
            with open(full_path, "rb") as handle:
                data = handle.read()
            message = protocol.encode_file_content(full_path, data)
        except (OSError, ProtocolError) as e:
            reason = e.strerror if isinstance(e, OSError) and e.strerror else str(e)
            print(f"[!] Upload to {session.label} failed: {full_path}: {reason}",
                  file=sys.stderr)
            session.send(protocol.encode_read_error(f"{reason}: {full_path}"))
            return False
        session.send(message)
    print(f"[i] Sent {len(data)} bytes of {full_path} to {session.label}")
    return True


def resolve_download_path(name: str, download_dir: str) -> str:
    """Map a peer-supplied file name into download_dir, dropping any directory part."""
    base = os.path.basename(name.replace("\\", "/"))
    if base in ("", ".", ".."):
        raise FileIOError(f"refusing file name {name!r}")
    return os.path.join(os.path.abspath(download_dir), base)


def receive_file(name: str, data: bytes, download_dir: str) -> str:
    """
    Save an inbound payload atomically and return its final path.

    The bytes land in a temporary file beside the target and are moved
    into place with os.replace, so a failed write never leaves a partial
    file under the final name.
    """
    target = resolve_download_path(name, download_dir)
    directory = os.path.dirname(target)
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=".hubshell-", suffix=".part", dir=directory)
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, target)
        tmp_path = None
    except OSError as e:
        raise FileIOError(f"{target}: {e.strerror or e}") from e
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
    return target
