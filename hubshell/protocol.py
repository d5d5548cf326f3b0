"""
hubshell Protocol Definitions
Line-oriented text messages exchanged with agents.

Every message is `<TAG>:<field>...`, fields separated by ':'.
Field values must not contain the separator, so file names with a
colon are refused on the way out and rejected as malformed on the
way in.

Decoded messages are plain dicts with a "type" field.
"""

import base64
import binascii
import os
from typing import Dict, List

from .errors import ProtocolError

SEPARATOR = ":"

# Agent → Controller
OUTPUT_PREFIXES = ("Command output:", "Error executing command:")
FILE_CONTENT = "FILE_CONTENT"
UPLOAD_FILE = "UPLOAD_FILE"

# Controller → Agent
SHELL_COMMAND = "SHELL_COMMAND"
DOWNLOAD_FILE = "DOWNLOAD_FILE"
READ_ERROR_PREFIX = "Error reading file: "

# Example decoded messages:

# "Command output: /home/student"
# {"type": "output", "text": "Command output: /home/student"}

# "FILE_CONTENT:notes.txt:aGVsbG8="
# {"type": "file_content", "name": "notes.txt", "data": b"hello"}

# "UPLOAD_FILE:report.txt"
# {"type": "upload_request", "path": "report.txt"}


MESSAGE_STARTS = OUTPUT_PREFIXES + (FILE_CONTENT + SEPARATOR, UPLOAD_FILE + SEPARATOR)


def split_messages(text: str) -> List[str]:
    """
    Split received text into messages.

    Every line that starts with a known tag opens a new message; other
    lines belong to the message before them, so multi-line command
    output stays whole.
    """
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])

    messages: List[str] = []
    for line in lines:
        if not messages or line.startswith(MESSAGE_STARTS):
            messages.append(line)
        else:
            messages[-1] += line
    return messages


def decode_message(text: str) -> Dict:
    """
    Classify one inbound message by its prefix.

    Raises ProtocolError for a recognized tag with bad fields. Text
    without a known tag decodes to {"type": "unknown"}.
    """
    message = text.rstrip()

    if message.startswith(OUTPUT_PREFIXES):
        return {"type": "output", "text": message}

    if message.startswith(FILE_CONTENT + SEPARATOR):
        fields = message.split(SEPARATOR)
        if len(fields) != 3:
            raise ProtocolError(
                f"{FILE_CONTENT} expects 3 fields, got {len(fields)}"
            )
        _, name, payload = fields
        if not name:
            raise ProtocolError(f"{FILE_CONTENT} without a file name")
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProtocolError(f"{FILE_CONTENT} payload is not base64: {e}") from e
        return {"type": "file_content", "name": name, "data": data}

    if message.startswith(UPLOAD_FILE + SEPARATOR):
        path = message[len(UPLOAD_FILE) + 1:].strip()
        if not path:
            raise ProtocolError(f"{UPLOAD_FILE} without a path")
        return {"type": "upload_request", "path": path}

    return {"type": "unknown", "text": message}


def encode_shell_command(command: str) -> bytes:
    return f"{SHELL_COMMAND}{SEPARATOR}{command}".encode("utf-8")


def encode_download_request(path: str) -> bytes:
    return f"{DOWNLOAD_FILE}{SEPARATOR}{path}".encode("utf-8")


def encode_file_content(path: str, data: bytes) -> bytes:
    """Encode a file push. Only the base name of `path` goes on the wire."""
    name = os.path.basename(path)
    if not name:
        raise ProtocolError(f"no file name in {path!r}")
    if SEPARATOR in name:
        raise ProtocolError(f"file name {name!r} contains '{SEPARATOR}'")
    payload = base64.b64encode(data).decode("ascii")
    return f"{FILE_CONTENT}{SEPARATOR}{name}{SEPARATOR}{payload}".encode("utf-8")


def encode_read_error(reason: str) -> bytes:
    return f"{READ_ERROR_PREFIX}{reason}".encode("utf-8")
