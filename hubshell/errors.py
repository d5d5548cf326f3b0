"""
hubshell error taxonomy.

Only a bind failure is fatal. Everything else is reported and the
affected session (or prompt) carries on.
"""


class HubshellError(Exception):
    """Base class for hubshell errors."""


class TransportError(HubshellError):
    """Socket-level failure: bind at startup, or one connection."""


class ProtocolError(HubshellError):
    """Malformed or unencodable protocol message."""


class FileIOError(HubshellError):
    """Read or write failure during a file transfer."""


class OperatorInputError(HubshellError):
    """Invalid menu choice or console command."""
