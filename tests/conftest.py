"""Pytest configuration and shared fixtures."""

import pytest

from hubshell.registry import SessionRegistry


class FakeConn:
    """Stands in for a connected socket; records what is sent."""

    def __init__(self, fail_send: bool = False):
        self.sent = []
        self.closed = False
        self.fail_send = fail_send

    def sendall(self, data: bytes) -> None:
        if self.fail_send or self.closed:
            raise BrokenPipeError(32, "Broken pipe")
        self.sent.append(data)

    def shutdown(self, how) -> None:
        if self.closed:
            raise OSError(9, "Bad file descriptor")

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def add_session(registry):
    """Register a fake session and return it."""
    counter = {"port": 50000}

    def _add(address: str = "10.0.0.5", context: str = "/srv/ops", fail_send: bool = False):
        counter["port"] += 1
        return registry.add(FakeConn(fail_send=fail_send), (address, counter["port"]), context)

    return _add
