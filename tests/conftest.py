"""
Shared pytest fixtures for all tests.

Provides a scratch execution root, fake language server and formatter
executables, and an in-memory stand-in for the client WebSocket channel.
"""

import os
import queue
import stat
import sys
import textwrap
import threading

import pytest

from pyrightbridge.config import BridgeConfig
from pyrightbridge.exceptions import ChannelClosed

FAKE_BACKEND = textwrap.dedent('''
    """Language server stand-in: answers every request with an echo of it."""
    import json
    import sys

    stdin = sys.stdin.buffer
    stdout = sys.stdout.buffer

    def read():
        headers = {}
        while True:
            line = stdin.readline()
            if not line:
                return None
            line = line.strip()
            if not line:
                break
            name, value = line.decode().split(":", 1)
            headers[name.strip().lower()] = value.strip()
        return json.loads(stdin.read(int(headers["content-length"])))

    def write(message):
        body = json.dumps(message).encode()
        stdout.write(b"Content-Length: %d\\r\\n\\r\\n" % len(body) + body)
        stdout.flush()

    sys.stderr.write("fake backend ready\\n")
    sys.stderr.flush()

    while True:
        message = read()
        if message is None:
            break
        if message.get("method") == "crash":
            sys.exit(3)
        if message.get("method") == "garbage":
            stdout.write(b"Content-Length: nope\\r\\n\\r\\n")
            stdout.flush()
            continue
        if "id" in message:
            write({"jsonrpc": "2.0", "id": message["id"], "result": {"echo": message}})
''')

FAKE_FORMATTER = textwrap.dedent('''
    """Formatter stand-in: strips the indentation of every line."""
    import sys

    if len(sys.argv) != 3 or sys.argv[1] != "format":
        sys.stderr.write("usage: formatter format FILE\\n")
        sys.exit(2)

    with open(sys.argv[2]) as f:
        lines = f.read().splitlines()
    with open(sys.argv[2], "w") as f:
        f.write("".join(line.strip() + "\\n" for line in lines))
''')

FAILING_FORMATTER = textwrap.dedent('''
    import sys

    sys.stderr.write("error: Failed to parse temp.py:1:5: Expected an expression\\n")
    sys.exit(2)
''')

HANGING_FORMATTER = textwrap.dedent('''
    import time

    time.sleep(30)
''')


def _write_executable(path, source):
    path.write_text(f"#!{sys.executable}\n{source}")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def execution_root(tmp_path):
    """Execution root directory with one source file."""
    root = tmp_path / "bot"
    root.mkdir()
    (root / "strategies").mkdir()
    (root / "strategies" / "main.py").write_text("def main():\n    pass\n")
    return str(root)


@pytest.fixture
def backend_script(tmp_path):
    path = tmp_path / "fake_backend.py"
    path.write_text(FAKE_BACKEND)
    return str(path)


@pytest.fixture
def formatter_path(tmp_path):
    return _write_executable(tmp_path / "fake-ruff", FAKE_FORMATTER)


@pytest.fixture
def failing_formatter_path(tmp_path):
    return _write_executable(tmp_path / "failing-ruff", FAILING_FORMATTER)


@pytest.fixture
def hanging_formatter_path(tmp_path):
    return _write_executable(tmp_path / "hanging-ruff", HANGING_FORMATTER)


@pytest.fixture
def make_config(execution_root, backend_script, tmp_path):
    """Factory building a BridgeConfig that launches the fake backend."""
    def _make_config(**overrides):
        options = {
            "port": 9011,
            "execution_root": execution_root,
            "reference_root": str(tmp_path / "jesse"),
            "backend_command": [sys.executable, backend_script],
            "shutdown_timeout": 2.0,
        }
        options.update(overrides)
        return BridgeConfig(**options)

    return _make_config


class FakeChannel:
    """In-memory client channel recording everything sent to the client."""

    _CLOSED = object()

    def __init__(self):
        self.id = "test-client"
        self.incoming = queue.Queue()
        self.sent = []
        self.closed = False
        self.close_calls = 0
        self.close_code = None
        self._condition = threading.Condition()

    def push(self, item):
        """Queue a message (or an exception to raise) as if sent by the client."""
        self.incoming.put(item)

    def disconnect(self):
        self.incoming.put(self._CLOSED)

    def receive(self):
        item = self.incoming.get()
        if item is self._CLOSED:
            return None
        if isinstance(item, Exception):
            raise item
        return item

    def send(self, message):
        with self._condition:
            if self.closed:
                raise ChannelClosed("Connection is closed")
            self.sent.append(message)
            self._condition.notify_all()

    def close(self, code=1000, reason=""):
        with self._condition:
            self.close_calls += 1
            if self.closed:
                return
            self.closed = True
            self.close_code = code
            self._condition.notify_all()
        self.disconnect()

    def wait_for(self, predicate, timeout=10):
        """Wait until `predicate(sent_messages)` holds."""
        with self._condition:
            return self._condition.wait_for(lambda: predicate(self.sent), timeout)

    def wait_for_response(self, request_id, timeout=10):
        def find(sent):
            return next((m for m in sent if m.get("id") == request_id), None)

        assert self.wait_for(lambda sent: find(sent) is not None, timeout), f"No response to {request_id}"
        with self._condition:
            return find(self.sent)

    def wait_closed(self, timeout=10):
        with self._condition:
            return self._condition.wait_for(lambda: self.closed, timeout)


@pytest.fixture
def channel():
    return FakeChannel()
