"""
Pytest configuration and fixtures for Chasm tests.
"""

import os
import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

TOKEN_SOURCE = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.19;

contract Token {
    uint256 public totalSupply;
}
"""


@pytest.fixture(autouse=True)
def clean_chasm_env(monkeypatch):
    """Keep the developer's CHASM_* variables out of the tests."""
    for name in list(os.environ):
        if name.startswith("CHASM_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def solidity_project(tmp_path):
    """A project root with one contract under contracts/."""
    contracts = tmp_path / "contracts"
    contracts.mkdir()
    (contracts / "Token.sol").write_text(TOKEN_SOURCE)
    return tmp_path


@pytest.fixture
def mock_toolchain():
    """Toolchain double: no-op install/use, empty successful compile."""
    toolchain = MagicMock()
    toolchain.compile_standard_json.return_value = {"contracts": {}}
    return toolchain


# =============================================================================
# FAKE PROCESSES
# =============================================================================


class FakeProcess:
    """Stands in for subprocess.Popen. Alive until killed unless given an exit code."""

    _next_pid = 4000

    def __init__(self, args, events, exit_code=None):
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.args = args
        self.returncode = exit_code
        self._events = events

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        if self.returncode is None:
            raise subprocess.TimeoutExpired(self.args, timeout)
        return self.returncode

    def kill(self):
        self._events.append(("kill", self.pid))
        if self.returncode is None:
            self.returncode = -9


class FakePopen:
    """Records every spawn and kill in one ordered event log."""

    def __init__(self):
        self.events = []
        self.processes = []
        self.exit_code = None
        self.output = ""
        self.error = None

    def __call__(self, args, **kwargs):
        if self.error is not None:
            raise self.error
        stdout = kwargs.get("stdout")
        if self.output and hasattr(stdout, "write"):
            stdout.write(self.output)
        process = FakeProcess(args, self.events, self.exit_code)
        self.events.append(("spawn", process.pid))
        self.processes.append(process)
        return process


@pytest.fixture
def fake_popen():
    """Patch process creation for the node supervisor."""
    factory = FakePopen()
    with patch("chasm.core.nodes.subprocess.Popen", factory):
        yield factory
