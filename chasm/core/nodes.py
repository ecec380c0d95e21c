# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# THE NODE SUPERVISOR - EPHEMERAL CHAIN SIMULATORS
# -----------------------------------------------------------------------------
# Responsibility: Start, restart and stop local anvil processes.
#
# - AnvilNode: one supervised process (primary or fork), one lock each
# - NodeManager: owns the primary + fork nodes and kills both on teardown
#
# State machine per node: STOPPED -> STARTING -> RUNNING -> STOPPED
# Stopping is forceful (kill), never graceful.
#
# Safety Features:
# - At most one live OS process per node: every start stops the old one first
# - Startup grace check: a process that dies immediately (port in use, bad
#   fork URL) is reported as SpawnError and the node stays STOPPED
# - Teardown: NodeManager.close() runs on shutdown AND at interpreter exit
# -----------------------------------------------------------------------------

import subprocess
import threading
import weakref
from pathlib import Path

from rich.console import Console

from chasm.domain.models import NodeKind, NodeState, NodeStatus

console = Console()

# Configuration
ANVIL_BINARY = "anvil"
PRIMARY_PORT = 8545
FORK_PORT = 8546
STARTUP_GRACE_SECONDS = 0.5  # A process alive after this is considered up
KILL_WAIT_SECONDS = 5
LOG_TAIL_CHARS = 500


class SpawnError(Exception):
    """Raised when a node process fails to start. The node remains STOPPED."""

    def __init__(self, message: str, kind: NodeKind, port: int) -> None:
        super().__init__(message)
        self.kind = kind
        self.port = port


class AnvilNode:
    """
    One supervised anvil process.

    start/start_fork/stop are serialized on the node's own lock, so a status
    query never observes the gap between stopping the old process and
    starting the new one.
    """

    def __init__(
        self,
        kind: NodeKind,
        port: int,
        binary: str = ANVIL_BINARY,
        startup_grace: float = STARTUP_GRACE_SECONDS,
        log_dir: Path | None = None,
    ) -> None:
        self.kind = kind
        self._port = port
        self._binary = binary
        self._startup_grace = startup_grace
        self._log_dir = Path(log_dir) if log_dir else None

        self._lock = threading.RLock()
        self._state = NodeState.STOPPED
        self._process: subprocess.Popen | None = None
        self._log_file = None
        self._fork_url: str | None = None
        self._fork_block: int | None = None

    @property
    def port(self) -> int:
        return self._port

    @property
    def state(self) -> NodeState:
        with self._lock:
            self._reap_if_exited()
            return self._state

    def is_running(self) -> bool:
        return self.state == NodeState.RUNNING

    def fork_info(self) -> tuple[str | None, int | None]:
        with self._lock:
            return self._fork_url, self._fork_block

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def start(self, port: int | None = None) -> NodeStatus:
        """
        Start a plain (non-fork) node. A running process is stopped first.

        Raises:
            SpawnError: If the process fails to start.
        """
        with self._lock:
            self._stop_locked()
            if port is not None:
                self._port = port
            self._fork_url = None
            self._fork_block = None
            self._spawn(self._command())
            console.print(f"[green][NODE] {self.kind.value} anvil running on port {self._port}[/green]")
            return self.status()

    def start_fork(
        self, rpc_url: str, block_number: int | None = None, port: int | None = None
    ) -> NodeStatus:
        """
        Start a node replaying state from `rpc_url`, pinned to `block_number`
        if given. A running process is stopped first.

        Raises:
            SpawnError: If the process fails to start.
        """
        with self._lock:
            self._stop_locked()
            if port is not None:
                self._port = port

            # Cleared until the replacement is up
            self._fork_url = None
            self._fork_block = None

            cmd = self._command() + ["--fork-url", rpc_url]
            if block_number is not None:
                cmd += ["--fork-block-number", str(block_number)]

            self._spawn(cmd)
            self._fork_url = rpc_url
            self._fork_block = block_number
            pinned = f"@{block_number}" if block_number is not None else "@latest"
            console.print(
                f"[green][NODE] {self.kind.value} anvil forking {rpc_url}{pinned} "
                f"on port {self._port}[/green]"
            )
            return self.status()

    def stop(self) -> None:
        """Kill the process if running. Idempotent."""
        with self._lock:
            self._stop_locked()

    def status(self) -> NodeStatus:
        with self._lock:
            self._reap_if_exited()
            running = self._state == NodeState.RUNNING
            return NodeStatus(
                kind=self.kind,
                running=running,
                port=self._port,
                pid=self._process.pid if running and self._process else None,
                rpc_url=self._fork_url,
                block_number=self._fork_block,
            )

    # =========================================================================
    # INTERNALS (lock held)
    # =========================================================================

    def _command(self) -> list[str]:
        return [self._binary, "--port", str(self._port)]

    def _open_log(self):
        if self._log_dir is None:
            return None
        self._log_dir.mkdir(parents=True, exist_ok=True)
        path = self._log_dir / f"chasm-anvil-{self.kind.value}-{self._port}.log"
        return open(path, "w+")

    def _read_log_tail(self) -> str:
        if self._log_file is None:
            return ""
        try:
            self._log_file.flush()
            self._log_file.seek(0)
            return self._log_file.read()[-LOG_TAIL_CHARS:].strip()
        except (OSError, ValueError):
            return ""

    def _close_log(self) -> None:
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None

    def _spawn(self, cmd: list[str]) -> None:
        self._state = NodeState.STARTING
        self._log_file = self._open_log()
        output = self._log_file if self._log_file is not None else subprocess.DEVNULL

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            self._fail_start()
            console.print(f"[red][NODE] Failed to launch {self._binary}: {e}[/red]")
            raise SpawnError(
                f"Failed to start {self.kind.value} anvil: {e}", self.kind, self._port
            ) from e

        try:
            exit_code = process.wait(timeout=self._startup_grace)
        except subprocess.TimeoutExpired:
            self._process = process
            self._state = NodeState.RUNNING
            return

        tail = self._read_log_tail()
        self._fail_start()
        detail = f": {tail}" if tail else ""
        console.print(f"[red][NODE] {self._binary} exited during startup (code {exit_code})[/red]")
        raise SpawnError(
            f"{self.kind.value} anvil exited during startup with code {exit_code}{detail}",
            self.kind,
            self._port,
        )

    def _fail_start(self) -> None:
        self._close_log()
        self._process = None
        self._state = NodeState.STOPPED

    def _stop_locked(self) -> None:
        process = self._process
        self._process = None
        self._state = NodeState.STOPPED
        if process is not None:
            if process.poll() is None:
                process.kill()
                try:
                    process.wait(timeout=KILL_WAIT_SECONDS)
                except subprocess.TimeoutExpired:
                    console.print(f"[red][NODE] pid {process.pid} did not exit after kill[/red]")
            console.print(f"[yellow][NODE] {self.kind.value} anvil stopped (port {self._port})[/yellow]")
        self._close_log()

    def _reap_if_exited(self) -> None:
        """Notice a process that died on its own."""
        if self._process is not None and self._process.poll() is not None:
            console.print(
                f"[yellow][NODE] {self.kind.value} anvil exited "
                f"(code {self._process.returncode})[/yellow]"
            )
            self._process = None
            self._state = NodeState.STOPPED
            self._close_log()


def _shutdown_nodes(nodes: tuple[AnvilNode, ...]) -> None:
    for node in nodes:
        node.stop()


class NodeManager:
    """
    Owner of the primary and fork nodes.

    The two nodes never share a lock. Every process they own is killed by
    close(), by leaving a `with` block, or at interpreter exit.
    """

    def __init__(
        self,
        primary_port: int = PRIMARY_PORT,
        fork_port: int = FORK_PORT,
        binary: str = ANVIL_BINARY,
        startup_grace: float = STARTUP_GRACE_SECONDS,
        log_dir: Path | None = None,
    ) -> None:
        self.primary = AnvilNode(NodeKind.PRIMARY, primary_port, binary, startup_grace, log_dir)
        self.fork = AnvilNode(NodeKind.FORK, fork_port, binary, startup_grace, log_dir)
        self._finalizer = weakref.finalize(self, _shutdown_nodes, (self.primary, self.fork))

    @classmethod
    def from_config(cls, config) -> "NodeManager":
        return cls(
            primary_port=config.primary_port,
            fork_port=config.fork_port,
            binary=config.anvil_binary,
            startup_grace=config.node_startup_grace,
            log_dir=config.node_log_dir,
        )

    def start_primary(self, port: int | None = None) -> NodeStatus:
        return self.primary.start(port)

    def start_fork(
        self, rpc_url: str, block_number: int | None = None, port: int | None = None
    ) -> NodeStatus:
        return self.fork.start_fork(rpc_url, block_number, port)

    def stop_fork(self) -> None:
        self.fork.stop()

    def close(self) -> None:
        """Kill every owned process. Safe to call more than once."""
        _shutdown_nodes((self.primary, self.fork))

    def __enter__(self) -> "NodeManager":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
