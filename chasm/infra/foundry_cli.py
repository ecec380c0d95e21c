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
# FOUNDRY CLI - forge / cast helpers
# -----------------------------------------------------------------------------
# Responsibility: One-shot inspection commands the web UI asks for.
#
# - forge inspect <file>:<Contract> storage --json : storage layout
# - cast run <tx> --rpc-url <url>                  : transaction trace
#
# Results are returned as plain dicts. Failures become {"error": ...}, the
# shape the UI renders.
# -----------------------------------------------------------------------------

import json
import subprocess
from pathlib import Path

from rich.console import Console

console = Console()

CLI_TIMEOUT_SECONDS = 60


def find_contract_file(root: Path, contract: str, extension: str = ".sol") -> Path | None:
    """Locate `<contract>.sol` anywhere under the project root."""
    target = f"{contract}{extension}"
    for path in sorted(Path(root).rglob(target)):
        if path.is_file():
            return path
    return None


class FoundryCli:
    """Thin wrapper around the forge and cast binaries."""

    def __init__(
        self,
        forge_binary: str = "forge",
        cast_binary: str = "cast",
        timeout: float = CLI_TIMEOUT_SECONDS,
    ) -> None:
        self._forge = forge_binary
        self._cast = cast_binary
        self._timeout = timeout

    def _run(self, cmd: list, cwd: Path | None = None) -> subprocess.CompletedProcess:
        """
        Run a CLI command, returning the completed process.

        Raises:
            OSError: The binary is missing.
            subprocess.TimeoutExpired: The command hung.
        """
        return subprocess.run(
            cmd, cwd=cwd, capture_output=True, text=True, timeout=self._timeout
        )

    def inspect_storage(self, root: Path, sources: Path, contract: str) -> dict:
        """Return the storage layout of `contract` as parsed forge JSON."""
        console.print(f"[cyan][FORGE] Inspecting storage for {contract}[/cyan]")

        path = find_contract_file(root, contract)
        target = f"{path}:{contract}" if path else contract
        cmd = [
            self._forge, "inspect", target, "storage", "--json",
            "--root", str(root),
            "--contracts", str(sources),
        ]

        try:
            result = self._run(cmd)
        except (OSError, subprocess.SubprocessError) as e:
            return {"error": f"Failed to execute forge: {e}"}

        if result.returncode != 0:
            return {"error": f"Forge failed: {result.stderr}"}
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError:
            return {"error": "Failed to parse forge output"}

    def trace_transaction(self, root: Path, tx_hash: str, rpc_url: str) -> dict:
        """Replay a transaction with `cast run`; ANSI output is kept for the UI."""
        console.print(f"[cyan][CAST] Tracing tx {tx_hash} on {rpc_url}[/cyan]")

        cmd = [self._cast, "run", tx_hash, "--rpc-url", rpc_url]
        try:
            result = self._run(cmd, cwd=root)
        except (OSError, subprocess.SubprocessError) as e:
            return {"error": f"Failed to execute cast: {e}"}

        # cast prints the trace on stdout and failures on stderr; the UI shows both
        return {"stdout": result.stdout, "stderr": result.stderr}
