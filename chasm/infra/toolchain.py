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
# SOLIDITY TOOLCHAIN - Compiler & Version Manager
# -----------------------------------------------------------------------------
# Responsibility: Run the external toolchain binaries as opaque black boxes.
# Uses subprocess for lean, direct command execution.
#
# Binaries:
# - solc --standard-json : the compiler (JSON in, JSON out)
# - svm install / use    : the compiler version manager
#
# Every invocation has a hard timeout so a hung binary cannot stall the
# compile worker.
# -----------------------------------------------------------------------------

import json
import subprocess
from pathlib import Path

from rich.console import Console

console = Console()

DEFAULT_TIMEOUT_SECONDS = 120
INSTALL_TIMEOUT_SECONDS = 300  # Downloads a compiler release


class ToolchainError(Exception):
    """Raised when a toolchain binary is missing, hangs, fails or emits garbage."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class ToolchainAlignError(ToolchainError):
    """Raised when installing or activating a compiler version fails."""

    pass


class Toolchain:
    """
    Lean wrapper around the compiler and version-manager binaries.

    The active compiler is whatever the version manager last selected.
    """

    def __init__(
        self,
        solc_binary: str = "solc",
        version_manager: str = "svm",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._solc = solc_binary
        self._svm = version_manager
        self._timeout = timeout

    def _run(
        self,
        cmd: list,
        stdin: str | None = None,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess:
        """
        Run a toolchain command.

        Raises:
            ToolchainError: If the binary is missing, times out or exits non-zero.
        """
        limit = timeout or self._timeout
        try:
            result = subprocess.run(
                cmd,
                input=stdin,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=limit,
            )
        except FileNotFoundError:
            raise ToolchainError(f"Executable not found: {cmd[0]}")
        except subprocess.TimeoutExpired:
            raise ToolchainError(f"{cmd[0]} timed out ({limit:.0f}s limit)")
        except (OSError, subprocess.SubprocessError) as e:
            raise ToolchainError(f"{cmd[0]} failed to run: {e}")

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "Unknown error").strip()
            raise ToolchainError(
                f"{cmd[0]} exited with code {result.returncode}: {output}", output=output
            )
        return result

    def compile_standard_json(self, compiler_input: dict, base_path: Path) -> dict:
        """
        Compile a standard-JSON input document.

        Args:
            compiler_input: The standard-JSON input (language, sources, settings).
            base_path: Project root; imports are resolved and allowed under it.

        Returns:
            The parsed standard-JSON output. Compile diagnostics live in its
            "errors" list; they are not raised here.

        Raises:
            ToolchainError: On any invocation failure or malformed output.
        """
        cmd = [
            self._solc,
            "--standard-json",
            "--base-path", str(base_path),
            "--allow-paths", str(base_path),
        ]
        result = self._run(cmd, stdin=json.dumps(compiler_input), cwd=base_path)

        try:
            output = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ToolchainError(f"Malformed compiler output: {e}", output=result.stdout[:500])
        if not isinstance(output, dict):
            raise ToolchainError("Malformed compiler output: expected a JSON object")
        return output

    def install(self, version: str) -> None:
        """
        Install a compiler version.

        Raises:
            ToolchainAlignError: If the version manager fails.
        """
        console.print(f"[cyan][TOOLCHAIN] Installing solc {version}...[/cyan]")
        try:
            self._run([self._svm, "install", version], timeout=INSTALL_TIMEOUT_SECONDS)
        except ToolchainError as e:
            raise ToolchainAlignError(f"Install of solc {version} failed: {e}", output=e.output)

    def use(self, version: str) -> None:
        """
        Activate an installed compiler version.

        Raises:
            ToolchainAlignError: If the version manager fails.
        """
        try:
            self._run([self._svm, "use", version])
        except ToolchainError as e:
            raise ToolchainAlignError(f"Activation of solc {version} failed: {e}", output=e.output)
        console.print(f"[green][TOOLCHAIN] solc {version} active[/green]")
