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
# THE VERSION RESOLVER - TOOLCHAIN ALIGNMENT
# -----------------------------------------------------------------------------
# Responsibility: Pick the compiler version the sources ask for and make it
# the active one before each compile.
#
# Selection rule: every x.y.z token on a `pragma solidity` line within the
# first PRAGMA_SCAN_LINES lines of every source file is collected, and the
# numerically largest triple wins. No range resolution is attempted.
#
# Alignment never fails the caller. A failed install/activate is logged and
# the compile runs with whatever compiler is already active.
# -----------------------------------------------------------------------------

import re
import threading
from pathlib import Path

from rich.console import Console

from chasm.infra.toolchain import Toolchain, ToolchainAlignError

console = Console()

PRAGMA_SCAN_LINES = 20
DIRECTIVE_KEYWORD = "pragma solidity"
VERSION_TOKEN = re.compile(r"(?<![\d.])(\d+)\.(\d+)\.(\d+)(?![\d.])")

# Never part of the project's own sources
SKIPPED_DIRS = {".git", "node_modules", "out", "cache"}

Version = tuple[int, int, int]


def iter_source_files(root: Path, extension: str = ".sol") -> list[Path]:
    """All source files under `root`, sorted, skipping build and vendor dirs."""
    files = []
    for path in sorted(root.rglob(f"*{extension}")):
        relative = path.relative_to(root)
        if any(part in SKIPPED_DIRS for part in relative.parts[:-1]):
            continue
        if path.is_file():
            files.append(path)
    return files


def format_version(version: Version) -> str:
    return ".".join(str(part) for part in version)


def parse_directive(line: str) -> list[Version]:
    """Extract every three-component version token from a directive line."""
    if DIRECTIVE_KEYWORD not in line:
        return []
    return [
        (int(major), int(minor), int(patch))
        for major, minor, patch in VERSION_TOKEN.findall(line)
    ]


def scan_file(path: Path, max_lines: int = PRAGMA_SCAN_LINES) -> list[Version]:
    """Collect directive versions from the head of one source file."""
    found: list[Version] = []
    with open(path, encoding="utf-8", errors="replace") as f:
        for index, line in enumerate(f):
            if index >= max_lines:
                break
            found.extend(parse_directive(line))
    return found


def find_max_version(
    root: Path, extension: str = ".sol", max_lines: int = PRAGMA_SCAN_LINES
) -> Version | None:
    """
    Scan a source tree and return the largest declared version.

    Args:
        root: Directory to scan recursively.
        extension: Source-file extension to consider.
        max_lines: Lines read from the top of each file.

    Returns:
        The maximum (major, minor, patch) triple, or None if no file declares one.
    """
    best: Version | None = None
    for path in iter_source_files(root, extension):
        try:
            versions = scan_file(path, max_lines)
        except OSError as e:
            console.print(f"[yellow][VERSIONS] Could not read {path}: {e}[/yellow]")
            continue
        for version in versions:
            if best is None or version > best:
                best = version
    return best


class ToolchainState:
    """
    Memo of the last compiler version successfully aligned.

    One instance is shared by every compile for the lifetime of a workbench.
    The lock is held for the whole install/activate step so overlapping
    callers never install the same version twice.
    """

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.current: Version | None = None


class VersionResolver:
    """Aligns the active compiler with the version declared by the sources."""

    def __init__(
        self,
        toolchain: Toolchain,
        state: ToolchainState | None = None,
        extension: str = ".sol",
        max_lines: int = PRAGMA_SCAN_LINES,
    ) -> None:
        self._toolchain = toolchain
        self._state = state or ToolchainState()
        self._extension = extension
        self._max_lines = max_lines

    @property
    def state(self) -> ToolchainState:
        return self._state

    def resolve_and_align(self, root: Path) -> Version | None:
        """
        Resolve the target version under `root` and make it active.

        Never raises. Returns the resolved version (aligned or not), or None
        when the sources declare no version.
        """
        target = find_max_version(root, self._extension, self._max_lines)
        if target is None:
            console.print("[dim][VERSIONS] No version directive found, using active solc[/dim]")
            return None

        version = format_version(target)
        console.print(f"[dim][VERSIONS] Sources require solc {version}[/dim]")
        with self._state.lock:
            if self._state.current == target:
                return target

            console.print(f"[cyan][VERSIONS] Aligning solc to {version}[/cyan]")
            try:
                self._toolchain.install(version)
                self._toolchain.use(version)
            except ToolchainAlignError as e:
                console.print(f"[yellow][VERSIONS] {e} - compiling with active solc[/yellow]")
                return target

            self._state.current = target
        return target
