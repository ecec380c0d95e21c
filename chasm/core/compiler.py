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
# THE COMPILER - COMPILATION ORCHESTRATOR
# -----------------------------------------------------------------------------
# Responsibility: Turn a project root into one Snapshot.
#
# Pipeline: SourceTree -> VersionResolver -> solc --standard-json -> Snapshot
#
# Every failure (missing binary, non-zero exit, malformed output, compiler
# diagnostics) becomes a CompileFailure Snapshot. Nothing raised by the
# toolchain ever reaches the caller: the pipeline always has *some* current
# Snapshot to show.
# -----------------------------------------------------------------------------

import traceback
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from chasm.core.config import ChasmConfig
from chasm.core.versions import (
    ToolchainState,
    VersionResolver,
    iter_source_files,
)
from chasm.domain.models import (
    CompilationSnapshot,
    CompileFailure,
    CompileSuccess,
    serialize_snapshot,
)
from chasm.infra.toolchain import Toolchain, ToolchainError

console = Console()

SOURCE_DIR_NAME = "contracts"
REMAPPINGS_FILE = "remappings.txt"

OUTPUT_SELECTION = [
    "abi",
    "evm.bytecode",
    "evm.deployedBytecode",
    "evm.methodIdentifiers",
    "metadata",
    "storageLayout",
    "devdoc",
    "userdoc",
]


class CompileError(Exception):
    """Raised when the compiler reports diagnostics of severity 'error'."""

    def __init__(self, message: str, diagnostic: str) -> None:
        super().__init__(message)
        self.diagnostic = diagnostic


@dataclass(frozen=True)
class SourceTree:
    """A project root plus the directory its sources live in."""

    root: Path
    sources: Path

    @classmethod
    def resolve(cls, root: Path, sources_dir: str = SOURCE_DIR_NAME) -> "SourceTree":
        """Prefer the conventional sources subfolder, else the root itself."""
        root = Path(root)
        candidate = root / sources_dir
        return cls(root=root, sources=candidate if candidate.is_dir() else root)


def read_remappings(root: Path) -> list[str]:
    """Read import remappings from remappings.txt, if the project has one."""
    path = root / REMAPPINGS_FILE
    if not path.exists():
        return []
    remappings = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            remappings.append(line)
    return remappings


def format_diagnostics(errors: list[dict]) -> str:
    """Aggregate compiler diagnostics into one human-readable message."""
    messages = []
    for error in errors:
        text = error.get("formattedMessage") or error.get("message") or str(error)
        messages.append(text.strip())
    return "\n\n".join(messages)


class Compiler:
    """
    The Compilation Orchestrator.

    Holds a project root for its whole lifetime but re-resolves the
    SourceTree on every compile, since the layout on disk can change.
    """

    def __init__(
        self,
        root: Path,
        toolchain: Toolchain | None = None,
        resolver: VersionResolver | None = None,
        sources_dir: str = SOURCE_DIR_NAME,
        extension: str = ".sol",
    ) -> None:
        self._root = Path(root)
        self._toolchain = toolchain or Toolchain()
        self._resolver = resolver or VersionResolver(self._toolchain, extension=extension)
        self._sources_dir = sources_dir
        self._extension = extension

    @classmethod
    def from_config(
        cls, config: ChasmConfig, state: ToolchainState | None = None
    ) -> "Compiler":
        """Build a Compiler wired to the configured toolchain binaries."""
        toolchain = Toolchain(
            solc_binary=config.solc_binary,
            version_manager=config.version_manager,
            timeout=config.compile_timeout,
        )
        extension = next(iter(config.extensions))
        resolver = VersionResolver(
            toolchain,
            state=state,
            extension=extension,
            max_lines=config.pragma_scan_lines,
        )
        return cls(
            config.root,
            toolchain=toolchain,
            resolver=resolver,
            sources_dir=config.sources_dir,
            extension=extension,
        )

    @property
    def root(self) -> Path:
        return self._root

    def source_tree(self) -> SourceTree:
        return SourceTree.resolve(self._root, self._sources_dir)

    def build_input(self, tree: SourceTree) -> dict:
        """
        Build the standard-JSON input for every source file in the tree.

        Source keys are paths relative to the project root so that the
        compiler's import resolution (base path = root) agrees with them.
        """
        sources = {}
        for path in iter_source_files(tree.sources, self._extension):
            key = path.relative_to(tree.root).as_posix()
            sources[key] = {"content": path.read_text(encoding="utf-8")}

        settings: dict = {"outputSelection": {"*": {"*": OUTPUT_SELECTION}}}
        remappings = read_remappings(tree.root)
        if remappings:
            settings["remappings"] = remappings

        return {"language": "Solidity", "sources": sources, "settings": settings}

    def _collect_contracts(self, output: dict) -> dict:
        """
        Flatten compiler output into an ordered name -> artifact mapping.

        Two contracts with the same name in different files collapse to
        one entry holding the artifact processed last.
        """
        contracts: dict = {}
        for source_path, by_name in (output.get("contracts") or {}).items():
            for name, artifact in by_name.items():
                if name in contracts:
                    console.print(
                        f"[yellow][COMPILER] Duplicate contract name '{name}': "
                        f"{source_path} overrides the earlier artifact[/yellow]"
                    )
                contracts[name] = artifact
        return contracts

    def compile_or_raise(self) -> CompileSuccess:
        """
        Compile the project.

        Raises:
            CompileError: The compiler reported errors.
            ToolchainError: The compiler could not be run or its output parsed.
            OSError: A source file could not be read.
        """
        tree = self.source_tree()
        console.print(f"[cyan][COMPILER] Compiling sources in {tree.sources}[/cyan]")

        self._resolver.resolve_and_align(tree.sources)

        compiler_input = self.build_input(tree)
        if not compiler_input["sources"]:
            console.print("[yellow][COMPILER] No source files found[/yellow]")
            return CompileSuccess(contracts={})

        output = self._toolchain.compile_standard_json(compiler_input, tree.root)

        diagnostics = output.get("errors") or []
        errors = [d for d in diagnostics if d.get("severity") == "error"]
        if errors:
            raise CompileError(
                f"Compilation failed with {len(errors)} error(s)",
                diagnostic=format_diagnostics(errors),
            )

        warnings = len(diagnostics) - len(errors)
        if warnings:
            console.print(f"[dim][COMPILER] {warnings} warning(s)[/dim]")

        return CompileSuccess(contracts=self._collect_contracts(output))

    def compile(self) -> CompilationSnapshot:
        """Compile the project and return a Snapshot. Never raises."""
        try:
            snapshot = self.compile_or_raise()
        except CompileError as e:
            first_line = e.diagnostic.splitlines()[0] if e.diagnostic else str(e)
            console.print(f"[red][COMPILER] {e}: {first_line}[/red]")
            return CompileFailure(error=e.diagnostic or str(e))
        except ToolchainError as e:
            console.print(f"[red][COMPILER] Toolchain failure: {e}[/red]")
            return CompileFailure(error=str(e))
        except OSError as e:
            console.print(f"[red][COMPILER] Could not read sources: {e}[/red]")
            return CompileFailure(error=f"Could not read sources: {e}")
        except Exception as e:
            console.print(f"[red][COMPILER] Unexpected failure: {e}[/red]")
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
            return CompileFailure(error=f"Unexpected compiler failure: {e}")

        console.print(
            f"[green][COMPILER] Compilation successful: "
            f"{len(snapshot.contracts)} contract(s)[/green]"
        )
        return snapshot

    def compile_to_json(self) -> str:
        """Compile and serialize to the wire payload. Always valid JSON."""
        return serialize_snapshot(self.compile())
