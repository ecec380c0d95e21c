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
# THE WORKBENCH - RUNTIME WIRING
# -----------------------------------------------------------------------------
# Responsibility: Own every long-lived piece of one chasm session.
#
# Pipeline: ChangeWatcher -> CompileScheduler -> Compiler -> BroadcastHub
# Independent: NodeManager (primary + fork anvil), driven by HTTP requests
#
# Startup order:
# 1. Primary anvil (failure is logged, the session keeps running)
# 2. Compile worker + filesystem observer
# 3. Initial compile, so the cache is populated before the first viewer
# -----------------------------------------------------------------------------

from rich.console import Console
from watchdog.observers import Observer

from chasm.core.compiler import Compiler
from chasm.core.config import ChasmConfig
from chasm.core.hub import BroadcastHub
from chasm.core.nodes import NodeManager, SpawnError
from chasm.core.versions import ToolchainState
from chasm.core.watcher import ChangeWatcher, CompileScheduler, WatchError

console = Console()


class Workbench:
    """One project root, its live Snapshot stream and its chain simulators."""

    def __init__(
        self,
        config: ChasmConfig,
        compiler: Compiler | None = None,
        hub: BroadcastHub | None = None,
        nodes: NodeManager | None = None,
        observer_factory=None,
    ) -> None:
        self.config = config
        self.toolchain_state = ToolchainState()
        self.hub = hub or BroadcastHub(capacity=config.subscriber_capacity)
        self.compiler = compiler or Compiler.from_config(config, self.toolchain_state)
        self.scheduler = CompileScheduler(
            self.compiler.compile_to_json,
            self.hub.publish,
            debounce_seconds=config.debounce_seconds,
        )
        self.watcher = ChangeWatcher(
            config.root,
            self.scheduler,
            config.extensions,
            observer_factory=observer_factory or Observer,
        )
        self.nodes = nodes or NodeManager.from_config(config)
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Bring the session up. Blocks for the initial compile."""
        if self._started:
            return

        if self.config.start_primary:
            try:
                self.nodes.start_primary()
            except SpawnError as e:
                console.print(f"[red][WORKBENCH] Failed to start anvil: {e}[/red]")

        # Observe first, so a save during the initial compile gets a follow-up
        self.scheduler.start()
        try:
            self.watcher.start()
        except WatchError as e:
            console.print(f"[red][WORKBENCH] {e} - live recompile disabled[/red]")

        console.print("[cyan][WORKBENCH] Performing initial compilation...[/cyan]")
        payload = self.scheduler.run_now()
        if payload is not None:
            console.print(f"[dim][WORKBENCH] Initial payload size: {len(payload)}[/dim]")

        self._started = True

    def shutdown(self) -> None:
        """Stop observing, let any in-flight compile finish, kill every node."""
        console.print("[yellow][WORKBENCH] Shutting down...[/yellow]")
        self.watcher.stop()
        self.scheduler.stop()
        self.nodes.close()
        self._started = False
