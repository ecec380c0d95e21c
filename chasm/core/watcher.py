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
# THE CHANGE WATCHER - RECOMPILE ON SAVE
# -----------------------------------------------------------------------------
# Responsibility: Observe the project tree and keep the Broadcast Hub fed
# with a fresh Snapshot after every relevant edit.
#
# Two pieces:
# - ChangeWatcher: watchdog observer thread, filters events by extension
# - CompileScheduler: ONE worker thread that owns compilation
#
# Coalescing rules (at most one compile in flight per root):
# - A burst of events inside the debounce window becomes one compile
# - Events arriving while a compile runs become exactly ONE follow-up
#   compile after it finishes. Never a concurrent second compile, never a
#   dropped trigger.
# -----------------------------------------------------------------------------

import threading
import time
import traceback
from collections.abc import Callable
from pathlib import Path

from rich.console import Console
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

console = Console()

DEFAULT_DEBOUNCE_SECONDS = 0.3


class WatchError(Exception):
    """Raised when the filesystem cannot be observed."""

    pass


class CompileScheduler:
    """
    Serializes compiles onto a dedicated worker thread.

    `compile_fn` produces a payload; `publish_fn` receives it (normally
    BroadcastHub.publish, which also updates the cache).
    """

    def __init__(
        self,
        compile_fn: Callable[[], str],
        publish_fn: Callable[[str], None],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        name: str = "chasm-compiler",
    ) -> None:
        self._compile_fn = compile_fn
        self._publish_fn = publish_fn
        self._debounce = debounce_seconds
        self._name = name

        self._cond = threading.Condition()
        self._pending = False
        self._running = False
        self._stopping = False
        self._last_trigger = 0.0
        self._thread: threading.Thread | None = None
        self.compile_count = 0

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "CompileScheduler":
        """Start the worker thread."""
        if self.is_alive:
            return self
        self._stopping = False
        self._thread = threading.Thread(target=self._run, daemon=True, name=self._name)
        self._thread.start()
        return self

    def trigger(self) -> None:
        """Request a compile. Cheap and non-blocking; safe from any thread."""
        with self._cond:
            if self._running and not self._pending:
                console.print("[dim][WATCHER] Compile in flight, follow-up queued[/dim]")
            self._pending = True
            self._last_trigger = time.monotonic()
            self._cond.notify_all()

    def run_now(self) -> str:
        """
        Compile synchronously on the calling thread and publish the result.

        Used for the initial compile. Never overlaps a worker compile; triggers
        arriving meanwhile produce one follow-up compile on the worker.
        """
        with self._cond:
            self._cond.wait_for(lambda: not self._running)
            # This compile reads the latest sources, so earlier triggers are served
            self._pending = False
            self._running = True
        try:
            return self._compile_and_publish()
        finally:
            with self._cond:
                self._running = False
                self._cond.notify_all()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until nothing is pending or running. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._pending and not self._running, timeout=timeout
            )

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker. A compile already in flight runs to completion."""
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
        if self._thread:
            self._thread.join(timeout=timeout)

    def _await_quiet_period(self) -> bool:
        """Hold while triggers keep arriving. Called with the lock held."""
        while True:
            remaining = self._last_trigger + self._debounce - time.monotonic()
            if remaining <= 0 or self._stopping:
                return not self._stopping
            self._cond.wait(timeout=remaining)

    def _run(self) -> None:
        while True:
            with self._cond:
                while True:
                    self._cond.wait_for(
                        lambda: (self._pending and not self._running) or self._stopping
                    )
                    if self._stopping:
                        return
                    if self._debounce > 0 and not self._await_quiet_period():
                        return
                    # run_now() may have started, or absorbed the trigger, meanwhile
                    if self._pending and not self._running:
                        break
                self._pending = False
                self._running = True

            try:
                self._compile_and_publish()
            finally:
                with self._cond:
                    self._running = False
                    self._cond.notify_all()

    def _compile_and_publish(self) -> str | None:
        try:
            payload = self._compile_fn()
            self.compile_count += 1
            self._publish_fn(payload)
            return payload
        except Exception as e:
            console.print(f"[red][WATCHER] Compile cycle failed: {e}[/red]")
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
            return None


class SourceChangeHandler(FileSystemEventHandler):
    """Forwards filesystem events touching relevant source files to a trigger."""

    def __init__(self, trigger: Callable[[], None], extensions: set[str]) -> None:
        super().__init__()
        self._trigger = trigger
        self._extensions = {ext.lower() for ext in extensions}

    def is_relevant(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(
            path and Path(str(path)).suffix.lower() in self._extensions for path in paths
        )

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed_no_write"):
            return
        if self.is_relevant(event):
            console.print(f"[cyan][WATCHER] Change detected: {event.src_path}[/cyan]")
            self._trigger()


class ChangeWatcher:
    """
    Recursive filesystem observer for one project root.

    Runs on watchdog's own observer thread; the event callback only flags
    the scheduler, so it never blocks on a compile.
    """

    def __init__(
        self,
        root: Path,
        scheduler: CompileScheduler,
        extensions: set[str] | None = None,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        self._root = Path(root)
        self._scheduler = scheduler
        self._handler = SourceChangeHandler(scheduler.trigger, extensions or {".sol"})
        self._observer_factory = observer_factory
        self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        """
        Begin observing the root recursively.

        Raises:
            WatchError: If the root cannot be observed.
        """
        if self.is_watching:
            return
        if not self._root.is_dir():
            raise WatchError(f"Cannot watch missing directory: {self._root}")

        observer = self._observer_factory()
        try:
            observer.schedule(self._handler, str(self._root), recursive=True)
            observer.start()
        except OSError as e:
            raise WatchError(f"Failed to watch {self._root}: {e}") from e

        self._observer = observer
        console.print(f"[green][WATCHER] Watching {self._root}[/green]")

    def stop(self, timeout: float = 5.0) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=timeout)
        self._observer = None
        console.print("[yellow][WATCHER] Stopped[/yellow]")
