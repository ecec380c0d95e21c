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
# CHASM - FASTAPI INTERFACE
# -----------------------------------------------------------------------------
# Thin transport over the workbench core, with WebSocket live updates.
#
# Endpoints:
# - GET  /health             : Health check
# - GET  /snapshot           : Latest cached compile payload
# - WS   /ws                 : Live compile payloads (cached value first)
# - POST /fork/start         : Start (or restart) the forked anvil
# - POST /fork/stop          : Stop the forked anvil
# - GET  /fork/status        : Forked anvil status
# - POST /node/start         : Restart the primary anvil
# - POST /node/stop          : Stop the primary anvil
# - GET  /node/status        : Primary anvil status
# - POST /proxy              : JSON-RPC pass-through
# - GET  /inspect/{contract} : Storage layout via forge
# - GET  /trace/{tx_hash}    : Transaction trace via cast
# -----------------------------------------------------------------------------

import asyncio
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from rich.console import Console
from rich.panel import Panel

from chasm import __version__
from chasm.core.config import ChasmConfig, load_config
from chasm.core.hub import Subscription, TransportError
from chasm.core.nodes import SpawnError
from chasm.core.workbench import Workbench
from chasm.domain.models import (
    ForkStartRequest,
    NodeStartRequest,
    NodeStatus,
    ProxyRequest,
)
from chasm.infra.foundry_cli import FoundryCli
from chasm.infra.rpc_proxy import ProxyError, build_rpc_body, forward_rpc

console = Console()

# Workbench (lazy init; the CLI configures it before serving)
_config: ChasmConfig | None = None
_workbench: Workbench | None = None


def configure(config: ChasmConfig) -> None:
    """Set the configuration the workbench will be built from."""
    global _config, _workbench
    _config = config
    _workbench = None


def get_workbench() -> Workbench:
    global _config, _workbench
    if _workbench is None:
        if _config is None:
            _config = load_config()
        _workbench = Workbench(_config)
    return _workbench


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    print_banner()
    workbench = get_workbench()
    await asyncio.to_thread(workbench.start)
    console.print(
        f"[green]CHASM ONLINE - http://{workbench.config.host}:{workbench.config.port}[/green]"
    )

    yield

    # Shutdown
    console.print("[yellow]CHASM SHUTTING DOWN[/yellow]")
    await asyncio.to_thread(workbench.shutdown)


app = FastAPI(
    title="Chasm",
    description="Live Solidity workbench: recompile on save, local anvil nodes",
    version=__version__,
    lifespan=lifespan,
)

# The UI may be served by a dev server on another port
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

WorkbenchDep = Annotated[Workbench, Depends(get_workbench)]


def _foundry_cli(workbench: Workbench) -> FoundryCli:
    return FoundryCli(
        forge_binary=workbench.config.forge_binary,
        cast_binary=workbench.config.cast_binary,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================


@app.get("/health")
async def health_check():
    """Health check."""
    return {"status": "online", "service": "chasm", "version": __version__}


@app.get("/snapshot")
async def latest_snapshot(workbench: WorkbenchDep):
    """Latest compile payload, verbatim."""
    payload = workbench.hub.latest
    if payload is None:
        return {"type": "idle"}
    return Response(content=payload, media_type="application/json")


# =============================================================================
# NODES
# =============================================================================


@app.post("/fork/start", response_model=NodeStatus)
def start_fork(request: ForkStartRequest, workbench: WorkbenchDep):
    """Start the forked anvil, replacing any running fork."""
    try:
        return workbench.nodes.start_fork(request.rpc_url, request.block_number, request.port)
    except SpawnError as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.post("/fork/stop")
def stop_fork(workbench: WorkbenchDep):
    workbench.nodes.stop_fork()
    return {"status": "stopped"}


@app.get("/fork/status", response_model=NodeStatus)
def fork_status(workbench: WorkbenchDep):
    return workbench.nodes.fork.status()


@app.post("/node/start", response_model=NodeStatus)
def start_node(workbench: WorkbenchDep, request: NodeStartRequest | None = None):
    """(Re)start the primary anvil."""
    port = request.port if request else None
    try:
        return workbench.nodes.start_primary(port)
    except SpawnError as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.post("/node/stop")
def stop_node(workbench: WorkbenchDep):
    workbench.nodes.primary.stop()
    return {"status": "stopped"}


@app.get("/node/status", response_model=NodeStatus)
def node_status(workbench: WorkbenchDep):
    return workbench.nodes.primary.status()


# =============================================================================
# TOOLING
# =============================================================================


@app.post("/proxy")
def proxy(request: ProxyRequest):
    """Forward a JSON-RPC call to request.url."""
    body = build_rpc_body(request.method, request.params, request.id, request.jsonrpc)
    try:
        return forward_rpc(request.url, body)
    except ProxyError as e:
        if e.status_code is not None:
            return JSONResponse(status_code=e.status_code, content={"error": str(e)})
        return {"error": str(e)}


@app.get("/inspect/{contract}")
def inspect_storage(contract: str, workbench: WorkbenchDep):
    """Storage layout of a contract."""
    tree = workbench.compiler.source_tree()
    return _foundry_cli(workbench).inspect_storage(tree.root, tree.sources, contract)


@app.get("/trace/{tx_hash}")
def trace_transaction(tx_hash: str, workbench: WorkbenchDep, rpc_url: str | None = None):
    """Trace a mined transaction (defaults to the primary anvil)."""
    url = rpc_url or f"http://127.0.0.1:{workbench.nodes.primary.port}"
    return _foundry_cli(workbench).trace_transaction(workbench.config.root, tx_hash, url)


# =============================================================================
# WEBSOCKET - LIVE COMPILE PAYLOADS
# =============================================================================


async def _watch_client(websocket: WebSocket, subscription: Subscription) -> None:
    """Answer pings and close the subscription when the client goes away."""
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if message.get("text") == "ping":
                await websocket.send_json({"type": "pong"})
    except Exception as e:
        console.print(f"[dim][WS] Receive loop ended: {e}[/dim]")
    finally:
        subscription.close()


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, workbench: WorkbenchDep):
    """Send the cached payload, then every new one, until the client leaves."""
    await websocket.accept()
    subscription = workbench.hub.subscribe()
    watcher = asyncio.create_task(_watch_client(websocket, subscription))
    try:
        await subscription.pump(websocket.send_text)
    except TransportError as e:
        console.print(f"[yellow][WS] {e}[/yellow]")
    finally:
        subscription.close()
        watcher.cancel()


# =============================================================================
# BANNER
# =============================================================================


def print_banner() -> None:
    """Print the Chasm startup banner."""
    banner = """
   ██████╗██╗  ██╗ █████╗ ███████╗███╗   ███╗
  ██╔════╝██║  ██║██╔══██╗██╔════╝████╗ ████║
  ██║     ███████║███████║███████╗██╔████╔██║
  ██║     ██╔══██║██╔══██║╚════██║██║╚██╔╝██║
  ╚██████╗██║  ██║██║  ██║███████║██║ ╚═╝ ██║
   ╚═════╝╚═╝  ╚═╝╚═╝  ╚═╝╚══════╝╚═╝     ╚═╝

    ╔═══════════════════════════════════════════╗
    ║  • Recompile on save                      ║
    ║  • Live WebSocket snapshots               ║
    ║  • Local + forked anvil nodes             ║
    ╚═══════════════════════════════════════════╝
    """
    console.print(Panel(banner, border_style="cyan"))
