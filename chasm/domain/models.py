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
# DOMAIN MODELS - SNAPSHOTS & NODE STATUS
# -----------------------------------------------------------------------------
# These Pydantic models define the wire contract between the core pipeline
# and whatever transport delivers it to viewers.
#
# - CompileSuccess / CompileFailure: the tagged Snapshot of one compile attempt
# - NodeStatus: what the Process Lifecycle Manager reports for one node
# - ForkStartRequest / ProxyRequest: request bodies for the HTTP layer
# -----------------------------------------------------------------------------

import json
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class ContractEntry(BaseModel):
    """One compiled contract on the wire: its name and opaque artifact."""

    name: str
    artifact: Any


class CompileSuccess(BaseModel):
    """
    Snapshot of a compile that produced no errors.

    `contracts` keeps compiler output order. A name that appears twice is
    overwritten by the later artifact (last-write-wins).
    """

    type: Literal["compile_success"] = "compile_success"
    contracts: dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True

    def to_wire(self) -> dict:
        """Wire form: contracts flattened to an ordered list of entries."""
        return {
            "type": self.type,
            "contracts": [
                ContractEntry(name=name, artifact=artifact).model_dump()
                for name, artifact in self.contracts.items()
            ],
        }


class CompileFailure(BaseModel):
    """Snapshot of a compile that failed, carrying a human-readable diagnostic."""

    type: Literal["compile_error"] = "compile_error"
    error: str

    class Config:
        frozen = True

    def to_wire(self) -> dict:
        return {"type": self.type, "error": self.error}


CompilationSnapshot = CompileSuccess | CompileFailure


def serialize_snapshot(snapshot: CompilationSnapshot) -> str:
    """Serialize a Snapshot into the text payload pushed to subscribers."""
    return json.dumps(snapshot.to_wire())


class NodeKind(str, Enum):
    """The two chain-simulator instances a workbench supervises."""

    PRIMARY = "primary"
    FORK = "fork"


class NodeState(str, Enum):
    """Lifecycle of one supervised process. Stopping is instantaneous."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"


class NodeStatus(BaseModel):
    """
    Status report for one node.

    Field aliases match the camelCase the web UI already consumes.
    """

    kind: NodeKind
    running: bool
    port: int
    pid: int | None = None
    rpc_url: str | None = Field(default=None, alias="rpcUrl")
    block_number: int | None = Field(default=None, alias="blockNumber")

    class Config:
        populate_by_name = True
        use_enum_values = True


class ForkStartRequest(BaseModel):
    """Body of POST /fork/start."""

    rpc_url: str = Field(..., min_length=1, alias="rpcUrl")
    block_number: int | None = Field(default=None, ge=0, alias="blockNumber")
    port: int | None = Field(default=None, gt=0, lt=65536)

    class Config:
        populate_by_name = True


class NodeStartRequest(BaseModel):
    """Body of POST /node/start. Port defaults to the configured primary port."""

    port: int | None = Field(default=None, gt=0, lt=65536)


class ProxyRequest(BaseModel):
    """Body of POST /proxy: a JSON-RPC call forwarded to `url`."""

    url: str = Field(..., min_length=1)
    method: str = Field(..., min_length=1)
    params: Any = None
    id: int | None = None
    jsonrpc: str | None = None
