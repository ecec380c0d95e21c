# -----------------------------------------------------------------------------
# DOMAIN LAYER
# -----------------------------------------------------------------------------
# Contains the wire contract (Pydantic models) shared by the compile
# pipeline, the node supervisor and the HTTP/WebSocket transport.
# -----------------------------------------------------------------------------

from .models import (
    CompilationSnapshot,
    CompileFailure,
    CompileSuccess,
    ContractEntry,
    NodeKind,
    NodeState,
    NodeStatus,
    serialize_snapshot,
)

__all__ = [
    "CompilationSnapshot", "CompileFailure", "CompileSuccess", "ContractEntry",
    "NodeKind", "NodeState", "NodeStatus",
    "serialize_snapshot",
]
