# -----------------------------------------------------------------------------
# INFRASTRUCTURE LAYER
# -----------------------------------------------------------------------------
# Contains low-level wrappers around external binaries and services:
# - Toolchain: solc (standard JSON) and svm (version manager)
# - FoundryCli: forge inspect / cast run
# - rpc_proxy: JSON-RPC pass-through over requests
# -----------------------------------------------------------------------------

from .foundry_cli import FoundryCli
from .toolchain import Toolchain, ToolchainAlignError, ToolchainError

__all__ = ["FoundryCli", "Toolchain", "ToolchainAlignError", "ToolchainError"]
