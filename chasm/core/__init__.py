# -----------------------------------------------------------------------------
# CORE LAYER
# -----------------------------------------------------------------------------
# The business logic of the workbench:
# - Compiler: project root -> Snapshot (with VersionResolver alignment)
# - BroadcastHub: latest Snapshot cache + fanout to subscribers
# - ChangeWatcher / CompileScheduler: recompile on save, one at a time
# - NodeManager: primary + fork anvil processes
# - Workbench: wires all of the above for one project
# -----------------------------------------------------------------------------

from .compiler import CompileError, Compiler, SourceTree
from .config import ChasmConfig, load_config
from .hub import BroadcastHub, Subscription, TransportError
from .nodes import AnvilNode, NodeManager, SpawnError
from .versions import ToolchainState, VersionResolver
from .watcher import ChangeWatcher, CompileScheduler, WatchError
from .workbench import Workbench

__all__ = [
    "Compiler", "CompileError", "SourceTree",
    "ChasmConfig", "load_config",
    "BroadcastHub", "Subscription", "TransportError",
    "AnvilNode", "NodeManager", "SpawnError",
    "ToolchainState", "VersionResolver",
    "ChangeWatcher", "CompileScheduler", "WatchError",
    "Workbench",
]
