# -----------------------------------------------------------------------------
# CHASM - LIVE SOLIDITY WORKBENCH
# -----------------------------------------------------------------------------
# Watches a contracts project, recompiles on save, streams the latest build
# to connected viewers and supervises local anvil nodes.
# -----------------------------------------------------------------------------

__version__ = "0.1.0"
