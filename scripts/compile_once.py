#!/usr/bin/env python3
"""
Compile a project once and print the Snapshot payload.

Use when:
- You want to see exactly what a WebSocket viewer would receive.
- You are checking solc/svm setup without starting anvil or the server.

Run from project root:
  python scripts/compile_once.py ./my-contracts
  # or
  python -m scripts.compile_once ./my-contracts

Exits non-zero when the Snapshot is a compile_error.
"""

import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from chasm.core.compiler import Compiler
from chasm.core.config import load_config

if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else "."
    config = load_config(target)
    payload = Compiler.from_config(config).compile_to_json()
    print(json.dumps(json.loads(payload), indent=2))
    sys.exit(0 if json.loads(payload)["type"] == "compile_success" else 1)
