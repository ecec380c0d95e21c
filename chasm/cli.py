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
# CHASM - COMMAND LINE ENTRY POINT
# -----------------------------------------------------------------------------
# Usage:
#   chasm                # Run in the current directory
#   chasm ./my-project   # Run against another project root
#   chasm . --port 4000  # Serve the UI/API on another port
# -----------------------------------------------------------------------------

import argparse
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console

from chasm import __version__
from chasm.core.config import load_config

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chasm", description="Live Solidity workbench with local anvil nodes"
    )
    parser.add_argument("path", nargs="?", default=".", help="Project root (default: .)")
    parser.add_argument("--host", default=None, help="Interface to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="HTTP port (default: 3000)")
    parser.add_argument(
        "--no-anvil", action="store_true", help="Do not start the primary anvil node"
    )
    parser.add_argument("--version", action="version", version=f"chasm {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    root = Path(args.path).resolve()

    if not root.is_dir():
        console.print(f"[red][CHASM] Not a directory: {root}[/red]")
        return 1

    # Load environment variables from the project's .env
    load_dotenv(root / ".env")

    try:
        config = load_config(
            root,
            host=args.host,
            port=args.port,
            start_primary=False if args.no_anvil else None,
        )
    except ValidationError as e:
        console.print(f"[red][CHASM] Invalid configuration:[/red]\n{e}")
        return 1

    from chasm import main_fastapi

    main_fastapi.configure(config)
    uvicorn.run(main_fastapi.app, host=config.host, port=config.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
