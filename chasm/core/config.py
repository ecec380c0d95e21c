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
# WORKBENCH CONFIGURATION
# -----------------------------------------------------------------------------
# Responsibility: One validated settings object for the whole service.
#
# Precedence (low -> high):
#   1. Built-in defaults
#   2. chasm.yaml in the project root
#   3. CHASM_* environment variables (a .env file is loaded by the entry point)
# -----------------------------------------------------------------------------

import os
import tempfile
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from rich.console import Console

console = Console()

CONFIG_FILENAME = "chasm.yaml"
ENV_PREFIX = "CHASM_"

# Binaries use the short tool name
ENV_NAMES = {
    "solc_binary": "CHASM_SOLC",
    "anvil_binary": "CHASM_ANVIL",
    "forge_binary": "CHASM_FORGE",
    "cast_binary": "CHASM_CAST",
}


class ChasmConfig(BaseModel):
    """
    Pydantic model for the workbench configuration.

    Every field can be overridden by CHASM_<FIELD_NAME> in the environment
    (binaries by CHASM_SOLC, CHASM_ANVIL, CHASM_FORGE and CHASM_CAST).
    """

    root: Path = Path(".")
    sources_dir: str = "contracts"
    source_extension: str = ".sol"
    pragma_scan_lines: int = Field(default=20, gt=0)

    solc_binary: str = "solc"
    version_manager: str = "svm"
    compile_timeout: float = Field(default=120.0, gt=0)
    debounce_seconds: float = Field(default=0.3, ge=0)
    subscriber_capacity: int = Field(default=100, gt=0)

    anvil_binary: str = "anvil"
    primary_port: int = Field(default=8545, gt=0, lt=65536)
    fork_port: int = Field(default=8546, gt=0, lt=65536)
    start_primary: bool = True
    node_startup_grace: float = Field(default=0.5, ge=0)
    node_log_dir: Path = Path(tempfile.gettempdir())

    forge_binary: str = "forge"
    cast_binary: str = "cast"

    host: str = "127.0.0.1"
    port: int = Field(default=3000, gt=0, lt=65536)

    @property
    def extensions(self) -> set[str]:
        """Relevant source-file extensions, normalised with a leading dot."""
        ext = self.source_extension
        return {ext if ext.startswith(".") else f".{ext}"}


def _env_overrides() -> dict:
    """Collect CHASM_* variables that name a config field."""
    overrides = {}
    for name in ChasmConfig.model_fields:
        env_name = ENV_NAMES.get(name, f"{ENV_PREFIX}{name.upper()}")
        value = os.getenv(env_name)
        if value is not None and value != "":
            overrides[name] = value
    return overrides


def load_config(root: Path | str | None = None, **overrides) -> ChasmConfig:
    """
    Load configuration for a project.

    Args:
        root: Project root. Falls back to CHASM_ROOT, then the current directory.
        **overrides: Explicit values (e.g. from the command line); highest precedence.

    Returns:
        A validated ChasmConfig.

    Raises:
        pydantic.ValidationError: If any value is invalid.
    """
    env = _env_overrides()
    project_root = Path(root or env.get("root") or ".").resolve()

    data: dict = {}
    config_path = project_root / CONFIG_FILENAME
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        console.print(f"[cyan][CONFIG] Loaded {config_path}[/cyan]")

    data.update(env)
    data.update({k: v for k, v in overrides.items() if v is not None})
    data["root"] = project_root

    return ChasmConfig(**data)
