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
# JSON-RPC PROXY
# -----------------------------------------------------------------------------
# Responsibility: Forward a JSON-RPC call from the browser to an arbitrary
# node URL, sidestepping CORS on public endpoints.
# -----------------------------------------------------------------------------

import requests
from rich.console import Console

console = Console()

PROXY_TIMEOUT_SECONDS = 30


class ProxyError(Exception):
    """Raised when the upstream node cannot be reached or answers non-JSON."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def build_rpc_body(
    method: str, params=None, request_id: int | None = None, jsonrpc: str | None = None
) -> dict:
    """Fill in JSON-RPC defaults: version 2.0, empty params, id 1."""
    return {
        "jsonrpc": jsonrpc or "2.0",
        "method": method,
        "params": params if params is not None else [],
        "id": request_id if request_id is not None else 1,
    }


def forward_rpc(url: str, body: dict, timeout: float = PROXY_TIMEOUT_SECONDS):
    """
    POST a JSON-RPC body to `url` and return the decoded response.

    Raises:
        ProxyError: On transport failure (no status) or a non-JSON reply.
    """
    try:
        response = requests.post(url, json=body, timeout=timeout)
    except requests.RequestException as e:
        console.print(f"[yellow][PROXY] {body.get('method')} -> {url} failed: {e}[/yellow]")
        raise ProxyError(f"Proxy failed: {e}")

    try:
        return response.json()
    except ValueError:
        raise ProxyError(
            f"Upstream returned non-JSON response ({response.status_code})",
            status_code=response.status_code,
        )
