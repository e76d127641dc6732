"""Minimal Solana JSON-RPC client used by health probes.

Only read-only calls are needed: getVersion to confirm the cluster is
reachable and getAccountInfo to confirm each configured program account
exists and is executable.
"""

from __future__ import annotations

import itertools
from types import TracebackType
from typing import Any

import httpx
import structlog

log = structlog.get_logger(__name__)


class SolanaRPCError(Exception):
    """Raised when the RPC node returns an error or an unusable response."""


class SolanaRPCClient:
    """Async JSON-RPC 2.0 client.

    Usage:
        async with SolanaRPCClient(settings.solana_rpc_url) as rpc:
            version = await rpc.get_version()
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._ids = itertools.count(1)

    async def __aenter__(self) -> SolanaRPCClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: list[Any] | None = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            response = await self._client.post(self._rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SolanaRPCError(f"{method} failed: {exc}") from exc

        if body.get("error"):
            error = body["error"]
            raise SolanaRPCError(f"{method} failed: {error.get('message', error)}")
        if "result" not in body:
            raise SolanaRPCError(f"{method} returned no result")
        return body["result"]

    async def get_version(self) -> dict[str, Any]:
        result = await self._call("getVersion")
        if not isinstance(result, dict):
            raise SolanaRPCError("getVersion returned an unexpected payload")
        return result

    async def get_account_info(self, address: str) -> dict[str, Any] | None:
        """Account info for address, or None when the account does not exist."""
        result = await self._call("getAccountInfo", [address, {"encoding": "base64"}])
        return result.get("value") if isinstance(result, dict) else None

    async def check_programs_deployed(self, program_ids: dict[str, str]) -> dict[str, bool]:
        """Map program name -> deployed (account exists and is executable)."""
        deployed: dict[str, bool] = {}
        for name, address in program_ids.items():
            info = await self.get_account_info(address)
            deployed[name] = bool(info and info.get("executable"))
            if not deployed[name]:
                log.warning("solana.program_not_deployed", program=name, address=address)
        return deployed
