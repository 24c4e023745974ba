"""Async HTTP client for the local Hecate daemon (mesh discovery, RPC, pairing)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hecate.log_utils import log_event

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0


class DaemonError(RuntimeError):
    """The daemon was unreachable or answered with ``ok: false``."""


class Capability(BaseModel):
    model_config = ConfigDict(extra="ignore")

    mri: str
    agent_identity: str = ""
    tags: list[str] = Field(default_factory=list)
    description: str = ""
    demo_procedure: str = ""


class RPCResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    result: Any = None
    error: str = ""
    duration: str = ""


class PairingStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str = "idle"
    code: str = ""
    expires_at: str = ""
    realm_url: str = ""
    message: str = ""


class MeshClient(Protocol):
    async def discover_capabilities(self, realm: str | None, tag: str | None, limit: int) -> list[Capability]: ...

    async def rpc_call(self, procedure: str, args: Any = None) -> RPCResult: ...


class PairingClient(Protocol):
    async def start_pairing(self) -> PairingStatus: ...

    async def pairing_status(self) -> PairingStatus: ...

    async def cancel_pairing(self) -> None: ...


def unwrap_response(payload: Any) -> Any:
    """Return the result of a daemon reply.

    The daemon answers either ``{"ok": true, "result": {...}}`` or a flat
    ``{"ok": true, "field": ...}`` object; both shapes are accepted.
    """

    if not isinstance(payload, dict):
        raise DaemonError("unexpected response from daemon")
    error = payload.get("error") or ""
    if "result" in payload:
        ok = bool(payload.get("ok", not error))
        result = payload["result"]
    else:
        result = {k: v for k, v in payload.items() if k not in {"ok", "error"}}
        ok = bool(payload.get("ok", bool(result) and not error))
    if not ok:
        raise DaemonError(error or "daemon request failed")
    return result


class DaemonClient:
    """Talks to the daemon's HTTP API; implements both mesh and pairing clients."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, body: Dict[str, Any] | None = None) -> Any:
        try:
            response = await self._http.request(method, path, json=body)
        except httpx.HTTPError as exc:
            log_event(logger, "daemon.request.failed", level=logging.WARNING, path=path, error=str(exc))
            raise DaemonError(f"request failed: {exc}") from exc
        if not response.content:
            raise DaemonError("empty response")
        try:
            payload = response.json()
        except ValueError as exc:
            raise DaemonError(f"invalid JSON from daemon (HTTP {response.status_code})") from exc
        return unwrap_response(payload)

    async def discover_capabilities(self, realm: str | None, tag: str | None, limit: int) -> list[Capability]:
        body: Dict[str, Any] = {}
        if realm:
            body["realm"] = realm
        if tag:
            body["tags"] = [tag]
        if limit > 0:
            body["limit"] = limit
        result = await self._request("POST", "/capabilities/discover", body)
        try:
            return [Capability.model_validate(item) for item in (result or {}).get("capabilities", [])]
        except (AttributeError, ValidationError) as exc:
            raise DaemonError(f"failed to parse capabilities response: {exc}") from exc

    async def rpc_call(self, procedure: str, args: Any = None) -> RPCResult:
        body: Dict[str, Any] = {"procedure": procedure}
        if args is not None:
            body["args"] = args
        result = await self._request("POST", "/api/rpc/call", body)
        try:
            return RPCResult.model_validate(result or {})
        except ValidationError as exc:
            raise DaemonError(f"failed to parse RPC response: {exc}") from exc

    async def start_pairing(self) -> PairingStatus:
        return PairingStatus.model_validate(await self._request("POST", "/api/pairing/start") or {})

    async def pairing_status(self) -> PairingStatus:
        return PairingStatus.model_validate(await self._request("GET", "/api/pairing/status") or {})

    async def cancel_pairing(self) -> None:
        await self._request("POST", "/api/pairing/cancel")
