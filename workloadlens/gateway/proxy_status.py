"""Sidecar proxy status lookups against the mesh control plane.

The control plane publishes per-proxy xDS sync state on its ``/debug/syncz``
endpoint as a JSON list.  Each entry names the proxy as ``<pod>.<namespace>``
and carries the last sent/acknowledged nonce per xDS type.
"""

from __future__ import annotations

from typing import Any

import httpx

from workloadlens.errors import UpstreamError
from workloadlens.models.config import ProxyStatusConfig
from workloadlens.models.resources import ProxyStatus
from workloadlens.observability.logging import get_logger
from workloadlens.observability.metrics import proxy_status_requests_total

_logger = get_logger("proxy_status")


class ProxyStatusClient:
    """Reads proxy sync state over a persistent httpx.AsyncClient pool.

    The caller is responsible for calling aclose() during shutdown.
    """

    def __init__(self, config: ProxyStatusConfig, http_client: httpx.AsyncClient | None = None) -> None:
        self._url = config.url
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(float(config.timeout_seconds)),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )

    async def get_proxy_statuses(self) -> dict[str, ProxyStatus]:
        """Return the sync state of every reported proxy, keyed by ``<pod>.<namespace>``.

        Raises:
            UpstreamError: if the control plane cannot be reached or answers
                with something other than a JSON list.
        """
        return {
            str(entry["proxy"]): _to_proxy_status(entry)
            for entry in await self._fetch()
            if isinstance(entry, dict) and entry.get("proxy")
        }

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _fetch(self) -> list[Any]:
        try:
            response = await self._client.get(self._url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            proxy_status_requests_total.labels(success="false").inc()
            raise UpstreamError(
                f"proxy status endpoint answered HTTP {exc.response.status_code}",
                status=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            proxy_status_requests_total.labels(success="false").inc()
            raise UpstreamError(f"proxy status endpoint unreachable: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            proxy_status_requests_total.labels(success="false").inc()
            raise UpstreamError(f"proxy status response is not JSON: {exc}") from exc

        if not isinstance(body, list):
            proxy_status_requests_total.labels(success="false").inc()
            raise UpstreamError("proxy status response is not a list")

        proxy_status_requests_total.labels(success="true").inc()
        _logger.debug("proxy_status_fetched", proxies=len(body))
        return body


def proxy_id(namespace: str, pod_name: str) -> str:
    return f"{pod_name}.{namespace}"


def xds_status(sent: str, acked: str) -> str:
    """Summarise one xDS type from its last sent and acknowledged nonces."""
    if not sent:
        return "NOT_SENT"
    if sent == acked:
        return "Synced"
    # An empty ack means the proxy never acknowledged anything.
    if not acked:
        return "STALE_RETRYING"
    return "STALE"


def _to_proxy_status(entry: dict[str, Any]) -> ProxyStatus:
    def pair(prefix: str) -> str:
        return xds_status(str(entry.get(f"{prefix}_sent") or ""), str(entry.get(f"{prefix}_acked") or ""))

    return ProxyStatus(
        cds=pair("cluster"),
        lds=pair("listener"),
        eds=pair("endpoint"),
        rds=pair("route"),
    )
