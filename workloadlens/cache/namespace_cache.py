"""Per-namespace read-through mirror of the cluster API.

Stores snapshots keyed by namespace, then kind, then name.  A namespace is
populated on first read by sequential list calls through the gateway and
served from memory until its TTL expires or :meth:`refresh_namespace` drops
it (called after every successful write).

Covered kinds
-------------
Pods, Deployments, ReplicaSets, StatefulSets and Services.  Reads for any
other kind go straight to the gateway; :meth:`covers` tells the fetch
orchestrator which path to take.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from workloadlens.errors import NotFoundError
from workloadlens.models.config import ALL_NAMESPACES, CacheConfig
from workloadlens.models.kinds import WorkloadKind
from workloadlens.models.resources import Controller, Pod, Service
from workloadlens.observability.logging import get_logger
from workloadlens.observability.metrics import cache_namespaces, cache_reads_total, cache_refreshes_total
from workloadlens.workloads.selectors import parse_selector

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_CACHED_CONTROLLER_KINDS: tuple[WorkloadKind, ...] = (
    WorkloadKind.DEPLOYMENT,
    WorkloadKind.REPLICA_SET,
    WorkloadKind.STATEFUL_SET,
)

# ---------------------------------------------------------------------------
# Internal types
# ---------------------------------------------------------------------------


@dataclass
class _NamespaceSnapshot:
    populated_at: datetime
    pods: dict[str, Pod] = field(default_factory=dict)
    controllers: dict[WorkloadKind, dict[str, Controller]] = field(default_factory=dict)
    services: dict[str, Service] = field(default_factory=dict)


class NamespaceCache:
    """asyncio-safe namespace mirror.

    Concurrent readers of a cold namespace share a single population pass.

    Example::

        cache = NamespaceCache(gateway, config.cache)
        if cache.is_namespace_cached("bookinfo"):
            pods = await cache.list_pods("bookinfo", "app=reviews")
    """

    def __init__(self, gateway: Any, config: CacheConfig) -> None:
        self._gateway = gateway
        self._namespaces = config.namespaces
        self._ttl = timedelta(seconds=config.ttl_seconds)
        self._store: dict[str, _NamespaceSnapshot] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._log = get_logger("cache.namespace")

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def is_namespace_cached(self, namespace: str) -> bool:
        """Return True when reads for ``namespace`` may be served from the cache."""
        return ALL_NAMESPACES in self._namespaces or namespace in self._namespaces

    def covers(self, kind: WorkloadKind) -> bool:
        """Return True when the cache mirrors ``kind``."""
        return kind is WorkloadKind.POD or kind in _CACHED_CONTROLLER_KINDS

    # ------------------------------------------------------------------
    # Read interface
    # ------------------------------------------------------------------

    async def list_pods(self, namespace: str, label_selector: str = "") -> list[Pod]:
        """Return cached pods matching ``label_selector`` (empty selects all)."""
        selector = parse_selector(label_selector)
        snapshot = await self._snapshot(namespace)
        cache_reads_total.labels(kind="Pod", result="hit").inc()
        return [pod for pod in snapshot.pods.values() if selector.matches(pod.labels)]

    async def list_controllers(self, kind: WorkloadKind, namespace: str) -> list[Controller]:
        """Return every cached controller of ``kind``.

        Raises:
            ValueError: if the cache does not cover ``kind``.
        """
        self._require_covered(kind)
        snapshot = await self._snapshot(namespace)
        cache_reads_total.labels(kind=kind.value, result="hit").inc()
        return list(snapshot.controllers.get(kind, {}).values())

    async def get_controller(self, kind: WorkloadKind, namespace: str, name: str) -> Controller:
        """Return one cached controller.

        Raises:
            NotFoundError: if the mirror holds no such controller.
            ValueError: if the cache does not cover ``kind``.
        """
        self._require_covered(kind)
        snapshot = await self._snapshot(namespace)
        controller = snapshot.controllers.get(kind, {}).get(name)
        if controller is None:
            cache_reads_total.labels(kind=kind.value, result="miss").inc()
            raise NotFoundError(kind.value, name, namespace)
        cache_reads_total.labels(kind=kind.value, result="hit").inc()
        return controller

    async def list_services(self, namespace: str) -> list[Service]:
        snapshot = await self._snapshot(namespace)
        cache_reads_total.labels(kind="Service", result="hit").inc()
        return list(snapshot.services.values())

    def staleness(self, namespace: str) -> timedelta | None:
        """Return how long ago a namespace was populated, or None if it is not mirrored."""
        snapshot = self._store.get(namespace)
        if snapshot is None:
            return None
        return datetime.now(tz=UTC) - snapshot.populated_at

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def refresh_namespace(self, namespace: str) -> None:
        """Drop the mirror of ``namespace``; the next read repopulates it."""
        age = self.staleness(namespace)
        if age is None:
            return
        del self._store[namespace]
        cache_refreshes_total.labels(reason="invalidated").inc()
        cache_namespaces.set(len(self._store))
        self._log.info("cache_namespace_refreshed", namespace=namespace, age_seconds=round(age.total_seconds(), 3))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_covered(self, kind: WorkloadKind) -> None:
        if kind not in _CACHED_CONTROLLER_KINDS:
            raise ValueError(f"namespace cache does not mirror {kind.value}")

    def _is_fresh(self, snapshot: _NamespaceSnapshot) -> bool:
        return datetime.now(tz=UTC) - snapshot.populated_at < self._ttl

    async def _snapshot(self, namespace: str) -> _NamespaceSnapshot:
        snapshot = self._store.get(namespace)
        if snapshot is not None and self._is_fresh(snapshot):
            return snapshot

        async with self._locks[namespace]:
            # Another reader may have populated it while we waited.
            snapshot = self._store.get(namespace)
            if snapshot is not None and self._is_fresh(snapshot):
                return snapshot
            reason = "expired" if snapshot is not None else "cold"
            snapshot = await self._populate(namespace)
            self._store[namespace] = snapshot
            cache_refreshes_total.labels(reason=reason).inc()
            cache_namespaces.set(len(self._store))
            return snapshot

    async def _populate(self, namespace: str) -> _NamespaceSnapshot:
        """Sequentially list every covered kind; failures propagate to the reader."""
        snapshot = _NamespaceSnapshot(populated_at=datetime.now(tz=UTC))

        pods = await self._gateway.list_pods(namespace, "")
        snapshot.pods = {pod.name: pod for pod in pods}

        for kind in _CACHED_CONTROLLER_KINDS:
            controllers = await self._gateway.list_controllers(kind, namespace)
            snapshot.controllers[kind] = {c.name: c for c in controllers}

        services = await self._gateway.list_services(namespace)
        snapshot.services = {svc.name: svc for svc in services}

        self._log.debug(
            "cache_namespace_populated",
            namespace=namespace,
            pods=len(snapshot.pods),
            services=len(snapshot.services),
            controllers={k.value: len(v) for k, v in snapshot.controllers.items()},
        )
        return snapshot
