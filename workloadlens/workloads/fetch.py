"""Concurrent fetch orchestrator.

Issues the independent per-kind reads one namespace needs as sibling asyncio
tasks and joins them.  Every task runs to completion; failures are appended
to a shared error list in completion order and the first one is raised once
the barrier releases.  Results from tasks that succeeded are discarded when
any sibling failed.

Two fan-outs are provided:

- :meth:`FetchOrchestrator.fetch_namespace` (listing): pods by the caller's
  selector plus every included controller collection.
- :meth:`FetchOrchestrator.fetch_for_workload` (single lookup): all pods,
  Deployment / DeploymentConfig / StatefulSet read by name (absent when not
  found), and the remaining collections in full.  Kinds other than the
  requested target kind are skipped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from workloadlens.cache.namespace_cache import NamespaceCache
from workloadlens.errors import NotFoundError
from workloadlens.gateway.client import ClusterGateway
from workloadlens.models.config import WorkloadsConfig
from workloadlens.models.kinds import CONTROLLER_KINDS, ControllerKind, WorkloadKind
from workloadlens.models.resources import Controller, Pod
from workloadlens.observability.logging import get_logger
from workloadlens.observability.metrics import fetch_errors_total

_logger = get_logger("workloads.fetch")

T = TypeVar("T")

_POD_TASK = "Pod"

# Kinds read by name on the single-workload path.
_SINGLE_OBJECT_KINDS: frozenset[WorkloadKind] = frozenset(
    {WorkloadKind.DEPLOYMENT, WorkloadKind.DEPLOYMENT_CONFIG, WorkloadKind.STATEFUL_SET}
)


@dataclass
class FetchedResources:
    """Everything one resolution pass reads, owned by that pass alone."""

    namespace: str
    pods: list[Pod] = field(default_factory=list)
    controllers: dict[WorkloadKind, list[Controller]] = field(default_factory=dict)

    def of_kind(self, kind: WorkloadKind) -> list[Controller]:
        return self.controllers.get(kind, [])

    def find(self, kind: WorkloadKind, name: str) -> Controller | None:
        for controller in self.of_kind(kind):
            if controller.name == name:
                return controller
        return None

    def find_pod(self, name: str) -> Pod | None:
        for pod in self.pods:
            if pod.name == name:
                return pod
        return None


async def run_all(tasks: Mapping[str, Awaitable[T]]) -> dict[str, T]:
    """Await every task, then raise the first reported failure, if any.

    Args:
        tasks: Label (usually a kind) to awaitable.  Labels key the result
            dict and the error metric.

    Returns:
        Label to result for every task.
    """
    results: dict[str, T] = {}
    errors: list[Exception] = []

    async def _run(label: str, awaitable: Awaitable[T]) -> None:
        try:
            results[label] = await awaitable
        except Exception as exc:
            fetch_errors_total.labels(kind=label).inc()
            _logger.error("fetch_task_failed", kind=label, error=str(exc), error_type=type(exc).__name__)
            errors.append(exc)

    await asyncio.gather(*(_run(label, awaitable) for label, awaitable in tasks.items()))
    if errors:
        raise errors[0]
    return results


class FetchOrchestrator:
    """Parallel reader for one namespace.

    Each read independently picks the cache or the gateway: the cache is used
    when it is configured, the namespace is cache-eligible and the cache
    mirrors that kind.
    """

    def __init__(
        self,
        gateway: ClusterGateway,
        config: WorkloadsConfig,
        cache: NamespaceCache | None = None,
    ) -> None:
        self._gateway = gateway
        self._config = config
        self._cache = cache

    # ------------------------------------------------------------------
    # Fan-outs
    # ------------------------------------------------------------------

    async def fetch_namespace(self, namespace: str, label_selector: str = "") -> FetchedResources:
        """Read pods matching ``label_selector`` and every included controller collection.

        Raises:
            AccessDeniedError: before any fetch, if the namespace is not visible.
        """
        await self._gateway.check_access(namespace)

        tasks: dict[str, Awaitable[Any]] = {_POD_TASK: self._list_pods(namespace, label_selector)}
        for kind in CONTROLLER_KINDS:
            if self._config.is_kind_included(kind.value):
                tasks[kind.value] = self._list_controllers(kind, namespace)

        results = await run_all(tasks)
        return self._assemble(namespace, results)

    async def fetch_for_workload(
        self,
        namespace: str,
        name: str,
        kind: ControllerKind | None = None,
    ) -> FetchedResources:
        """Read what resolving the single workload ``name`` needs.

        When ``kind`` is given, controller collections of any other kind are
        skipped and stay empty.  Only "not found" counts as absent for the
        by-name reads; every other failure fails the call.
        """
        await self._gateway.check_access(namespace)

        tasks: dict[str, Awaitable[Any]] = {_POD_TASK: self._list_pods(namespace, "")}
        for controller_kind in CONTROLLER_KINDS:
            if kind is not None and kind != controller_kind:
                continue
            if not self._config.is_kind_included(controller_kind.value):
                continue
            if controller_kind in _SINGLE_OBJECT_KINDS:
                tasks[controller_kind.value] = self._get_controller(controller_kind, namespace, name)
            else:
                tasks[controller_kind.value] = self._list_controllers(controller_kind, namespace)

        results = await run_all(tasks)
        return self._assemble(namespace, results)

    # ------------------------------------------------------------------
    # Per-kind reads
    # ------------------------------------------------------------------

    async def _list_pods(self, namespace: str, label_selector: str) -> list[Pod]:
        if self._use_cache(namespace, WorkloadKind.POD):
            return await self._cache.list_pods(namespace, label_selector)  # type: ignore[union-attr]
        return await self._gateway.list_pods(namespace, label_selector)

    async def _list_controllers(self, kind: WorkloadKind, namespace: str) -> list[Controller]:
        if not await self._gateway.cluster_supports_kind(kind):
            _logger.debug("kind_unsupported_skipped", kind=kind.value, namespace=namespace)
            return []
        if self._use_cache(namespace, kind):
            return await self._cache.list_controllers(kind, namespace)  # type: ignore[union-attr]
        return await self._gateway.list_controllers(kind, namespace)

    async def _get_controller(self, kind: WorkloadKind, namespace: str, name: str) -> list[Controller]:
        if not await self._gateway.cluster_supports_kind(kind):
            _logger.debug("kind_unsupported_skipped", kind=kind.value, namespace=namespace)
            return []
        try:
            if self._use_cache(namespace, kind):
                controller = await self._cache.get_controller(kind, namespace, name)  # type: ignore[union-attr]
            else:
                controller = await self._gateway.get_controller(kind, namespace, name)
        except NotFoundError:
            return []
        return [controller]

    def _use_cache(self, namespace: str, kind: WorkloadKind) -> bool:
        return self._cache is not None and self._cache.is_namespace_cached(namespace) and self._cache.covers(kind)

    @staticmethod
    def _assemble(namespace: str, results: dict[str, Any]) -> FetchedResources:
        fetched = FetchedResources(namespace=namespace, pods=results.get(_POD_TASK, []))
        for kind in CONTROLLER_KINDS:
            fetched.controllers[kind] = results.get(kind.value, [])
        return fetched
