"""Workload service: the operations exposed to callers.

Ties the fetch orchestrator, the resolver, the builder and the log window
parser together.  Every public coroutine is timed into
``workloadlens_operation_duration_seconds``.
"""

from __future__ import annotations

import contextlib
import time
from collections.abc import Awaitable, Iterator
from typing import Any

from workloadlens.cache.namespace_cache import NamespaceCache
from workloadlens.errors import NotFoundError
from workloadlens.gateway.client import ClusterGateway, decode_merge_patch
from workloadlens.gateway.proxy_status import ProxyStatusClient
from workloadlens.logs.options import LogOptions
from workloadlens.logs.window import parse_log_window
from workloadlens.models.config import WorkloadLensConfig
from workloadlens.models.kinds import PATCHABLE_KINDS, ControllerKind, WorkloadKind, parse_kind
from workloadlens.models.resources import Pod, PodLog, Service, Workload
from workloadlens.observability.logging import get_logger
from workloadlens.observability.metrics import operation_duration_seconds, workloads_resolved
from workloadlens.workloads.builder import build_single_workload, build_workloads, enrich_proxy_status
from workloadlens.workloads.fetch import FetchOrchestrator, run_all
from workloadlens.workloads.resolver import resolve_controllers
from workloadlens.workloads.selectors import parse_selector

_logger = get_logger("workloads.service")


@contextlib.contextmanager
def _timed(operation: str) -> Iterator[None]:
    started = time.monotonic()
    outcome = "error"
    try:
        yield
        outcome = "success"
    finally:
        operation_duration_seconds.labels(operation=operation, outcome=outcome).observe(time.monotonic() - started)


def _optional_kind(kind: str) -> ControllerKind | None:
    return parse_kind(kind) if kind else None


class WorkloadService:
    """Resolves, updates and inspects workloads of one cluster.

    Example::

        service = WorkloadService(gateway, config, cache=cache, proxy_status=proxy_client)
        workloads = await service.list_workloads("bookinfo")
        reviews = await service.get_workload("bookinfo", "reviews-v1", include_services=True)
    """

    def __init__(
        self,
        gateway: ClusterGateway,
        config: WorkloadLensConfig,
        cache: NamespaceCache | None = None,
        proxy_status: ProxyStatusClient | None = None,
    ) -> None:
        self._gateway = gateway
        self._config = config
        self._cache = cache
        self._proxy_status = proxy_status
        self._fetcher = FetchOrchestrator(gateway, config.workloads, cache)

    # ------------------------------------------------------------------
    # Workloads
    # ------------------------------------------------------------------

    async def list_workloads(self, namespace: str, label_selector: str = "") -> list[Workload]:
        """Return every workload of ``namespace`` in name order.

        Workloads whose controller vanished between fetch and build are
        dropped with a log line rather than failing the listing.

        Raises:
            InvalidInputError: if ``label_selector`` does not parse (before any I/O).
            AccessDeniedError: if the namespace is not visible.
        """
        with _timed("list_workloads"):
            selector = parse_selector(label_selector)
            fetched = await self._fetcher.fetch_namespace(namespace, label_selector)
            registry = resolve_controllers(fetched, None if selector.is_empty else selector)
            workloads = build_workloads(registry, fetched)

            if self._proxy_status is not None:
                await enrich_proxy_status(workloads, self._proxy_status, empty_on_failure=True)

            workloads_resolved.labels(path="list").set(len(workloads))
            _logger.debug("workloads_listed", namespace=namespace, selector=str(selector), count=len(workloads))
            return workloads

    async def get_workload(
        self,
        namespace: str,
        name: str,
        kind: str = "",
        include_services: bool = False,
    ) -> Workload:
        """Return the workload ``name``.

        Args:
            namespace: Namespace to look in.
            name: Controller (or bare pod) name.
            kind: Optional target kind; other kinds are not fetched.
            include_services: Attach the services selecting the workload.

        Raises:
            NotFoundError: if no workload of that name (and kind) exists.
        """
        with _timed("get_workload"):
            fetched = await self._fetcher.fetch_for_workload(namespace, name, _optional_kind(kind))
            registry = resolve_controllers(fetched)
            workload = build_single_workload(registry, fetched, name)

            if self._proxy_status is not None:
                await enrich_proxy_status([workload], self._proxy_status, empty_on_failure=False)
            if include_services:
                workload.set_services(await self._list_services(namespace))

            workloads_resolved.labels(path="single").set(1)
            return workload

    async def update_workload(
        self,
        namespace: str,
        name: str,
        kind: str,
        merge_patch: str | bytes,
        include_services: bool = False,
    ) -> Workload:
        """Apply ``merge_patch`` to the workload and return it freshly resolved.

        The patch is attempted against every patchable kind (or only ``kind``
        when given) in parallel.  "Not found" for a kind is expected and
        ignored; any other failure fails the call.  The namespace cache is
        refreshed after a successful write.

        Raises:
            InvalidInputError: if the patch is not a JSON object (before any I/O).
        """
        with _timed("update_workload"):
            decode_merge_patch(merge_patch)
            target = _optional_kind(kind)
            if target is not None and target not in PATCHABLE_KINDS:
                # An unrecognised kind does not narrow the patch targets.
                _logger.debug("patch_kind_unrecognised", kind=kind, namespace=namespace, name=name)
                target = None
            await self._gateway.check_access(namespace)

            tasks: dict[str, Awaitable[Any]] = {}
            for patch_kind in PATCHABLE_KINDS:
                if target is not None and target != patch_kind:
                    continue
                tasks[patch_kind.value] = self._patch_kind(namespace, name, patch_kind, merge_patch)
            results = await run_all(tasks)

            patched = sorted(label for label, applied in results.items() if applied)
            _logger.info("workload_updated", namespace=namespace, name=name, kinds=patched)

            if self._cache is not None and self._cache.is_namespace_cached(namespace):
                self._cache.refresh_namespace(namespace)

        return await self.get_workload(namespace, name, kind if target is not None else "", include_services)

    async def get_workload_app_name(self, namespace: str, name: str) -> str:
        """Return the configured app label value of the workload, or ""."""
        workload = await self.get_workload(namespace, name)
        return workload.labels.get(self._config.workloads.app_label_name, "")

    # ------------------------------------------------------------------
    # Pods
    # ------------------------------------------------------------------

    async def get_pods(self, namespace: str, label_selector: str = "") -> list[Pod]:
        with _timed("get_pods"):
            parse_selector(label_selector)
            await self._gateway.check_access(namespace)
            if self._cache is not None and self._cache.is_namespace_cached(namespace):
                pods = await self._cache.list_pods(namespace, label_selector)
            else:
                pods = await self._gateway.list_pods(namespace, label_selector)
            return sorted(pods, key=lambda pod: pod.name)

    async def get_pod(self, namespace: str, name: str) -> Pod:
        with _timed("get_pod"):
            return await self._gateway.get_pod(namespace, name)

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def get_pod_logs(self, namespace: str, pod_name: str, options: LogOptions) -> PodLog:
        """Return parsed log entries of one pod container.

        A bounded request (``options.duration`` set) does not forward the
        tail limit upstream; the window parser applies it after windowing.
        """
        with _timed("get_pod_logs"):
            await self._gateway.check_access(namespace)
            raw = await self._gateway.stream_logs(
                namespace,
                pod_name,
                container=options.container,
                since_time=options.since_time,
                tail_lines=None if options.is_bounded else options.tail_lines,
                timestamps=True,
            )
            return parse_log_window(raw, options)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _patch_kind(self, namespace: str, name: str, kind: WorkloadKind, merge_patch: str | bytes) -> bool:
        if not await self._gateway.cluster_supports_kind(kind):
            return False
        try:
            await self._gateway.patch(namespace, name, kind, merge_patch)
        except NotFoundError:
            return False
        return True

    async def _list_services(self, namespace: str) -> list[Service]:
        if self._cache is not None and self._cache.is_namespace_cached(namespace):
            return await self._cache.list_services(namespace)
        return await self._gateway.list_services(namespace)
