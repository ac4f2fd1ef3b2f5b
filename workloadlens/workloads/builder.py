"""Pod/selector matcher and workload builder.

Turns each resolved ``(name, kind)`` registry entry into a :class:`Workload`:

- native controller kinds select pods by their pod-template labels (the
  nested job template for a CronJob);
- kind ``Pod`` owns exactly the named pod;
- any other kind owns the pods whose controller reference names it.

A controller that cannot be located in the fetched collections is dropped
from listings and raises :class:`NotFoundError` for single lookups.
"""

from __future__ import annotations

import dataclasses

from workloadlens.errors import NotFoundError, UpstreamError
from workloadlens.gateway.proxy_status import ProxyStatusClient, proxy_id
from workloadlens.models.kinds import ControllerKind, OtherKind, WorkloadKind
from workloadlens.models.resources import Controller, Pod, ProxyStatus, Workload
from workloadlens.observability.logging import get_logger
from workloadlens.observability.metrics import workloads_dropped_total
from workloadlens.workloads.fetch import FetchedResources
from workloadlens.workloads.resolver import Registry
from workloadlens.workloads.selectors import selector_from_labels

_logger = get_logger("workloads.builder")


def pods_for_selector(template_labels: dict[str, str], pods: list[Pod]) -> list[Pod]:
    """Filter ``pods`` by a pod-template label set; an empty set selects every pod."""
    selector = selector_from_labels(template_labels)
    return [pod for pod in pods if selector.matches(pod.labels)]


def pods_for_controller(kind: ControllerKind, name: str, pods: list[Pod]) -> list[Pod]:
    return [pod for pod in pods if pod.is_controlled_by(str(kind), name)]


def build_workload(name: str, kind: ControllerKind, fetched: FetchedResources) -> Workload | None:
    """Build one workload, or return None when its controller is gone."""
    match kind:
        case OtherKind():
            owned = pods_for_controller(kind, name, fetched.pods)
            first = owned[0] if owned else None
            return Workload(
                name=name,
                kind=kind.value,
                namespace=fetched.namespace,
                labels=dict(first.labels) if first else {},
                created_at=first.created_at if first else "",
                pods=owned,
            )
        case WorkloadKind.POD:
            pod = fetched.find_pod(name)
            if pod is None:
                return None
            return Workload(
                name=pod.name,
                kind=WorkloadKind.POD.value,
                namespace=fetched.namespace,
                labels=dict(pod.labels),
                created_at=pod.created_at,
                pods=[pod],
            )
        case _:
            controller = fetched.find(kind, name)
            if controller is None:
                return None
            return _from_controller(controller, pods_for_selector(controller.template_labels, fetched.pods))


def _from_controller(controller: Controller, pods: list[Pod]) -> Workload:
    return Workload(
        name=controller.name,
        kind=controller.kind.value,
        namespace=controller.namespace,
        labels=dict(controller.template_labels),
        created_at=controller.created_at,
        resource_version=controller.resource_version,
        desired_replicas=controller.desired_replicas,
        current_replicas=controller.current_replicas,
        available_replicas=controller.available_replicas,
        pods=pods,
    )


def _log_missing(name: str, kind: ControllerKind, namespace: str) -> None:
    if kind is WorkloadKind.CRON_JOB:
        # Jobs outlive their CronJob, so a dangling parent is routine.
        _logger.warning("workload_controller_missing", name=name, kind=str(kind), namespace=namespace)
    else:
        _logger.error("workload_controller_missing", name=name, kind=str(kind), namespace=namespace)


def build_workloads(registry: Registry, fetched: FetchedResources) -> list[Workload]:
    """Build every registry entry in name order, dropping missing controllers."""
    workloads: list[Workload] = []
    for name in sorted(registry):
        kind = registry[name]
        workload = build_workload(name, kind, fetched)
        if workload is None:
            workloads_dropped_total.labels(kind=str(kind)).inc()
            _log_missing(name, kind, fetched.namespace)
            continue
        workloads.append(workload)
    return workloads


def build_single_workload(registry: Registry, fetched: FetchedResources, name: str) -> Workload:
    """Build the workload ``name``.

    Raises:
        NotFoundError: if ``name`` did not resolve to a controller or its
            controller object is missing.
    """
    kind = registry.get(name)
    if kind is None:
        raise NotFoundError("Workload", name, fetched.namespace)
    workload = build_workload(name, kind, fetched)
    if workload is None:
        _log_missing(name, kind, fetched.namespace)
        raise NotFoundError(str(kind), name, fetched.namespace)
    return workload


# ---------------------------------------------------------------------------
# Proxy enrichment
# ---------------------------------------------------------------------------


async def enrich_proxy_status(
    workloads: list[Workload],
    client: ProxyStatusClient,
    *,
    empty_on_failure: bool,
) -> None:
    """Attach proxy sync state to every sidecar pod of ``workloads``.

    The control plane status is read once for the whole batch.  A failed or
    empty lookup never fails the call: the pod gets an empty
    :class:`ProxyStatus` when ``empty_on_failure`` is set (listings) and
    None otherwise (single lookups).
    """
    if not any(pod.has_sidecar for workload in workloads for pod in workload.pods):
        return

    try:
        statuses = await client.get_proxy_statuses()
    except UpstreamError as exc:
        _logger.warning("proxy_status_failed", workloads=len(workloads), error=str(exc))
        statuses = {}

    fallback = ProxyStatus() if empty_on_failure else None

    def _enrich(pod: Pod) -> Pod:
        if not pod.has_sidecar:
            return pod
        status = statuses.get(proxy_id(pod.namespace, pod.name))
        return dataclasses.replace(pod, proxy_status=status if status is not None else fallback)

    for workload in workloads:
        workload.pods = [_enrich(pod) for pod in workload.pods]
