"""Conversion from raw API objects (camelCase dicts) to resource snapshots.

kubernetes_asyncio model objects are turned into dicts with
``ApiClient.sanitize_for_serialization`` before they reach this module;
custom resources (DeploymentConfig) already arrive as dicts.
"""

from __future__ import annotations

from typing import Any

from workloadlens.errors import MalformedObjectError
from workloadlens.models.kinds import WorkloadKind
from workloadlens.models.resources import Controller, OwnerReference, Pod, Service


def pod_from_raw(
    raw: Any,
    sidecar_container: str = "istio-proxy",
    sidecar_annotation: str = "sidecar.istio.io/status",
) -> Pod:
    """Build a :class:`Pod` snapshot.

    Raises:
        MalformedObjectError: if the object has no metadata or no name.
    """
    metadata = _metadata(raw, "Pod")
    spec = _dict(raw.get("spec"))
    status = _dict(raw.get("status"))

    containers = tuple(
        str(c.get("name", "")) for c in _list(spec.get("containers")) if isinstance(c, dict) and c.get("name")
    )
    annotations = _str_map(metadata.get("annotations"))
    has_sidecar = sidecar_container in containers or sidecar_annotation in annotations

    return Pod(
        name=str(metadata["name"]),
        namespace=str(metadata.get("namespace") or ""),
        labels=_str_map(metadata.get("labels")),
        owner_references=_owner_references(metadata),
        created_at=str(metadata.get("creationTimestamp") or ""),
        phase=str(status.get("phase") or ""),
        containers=containers,
        has_sidecar=has_sidecar,
    )


def controller_from_raw(kind: WorkloadKind, raw: Any) -> Controller:
    """Build a :class:`Controller` snapshot for one of the controller kinds.

    Raises:
        MalformedObjectError: if the object has no metadata or no name, or
            ``kind`` is Pod.
    """
    if kind is WorkloadKind.POD:
        raise MalformedObjectError("Pod is not a controller kind")

    metadata = _metadata(raw, kind.value)
    spec = _dict(raw.get("spec"))
    status = _dict(raw.get("status"))

    if kind is WorkloadKind.CRON_JOB:
        job_spec = _dict(_dict(spec.get("jobTemplate")).get("spec"))
        template = _dict(job_spec.get("template"))
    else:
        template = _dict(spec.get("template"))
    template_labels = _str_map(_dict(template.get("metadata")).get("labels"))

    desired, current, available = _replicas(kind, spec, status)

    return Controller(
        kind=kind,
        name=str(metadata["name"]),
        namespace=str(metadata.get("namespace") or ""),
        labels=_str_map(metadata.get("labels")),
        template_labels=template_labels,
        owner_references=_owner_references(metadata),
        created_at=str(metadata.get("creationTimestamp") or ""),
        resource_version=str(metadata.get("resourceVersion") or ""),
        desired_replicas=desired,
        current_replicas=current,
        available_replicas=available,
    )


def service_from_raw(raw: Any) -> Service:
    """Build a :class:`Service` snapshot."""
    metadata = _metadata(raw, "Service")
    spec = _dict(raw.get("spec"))
    return Service(
        name=str(metadata["name"]),
        namespace=str(metadata.get("namespace") or ""),
        selector=_str_map(spec.get("selector")),
        labels=_str_map(metadata.get("labels")),
        cluster_ip=str(spec.get("clusterIP") or ""),
        created_at=str(metadata.get("creationTimestamp") or ""),
        resource_version=str(metadata.get("resourceVersion") or ""),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _metadata(raw: Any, kind: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise MalformedObjectError(f"{kind} object is not a mapping: {type(raw).__name__}")
    metadata = raw.get("metadata")
    if not isinstance(metadata, dict) or not metadata.get("name"):
        raise MalformedObjectError(f"{kind} object has no metadata.name")
    return metadata


def _owner_references(metadata: dict[str, Any]) -> tuple[OwnerReference, ...]:
    refs: list[OwnerReference] = []
    for ref in _list(metadata.get("ownerReferences")):
        if not isinstance(ref, dict):
            continue
        kind = ref.get("kind")
        name = ref.get("name")
        if not kind or not name:
            continue
        refs.append(OwnerReference(kind=str(kind), name=str(name), controller=ref.get("controller") is True))
    return tuple(refs)


def _replicas(
    kind: WorkloadKind,
    spec: dict[str, Any],
    status: dict[str, Any],
) -> tuple[int | None, int | None, int | None]:
    """Return (desired, current, available) replica counts for a controller."""
    if kind is WorkloadKind.JOB:
        active = _int(status.get("active")) or 0
        succeeded = _int(status.get("succeeded")) or 0
        failed = _int(status.get("failed")) or 0
        return active + succeeded + failed, active + succeeded + failed, active + succeeded
    if kind is WorkloadKind.CRON_JOB:
        running = len(_list(status.get("active")))
        return running, running, running
    if kind is WorkloadKind.STATEFUL_SET:
        available = _int(status.get("availableReplicas"))
        if available is None:
            available = _int(status.get("readyReplicas"))
        return _int(spec.get("replicas")), _int(status.get("replicas")), available
    return (
        _int(spec.get("replicas")),
        _int(status.get("replicas")),
        _int(status.get("availableReplicas")),
    )


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _str_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}


def _int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None
