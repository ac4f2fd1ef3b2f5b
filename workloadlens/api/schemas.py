"""Pydantic response models for the workload operations.

All models use Pydantic v2 syntax.  They are the serialised form of the
dataclasses in :mod:`workloadlens.models.resources`, used for ``--json``
output and by any HTTP layer mounted on top of the workload service.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from workloadlens.models.resources import LogEntry, Pod, PodLog, ProxyStatus, Service, Workload

# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


class ProxyStatusSchema(BaseModel):
    """xDS sync state per type: ``Synced``, ``NOT_SENT``, ``STALE`` or ``STALE_RETRYING``."""

    cds: str = ""
    lds: str = ""
    eds: str = ""
    rds: str = ""

    @classmethod
    def from_status(cls, status: ProxyStatus) -> ProxyStatusSchema:
        return cls(cds=status.cds, lds=status.lds, eds=status.eds, rds=status.rds)


class PodSchema(BaseModel):
    """Serialised Pod."""

    name: str
    namespace: str
    labels: dict[str, str] = Field(default_factory=dict)
    phase: str = ""
    created_at: str = ""
    containers: list[str] = Field(default_factory=list)
    istio_sidecar: bool = False
    proxy_status: ProxyStatusSchema | None = None

    @classmethod
    def from_pod(cls, pod: Pod) -> PodSchema:
        return cls(
            name=pod.name,
            namespace=pod.namespace,
            labels=dict(pod.labels),
            phase=pod.phase,
            created_at=pod.created_at,
            containers=list(pod.containers),
            istio_sidecar=pod.has_sidecar,
            proxy_status=ProxyStatusSchema.from_status(pod.proxy_status) if pod.proxy_status is not None else None,
        )


class ServiceSchema(BaseModel):
    """Serialised Service."""

    name: str
    namespace: str
    selector: dict[str, str] = Field(default_factory=dict)
    cluster_ip: str = ""

    @classmethod
    def from_service(cls, service: Service) -> ServiceSchema:
        return cls(
            name=service.name,
            namespace=service.namespace,
            selector=dict(service.selector),
            cluster_ip=service.cluster_ip,
        )


# ---------------------------------------------------------------------------
# Workloads
# ---------------------------------------------------------------------------


class WorkloadListItem(BaseModel):
    """One row of a workload listing."""

    name: str
    type: str = Field(..., description="Resolved controller kind.", examples=["Deployment", "Pod", "DaemonSet"])
    created_at: str = ""
    resource_version: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    istio_sidecar: bool = Field(default=False, description="Every pod of the workload carries the sidecar.")
    app_label: bool = False
    version_label: bool = False
    pod_count: int = 0

    @classmethod
    def from_workload(
        cls,
        workload: Workload,
        app_label_name: str = "app",
        version_label_name: str = "version",
    ) -> WorkloadListItem:
        return cls(
            name=workload.name,
            type=workload.kind,
            created_at=workload.created_at,
            resource_version=workload.resource_version,
            labels=dict(workload.labels),
            istio_sidecar=workload.istio_sidecar,
            app_label=workload.has_label(app_label_name),
            version_label=workload.has_label(version_label_name),
            pod_count=workload.pod_count,
        )


class WorkloadSchema(WorkloadListItem):
    """Full workload detail."""

    namespace: str
    desired_replicas: int | None = None
    current_replicas: int | None = None
    available_replicas: int | None = None
    pods: list[PodSchema] = Field(default_factory=list)
    services: list[ServiceSchema] = Field(default_factory=list)

    @classmethod
    def from_workload(
        cls,
        workload: Workload,
        app_label_name: str = "app",
        version_label_name: str = "version",
    ) -> WorkloadSchema:
        item = WorkloadListItem.from_workload(workload, app_label_name, version_label_name)
        return cls(
            **item.model_dump(),
            namespace=workload.namespace,
            desired_replicas=workload.desired_replicas,
            current_replicas=workload.current_replicas,
            available_replicas=workload.available_replicas,
            pods=[PodSchema.from_pod(pod) for pod in workload.pods],
            services=[ServiceSchema.from_service(svc) for svc in workload.services],
        )


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------


class LogEntrySchema(BaseModel):
    """Serialised LogEntry."""

    message: str
    timestamp: str = Field(..., examples=["2024-03-01T10:00:00Z"])
    timestamp_unix: int
    severity: str = Field(default="INFO", examples=["INFO", "ERROR", "WARN", "DEBUG", "TRACE"])

    @classmethod
    def from_entry(cls, entry: LogEntry) -> LogEntrySchema:
        return cls(
            message=entry.message,
            timestamp=entry.timestamp,
            timestamp_unix=entry.timestamp_unix,
            severity=entry.severity,
        )


class PodLogSchema(BaseModel):
    entries: list[LogEntrySchema] = Field(default_factory=list)

    @classmethod
    def from_pod_log(cls, pod_log: PodLog) -> PodLogSchema:
        return cls(entries=[LogEntrySchema.from_entry(entry) for entry in pod_log.entries])


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str = Field(
        ...,
        description="Machine-readable error code.",
        examples=["NOT_FOUND", "ACCESS_DENIED", "UPSTREAM_FAILURE", "INVALID_INPUT", "MALFORMED_OBJECT"],
    )
    detail: str = Field(..., description="Human-readable description of the error.")
