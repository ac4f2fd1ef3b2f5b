"""Resource snapshots and workload data structures.

Pods, controllers and services are immutable snapshots taken once per
resolution pass.  :class:`Workload` is the mutable output unit built fresh
for each call.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from workloadlens.models.kinds import WorkloadKind


@dataclass(frozen=True)
class OwnerReference:
    """``metadata.ownerReferences`` entry."""

    kind: str
    name: str
    controller: bool = False


@dataclass(frozen=True)
class ProxyStatus:
    """Sidecar proxy sync state as reported by the mesh control plane."""

    cds: str = ""
    lds: str = ""
    eds: str = ""
    rds: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.cds or self.lds or self.eds or self.rds)


@dataclass(frozen=True)
class Pod:
    """Pod snapshot."""

    name: str
    namespace: str
    labels: dict[str, str] = field(default_factory=dict)
    owner_references: tuple[OwnerReference, ...] = ()
    created_at: str = ""
    phase: str = ""
    containers: tuple[str, ...] = ()
    has_sidecar: bool = False
    proxy_status: ProxyStatus | None = None

    def controller_references(self) -> list[OwnerReference]:
        """Owner references flagged as the controlling owner."""
        return [ref for ref in self.owner_references if ref.controller]

    def is_controlled_by(self, kind: str, name: str) -> bool:
        return any(ref.kind == kind and ref.name == name for ref in self.controller_references())


@dataclass(frozen=True)
class Controller:
    """Snapshot of a controller candidate (Deployment, Job, ...).

    ``template_labels`` are the pod-template labels used as the selector;
    for a CronJob they come from the nested job template.
    """

    kind: WorkloadKind
    name: str
    namespace: str
    labels: dict[str, str] = field(default_factory=dict)
    template_labels: dict[str, str] = field(default_factory=dict)
    owner_references: tuple[OwnerReference, ...] = ()
    created_at: str = ""
    resource_version: str = ""
    desired_replicas: int | None = None
    current_replicas: int | None = None
    available_replicas: int | None = None

    def controller_references(self) -> list[OwnerReference]:
        return [ref for ref in self.owner_references if ref.controller]


@dataclass(frozen=True)
class Service:
    """Service snapshot; only the fields workloads need."""

    name: str
    namespace: str
    selector: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    cluster_ip: str = ""
    created_at: str = ""
    resource_version: str = ""

    def selects(self, labels: dict[str, str]) -> bool:
        """True when the service has a selector and ``labels`` satisfy it."""
        return bool(self.selector) and self.selector.items() <= labels.items()


@dataclass
class Workload:
    """Resolved, human-facing workload."""

    name: str
    kind: str
    namespace: str
    labels: dict[str, str] = field(default_factory=dict)
    created_at: str = ""
    resource_version: str = ""
    desired_replicas: int | None = None
    current_replicas: int | None = None
    available_replicas: int | None = None
    pods: list[Pod] = field(default_factory=list)
    services: list[Service] = field(default_factory=list)

    @property
    def pod_count(self) -> int:
        return len(self.pods)

    @property
    def istio_sidecar(self) -> bool:
        """True when there are pods and every one of them carries the sidecar."""
        return bool(self.pods) and all(pod.has_sidecar for pod in self.pods)

    def has_label(self, name: str) -> bool:
        return name in self.labels

    def set_services(self, services: list[Service]) -> None:
        self.services = [svc for svc in services if svc.selects(self.labels)]


@dataclass(frozen=True)
class LogEntry:
    """A single parsed log line."""

    message: str
    timestamp: str
    timestamp_unix: int
    severity: str = "INFO"


@dataclass
class PodLog:
    """Parsed log entries for one container."""

    entries: list[LogEntry] = field(default_factory=list)
