"""Controller graph resolver.

Computes the top-level controller of every fetched pod and returns a
registry of controller name to kind.  The registry is built in three passes:

1. Seed from pods: controller-flagged owner references, or the pod itself
   (kind ``Pod``) when it has none.
2. Collapse child kinds (ReplicaSet, ReplicationController, Job) into the
   parent named by their own controller reference.  A Job is only removed
   once its CronJob is confirmed to exist, because deleting a CronJob does
   not delete its Jobs.
3. Surface idle controllers (Deployment, parentless ReplicaSet,
   DeploymentConfig, parentless ReplicationController, StatefulSet) that own
   no pods, filtered by the caller's label selector when one is active.

Conflicting kinds for one name are settled by :func:`controller_priority`.
"""

from __future__ import annotations

from workloadlens.models.kinds import CHILD_KINDS, ControllerKind, OtherKind, WorkloadKind, parse_kind
from workloadlens.models.resources import Pod
from workloadlens.observability.logging import get_logger
from workloadlens.observability.metrics import unmanaged_controller_kinds_total
from workloadlens.workloads.fetch import FetchedResources
from workloadlens.workloads.selectors import LabelSelector

_logger = get_logger("workloads.resolver")

Registry = dict[str, ControllerKind]

# Higher wins.  DaemonSet has no native model but still ranks above bare pods.
_PRIORITY: dict[str, int] = {
    WorkloadKind.DEPLOYMENT.value: 6,
    WorkloadKind.DEPLOYMENT_CONFIG.value: 5,
    WorkloadKind.REPLICA_SET.value: 4,
    WorkloadKind.REPLICATION_CONTROLLER.value: 3,
    WorkloadKind.STATEFUL_SET.value: 2,
    WorkloadKind.JOB.value: 1,
    "DaemonSet": 0,
    WorkloadKind.POD.value: -1,
}
_UNRANKED = min(_PRIORITY.values()) - 1

_IDLE_CANDIDATE_KINDS: tuple[WorkloadKind, ...] = (
    WorkloadKind.DEPLOYMENT,
    WorkloadKind.REPLICA_SET,
    WorkloadKind.DEPLOYMENT_CONFIG,
    WorkloadKind.REPLICATION_CONTROLLER,
    WorkloadKind.STATEFUL_SET,
)


def controller_priority(kind1: ControllerKind | str, kind2: ControllerKind | str) -> ControllerKind:
    """Return the kind that wins when two owner references disagree.

    Ties go to ``kind1``.  A kind outside the precedence table is logged and
    ranks below every known kind.
    """
    first = kind1 if isinstance(kind1, (WorkloadKind, OtherKind)) else parse_kind(kind1)
    second = kind2 if isinstance(kind2, (WorkloadKind, OtherKind)) else parse_kind(kind2)
    if _rank(first) >= _rank(second):
        return first
    return second


def _rank(kind: ControllerKind) -> int:
    rank = _PRIORITY.get(str(kind))
    if rank is None:
        unmanaged_controller_kinds_total.labels(kind=str(kind)).inc()
        _logger.error("controller_kind_unmanaged", kind=str(kind))
        return _UNRANKED
    return rank


def _record(registry: Registry, name: str, kind: ControllerKind) -> None:
    current = registry.get(name)
    if current is None:
        registry[name] = kind
    elif current != kind:
        registry[name] = controller_priority(current, kind)


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------


def seed_from_pods(registry: Registry, pods: list[Pod]) -> None:
    for pod in pods:
        refs = pod.controller_references()
        if not refs:
            registry.setdefault(pod.name, WorkloadKind.POD)
            continue
        for ref in refs:
            _record(registry, ref.name, parse_kind(ref.kind))


def collapse_children(registry: Registry, fetched: FetchedResources) -> None:
    """Replace child-kind entries by their parents, in place.

    Parents that are themselves child kinds are collapsed too, so no entry
    left behind has a discoverable parent that still exists.  Re-running on
    a collapsed registry is a no-op.
    """
    pending = [name for name, kind in registry.items() if kind in CHILD_KINDS]
    visited: set[str] = set()

    while pending:
        name = pending.pop(0)
        kind = registry.get(name)
        if not isinstance(kind, WorkloadKind) or kind not in CHILD_KINDS or name in visited:
            continue
        visited.add(name)

        child = fetched.find(kind, name)
        if child is None:
            continue

        for ref in child.controller_references():
            parent_kind = parse_kind(ref.kind)
            _record(registry, ref.name, parent_kind)
            if registry[ref.name] in CHILD_KINDS:
                pending.append(ref.name)
            if kind is WorkloadKind.JOB and not (
                parent_kind is WorkloadKind.CRON_JOB and fetched.find(WorkloadKind.CRON_JOB, ref.name) is not None
            ):
                _logger.debug("job_parent_missing", job=name, parent=ref.name, namespace=fetched.namespace)
                continue
            registry.pop(name, None)


def add_idle_controllers(
    registry: Registry,
    fetched: FetchedResources,
    selector: LabelSelector | None = None,
) -> None:
    """Add controllers that own no pods so scaled-to-zero workloads still show up."""
    for kind in _IDLE_CANDIDATE_KINDS:
        for controller in fetched.of_kind(kind):
            if controller.name in registry:
                continue
            if kind in CHILD_KINDS and controller.owner_references:
                continue
            if selector is not None and not selector.matches(controller.template_labels):
                continue
            registry[controller.name] = kind


def resolve_controllers(fetched: FetchedResources, selector: LabelSelector | None = None) -> Registry:
    """Run all three passes and return the registry.

    Args:
        fetched: Collections read for one namespace.
        selector: The caller's label selector, or None when the caller did
            not filter (idle controllers are then added unconditionally).
    """
    registry: Registry = {}
    seed_from_pods(registry, fetched.pods)
    collapse_children(registry, fetched)
    add_idle_controllers(registry, fetched, selector)
    _logger.debug("controllers_resolved", namespace=fetched.namespace, controllers=len(registry))
    return registry
