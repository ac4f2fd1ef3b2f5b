"""Controller kind variant.

Every controller kind the resolver and builder reason about is either a
:class:`WorkloadKind` member or an :class:`OtherKind` carrying the raw kind
string for controllers that are not natively modelled (DaemonSet, operator
kinds, ...).  Code switches on the variant instead of comparing strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class WorkloadKind(StrEnum):
    """Natively modelled workload kinds."""

    DEPLOYMENT = "Deployment"
    REPLICA_SET = "ReplicaSet"
    REPLICATION_CONTROLLER = "ReplicationController"
    DEPLOYMENT_CONFIG = "DeploymentConfig"
    STATEFUL_SET = "StatefulSet"
    JOB = "Job"
    CRON_JOB = "CronJob"
    POD = "Pod"


@dataclass(frozen=True)
class OtherKind:
    """A controller kind without native support, matched by ownership only."""

    value: str

    def __str__(self) -> str:
        return self.value


ControllerKind = WorkloadKind | OtherKind

# Kinds that are normally owned by another controller and get collapsed into it.
CHILD_KINDS: frozenset[WorkloadKind] = frozenset(
    {WorkloadKind.REPLICA_SET, WorkloadKind.REPLICATION_CONTROLLER, WorkloadKind.JOB}
)

# Controller collections fetched per namespace, in fan-out order (pods are separate).
CONTROLLER_KINDS: tuple[WorkloadKind, ...] = (
    WorkloadKind.DEPLOYMENT,
    WorkloadKind.REPLICA_SET,
    WorkloadKind.REPLICATION_CONTROLLER,
    WorkloadKind.DEPLOYMENT_CONFIG,
    WorkloadKind.STATEFUL_SET,
    WorkloadKind.CRON_JOB,
    WorkloadKind.JOB,
)

# Kinds a merge patch may target.
PATCHABLE_KINDS: tuple[WorkloadKind, ...] = (*CONTROLLER_KINDS, WorkloadKind.POD)


def parse_kind(raw: str) -> ControllerKind:
    """Map a raw ``kind`` string onto the variant."""
    try:
        return WorkloadKind(raw)
    except ValueError:
        return OtherKind(raw)
