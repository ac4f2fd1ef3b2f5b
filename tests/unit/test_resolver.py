"""Unit tests for workloadlens.workloads.resolver."""

from __future__ import annotations

import itertools

import pytest

from workloadlens.models.kinds import OtherKind, WorkloadKind
from workloadlens.models.resources import Controller, OwnerReference, Pod
from workloadlens.workloads.fetch import FetchedResources
from workloadlens.workloads.resolver import (
    collapse_children,
    controller_priority,
    resolve_controllers,
    seed_from_pods,
)
from workloadlens.workloads.selectors import parse_selector

_NS = "bookinfo"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ref(kind: str, name: str, controller: bool = True) -> OwnerReference:
    return OwnerReference(kind=kind, name=name, controller=controller)


def _pod(name: str, *refs: OwnerReference, labels: dict[str, str] | None = None) -> Pod:
    return Pod(name=name, namespace=_NS, labels=labels or {}, owner_references=tuple(refs))


def _controller(
    kind: WorkloadKind,
    name: str,
    *refs: OwnerReference,
    template_labels: dict[str, str] | None = None,
) -> Controller:
    return Controller(
        kind=kind,
        name=name,
        namespace=_NS,
        template_labels=template_labels or {},
        owner_references=tuple(refs),
    )


def _fetched(pods: list[Pod], *controllers: Controller) -> FetchedResources:
    fetched = FetchedResources(namespace=_NS, pods=pods)
    for controller in controllers:
        fetched.controllers.setdefault(controller.kind, []).append(controller)
    return fetched


# ---------------------------------------------------------------------------
# controller_priority
# ---------------------------------------------------------------------------


_RANKED = [
    "Deployment",
    "DeploymentConfig",
    "ReplicaSet",
    "ReplicationController",
    "StatefulSet",
    "Job",
    "DaemonSet",
    "Pod",
]


class TestControllerPriority:
    def test_deployment_beats_job(self) -> None:
        assert controller_priority("Deployment", "Job") == "Deployment"
        assert controller_priority("Job", "Deployment") == "Deployment"

    def test_daemon_set_beats_pod(self) -> None:
        assert str(controller_priority("DaemonSet", "Pod")) == "DaemonSet"
        assert controller_priority("DaemonSet", "Pod") == OtherKind("DaemonSet")

    def test_order_is_total_and_transitive(self) -> None:
        for higher, lower in itertools.combinations(_RANKED, 2):
            assert str(controller_priority(higher, lower)) == higher
            assert str(controller_priority(lower, higher)) == higher

    def test_tie_keeps_first(self) -> None:
        assert controller_priority(WorkloadKind.JOB, WorkloadKind.JOB) is WorkloadKind.JOB

    def test_unknown_kind_ranks_lowest(self) -> None:
        assert controller_priority("Rollout", "Pod") == WorkloadKind.POD
        assert controller_priority("Pod", "Rollout") == WorkloadKind.POD

    def test_unknown_kinds_tie_to_first(self) -> None:
        assert controller_priority("Rollout", "Workflow") == OtherKind("Rollout")


# ---------------------------------------------------------------------------
# Pass 1
# ---------------------------------------------------------------------------


class TestSeedFromPods:
    def test_bare_pod_is_its_own_controller(self) -> None:
        registry: dict = {}
        seed_from_pods(registry, [_pod("debug")])
        assert registry == {"debug": WorkloadKind.POD}

    def test_non_controller_refs_count_as_bare(self) -> None:
        registry: dict = {}
        seed_from_pods(registry, [_pod("helper", _ref("ConfigMap", "cfg", controller=False))])
        assert registry == {"helper": WorkloadKind.POD}

    def test_conflicting_claims_resolved_by_priority(self) -> None:
        registry: dict = {}
        seed_from_pods(
            registry,
            [
                _pod("p1", _ref("Job", "shared")),
                _pod("p2", _ref("StatefulSet", "shared")),
                _pod("p3", _ref("DaemonSet", "shared")),
            ],
        )
        assert registry == {"shared": WorkloadKind.STATEFUL_SET}

    def test_every_controller_name_resolved_exactly_once(self) -> None:
        pods = [_pod(f"p{i}", _ref(kind, "ctl")) for i, kind in enumerate(["Pod", "Job", "ReplicaSet", "Job"])]
        registry: dict = {}
        seed_from_pods(registry, pods)
        assert registry == {"ctl": WorkloadKind.REPLICA_SET}


# ---------------------------------------------------------------------------
# Pass 2
# ---------------------------------------------------------------------------


class TestCollapseChildren:
    def test_replica_set_collapses_into_deployment(self) -> None:
        fetched = _fetched(
            [_pod("reviews-1", _ref("ReplicaSet", "reviews-v1-7d9f"))],
            _controller(WorkloadKind.REPLICA_SET, "reviews-v1-7d9f", _ref("Deployment", "reviews-v1")),
            _controller(WorkloadKind.DEPLOYMENT, "reviews-v1"),
        )
        assert resolve_controllers(fetched) == {"reviews-v1": WorkloadKind.DEPLOYMENT}

    def test_replication_controller_collapses_into_deployment_config(self) -> None:
        fetched = _fetched(
            [_pod("web-1-abc", _ref("ReplicationController", "web-1"))],
            _controller(WorkloadKind.REPLICATION_CONTROLLER, "web-1", _ref("DeploymentConfig", "web")),
            _controller(WorkloadKind.DEPLOYMENT_CONFIG, "web"),
        )
        assert resolve_controllers(fetched) == {"web": WorkloadKind.DEPLOYMENT_CONFIG}

    def test_job_collapses_into_existing_cron_job(self) -> None:
        fetched = _fetched(
            [_pod("backup-123-x", _ref("Job", "backup-123"))],
            _controller(WorkloadKind.JOB, "backup-123", _ref("CronJob", "backup")),
            _controller(WorkloadKind.CRON_JOB, "backup"),
        )
        assert resolve_controllers(fetched) == {"backup": WorkloadKind.CRON_JOB}

    def test_job_with_deleted_cron_job_stays_visible(self) -> None:
        fetched = _fetched(
            [_pod("backup-123-x", _ref("Job", "backup-123"))],
            _controller(WorkloadKind.JOB, "backup-123", _ref("CronJob", "backup")),
        )
        registry = resolve_controllers(fetched)
        assert registry["backup-123"] is WorkloadKind.JOB

    def test_child_missing_from_collection_is_kept(self) -> None:
        fetched = _fetched([_pod("p", _ref("ReplicaSet", "gone"))])
        assert resolve_controllers(fetched) == {"gone": WorkloadKind.REPLICA_SET}

    def test_child_without_controller_ref_is_kept(self) -> None:
        fetched = _fetched(
            [_pod("p", _ref("ReplicaSet", "standalone"))],
            _controller(WorkloadKind.REPLICA_SET, "standalone", _ref("Deployment", "x", controller=False)),
        )
        assert resolve_controllers(fetched) == {"standalone": WorkloadKind.REPLICA_SET}

    def test_custom_parent_of_replica_set(self) -> None:
        fetched = _fetched(
            [_pod("p", _ref("ReplicaSet", "canary-abc"))],
            _controller(WorkloadKind.REPLICA_SET, "canary-abc", _ref("Rollout", "canary")),
        )
        assert resolve_controllers(fetched) == {"canary": OtherKind("Rollout")}

    def test_collapse_is_idempotent(self) -> None:
        fetched = _fetched(
            [
                _pod("reviews-1", _ref("ReplicaSet", "reviews-v1-7d9f")),
                _pod("backup-1", _ref("Job", "backup-1")),
                _pod("orphan-1", _ref("Job", "orphan-1")),
                _pod("debug"),
            ],
            _controller(WorkloadKind.REPLICA_SET, "reviews-v1-7d9f", _ref("Deployment", "reviews-v1")),
            _controller(WorkloadKind.DEPLOYMENT, "reviews-v1"),
            _controller(WorkloadKind.JOB, "backup-1", _ref("CronJob", "backup")),
            _controller(WorkloadKind.CRON_JOB, "backup"),
            _controller(WorkloadKind.JOB, "orphan-1", _ref("CronJob", "deleted")),
        )
        registry: dict = {}
        seed_from_pods(registry, fetched.pods)
        collapse_children(registry, fetched)
        once = dict(registry)

        collapse_children(registry, fetched)
        assert registry == once


# ---------------------------------------------------------------------------
# Pass 3
# ---------------------------------------------------------------------------


class TestIdleControllers:
    def test_scaled_to_zero_controllers_surface(self) -> None:
        fetched = _fetched(
            [],
            _controller(WorkloadKind.DEPLOYMENT, "idle-deploy"),
            _controller(WorkloadKind.STATEFUL_SET, "idle-sts"),
            _controller(WorkloadKind.DEPLOYMENT_CONFIG, "idle-dc"),
            _controller(WorkloadKind.REPLICA_SET, "bare-rs"),
            _controller(WorkloadKind.REPLICATION_CONTROLLER, "bare-rc"),
        )
        assert resolve_controllers(fetched) == {
            "idle-deploy": WorkloadKind.DEPLOYMENT,
            "idle-sts": WorkloadKind.STATEFUL_SET,
            "idle-dc": WorkloadKind.DEPLOYMENT_CONFIG,
            "bare-rs": WorkloadKind.REPLICA_SET,
            "bare-rc": WorkloadKind.REPLICATION_CONTROLLER,
        }

    def test_owned_children_and_jobs_not_surfaced(self) -> None:
        fetched = _fetched(
            [],
            _controller(WorkloadKind.REPLICA_SET, "old-rs", _ref("Deployment", "d", controller=False)),
            _controller(WorkloadKind.JOB, "finished"),
            _controller(WorkloadKind.CRON_JOB, "nightly"),
        )
        assert resolve_controllers(fetched) == {}

    def test_selector_filters_idle_controllers(self) -> None:
        fetched = _fetched(
            [],
            _controller(WorkloadKind.DEPLOYMENT, "reviews-v1", template_labels={"app": "reviews"}),
            _controller(WorkloadKind.DEPLOYMENT, "ratings-v1", template_labels={"app": "ratings"}),
        )
        registry = resolve_controllers(fetched, parse_selector("app=reviews"))
        assert registry == {"reviews-v1": WorkloadKind.DEPLOYMENT}

    def test_existing_entry_not_overwritten(self) -> None:
        fetched = _fetched(
            [_pod("p", _ref("DaemonSet", "agent"))],
            _controller(WorkloadKind.DEPLOYMENT, "agent"),
        )
        assert resolve_controllers(fetched) == {"agent": OtherKind("DaemonSet")}


@pytest.mark.parametrize("order", list(itertools.permutations(range(3))))
def test_resolution_independent_of_pod_order(order: tuple[int, ...]) -> None:
    pods = [
        _pod("a", _ref("ReplicaSet", "rs-1")),
        _pod("b", _ref("Job", "rs-1")),
        _pod("c"),
    ]
    fetched = _fetched(
        [pods[i] for i in order],
        _controller(WorkloadKind.REPLICA_SET, "rs-1", _ref("Deployment", "web")),
    )
    assert resolve_controllers(fetched) == {"web": WorkloadKind.DEPLOYMENT, "c": WorkloadKind.POD}
