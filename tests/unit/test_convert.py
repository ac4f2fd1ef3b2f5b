"""Unit tests for workloadlens.gateway.convert."""

from __future__ import annotations

import pytest

from workloadlens.errors import MalformedObjectError
from workloadlens.gateway.convert import controller_from_raw, pod_from_raw, service_from_raw
from workloadlens.models.kinds import WorkloadKind
from workloadlens.models.resources import OwnerReference

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _raw_pod(name: str = "reviews-v1-7d9f-abcde", **overrides: object) -> dict:
    raw: dict = {
        "metadata": {
            "name": name,
            "namespace": "bookinfo",
            "labels": {"app": "reviews", "version": "v1"},
            "creationTimestamp": "2024-03-01T10:00:00Z",
            "ownerReferences": [
                {"kind": "ReplicaSet", "name": "reviews-v1-7d9f", "controller": True},
                {"kind": "Something", "name": "helper"},
            ],
        },
        "spec": {"containers": [{"name": "reviews"}, {"name": "istio-proxy"}]},
        "status": {"phase": "Running"},
    }
    raw.update(overrides)
    return raw


# ---------------------------------------------------------------------------
# Pods
# ---------------------------------------------------------------------------


class TestPodFromRaw:
    def test_basic_fields(self) -> None:
        pod = pod_from_raw(_raw_pod())
        assert pod.name == "reviews-v1-7d9f-abcde"
        assert pod.namespace == "bookinfo"
        assert pod.labels == {"app": "reviews", "version": "v1"}
        assert pod.phase == "Running"
        assert pod.containers == ("reviews", "istio-proxy")
        assert pod.created_at == "2024-03-01T10:00:00Z"

    def test_owner_references_keep_controller_flag(self) -> None:
        pod = pod_from_raw(_raw_pod())
        assert pod.owner_references == (
            OwnerReference(kind="ReplicaSet", name="reviews-v1-7d9f", controller=True),
            OwnerReference(kind="Something", name="helper", controller=False),
        )
        assert pod.controller_references() == [pod.owner_references[0]]
        assert pod.is_controlled_by("ReplicaSet", "reviews-v1-7d9f")
        assert not pod.is_controlled_by("Something", "helper")

    def test_sidecar_detected_by_container(self) -> None:
        assert pod_from_raw(_raw_pod()).has_sidecar is True

    def test_sidecar_detected_by_annotation(self) -> None:
        raw = _raw_pod(spec={"containers": [{"name": "reviews"}]})
        raw["metadata"]["annotations"] = {"sidecar.istio.io/status": "{}"}
        assert pod_from_raw(raw).has_sidecar is True

    def test_no_sidecar(self) -> None:
        raw = _raw_pod(spec={"containers": [{"name": "reviews"}]})
        assert pod_from_raw(raw).has_sidecar is False

    def test_custom_sidecar_container_name(self) -> None:
        raw = _raw_pod(spec={"containers": [{"name": "envoy"}]})
        assert pod_from_raw(raw, sidecar_container="envoy").has_sidecar is True

    def test_missing_name_raises(self) -> None:
        with pytest.raises(MalformedObjectError):
            pod_from_raw({"metadata": {"namespace": "bookinfo"}})

    def test_non_mapping_raises(self) -> None:
        with pytest.raises(MalformedObjectError):
            pod_from_raw(["not", "a", "pod"])


# ---------------------------------------------------------------------------
# Controllers
# ---------------------------------------------------------------------------


class TestControllerFromRaw:
    def test_deployment(self) -> None:
        raw = {
            "metadata": {"name": "reviews-v1", "namespace": "bookinfo", "resourceVersion": "42"},
            "spec": {"replicas": 3, "template": {"metadata": {"labels": {"app": "reviews", "version": "v1"}}}},
            "status": {"replicas": 3, "availableReplicas": 2},
        }
        controller = controller_from_raw(WorkloadKind.DEPLOYMENT, raw)
        assert controller.kind is WorkloadKind.DEPLOYMENT
        assert controller.template_labels == {"app": "reviews", "version": "v1"}
        assert controller.resource_version == "42"
        assert (controller.desired_replicas, controller.current_replicas, controller.available_replicas) == (3, 3, 2)

    def test_cron_job_uses_job_template_labels(self) -> None:
        raw = {
            "metadata": {"name": "backup"},
            "spec": {
                "jobTemplate": {"spec": {"template": {"metadata": {"labels": {"job": "backup"}}}}},
                "template": {"metadata": {"labels": {"ignored": "yes"}}},
            },
            "status": {"active": [{"name": "backup-123"}]},
        }
        controller = controller_from_raw(WorkloadKind.CRON_JOB, raw)
        assert controller.template_labels == {"job": "backup"}
        assert controller.desired_replicas == 1

    def test_job_replica_counts(self) -> None:
        raw = {"metadata": {"name": "migrate"}, "status": {"active": 1, "succeeded": 2, "failed": 1}}
        controller = controller_from_raw(WorkloadKind.JOB, raw)
        assert (controller.desired_replicas, controller.current_replicas, controller.available_replicas) == (4, 4, 3)

    def test_stateful_set_falls_back_to_ready_replicas(self) -> None:
        raw = {"metadata": {"name": "db"}, "spec": {"replicas": 2}, "status": {"replicas": 2, "readyReplicas": 1}}
        controller = controller_from_raw(WorkloadKind.STATEFUL_SET, raw)
        assert controller.available_replicas == 1

    def test_replica_set_owner_reference(self) -> None:
        raw = {
            "metadata": {
                "name": "reviews-v1-7d9f",
                "ownerReferences": [{"kind": "Deployment", "name": "reviews-v1", "controller": True}],
            }
        }
        controller = controller_from_raw(WorkloadKind.REPLICA_SET, raw)
        assert controller.controller_references() == [
            OwnerReference(kind="Deployment", name="reviews-v1", controller=True)
        ]

    def test_pod_kind_rejected(self) -> None:
        with pytest.raises(MalformedObjectError):
            controller_from_raw(WorkloadKind.POD, {"metadata": {"name": "x"}})

    def test_non_boolean_controller_flag_is_false(self) -> None:
        raw = {"metadata": {"name": "rs", "ownerReferences": [{"kind": "Deployment", "name": "d", "controller": "true"}]}}
        assert controller_from_raw(WorkloadKind.REPLICA_SET, raw).controller_references() == []


class TestServiceFromRaw:
    def test_selector_and_cluster_ip(self) -> None:
        raw = {
            "metadata": {"name": "reviews", "namespace": "bookinfo"},
            "spec": {"selector": {"app": "reviews"}, "clusterIP": "10.0.0.12"},
        }
        service = service_from_raw(raw)
        assert service.selector == {"app": "reviews"}
        assert service.cluster_ip == "10.0.0.12"
        assert service.selects({"app": "reviews", "version": "v1"})
        assert not service.selects({"app": "ratings"})

    def test_service_without_selector_selects_nothing(self) -> None:
        service = service_from_raw({"metadata": {"name": "external"}, "spec": {}})
        assert not service.selects({"app": "reviews"})
