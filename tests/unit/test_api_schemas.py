"""Unit tests for workloadlens.api.schemas."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from workloadlens.api.schemas import (
    ErrorResponse,
    PodLogSchema,
    PodSchema,
    WorkloadListItem,
    WorkloadSchema,
)
from workloadlens.models.resources import LogEntry, Pod, PodLog, ProxyStatus, Service, Workload


def _workload() -> Workload:
    return Workload(
        name="reviews-v1",
        kind="Deployment",
        namespace="bookinfo",
        labels={"app": "reviews"},
        created_at="2024-03-01T10:00:00Z",
        resource_version="42",
        desired_replicas=2,
        current_replicas=2,
        available_replicas=1,
        pods=[
            Pod(name="reviews-v1-a", namespace="bookinfo", has_sidecar=True, proxy_status=ProxyStatus(cds="Synced")),
            Pod(name="reviews-v1-b", namespace="bookinfo", has_sidecar=True),
        ],
        services=[Service(name="reviews", namespace="bookinfo", selector={"app": "reviews"}, cluster_ip="10.0.0.7")],
    )


class TestWorkloadListItem:
    def test_from_workload(self) -> None:
        item = WorkloadListItem.from_workload(_workload())
        assert item.name == "reviews-v1"
        assert item.type == "Deployment"
        assert item.pod_count == 2
        assert item.istio_sidecar is True
        assert item.app_label is True
        assert item.version_label is False

    def test_custom_label_names(self) -> None:
        item = WorkloadListItem.from_workload(_workload(), app_label_name="service", version_label_name="app")
        assert item.app_label is False
        assert item.version_label is True

    def test_type_required(self) -> None:
        with pytest.raises(ValidationError):
            WorkloadListItem(name="x")  # type: ignore[call-arg]


class TestWorkloadSchema:
    def test_detail_fields(self) -> None:
        schema = WorkloadSchema.from_workload(_workload())
        assert schema.namespace == "bookinfo"
        assert schema.available_replicas == 1
        assert [p.name for p in schema.pods] == ["reviews-v1-a", "reviews-v1-b"]
        assert schema.pods[0].proxy_status is not None
        assert schema.pods[0].proxy_status.cds == "Synced"
        assert schema.pods[1].proxy_status is None
        assert schema.services[0].cluster_ip == "10.0.0.7"

    def test_json_round_trip(self) -> None:
        schema = WorkloadSchema.from_workload(_workload())
        restored = WorkloadSchema.model_validate_json(schema.model_dump_json())
        assert restored == schema


class TestPodSchema:
    def test_sidecar_flag(self) -> None:
        schema = PodSchema.from_pod(Pod(name="p", namespace="ns", has_sidecar=True, containers=("app", "istio-proxy")))
        assert schema.istio_sidecar is True
        assert schema.containers == ["app", "istio-proxy"]


class TestPodLogSchema:
    def test_entries(self) -> None:
        entry = LogEntry(message="boom", timestamp="2024-03-01T10:00:00Z", timestamp_unix=1709287200, severity="ERROR")
        pod_log = PodLog(entries=[entry])
        schema = PodLogSchema.from_pod_log(pod_log)
        assert schema.model_dump() == {
            "entries": [
                {
                    "message": "boom",
                    "timestamp": "2024-03-01T10:00:00Z",
                    "timestamp_unix": 1709287200,
                    "severity": "ERROR",
                }
            ]
        }


class TestErrorResponse:
    def test_fields(self) -> None:
        err = ErrorResponse(error="NOT_FOUND", detail="Deployment 'x' not found")
        assert err.model_dump() == {"error": "NOT_FOUND", "detail": "Deployment 'x' not found"}
