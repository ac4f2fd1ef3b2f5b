"""Cluster Resource Gateway backed by kubernetes_asyncio.

Exposes per-kind list/get/patch, pod log streaming, the namespace access
check and cluster capability probing.  Every API failure is translated into
the :mod:`workloadlens.errors` taxonomy so callers can tell "not found"
apart from "forbidden" and from everything else.
"""

from __future__ import annotations

import contextlib
import json
import math
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any

import aiohttp
from kubernetes_asyncio import client
from kubernetes_asyncio.client.exceptions import ApiException

from workloadlens.errors import (
    AccessDeniedError,
    InvalidInputError,
    MalformedObjectError,
    NotFoundError,
    UpstreamError,
)
from workloadlens.gateway.convert import controller_from_raw, pod_from_raw, service_from_raw
from workloadlens.models.config import WorkloadLensConfig
from workloadlens.models.kinds import WorkloadKind
from workloadlens.models.resources import Controller, Pod, Service
from workloadlens.observability.logging import get_logger

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_MERGE_PATCH = "application/merge-patch+json"

_OPENSHIFT_APPS_GROUP = "apps.openshift.io"
_DC_VERSION = "v1"
_DC_PLURAL = "deploymentconfigs"

# kind -> (api attribute, list method, read method, patch method)
_METHODS: dict[WorkloadKind, tuple[str, str, str, str]] = {
    WorkloadKind.DEPLOYMENT: (
        "_apps",
        "list_namespaced_deployment",
        "read_namespaced_deployment",
        "patch_namespaced_deployment",
    ),
    WorkloadKind.REPLICA_SET: (
        "_apps",
        "list_namespaced_replica_set",
        "read_namespaced_replica_set",
        "patch_namespaced_replica_set",
    ),
    WorkloadKind.REPLICATION_CONTROLLER: (
        "_core",
        "list_namespaced_replication_controller",
        "read_namespaced_replication_controller",
        "patch_namespaced_replication_controller",
    ),
    WorkloadKind.STATEFUL_SET: (
        "_apps",
        "list_namespaced_stateful_set",
        "read_namespaced_stateful_set",
        "patch_namespaced_stateful_set",
    ),
    WorkloadKind.JOB: (
        "_batch",
        "list_namespaced_job",
        "read_namespaced_job",
        "patch_namespaced_job",
    ),
    WorkloadKind.CRON_JOB: (
        "_batch",
        "list_namespaced_cron_job",
        "read_namespaced_cron_job",
        "patch_namespaced_cron_job",
    ),
    WorkloadKind.POD: (
        "_core",
        "list_namespaced_pod",
        "read_namespaced_pod",
        "patch_namespaced_pod",
    ),
}

# Kinds served by an API group that not every cluster has.
_OPTIONAL_GROUPS: dict[WorkloadKind, str] = {
    WorkloadKind.DEPLOYMENT_CONFIG: _OPENSHIFT_APPS_GROUP,
}


class ClusterGateway:
    """Thin async facade over the cluster API.

    Example::

        api_client = kubernetes_asyncio.client.ApiClient()
        gateway = ClusterGateway(api_client, config)
        pods = await gateway.list_pods("bookinfo", "app=reviews")
    """

    def __init__(self, api_client: Any, config: WorkloadLensConfig) -> None:
        """Initialise the gateway.

        Args:
            api_client: A kubernetes_asyncio ``ApiClient``.
            config: Process configuration (timeouts, sidecar detection,
                accessible namespaces).
        """
        self._api_client = api_client
        self._core = client.CoreV1Api(api_client)
        self._apps = client.AppsV1Api(api_client)
        self._batch = client.BatchV1Api(api_client)
        self._custom = client.CustomObjectsApi(api_client)
        self._apis = client.ApisApi(api_client)

        self._timeout = config.kubernetes.request_timeout_seconds
        self._workloads = config.workloads
        self._api_groups: frozenset[str] | None = None
        self._log = get_logger("gateway")

    # ------------------------------------------------------------------
    # Pods
    # ------------------------------------------------------------------

    async def list_pods(self, namespace: str, label_selector: str = "") -> list[Pod]:
        """List pods; an empty selector selects every pod in the namespace."""
        with _translate_errors("Pod", namespace):
            kwargs: dict[str, Any] = {"_request_timeout": self._timeout}
            if label_selector:
                kwargs["label_selector"] = label_selector
            result = await self._core.list_namespaced_pod(namespace, **kwargs)
        return self._convert_items("Pod", namespace, result.items or [], self._to_pod)

    async def get_pod(self, namespace: str, name: str) -> Pod:
        with _translate_errors("Pod", namespace, name):
            obj = await self._core.read_namespaced_pod(name, namespace, _request_timeout=self._timeout)
        return self._to_pod(self._sanitize(obj))

    # ------------------------------------------------------------------
    # Controllers
    # ------------------------------------------------------------------

    async def list_controllers(self, kind: WorkloadKind, namespace: str) -> list[Controller]:
        """List every controller of ``kind`` in ``namespace``."""
        if kind is WorkloadKind.DEPLOYMENT_CONFIG:
            with _translate_errors(kind.value, namespace):
                result = await self._custom.list_namespaced_custom_object(
                    _OPENSHIFT_APPS_GROUP,
                    _DC_VERSION,
                    namespace,
                    _DC_PLURAL,
                    _request_timeout=self._timeout,
                )
            items = result.get("items", []) if isinstance(result, dict) else []
            return self._convert_items(kind.value, namespace, items, lambda raw: controller_from_raw(kind, raw))

        api, list_method, _, _ = self._methods(kind)
        with _translate_errors(kind.value, namespace):
            result = await getattr(api, list_method)(namespace, _request_timeout=self._timeout)
        return self._convert_items(
            kind.value,
            namespace,
            [self._sanitize(item) for item in result.items or []],
            lambda raw: controller_from_raw(kind, raw),
        )

    async def get_controller(self, kind: WorkloadKind, namespace: str, name: str) -> Controller:
        """Read a single controller.

        Raises:
            NotFoundError: if no such controller exists.
        """
        if kind is WorkloadKind.DEPLOYMENT_CONFIG:
            with _translate_errors(kind.value, namespace, name):
                raw = await self._custom.get_namespaced_custom_object(
                    _OPENSHIFT_APPS_GROUP,
                    _DC_VERSION,
                    namespace,
                    _DC_PLURAL,
                    name,
                    _request_timeout=self._timeout,
                )
            return controller_from_raw(kind, raw)

        api, _, read_method, _ = self._methods(kind)
        with _translate_errors(kind.value, namespace, name):
            obj = await getattr(api, read_method)(name, namespace, _request_timeout=self._timeout)
        return controller_from_raw(kind, self._sanitize(obj))

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    async def list_services(self, namespace: str) -> list[Service]:
        with _translate_errors("Service", namespace):
            result = await self._core.list_namespaced_service(namespace, _request_timeout=self._timeout)
        return self._convert_items(
            "Service",
            namespace,
            [self._sanitize(item) for item in result.items or []],
            service_from_raw,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def patch(self, namespace: str, name: str, kind: WorkloadKind, merge_patch: str | bytes) -> dict[str, Any]:
        """Apply a JSON merge patch to one object and return the patched object.

        Raises:
            InvalidInputError: if the patch is not a JSON object.
            NotFoundError: if the object does not exist.
        """
        body = decode_merge_patch(merge_patch)

        if kind is WorkloadKind.DEPLOYMENT_CONFIG:
            with _translate_errors(kind.value, namespace, name):
                result = await self._custom.patch_namespaced_custom_object(
                    _OPENSHIFT_APPS_GROUP,
                    _DC_VERSION,
                    namespace,
                    _DC_PLURAL,
                    name,
                    body,
                    _content_type=_MERGE_PATCH,
                    _request_timeout=self._timeout,
                )
            self._log.info("object_patched", kind=kind.value, namespace=namespace, name=name)
            return result if isinstance(result, dict) else {}

        api, _, _, patch_method = self._methods(kind)
        with _translate_errors(kind.value, namespace, name):
            result = await getattr(api, patch_method)(
                name,
                namespace,
                body,
                _content_type=_MERGE_PATCH,
                _request_timeout=self._timeout,
            )
        self._log.info("object_patched", kind=kind.value, namespace=namespace, name=name)
        sanitized = self._sanitize(result)
        return sanitized if isinstance(sanitized, dict) else {}

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def stream_logs(
        self,
        namespace: str,
        pod_name: str,
        *,
        container: str | None = None,
        since_time: datetime | None = None,
        tail_lines: int | None = None,
        timestamps: bool = True,
    ) -> str:
        """Return the raw log text of one pod container.

        The pod log endpoint takes ``sinceSeconds`` rather than an absolute
        start, so ``since_time`` is converted relative to now (rounded up).
        """
        kwargs: dict[str, Any] = {"timestamps": timestamps, "_request_timeout": self._timeout}
        if container:
            kwargs["container"] = container
        if tail_lines is not None:
            kwargs["tail_lines"] = tail_lines
        if since_time is not None:
            elapsed = (datetime.now(tz=UTC) - since_time).total_seconds()
            kwargs["since_seconds"] = max(1, math.ceil(elapsed))

        with _translate_errors("Pod", namespace, pod_name):
            text = await self._core.read_namespaced_pod_log(pod_name, namespace, **kwargs)
        return text if isinstance(text, str) else str(text or "")

    # ------------------------------------------------------------------
    # Access and capabilities
    # ------------------------------------------------------------------

    async def check_access(self, namespace: str) -> None:
        """Confirm the namespace is visible to the caller.

        Raises:
            AccessDeniedError: if configuration or RBAC denies the namespace.
            NotFoundError: if the namespace does not exist.
        """
        if not self._workloads.is_namespace_accessible(namespace):
            raise AccessDeniedError(namespace, "namespace is not in the accessible namespaces list")
        with _translate_errors("Namespace", namespace, namespace):
            await self._core.read_namespace(namespace, _request_timeout=self._timeout)

    async def cluster_supports_kind(self, kind: WorkloadKind) -> bool:
        """Return False for kinds whose API group the cluster does not serve.

        The API group list is memoised after the first successful discovery.  A
        failed discovery counts as "not supported" for this call only; the next
        call asks again.
        """
        group = _OPTIONAL_GROUPS.get(kind)
        if group is None:
            return True
        if self._api_groups is None:
            try:
                result = await self._apis.get_api_versions(_request_timeout=self._timeout)
            except (ApiException, aiohttp.ClientError, TimeoutError) as exc:
                self._log.warning("api_group_discovery_failed", kind=kind.value, error=str(exc))
                return False
            self._api_groups = frozenset(g.name for g in (result.groups or []) if getattr(g, "name", None))
        return group in self._api_groups

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _methods(self, kind: WorkloadKind) -> tuple[Any, str, str, str]:
        api_attr, list_method, read_method, patch_method = _METHODS[kind]
        return getattr(self, api_attr), list_method, read_method, patch_method

    def _sanitize(self, obj: Any) -> Any:
        if isinstance(obj, dict):
            return obj
        return self._api_client.sanitize_for_serialization(obj)

    def _to_pod(self, raw: Any) -> Pod:
        return pod_from_raw(
            self._sanitize(raw),
            sidecar_container=self._workloads.sidecar_container_name,
            sidecar_annotation=self._workloads.sidecar_annotation,
        )

    def _convert_items(self, kind: str, namespace: str, items: list[Any], convert: Any) -> list[Any]:
        """Convert list items, logging and skipping the ones that are malformed."""
        converted: list[Any] = []
        for item in items:
            try:
                converted.append(convert(item))
            except MalformedObjectError as exc:
                self._log.warning("object_skipped_malformed", kind=kind, namespace=namespace, error=str(exc))
        return converted


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def _translate_errors(kind: str, namespace: str, name: str = "") -> Iterator[None]:
    """Map API and transport failures onto the error taxonomy."""
    try:
        yield
    except ApiException as exc:
        raise _from_api_exception(exc, kind, namespace, name) from exc
    except (aiohttp.ClientError, TimeoutError) as exc:
        raise UpstreamError(f"{kind} request in namespace {namespace!r} failed: {exc}") from exc


def _from_api_exception(exc: ApiException, kind: str, namespace: str, name: str) -> Exception:
    status = exc.status
    if status == 404:
        return NotFoundError(kind, name or "*", namespace)
    if status in (401, 403):
        return AccessDeniedError(namespace, str(exc.reason or ""))
    return UpstreamError(f"{kind} request in namespace {namespace!r} failed: {status} {exc.reason}", status=status)


def decode_merge_patch(merge_patch: str | bytes) -> dict[str, Any]:
    try:
        body = json.loads(merge_patch)
    except (TypeError, ValueError) as err:
        raise InvalidInputError(f"merge patch is not valid JSON: {err}") from err
    if not isinstance(body, dict):
        raise InvalidInputError("merge patch must be a JSON object")
    return body
