"""Process context for WorkloadLens.

Wires the components in dependency order and owns their lifecycle.
Startup order: config → logging → K8s client → gateway → cache
              → proxy status → workload service

Shutdown releases the HTTP pools in reverse order.  Each stop step is
wrapped independently so one failure does not leak the other pools.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from workloadlens.config import load_config
from workloadlens.models.config import WorkloadLensConfig
from workloadlens.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from workloadlens.cache.namespace_cache import NamespaceCache
    from workloadlens.gateway.client import ClusterGateway
    from workloadlens.gateway.proxy_status import ProxyStatusClient
    from workloadlens.workloads.service import WorkloadService

SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"
DEFAULT_NAMESPACE = "default"


class ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class WorkloadLensApp:
    """Application root.  Owns every component and the process-wide values.

    ``stop()`` is safe on an app that was never started or already stopped.

    Example::

        async with WorkloadLensApp() as app:
            workloads = await app.service.list_workloads(app.own_namespace())
    """

    def __init__(
        self,
        config: WorkloadLensConfig | None = None,
        namespace_file: str = SERVICE_ACCOUNT_NAMESPACE_FILE,
    ) -> None:
        self.config = config
        self._namespace_file = namespace_file
        self._own_namespace: str | None = None

        self._api_client: Any | None = None
        self._gateway: ClusterGateway | None = None
        self._cache: NamespaceCache | None = None
        self._proxy_status: ProxyStatusClient | None = None
        self._service: WorkloadService | None = None

        self._log: FilteringBoundLogger | None = None

    # ------------------------------------------------------------------
    # Process-wide values
    # ------------------------------------------------------------------

    def own_namespace(self) -> str:
        """Return the namespace this process runs in.

        Resolved on first use and memoised on this context: the
        ``WORKLOADLENS_NAMESPACE`` override, else the service-account
        namespace file, else ``default``.
        """
        if self._own_namespace is None:
            config = self._ensure_config()
            if config.own_namespace:
                self._own_namespace = config.own_namespace
            else:
                self._own_namespace = _read_namespace_file(self._namespace_file)
        return self._own_namespace

    @property
    def service(self) -> WorkloadService:
        if self._service is None:
            raise RuntimeError("WorkloadLensApp.start() has not been called")
        return self._service

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> WorkloadService:
        """Start all components in dependency order.

        Raises ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        config = self._ensure_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(config.log.level, config.log.format)
        self._log = get_logger("app")
        self._log.info("workloadlens_starting", version=_workloadlens_version())

        # --- 3. Kubernetes client ---------------------------------------
        await self._start_k8s_client()

        # --- 4. Gateway --------------------------------------------------
        from workloadlens.gateway.client import ClusterGateway

        self._gateway = ClusterGateway(self._api_client, config)

        # --- 5. Namespace cache (optional) ------------------------------
        if config.cache.enabled:
            from workloadlens.cache.namespace_cache import NamespaceCache

            self._cache = NamespaceCache(self._gateway, config.cache)
            self._log.info("namespace_cache_enabled", namespaces=list(config.cache.namespaces))

        # --- 6. Proxy status (optional) ---------------------------------
        if config.proxy_status.enabled:
            from workloadlens.gateway.proxy_status import ProxyStatusClient

            self._proxy_status = ProxyStatusClient(config.proxy_status)

        # --- 7. Workload service ----------------------------------------
        from workloadlens.workloads.service import WorkloadService

        self._service = WorkloadService(
            self._gateway,
            config,
            cache=self._cache,
            proxy_status=self._proxy_status,
        )
        self._log.info("workloadlens_started")
        return self._service

    async def _start_k8s_client(self) -> None:
        """Initialise the kubernetes-asyncio client from in-cluster config or kubeconfig."""
        assert self._log is not None
        self._log.debug("starting_k8s_client")
        try:
            import kubernetes_asyncio.config as k8s_config
            from kubernetes_asyncio import client as k8s_client

            try:
                # load_incluster_config() is synchronous in kubernetes-asyncio
                k8s_config.load_incluster_config()  # type: ignore[no-untyped-call]
                self._log.info("k8s_client_configured", source="in_cluster")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config()
                self._log.info("k8s_client_configured", source="kubeconfig")

            self._api_client = k8s_client.ApiClient()
        except Exception as exc:
            raise ComponentError("k8s_client", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Release every connection pool in reverse startup order."""
        if self._log is None:
            return
        log = self._log

        self._service = None
        self._cache = None

        if self._proxy_status is not None:
            try:
                await self._proxy_status.aclose()
            except Exception as exc:
                log.error("component_stop_failed", component="proxy_status", error=str(exc))
            self._proxy_status = None

        self._gateway = None
        if self._api_client is not None:
            try:
                await self._api_client.close()
            except Exception as exc:
                log.debug("k8s_client_close_failed", error=str(exc))
            self._api_client = None

        log.info("workloadlens_stopped")
        self._log = None

    async def __aenter__(self) -> WorkloadLensApp:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_config(self) -> WorkloadLensConfig:
        if self.config is None:
            self.config = load_config()
        return self.config


def _read_namespace_file(path: str) -> str:
    try:
        namespace = Path(path).read_text(encoding="utf-8").strip()
    except OSError:
        return DEFAULT_NAMESPACE
    return namespace or DEFAULT_NAMESPACE


def _workloadlens_version() -> str:
    from workloadlens import __version__

    return __version__
