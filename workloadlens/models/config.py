"""Configuration models for WorkloadLens.

All models use Pydantic v2.  Values are populated by
:func:`workloadlens.config.load_config` from ``WORKLOADLENS_*`` variables.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

ALL_NAMESPACES = "**"

_LOG_LEVELS = frozenset({"debug", "info", "warning", "error", "critical"})
_LOG_FORMATS = frozenset({"json", "console"})


class LogConfig(BaseModel):
    """Logging output settings."""

    level: str = "info"
    format: str = "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        lowered = value.lower()
        if lowered not in _LOG_LEVELS:
            raise ValueError(f"log level must be one of {sorted(_LOG_LEVELS)}, got: {value!r}")
        return lowered

    @field_validator("format")
    @classmethod
    def validate_format(cls, value: str) -> str:
        lowered = value.lower()
        if lowered not in _LOG_FORMATS:
            raise ValueError(f"log format must be one of {sorted(_LOG_FORMATS)}, got: {value!r}")
        return lowered


class WorkloadsConfig(BaseModel):
    """Workload resolution policy."""

    excluded_kinds: frozenset[str] = Field(default_factory=frozenset)
    accessible_namespaces: tuple[str, ...] = (ALL_NAMESPACES,)
    app_label_name: str = "app"
    version_label_name: str = "version"
    sidecar_container_name: str = "istio-proxy"
    sidecar_annotation: str = "sidecar.istio.io/status"

    def is_kind_included(self, kind: str) -> bool:
        """Return False when ``kind`` is globally excluded."""
        return kind not in self.excluded_kinds

    def is_namespace_accessible(self, namespace: str) -> bool:
        return ALL_NAMESPACES in self.accessible_namespaces or namespace in self.accessible_namespaces


class KubernetesConfig(BaseModel):
    """Cluster API client settings."""

    request_timeout_seconds: int = 10


class CacheConfig(BaseModel):
    """Namespace cache settings."""

    enabled: bool = False
    namespaces: tuple[str, ...] = (ALL_NAMESPACES,)
    ttl_seconds: int = 60


class ProxyStatusConfig(BaseModel):
    """Mesh control plane proxy status endpoint."""

    enabled: bool = True
    url: str = "http://istiod.istio-system:15014/debug/syncz"
    timeout_seconds: float = 5.0


class WorkloadLensConfig(BaseModel):
    """Root configuration object."""

    log: LogConfig = Field(default_factory=LogConfig)
    workloads: WorkloadsConfig = Field(default_factory=WorkloadsConfig)
    kubernetes: KubernetesConfig = Field(default_factory=KubernetesConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    proxy_status: ProxyStatusConfig = Field(default_factory=ProxyStatusConfig)
    own_namespace: str = ""
