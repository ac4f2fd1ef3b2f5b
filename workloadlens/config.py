"""Environment-driven configuration loading.

Every setting is read from a ``WORKLOADLENS_*`` variable.  Integer settings
are clamped to their documented bounds; malformed booleans and unknown log
levels raise ``ValueError``.
"""

from __future__ import annotations

import os

from workloadlens.models.config import (
    ALL_NAMESPACES,
    CacheConfig,
    KubernetesConfig,
    LogConfig,
    ProxyStatusConfig,
    WorkloadLensConfig,
    WorkloadsConfig,
)

_PREFIX = "WORKLOADLENS_"

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})

_REQUEST_TIMEOUT_BOUNDS = (1, 300)
_CACHE_TTL_BOUNDS = (1, 3600)


def load_config() -> WorkloadLensConfig:
    """Build a :class:`WorkloadLensConfig` from the process environment."""
    return WorkloadLensConfig(
        log=LogConfig(
            level=_str("LOG_LEVEL", "info"),
            format=_str("LOG_FORMAT", "json"),
        ),
        workloads=WorkloadsConfig(
            excluded_kinds=frozenset(_list("EXCLUDED_WORKLOADS", ())),
            accessible_namespaces=tuple(_list("ACCESSIBLE_NAMESPACES", (ALL_NAMESPACES,))),
            app_label_name=_str("APP_LABEL", "app"),
            version_label_name=_str("VERSION_LABEL", "version"),
            sidecar_container_name=_str("SIDECAR_CONTAINER", "istio-proxy"),
            sidecar_annotation=_str("SIDECAR_ANNOTATION", "sidecar.istio.io/status"),
        ),
        kubernetes=KubernetesConfig(
            request_timeout_seconds=_int("REQUEST_TIMEOUT", 10, *_REQUEST_TIMEOUT_BOUNDS),
        ),
        cache=CacheConfig(
            enabled=_bool("CACHE_ENABLED", False),
            namespaces=tuple(_list("CACHE_NAMESPACES", (ALL_NAMESPACES,))),
            ttl_seconds=_int("CACHE_TTL", 60, *_CACHE_TTL_BOUNDS),
        ),
        proxy_status=ProxyStatusConfig(
            enabled=_bool("PROXY_STATUS_ENABLED", True),
            url=_str("PROXY_STATUS_URL", "http://istiod.istio-system:15014/debug/syncz"),
            timeout_seconds=_float("PROXY_STATUS_TIMEOUT", 5.0),
        ),
        own_namespace=_str("NAMESPACE", ""),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _raw(name: str) -> str | None:
    value = os.environ.get(_PREFIX + name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _str(name: str, default: str) -> str:
    value = _raw(name)
    return default if value is None else value


def _bool(name: str, default: bool) -> bool:
    value = _raw(name)
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(f"{_PREFIX}{name} must be a boolean, got: {value!r}")


def _int(name: str, default: int, minimum: int, maximum: int) -> int:
    value = _raw(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError as err:
        raise ValueError(f"{_PREFIX}{name} must be an integer, got: {value!r}") from err
    return max(minimum, min(maximum, parsed))


def _float(name: str, default: float) -> float:
    value = _raw(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError as err:
        raise ValueError(f"{_PREFIX}{name} must be a number, got: {value!r}") from err
    if parsed <= 0:
        raise ValueError(f"{_PREFIX}{name} must be positive, got: {value!r}")
    return parsed


def _list(name: str, default: tuple[str, ...]) -> list[str]:
    value = _raw(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]
