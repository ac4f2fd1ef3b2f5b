"""WorkloadLens - workload reconciliation and bounded log retrieval for Kubernetes."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("workloadlens")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
