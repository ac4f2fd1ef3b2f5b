"""WorkloadLens command-line interface.

Commands:
    workloadlens list [-n NS] [-l SELECTOR]           List the workloads of a namespace.
    workloadlens get NAME [-n NS] [--kind K]          Show one workload.
    workloadlens patch NAME PATCH [-n NS] [--kind K]  Apply a JSON merge patch.
    workloadlens pods [-n NS] [-l SELECTOR]           List pods.
    workloadlens logs POD [-n NS] [--duration 2m]     Show parsed pod logs.
    workloadlens version                              Print version and exit.

Every command runs the workload service in-process against the cluster
configured by the in-cluster service account or the local kubeconfig.  The
namespace defaults to the process's own namespace.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click

from workloadlens import __version__
from workloadlens.api.schemas import ErrorResponse, PodLogSchema, PodSchema, WorkloadListItem, WorkloadSchema
from workloadlens.app import ComponentError, WorkloadLensApp
from workloadlens.errors import (
    AccessDeniedError,
    InvalidInputError,
    MalformedObjectError,
    NotFoundError,
    UpstreamError,
    WorkloadLensError,
)
from workloadlens.logs.options import build_log_options

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Colour helpers
# ---------------------------------------------------------------------------

_SEVERITY_COLORS: dict[str, str] = {
    "ERROR": "red",
    "WARN": "yellow",
    "INFO": "green",
    "DEBUG": "bright_black",
    "TRACE": "bright_black",
}

_PHASE_COLORS: dict[str, str] = {
    "Running": "green",
    "Succeeded": "green",
    "Pending": "yellow",
    "Unknown": "yellow",
    "Failed": "red",
}

_ERROR_CODES: list[tuple[type[WorkloadLensError], str]] = [
    (NotFoundError, "NOT_FOUND"),
    (AccessDeniedError, "ACCESS_DENIED"),
    (InvalidInputError, "INVALID_INPUT"),
    (MalformedObjectError, "MALFORMED_OBJECT"),
    (UpstreamError, "UPSTREAM_FAILURE"),
]


def _error_code(exc: WorkloadLensError) -> str:
    for error_type, code in _ERROR_CODES:
        if isinstance(exc, error_type):
            return code
    return "ERROR"


def _styled_flag(value: bool) -> str:
    return click.style("yes", fg="green") if value else click.style("no", fg="red")


def _styled_severity(severity: str) -> str:
    return click.style(severity.ljust(5), fg=_SEVERITY_COLORS.get(severity, "white"), bold=True)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


def _run(operation: Callable[[WorkloadLensApp], Awaitable[T]]) -> T:
    """Start the app, run ``operation`` against it and always stop it.

    Raises click.ClickException for startup failures and workload errors.
    """

    async def _main() -> T:
        app = WorkloadLensApp()
        try:
            await app.start()
            return await operation(app)
        finally:
            await app.stop()

    try:
        return asyncio.run(_main())
    except ComponentError as exc:
        raise click.ClickException(str(exc)) from exc
    except WorkloadLensError as exc:
        error = ErrorResponse(error=_error_code(exc), detail=str(exc))
        raise click.ClickException(f"{error.error}: {error.detail}") from exc


def _echo_json(payload: object) -> None:
    click.echo(json.dumps(payload, indent=2))


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
def cli() -> None:
    """WorkloadLens: Kubernetes workload reconciliation CLI."""


# ---------------------------------------------------------------------------
# workloadlens version
# ---------------------------------------------------------------------------


@cli.command("version")
def cmd_version() -> None:
    """Print the WorkloadLens version and exit."""
    click.echo(f"workloadlens {__version__}")


# ---------------------------------------------------------------------------
# workloadlens list
# ---------------------------------------------------------------------------

_namespace_option = click.option(
    "--namespace",
    "-n",
    default=None,
    metavar="NS",
    help="Namespace.  Defaults to the process's own namespace.",
)
_json_option = click.option(
    "--json",
    "output_json",
    is_flag=True,
    default=False,
    help="Print raw JSON.",
)


@cli.command("list")
@_namespace_option
@click.option("--selector", "-l", default="", metavar="SELECTOR", help="Label selector, e.g. 'app=reviews'.")
@_json_option
def cmd_list(namespace: str | None, selector: str, output_json: bool) -> None:
    """List the workloads of a namespace."""

    async def _op(app: WorkloadLensApp) -> list[WorkloadListItem]:
        assert app.config is not None
        labels = app.config.workloads
        workloads = await app.service.list_workloads(namespace or app.own_namespace(), selector)
        return [WorkloadListItem.from_workload(w, labels.app_label_name, labels.version_label_name) for w in workloads]

    items = _run(_op)

    if output_json:
        _echo_json([item.model_dump() for item in items])
        return

    if not items:
        click.echo(click.style("No workloads found.", fg="yellow"))
        return

    click.echo(click.style(f"{'NAME':<40} {'TYPE':<24} {'PODS':>4}  SIDECAR  APP  VERSION", bold=True))
    for item in items:
        click.echo(
            f"{item.name:<40} {item.type:<24} {item.pod_count:>4}  "
            f"{_styled_flag(item.istio_sidecar)}      {_styled_flag(item.app_label)}  "
            f"{_styled_flag(item.version_label)}"
        )


# ---------------------------------------------------------------------------
# workloadlens get
# ---------------------------------------------------------------------------


@cli.command("get")
@click.argument("name")
@_namespace_option
@click.option("--kind", default="", metavar="KIND", help="Restrict the lookup to one controller kind.")
@click.option("--services", "include_services", is_flag=True, default=False, help="Attach matching services.")
@_json_option
def cmd_get(name: str, namespace: str | None, kind: str, include_services: bool, output_json: bool) -> None:
    """Show the workload NAME."""

    async def _op(app: WorkloadLensApp) -> WorkloadSchema:
        assert app.config is not None
        labels = app.config.workloads
        workload = await app.service.get_workload(namespace or app.own_namespace(), name, kind, include_services)
        return WorkloadSchema.from_workload(workload, labels.app_label_name, labels.version_label_name)

    schema = _run(_op)

    if output_json:
        _echo_json(schema.model_dump())
        return
    _print_workload(schema)


# ---------------------------------------------------------------------------
# workloadlens patch
# ---------------------------------------------------------------------------


@cli.command("patch")
@click.argument("name")
@click.argument("merge_patch", metavar="PATCH")
@_namespace_option
@click.option("--kind", default="", metavar="KIND", help="Only patch this controller kind.")
@_json_option
def cmd_patch(name: str, merge_patch: str, namespace: str | None, kind: str, output_json: bool) -> None:
    """Apply the JSON merge PATCH to the workload NAME.

    Example:

        workloadlens patch reviews-v1 '{"metadata": {"labels": {"version": "v1"}}}'
    """

    async def _op(app: WorkloadLensApp) -> WorkloadSchema:
        assert app.config is not None
        labels = app.config.workloads
        workload = await app.service.update_workload(namespace or app.own_namespace(), name, kind, merge_patch)
        return WorkloadSchema.from_workload(workload, labels.app_label_name, labels.version_label_name)

    schema = _run(_op)

    if output_json:
        _echo_json(schema.model_dump())
        return
    click.echo(click.style("Patched", bold=True, fg="green") + f" {schema.type}/{schema.name}")
    _print_workload(schema)


def _print_workload(schema: WorkloadSchema) -> None:
    """Pretty-print a WorkloadSchema."""
    click.echo("")
    click.echo(click.style(f"{schema.type} {schema.name}", bold=True, underline=True) + f"  ({schema.namespace})")
    click.echo(f"  {click.style('Created:', bold=True)}    {schema.created_at}")
    click.echo(f"  {click.style('Sidecar:', bold=True)}    {_styled_flag(schema.istio_sidecar)}")
    if schema.desired_replicas is not None:
        click.echo(
            f"  {click.style('Replicas:', bold=True)}   "
            f"{schema.available_replicas or 0}/{schema.desired_replicas} available "
            f"({schema.current_replicas or 0} current)"
        )
    if schema.labels:
        rendered = ", ".join(f"{k}={v}" for k, v in sorted(schema.labels.items()))
        click.echo(f"  {click.style('Labels:', bold=True)}     {rendered}")

    click.echo("")
    click.echo(click.style(f"Pods ({len(schema.pods)}):", bold=True))
    for pod in schema.pods:
        _print_pod_line(pod)

    if schema.services:
        click.echo("")
        click.echo(click.style(f"Services ({len(schema.services)}):", bold=True))
        for svc in schema.services:
            click.echo(f"  {svc.name}  {svc.cluster_ip}")
    click.echo("")


def _print_pod_line(pod: PodSchema) -> None:
    phase = click.style(pod.phase or "?", fg=_PHASE_COLORS.get(pod.phase, "white"))
    line = f"  {pod.name:<50} {phase}"
    if pod.proxy_status is not None:
        ps = pod.proxy_status
        line += f"  CDS={ps.cds or '-'} LDS={ps.lds or '-'} EDS={ps.eds or '-'} RDS={ps.rds or '-'}"
    click.echo(line)


# ---------------------------------------------------------------------------
# workloadlens pods
# ---------------------------------------------------------------------------


@cli.command("pods")
@_namespace_option
@click.option("--selector", "-l", default="", metavar="SELECTOR", help="Label selector.")
@_json_option
def cmd_pods(namespace: str | None, selector: str, output_json: bool) -> None:
    """List pods."""

    async def _op(app: WorkloadLensApp) -> list[PodSchema]:
        pods = await app.service.get_pods(namespace or app.own_namespace(), selector)
        return [PodSchema.from_pod(pod) for pod in pods]

    pods = _run(_op)

    if output_json:
        _echo_json([pod.model_dump() for pod in pods])
        return
    for pod in pods:
        _print_pod_line(pod)


# ---------------------------------------------------------------------------
# workloadlens logs
# ---------------------------------------------------------------------------


@cli.command("logs")
@click.argument("pod")
@_namespace_option
@click.option("--container", "-c", default="", metavar="NAME", help="Container name.")
@click.option("--duration", default="", metavar="DURATION", help="Window length, e.g. '2m', '1h30m'.")
@click.option("--since-time", default="", metavar="UNIX", help="Window start as Unix seconds.")
@click.option("--tail", "tail_lines", default="", metavar="N", help="Keep only the last N lines.")
@_json_option
def cmd_logs(
    pod: str,
    namespace: str | None,
    container: str,
    duration: str,
    since_time: str,
    tail_lines: str,
    output_json: bool,
) -> None:
    """Show parsed, severity-annotated logs of POD."""
    # Validate locally before starting the app to give instant feedback.
    try:
        options = build_log_options(container, duration, since_time, tail_lines)
    except InvalidInputError as exc:
        raise click.UsageError(str(exc)) from exc

    async def _op(app: WorkloadLensApp) -> PodLogSchema:
        pod_log = await app.service.get_pod_logs(namespace or app.own_namespace(), pod, options)
        return PodLogSchema.from_pod_log(pod_log)

    schema = _run(_op)

    if output_json:
        _echo_json(schema.model_dump())
        return
    for entry in schema.entries:
        click.echo(f"{click.style(entry.timestamp, fg='cyan')} {_styled_severity(entry.severity)} {entry.message}")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
