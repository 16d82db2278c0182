"""Security group operator CLI (sgo).

One-shot operations against a cluster spec, plus the long-running operator.

Usage:
    sgo plan cluster.yaml            # Show pending rule changes
    sgo reconcile cluster.yaml       # Converge once, print the status
    sgo delete cluster.yaml          # Delete the cluster's managed groups
    sgo run                          # Run the operator loop (env configured)
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
import yaml

from .client import OpenStackNetworkingClient
from .config import DEFAULT_CLOUD
from .diff import RuleDiff
from .errors import SecurityGroupError
from .events import EventRecorder
from .models import ClusterSpec
from .reconciler import SecurityGroupService
from .rules import ResolvedRule
from .spec_loader import SpecLoadError, load_cluster_spec


def connection_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that talks to OpenStack."""
    func = click.option(
        "--cluster-name",
        "-n",
        envvar="CLUSTER_NAME",
        help="Cluster name (default: name from the cluster spec)",
    )(func)
    func = click.option(
        "--project-id",
        "-p",
        envvar="OS_PROJECT_ID",
        help="OpenStack project owning the groups",
    )(func)
    func = click.option(
        "--cloud",
        "-c",
        envvar="OS_CLOUD",
        default=DEFAULT_CLOUD,
        show_default=True,
        help="clouds.yaml entry",
    )(func)
    return func


def build_service(cloud: str, project_id: str | None) -> SecurityGroupService:
    """Connect to OpenStack and build the service for one command."""
    client = OpenStackNetworkingClient.from_cloud(cloud)
    return SecurityGroupService(client, EventRecorder(), project_id=project_id)


def _load(spec_file: Path, cluster_name: str | None) -> tuple[ClusterSpec, str]:
    try:
        cluster = load_cluster_spec(spec_file)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e

    name = cluster_name or cluster.name
    if not name:
        raise click.ClickException(
            "Cluster name is required: pass --cluster-name or set name in the cluster spec"
        )
    return cluster, name


def describe_rule(rule: ResolvedRule) -> str:
    """One-line human readable rendering of a rule."""
    ports = ""
    if rule.port_range_min is not None:
        ports = str(rule.port_range_min)
        if rule.port_range_max not in (None, rule.port_range_min):
            ports += f"-{rule.port_range_max}"
    remote = rule.remote_ip_prefix or (
        f"group:{rule.remote_group_id}" if rule.remote_group_id else "any"
    )
    parts = [rule.direction, rule.ether_type, rule.protocol or "any", ports or "*", f"from {remote}"]
    if rule.description:
        parts.append(f"({rule.description})")
    return " ".join(parts)


def _echo_diff(role: str, diff: RuleDiff) -> None:
    click.secho(
        f"{role}: {diff.group_name} (+{diff.create_count} -{diff.delete_count})",
        bold=True,
    )
    if not diff.group_id:
        click.echo("  group will be created")
    for observed in diff.to_delete:
        click.secho(
            f"  - {observed.direction} {observed.protocol or 'any'} "
            f"{observed.port_range_min or '*'} ({observed.description or ''}) [{observed.id}]",
            fg="red",
        )
    for rule in diff.to_create:
        click.secho(f"  + {describe_rule(rule)}", fg="green")


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="sgo")
def cli() -> None:
    """Security group operator CLI (sgo).

    Reconciles the control-plane, worker and bastion security groups of a
    cluster with its specification.
    """
    pass


@cli.command()
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@connection_options
def plan(spec_file: Path, cloud: str, project_id: str | None, cluster_name: str | None) -> None:
    """Show the rule changes a reconcile would make."""
    cluster, name = _load(spec_file, cluster_name)
    try:
        service = build_service(cloud, project_id)
        diffs = service.plan(cluster, name)
    except SecurityGroupError as e:
        raise click.ClickException(str(e)) from e

    if not diffs:
        click.echo("Security groups are not managed for this cluster.")
        return

    for role, diff in diffs.items():
        _echo_diff(role.value, diff)

    if all(d.is_empty for d in diffs.values()):
        click.secho("✓ No changes: security groups are up to date", fg="green")


@cli.command()
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@connection_options
@click.option(
    "--status-out",
    "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="Write the resulting status YAML to this file instead of stdout",
)
def reconcile(
    spec_file: Path,
    cloud: str,
    project_id: str | None,
    cluster_name: str | None,
    status_out: Path | None,
) -> None:
    """Converge the cluster's security groups once."""
    cluster, name = _load(spec_file, cluster_name)
    try:
        service = build_service(cloud, project_id)
        outcome = service.reconcile(cluster, name)
    except SecurityGroupError as e:
        raise click.ClickException(str(e)) from e

    rendered = yaml.safe_dump(outcome.status.to_dict(), sort_keys=False)
    if status_out is not None:
        status_out.write_text(rendered, encoding="utf-8")
        click.echo(f"Status written to {status_out}")
    else:
        click.echo(rendered, nl=False)

    click.secho(
        f"✓ Reconciled: {outcome.rules_created} rules created, "
        f"{outcome.rules_deleted} rules deleted",
        fg="green",
        err=True,
    )


@cli.command()
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@connection_options
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
def delete(
    spec_file: Path,
    cloud: str,
    project_id: str | None,
    cluster_name: str | None,
    yes: bool,
) -> None:
    """Delete the cluster's managed security groups."""
    cluster, name = _load(spec_file, cluster_name)
    if not yes:
        click.confirm(f"Delete all managed security groups of cluster '{name}'?", abort=True)

    try:
        service = build_service(cloud, project_id)
        deleted = service.delete(cluster, name)
    except SecurityGroupError as e:
        raise click.ClickException(str(e)) from e

    if not deleted:
        click.echo("Nothing to delete.")
    for group in deleted:
        click.echo(f"Deleted {group}")


@cli.command()
def run() -> None:
    """Run the operator loop (configured from the environment)."""
    from .main import run as run_operator

    run_operator()


if __name__ == "__main__":
    cli()
