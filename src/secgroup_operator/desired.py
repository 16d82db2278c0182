"""Desired state: the complete rule list of every managed group.

Desired groups are a pure function of the cluster specification and the
resolution table; generating them performs no provider calls. Any
configuration problem aborts generation as a whole, so callers never act on
a partial result.

ORDER OF RULES (per group, as emitted):
1. Defaults (full egress, IPv4 and IPv6)
2. Role rules (control plane: API server; worker: NodePorts)
3. Load balancer additional ports (control plane only)
4. In-cluster traffic: allow-all or the general allow-list
5. All-nodes templates, expanded per referenced role (both groups)
6. SSH from bastion, when the bastion is enabled (both groups)

The order only matters for readability of the status; rule sets are compared
as sets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from . import default_rules
from .errors import ConflictingRemoteError, UnresolvedRoleError
from .models import ClusterSpec, SecurityGroupRuleTemplate
from .resolution import GroupRole, ResolutionTable, enabled_roles, group_name
from .rules import RemoteGroup, ResolvedRule, remote_from_fields

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupSpec:
    """Desired state of one managed group. Carries no provider identifiers."""

    name: str
    rules: tuple[ResolvedRule, ...] = field(default_factory=tuple)


def all_nodes_templates(cluster: ClusterSpec) -> list[SecurityGroupRuleTemplate]:
    """Return the all-nodes templates in effect, legacy Calico rules included."""
    managed = cluster.managed_security_groups
    if managed is None:
        return []
    templates = list(managed.all_nodes_security_group_rules)
    if managed.legacy_calico_rules and not managed.allow_all_in_cluster_traffic:
        templates.extend(default_rules.legacy_calico_rules())
    return templates


def _check_template(template: SecurityGroupRuleTemplate) -> None:
    label = template.name or template.description or template.direction
    if template.remote_managed_groups:
        if template.remote_group_id is not None:
            raise ConflictingRemoteError(
                f"rule {label!r}: remoteGroupID must not be set when remoteManagedGroups is set"
            )
        if template.remote_ip_prefix is not None:
            raise ConflictingRemoteError(
                f"rule {label!r}: remoteIPPrefix must not be set when remoteManagedGroups is set"
            )
        return

    if template.remote_group_id is not None and template.remote_ip_prefix is not None:
        raise ConflictingRemoteError(
            f"rule {label!r}: remoteGroupID and remoteIPPrefix are mutually exclusive"
        )


def validate_cluster(cluster: ClusterSpec) -> None:
    """Check the all-nodes templates before any provider call is made.

    Raises:
        ConflictingRemoteError: If a template sets mutually exclusive remotes.
        UnresolvedRoleError: If a template references a role that is not enabled.
    """
    present = set(enabled_roles(cluster))
    for template in all_nodes_templates(cluster):
        _check_template(template)
        for role in template.remote_managed_groups:
            if role not in present:
                raise UnresolvedRoleError(role.value)


def expand_all_nodes_rules(
    templates: list[SecurityGroupRuleTemplate], table: ResolutionTable
) -> list[ResolvedRule]:
    """Expand all-nodes templates into concrete rules.

    A template referencing N managed roles yields N rules, one per resolved
    group ID; a template with a direct remote yields one rule.

    Raises:
        ConflictingRemoteError: If a template sets mutually exclusive remotes.
        UnresolvedRoleError: If a referenced role is not in the table.
    """
    rules: list[ResolvedRule] = []
    for template in templates:
        _check_template(template)
        # Resolve every role first so a bad reference fails the whole template
        remote_ids = [table.get(role) for role in template.remote_managed_groups]

        base = ResolvedRule(
            description=template.description or "",
            direction=template.direction,
            ether_type=template.ether_type,
            protocol=template.protocol or None,
            port_range_min=template.port_range_min,
            port_range_max=template.port_range_max,
        )
        if remote_ids:
            rules.extend(base.with_remote(RemoteGroup(group_id)) for group_id in remote_ids)
        else:
            remote = remote_from_fields(template.remote_group_id, template.remote_ip_prefix)
            rules.append(base.with_remote(remote))
    return rules


def generate_desired_groups(
    cluster: ClusterSpec, cluster_name: str, table: ResolutionTable
) -> dict[GroupRole, GroupSpec]:
    """Build the desired GroupSpec of every enabled role.

    Args:
        cluster: Cluster specification.
        cluster_name: Name used to derive group names.
        table: Role to group ID table; must hold every enabled role.

    Returns:
        Desired groups keyed by role, in role order. Empty when security
        groups are not managed for this cluster.

    Raises:
        SecurityGroupConfigError: On any configuration problem.
    """
    managed = cluster.managed_security_groups
    if managed is None:
        return {}

    control_plane_id = table.get(GroupRole.CONTROL_PLANE)
    worker_id = table.get(GroupRole.WORKER)

    control_plane_rules = list(default_rules.DEFAULT_RULES)
    worker_rules = list(default_rules.DEFAULT_RULES)

    control_plane_rules.extend(default_rules.control_plane_https())
    worker_rules.extend(default_rules.worker_node_ports())

    lb = cluster.api_server_load_balancer
    if lb.enabled:
        control_plane_rules.extend(default_rules.control_plane_additional_ports(lb.additional_ports))

    if managed.allow_all_in_cluster_traffic:
        control_plane_rules.extend(default_rules.control_plane_allow_all(worker_id))
        worker_rules.extend(default_rules.worker_allow_all(control_plane_id))
    else:
        control_plane_rules.extend(default_rules.control_plane_general(worker_id))
        worker_rules.extend(default_rules.worker_general(control_plane_id))

    # There is no separate all-nodes group; its rules go into both node groups
    all_nodes_rules = expand_all_nodes_rules(all_nodes_templates(cluster), table)
    control_plane_rules.extend(all_nodes_rules)
    worker_rules.extend(all_nodes_rules)

    if cluster.bastion_enabled:
        bastion_id = table.get(GroupRole.BASTION)
        control_plane_rules.extend(default_rules.ssh_from_bastion(bastion_id))
        worker_rules.extend(default_rules.ssh_from_bastion(bastion_id))

    desired: dict[GroupRole, GroupSpec] = {}
    desired[GroupRole.CONTROL_PLANE] = GroupSpec(
        name=group_name(cluster_name, GroupRole.CONTROL_PLANE),
        rules=tuple(control_plane_rules),
    )
    desired[GroupRole.WORKER] = GroupSpec(
        name=group_name(cluster_name, GroupRole.WORKER),
        rules=tuple(worker_rules),
    )
    if cluster.bastion_enabled:
        desired[GroupRole.BASTION] = GroupSpec(
            name=group_name(cluster_name, GroupRole.BASTION),
            rules=tuple(default_rules.bastion_rules()),
        )

    logger.debug(
        "Generated desired security groups",
        extra={
            "cluster": cluster_name,
            "rule_counts": {role.value: len(spec.rules) for role, spec in desired.items()},
        },
    )
    return desired
