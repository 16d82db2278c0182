"""Observed state: fetch a managed group by name and convert it to status."""

from __future__ import annotations

import logging

from .client import NetworkGroup, NetworkingClient, NetworkRule
from .errors import AmbiguousGroupError
from .models import RuleStatus, SecurityGroupStatus

logger = logging.getLogger(__name__)


def convert_rule(rule: NetworkRule) -> RuleStatus:
    """Convert a provider rule into a rule status record.

    Empty strings are normalized to None so an unconstrained field has a
    single representation regardless of how the provider reports it.
    """
    return RuleStatus(
        id=rule.id,
        direction=rule.direction,
        description=rule.description,
        ether_type=rule.ether_type,
        protocol=rule.protocol or None,
        port_range_min=rule.port_range_min,
        port_range_max=rule.port_range_max,
        remote_group_id=rule.remote_group_id or None,
        remote_ip_prefix=rule.remote_ip_prefix or None,
    )


def convert_group(group: NetworkGroup) -> SecurityGroupStatus:
    return SecurityGroupStatus(
        id=group.id,
        name=group.name,
        rules=[convert_rule(r) for r in group.rules],
    )


def get_group_by_name(
    client: NetworkingClient, name: str, project_id: str | None = None
) -> SecurityGroupStatus:
    """Look up a managed group by its exact name.

    Args:
        client: Networking client.
        name: Group name.
        project_id: Project the group is expected to belong to.

    Returns:
        The converted group, or an absent status (empty id) when no group
        carries that name.

    Raises:
        AmbiguousGroupError: If more than one group carries the name.
        NetworkingError: If the list call fails.
    """
    logger.debug("Fetching security group", extra={"group_name": name, "project_id": project_id})
    groups = client.list_groups(name=name, project_id=project_id)

    if not groups:
        return SecurityGroupStatus.absent()
    if len(groups) == 1:
        return convert_group(groups[0])

    raise AmbiguousGroupError(name, len(groups))
