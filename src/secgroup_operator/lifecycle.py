"""Security group lifecycle: create-if-absent, delete, filter resolution.

Group creation never touches rules; rules are converged separately by
diff.reconcile_group_rules once every managed group exists. Deleting a group
cascades to its rules at the provider.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .client import RESOURCE_KIND_SECURITY_GROUPS, NetworkingClient
from .errors import GroupNotFoundError, NetworkingError
from .events import EventRecorder
from .models import ClusterSpec, SecurityGroupStatus
from .observed import convert_group, get_group_by_name
from .resolution import enabled_roles, group_name

logger = logging.getLogger(__name__)

MANAGED_GROUP_DESCRIPTION = "Cluster API managed group"


def ensure_group(
    client: NetworkingClient,
    recorder: EventRecorder,
    cluster_name: str,
    name: str,
    *,
    project_id: str | None = None,
    tags: list[str] | None = None,
) -> SecurityGroupStatus:
    """Ensure a managed group exists, creating and tagging it if absent.

    An existing group is reused untouched (it is not re-tagged).

    Args:
        client: Networking client.
        recorder: Event recorder for the owning cluster.
        cluster_name: Name of the owning cluster (event target).
        name: Group name.
        project_id: Project the group is expected in.
        tags: Tags applied to a newly created group.

    Returns:
        Status of the existing or newly created group.

    Raises:
        AmbiguousGroupError: If the name matches several groups.
        NetworkingError: If a provider call fails.
    """
    existing = get_group_by_name(client, name, project_id)
    if existing.exists:
        logger.debug(
            "Reusing existing security group",
            extra={"group_name": name, "group_id": existing.id},
        )
        return existing

    logger.info("Security group does not exist, creating it", extra={"group_name": name})
    try:
        group = client.create_group(name, MANAGED_GROUP_DESCRIPTION, project_id=project_id)
    except NetworkingError as e:
        recorder.warnf(
            cluster_name,
            "FailedCreateSecurityGroup",
            "Failed to create security group %s: %s",
            name,
            e,
        )
        raise

    if tags:
        client.replace_resource_tags(RESOURCE_KIND_SECURITY_GROUPS, group.id, list(tags))

    recorder.eventf(
        cluster_name,
        "SuccessfulCreateSecurityGroup",
        "Created security group %s with id %s",
        name,
        group.id,
    )
    return convert_group(group)


def delete_group(
    client: NetworkingClient,
    recorder: EventRecorder,
    cluster_name: str,
    name: str,
    *,
    project_id: str | None = None,
) -> bool:
    """Delete a managed group by name.

    Returns:
        True if a group was deleted, False if it did not exist.

    Raises:
        AmbiguousGroupError: If the name matches several groups.
        NetworkingError: If a provider call fails.
    """
    group = get_group_by_name(client, name, project_id)
    if not group.exists:
        logger.debug("Security group already absent", extra={"group_name": name})
        return False

    try:
        client.delete_group(group.id)
    except NetworkingError as e:
        recorder.warnf(
            cluster_name,
            "FailedDeleteSecurityGroup",
            "Failed to delete security group %s with id %s: %s",
            group.name,
            group.id,
            e,
        )
        raise

    recorder.eventf(
        cluster_name,
        "SuccessfulDeleteSecurityGroup",
        "Deleted security group %s with id %s",
        group.name,
        group.id,
    )
    return True


def delete_cluster_groups(
    client: NetworkingClient,
    recorder: EventRecorder,
    cluster: ClusterSpec,
    cluster_name: str,
    *,
    project_id: str | None = None,
) -> list[str]:
    """Delete every managed group of a cluster, stopping at the first error.

    Returns:
        Names of the groups that were actually deleted.
    """
    deleted: list[str] = []
    for role in enabled_roles(cluster):
        name = group_name(cluster_name, role)
        if delete_group(client, recorder, cluster_name, name, project_id=project_id):
            deleted.append(name)
    return deleted


@dataclass(frozen=True)
class SecurityGroupFilter:
    """Selects an existing group by ID or by name."""

    id: str | None = None
    name: str | None = None
    project_id: str | None = None


def resolve_group_filters(
    client: NetworkingClient,
    filters: Iterable[SecurityGroupFilter],
    project_id: str | None = None,
) -> list[str]:
    """Resolve group filters to a de-duplicated list of group IDs.

    Filters carrying an explicit ID are passed through without a lookup.
    Name filters default to ``project_id`` when they name no project.

    Raises:
        GroupNotFoundError: If a name filter matches no group.
        NetworkingError: If a list call fails.
    """
    ids: list[str] = []
    for group_filter in filters:
        if group_filter.id:
            if group_filter.id not in ids:
                ids.append(group_filter.id)
            continue

        groups = client.list_groups(
            name=group_filter.name, project_id=group_filter.project_id or project_id
        )
        if not groups:
            raise GroupNotFoundError(f"security group {group_filter.name} not found")

        for group in groups:
            if group.id not in ids:
                ids.append(group.id)
    return ids
