"""Managed group roles and the role to provider ID resolution table.

Groups are looked up (and created if missing) for every enabled role before
desired rules are generated, so the table is complete by the time rules that
reference other roles are expanded. Looking up a role that is not in the table
is a configuration error, never a transient one.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from typing import TYPE_CHECKING

from .errors import UnresolvedRoleError

if TYPE_CHECKING:
    from .models import ClusterSpec

SECGROUP_PREFIX = "k8s"


class GroupRole(str, Enum):
    """Logical roles in the cluster's security topology.

    The value is both the name used in rule templates (remoteManagedGroups)
    and the suffix embedded in the provider group name. ``control-plane`` is
    accepted as an alias of ``controlplane``.
    """

    CONTROL_PLANE = "controlplane"
    WORKER = "worker"
    BASTION = "bastion"

    @classmethod
    def _missing_(cls, value: object) -> GroupRole | None:
        if isinstance(value, str):
            return _ALIASES.get(value)
        return None

    @property
    def suffix(self) -> str:
        return self.value


_ALIASES: dict[str, GroupRole] = {
    "control-plane": GroupRole.CONTROL_PLANE,
}


def group_name(cluster_name: str, role: GroupRole) -> str:
    """Derive the provider group name for a role.

    Args:
        cluster_name: Name of the owning cluster.
        role: Logical group role.

    Returns:
        Name of the form ``k8s-cluster-<cluster>-secgroup-<suffix>``.
    """
    return f"{SECGROUP_PREFIX}-cluster-{cluster_name}-secgroup-{role.suffix}"


def enabled_roles(cluster: ClusterSpec) -> tuple[GroupRole, ...]:
    """Return the roles present for a cluster, in declaration order."""
    roles = [GroupRole.CONTROL_PLANE, GroupRole.WORKER]
    if cluster.bastion_enabled:
        roles.append(GroupRole.BASTION)
    return tuple(roles)


class ResolutionTable:
    """Maps managed group roles to concrete provider group IDs."""

    def __init__(self, ids: dict[GroupRole, str] | None = None) -> None:
        self._ids: dict[GroupRole, str] = {}
        for role, group_id in (ids or {}).items():
            self.set(role, group_id)

    def set(self, role: GroupRole, group_id: str) -> None:
        if not group_id:
            raise ValueError(f"cannot resolve role {role.value} to an empty group id")
        self._ids[GroupRole(role)] = group_id

    def get(self, role: GroupRole | str) -> str:
        """Resolve a role to its group ID.

        Raises:
            UnresolvedRoleError: If the role is unknown or not present.
        """
        try:
            return self._ids[GroupRole(role)]
        except (KeyError, ValueError) as e:
            value = role.value if isinstance(role, GroupRole) else str(role)
            raise UnresolvedRoleError(value) from e

    def __contains__(self, role: object) -> bool:
        try:
            return GroupRole(role) in self._ids  # type: ignore[arg-type]
        except ValueError:
            return False

    def __iter__(self) -> Iterator[GroupRole]:
        return iter(self.roles)

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def roles(self) -> tuple[GroupRole, ...]:
        """Resolved roles in enum order, independent of insertion order."""
        return tuple(role for role in GroupRole if role in self._ids)

    def as_dict(self) -> dict[str, str]:
        return {role.value: self._ids[role] for role in self.roles}
