"""Networking client used by the reconciler.

The reconciler only needs six provider calls. ``NetworkingClient`` names them;
``OpenStackNetworkingClient`` implements them on top of openstacksdk and
converts the SDK's resources into the plain wire records below, so nothing
outside this module touches SDK types.

Every call is synchronous and maps to exactly one provider request. SDK
failures are re-raised as NetworkingError; nothing is retried here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import openstack
from openstack import exceptions as os_exceptions
from openstack.network.v2.security_group import SecurityGroup

from .errors import NetworkingError
from .rules import ResolvedRule

logger = logging.getLogger(__name__)

RESOURCE_KIND_SECURITY_GROUPS = "security-groups"

# Resource kinds whose tags can be replaced
_TAGGABLE_RESOURCES: dict[str, type[Any]] = {
    RESOURCE_KIND_SECURITY_GROUPS: SecurityGroup,
}


@dataclass(frozen=True)
class NetworkRule:
    """A security group rule as returned by the provider."""

    id: str
    direction: str
    ether_type: str | None = None
    protocol: str | None = None
    port_range_min: int | None = None
    port_range_max: int | None = None
    remote_group_id: str | None = None
    remote_ip_prefix: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class NetworkGroup:
    """A security group as returned by the provider."""

    id: str
    name: str
    project_id: str | None = None
    description: str | None = None
    rules: tuple[NetworkRule, ...] = field(default_factory=tuple)


class NetworkingClient(Protocol):
    """The networking capability consumed by the reconciler."""

    def list_groups(
        self, *, name: str | None = None, project_id: str | None = None
    ) -> list[NetworkGroup]: ...

    def create_group(
        self, name: str, description: str, project_id: str | None = None
    ) -> NetworkGroup: ...

    def delete_group(self, group_id: str) -> None: ...

    def create_rule(self, group_id: str, rule: ResolvedRule) -> NetworkRule: ...

    def delete_rule(self, rule_id: str) -> None: ...

    def replace_resource_tags(self, resource_kind: str, resource_id: str, tags: list[str]) -> None: ...


def _rule_from_sdk(raw: Any) -> NetworkRule:
    """Convert an SDK rule (resource or embedded dict) to a NetworkRule."""
    # Rules embedded in a group come back as dicts keyed by API names
    if isinstance(raw, dict):
        return NetworkRule(
            id=raw["id"],
            direction=raw["direction"],
            ether_type=raw.get("ethertype"),
            protocol=raw.get("protocol"),
            port_range_min=raw.get("port_range_min"),
            port_range_max=raw.get("port_range_max"),
            remote_group_id=raw.get("remote_group_id"),
            remote_ip_prefix=raw.get("remote_ip_prefix"),
            description=raw.get("description"),
        )
    return NetworkRule(
        id=raw.id,
        direction=raw.direction,
        ether_type=raw.ether_type,
        protocol=raw.protocol,
        port_range_min=raw.port_range_min,
        port_range_max=raw.port_range_max,
        remote_group_id=raw.remote_group_id,
        remote_ip_prefix=raw.remote_ip_prefix,
        description=raw.description,
    )


def _group_from_sdk(raw: Any) -> NetworkGroup:
    return NetworkGroup(
        id=raw.id,
        name=raw.name,
        project_id=raw.project_id,
        description=raw.description,
        rules=tuple(_rule_from_sdk(r) for r in (raw.security_group_rules or [])),
    )


class OpenStackNetworkingClient:
    """NetworkingClient backed by an openstacksdk connection.

    Credentials come from clouds.yaml (or the OS_* environment) through
    ``openstack.connect``; this class never handles secrets itself.
    """

    def __init__(self, connection: Any) -> None:
        self._conn = connection

    @classmethod
    def from_cloud(cls, cloud: str) -> OpenStackNetworkingClient:
        """Connect using a named clouds.yaml entry.

        Raises:
            NetworkingError: If the connection cannot be configured.
        """
        try:
            connection = openstack.connect(cloud=cloud)
        except os_exceptions.SDKException as e:
            raise NetworkingError("connect", str(e)) from e
        logger.info("Connected to OpenStack", extra={"cloud": cloud})
        return cls(connection)

    def list_groups(
        self, *, name: str | None = None, project_id: str | None = None
    ) -> list[NetworkGroup]:
        query: dict[str, str] = {}
        if name:
            query["name"] = name
        if project_id:
            query["project_id"] = project_id
        try:
            return [_group_from_sdk(g) for g in self._conn.network.security_groups(**query)]
        except os_exceptions.SDKException as e:
            raise NetworkingError("list_groups", str(e)) from e

    def create_group(
        self, name: str, description: str, project_id: str | None = None
    ) -> NetworkGroup:
        attrs: dict[str, Any] = {"name": name, "description": description}
        # Without an explicit project Neutron uses the token's project
        if project_id:
            attrs["project_id"] = project_id
        try:
            group = self._conn.network.create_security_group(**attrs)
        except os_exceptions.SDKException as e:
            raise NetworkingError("create_group", str(e)) from e
        return _group_from_sdk(group)

    def delete_group(self, group_id: str) -> None:
        try:
            self._conn.network.delete_security_group(group_id, ignore_missing=True)
        except os_exceptions.SDKException as e:
            raise NetworkingError("delete_group", str(e)) from e

    def create_rule(self, group_id: str, rule: ResolvedRule) -> NetworkRule:
        if rule.is_self_referencing:
            raise ValueError("self references must be resolved before creating a rule")
        attrs: dict[str, Any] = {
            "security_group_id": group_id,
            "direction": rule.direction,
            "ether_type": rule.ether_type,
            "description": rule.description,
        }
        optional = {
            "protocol": rule.protocol,
            "port_range_min": rule.port_range_min,
            "port_range_max": rule.port_range_max,
            "remote_group_id": rule.remote_group_id,
            "remote_ip_prefix": rule.remote_ip_prefix,
        }
        attrs.update({key: value for key, value in optional.items() if value is not None})
        try:
            created = self._conn.network.create_security_group_rule(**attrs)
        except os_exceptions.SDKException as e:
            raise NetworkingError("create_rule", str(e)) from e
        return _rule_from_sdk(created)

    def delete_rule(self, rule_id: str) -> None:
        try:
            self._conn.network.delete_security_group_rule(rule_id, ignore_missing=True)
        except os_exceptions.SDKException as e:
            raise NetworkingError("delete_rule", str(e)) from e

    def replace_resource_tags(self, resource_kind: str, resource_id: str, tags: list[str]) -> None:
        resource_class = _TAGGABLE_RESOURCES.get(resource_kind)
        if resource_class is None:
            raise ValueError(
                f"Unsupported resource kind '{resource_kind}'. "
                f"Valid kinds: {list(_TAGGABLE_RESOURCES)}"
            )
        try:
            self._conn.network.set_tags(resource_class(id=resource_id), list(tags))
        except os_exceptions.SDKException as e:
            raise NetworkingError("replace_resource_tags", str(e)) from e
