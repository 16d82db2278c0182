"""Mock NetworkingClient backed by MockNetworkState."""

from __future__ import annotations

from secgroup_operator.client import NetworkGroup, NetworkRule
from secgroup_operator.errors import NetworkingError
from secgroup_operator.rules import ResolvedRule

from .state import MockGroup, MockNetworkState, MockRule


def _to_network_rule(rule: MockRule) -> NetworkRule:
    return NetworkRule(
        id=rule.id,
        direction=rule.direction,
        ether_type=rule.ether_type,
        protocol=rule.protocol,
        port_range_min=rule.port_range_min,
        port_range_max=rule.port_range_max,
        remote_group_id=rule.remote_group_id,
        remote_ip_prefix=rule.remote_ip_prefix,
        description=rule.description,
    )


class MockNetworkingClient:
    """Implements the NetworkingClient protocol in memory."""

    def __init__(self, state: MockNetworkState | None = None) -> None:
        self.state = state or MockNetworkState()

    def _check(self, operation: str) -> None:
        message = self.state.failure_for(operation)
        if message is not None:
            raise NetworkingError(operation, message)

    def _to_network_group(self, group: MockGroup) -> NetworkGroup:
        return NetworkGroup(
            id=group.id,
            name=group.name,
            project_id=group.project_id,
            description=group.description,
            rules=tuple(_to_network_rule(r) for r in self.state.rules_of(group.id)),
        )

    def list_groups(
        self, *, name: str | None = None, project_id: str | None = None
    ) -> list[NetworkGroup]:
        self.state.record_call("list_groups", name=name, project_id=project_id)
        self._check("list_groups")
        return [
            self._to_network_group(g)
            for g in self.state.groups.values()
            if (name is None or g.name == name)
            and (project_id is None or g.project_id == project_id)
        ]

    def create_group(
        self, name: str, description: str, project_id: str | None = None
    ) -> NetworkGroup:
        self.state.record_call(
            "create_group", name=name, description=description, project_id=project_id
        )
        self._check("create_group")
        group = self.state.add_group(name, project_id=project_id)
        group.description = description
        return self._to_network_group(group)

    def delete_group(self, group_id: str) -> None:
        self.state.record_call("delete_group", group_id=group_id)
        self._check("delete_group")
        if group_id in self.state.groups:
            self.state.remove_group(group_id)

    def create_rule(self, group_id: str, rule: ResolvedRule) -> NetworkRule:
        self.state.record_call("create_rule", group_id=group_id, rule=rule)
        self._check("create_rule")
        if rule.is_self_referencing:
            raise ValueError("self references must be resolved before creating a rule")
        if group_id not in self.state.groups:
            raise NetworkingError("create_rule", f"security group {group_id} not found")
        stored = self.state.add_rule(
            group_id,
            direction=rule.direction,
            ether_type=rule.ether_type,
            protocol=rule.protocol,
            port_range_min=rule.port_range_min,
            port_range_max=rule.port_range_max,
            remote_group_id=rule.remote_group_id,
            remote_ip_prefix=rule.remote_ip_prefix,
            description=rule.description,
        )
        return _to_network_rule(stored)

    def delete_rule(self, rule_id: str) -> None:
        self.state.record_call("delete_rule", rule_id=rule_id)
        self._check("delete_rule")
        if rule_id in self.state.rules:
            self.state.remove_rule(rule_id)

    def replace_resource_tags(self, resource_kind: str, resource_id: str, tags: list[str]) -> None:
        self.state.record_call(
            "replace_resource_tags",
            resource_kind=resource_kind,
            resource_id=resource_id,
            tags=list(tags),
        )
        self._check("replace_resource_tags")
        self.state.groups[resource_id].tags = list(tags)
