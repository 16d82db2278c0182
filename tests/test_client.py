"""Tests for the openstacksdk-backed networking client."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from openstack import exceptions as os_exceptions

from secgroup_operator.client import OpenStackNetworkingClient
from secgroup_operator.errors import NetworkingError
from secgroup_operator.rules import RemoteCIDR, RemoteGroup, ResolvedRule, SelfGroup


def _sdk_group(**overrides: object) -> SimpleNamespace:
    fields: dict[str, object] = {
        "id": "sg-1",
        "name": "k8s-cluster-demo-secgroup-worker",
        "project_id": "p1",
        "description": "Cluster API managed group",
        "security_group_rules": [
            {
                "id": "r1",
                "direction": "egress",
                "ethertype": "IPv6",
                "protocol": None,
                "port_range_min": None,
                "port_range_max": None,
                "remote_group_id": None,
                "remote_ip_prefix": None,
                "description": "Full open",
            }
        ],
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def connection() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(connection: MagicMock) -> OpenStackNetworkingClient:
    return OpenStackNetworkingClient(connection)


class TestOpenStackNetworkingClient:
    """Tests for OpenStackNetworkingClient."""

    def test_from_cloud(self) -> None:
        with patch("secgroup_operator.client.openstack.connect") as connect:
            OpenStackNetworkingClient.from_cloud("mycloud")
        connect.assert_called_once_with(cloud="mycloud")

    def test_from_cloud_failure(self) -> None:
        with patch(
            "secgroup_operator.client.openstack.connect",
            side_effect=os_exceptions.ConfigException("no such cloud"),
        ):
            with pytest.raises(NetworkingError) as exc_info:
                OpenStackNetworkingClient.from_cloud("missing")
        assert exc_info.value.operation == "connect"

    def test_list_groups(self, connection: MagicMock, client: OpenStackNetworkingClient) -> None:
        connection.network.security_groups.return_value = [_sdk_group()]

        groups = client.list_groups(name="k8s-cluster-demo-secgroup-worker", project_id="p1")

        connection.network.security_groups.assert_called_once_with(
            name="k8s-cluster-demo-secgroup-worker", project_id="p1"
        )
        assert groups[0].id == "sg-1"
        assert groups[0].rules[0].ether_type == "IPv6"
        assert groups[0].rules[0].description == "Full open"

    def test_list_groups_without_filters(
        self, connection: MagicMock, client: OpenStackNetworkingClient
    ) -> None:
        connection.network.security_groups.return_value = []
        assert client.list_groups() == []
        connection.network.security_groups.assert_called_once_with()

    def test_list_groups_failure(self, connection: MagicMock, client: OpenStackNetworkingClient) -> None:
        connection.network.security_groups.side_effect = os_exceptions.HttpException("boom")
        with pytest.raises(NetworkingError, match="list_groups failed"):
            client.list_groups(name="x")

    def test_create_group(self, connection: MagicMock, client: OpenStackNetworkingClient) -> None:
        connection.network.create_security_group.return_value = _sdk_group(security_group_rules=None)

        group = client.create_group("g", "Cluster API managed group")

        connection.network.create_security_group.assert_called_once_with(
            name="g", description="Cluster API managed group"
        )
        assert group.rules == ()

    def test_create_group_in_project(
        self, connection: MagicMock, client: OpenStackNetworkingClient
    ) -> None:
        connection.network.create_security_group.return_value = _sdk_group(security_group_rules=None)

        group = client.create_group("g", "Cluster API managed group", project_id="p1")

        connection.network.create_security_group.assert_called_once_with(
            name="g", description="Cluster API managed group", project_id="p1"
        )
        assert group.project_id == "p1"


    def test_delete_group(self, connection: MagicMock, client: OpenStackNetworkingClient) -> None:
        client.delete_group("sg-1")
        connection.network.delete_security_group.assert_called_once_with("sg-1", ignore_missing=True)

    def test_create_rule_omits_unset_fields(
        self, connection: MagicMock, client: OpenStackNetworkingClient
    ) -> None:
        connection.network.create_security_group_rule.return_value = SimpleNamespace(
            id="r2",
            direction="ingress",
            ether_type="IPv4",
            protocol="tcp",
            port_range_min=22,
            port_range_max=22,
            remote_group_id="sg-b",
            remote_ip_prefix=None,
            description="SSH",
        )
        rule = ResolvedRule(
            description="SSH",
            protocol="tcp",
            port_range_min=22,
            port_range_max=22,
            remote=RemoteGroup("sg-b"),
        )

        created = client.create_rule("sg-1", rule)

        connection.network.create_security_group_rule.assert_called_once_with(
            security_group_id="sg-1",
            direction="ingress",
            ether_type="IPv4",
            description="SSH",
            protocol="tcp",
            port_range_min=22,
            port_range_max=22,
            remote_group_id="sg-b",
        )
        assert created.id == "r2"

    def test_create_rule_with_prefix(self, connection: MagicMock, client: OpenStackNetworkingClient) -> None:
        client.create_rule("sg-1", ResolvedRule(remote=RemoteCIDR("10.0.0.0/8")))
        kwargs = connection.network.create_security_group_rule.call_args.kwargs
        assert kwargs["remote_ip_prefix"] == "10.0.0.0/8"
        assert "remote_group_id" not in kwargs

    def test_create_rule_rejects_unresolved_self(self, client: OpenStackNetworkingClient) -> None:
        with pytest.raises(ValueError):
            client.create_rule("sg-1", ResolvedRule(remote=SelfGroup()))

    def test_delete_rule(self, connection: MagicMock, client: OpenStackNetworkingClient) -> None:
        client.delete_rule("r1")
        connection.network.delete_security_group_rule.assert_called_once_with("r1", ignore_missing=True)

    def test_replace_tags(self, connection: MagicMock, client: OpenStackNetworkingClient) -> None:
        client.replace_resource_tags("security-groups", "sg-1", ["a", "b"])

        resource, tags = connection.network.set_tags.call_args.args
        assert resource.id == "sg-1"
        assert tags == ["a", "b"]

    def test_replace_tags_unknown_kind(self, client: OpenStackNetworkingClient) -> None:
        with pytest.raises(ValueError, match="Unsupported resource kind"):
            client.replace_resource_tags("ports", "p-1", ["a"])
