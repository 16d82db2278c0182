"""Tests for group roles and the resolution table."""

from __future__ import annotations

import pytest

from secgroup_operator.errors import SecurityGroupConfigError, UnresolvedRoleError
from secgroup_operator.models import ClusterSpec
from secgroup_operator.resolution import GroupRole, ResolutionTable, enabled_roles, group_name


class TestGroupNames:
    """Tests for derived group names."""

    @pytest.mark.parametrize(
        "role,expected",
        [
            (GroupRole.CONTROL_PLANE, "k8s-cluster-demo-secgroup-controlplane"),
            (GroupRole.WORKER, "k8s-cluster-demo-secgroup-worker"),
            (GroupRole.BASTION, "k8s-cluster-demo-secgroup-bastion"),
        ],
    )
    def test_group_name(self, role: GroupRole, expected: str) -> None:
        assert group_name("demo", role) == expected


class TestEnabledRoles:
    """Tests for enabled_roles."""

    def test_without_bastion(self) -> None:
        cluster = ClusterSpec.model_validate({"managedSecurityGroups": {}})
        assert enabled_roles(cluster) == (GroupRole.CONTROL_PLANE, GroupRole.WORKER)

    def test_with_disabled_bastion(self) -> None:
        cluster = ClusterSpec.model_validate({"bastion": {"enabled": False}})
        assert GroupRole.BASTION not in enabled_roles(cluster)

    def test_with_bastion(self) -> None:
        cluster = ClusterSpec.model_validate({"bastion": {"enabled": True}})
        assert enabled_roles(cluster)[-1] == GroupRole.BASTION


class TestResolutionTable:
    """Tests for ResolutionTable."""

    def test_get_resolved_role(self) -> None:
        table = ResolutionTable({GroupRole.WORKER: "sg-w"})
        assert table.get(GroupRole.WORKER) == "sg-w"
        assert table.get("worker") == "sg-w"

    def test_control_plane_alias(self) -> None:
        table = ResolutionTable({GroupRole.CONTROL_PLANE: "sg-cp"})
        assert GroupRole("control-plane") is GroupRole.CONTROL_PLANE
        assert table.get("controlplane") == "sg-cp"
        assert table.get("control-plane") == "sg-cp"
        assert "control-plane" in table


    def test_missing_role_is_config_error(self) -> None:
        table = ResolutionTable({GroupRole.WORKER: "sg-w"})
        with pytest.raises(UnresolvedRoleError) as exc_info:
            table.get(GroupRole.BASTION)
        assert isinstance(exc_info.value, SecurityGroupConfigError)
        assert "bastion is not a valid remote managed security group" in str(exc_info.value)

    def test_unknown_role_name_is_config_error(self) -> None:
        with pytest.raises(UnresolvedRoleError):
            ResolutionTable().get("database")

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValueError):
            ResolutionTable().set(GroupRole.WORKER, "")

    def test_roles_in_enum_order(self) -> None:
        table = ResolutionTable()
        table.set(GroupRole.BASTION, "sg-b")
        table.set(GroupRole.CONTROL_PLANE, "sg-cp")
        assert table.roles == (GroupRole.CONTROL_PLANE, GroupRole.BASTION)
        assert list(table) == [GroupRole.CONTROL_PLANE, GroupRole.BASTION]
        assert len(table) == 2
        assert "bastion" in table
        assert GroupRole.WORKER not in table
        assert "nope" not in table
        assert table.as_dict() == {"controlplane": "sg-cp", "bastion": "sg-b"}
