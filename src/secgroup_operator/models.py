"""Pydantic models for the cluster specification and security group status.

These models provide:
1. Type-safe YAML parsing of the cluster specification
2. Validation at the boundary (fail fast, fail loudly)
3. Status records written back after each reconciliation pass

Field names follow the Kubernetes API conventions (camelCase aliases) so a
cluster manifest can be loaded unchanged.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .resolution import GroupRole
from .rules import ETHER_TYPE_IPV4, ETHER_TYPE_IPV6

VALID_DIRECTIONS = {"ingress", "egress"}
VALID_ETHER_TYPES = {ETHER_TYPE_IPV4, ETHER_TYPE_IPV6}

Port = Annotated[int, Field(ge=1, le=65535)]


def _as_role(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return GroupRole(value)
        except ValueError:
            # Left for pydantic to report
            return value
    return value


# =============================================================================
# Cluster Specification
# =============================================================================


class SecurityGroupRuleTemplate(BaseModel):
    """A caller supplied rule applied to every node (control plane and worker).

    The remote side is given either directly (remoteGroupID / remoteIPPrefix)
    or as a set of managed group roles (remoteManagedGroups), which expands
    into one rule per role. Mutual exclusion between the direct group reference
    and the role references is checked before reconciliation starts so that the
    error surfaces as a configuration error rather than a parse error.
    """

    model_config = {"extra": "ignore", "populate_by_name": True}

    name: str | None = None
    description: str | None = None
    direction: str
    ether_type: str = Field(ETHER_TYPE_IPV4, alias="etherType")
    protocol: str | None = None
    port_range_min: Port | None = Field(None, alias="portRangeMin")
    port_range_max: Port | None = Field(None, alias="portRangeMax")
    remote_group_id: str | None = Field(None, alias="remoteGroupID")
    remote_ip_prefix: str | None = Field(None, alias="remoteIPPrefix")
    remote_managed_groups: list[GroupRole] = Field(
        default_factory=list, alias="remoteManagedGroups"
    )

    @field_validator("remote_managed_groups", mode="before")
    @classmethod
    def normalize_managed_groups(cls, v: Any) -> Any:
        # Resolve role aliases such as "control-plane"
        if isinstance(v, list):
            return [_as_role(item) for item in v]
        return v

    @field_validator("direction")
    @classmethod
    def validate_direction(cls, v: str) -> str:
        if v not in VALID_DIRECTIONS:
            raise ValueError(f"direction must be one of {sorted(VALID_DIRECTIONS)}")
        return v

    @field_validator("ether_type")
    @classmethod
    def validate_ether_type(cls, v: str) -> str:
        if v not in VALID_ETHER_TYPES:
            raise ValueError(f"etherType must be one of {sorted(VALID_ETHER_TYPES)}")
        return v

    @field_validator("remote_ip_prefix")
    @classmethod
    def validate_cidr(cls, v: str | None) -> str | None:
        # Basic CIDR validation
        if v is not None and "/" not in v:
            raise ValueError("remoteIPPrefix must be in CIDR notation (e.g., 10.0.0.0/24)")
        return v

    @model_validator(mode="after")
    def validate_port_range(self) -> SecurityGroupRuleTemplate:
        if (
            self.port_range_min is not None
            and self.port_range_max is not None
            and self.port_range_min > self.port_range_max
        ):
            raise ValueError("portRangeMin must not exceed portRangeMax")
        return self


class ManagedSecurityGroups(BaseModel):
    """Enables managed security groups for the cluster."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    allow_all_in_cluster_traffic: bool = Field(False, alias="allowAllInClusterTraffic")
    all_nodes_security_group_rules: list[SecurityGroupRuleTemplate] = Field(
        default_factory=list, alias="allNodesSecurityGroupRules"
    )
    # Adds the BGP and IP-in-IP rules Calico needs between all nodes
    legacy_calico_rules: bool = Field(False, alias="legacyCalicoRules")


class APIServerLoadBalancer(BaseModel):
    """API server load balancer configuration."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    enabled: bool = False
    additional_ports: list[Port] = Field(default_factory=list, alias="additionalPorts")


class BastionSpec(BaseModel):
    """Bastion host configuration."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    enabled: bool = False


class ClusterSpec(BaseModel):
    """The parts of a cluster specification that drive security groups."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    name: Annotated[str, Field(min_length=1, max_length=63)] | None = None
    managed_security_groups: ManagedSecurityGroups | None = Field(
        None, alias="managedSecurityGroups"
    )
    api_server_load_balancer: APIServerLoadBalancer = Field(
        default_factory=APIServerLoadBalancer, alias="apiServerLoadBalancer"
    )
    bastion: BastionSpec | None = None
    tags: list[str] = Field(default_factory=list)

    @property
    def bastion_enabled(self) -> bool:
        return self.bastion is not None and self.bastion.enabled

    @property
    def security_groups_managed(self) -> bool:
        return self.managed_security_groups is not None


# =============================================================================
# Status
# =============================================================================


class RuleStatus(BaseModel):
    """A rule as reported by the provider.

    Every field except the identifiers is optional; the provider omits
    whatever the rule does not constrain.
    """

    model_config = {"extra": "ignore", "populate_by_name": True}

    id: str
    direction: str
    description: str | None = None
    ether_type: str | None = Field(None, alias="etherType")
    protocol: str | None = None
    port_range_min: int | None = Field(None, alias="portRangeMin")
    port_range_max: int | None = Field(None, alias="portRangeMax")
    remote_group_id: str | None = Field(None, alias="remoteGroupID")
    remote_ip_prefix: str | None = Field(None, alias="remoteIPPrefix")


class SecurityGroupStatus(BaseModel):
    """Observed state of one security group.

    An empty ``id`` means the group does not exist yet, or its rules were
    reconciled to nothing; both are rendered identically.
    """

    model_config = {"extra": "ignore", "populate_by_name": True}

    id: str = ""
    name: str = ""
    rules: list[RuleStatus] = Field(default_factory=list)

    @classmethod
    def absent(cls) -> SecurityGroupStatus:
        return cls()

    @property
    def exists(self) -> bool:
        return bool(self.id)


class ClusterSecurityGroupStatus(BaseModel):
    """Per-role security group status persisted on the cluster."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    control_plane_security_group: SecurityGroupStatus | None = Field(
        None, alias="controlPlaneSecurityGroup"
    )
    worker_security_group: SecurityGroupStatus | None = Field(None, alias="workerSecurityGroup")
    bastion_security_group: SecurityGroupStatus | None = Field(None, alias="bastionSecurityGroup")

    def for_role(self, role: GroupRole) -> SecurityGroupStatus | None:
        return getattr(self, _STATUS_FIELDS[role])

    def set_role(self, role: GroupRole, status: SecurityGroupStatus | None) -> None:
        setattr(self, _STATUS_FIELDS[role], status)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the cluster API field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


_STATUS_FIELDS: dict[GroupRole, str] = {
    GroupRole.CONTROL_PLANE: "control_plane_security_group",
    GroupRole.WORKER: "worker_security_group",
    GroupRole.BASTION: "bastion_security_group",
}
