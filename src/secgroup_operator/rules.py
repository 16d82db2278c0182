"""Rule value model.

A rule is a value: two rules are the same rule when every field matches,
regardless of provider-assigned IDs. ``matches`` is the single definition of
"this desired rule is already satisfied by that observed rule".

The remote endpoint of a rule is a tagged variant instead of a pair of
optional strings with a magic "self" value:

    NoRemote      match-all source / destination
    RemoteGroup   another group, by provider ID
    RemoteCIDR    an IP prefix
    SelfGroup     the group the rule belongs to, resolved before use
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import RuleStatus

DIRECTION_INGRESS = "ingress"
DIRECTION_EGRESS = "egress"
ETHER_TYPE_IPV4 = "IPv4"
ETHER_TYPE_IPV6 = "IPv6"

# Literal accepted in rule templates for the owning group
REMOTE_GROUP_SELF = "self"


@dataclass(frozen=True)
class NoRemote:
    """No remote restriction."""

    group_id: None = field(default=None, init=False, repr=False)
    prefix: None = field(default=None, init=False, repr=False)


@dataclass(frozen=True)
class RemoteGroup:
    """Remote endpoint is another security group."""

    group_id: str
    prefix: None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.group_id:
            raise ValueError("RemoteGroup requires a group id")
        if self.group_id == REMOTE_GROUP_SELF:
            raise ValueError("use SelfGroup() for self references")


@dataclass(frozen=True)
class RemoteCIDR:
    """Remote endpoint is an IP prefix."""

    prefix: str
    group_id: None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.prefix:
            raise ValueError("RemoteCIDR requires a prefix")


@dataclass(frozen=True)
class SelfGroup:
    """Remote endpoint is the group owning the rule."""

    group_id: None = field(default=None, init=False, repr=False)
    prefix: None = field(default=None, init=False, repr=False)


RemoteRef = NoRemote | RemoteGroup | RemoteCIDR | SelfGroup


def remote_from_fields(group_id: str | None, prefix: str | None) -> RemoteRef:
    """Build a RemoteRef from the provider's two optional fields.

    Raises:
        ValueError: If both fields are set.
    """
    if group_id and prefix:
        raise ValueError("remote group id and remote ip prefix are mutually exclusive")
    if group_id == REMOTE_GROUP_SELF:
        return SelfGroup()
    if group_id:
        return RemoteGroup(group_id)
    if prefix:
        return RemoteCIDR(prefix)
    return NoRemote()


@dataclass(frozen=True)
class ResolvedRule:
    """A desired firewall rule with every reference resolved except ``self``.

    Attributes:
        description: Free-form description; part of rule identity.
        direction: ``ingress`` or ``egress``.
        ether_type: ``IPv4`` or ``IPv6``.
        protocol: Protocol name or number; None means any.
        port_range_min: Lower port bound; None means any.
        port_range_max: Upper port bound; None means any.
        remote: Remote endpoint.
    """

    description: str = ""
    direction: str = DIRECTION_INGRESS
    ether_type: str = ETHER_TYPE_IPV4
    protocol: str | None = None
    port_range_min: int | None = None
    port_range_max: int | None = None
    remote: RemoteRef = field(default_factory=NoRemote)

    @property
    def remote_group_id(self) -> str | None:
        if isinstance(self.remote, SelfGroup):
            return REMOTE_GROUP_SELF
        return self.remote.group_id

    @property
    def remote_ip_prefix(self) -> str | None:
        return self.remote.prefix

    @property
    def is_self_referencing(self) -> bool:
        return isinstance(self.remote, SelfGroup)

    def resolve_self(self, group_id: str) -> ResolvedRule:
        """Return this rule with a ``self`` remote replaced by ``group_id``."""
        if not isinstance(self.remote, SelfGroup):
            return self
        if not group_id:
            raise ValueError("cannot resolve self reference without a group id")
        return replace(self, remote=RemoteGroup(group_id))

    def with_remote(self, remote: RemoteRef) -> ResolvedRule:
        return replace(self, remote=remote)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the provider's field names, omitting unset fields."""
        data: dict[str, Any] = {
            "description": self.description,
            "direction": self.direction,
            "etherType": self.ether_type,
        }
        optional = {
            "protocol": self.protocol,
            "portRangeMin": self.port_range_min,
            "portRangeMax": self.port_range_max,
            "remoteGroupID": self.remote_group_id,
            "remoteIPPrefix": self.remote_ip_prefix,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data


def matches(desired: ResolvedRule, observed: RuleStatus, self_id: str) -> bool:
    """Check whether an observed rule satisfies a desired rule.

    ``self`` in the desired rule is resolved to ``self_id`` first, then all
    eight fields are compared for exact equality. Provider IDs are ignored.

    Args:
        desired: Desired rule.
        observed: Rule reported by the provider.
        self_id: ID of the group owning both rules.

    Returns:
        True if the observed rule is the desired rule.
    """
    rule = desired.resolve_self(self_id)
    return (
        rule.description == (observed.description or "")
        and rule.direction == observed.direction
        and rule.ether_type == observed.ether_type
        and rule.protocol == (observed.protocol or None)
        and rule.port_range_min == observed.port_range_min
        and rule.port_range_max == observed.port_range_max
        and rule.remote_group_id == (observed.remote_group_id or None)
        and rule.remote_ip_prefix == (observed.remote_ip_prefix or None)
    )
