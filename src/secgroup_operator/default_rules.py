"""Fixed rule sets for the managed groups.

Rules that point at another managed group take that group's ID as an
argument; rules that point at their own group use SelfGroup and are resolved
when the owning group's ID is known.
"""

from __future__ import annotations

from .models import SecurityGroupRuleTemplate
from .resolution import GroupRole
from .rules import (
    DIRECTION_EGRESS,
    DIRECTION_INGRESS,
    ETHER_TYPE_IPV4,
    ETHER_TYPE_IPV6,
    RemoteGroup,
    ResolvedRule,
    SelfGroup,
)

PORT_SSH = 22
PORT_KUBE_API = 6443
PORT_KUBELET = 10250
PORT_ETCD_MIN, PORT_ETCD_MAX = 2379, 2380
PORT_NODEPORT_MIN, PORT_NODEPORT_MAX = 30000, 32767
PORT_BGP = 179
PROTOCOL_IP_IN_IP = "4"

LEGACY_CALICO_DESCRIPTION_PREFIX = "Created by cluster-api-provider-openstack API conversion - "

# Common to every managed group
DEFAULT_RULES: tuple[ResolvedRule, ...] = (
    ResolvedRule(description="Full open", direction=DIRECTION_EGRESS, ether_type=ETHER_TYPE_IPV4),
    ResolvedRule(description="Full open", direction=DIRECTION_EGRESS, ether_type=ETHER_TYPE_IPV6),
)


def _tcp_ingress(description: str, port_min: int, port_max: int | None = None) -> ResolvedRule:
    return ResolvedRule(
        description=description,
        direction=DIRECTION_INGRESS,
        ether_type=ETHER_TYPE_IPV4,
        protocol="tcp",
        port_range_min=port_min,
        port_range_max=port_max if port_max is not None else port_min,
    )


def control_plane_https() -> list[ResolvedRule]:
    return [_tcp_ingress("Kubernetes API", PORT_KUBE_API)]


def worker_node_ports() -> list[ResolvedRule]:
    tcp = _tcp_ingress("Node Port Services", PORT_NODEPORT_MIN, PORT_NODEPORT_MAX)
    udp = ResolvedRule(
        description="Node Port Services",
        direction=DIRECTION_INGRESS,
        ether_type=ETHER_TYPE_IPV4,
        protocol="udp",
        port_range_min=PORT_NODEPORT_MIN,
        port_range_max=PORT_NODEPORT_MAX,
    )
    return [tcp, udp]


def control_plane_additional_ports(ports: list[int]) -> list[ResolvedRule]:
    """One ingress rule per additional load balancer port."""
    return [_tcp_ingress("Additional port", port) for port in ports]


def _allow_all_from(peer_group_id: str) -> list[ResolvedRule]:
    base = ResolvedRule(
        description="In-cluster Ingress",
        direction=DIRECTION_INGRESS,
        ether_type=ETHER_TYPE_IPV4,
    )
    return [base.with_remote(SelfGroup()), base.with_remote(RemoteGroup(peer_group_id))]


def control_plane_allow_all(worker_group_id: str) -> list[ResolvedRule]:
    return _allow_all_from(worker_group_id)


def worker_allow_all(control_plane_group_id: str) -> list[ResolvedRule]:
    return _allow_all_from(control_plane_group_id)


def control_plane_general(worker_group_id: str) -> list[ResolvedRule]:
    """Cluster internal allow-list for the control plane."""
    kubelet = _tcp_ingress("Kubelet API", PORT_KUBELET)
    return [
        _tcp_ingress("Etcd", PORT_ETCD_MIN, PORT_ETCD_MAX).with_remote(SelfGroup()),
        kubelet.with_remote(SelfGroup()),
        kubelet.with_remote(RemoteGroup(worker_group_id)),
    ]


def worker_general(control_plane_group_id: str) -> list[ResolvedRule]:
    """Cluster internal allow-list for workers."""
    kubelet = _tcp_ingress("Kubelet API", PORT_KUBELET)
    return [
        kubelet.with_remote(SelfGroup()),
        kubelet.with_remote(RemoteGroup(control_plane_group_id)),
    ]


def ssh_from_bastion(bastion_group_id: str) -> list[ResolvedRule]:
    return [_tcp_ingress("SSH", PORT_SSH).with_remote(RemoteGroup(bastion_group_id))]


def bastion_rules() -> list[ResolvedRule]:
    """SSH from anywhere followed by the defaults."""
    return [_tcp_ingress("SSH", PORT_SSH), *DEFAULT_RULES]


def legacy_calico_rules() -> list[SecurityGroupRuleTemplate]:
    """All-nodes templates Calico needs when in-cluster traffic is not open."""
    peers = [GroupRole.CONTROL_PLANE, GroupRole.WORKER]
    return [
        SecurityGroupRuleTemplate(
            name="BGP (calico)",
            description=LEGACY_CALICO_DESCRIPTION_PREFIX + "BGP (calico)",
            direction=DIRECTION_INGRESS,
            ether_type=ETHER_TYPE_IPV4,
            protocol="tcp",
            port_range_min=PORT_BGP,
            port_range_max=PORT_BGP,
            remote_managed_groups=peers,
        ),
        SecurityGroupRuleTemplate(
            name="IP-in-IP (calico)",
            description=LEGACY_CALICO_DESCRIPTION_PREFIX + "IP-in-IP (calico)",
            direction=DIRECTION_INGRESS,
            ether_type=ETHER_TYPE_IPV4,
            protocol=PROTOCOL_IP_IN_IP,
            remote_managed_groups=peers,
        ),
    ]
