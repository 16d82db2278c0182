"""OpenStack networking mock for integration testing.

An in-memory implementation of the networking calls the operator makes, so
the full reconciliation flow can be exercised without a cloud.

Key Features:
- In-memory security groups and rules with provider-style IDs
- Call log for asserting on exactly which calls were made
- Error injection per operation for failure scenarios
- Context manager that patches the OpenStack connection

Usage:
    from openstack_mock import MockOpenStackContext

    with MockOpenStackContext() as ctx:
        reconciler = Reconciler(config)
        reconciler.reconcile_once()

        assert ctx.state.group_count == 2
"""

from .client import MockNetworkingClient
from .context import MockOpenStackContext
from .state import MockNetworkState

__all__ = [
    "MockNetworkState",
    "MockNetworkingClient",
    "MockOpenStackContext",
]
