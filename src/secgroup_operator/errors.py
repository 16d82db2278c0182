"""Exception hierarchy for security group reconciliation.

Two families matter to callers:

- SecurityGroupConfigError: the cluster specification (or the provider state
  it is reconciled against) is invalid. Never retried automatically; the pass
  is aborted before any mutating call in the error's scope.
- NetworkingError: a provider call failed. Surfaced as-is; the outer
  reconciliation loop retries the whole pass later.
"""

from __future__ import annotations


class SecurityGroupError(Exception):
    """Base class for all security group reconciliation errors."""

    pass


class SecurityGroupConfigError(SecurityGroupError):
    """Raised when configuration makes reconciliation impossible."""

    pass


class AmbiguousGroupError(SecurityGroupConfigError):
    """Raised when more than one provider group carries a managed name."""

    def __init__(self, name: str, count: int) -> None:
        super().__init__(f"more than one security group found named: {name} ({count} matches)")
        self.name = name
        self.count = count


class UnresolvedRoleError(SecurityGroupConfigError):
    """Raised when a rule references a managed group role that is not present."""

    def __init__(self, role: str) -> None:
        super().__init__(
            f"remoteManagedGroups: {role} is not a valid remote managed security group"
        )
        self.role = role


class ConflictingRemoteError(SecurityGroupConfigError):
    """Raised when a rule template sets mutually exclusive remote fields."""

    pass


class GroupNotFoundError(SecurityGroupConfigError):
    """Raised when a user supplied group filter matches no provider group."""

    pass


class NetworkingError(SecurityGroupError):
    """Raised when a networking provider call fails.

    Attributes:
        operation: Name of the client operation that failed.
    """

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
