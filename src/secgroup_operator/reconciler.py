"""Security group reconciliation for one cluster.

This module implements the Kubernetes-style reconciliation pattern:
1. Validate the cluster spec (no provider calls yet)
2. Ensure a group exists for every enabled role, filling the resolution table
3. Generate the desired rules of every group
4. Fetch each group and converge its rules (deletes before creates)
5. Write the per-role status back; repeat on interval

There is no internal retry and no rollback. A failed pass leaves the groups
partially converged; the next pass re-fetches everything and continues from
there. Passes for the same cluster must not overlap; the run loop below
executes them strictly one after another.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from .client import NetworkingClient, OpenStackNetworkingClient
from .config import Config
from .desired import GroupSpec, generate_desired_groups, validate_cluster
from .diff import RuleDiff, apply_rule_diff, compute_rule_diff
from .errors import NetworkingError, SecurityGroupConfigError
from .events import EventRecorder
from .lifecycle import delete_cluster_groups, ensure_group
from .models import ClusterSecurityGroupStatus, ClusterSpec, SecurityGroupStatus
from .observed import get_group_by_name
from .resolution import GroupRole, ResolutionTable, enabled_roles, group_name
from .spec_loader import SpecLoadError, load_cluster_spec

logger = logging.getLogger(__name__)

# Circuit breaker constants
MAX_CONSECUTIVE_FAILURES = 5
CIRCUIT_BREAKER_RESET_SECONDS = 300  # 5 minutes

# Stand-in ID for groups that do not exist yet when planning
PENDING_GROUP_ID_PREFIX = "pending:"


@dataclass
class ReconcileOutcome:
    """What one reconciliation pass did."""

    status: ClusterSecurityGroupStatus = field(default_factory=ClusterSecurityGroupStatus)
    diffs: dict[GroupRole, RuleDiff] = field(default_factory=dict)

    @property
    def rules_created(self) -> int:
        return sum(d.create_count for d in self.diffs.values())

    @property
    def rules_deleted(self) -> int:
        return sum(d.delete_count for d in self.diffs.values())


class SecurityGroupService:
    """Reconciles the managed security groups of a cluster.

    Args:
        client: Networking client.
        recorder: Recorder for user-facing cluster events.
        project_id: Project that owns the groups.
    """

    def __init__(
        self,
        client: NetworkingClient,
        recorder: EventRecorder | None = None,
        project_id: str | None = None,
    ) -> None:
        self._client = client
        self._recorder = recorder or EventRecorder()
        self._project_id = project_id

    @property
    def recorder(self) -> EventRecorder:
        return self._recorder

    def reconcile(self, cluster: ClusterSpec, cluster_name: str) -> ReconcileOutcome:
        """Run one reconciliation pass.

        Returns:
            The per-role status and the diff applied to each group. When the
            cluster does not manage security groups nothing is touched and
            every role's status is left unset.

        Raises:
            SecurityGroupConfigError: If the cluster spec or provider state is invalid.
            NetworkingError: On the first failing provider call.
        """
        logger.info("Reconciling security groups", extra={"cluster": cluster_name})
        if not cluster.security_groups_managed:
            logger.debug("No need to reconcile security groups", extra={"cluster": cluster_name})
            return ReconcileOutcome()

        validate_cluster(cluster)

        # Groups first: desired rules reference group IDs
        table = ResolutionTable()
        for role in enabled_roles(cluster):
            group = ensure_group(
                self._client,
                self._recorder,
                cluster_name,
                group_name(cluster_name, role),
                project_id=self._project_id,
                tags=cluster.tags,
            )
            table.set(role, group.id)

        desired = generate_desired_groups(cluster, cluster_name, table)

        outcome = ReconcileOutcome()
        for role, spec in desired.items():
            observed = get_group_by_name(self._client, spec.name, self._project_id)
            if observed.exists:
                diff = compute_rule_diff(spec, observed)
                outcome.diffs[role] = diff
                try:
                    observed = apply_rule_diff(self._client, diff, observed)
                except NetworkingError as e:
                    self._recorder.warnf(
                        cluster_name,
                        "FailedReconcileSecurityGroupRules",
                        "Failed to reconcile rules of security group %s: %s",
                        spec.name,
                        e,
                    )
                    raise
            outcome.status.set_role(role, observed)

        logger.info(
            "Reconciled security groups",
            extra={
                "cluster": cluster_name,
                "rules_created": outcome.rules_created,
                "rules_deleted": outcome.rules_deleted,
            },
        )
        return outcome

    def plan(self, cluster: ClusterSpec, cluster_name: str) -> dict[GroupRole, RuleDiff]:
        """Compute the pending rule changes without mutating anything.

        Groups that do not exist yet are planned with every desired rule as a
        create; references to them use a ``pending:<name>`` placeholder ID.

        Raises:
            SecurityGroupConfigError: If the cluster spec or provider state is invalid.
            NetworkingError: If a list call fails.
        """
        if not cluster.security_groups_managed:
            return {}

        validate_cluster(cluster)

        table = ResolutionTable()
        observed_by_role: dict[GroupRole, SecurityGroupStatus] = {}
        for role in enabled_roles(cluster):
            name = group_name(cluster_name, role)
            observed = get_group_by_name(self._client, name, self._project_id)
            observed_by_role[role] = observed
            table.set(role, observed.id or f"{PENDING_GROUP_ID_PREFIX}{name}")

        desired: dict[GroupRole, GroupSpec] = generate_desired_groups(cluster, cluster_name, table)
        return {
            role: compute_rule_diff(spec, observed_by_role[role]) for role, spec in desired.items()
        }

    def delete(self, cluster: ClusterSpec, cluster_name: str) -> list[str]:
        """Delete every managed group of the cluster.

        Returns:
            Names of the groups deleted by this call.
        """
        logger.info("Deleting security groups", extra={"cluster": cluster_name})
        return delete_cluster_groups(
            self._client,
            self._recorder,
            cluster,
            cluster_name,
            project_id=self._project_id,
        )


@dataclass
class ReconcileResult:
    """Result of a single reconciliation cycle."""

    cluster: str
    dry_run: bool = False
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    rules_created: int = 0
    rules_deleted: int = 0
    pending_changes: int = 0  # dry run: changes that would be applied
    status: ClusterSecurityGroupStatus | None = None
    error: Exception | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        """Check if reconciliation succeeded."""
        return self.error is None


class Reconciler:
    """Control loop driving SecurityGroupService for one cluster.

    Each cycle re-reads the cluster spec, so spec changes are picked up on the
    next interval. The loop is the only retry mechanism: after
    MAX_CONSECUTIVE_FAILURES failed cycles the circuit opens and
    reconciliation pauses for CIRCUIT_BREAKER_RESET_SECONDS.
    """

    def __init__(
        self,
        config: Config,
        client: NetworkingClient | None = None,
        recorder: EventRecorder | None = None,
    ) -> None:
        """Initialize reconciler with configuration.

        Args:
            config: Validated operator configuration.
            client: Networking client; connects to ``config.cloud`` if omitted.
            recorder: Event recorder; a fresh one if omitted.

        Raises:
            NetworkingError: If the cloud connection cannot be configured.
        """
        self._config = config
        self._client = client or OpenStackNetworkingClient.from_cloud(config.cloud)
        self._service = SecurityGroupService(
            self._client, recorder or EventRecorder(), project_id=config.project_id
        )

        self._shutdown_event = asyncio.Event()
        self._last_status: ClusterSecurityGroupStatus | None = None

        # Circuit breaker state
        self._consecutive_failures = 0
        self._circuit_open_until: datetime | None = None

    @property
    def config(self) -> Config:
        """Get the reconciler configuration."""
        return self._config

    @property
    def service(self) -> SecurityGroupService:
        return self._service

    @property
    def last_status(self) -> ClusterSecurityGroupStatus | None:
        """Status written by the most recent successful pass."""
        return self._last_status

    async def run(self) -> None:
        """Run the reconciliation loop until shutdown."""
        logger.info(
            "Starting reconciler",
            extra={
                "cluster": self._config.cluster_name,
                "project_id": self._config.project_id,
                "interval_seconds": self._config.reconcile_interval_seconds,
                "dry_run": self._config.dry_run,
            },
        )

        while not self._shutdown_event.is_set():
            if self._circuit_open_until is not None:
                now = datetime.now(UTC)
                if now < self._circuit_open_until:
                    remaining = (self._circuit_open_until - now).total_seconds()
                    logger.warning(
                        "Circuit breaker open, skipping reconciliation",
                        extra={
                            "cluster": self._config.cluster_name,
                            "remaining_seconds": remaining,
                            "consecutive_failures": self._consecutive_failures,
                        },
                    )
                    await self._wait(min(remaining, self._config.reconcile_interval_seconds))
                    continue

                logger.info(
                    "Circuit breaker reset, resuming reconciliation",
                    extra={"cluster": self._config.cluster_name},
                )
                self._circuit_open_until = None
                self._consecutive_failures = 0

            # Passes run one at a time, off the event loop
            result = await asyncio.to_thread(self.reconcile_once)
            self._record_outcome(result)

            await self._wait(self._config.reconcile_interval_seconds)

        logger.info("Reconciler shutdown complete", extra={"cluster": self._config.cluster_name})

    def shutdown(self) -> None:
        """Request graceful shutdown of the loop."""
        logger.info("Shutdown requested", extra={"cluster": self._config.cluster_name})
        self._shutdown_event.set()

    async def _wait(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=seconds)
        except TimeoutError:
            pass

    def _record_outcome(self, result: ReconcileResult) -> None:
        if result.error is None:
            self._consecutive_failures = 0
            return

        self._consecutive_failures += 1
        if self._consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
            self._circuit_open_until = datetime.now(UTC) + timedelta(
                seconds=CIRCUIT_BREAKER_RESET_SECONDS
            )
            logger.error(
                "Circuit breaker opened after consecutive failures",
                extra={
                    "cluster": self._config.cluster_name,
                    "consecutive_failures": self._consecutive_failures,
                    "reset_seconds": CIRCUIT_BREAKER_RESET_SECONDS,
                },
            )

    def reconcile_once(self) -> ReconcileResult:
        """Run a single pass and capture its outcome; never raises."""
        cluster_name = self._config.cluster_name
        result = ReconcileResult(cluster=cluster_name, dry_run=self._config.dry_run)

        try:
            cluster = load_cluster_spec(self._config.spec_file)
            if self._config.dry_run:
                diffs = self._service.plan(cluster, cluster_name)
                result.pending_changes = sum(
                    d.create_count + d.delete_count for d in diffs.values()
                )
            else:
                outcome = self._service.reconcile(cluster, cluster_name)
                result.rules_created = outcome.rules_created
                result.rules_deleted = outcome.rules_deleted
                result.status = outcome.status
                self._last_status = outcome.status

        except SpecLoadError as e:
            logger.error("Failed to load spec", extra={"error": str(e)})
            result.error = e
        except SecurityGroupConfigError as e:
            # Repeats every cycle until the cluster spec is fixed
            self._service.recorder.warnf(
                cluster_name,
                "InvalidSecurityGroupConfig",
                "Invalid security group configuration: %s",
                e,
            )
            logger.error("Security group configuration error", extra={"error": str(e)})
            result.error = e
        except NetworkingError as e:
            self._service.recorder.warnf(
                cluster_name,
                "FailedReconcileSecurityGroups",
                "Failed to reconcile security groups: %s",
                e,
            )
            logger.error("Networking error", extra={"error": str(e)})
            result.error = e
        except Exception as e:
            logger.exception("Unexpected error during reconciliation")
            result.error = e

        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    def _log_result(self, result: ReconcileResult) -> None:
        extra = {
            "cluster": result.cluster,
            "dry_run": result.dry_run,
            "rules_created": result.rules_created,
            "rules_deleted": result.rules_deleted,
            "pending_changes": result.pending_changes,
            "duration_seconds": result.duration_seconds,
        }
        if result.error is not None:
            extra["error"] = str(result.error)
            extra["error_type"] = type(result.error).__name__
            logger.error("Reconciliation failed", extra=extra)
        else:
            logger.info("Reconciliation result", extra=extra)
