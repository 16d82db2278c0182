"""Diff-apply: converge the rules of one existing group to its desired rules.

ALGORITHM (two independent passes over the same lists):
- to_delete: observed rules that no desired rule matches
- to_create: desired rules that no observed rule matches
- kept:      observed rules matched by a desired rule, carried unchanged
             (their provider IDs are preserved)

Deletions are issued before creations so freed rule slots are available to
new rules. The first failing call aborts the pass; nothing already applied
is rolled back. The next pass re-diffs against the provider and picks up
where this one stopped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .client import NetworkingClient
from .desired import GroupSpec
from .models import RuleStatus, SecurityGroupStatus
from .observed import convert_rule
from .rules import ResolvedRule, matches

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleDiff:
    """Changes needed to converge one group's rules."""

    group_id: str
    group_name: str
    to_delete: tuple[RuleStatus, ...] = field(default_factory=tuple)
    to_create: tuple[ResolvedRule, ...] = field(default_factory=tuple)
    kept: tuple[RuleStatus, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.to_delete and not self.to_create

    @property
    def delete_count(self) -> int:
        return len(self.to_delete)

    @property
    def create_count(self) -> int:
        return len(self.to_create)


def compute_rule_diff(desired: GroupSpec, observed: SecurityGroupStatus) -> RuleDiff:
    """Compute the rule changes for one group without calling the provider.

    ``self`` references in desired rules are resolved to ``observed.id``; the
    rules in ``to_create`` are already resolved. For a group that does not
    exist yet every desired rule is reported as a create with ``self`` left
    unresolved.
    """
    self_id = observed.id

    to_delete = tuple(
        observed_rule
        for observed_rule in observed.rules
        if not any(matches(d, observed_rule, self_id) for d in desired.rules)
    )

    kept: list[RuleStatus] = []
    to_create: list[ResolvedRule] = []
    for desired_rule in desired.rules:
        match = next(
            (o for o in observed.rules if matches(desired_rule, o, self_id)),
            None,
        )
        if match is not None:
            kept.append(match)
        else:
            to_create.append(desired_rule.resolve_self(self_id) if self_id else desired_rule)

    return RuleDiff(
        group_id=self_id,
        group_name=desired.name,
        to_delete=to_delete,
        to_create=tuple(to_create),
        kept=tuple(kept),
    )


def reconcile_group_rules(
    client: NetworkingClient, desired: GroupSpec, observed: SecurityGroupStatus
) -> SecurityGroupStatus:
    """Converge an existing group's rules to the desired rules.

    Args:
        client: Networking client.
        desired: Desired group.
        observed: Current status of the group; it must exist.

    Returns:
        The reconciled status, or an absent status when the group ends up
        with no rules at all.

    Raises:
        ValueError: If the observed group does not exist.
        NetworkingError: On the first failing provider call.
    """
    if not observed.exists:
        raise ValueError(f"security group {desired.name} must exist before its rules are reconciled")

    return apply_rule_diff(client, compute_rule_diff(desired, observed), observed)


def apply_rule_diff(
    client: NetworkingClient, diff: RuleDiff, observed: SecurityGroupStatus
) -> SecurityGroupStatus:
    """Issue the deletes, then the creates, of a computed diff.

    Returns:
        The reconciled status, or an absent status when no rules remain.

    Raises:
        NetworkingError: On the first failing provider call.
    """
    logger.info(
        "Deleting rules not needed anymore for group",
        extra={"group_name": observed.name, "amount": diff.delete_count},
    )
    for rule in diff.to_delete:
        logger.debug("Deleting rule", extra={"rule_id": rule.id, "group_name": observed.name})
        client.delete_rule(rule.id)

    logger.info(
        "Creating new rules needed for group",
        extra={"group_name": observed.name, "amount": diff.create_count},
    )
    reconciled = list(diff.kept)
    for rule in diff.to_create:
        logger.debug(
            "Creating rule",
            extra={"group_id": observed.id, "group_name": observed.name, "rule": rule.to_dict()},
        )
        reconciled.append(convert_rule(client.create_rule(observed.id, rule)))

    if not reconciled:
        return SecurityGroupStatus.absent()

    return observed.model_copy(update={"rules": reconciled})
