"""Operator configuration with validation.

Configuration is read once from the environment at startup and validated
eagerly; an invalid configuration stops the operator before it talks to
the cloud.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_RECONCILE_INTERVAL_SECONDS = 300
MIN_RECONCILE_INTERVAL_SECONDS = 60
MAX_RECONCILE_INTERVAL_SECONDS = 3600

DEFAULT_CLOUD = "openstack"
DEFAULT_SPEC_FILE = "/specs/cluster.yaml"

# Limits
MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max spec file
MAX_CLUSTER_NAME_LENGTH = 63

# Input validation patterns
VALID_CLUSTER_NAME_PATTERN = r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$"
VALID_PROJECT_ID_PATTERN = r"^[0-9a-fA-F-]{1,64}$"


@dataclass(frozen=True)
class Config:
    """Operator configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    # Required fields
    cluster_name: str
    project_id: str

    # OpenStack connection (clouds.yaml entry)
    cloud: str = DEFAULT_CLOUD

    # Cluster specification
    spec_file: Path = field(default_factory=lambda: Path(DEFAULT_SPEC_FILE))

    # Timing
    reconcile_interval_seconds: int = DEFAULT_RECONCILE_INTERVAL_SECONDS

    # Behavior
    dry_run: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.cluster_name:
            errors.append("CLUSTER_NAME is required")
        elif not re.match(VALID_CLUSTER_NAME_PATTERN, self.cluster_name):
            errors.append(
                f"CLUSTER_NAME must match pattern {VALID_CLUSTER_NAME_PATTERN}: {self.cluster_name}"
            )

        if not self.project_id:
            errors.append("OS_PROJECT_ID is required")
        elif not re.match(VALID_PROJECT_ID_PATTERN, self.project_id):
            errors.append(f"OS_PROJECT_ID must be a project UUID: {self.project_id}")

        if not self.cloud:
            errors.append("OS_CLOUD must not be empty")

        if not (
            MIN_RECONCILE_INTERVAL_SECONDS
            <= self.reconcile_interval_seconds
            <= MAX_RECONCILE_INTERVAL_SECONDS
        ):
            errors.append(
                f"RECONCILE_INTERVAL must be between {MIN_RECONCILE_INTERVAL_SECONDS} "
                f"and {MAX_RECONCILE_INTERVAL_SECONDS} seconds"
            )

        if not self.spec_file.exists():
            errors.append(f"Spec file does not exist: {self.spec_file}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            CLUSTER_NAME: Name of the cluster whose groups are managed
            OS_PROJECT_ID: OpenStack project owning the groups
            OS_CLOUD: clouds.yaml entry to connect with (default: openstack)
            SPEC_FILE: Path to the cluster spec YAML (default: /specs/cluster.yaml)
            RECONCILE_INTERVAL: Seconds between reconciliation passes (default: 300)
            DRY_RUN: If "true", only compute pending changes (default: false)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            cluster_name=os.environ.get("CLUSTER_NAME", ""),
            project_id=os.environ.get("OS_PROJECT_ID", ""),
            cloud=os.environ.get("OS_CLOUD", DEFAULT_CLOUD),
            spec_file=Path(os.environ.get("SPEC_FILE", DEFAULT_SPEC_FILE)),
            reconcile_interval_seconds=get_int(
                "RECONCILE_INTERVAL", DEFAULT_RECONCILE_INTERVAL_SECONDS
            ),
            dry_run=get_bool("DRY_RUN", False),
        )
