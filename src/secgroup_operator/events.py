"""User-facing event recording for the owning cluster.

Events are the human-readable side channel next to structured errors:
every group create/delete outcome is recorded against the cluster with a
type (Normal or Warning), a machine-readable reason and a message.

Events are emitted as structured log lines so they reach the same sink as
the rest of the operator's logs, and are retained in memory (bounded) so
the caller can attach them to the cluster status.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

# Maximum number of events kept in memory per recorder
MAX_RETAINED_EVENTS = 256


class EventType(str, Enum):
    """Kubernetes event types."""

    NORMAL = "Normal"
    WARNING = "Warning"


@dataclass(frozen=True)
class ClusterEvent:
    """One event recorded against a cluster."""

    cluster: str
    event_type: EventType
    reason: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["event_type"] = self.event_type.value
        result["timestamp"] = self.timestamp.isoformat()
        return result


class EventRecorder:
    """Records cluster events to the log and keeps the most recent ones."""

    def __init__(self, max_events: int = MAX_RETAINED_EVENTS) -> None:
        self._events: deque[ClusterEvent] = deque(maxlen=max_events)

    @property
    def events(self) -> list[ClusterEvent]:
        return list(self._events)

    def record(self, cluster: str, event_type: EventType, reason: str, message: str) -> ClusterEvent:
        event = ClusterEvent(cluster=cluster, event_type=event_type, reason=reason, message=message)
        self._events.append(event)

        log_level = logging.WARNING if event_type == EventType.WARNING else logging.INFO
        logger.log(
            log_level,
            message,
            extra={
                "event": True,
                "cluster": cluster,
                "event_type": event_type.value,
                "reason": reason,
            },
        )
        return event

    def eventf(self, cluster: str, reason: str, message: str, *args: Any) -> ClusterEvent:
        """Record a Normal event; ``message`` is %-formatted with ``args``."""
        return self.record(cluster, EventType.NORMAL, reason, message % args if args else message)

    def warnf(self, cluster: str, reason: str, message: str, *args: Any) -> ClusterEvent:
        """Record a Warning event; ``message`` is %-formatted with ``args``."""
        return self.record(cluster, EventType.WARNING, reason, message % args if args else message)

    def by_reason(self, reason: str) -> list[ClusterEvent]:
        return [e for e in self._events if e.reason == reason]

    def clear(self) -> None:
        self._events.clear()
