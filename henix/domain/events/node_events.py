"""
Node Deployment Events

Architectural Intent:
- Audit trail of one node run, in the order the state machine produced it
"""

from dataclasses import dataclass
from typing import Any
from henix.domain.events.event_base import DomainEvent


@dataclass(frozen=True)
class NodeStateChangedEvent(DomainEvent):
    previous_state: str = ""
    new_state: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "previous_state": self.previous_state,
            "new_state": self.new_state,
        }


@dataclass(frozen=True)
class NodeDeploymentFailedEvent(DomainEvent):
    failed_state: str = ""
    error_message: str = ""


@dataclass(frozen=True)
class NodeRollbackFailedEvent(DomainEvent):
    error_message: str = ""
