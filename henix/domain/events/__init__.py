"""
Domain Events Package

Architectural Intent:
- Contains the domain events recorded by node deployments
"""

from henix.domain.events.event_base import DomainEvent
from henix.domain.events.node_events import (
    NodeStateChangedEvent,
    NodeDeploymentFailedEvent,
    NodeRollbackFailedEvent,
)

__all__ = [
    "DomainEvent",
    "NodeStateChangedEvent",
    "NodeDeploymentFailedEvent",
    "NodeRollbackFailedEvent",
]
