"""
Rollback Port

Architectural Intent:
- Port interface for restoring a node's previous system state
- Rollback is local to one session and never touches other nodes
"""

from abc import ABC, abstractmethod
from typing import Optional
from henix.domain.ports.remote_session_port import RemoteSessionPort
from henix.domain.value_objects.deployment_options import BuildMode


class RollbackPort(ABC):

    @abstractmethod
    async def current_generation(self, session: RemoteSessionPort) -> Optional[str]:
        """
        Returns the node's active system generation, or None if unknown.
        Never raises.
        """
        pass

    @abstractmethod
    async def rollback(
        self,
        session: RemoteSessionPort,
        generation: Optional[str],
        mode: BuildMode,
    ) -> None:
        """
        Restores the given generation. Raises RollbackError.
        """
        pass
