"""
Remote Session Port

Architectural Intent:
- Port interface for one authenticated connection to a node
- A session is owned by a single node run and closed at its end
- Implemented by adapters (Fabric/SSH)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence
from henix.domain.value_objects.node_target import NodeTarget


@dataclass(frozen=True)
class CommandResult:
    exit_status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class RemoteSessionPort(ABC):
    """
    Port interface for running commands on a connected node.
    """

    @property
    @abstractmethod
    def target(self) -> NodeTarget:
        pass

    @abstractmethod
    async def run_captured(self, command: str, args: Sequence[str] = ()) -> CommandResult:
        """
        Runs a command to completion, buffering its output.
        Raises ExecError if the command could not be run at all.
        """
        pass

    @abstractmethod
    async def run_streamed(self, command: str, args: Sequence[str] = ()) -> int:
        """
        Runs a command, logging its output line by line as it is produced.
        Returns the exit status; raises ExecError if it could not be run.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class RemoteConnectorPort(ABC):
    """
    Port interface for establishing remote sessions.
    """

    @abstractmethod
    async def connect(self, target: NodeTarget) -> RemoteSessionPort:
        """
        Opens a session to the node. Raises NodeConnectionError on failure.
        """
        pass
