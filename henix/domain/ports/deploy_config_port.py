"""
Deploy Config Port

Architectural Intent:
- Port interface for resolving the declarative node map of a deployment
"""

from abc import ABC, abstractmethod
from pathlib import Path
from henix.domain.value_objects.node_target import NodeTarget


class DeployConfigPort(ABC):

    @abstractmethod
    async def resolve(self, cfg_dir: Path) -> dict[str, NodeTarget]:
        """
        Returns the node map keyed by node name.
        Raises ConfigResolutionError on malformed or unreachable config.
        """
        pass
