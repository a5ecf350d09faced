"""
Deployment Options Value Object

Architectural Intent:
- Process-wide, read-only options shared by every node run of a deployment
- Owns target filtering, which must fail before any node is touched
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional
from henix.domain.errors import TargetValidationError
from henix.domain.value_objects.node_target import NodeTarget


class BuildMode(Enum):
    """Activation mode handed to the remote build."""
    SWITCH = "switch"
    BOOT = "boot"


@dataclass(frozen=True)
class DeploymentOptions:
    boot_only: bool = False
    show_trace: bool = False
    targets: Optional[frozenset[str]] = None

    @staticmethod
    def create(
        boot_only: bool = False,
        show_trace: bool = False,
        targets: Optional[Iterable[str]] = None,
    ) -> "DeploymentOptions":
        # An empty --target list means "no filter", same as not passing it
        return DeploymentOptions(
            boot_only=boot_only,
            show_trace=show_trace,
            targets=frozenset(targets) if targets else None,
        )

    @property
    def mode(self) -> BuildMode:
        return BuildMode.BOOT if self.boot_only else BuildMode.SWITCH

    def select(self, nodes: Mapping[str, NodeTarget]) -> list[NodeTarget]:
        """
        Returns the nodes this deployment applies to, in node map order.
        Raises TargetValidationError if a requested target is unknown.
        """
        if self.targets is None:
            return list(nodes.values())

        for target in sorted(self.targets):
            if target not in nodes:
                raise TargetValidationError(
                    f"Node name `{target}` (specified using --target) does not exist. "
                    "Did you remember to `git add` its configuration?"
                )
        return [node for name, node in nodes.items() if name in self.targets]
