"""
Deployment DTOs

Architectural Intent:
- Data Transfer Objects for deployment use case boundaries
- The fleet report is a plain collection of per-node results; it does not
  collapse them into a single success flag
"""

from dataclasses import dataclass
from typing import Optional
from henix.domain.value_objects.deployment_result import DeploymentResult


@dataclass(frozen=True)
class FleetDeploymentReport:
    results: tuple[DeploymentResult, ...] = ()

    @property
    def succeeded(self) -> tuple[DeploymentResult, ...]:
        return tuple(r for r in self.results if r.succeeded)

    @property
    def failed(self) -> tuple[DeploymentResult, ...]:
        return tuple(r for r in self.results if not r.succeeded)

    @property
    def nodes(self) -> tuple[str, ...]:
        return tuple(r.node for r in self.results)

    def result_for(self, node: str) -> Optional[DeploymentResult]:
        for result in self.results:
            if result.node == node:
                return result
        return None
