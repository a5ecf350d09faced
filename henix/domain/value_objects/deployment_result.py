"""
Deployment Result Value Object

Architectural Intent:
- Terminal outcome of exactly one node run
- Carries the original failure and, separately, any rollback failure
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from henix.domain.errors import describe_error


class DeploymentOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED_WITH_ROLLBACK = "failed, rollback attempted"
    FAILED_NO_ROLLBACK = "failed"
    CONNECTION_FAILED = "connection failed"


@dataclass(frozen=True)
class DeploymentResult:
    node: str
    outcome: DeploymentOutcome
    error: Optional[BaseException] = None
    rollback_error: Optional[BaseException] = None
    config_hash: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is DeploymentOutcome.SUCCEEDED

    @property
    def rollback_attempted(self) -> bool:
        return self.outcome is DeploymentOutcome.FAILED_WITH_ROLLBACK

    def describe(self) -> str:
        """Human-readable summary including both error chains, if any."""
        if self.succeeded:
            return f"{self.node}: {self.outcome.value}"
        text = f"{self.node}: {self.outcome.value}\n{describe_error(self.error)}"
        if self.rollback_error is not None:
            text += f"\nError while rolling back:\n{describe_error(self.rollback_error)}"
        return text
