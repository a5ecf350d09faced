"""
NodeTarget Value Object

Architectural Intent:
- Immutable snapshot of one deployable machine, taken once per deployment run
- Validates node name and port bounds; the address is anything ssh accepts
  as a destination (DNS name, IPv4, IPv6 with zone, ssh_config alias)
- `port=None` leaves the choice to the SSH client defaults
"""

from dataclasses import dataclass
from typing import Optional


def _is_valid_address(host: str) -> bool:
    # A leading "-" would be read by ssh/rsync as an option
    return bool(host) and not host.startswith("-") and not any(c.isspace() for c in host)


@dataclass(frozen=True)
class NodeTarget:
    """
    Value Object representing a remote node in the deployment config.
    """
    name: str
    address: str
    port: Optional[int] = None
    rollback_on_failure: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Node name cannot be empty")
        if self.port is not None and not (1 <= self.port <= 65535):
            raise ValueError(f"Port must be 1-65535, got {self.port}")
        if not _is_valid_address(self.address):
            raise ValueError(f"Invalid address for node `{self.name}`: {self.address!r}")

    @property
    def is_ipv6(self) -> bool:
        return ":" in self.address

    def __str__(self) -> str:
        if self.port is None:
            return f"{self.name} ({self.address})"
        return f"{self.name} ({self.address}:{self.port})"
