"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the domain needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from henix.domain.ports.remote_session_port import (
    CommandResult,
    RemoteConnectorPort,
    RemoteSessionPort,
)
from henix.domain.ports.nix_port import NixPort
from henix.domain.ports.transfer_port import ConfigTransferPort
from henix.domain.ports.rollback_port import RollbackPort
from henix.domain.ports.deploy_config_port import DeployConfigPort

__all__ = [
    "CommandResult",
    "RemoteConnectorPort",
    "RemoteSessionPort",
    "NixPort",
    "ConfigTransferPort",
    "RollbackPort",
    "DeployConfigPort",
]
