"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the henix application
- Single place where all adapters and use cases are wired together
- Receives the HenixConfig built once at process start

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Factory function creates and wires all dependencies
"""

from dataclasses import dataclass
from typing import Optional
from henix.application.use_cases.deploy_fleet import DeployFleet
from henix.application.use_cases.deploy_node import DeployNode
from henix.infrastructure.adapters.deploy_config_adapter import NixDeployConfigAdapter
from henix.infrastructure.adapters.fabric_adapter import FabricConnector
from henix.infrastructure.adapters.nix_adapter import NixAdapter
from henix.infrastructure.adapters.nixos_rollback_adapter import NixosRollbackAdapter
from henix.infrastructure.adapters.rsync_adapter import RsyncAdapter
from henix.infrastructure.config import HenixConfig


@dataclass
class HenixContainer:
    """DI container holding all wired dependencies."""

    config: HenixConfig
    nix_adapter: NixAdapter
    connector: FabricConnector
    transfer: RsyncAdapter
    rollback: NixosRollbackAdapter
    deploy_config: NixDeployConfigAdapter
    deploy_node: DeployNode
    deploy_fleet: DeployFleet


def create_container(config: Optional[HenixConfig] = None) -> HenixContainer:
    """Create and wire all dependencies."""
    config = config or HenixConfig()

    nix_adapter = NixAdapter()
    connector = FabricConnector(
        user=config.ssh.user, connect_timeout=config.ssh.connect_timeout
    )
    transfer = RsyncAdapter(
        user=config.ssh.user, connect_timeout=config.ssh.connect_timeout
    )
    rollback = NixosRollbackAdapter()
    deploy_config = NixDeployConfigAdapter(nix_adapter)

    deploy_node = DeployNode(
        connector,
        nix_adapter,
        transfer,
        rollback,
        staging_dir=config.deploy.staging_dir,
    )
    deploy_fleet = DeployFleet(
        deploy_node, node_timeout_seconds=config.deploy.node_timeout_seconds
    )

    return HenixContainer(
        config=config,
        nix_adapter=nix_adapter,
        connector=connector,
        transfer=transfer,
        rollback=rollback,
        deploy_config=deploy_config,
        deploy_node=deploy_node,
        deploy_fleet=deploy_fleet,
    )
