"""
Deploy Config Adapter

Architectural Intent:
- Infrastructure adapter implementing DeployConfigPort
- Evaluates the flake's `deploy` output and maps it onto NodeTarget values

Expected shape of `.#deploy`:
    {"nodes": {"<name>": {"location": "<host>",
                          "sshPort": 22,              # optional
                          "rollbackOnFailure": true}}} # optional
"""

import logging
from pathlib import Path
from typing import Any
from henix.domain.errors import ConfigResolutionError
from henix.domain.ports.deploy_config_port import DeployConfigPort
from henix.domain.ports.nix_port import NixPort
from henix.domain.value_objects.node_target import NodeTarget

logger = logging.getLogger(__name__)

DEPLOY_ATTRIBUTE = ".#deploy"


def parse_deploy_config(data: Any) -> dict[str, NodeTarget]:
    """Converts the evaluated `deploy` attribute into a node map."""
    if not isinstance(data, dict) or not isinstance(data.get("nodes"), dict):
        raise ConfigResolutionError("Deploy configuration must contain a `nodes` attribute set")

    nodes: dict[str, NodeTarget] = {}
    for name in sorted(data["nodes"]):
        cfg = data["nodes"][name]
        if not isinstance(cfg, dict):
            raise ConfigResolutionError(f"Configuration of node `{name}` must be an attribute set")
        if "location" not in cfg:
            raise ConfigResolutionError(f"Node `{name}` is missing `location`")
        port = cfg.get("sshPort")
        if port is not None and (isinstance(port, bool) or not isinstance(port, int)):
            raise ConfigResolutionError(f"`sshPort` of node `{name}` must be an integer")
        try:
            nodes[name] = NodeTarget(
                name=name,
                address=str(cfg["location"]),
                port=port,
                rollback_on_failure=bool(cfg.get("rollbackOnFailure", False)),
            )
        except ValueError as e:
            raise ConfigResolutionError(f"Invalid configuration for node `{name}`") from e
    return nodes


class NixDeployConfigAdapter(DeployConfigPort):
    def __init__(self, nix_port: NixPort, attribute: str = DEPLOY_ATTRIBUTE):
        self.nix_port = nix_port
        self.attribute = attribute

    async def resolve(self, cfg_dir: Path) -> dict[str, NodeTarget]:
        logger.info("Gathering deploy information")
        data = await self.nix_port.evaluate(cfg_dir, self.attribute)
        nodes = parse_deploy_config(data)
        logger.debug("Resolved %d node(s): %s", len(nodes), ", ".join(nodes))
        return nodes
