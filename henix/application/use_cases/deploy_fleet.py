"""
Deploy Fleet Use Case

Architectural Intent:
- Validates target filters before any node is touched
- Runs one independent DeployNode per selected node, concurrently
- A failing node never cancels or blocks its siblings; each terminal result
  is logged with its node name

Parallelization Strategy:
- All node runs are gathered on the event loop at once
- Runs share only read-only inputs: the node map, options and config path
"""

import asyncio
import logging
from pathlib import Path
from typing import Mapping
from henix.application.dtos.deployment_dtos import FleetDeploymentReport
from henix.application.use_cases.deploy_node import DeployNode
from henix.domain.errors import NodeTimeoutError
from henix.domain.value_objects.deployment_options import DeploymentOptions
from henix.domain.value_objects.deployment_result import (
    DeploymentOutcome,
    DeploymentResult,
)
from henix.domain.value_objects.node_target import NodeTarget
from henix.infrastructure.logging import node_logger

logger = logging.getLogger(__name__)


class DeployFleet:
    def __init__(self, deploy_node: DeployNode, node_timeout_seconds: float = 0):
        self.deploy_node = deploy_node
        self.node_timeout_seconds = node_timeout_seconds

    async def execute(
        self,
        nodes: Mapping[str, NodeTarget],
        cfg_dir: Path,
        options: DeploymentOptions,
    ) -> FleetDeploymentReport:
        # Raises TargetValidationError before anything runs
        selected = options.select(nodes)
        if not selected:
            logger.warning("No nodes to deploy")
            return FleetDeploymentReport()

        logger.info(
            "Deploying to %d node(s): %s",
            len(selected),
            ", ".join(t.name for t in selected),
        )
        results = await asyncio.gather(
            *(self._run_node(target, cfg_dir, options) for target in selected)
        )
        return FleetDeploymentReport(results=tuple(results))

    async def _run_node(
        self, target: NodeTarget, cfg_dir: Path, options: DeploymentOptions
    ) -> DeploymentResult:
        log = node_logger(logger, target.name)
        run = self.deploy_node.execute(target, cfg_dir, options)
        try:
            if self.node_timeout_seconds > 0:
                result = await asyncio.wait_for(run, self.node_timeout_seconds)
            else:
                result = await run
        except asyncio.TimeoutError:
            error = NodeTimeoutError(
                f"Deployment of `{target.name}` did not finish within "
                f"{self.node_timeout_seconds}s"
            )
            result = DeploymentResult(
                node=target.name,
                outcome=DeploymentOutcome.FAILED_NO_ROLLBACK,
                error=error,
            )
        except Exception as e:
            log.exception("Unexpected error during deployment")
            result = DeploymentResult(
                node=target.name,
                outcome=DeploymentOutcome.FAILED_NO_ROLLBACK,
                error=e,
            )

        if result.succeeded:
            log.info("Finished: %s", result.outcome.value)
        else:
            log.error("Finished: %s", result.describe())
        return result
