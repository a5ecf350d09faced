"""
Deploy Node Use Case

Architectural Intent:
- Drives one NodeDeployment through connect -> hash -> copy -> build -> link
- Steps run strictly in order; the session is owned by this run and always closed
- Copy or build failures trigger rollback when the node's policy asks for it;
  a rollback failure is reported alongside, never instead of, the original error
- Linking the `latest` marker is best-effort and only ever produces a warning
"""

import logging
import posixpath
from pathlib import Path
from typing import Optional
from henix.domain.entities.node_deployment import NodeDeployment
from henix.domain.errors import (
    BuildError,
    CopyError,
    ExecError,
    HashError,
    LinkError,
    NodeConnectionError,
    RollbackError,
    describe_error,
)
from henix.domain.ports.nix_port import NixPort
from henix.domain.ports.remote_session_port import (
    RemoteConnectorPort,
    RemoteSessionPort,
)
from henix.domain.ports.rollback_port import RollbackPort
from henix.domain.ports.transfer_port import ConfigTransferPort
from henix.domain.value_objects.config_hash import ConfigHash
from henix.domain.value_objects.deployment_options import DeploymentOptions
from henix.domain.value_objects.deployment_result import DeploymentResult
from henix.domain.value_objects.node_target import NodeTarget
from henix.infrastructure.logging import NodeLoggerAdapter, node_logger

logger = logging.getLogger(__name__)

LATEST_LINK = "latest"


class DeployNode:
    def __init__(
        self,
        connector: RemoteConnectorPort,
        nix_port: NixPort,
        transfer: ConfigTransferPort,
        rollback: RollbackPort,
        staging_dir: str = "/etc/henix",
    ):
        self.connector = connector
        self.nix_port = nix_port
        self.transfer = transfer
        self.rollback = rollback
        self.staging_dir = staging_dir.rstrip("/") or "/"

    async def execute(
        self, target: NodeTarget, cfg_dir: Path, options: DeploymentOptions
    ) -> DeploymentResult:
        log = node_logger(logger, target.name)
        deployment = NodeDeployment(target)

        try:
            session = await self.connector.connect(target)
        except NodeConnectionError as e:
            log.error("%s", describe_error(e))
            return deployment.connection_failed(e).result()

        try:
            deployment = await self._deploy(deployment, session, cfg_dir, options, log)
        finally:
            await session.close()
        return deployment.result()

    async def _deploy(
        self,
        deployment: NodeDeployment,
        session: RemoteSessionPort,
        cfg_dir: Path,
        options: DeploymentOptions,
        log: NodeLoggerAdapter,
    ) -> NodeDeployment:
        target = deployment.target
        generation: Optional[str] = None
        if target.rollback_on_failure:
            generation = await self.rollback.current_generation(session)
            log.debug("Current system generation: %s", generation)

        deployment = deployment.start_hashing()
        try:
            config_hash = await self._hash(cfg_dir)
        except HashError as e:
            log.error("%s", describe_error(e))
            return deployment.fail(e)

        remote_path = posixpath.join(self.staging_dir, str(config_hash))
        deployment = deployment.start_copying(config_hash)
        try:
            await self._copy(cfg_dir, session, remote_path)
        except CopyError as e:
            return await self._handle_failure(deployment, session, e, generation, options, log)

        deployment = deployment.start_building()
        try:
            await self._build(session, remote_path, target.name, options, log)
        except BuildError as e:
            return await self._handle_failure(deployment, session, e, generation, options, log)

        deployment = deployment.start_linking()
        await self._link_latest(session, remote_path, log)
        log.info("Deployment succeeded")
        return deployment.succeed()

    async def _hash(self, cfg_dir: Path) -> ConfigHash:
        try:
            return await self.nix_port.hash_directory(cfg_dir)
        except HashError as e:
            raise HashError("Could not get hash") from e

    async def _copy(
        self, cfg_dir: Path, session: RemoteSessionPort, remote_path: str
    ) -> None:
        try:
            await self.transfer.copy_directory(cfg_dir, session, remote_path)
        except CopyError as e:
            raise CopyError("Could not copy config") from e

    async def _build(
        self,
        session: RemoteSessionPort,
        remote_path: str,
        node_name: str,
        options: DeploymentOptions,
        log: NodeLoggerAdapter,
    ) -> None:
        log.info("Building config on remote")
        flake_ref = f"{remote_path}#{node_name}"
        try:
            status = await self.nix_port.build_remote(
                session, flake_ref, options.mode, options.show_trace
            )
            if status != 0:
                raise BuildError(f"Rebuild failed (nixos-rebuild exited with {status})")
        except BuildError as e:
            raise BuildError("Could not build config") from e
        log.info("Finished building config on remote")

    async def _handle_failure(
        self,
        deployment: NodeDeployment,
        session: RemoteSessionPort,
        error: Exception,
        generation: Optional[str],
        options: DeploymentOptions,
        log: NodeLoggerAdapter,
    ) -> NodeDeployment:
        log.error("%s", describe_error(error))
        if not deployment.target.rollback_on_failure:
            return deployment.fail(error)

        deployment = deployment.start_rollback(error)
        log.info("Rolling back")
        try:
            await self.rollback.rollback(session, generation, options.mode)
        except RollbackError as e:
            log.error("Error while rolling back:\n%s", describe_error(e))
            return deployment.finish_rollback(e)
        return deployment.finish_rollback()

    async def _link_latest(
        self, session: RemoteSessionPort, remote_path: str, log: NodeLoggerAdapter
    ) -> None:
        latest = posixpath.join(self.staging_dir, LATEST_LINK)
        staged = posixpath.join(self.staging_dir, f".{LATEST_LINK}.tmp")
        # ln + rename, so `latest` never dangles or disappears mid-update
        steps = (
            ("ln", ["-sfn", remote_path, staged]),
            ("mv", ["-T", staged, latest]),
        )
        try:
            for command, args in steps:
                result = await session.run_captured(command, args)
                if not result.ok:
                    raise LinkError(
                        f"`{command}` exited with {result.exit_status}: {result.stderr.strip()}"
                    )
        except (ExecError, LinkError) as e:
            log.warning("Could not point %s at %s: %s", latest, remote_path, describe_error(e))
