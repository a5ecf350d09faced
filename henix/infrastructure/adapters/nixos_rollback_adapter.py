"""
NixOS Rollback Adapter

Architectural Intent:
- Infrastructure adapter implementing RollbackPort for NixOS system profiles
- The generation active before a deployment is recorded once, right after
  connecting, and restored only if the failed deployment changed it
- Configs are staged under /etc/henix/<hash>, so a failed copy or a failed
  build alone leaves nothing to undo
"""

import logging
import posixpath
from typing import Optional
from henix.domain.errors import ExecError, RollbackError
from henix.domain.ports.remote_session_port import RemoteSessionPort
from henix.domain.ports.rollback_port import RollbackPort
from henix.domain.value_objects.deployment_options import BuildMode
from henix.infrastructure.logging import node_logger

logger = logging.getLogger(__name__)

SYSTEM_PROFILE = "/nix/var/nix/profiles/system"


class NixosRollbackAdapter(RollbackPort):
    def __init__(self, profile: str = SYSTEM_PROFILE):
        self._profile = profile

    async def current_generation(self, session: RemoteSessionPort) -> Optional[str]:
        log = node_logger(logger, session.target.name)
        try:
            result = await session.run_captured("readlink", [self._profile])
        except ExecError as e:
            log.warning("Could not read current system generation: %s", e)
            return None
        if not result.ok or not result.stdout.strip():
            log.warning(
                "Could not read current system generation (readlink exited with %s)",
                result.exit_status,
            )
            return None
        return result.stdout.strip()

    async def rollback(
        self,
        session: RemoteSessionPort,
        generation: Optional[str],
        mode: BuildMode,
    ) -> None:
        log = node_logger(logger, session.target.name)
        if generation is None:
            raise RollbackError(
                "No system generation was recorded before deploying, cannot roll back"
            )

        current = await self.current_generation(session)
        if current == generation:
            log.info("No special rollback necessary")
            return

        log.info("Rolling back to %s", generation)
        generation_path = posixpath.join(posixpath.dirname(self._profile), generation)
        try:
            result = await session.run_captured(
                "nix-env", ["-p", self._profile, "--set", generation_path]
            )
            if not result.ok:
                raise RollbackError(
                    f"Could not reset system profile to {generation} "
                    f"(nix-env exited with {result.exit_status}), with stderr of:\n"
                    f"{result.stderr}"
                )
            status = await session.run_streamed(
                f"{self._profile}/bin/switch-to-configuration", [mode.value]
            )
        except ExecError as e:
            raise RollbackError("Rollback execution failed") from e
        if status != 0:
            raise RollbackError(
                f"switch-to-configuration {mode.value} exited with {status}"
            )
        log.info("Rolled back to %s", generation)
