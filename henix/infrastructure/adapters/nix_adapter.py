"""
Nix Adapter

Architectural Intent:
- Infrastructure adapter implementing NixPort
- Provides flake evaluation, directory hashing and remote nixos-rebuild
- Local Nix CLI calls run on asyncio subprocesses; the remote build goes
  through the session so its output is streamed to the log
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any
from henix.domain.errors import (
    BuildError,
    ConfigResolutionError,
    ExecError,
    HashError,
    SpawnFailedError,
)
from henix.domain.ports.nix_port import NixPort
from henix.domain.ports.remote_session_port import RemoteSessionPort
from henix.domain.value_objects.config_hash import ConfigHash
from henix.domain.value_objects.deployment_options import BuildMode
from henix.infrastructure.adapters.nar import nar_hash
from henix.infrastructure.process.output_multiplexer import run_local

logger = logging.getLogger(__name__)


class NixAdapter(NixPort):
    async def evaluate(self, cfg_dir: Path, attribute: str) -> Any:
        """Equivalent to `nix eval --json -- <attribute>` inside cfg_dir."""
        try:
            result = await run_local(
                "nix", ["eval", "--json", "--", attribute], cwd=str(cfg_dir)
            )
        except ExecError as e:
            raise ConfigResolutionError("Could not execute nix eval command") from e
        if not result.ok:
            raise ConfigResolutionError(
                f"Could not execute `nix eval {attribute}` command, with stderr:\n"
                f"{result.stderr}"
            )
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ConfigResolutionError(
                f"`{attribute}` did not evaluate to valid JSON"
            ) from e

    async def hash_directory(self, path: Path) -> ConfigHash:
        """Equivalent to `nix-hash <path>`."""
        try:
            result = await run_local("nix-hash", [str(path)])
        except SpawnFailedError as e:
            if isinstance(e.__cause__, FileNotFoundError):
                logger.warning("'nix-hash' not found, hashing %s in-process", path)
                return await self._hash_in_process(path)
            raise HashError("Could not execute nix-hash command") from e
        except ExecError as e:
            raise HashError("Could not execute nix-hash command") from e

        if not result.ok:
            raise HashError(
                f"Could not execute `nix-hash {path}` command, with stderr:\n"
                f"{result.stderr}"
            )
        try:
            return ConfigHash(result.stdout.strip())
        except ValueError as e:
            raise HashError("Unexpected output from nix-hash") from e

    async def _hash_in_process(self, path: Path) -> ConfigHash:
        try:
            value = await asyncio.get_event_loop().run_in_executor(None, nar_hash, path)
        except OSError as e:
            raise HashError(f"Could not hash directory {path}") from e
        return ConfigHash(value)

    async def build_remote(
        self,
        session: RemoteSessionPort,
        flake_ref: str,
        mode: BuildMode,
        show_trace: bool,
    ) -> int:
        args = [mode.value, "--flake", flake_ref]
        if show_trace:
            args.append("--show-trace")
        try:
            return await session.run_streamed("nixos-rebuild", args)
        except ExecError as e:
            raise BuildError("Rebuild execution failed") from e
