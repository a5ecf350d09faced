"""
Nix Port

Architectural Intent:
- Port interface for interacting with the Nix ecosystem
- Abstracts flake evaluation, directory hashing and remote system builds
- Implemented by NixAdapter
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from henix.domain.ports.remote_session_port import RemoteSessionPort
from henix.domain.value_objects.config_hash import ConfigHash
from henix.domain.value_objects.deployment_options import BuildMode


class NixPort(ABC):
    """
    Port interface for interacting with the Nix ecosystem.
    """

    @abstractmethod
    async def evaluate(self, cfg_dir: Path, attribute: str) -> Any:
        """
        Evaluates a flake attribute to JSON-decoded data.
        Raises ConfigResolutionError.
        """
        pass

    @abstractmethod
    async def hash_directory(self, path: Path) -> ConfigHash:
        """
        Hashes the contents of a directory. Raises HashError.
        """
        pass

    @abstractmethod
    async def build_remote(
        self,
        session: RemoteSessionPort,
        flake_ref: str,
        mode: BuildMode,
        show_trace: bool,
    ) -> int:
        """
        Builds and activates a system configuration on the remote.
        Returns the build's exit status; raises BuildError if it could not run.
        """
        pass
