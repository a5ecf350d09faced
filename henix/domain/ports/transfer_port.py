"""
Config Transfer Port

Architectural Intent:
- Port interface for copying the local configuration to a node
- Implemented by RsyncAdapter
"""

from abc import ABC, abstractmethod
from pathlib import Path
from henix.domain.ports.remote_session_port import RemoteSessionPort


class ConfigTransferPort(ABC):

    @abstractmethod
    async def copy_directory(
        self, local_path: Path, session: RemoteSessionPort, remote_path: str
    ) -> None:
        """
        Mirrors the contents of local_path to remote_path on the session's node,
        deleting remote files absent locally and skipping version-control metadata.
        Raises CopyError.
        """
        pass
