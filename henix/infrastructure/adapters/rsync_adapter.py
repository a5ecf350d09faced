"""
Rsync Adapter

Architectural Intent:
- Infrastructure adapter implementing ConfigTransferPort with rsync over ssh
- Mirrors the configuration directory, deleting files absent locally
- Skips `.git/` and honours `.rsync-filter` files
"""

import logging
from pathlib import Path
from henix.domain.errors import CopyError, ExecError
from henix.domain.ports.remote_session_port import RemoteSessionPort
from henix.domain.ports.transfer_port import ConfigTransferPort
from henix.infrastructure.logging import node_logger
from henix.infrastructure.process.output_multiplexer import run_local

logger = logging.getLogger(__name__)


class RsyncAdapter(ConfigTransferPort):
    def __init__(self, user: str = "root", connect_timeout: int = 30):
        self._user = user
        self._connect_timeout = connect_timeout

    def _command(self, local_path: Path, session: RemoteSessionPort, remote_path: str) -> list[str]:
        target = session.target
        ssh = f"ssh -o ConnectTimeout={self._connect_timeout}"
        if target.port is not None:
            ssh += f" -p {target.port}"
        host = f"[{target.address}]" if target.is_ipv6 else target.address
        # Trailing separator: copy the *contents* of the directory
        source = str(local_path).rstrip("/") + "/"
        return [
            "--exclude=.git/",
            "-a",
            "-F",
            "--delete",
            "--mkpath",
            "-e", ssh,
            source,
            f"{self._user}@{host}:{remote_path}",
        ]

    async def copy_directory(
        self, local_path: Path, session: RemoteSessionPort, remote_path: str
    ) -> None:
        log = node_logger(logger, session.target.name)
        log.info("Copying files to %s", remote_path)
        try:
            result = await run_local("rsync", self._command(local_path, session, remote_path))
        except ExecError as e:
            raise CopyError("Could not execute rsync to copy files") from e
        if not result.ok:
            raise CopyError(
                f"Could not rsync files to location `{session.target.address}` "
                f"(rsync exited with {result.exit_status}), with stderr of:\n"
                f"{result.stderr}"
            )
        log.info("Copying finished")
