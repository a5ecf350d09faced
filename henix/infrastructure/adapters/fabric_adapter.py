"""
Fabric Adapter

Architectural Intent:
- Infrastructure adapter implementing RemoteConnectorPort/RemoteSessionPort via Fabric/SSH
- One Connection per node run, opened eagerly so connection failures surface
  before any deployment step
- Blocking Fabric/Paramiko calls run on threads owned by the session or the
  running command, so a slow node never holds up the others

Security:
- SSH connections use connect_timeout, allow_agent, look_for_keys
- Every command argument is quoted with shlex
"""

import asyncio
import logging
import shlex
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence
from fabric import Connection
from henix.domain.errors import ExecError, NodeConnectionError, SpawnFailedError
from henix.domain.ports.remote_session_port import (
    CommandResult,
    RemoteConnectorPort,
    RemoteSessionPort,
)
from henix.domain.value_objects.node_target import NodeTarget
from henix.infrastructure.logging import node_logger
from henix.infrastructure.process.output_multiplexer import (
    logging_sink,
    proxy_output_to_logging,
)

logger = logging.getLogger(__name__)


def _session_executor(target: NodeTarget) -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"henix-{target.name}")


class _ThreadedLineReader:
    """Reads lines from a blocking file object without blocking the event loop."""

    def __init__(self, stream, executor: ThreadPoolExecutor):
        self._stream = stream
        self._executor = executor

    async def readline(self) -> bytes:
        return await asyncio.get_event_loop().run_in_executor(
            self._executor, self._stream.readline
        )


class ChannelProcess:
    """Presents a Paramiko channel running a command as a child process.

    Each instance owns one thread per blocking call that may be pending at
    once: the stdout reader, the stderr reader and the exit status wait.
    """

    def __init__(self, channel):
        self._channel = channel
        self._executor = ThreadPoolExecutor(
            max_workers=3, thread_name_prefix="henix-channel"
        )
        self.stdout: Optional[_ThreadedLineReader] = _ThreadedLineReader(
            channel.makefile("rb"), self._executor
        )
        self.stderr: Optional[_ThreadedLineReader] = _ThreadedLineReader(
            channel.makefile_stderr("rb"), self._executor
        )

    async def wait(self) -> int:
        try:
            return await asyncio.get_event_loop().run_in_executor(
                self._executor, self._channel.recv_exit_status
            )
        finally:
            self._channel.close()
            self._executor.shutdown(wait=False)


class FabricSession(RemoteSessionPort):
    """A live Fabric connection to one node."""

    def __init__(
        self,
        target: NodeTarget,
        connection: Connection,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self._target = target
        self._connection = connection
        self._log = node_logger(logger, target.name)
        self._executor = executor or _session_executor(target)

    @property
    def target(self) -> NodeTarget:
        return self._target

    async def run_captured(self, command: str, args: Sequence[str] = ()) -> CommandResult:
        command_line = shlex.join([command, *args])
        self._log.debug("Running `%s`", command_line)

        def _run():
            return self._connection.run(
                command_line, hide=True, warn=True, in_stream=False
            )

        try:
            result = await asyncio.get_event_loop().run_in_executor(self._executor, _run)
        except Exception as e:
            raise ExecError(f"Could not execute `{command}` on `{self._target.name}`") from e
        return CommandResult(
            exit_status=result.exited,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    async def run_streamed(self, command: str, args: Sequence[str] = ()) -> int:
        command_line = shlex.join([command, *args])
        self._log.debug("Running `%s` with streamed output", command_line)

        def _open_channel():
            channel = self._connection.create_session()
            try:
                channel.exec_command(command_line)
                # Nothing is sent to the command; it sees EOF on stdin
                channel.shutdown_write()
            except Exception:
                channel.close()
                raise
            return channel

        async def _spawn() -> ChannelProcess:
            try:
                channel = await asyncio.get_event_loop().run_in_executor(
                    self._executor, _open_channel
                )
            except Exception as e:
                raise SpawnFailedError(
                    f"Could not spawn `{command}` on `{self._target.name}`"
                ) from e
            return ChannelProcess(channel)

        return await proxy_output_to_logging(
            command, _spawn, logging_sink(command, self._log)
        )

    async def close(self) -> None:
        try:
            await asyncio.get_event_loop().run_in_executor(
                self._executor, self._connection.close
            )
        except Exception as e:
            self._log.warning("Error while closing SSH session: %s", e)
        else:
            self._log.debug("SSH session closed")
        finally:
            self._executor.shutdown(wait=False)


class FabricConnector(RemoteConnectorPort):
    """Adapter opening Fabric connections under a fixed privileged account."""

    def __init__(self, user: str = "root", connect_timeout: int = 30):
        self._user = user
        self._connect_timeout = connect_timeout

    def _get_connection(self, target: NodeTarget) -> Connection:
        return Connection(
            host=target.address,
            user=self._user,
            port=target.port,
            connect_timeout=self._connect_timeout,
            connect_kwargs={
                "allow_agent": True,
                "look_for_keys": True,
            },
        )

    async def connect(self, target: NodeTarget) -> FabricSession:
        log = node_logger(logger, target.name)
        log.info("Establishing SSH session")

        def _open():
            connection = self._get_connection(target)
            connection.open()
            return connection

        loop = asyncio.get_event_loop()
        executor = _session_executor(target)
        opening = loop.run_in_executor(executor, _open)
        try:
            connection = await asyncio.shield(opening)
        except asyncio.CancelledError:
            # The open keeps going on its thread; whatever it yields is ours to close
            opening.add_done_callback(
                lambda done: _close_abandoned(loop, executor, done, log)
            )
            raise
        except Exception as e:
            executor.shutdown(wait=False)
            raise NodeConnectionError(
                f"Could not connect to node with name `{target.name}`"
            ) from e
        log.info("SSH session established")
        return FabricSession(target, connection, executor)


def _close_abandoned(
    loop, executor: ThreadPoolExecutor, opening: "asyncio.Future[Connection]", log
) -> None:
    if opening.cancelled() or opening.exception() is not None:
        executor.shutdown(wait=False)
        return
    connection = opening.result()

    def _close():
        try:
            connection.close()
        except Exception as e:
            log.warning("Error while closing abandoned SSH session: %s", e)
        else:
            log.debug("Abandoned SSH session closed")

    loop.run_in_executor(executor, _close)
    executor.shutdown(wait=False)
