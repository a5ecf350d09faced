"""
Output Multiplexer

Architectural Intent:
- Drains a child process's stdout and stderr concurrently into a logging sink
- One reader task per stream feeds a single queue; the consumer emits lines
  in arrival order, so a busy stream never starves the other
- Returns the child's exit status; a non-zero status is a normal result

Child contract:
- `stdout` / `stderr`: objects with `async readline() -> bytes` (b"" at EOF),
  or None when the stream could not be captured
- `async wait() -> int`
asyncio.subprocess.Process satisfies this as-is (its StreamReaders are read
without their line length limit); remote channels are adapted by
ChannelProcess in the Fabric adapter.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence
from henix.domain.errors import SpawnFailedError, WaitFailedError
from henix.domain.ports.remote_session_port import CommandResult

logger = logging.getLogger(__name__)

OutputSink = Callable[[str, str], None]

_STREAMS = ("stdout", "stderr")


class LineSource(Protocol):
    async def readline(self) -> bytes: ...


class ChildProcess(Protocol):
    stdout: Optional[Any]
    stderr: Optional[Any]

    async def wait(self) -> int: ...


def logging_sink(program: str, log: Optional[logging.LoggerAdapter] = None) -> OutputSink:
    """Sink that logs each line at INFO, tagged with the program and stream."""
    target = log if log is not None else logger

    def _emit(stream: str, line: str) -> None:
        target.info("%s %s: %s", program, stream, line)

    return _emit


def _decode(raw: bytes) -> str:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw.decode("utf-8", errors="replace")


class _UnboundedLines:
    """readline() over an asyncio.StreamReader without its line length limit."""

    def __init__(self, reader: asyncio.StreamReader):
        self._reader = reader

    async def readline(self) -> bytes:
        chunks = []
        while True:
            try:
                chunks.append(await self._reader.readuntil(b"\n"))
                break
            except asyncio.IncompleteReadError as e:
                # EOF, possibly after a final unterminated line
                chunks.append(e.partial)
                break
            except asyncio.LimitOverrunError as e:
                # Over-long line: take what is buffered and keep looking for "\n"
                chunks.append(await self._reader.readexactly(e.consumed))
        return b"".join(chunks)


async def _discard(name: str, source: LineSource) -> None:
    # Keep the pipe empty so the child never blocks writing to it
    try:
        while await source.readline():
            pass
    except Exception as e:
        logger.debug("Stopped draining child %s: %s", name, e)


async def _read_lines(
    name: str, source: LineSource, queue: "asyncio.Queue[tuple[str, Optional[str]]]"
) -> None:
    try:
        while True:
            raw = await source.readline()
            if not raw:
                break
            await queue.put((name, _decode(raw)))
    except Exception as e:
        # A broken stream ends that stream only; the other keeps draining
        logger.warning(
            "Error reading child %s, remaining output is discarded: %s", name, e
        )
        await _discard(name, source)
    finally:
        queue.put_nowait((name, None))


async def proxy_output_to_logging(
    program: str,
    spawn: Callable[[], Awaitable[ChildProcess]],
    sink: Optional[OutputSink] = None,
) -> int:
    """
    Spawns a child and proxies its output to `sink` line by line.

    Raises SpawnFailedError if the child could not be started and
    WaitFailedError if its exit status could not be collected.
    """
    emit = sink or logging_sink(program)

    try:
        child = await spawn()
    except SpawnFailedError:
        raise
    except Exception as e:
        raise SpawnFailedError(f"Could not spawn `{program}`") from e

    queue: asyncio.Queue[tuple[str, Optional[str]]] = asyncio.Queue()
    readers = []
    for name in _STREAMS:
        source = getattr(child, name, None)
        if source is None:
            logger.warning(
                "Could not take child %s, %s of `%s` will not be logged",
                name, name, program,
            )
            continue
        if isinstance(source, asyncio.StreamReader):
            source = _UnboundedLines(source)
        readers.append(asyncio.ensure_future(_read_lines(name, source, queue)))

    try:
        open_streams = len(readers)
        while open_streams:
            name, line = await queue.get()
            if line is None:
                open_streams -= 1
                continue
            emit(name, line)
    finally:
        for reader in readers:
            if not reader.done():
                reader.cancel()
        if readers:
            await asyncio.gather(*readers, return_exceptions=True)

    # All lines have been processed, collect the status
    try:
        return await child.wait()
    except Exception as e:
        raise WaitFailedError(f"Could not wait for `{program}` to finish") from e


async def spawn_local(
    program: str, args: Sequence[str] = (), cwd: Optional[str] = None
) -> asyncio.subprocess.Process:
    """Starts a local command with piped stdout/stderr and no stdin."""
    try:
        return await asyncio.create_subprocess_exec(
            program,
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise SpawnFailedError(f"Could not spawn `{program}`") from e


async def run_local(
    program: str, args: Sequence[str] = (), cwd: Optional[str] = None
) -> CommandResult:
    """Runs a local command to completion, capturing its output."""
    process = await spawn_local(program, args, cwd)
    try:
        stdout, stderr = await process.communicate()
    except Exception as e:
        raise WaitFailedError(f"Could not wait for `{program}` to finish") from e
    return CommandResult(
        exit_status=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
