"""Tests for the child output multiplexer."""

import asyncio
import logging
import sys
import pytest
from henix.domain.errors import SpawnFailedError, WaitFailedError
from henix.infrastructure.process.output_multiplexer import (
    logging_sink,
    proxy_output_to_logging,
    run_local,
    spawn_local,
)


def _python(code):
    return lambda: spawn_local(sys.executable, ["-c", code])


class _Collector:
    def __init__(self):
        self.lines = []

    def __call__(self, stream, line):
        self.lines.append((stream, line))

    def stream(self, name):
        return [line for stream, line in self.lines if stream == name]


class _Lines:
    """In-memory line source."""

    def __init__(self, *lines, error=None):
        self._lines = list(lines)
        self._error = error

    async def readline(self):
        if self._lines:
            return self._lines.pop(0)
        if self._error is not None:
            raise self._error
        return b""


class _FakeChild:
    def __init__(self, stdout=None, stderr=None, status=0, wait_error=None):
        self.stdout = stdout
        self.stderr = stderr
        self._status = status
        self._wait_error = wait_error

    async def wait(self):
        if self._wait_error is not None:
            raise self._wait_error
        return self._status


class TestProxyOutputToLogging:
    @pytest.mark.asyncio
    async def test_lines_from_both_streams_in_order(self):
        code = (
            "import sys\n"
            "for i in range(3): print('out', i, flush=True)\n"
            "for i in range(2): print('err', i, file=sys.stderr, flush=True)\n"
        )
        sink = _Collector()

        status = await proxy_output_to_logging("python", _python(code), sink)

        assert status == 0
        assert sink.stream("stdout") == ["out 0", "out 1", "out 2"]
        assert sink.stream("stderr") == ["err 0", "err 1"]
        assert len(sink.lines) == 5

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_a_normal_result(self):
        sink = _Collector()

        status = await proxy_output_to_logging(
            "python", _python("import sys; print('bye'); sys.exit(3)"), sink
        )

        assert status == 3
        assert sink.stream("stdout") == ["bye"]

    @pytest.mark.asyncio
    async def test_silent_child(self):
        sink = _Collector()

        status = await proxy_output_to_logging("python", _python("pass"), sink)

        assert status == 0
        assert sink.lines == []

    @pytest.mark.asyncio
    async def test_partial_final_line_is_emitted(self):
        sink = _Collector()

        await proxy_output_to_logging(
            "python",
            _python("import sys; sys.stdout.write('first\\nno newline')"),
            sink,
        )

        assert sink.stream("stdout") == ["first", "no newline"]

    @pytest.mark.asyncio
    async def test_crlf_is_stripped(self):
        sink = _Collector()

        await proxy_output_to_logging(
            "python",
            _python("import sys; sys.stdout.buffer.write(b'dos line\\r\\n')"),
            sink,
        )

        assert sink.stream("stdout") == ["dos line"]

    @pytest.mark.asyncio
    async def test_heavy_output_on_both_streams_does_not_deadlock(self):
        # Far more than a pipe buffer on each stream
        code = (
            "import sys\n"
            "for i in range(20000):\n"
            "    sys.stdout.write('o' * 40 + '\\n')\n"
            "    sys.stderr.write('e' * 40 + '\\n')\n"
        )
        sink = _Collector()

        status = await asyncio.wait_for(
            proxy_output_to_logging("python", _python(code), sink), timeout=60
        )

        assert status == 0
        assert len(sink.stream("stdout")) == 20000
        assert len(sink.stream("stderr")) == 20000

    @pytest.mark.asyncio
    async def test_line_longer_than_stream_limit(self):
        code = (
            "import sys\n"
            "print('x' * 100000)\n"
            "for i in range(3): print('after', i)\n"
            "print('y' * 200000, file=sys.stderr)\n"
        )
        sink = _Collector()

        status = await asyncio.wait_for(
            proxy_output_to_logging("python", _python(code), sink), timeout=30
        )

        assert status == 0
        assert sink.stream("stdout") == ["x" * 100000, "after 0", "after 1", "after 2"]
        assert sink.stream("stderr") == ["y" * 200000]

    @pytest.mark.asyncio
    async def test_unterminated_long_final_line(self):
        sink = _Collector()

        await proxy_output_to_logging(
            "python", _python("import sys; sys.stdout.write('z' * 150000)"), sink
        )

        assert sink.stream("stdout") == ["z" * 150000]

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_replaced(self):
        sink = _Collector()

        await proxy_output_to_logging(
            "python",
            _python("import sys; sys.stdout.buffer.write(b'caf\\xe9\\n')"),
            sink,
        )

        assert sink.stream("stdout") == ["caf\ufffd"]

    @pytest.mark.asyncio
    async def test_spawn_failure(self):
        async def _spawn():
            raise OSError("no such program")

        with pytest.raises(SpawnFailedError) as exc_info:
            await proxy_output_to_logging("missing", _spawn, _Collector())

        assert isinstance(exc_info.value.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_spawn_local_missing_program(self):
        with pytest.raises(SpawnFailedError) as exc_info:
            await proxy_output_to_logging(
                "henix-does-not-exist",
                lambda: spawn_local("henix-does-not-exist"),
                _Collector(),
            )

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    @pytest.mark.asyncio
    async def test_missing_stream_is_warned_about(self, caplog):
        child = _FakeChild(stdout=_Lines(b"only stdout\n"), stderr=None)
        sink = _Collector()

        async def _spawn():
            return child

        with caplog.at_level(logging.WARNING, logger="henix"):
            status = await proxy_output_to_logging("prog", _spawn, sink)

        assert status == 0
        assert sink.lines == [("stdout", "only stdout")]
        assert "Could not take child stderr" in caplog.text

    @pytest.mark.asyncio
    async def test_read_error_ends_only_that_stream(self, caplog):
        child = _FakeChild(
            stdout=_Lines(b"before\n", error=OSError("broken pipe")),
            stderr=_Lines(b"e1\n", b"e2\n"),
        )
        sink = _Collector()

        async def _spawn():
            return child

        with caplog.at_level(logging.WARNING, logger="henix"):
            status = await proxy_output_to_logging("prog", _spawn, sink)

        assert status == 0
        assert sink.stream("stdout") == ["before"]
        assert sink.stream("stderr") == ["e1", "e2"]
        assert "Error reading child stdout" in caplog.text

    @pytest.mark.asyncio
    async def test_stream_is_drained_after_read_error(self):
        class _FailsOnce(_Lines):
            def __init__(self):
                super().__init__(b"later 1\n", b"later 2\n")
                self.failed = False

            async def readline(self):
                if not self.failed:
                    self.failed = True
                    raise ValueError("chunk is longer than limit")
                return await super().readline()

        stdout = _FailsOnce()
        sink = _Collector()

        async def _spawn():
            return _FakeChild(stdout=stdout, stderr=_Lines())

        status = await proxy_output_to_logging("prog", _spawn, sink)

        assert status == 0
        assert sink.lines == []
        # Everything after the error was read and discarded
        assert stdout._lines == []

    @pytest.mark.asyncio
    async def test_wait_failure(self):
        child = _FakeChild(
            stdout=_Lines(), stderr=_Lines(), wait_error=RuntimeError("lost")
        )

        async def _spawn():
            return child

        with pytest.raises(WaitFailedError):
            await proxy_output_to_logging("prog", _spawn, _Collector())

    @pytest.mark.asyncio
    async def test_default_sink_logs_program_and_stream(self, caplog):
        child = _FakeChild(stdout=_Lines(b"building\n"), stderr=_Lines(b"warning\n"))

        async def _spawn():
            return child

        with caplog.at_level(logging.INFO, logger="henix"):
            await proxy_output_to_logging("nixos-rebuild", _spawn)

        messages = [r.getMessage() for r in caplog.records]
        assert "nixos-rebuild stdout: building" in messages
        assert "nixos-rebuild stderr: warning" in messages


class TestLoggingSink:
    def test_uses_given_logger(self, monkeypatch):
        log = logging.LoggerAdapter(logging.getLogger("henix.test"), {})
        calls = []
        monkeypatch.setattr(log, "info", lambda *args: calls.append(args))

        logging_sink("rsync", log)("stderr", "oops")

        assert calls == [("%s %s: %s", "rsync", "stderr", "oops")]


class TestRunLocal:
    @pytest.mark.asyncio
    async def test_captures_output_and_status(self):
        result = await run_local(
            sys.executable,
            ["-c", "import sys; print('hi'); print('err', file=sys.stderr); sys.exit(2)"],
        )

        assert result.exit_status == 2
        assert not result.ok
        assert result.stdout.strip() == "hi"
        assert result.stderr.strip() == "err"

    @pytest.mark.asyncio
    async def test_runs_in_cwd(self, tmp_path):
        result = await run_local(
            sys.executable, ["-c", "import os; print(os.getcwd())"], cwd=str(tmp_path)
        )

        assert result.ok
        assert result.stdout.strip() == str(tmp_path.resolve())

    @pytest.mark.asyncio
    async def test_missing_program(self):
        with pytest.raises(SpawnFailedError):
            await run_local("henix-does-not-exist")
