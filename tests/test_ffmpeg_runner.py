import asyncio
import logging
import pathlib
import subprocess
import sys

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from mediacompose.exceptions import EncodeFailed
from mediacompose.utils.ffmpeg_runner import encode, run_ffmpeg_async


def test_run_ffmpeg_async_no_error_logs(caplog):
    """error_log_levelをWARNINGにするとERRORログが出ない"""
    with caplog.at_level(logging.ERROR, logger="mediacompose"):
        with pytest.raises(subprocess.CalledProcessError):
            asyncio.run(
                run_ffmpeg_async(["bash", "-c", "exit 1"], error_log_level=logging.WARNING)
            )
    assert not caplog.records


def test_stderr_lines_are_streamed_to_sink():
    lines = []
    result = asyncio.run(
        run_ffmpeg_async(
            ["bash", "-c", "printf 'frame=1\\rframe=2\\nok\\n' >&2"],
            on_stderr_line=lines.append,
        )
    )
    assert lines == ["frame=1", "frame=2", "ok"]
    assert result.returncode == 0


def test_encode_failure_carries_exit_status_and_log_tail():
    seen = []
    with pytest.raises(EncodeFailed) as excinfo:
        asyncio.run(encode(["bash", "-c", "echo boom >&2; exit 3"], sink=seen.append))
    assert excinfo.value.exit_status == 3
    assert excinfo.value.diagnostic_log == ["boom"]
    assert "boom" in str(excinfo.value)
    assert seen == ["boom"]


def test_encode_keeps_only_the_last_lines():
    script = "for i in $(seq 1 80); do echo line$i >&2; done; exit 1"
    with pytest.raises(EncodeFailed) as excinfo:
        asyncio.run(encode(["bash", "-c", script]))
    log = excinfo.value.diagnostic_log
    assert len(log) == 50
    assert log[0] == "line31"
    assert log[-1] == "line80"


def test_broken_sink_does_not_abort_encoding():
    def sink(line):
        raise RuntimeError("sink failure")

    asyncio.run(encode(["bash", "-c", "echo hello >&2"], sink=sink))


def test_missing_encoder_binary_is_encode_failed():
    with pytest.raises(EncodeFailed) as excinfo:
        asyncio.run(encode(["mediacompose-no-such-encoder", "-version"]))
    assert excinfo.value.exit_status is None
    assert excinfo.value.diagnostic_log == []
    assert isinstance(excinfo.value.__cause__, FileNotFoundError)


def test_encode_timeout_is_encode_failed_with_collected_lines():
    with pytest.raises(EncodeFailed) as excinfo:
        asyncio.run(encode(["bash", "-c", "echo started >&2; sleep 10"], timeout=1.0))
    assert excinfo.value.exit_status is None
    assert excinfo.value.diagnostic_log == ["started"]
    assert isinstance(excinfo.value.__cause__, subprocess.TimeoutExpired)
