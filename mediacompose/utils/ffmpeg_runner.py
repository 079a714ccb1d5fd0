"""FFmpeg/ffprobe を非同期実行し、診断ログを行単位で流すヘルパー。"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import re
import subprocess
import time
from collections import deque
from typing import AsyncIterator, Callable, Deque, List, Optional, Sequence

from ..exceptions import EncodeFailed
from .logger import logger

LineSink = Callable[[str], None]

LOG_TAIL_LINES = 50
_LINE_SPLIT_RE = re.compile(r"[\r\n]+")


async def _iter_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    """``\\r`` と ``\\n`` の両方で区切って行を返す (ffmpeg の進捗行対策)。"""
    pending = ""
    while True:
        chunk = await stream.read(4096)
        if not chunk:
            break
        pending += chunk.decode(errors="ignore")
        parts = _LINE_SPLIT_RE.split(pending)
        pending = parts.pop()
        for part in parts:
            if part:
                yield part
    if pending:
        yield pending


async def _pump(
    stream: Optional[asyncio.StreamReader],
    collected: List[str],
    sink: Optional[LineSink],
) -> None:
    if stream is None:
        return
    async for line in _iter_lines(stream):
        collected.append(line)
        if sink is not None:
            try:
                sink(line)
            except Exception as e:  # sink の不具合でエンコードは止めない
                logger.debug(f"Line sink raised {e!r}; continuing")


def _resolve_timeout(base: str, timeout: Optional[float]) -> Optional[float]:
    if timeout is not None or not base.startswith("ffmpeg"):
        return timeout
    try:
        env_to = float(os.getenv("FFMPEG_RUN_TIMEOUT_SEC", "0") or 0)
    except ValueError:
        return None
    return env_to if env_to > 0 else None


async def run_ffmpeg_async(
    args: Sequence[str],
    *,
    timeout: Optional[float] = None,
    error_log_level: Optional[int] = logging.ERROR,
    on_stderr_line: Optional[LineSink] = None,
    on_stdout_line: Optional[LineSink] = None,
) -> subprocess.CompletedProcess:
    """
    FFmpeg/ffprobe を非同期で起動し、ログとタイムアウトを管理する。

    :param error_log_level: 非0終了コード時に出力するログレベル。
        `None` を指定するとログ出力しない。
    :param on_stderr_line: stderr の各行を受け取るコールバック。
    """
    args = [str(a) for a in args]
    exe = args[0] if args else "ffmpeg"
    base = os.path.basename(exe)
    timeout = _resolve_timeout(base, timeout)

    cmd_str = " ".join(args)
    if os.getenv("FFMPEG_LOG_CMD", "0") == "1":
        logger.info(f"Running command: {cmd_str}")
    else:
        logger.debug(f"Running command: {cmd_str}")

    t0 = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        logger.error(
            f"{base} command not found. Please ensure it's installed and in your PATH."
        )
        raise
    logger.debug(f"Spawned PID={process.pid} for {base}")

    stdout_lines: List[str] = []
    stderr_lines: List[str] = []
    pumps = asyncio.gather(
        _pump(process.stdout, stdout_lines, on_stdout_line),
        _pump(process.stderr, stderr_lines, on_stderr_line),
    )
    try:
        if timeout is not None and timeout > 0:
            await asyncio.wait_for(pumps, timeout=timeout)
        else:
            await pumps
        await process.wait()
    except asyncio.TimeoutError:
        try:
            grace = float(os.getenv("FFMPEG_KILL_GRACE_SEC", "5"))
        except ValueError:
            grace = 5.0
        logger.error(
            f"Command timed out after {timeout:.1f}s (PID={process.pid}). Sending terminate..."
        )
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=max(0.1, grace))
        except asyncio.TimeoutError:
            logger.error(f"Process did not terminate in {grace:.1f}s; killing PID={process.pid}...")
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
        raise subprocess.TimeoutExpired(args, timeout)
    except asyncio.CancelledError:
        logger.warning(f"Task cancelled while running {base} (PID={process.pid}); terminating...")
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(process.wait(), timeout=3.0)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        raise

    stdout_str = "\n".join(stdout_lines)
    stderr_str = "\n".join(stderr_lines)
    rc = process.returncode if process.returncode is not None else 0
    logger.debug(f"Command finished rc={rc} in {time.monotonic() - t0:.2f}s (PID={process.pid})")

    if rc != 0:
        if error_log_level is not None:
            logger.log(error_log_level, f"FFmpeg command failed rc={rc}. Command: {cmd_str}")
            if stderr_str:
                logger.log(error_log_level, f"stderr:\n{stderr_str}")
        raise subprocess.CalledProcessError(rc, args, output=stdout_str, stderr=stderr_str)

    return subprocess.CompletedProcess(args, rc, stdout_str, stderr_str)


async def encode(
    args: Sequence[str],
    *,
    sink: Optional[LineSink] = None,
    timeout: Optional[float] = None,
) -> None:
    """エンコードエンジンを1プロセス起動し、失敗時は ``EncodeFailed`` を送出する。"""
    tail: Deque[str] = deque(maxlen=LOG_TAIL_LINES)

    def _collect(line: str) -> None:
        tail.append(line)
        if sink is not None:
            sink(line)

    try:
        await run_ffmpeg_async(
            args, timeout=timeout, error_log_level=logging.DEBUG, on_stderr_line=_collect
        )
    except subprocess.CalledProcessError as e:
        raise EncodeFailed(e.returncode, list(tail)) from e
    except subprocess.TimeoutExpired as e:
        raise EncodeFailed(None, list(tail)) from e
    except FileNotFoundError as e:
        raise EncodeFailed(None, list(tail)) from e
