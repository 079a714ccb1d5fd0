"""ffprobe を利用したメディア情報取得ヘルパー。"""

from __future__ import annotations

import asyncio
import json
import subprocess
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypedDict

from ..exceptions import ProbeFailed
from .ffmpeg_runner import run_ffmpeg_async
from .logger import logger

_media_info_memo: Dict[tuple, "MediaInfo"] = {}


class VideoInfo(TypedDict):
    """動画ストリームの基本情報。"""

    width: int
    height: int
    codec: str
    fps: float


class AudioInfo(TypedDict):
    """音声ストリームの基本情報。"""

    codec: str
    sample_rate: int
    channels: int
    channel_layout: str


class MediaInfo(TypedDict):
    """動画/音声のメタ情報。"""

    duration: float
    has_video: bool
    has_audio: bool
    video: Optional[VideoInfo]
    audio: Optional[AudioInfo]


ProbeFunc = Callable[[str], Awaitable[MediaInfo]]


def _as_float(value: Any) -> float:
    if value is None or value == "" or value == "N/A":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _parse_rate(r_rate: Optional[str]) -> float:
    try:
        num, den = map(int, (r_rate or "0/0").split("/"))
        return float(num) / float(den) if den else 0.0
    except ValueError:
        return 0.0


def parse_probe_output(info: Dict[str, Any]) -> MediaInfo:
    """ffprobe の JSON 出力を MediaInfo に変換する。

    長さはコンテナ/映像/音声ストリームのうち最大のものを採用する。
    """
    streams: List[Dict[str, Any]] = info.get("streams") or []
    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)

    duration = max(
        _as_float((info.get("format") or {}).get("duration")),
        _as_float(video_stream.get("duration")) if video_stream else 0.0,
        _as_float(audio_stream.get("duration")) if audio_stream else 0.0,
    )

    video: Optional[VideoInfo] = None
    if video_stream is not None:
        video = {
            "width": int(video_stream.get("width") or 0),
            "height": int(video_stream.get("height") or 0),
            "codec": video_stream.get("codec_name") or "",
            "fps": _parse_rate(video_stream.get("r_frame_rate")),
        }
    audio: Optional[AudioInfo] = None
    if audio_stream is not None:
        audio = {
            "codec": audio_stream.get("codec_name") or "",
            "sample_rate": int(audio_stream.get("sample_rate") or 44100),
            "channels": int(audio_stream.get("channels") or 2),
            "channel_layout": audio_stream.get("channel_layout") or "stereo",
        }
    return {
        "duration": duration,
        "has_video": video is not None,
        "has_audio": audio is not None,
        "video": video,
        "audio": audio,
    }


async def get_media_info(file_path: str) -> MediaInfo:
    """動画/音声ファイルのメタ情報を取得する。失敗時は ProbeFailed。"""
    try:
        p = Path(file_path)
        st = p.stat()
        key = (str(p.resolve()), int(st.st_mtime), st.st_size)
        if key in _media_info_memo:
            return _media_info_memo[key]
        cmd = [
            "ffprobe",
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_format",
            "-show_streams",
            file_path,
        ]
        result = await run_ffmpeg_async(cmd)
        media_info = parse_probe_output(json.loads(result.stdout))
    except subprocess.CalledProcessError as e:
        logger.error(f"Error running ffprobe for {file_path}: {e.stderr}")
        raise ProbeFailed(file_path, f"ffprobe exited with code {e.returncode}") from e
    except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
        logger.error(f"Error probing {file_path}: {e}")
        raise ProbeFailed(file_path, e) from e
    _media_info_memo[key] = media_info
    return media_info


async def probe_many(
    paths: Iterable[str], probe: Optional[ProbeFunc] = None
) -> Dict[str, MediaInfo]:
    """複数ファイルを並行にプローブし、全て完了するまで待つ。

    1件でも失敗すれば ProbeFailed を送出する (部分的な結果は返さない)。
    """
    probe = probe or get_media_info
    unique = list(dict.fromkeys(paths))

    async def _one(path: str) -> MediaInfo:
        try:
            return await probe(path)
        except ProbeFailed:
            raise
        except Exception as e:
            raise ProbeFailed(path, e) from e

    results = await asyncio.gather(*(_one(p) for p in unique))
    logger.debug(f"Probed {len(unique)} file(s)")
    return dict(zip(unique, results))
