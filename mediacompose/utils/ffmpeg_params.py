"""FFmpegエンコードパラメータのデータクラス群。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class EncodingMode(str, Enum):
    """映像ストリームの扱い。字幕焼き込み時は必ず再エンコード。"""

    COPY = "copy"
    REENCODE = "reencode"


@dataclass(frozen=True)
class VideoParams:
    """映像エンコードの設定値を保持する。"""

    codec: str = "libx264"
    preset: str = "medium"
    crf: Optional[int] = 23
    pix_fmt: str = "yuv420p"
    bitrate_kbps: Optional[int] = None

    def to_ffmpeg_opts(self, mode: EncodingMode = EncodingMode.REENCODE) -> List[str]:
        """現在の設定をFFmpegの引数へ変換する。"""
        if mode is EncodingMode.COPY:
            return ["-c:v", "copy"]
        opts: List[str] = ["-c:v", self.codec, "-preset", self.preset]
        if self.crf is not None:
            opts.extend(["-crf", str(self.crf)])
        elif self.bitrate_kbps is not None:
            opts.extend(["-b:v", f"{self.bitrate_kbps}k"])
        opts.extend(["-pix_fmt", self.pix_fmt])
        return opts


@dataclass(frozen=True)
class AudioParams:
    """音声エンコードの設定値を保持する。"""

    sample_rate: int = 44100
    channels: int = 2
    codec: str = "aac"
    bitrate_kbps: int = 192

    def to_ffmpeg_opts(self) -> List[str]:
        """現在の設定をFFmpegの引数へ変換する。"""
        return [
            "-c:a",
            self.codec,
            "-b:a",
            f"{self.bitrate_kbps}k",
            "-ar",
            str(self.sample_rate),
            "-ac",
            str(self.channels),
        ]


@dataclass(frozen=True)
class EncodingOptions:
    """出力側のエンコード指定一式。"""

    mode: EncodingMode
    video: VideoParams
    audio: AudioParams
    faststart: bool = True

    def to_ffmpeg_opts(self) -> List[str]:
        opts = self.video.to_ffmpeg_opts(self.mode)
        opts.extend(self.audio.to_ffmpeg_opts())
        if self.faststart:
            opts.extend(["-movflags", "+faststart"])
        return opts
