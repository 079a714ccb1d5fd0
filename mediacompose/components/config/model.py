"""検証済みの合成設定。"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ...utils.ffmpeg_params import AudioParams, EncodingMode, EncodingOptions, VideoParams


@dataclass(frozen=True)
class MixSettings:
    """複数トラックのミックス設定。

    ``normalize`` が真なら amix は入力を平均する。``gain_db`` は
    2本以上のトラックが残ったときにミックス後へ必ず挿入される。
    """

    normalize: bool = True
    gain_db: Decimal = Decimal("4.0")


@dataclass(frozen=True)
class CompositionConfig:
    width: int = 1920
    height: int = 1080
    fps: int = 25
    ken_burns: bool = True
    zoom_max: Decimal = Decimal("1.1")
    sample_rate: int = 44100
    mute_original: bool = False
    mix: MixSettings = field(default_factory=MixSettings)
    subtitle_charenc: str = "UTF-8"
    video_params: VideoParams = field(default_factory=VideoParams)
    audio_codec: str = "aac"
    audio_bitrate_kbps: int = 192
    faststart: bool = True
    merge_audio_codec: str = "libmp3lame"
    merge_audio_bitrate_kbps: int = 128

    @property
    def audio_params(self) -> AudioParams:
        return AudioParams(
            sample_rate=self.sample_rate,
            channels=2,
            codec=self.audio_codec,
            bitrate_kbps=self.audio_bitrate_kbps,
        )

    def encoding_options(self, mode: EncodingMode) -> EncodingOptions:
        return EncodingOptions(
            mode=mode,
            video=self.video_params,
            audio=self.audio_params,
            faststart=self.faststart,
        )
