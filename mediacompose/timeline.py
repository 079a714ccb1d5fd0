"""合成タイムラインのモデルと、その組み立て・検証。"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence, Tuple

from .exceptions import MissingPrimaryStream, UnsupportedSubtitleFormat, ValidationError
from .utils.ffmpeg_probe import MediaInfo
from .utils.numeric import ms_to_seconds, round_half_up


class SubtitleFormat(str, Enum):
    SRT = ".srt"
    ASS = ".ass"
    SSA = ".ssa"
    VTT = ".vtt"

    @classmethod
    def from_path(cls, path: str) -> "SubtitleFormat":
        ext = os.path.splitext(path)[1].lower()
        for fmt in cls:
            if fmt.value == ext:
                return fmt
        raise UnsupportedSubtitleFormat(path, ext, (fmt.value for fmt in cls))


class CompositionKind(str, Enum):
    IMAGES = "images"
    VIDEO = "video"


@dataclass(frozen=True)
class Scene:
    """一定時間表示される1枚の画像。"""

    image_path: str
    duration_ms: int

    @property
    def duration_sec(self) -> float:
        return ms_to_seconds(self.duration_ms)


@dataclass(frozen=True)
class AudioTrack:
    """タイムライン上のオフセットに重ねる音声。

    ``index`` はリクエスト内の位置で、ラベル名に使う。
    """

    path: str
    start_offset_ms: int
    index: int
    probed_duration_sec: float = 0.0
    channels: int = 2
    sample_rate: int = 44100
    has_audio: bool = True

    @property
    def start_offset_sec(self) -> float:
        return ms_to_seconds(self.start_offset_ms)

    def with_probe(self, info: MediaInfo) -> "AudioTrack":
        audio = info.get("audio") or {}
        return replace(
            self,
            probed_duration_sec=float(info.get("duration") or 0.0),
            channels=int(audio.get("channels") or 2),
            sample_rate=int(audio.get("sample_rate") or 44100),
            has_audio=bool(info.get("has_audio")),
        )


@dataclass(frozen=True)
class Subtitle:
    path: str
    format: SubtitleFormat


@dataclass(frozen=True)
class Timeline:
    kind: CompositionKind
    scenes: Tuple[Scene, ...]
    tracks: Tuple[AudioTrack, ...]
    subtitle: Optional[Subtitle]
    total_duration_sec: float
    base_video: Optional[str] = None
    # 元動画の音声を疑似トラックとしてミックスに含める場合のみ設定
    original_audio: Optional[AudioTrack] = None


def _non_negative_ms(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number of milliseconds, got {value!r}", field=name)
    if value != value or value in (float("inf"), float("-inf")):
        raise ValidationError(f"{name} must be finite, got {value!r}", field=name)
    if value < 0:
        raise ValidationError(f"{name} must not be negative, got {value!r}", field=name)
    return value if isinstance(value, int) else round_half_up(value)


def _required_path(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required", field=name)
    return value


def parse_subtitle(path: Optional[str]) -> Optional[Subtitle]:
    """空文字/None は字幕なし。拡張子が非対応なら UnsupportedSubtitleFormat。"""
    if path is None or not path.strip():
        return None
    return Subtitle(path=path, format=SubtitleFormat.from_path(path))


def validate_scenes(raw_scenes: Sequence[Mapping[str, object]]) -> Tuple[Scene, ...]:
    if len(raw_scenes) == 0:
        raise MissingPrimaryStream(
            "Scene list is empty, at least one image scene is required", field="scenes"
        )
    scenes = []
    for i, raw in enumerate(raw_scenes):
        path = _required_path(raw.get("image_path"), f"scenes[{i}].image_path")
        duration = _non_negative_ms(raw.get("duration_ms"), f"scenes[{i}].duration_ms")
        scenes.append(Scene(image_path=path, duration_ms=duration))
    return tuple(scenes)


def validate_tracks(raw_tracks: Sequence[Mapping[str, object]]) -> Tuple[AudioTrack, ...]:
    tracks = []
    for i, raw in enumerate(raw_tracks):
        path = _required_path(raw.get("path"), f"audio[{i}].path")
        start = _non_negative_ms(raw.get("start_ms", 0), f"audio[{i}].start_ms")
        tracks.append(AudioTrack(path=path, start_offset_ms=start, index=i))
    return tuple(tracks)


def _attach_probes(
    tracks: Iterable[AudioTrack], probes: Mapping[str, MediaInfo]
) -> Tuple[AudioTrack, ...]:
    return tuple(t.with_probe(probes[t.path]) for t in tracks)


def build_image_timeline(
    scenes: Sequence[Scene],
    tracks: Sequence[AudioTrack],
    subtitle: Optional[Subtitle],
    probes: Mapping[str, MediaInfo],
) -> Timeline:
    """画像ベースのタイムライン。全長はシーン長の合計 (ms) を秒に直したもの。"""
    if len(scenes) == 0:
        raise MissingPrimaryStream(
            "Scene list is empty, at least one image scene is required", field="scenes"
        )
    total_ms = sum(s.duration_ms for s in scenes)
    if total_ms == 0:
        raise MissingPrimaryStream(
            "All scenes have zero duration, at least one scene must be longer than 0ms",
            field="scenes",
        )
    return Timeline(
        kind=CompositionKind.IMAGES,
        scenes=tuple(scenes),
        tracks=_attach_probes(tracks, probes),
        subtitle=subtitle,
        total_duration_sec=ms_to_seconds(total_ms),
    )


def build_video_timeline(
    video_path: str,
    tracks: Sequence[AudioTrack],
    subtitle: Optional[Subtitle],
    probes: Mapping[str, MediaInfo],
    mute_original: bool = False,
) -> Timeline:
    """既存動画ベースのタイムライン。全長はベース動画のプローブ値。"""
    info = probes[video_path]
    if not info.get("has_video"):
        raise MissingPrimaryStream(
            f"Input file is missing video stream: {video_path}", field="video"
        )
    total = float(info.get("duration") or 0.0)
    original = None
    if not mute_original and info.get("has_audio"):
        original = AudioTrack(path=video_path, start_offset_ms=0, index=-1).with_probe(info)
    return Timeline(
        kind=CompositionKind.VIDEO,
        scenes=(),
        tracks=_attach_probes(tracks, probes),
        subtitle=subtitle,
        total_duration_sec=total,
        base_video=video_path,
        original_audio=original,
    )
