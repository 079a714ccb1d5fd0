"""音声側のノード計画。

各トラックは 正規化 → atrim → asetpts → (adelay) → (apad) の1チェーンになり、
最後に MixStrategy が最終出力 ``outa`` を作る。
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from ...graph import Filter, FilterKind, GraphNode, InputSpec, LabelAllocator, NodeKind, input_ref
from ...timeline import AudioTrack, CompositionKind, Timeline
from ...utils.logger import logger
from ...utils.numeric import format_fixed, format_number
from ..config import CompositionConfig
from .mix_strategy import select_mix_strategy

ORIGINAL_AUDIO_LABEL = "orig_audio"
PAD_DIGITS = 3


@dataclass(frozen=True)
class TrackSkipped:
    """ミックスから外したトラックの記録 (エラーではない)。"""

    index: int
    path: str
    reason: str


@dataclass(frozen=True)
class TrackTiming:
    effective_duration: Decimal
    delay_ms: Optional[int]
    # 3 桁に丸めた値。0 以下なら None
    pad_duration: Optional[Decimal]


@dataclass(frozen=True)
class AudioPlan:
    nodes: Tuple[GraphNode, ...]
    output: str
    inputs: Tuple[InputSpec, ...]
    mixed_labels: Tuple[str, ...]
    skipped: Tuple[TrackSkipped, ...]
    strategy: str


def _dec(value: float) -> Decimal:
    return Decimal(repr(float(value)))


def compute_timing(track: AudioTrack, total_duration_sec: float) -> Optional[TrackTiming]:
    """実効長・遅延・パディングを計算する。収まらないトラックは None。

    effective = min(probed, total - start), pad = total - effective - start
    """
    total = _dec(total_duration_sec)
    start = Decimal(track.start_offset_ms) / 1000
    effective = min(_dec(track.probed_duration_sec), total - start)
    if effective <= 0:
        return None
    delay_ms = track.start_offset_ms if track.start_offset_ms > 0 else None
    pad = Decimal(format_fixed(total - effective - start, PAD_DIGITS))
    return TrackTiming(
        effective_duration=effective,
        delay_ms=delay_ms,
        pad_duration=pad if pad > 0 else None,
    )


def normalization_filters(channels: int, sample_rate: int) -> List[Filter]:
    """目標サンプルレートのステレオへ。モノラルは両チャンネルへ複製する。"""
    rate = str(sample_rate)
    if channels == 1:
        return [
            Filter.of(FilterKind.RESAMPLE, rate),
            Filter.of(FilterKind.AFORMAT, sample_rates=rate, channel_layouts="mono"),
            Filter.of(FilterKind.PAN, "stereo|c0=c0|c1=c0"),
        ]
    return [
        Filter.of(FilterKind.RESAMPLE, rate),
        Filter.of(FilterKind.AFORMAT, sample_rates=rate, channel_layouts="stereo"),
    ]


def timing_filters(timing: TrackTiming) -> List[Filter]:
    filters = [
        Filter.of(FilterKind.ATRIM, "0", format_number(timing.effective_duration)),
        Filter.of(FilterKind.ASETPTS, "PTS-STARTPTS"),
    ]
    if timing.delay_ms is not None:
        filters.append(Filter.of(FilterKind.DELAY, f"{timing.delay_ms}|{timing.delay_ms}", all="1"))
    if timing.pad_duration is not None:
        filters.append(Filter.of(FilterKind.APAD, pad_dur=str(timing.pad_duration)))
    return filters


def _skip(track: AudioTrack, reason: str) -> TrackSkipped:
    logger.kv_info(
        f"Skipping audio track {track.index}: {reason}",
        kv_pairs={
            "Event": "TrackSkipped",
            "Track": track.index,
            "Path": track.path,
            "Reason": reason,
        },
    )
    return TrackSkipped(index=track.index, path=track.path, reason=reason)


def plan_audio(
    timeline: Timeline,
    config: CompositionConfig,
    labels: LabelAllocator,
    first_input_index: int,
) -> AudioPlan:
    """トラックごとのチェーンとミックスを計画する。

    ``first_input_index`` は最初に残ったトラックに割り当てる入力番号。
    残ったトラックだけが入力に追加される。
    """
    total = timeline.total_duration_sec
    nodes: List[GraphNode] = []
    inputs: List[InputSpec] = []
    mixed: List[str] = []
    skipped: List[TrackSkipped] = []

    original = timeline.original_audio
    if original is not None and timeline.kind is CompositionKind.VIDEO:
        label = labels.allocate(ORIGINAL_AUDIO_LABEL)
        filters = normalization_filters(original.channels, config.sample_rate)
        nodes.append(GraphNode(NodeKind.TRACK, (input_ref(0, "a"),), tuple(filters), (label,)))
        mixed.append(label)

    next_input = first_input_index
    for track in timeline.tracks:
        if not track.has_audio:
            skipped.append(_skip(track, "no audio stream"))
            continue
        timing = compute_timing(track, total)
        if timing is None:
            skipped.append(_skip(track, "starts at or after the end of the timeline"))
            continue

        filters = normalization_filters(track.channels, config.sample_rate)
        filters.extend(timing_filters(timing))
        label = labels.allocate("a", track.index)
        nodes.append(
            GraphNode(NodeKind.TRACK, (input_ref(next_input, "a"),), tuple(filters), (label,))
        )
        inputs.append(InputSpec(track.path))
        mixed.append(label)
        next_input += 1

    strategy = select_mix_strategy(len(mixed))
    mix_nodes, output = strategy.build(mixed, labels, total, config)
    nodes.extend(mix_nodes)
    logger.debug(
        f"Audio plan: {len(mixed)} stream(s) mixed, {len(skipped)} skipped, strategy={strategy.name}"
    )
    return AudioPlan(
        nodes=tuple(nodes),
        output=output,
        inputs=tuple(inputs),
        mixed_labels=tuple(mixed),
        skipped=tuple(skipped),
        strategy=strategy.name,
    )
