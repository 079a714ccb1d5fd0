"""タイムラインからフィルタグラフへのコンパイル (純粋関数)。

ラベル割り当ては 1 回のコンパイルごとに新しい LabelAllocator で行うため、
同じタイムラインと設定からは常にバイト単位で同一のグラフが得られる。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from .components.config import CompositionConfig
from .components.planning import TrackSkipped, plan_audio, plan_base_video, plan_image_video
from .exceptions import ValidationError
from .graph import (
    CompiledGraph,
    Filter,
    FilterKind,
    GraphNode,
    InputSpec,
    LabelAllocator,
    NodeKind,
    OutputMap,
    input_ref,
    serialize,
)
from .timeline import CompositionKind, Timeline
from .utils.ffmpeg_params import EncodingMode


@dataclass(frozen=True)
class CompositionPlan:
    graph: CompiledGraph
    total_duration_sec: float
    tracks_mixed: int
    skipped: Tuple[TrackSkipped, ...]
    mix_strategy: str

    @property
    def encoding_mode(self) -> EncodingMode:
        return self.graph.encoding_mode


def compile_timeline(timeline: Timeline, config: CompositionConfig) -> CompositionPlan:
    """タイムラインの種類に応じて映像/音声を計画し、シリアライズする。"""
    labels = LabelAllocator()
    if timeline.kind is CompositionKind.IMAGES:
        video = plan_image_video(timeline, config, labels)
    else:
        video = plan_base_video(timeline, config, labels)
    audio = plan_audio(timeline, config, labels, first_input_index=len(video.inputs))

    graph = serialize(
        video.nodes,
        audio.nodes,
        OutputMap(video=video.output, audio=audio.output),
        video.inputs + audio.inputs,
        encoding_mode=video.encoding_mode,
    )
    tracks_mixed = len(audio.mixed_labels)
    if timeline.original_audio is not None:
        tracks_mixed -= 1
    return CompositionPlan(
        graph=graph,
        total_duration_sec=timeline.total_duration_sec,
        tracks_mixed=tracks_mixed,
        skipped=audio.skipped,
        mix_strategy=audio.strategy,
    )


def compile_video_merge(paths: Sequence[str]) -> CompiledGraph:
    """映像+音声を持つ動画を順に連結する concat グラフ。"""
    if len(paths) == 0:
        raise ValidationError("No video file paths provided", field="videos")
    labels = LabelAllocator()
    refs = []
    for i in range(len(paths)):
        refs.extend([input_ref(i, "v"), input_ref(i, "a")])
    outv = labels.allocate("outv")
    outa = labels.allocate("outa")
    node = GraphNode(
        NodeKind.CONCAT,
        tuple(refs),
        (Filter.of(FilterKind.CONCAT, n=str(len(paths)), v="1", a="1"),),
        (outv, outa),
    )
    return serialize(
        (node,),
        (),
        OutputMap(video=outv, audio=outa),
        tuple(InputSpec(p) for p in paths),
        encoding_mode=EncodingMode.REENCODE,
    )
