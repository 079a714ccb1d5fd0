"""映像側のノード計画。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ...graph import Filter, FilterKind, GraphNode, InputSpec, LabelAllocator, NodeKind, input_ref
from ...graph.escape import escape_subtitle_path
from ...timeline import CompositionKind, Scene, Subtitle, Timeline
from ...utils.ffmpeg_params import EncodingMode
from ...utils.numeric import format_number, frame_count
from ..config import CompositionConfig

CONCAT_LABEL = "video_concat"
VIDEO_OUTPUT_LABEL = "outv"


@dataclass(frozen=True)
class VideoPlan:
    nodes: Tuple[GraphNode, ...]
    output: str
    inputs: Tuple[InputSpec, ...]
    encoding_mode: EncodingMode


def _normalize_filters(config: CompositionConfig) -> List[Filter]:
    """目標解像度に収めて中央寄せで黒パディング、SAR とフレームレートを揃える。"""
    w, h = str(config.width), str(config.height)
    return [
        Filter.of(FilterKind.SCALE, w, h, force_original_aspect_ratio="decrease"),
        Filter.of(FilterKind.PAD, w, h, "(ow-iw)/2", "(oh-ih)/2"),
        Filter.of(FilterKind.SETSAR, "1"),
        Filter.of(FilterKind.FPS, str(config.fps)),
    ]


def _zoom_filter(scene: Scene, config: CompositionConfig) -> Filter:
    """Ken Burns: 1.0 から zoom_max までシーンのフレーム数で線形に拡大 (中央基準)。

    ``on`` は 0 から d-1 まで進むため、最終フレームで zoom_max に届くよう d-1 で割る。
    """
    frames = max(1, frame_count(scene.duration_sec, config.fps))
    increment = format_number(config.zoom_max - 1)
    return Filter.of(
        FilterKind.ZOOM,
        z=f"'1+{increment}*on/{max(frames - 1, 1)}'",
        d=str(frames),
        x="'iw/2-(iw/zoom/2)'",
        y="'ih/2-(ih/zoom/2)'",
        s=f"{config.width}x{config.height}",
        fps=str(config.fps),
    )


def _subtitle_filter(subtitle: Subtitle, config: CompositionConfig) -> Filter:
    return Filter.of(
        FilterKind.SUBTITLES,
        f"'{escape_subtitle_path(subtitle.path)}'",
        charenc=config.subtitle_charenc,
    )


def _scene_input(scene: Scene, config: CompositionConfig) -> InputSpec:
    if config.ken_burns:
        # zoompan が 1 フレームから d フレームを生成する
        return InputSpec(scene.image_path)
    return InputSpec(
        scene.image_path, ("-loop", "1", "-t", format_number(scene.duration_sec))
    )


def plan_image_video(
    timeline: Timeline, config: CompositionConfig, labels: LabelAllocator
) -> VideoPlan:
    """シーンごとの正規化チェーン → concat → 字幕 (または copy)。"""
    if timeline.kind is not CompositionKind.IMAGES:
        raise ValueError("plan_image_video requires an image timeline")

    nodes: List[GraphNode] = []
    scene_labels: List[str] = []
    inputs: List[InputSpec] = []
    for i, scene in enumerate(timeline.scenes):
        if scene.duration_ms == 0:
            # 長さ 0 のシーンはチェーンにも入力にも含めない (trim=duration=0 は無制限)
            continue
        filters = _normalize_filters(config)
        if config.ken_burns:
            filters.append(_zoom_filter(scene, config))
        filters.append(Filter.of(FilterKind.TRIM, duration=format_number(scene.duration_sec)))
        filters.append(Filter.of(FilterKind.SETPTS, "PTS-STARTPTS"))
        label = labels.allocate("v", i)
        nodes.append(
            GraphNode(NodeKind.SCENE, (input_ref(len(inputs), "v"),), tuple(filters), (label,))
        )
        inputs.append(_scene_input(scene, config))
        scene_labels.append(label)

    concat_label = labels.allocate(CONCAT_LABEL)
    nodes.append(
        GraphNode(
            NodeKind.CONCAT,
            tuple(scene_labels),
            (Filter.of(FilterKind.CONCAT, n=str(len(scene_labels)), v="1", a="0"),),
            (concat_label,),
        )
    )

    output = labels.allocate(VIDEO_OUTPUT_LABEL)
    if timeline.subtitle is not None:
        nodes.append(
            GraphNode(
                NodeKind.SUBTITLE,
                (concat_label,),
                (_subtitle_filter(timeline.subtitle, config),),
                (output,),
            )
        )
    else:
        nodes.append(
            GraphNode(NodeKind.IDENTITY, (concat_label,), (Filter.of(FilterKind.COPY),), (output,))
        )

    return VideoPlan(
        nodes=tuple(nodes),
        output=output,
        inputs=tuple(inputs),
        encoding_mode=EncodingMode.REENCODE,
    )


def plan_base_video(
    timeline: Timeline, config: CompositionConfig, labels: LabelAllocator
) -> VideoPlan:
    """既存動画: 字幕があれば焼き込み (再エンコード)、なければストリームコピー。"""
    if timeline.kind is not CompositionKind.VIDEO or timeline.base_video is None:
        raise ValueError("plan_base_video requires a video timeline")

    inputs = (InputSpec(timeline.base_video),)
    source = input_ref(0, "v")
    subtitle: Optional[Subtitle] = timeline.subtitle
    if subtitle is None:
        return VideoPlan(nodes=(), output=source, inputs=inputs, encoding_mode=EncodingMode.COPY)

    output = labels.allocate(VIDEO_OUTPUT_LABEL)
    node = GraphNode(NodeKind.SUBTITLE, (source,), (_subtitle_filter(subtitle, config),), (output,))
    return VideoPlan(
        nodes=(node,), output=output, inputs=inputs, encoding_mode=EncodingMode.REENCODE
    )
