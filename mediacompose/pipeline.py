"""合成リクエストを検証・プローブ・コンパイル・エンコードまで通すパイプライン。"""

from __future__ import annotations

import os
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .compiler import CompositionPlan, compile_timeline, compile_video_merge
from .components.config import (
    CompositionConfig,
    load_default_config,
    merge_configs,
    validate_config,
)
from .components.input_adapter import (
    IMAGE_AUDIO_FIELDS,
    SCENE_FIELDS,
    VIDEO_AUDIO_FIELDS,
    adapt_paths,
    adapt_scenes,
    adapt_tracks,
    field_map_from,
)
from .exceptions import MissingInputFile, PipelineError, ValidationError
from .timeline import (
    Timeline,
    build_image_timeline,
    build_video_timeline,
    parse_subtitle,
    validate_scenes,
    validate_tracks,
)
from .utils import ffmpeg_runner
from .utils.ffmpeg_params import EncodingMode
from .utils.ffmpeg_probe import ProbeFunc, get_media_info, probe_many
from .utils.ffmpeg_runner import LineSink
from .utils.logger import logger, time_log
from .utils.progress import ProgressSink

EncodeFunc = Callable[..., Awaitable[None]]
ExistsFunc = Callable[[str], bool]

MODES = ("images", "video", "merge_video", "merge_audio")


@dataclass(frozen=True)
class ImageCompositionRequest:
    scenes: Sequence[Mapping[str, Any]]
    audio: Sequence[Mapping[str, Any]]
    output_path: str
    subtitle_path: Optional[str] = None


@dataclass(frozen=True)
class VideoCompositionRequest:
    video_path: str
    audio: Sequence[Mapping[str, Any]]
    output_path: str
    subtitle_path: Optional[str] = None


@dataclass
class CompositionResult:
    success: bool
    output_path: str
    total_duration: float
    scene_count: int
    audio_count: int
    tracks_mixed: int
    has_subtitle: bool
    encoding_mode: str
    ken_burns_enabled: Optional[bool] = None
    video_path: Optional[str] = None
    mute_original: Optional[bool] = None
    skipped_tracks: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class MergeResult:
    success: bool
    output_path: str
    files: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "output_path": self.output_path,
            "files_count": len(self.files),
            "files": list(self.files),
        }


def build_config(overrides: Optional[Mapping[str, Any]] = None, base: Optional[Dict[str, Any]] = None) -> CompositionConfig:
    """既定設定に上書きを深くマージし、検証済み設定を返す。"""
    cfg = base if base is not None else load_default_config()
    if overrides:
        if not isinstance(overrides, Mapping):
            raise ValidationError("config overrides must be a dictionary", field="config")
        cfg = merge_configs(cfg, dict(overrides))
    return validate_config(cfg)


def _require_output(path: Optional[str]) -> str:
    if not isinstance(path, str) or not path.strip():
        raise ValidationError("Output file path is required", field="output")
    return path


class CompositionPipeline:
    """合成・結合ジョブを実行する。

    プローブ・エンコード・存在確認は差し替え可能な協調オブジェクトとして受け取る。
    """

    def __init__(
        self,
        config: Optional[CompositionConfig] = None,
        probe: ProbeFunc = get_media_info,
        encoder: EncodeFunc = ffmpeg_runner.encode,
        exists: ExistsFunc = os.path.exists,
        sink: Optional[LineSink] = None,
        show_progress: bool = False,
    ):
        self.config = config if config is not None else build_config()
        self.probe = probe
        self.encoder = encoder
        self.exists = exists
        self.sink = sink
        self.show_progress = show_progress

    def _check_exists(self, paths: Sequence[Tuple[str, str]]) -> None:
        for kind, path in paths:
            if not self.exists(path):
                raise MissingInputFile(path, field=kind)

    async def _encode(self, args: List[str], total_duration: float) -> None:
        progress = ProgressSink(total_duration, show_progress=self.show_progress)

        def _sink(line: str) -> None:
            progress(line)
            if self.sink is not None:
                self.sink(line)

        try:
            await self.encoder(args, sink=_sink)
        finally:
            progress.close()

    # ---- 画像ベース -------------------------------------------------
    async def plan_images(self, request: ImageCompositionRequest) -> Tuple[Timeline, CompositionPlan]:
        """検証 → 存在確認 → プローブ → コンパイル。エンジンは起動しない。"""
        scenes = validate_scenes(request.scenes)
        tracks = validate_tracks(request.audio)
        subtitle = parse_subtitle(request.subtitle_path)
        _require_output(request.output_path)

        checks = [("Image", s.image_path) for s in scenes]
        checks += [("Audio", t.path) for t in tracks]
        if subtitle is not None:
            checks.append(("Subtitle", subtitle.path))
        self._check_exists(checks)

        probes = await probe_many([t.path for t in tracks], self.probe)
        timeline = build_image_timeline(scenes, tracks, subtitle, probes)
        return timeline, compile_timeline(timeline, self.config)

    @time_log(logger)
    async def compose_images(self, request: ImageCompositionRequest) -> CompositionResult:
        timeline, plan = await self.plan_images(request)
        logger.kv_info(
            f"Composing {len(timeline.scenes)} scene(s), {len(timeline.tracks)} audio track(s), "
            f"{timeline.total_duration_sec}s",
            kv_pairs={"Event": "ComposeImages", "Output": request.output_path},
        )
        args = plan.graph.ffmpeg_args(
            self.config.encoding_options(plan.encoding_mode), request.output_path
        )
        await self._encode(args, plan.total_duration_sec)
        logger.info(f"Video composition completed: {request.output_path}")
        return CompositionResult(
            success=True,
            output_path=request.output_path,
            total_duration=plan.total_duration_sec,
            scene_count=len(timeline.scenes),
            audio_count=len(timeline.tracks),
            tracks_mixed=plan.tracks_mixed,
            has_subtitle=timeline.subtitle is not None,
            encoding_mode=plan.encoding_mode.value,
            ken_burns_enabled=self.config.ken_burns,
            skipped_tracks=[s.index for s in plan.skipped],
        )

    # ---- 動画ベース -------------------------------------------------
    async def plan_video(self, request: VideoCompositionRequest) -> Tuple[Timeline, CompositionPlan]:
        if not isinstance(request.video_path, str) or not request.video_path.strip():
            raise ValidationError("Video file path is required", field="video")
        tracks = validate_tracks(request.audio)
        subtitle = parse_subtitle(request.subtitle_path)
        _require_output(request.output_path)

        checks = [("Video", request.video_path)]
        checks += [("Audio", t.path) for t in tracks]
        if subtitle is not None:
            checks.append(("Subtitle", subtitle.path))
        self._check_exists(checks)

        probes = await probe_many([request.video_path] + [t.path for t in tracks], self.probe)
        timeline = build_video_timeline(
            request.video_path,
            tracks,
            subtitle,
            probes,
            mute_original=self.config.mute_original,
        )
        return timeline, compile_timeline(timeline, self.config)

    @time_log(logger)
    async def compose_video(self, request: VideoCompositionRequest) -> CompositionResult:
        timeline, plan = await self.plan_video(request)
        if plan.encoding_mode is EncodingMode.REENCODE:
            logger.info("Subtitle burn-in requested; video stream will be re-encoded")
        args = plan.graph.ffmpeg_args(
            self.config.encoding_options(plan.encoding_mode), request.output_path
        )
        await self._encode(args, plan.total_duration_sec)
        logger.info(f"Video composition completed: {request.output_path}")
        return CompositionResult(
            success=True,
            output_path=request.output_path,
            total_duration=plan.total_duration_sec,
            scene_count=0,
            audio_count=len(timeline.tracks),
            tracks_mixed=plan.tracks_mixed,
            has_subtitle=timeline.subtitle is not None,
            encoding_mode=plan.encoding_mode.value,
            video_path=request.video_path,
            mute_original=self.config.mute_original,
            skipped_tracks=[s.index for s in plan.skipped],
        )

    # ---- 結合 -------------------------------------------------------
    @time_log(logger)
    async def merge_videos(self, paths: Sequence[str], output_path: str) -> MergeResult:
        graph = compile_video_merge(paths)
        _require_output(output_path)
        self._check_exists([("Video", p) for p in paths])
        args = graph.ffmpeg_args(
            self.config.encoding_options(EncodingMode.REENCODE), output_path
        )
        await self._encode(args, 0.0)
        return MergeResult(success=True, output_path=output_path, files=list(paths))

    @time_log(logger)
    async def merge_audio(self, paths: Sequence[str], output_path: str) -> MergeResult:
        """concat demuxer 用のリストファイルを出力先に置き、終了後に必ず消す。"""
        if len(paths) == 0:
            raise ValidationError("No audio file paths provided", field="audio")
        _require_output(output_path)
        self._check_exists([("Audio", p) for p in paths])

        list_path = Path(output_path).parent / f"concat-list-{int(time.time() * 1000)}.txt"
        list_path.write_text(build_concat_list(paths), encoding="utf-8")
        args = [
            "ffmpeg",
            "-y",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            str(list_path),
            "-c:a",
            self.config.merge_audio_codec,
            "-b:a",
            f"{self.config.merge_audio_bitrate_kbps}k",
            output_path,
        ]
        try:
            await self._encode(args, 0.0)
        finally:
            if list_path.exists():
                list_path.unlink()
        return MergeResult(success=True, output_path=output_path, files=list(paths))


def build_concat_list(paths: Sequence[str]) -> str:
    """``file '<path>'`` 形式の行。単引用符は ``'\\''`` でエスケープする。"""
    return "\n".join("file '{}'".format(p.replace("'", "'\\''")) for p in paths)


def image_request_from(data: Mapping[str, Any], output_path: Optional[str] = None) -> ImageCompositionRequest:
    return ImageCompositionRequest(
        scenes=adapt_scenes(data.get("scenes"), field_map_from(data.get("scene_fields"), SCENE_FIELDS)),
        audio=adapt_tracks(data.get("audio"), field_map_from(data.get("audio_fields"), IMAGE_AUDIO_FIELDS)),
        output_path=output_path or data.get("output") or "",
        subtitle_path=data.get("subtitle") or None,
    )


def video_request_from(data: Mapping[str, Any], output_path: Optional[str] = None) -> VideoCompositionRequest:
    return VideoCompositionRequest(
        video_path=data.get("video") or "",
        audio=adapt_tracks(data.get("audio"), field_map_from(data.get("audio_fields"), VIDEO_AUDIO_FIELDS)),
        output_path=output_path or data.get("output") or "",
        subtitle_path=data.get("subtitle") or None,
    )


async def run_request(
    data: Mapping[str, Any],
    pipeline: CompositionPipeline,
    output_path: Optional[str] = None,
) -> Dict[str, Any]:
    """リクエストの ``mode`` に応じてジョブを振り分け、結果を辞書で返す。"""
    mode = data.get("mode", "images")
    if mode == "images":
        result = await pipeline.compose_images(image_request_from(data, output_path))
        return result.to_dict()
    if mode == "video":
        result = await pipeline.compose_video(video_request_from(data, output_path))
        return result.to_dict()
    if mode == "merge_video":
        merged = await pipeline.merge_videos(
            adapt_paths(data.get("videos"), "videos"), output_path or data.get("output") or ""
        )
        return merged.to_dict()
    if mode == "merge_audio":
        merged = await pipeline.merge_audio(
            adapt_paths(data.get("audio"), "audio"), output_path or data.get("output") or ""
        )
        return merged.to_dict()
    raise PipelineError(f"Unknown mode '{mode}', expected one of {', '.join(MODES)}")


async def describe_request(
    data: Mapping[str, Any],
    pipeline: CompositionPipeline,
    output_path: Optional[str] = None,
) -> Dict[str, Any]:
    """エンジンを起動せず、生成されるグラフと引数列だけを返す (--dump-graph 用)。"""
    mode = data.get("mode", "images")
    output = output_path or data.get("output") or ""
    if mode in ("images", "video"):
        if mode == "images":
            _, plan = await pipeline.plan_images(image_request_from(data, output_path))
        else:
            _, plan = await pipeline.plan_video(video_request_from(data, output_path))
        graph = plan.graph
        skipped = [s.index for s in plan.skipped]
    elif mode == "merge_video":
        graph = compile_video_merge(adapt_paths(data.get("videos"), "videos"))
        skipped = []
    elif mode == "merge_audio":
        paths = adapt_paths(data.get("audio"), "audio")
        if len(paths) == 0:
            raise ValidationError("No audio file paths provided", field="audio")
        return {"mode": mode, "concat_list": build_concat_list(paths)}
    else:
        raise PipelineError(f"Unknown mode '{mode}', expected one of {', '.join(MODES)}")
    args = graph.ffmpeg_args(pipeline.config.encoding_options(graph.encoding_mode), output)
    return {
        "mode": mode,
        "filter_complex": graph.graph_text,
        "encoding_mode": graph.encoding_mode.value,
        "skipped_tracks": skipped,
        "args": args,
    }
