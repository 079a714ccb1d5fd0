"""ノード列をエンジンの filter_complex テキストへ変換する。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Set, Tuple

from ..utils.ffmpeg_params import EncodingMode, EncodingOptions
from .nodes import Filter, GraphNode, is_input_ref

STATEMENT_SEPARATOR = ";"
FILTER_SEPARATOR = ","


@dataclass(frozen=True)
class InputSpec:
    """エンジンへ渡す入力ファイルと、その直前に置く入力オプション。"""

    path: str
    options: Tuple[str, ...] = ()

    def to_ffmpeg_args(self) -> List[str]:
        return [*self.options, "-i", self.path]


@dataclass(frozen=True)
class OutputMap:
    """最終的な映像/音声の出力参照 (ラベル or 入力ストリーム)。"""

    video: str
    audio: str

    @staticmethod
    def _render(ref: str) -> str:
        return ref if is_input_ref(ref) else f"[{ref}]"

    def to_ffmpeg_args(self) -> List[str]:
        return ["-map", self._render(self.video), "-map", self._render(self.audio)]


@dataclass(frozen=True)
class CompiledGraph:
    inputs: Tuple[InputSpec, ...]
    graph_text: str
    output_map: OutputMap
    encoding_mode: EncodingMode
    nodes: Tuple[GraphNode, ...] = field(default=(), compare=False)

    def ffmpeg_args(
        self, encoding: EncodingOptions, output_path: str, overwrite: bool = True
    ) -> List[str]:
        """エンジン起動用の引数列 (実行ファイル名を含む)。"""
        args: List[str] = ["ffmpeg"]
        if overwrite:
            args.append("-y")
        for spec in self.inputs:
            args.extend(spec.to_ffmpeg_args())
        args.extend(["-filter_complex", self.graph_text])
        args.extend(self.output_map.to_ffmpeg_args())
        args.extend(encoding.to_ffmpeg_opts())
        args.append(output_path)
        return args


def render_filter(flt: Filter) -> str:
    if not flt.params:
        return flt.kind.value
    rendered = ":".join(v if k is None else f"{k}={v}" for k, v in flt.params)
    return f"{flt.kind.value}={rendered}"


def render_node(node: GraphNode) -> str:
    if not node.filters:
        raise ValueError(f"{node.kind.value} node has no filters")
    head = "".join(f"[{ref}]" for ref in node.inputs)
    body = FILTER_SEPARATOR.join(render_filter(f) for f in node.filters)
    tail = "".join(f"[{label}]" for label in node.outputs)
    return f"{head}{body}{tail}"


def _check_wiring(
    nodes: Sequence[GraphNode], input_count: int, final_refs: Sequence[str]
) -> None:
    produced: Set[str] = set()
    consumed: Set[str] = set()
    for node in nodes:
        for ref in node.inputs:
            if is_input_ref(ref):
                if int(ref.split(":")[0]) >= input_count:
                    raise ValueError(f"{ref} refers to a missing input")
                continue
            if ref not in produced:
                raise ValueError(f"label {ref} is used before it is produced")
            if ref in consumed:
                raise ValueError(f"label {ref} is consumed twice")
            consumed.add(ref)
        for label in node.outputs:
            if label in produced:
                raise ValueError(f"label {label} is produced twice")
            produced.add(label)
    for ref in final_refs:
        if is_input_ref(ref):
            continue
        if ref not in produced:
            raise ValueError(f"output {ref} is not produced by any node")
        if ref in consumed:
            raise ValueError(f"output {ref} is also consumed inside the graph")


def serialize(
    video_nodes: Sequence[GraphNode],
    audio_nodes: Sequence[GraphNode],
    output_map: OutputMap,
    inputs: Sequence[InputSpec],
    encoding_mode: EncodingMode = EncodingMode.REENCODE,
) -> CompiledGraph:
    """映像ノード→音声ノードの順に並べ、区切り文字で連結する。

    副作用はなく、同じ入力からは常に同じテキストを返す。
    """
    nodes = tuple(video_nodes) + tuple(audio_nodes)
    _check_wiring(nodes, len(inputs), (output_map.video, output_map.audio))
    graph_text = STATEMENT_SEPARATOR.join(render_node(n) for n in nodes)
    return CompiledGraph(
        inputs=tuple(inputs),
        graph_text=graph_text,
        output_map=output_map,
        encoding_mode=encoding_mode,
        nodes=nodes,
    )
