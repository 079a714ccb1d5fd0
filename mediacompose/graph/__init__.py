"""フィルタグラフのモデル・ラベル割り当て・テキスト化。"""

from .escape import escape_subtitle_path
from .labels import LabelAllocator
from .nodes import Filter, FilterKind, GraphNode, NodeKind, input_ref
from .serializer import CompiledGraph, InputSpec, OutputMap, serialize

__all__ = [
    "CompiledGraph",
    "Filter",
    "FilterKind",
    "GraphNode",
    "InputSpec",
    "LabelAllocator",
    "NodeKind",
    "OutputMap",
    "escape_subtitle_path",
    "input_ref",
    "serialize",
]
