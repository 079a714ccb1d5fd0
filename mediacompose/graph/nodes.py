"""フィルタグラフのノード表現。"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

_INPUT_REF_RE = re.compile(r"^\d+:[av]$")


class FilterKind(str, Enum):
    """エンジンのフィルタ名。"""

    SCALE = "scale"
    PAD = "pad"
    SETSAR = "setsar"
    FPS = "fps"
    ZOOM = "zoompan"
    TRIM = "trim"
    SETPTS = "setpts"
    COPY = "copy"
    CONCAT = "concat"
    SUBTITLES = "subtitles"
    RESAMPLE = "aresample"
    AFORMAT = "aformat"
    PAN = "pan"
    ATRIM = "atrim"
    ASETPTS = "asetpts"
    DELAY = "adelay"
    APAD = "apad"
    ANULL = "anull"
    MIX = "amix"
    VOLUME = "volume"
    NULL_SOURCE = "anullsrc"


class NodeKind(str, Enum):
    """1 ステートメント (= 1 ノード) の役割。"""

    SCENE = "scene"
    TRACK = "track"
    CONCAT = "concat"
    SUBTITLE = "subtitle"
    IDENTITY = "identity"
    MIX = "mix"
    GAIN = "gain"
    NULL_SOURCE = "null_source"


Param = Tuple[Optional[str], str]


@dataclass(frozen=True)
class Filter:
    """単一フィルタ。``params`` は (キー or None, 値) の並び。"""

    kind: FilterKind
    params: Tuple[Param, ...] = ()

    @classmethod
    def of(cls, kind: FilterKind, *positional: str, **named: str) -> "Filter":
        params = tuple((None, str(v)) for v in positional)
        params += tuple((k, str(v)) for k, v in named.items())
        return cls(kind, params)

    def param(self, key: str) -> Optional[str]:
        for k, v in self.params:
            if k == key:
                return v
        return None


@dataclass(frozen=True)
class GraphNode:
    """入力ポート群 → フィルタチェーン → 出力ラベル群。"""

    kind: NodeKind
    inputs: Tuple[str, ...]
    filters: Tuple[Filter, ...]
    outputs: Tuple[str, ...]

    def has_filter(self, kind: FilterKind) -> bool:
        return any(f.kind is kind for f in self.filters)

    def find(self, kind: FilterKind) -> Optional[Filter]:
        return next((f for f in self.filters if f.kind is kind), None)

    @property
    def output(self) -> str:
        if len(self.outputs) != 1:
            raise ValueError(f"{self.kind.value} node has {len(self.outputs)} outputs")
        return self.outputs[0]


def input_ref(index: int, stream: str) -> str:
    """入力ファイル ``index`` のストリーム参照 (例: ``0:v``)。"""
    return f"{index}:{stream}"


def is_input_ref(ref: str) -> bool:
    return bool(_INPUT_REF_RE.match(ref))
