"""残ったトラック数に応じた最終音声の作り方。"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple

from ...graph import Filter, FilterKind, GraphNode, LabelAllocator, NodeKind
from ...utils.numeric import format_number
from ..config import CompositionConfig, MixSettings

AUDIO_OUTPUT_LABEL = "outa"
MIX_LABEL = "mixed"


class MixStrategy(ABC):
    """トラック出力ラベル群から最終音声ノードを組み立てる。"""

    name: str = ""

    @abstractmethod
    def build(
        self,
        track_labels: Sequence[str],
        labels: LabelAllocator,
        total_duration_sec: float,
        config: CompositionConfig,
    ) -> Tuple[List[GraphNode], str]:
        """(ノード列, 最終出力ラベル) を返す。"""


class EmptyMix(MixStrategy):
    """トラックが無いとき: タイムライン長の無音ステレオを合成する。"""

    name = "empty"

    def build(self, track_labels, labels, total_duration_sec, config):
        if track_labels:
            raise ValueError("EmptyMix takes no tracks")
        output = labels.allocate(AUDIO_OUTPUT_LABEL)
        source = Filter.of(
            FilterKind.NULL_SOURCE,
            channel_layout="stereo",
            sample_rate=str(config.sample_rate),
            duration=format_number(total_duration_sec),
        )
        return [GraphNode(NodeKind.NULL_SOURCE, (), (source,), (output,))], output


class PassthroughMix(MixStrategy):
    """1 本だけ: レベルを変えずに anull で出力ラベルへ繋ぐ。"""

    name = "passthrough"

    def build(self, track_labels, labels, total_duration_sec, config):
        if len(track_labels) != 1:
            raise ValueError("PassthroughMix takes exactly one track")
        output = labels.allocate(AUDIO_OUTPUT_LABEL)
        node = GraphNode(
            NodeKind.IDENTITY, (track_labels[0],), (Filter.of(FilterKind.ANULL),), (output,)
        )
        return [node], output


class AverageMix(MixStrategy):
    """2 本以上: amix (duration=longest) の後にゲイン補正を置く。"""

    name = "average"

    @staticmethod
    def mix_filter(count: int, settings: MixSettings) -> Filter:
        named = {"inputs": str(count), "duration": "longest", "dropout_transition": "0"}
        if not settings.normalize:
            named["normalize"] = "0"
        return Filter.of(FilterKind.MIX, **named)

    @staticmethod
    def gain_filter(settings: MixSettings) -> Filter:
        return Filter.of(FilterKind.VOLUME, f"{format_number(settings.gain_db)}dB")

    def build(self, track_labels, labels, total_duration_sec, config):
        if len(track_labels) < 2:
            raise ValueError("AverageMix needs at least two tracks")
        mixed = labels.allocate(MIX_LABEL)
        output = labels.allocate(AUDIO_OUTPUT_LABEL)
        mix_node = GraphNode(
            NodeKind.MIX,
            tuple(track_labels),
            (self.mix_filter(len(track_labels), config.mix),),
            (mixed,),
        )
        gain_node = GraphNode(NodeKind.GAIN, (mixed,), (self.gain_filter(config.mix),), (output,))
        return [mix_node, gain_node], output


def select_mix_strategy(track_count: int) -> MixStrategy:
    if track_count < 0:
        raise ValueError(f"negative track count: {track_count}")
    if track_count == 0:
        return EmptyMix()
    if track_count == 1:
        return PassthroughMix()
    return AverageMix()
