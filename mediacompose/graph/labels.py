"""1 回のコンパイルに閉じたラベル割り当て。"""

from __future__ import annotations

from typing import List, Optional, Set, Tuple

from .nodes import is_input_ref


class LabelAllocator:
    """ノード出力ラベルを決定的に払い出す。

    ラベルは ``stem`` と入力インデックスだけから決まるため、同じタイムラインは
    常に同じラベル列になる。重複は呼び出し側の不具合として ValueError。
    """

    def __init__(self) -> None:
        self._issued: List[str] = []
        self._seen: Set[str] = set()

    def allocate(self, stem: str, index: Optional[int] = None) -> str:
        label = stem if index is None else f"{stem}{index}"
        if is_input_ref(label) or not label.replace("_", "").isalnum():
            raise ValueError(f"invalid label: {label!r}")
        if label in self._seen:
            raise ValueError(f"label already allocated: {label}")
        self._seen.add(label)
        self._issued.append(label)
        return label

    def __contains__(self, label: str) -> bool:
        return label in self._seen

    @property
    def issued(self) -> Tuple[str, ...]:
        return tuple(self._issued)
