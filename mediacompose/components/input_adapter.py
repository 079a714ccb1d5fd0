"""リクエストの入力形式を正規の記述子へ揃えるアダプタ。

受け付ける形:
- 前段から渡されるレコード列 (フィールド名は FieldMap で指定)
- 上記を JSON 文字列にしたもの
- 手入力コレクション ``{"scene": [...]}`` / ``{"audioFile": [...]}``

出力はシーンが ``{"image_path", "duration_ms"}``、音声が ``{"path", "start_ms"}``。
ここでは値の検証はせず、欠けたパスは空文字、数値でない時刻は 0 にする。
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import ValidationError
from ..utils.numeric import round_half_up


@dataclass(frozen=True)
class FieldMap:
    path: str
    time: str
    # "ms" または "s"
    unit: str = "ms"

    def __post_init__(self) -> None:
        if self.unit not in ("ms", "s"):
            raise ValidationError(f"time unit must be 'ms' or 's', got {self.unit!r}", field="unit")


SCENE_FIELDS = FieldMap("image_filepath", "scene_duration")
IMAGE_AUDIO_FIELDS = FieldMap("audio_filePath", "audio_starttime")
VIDEO_AUDIO_FIELDS = FieldMap("path", "time", unit="s")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_ms(value: Any, unit: str) -> Any:
    if not _is_number(value):
        return 0
    if unit == "s":
        return round_half_up(Decimal(str(value)) * 1000)
    return value


def _records(source: Any, name: str) -> Optional[List[Any]]:
    """レコード列を取り出す。手入力コレクションなら None。"""
    if source is None:
        return []
    if isinstance(source, str):
        if not source.strip():
            return []
        try:
            source = json.loads(source)
        except json.JSONDecodeError as e:
            raise ValidationError(f"{name} is not valid JSON: {e}", field=name)
    if isinstance(source, Mapping):
        return None
    if isinstance(source, (list, tuple)):
        return list(source)
    raise ValidationError(f"{name} must be a list of records, got {type(source).__name__}", field=name)


def _field(item: Any, key: str) -> Any:
    return item.get(key) if isinstance(item, Mapping) else None


def adapt_scenes(source: Any, fields: FieldMap = SCENE_FIELDS) -> List[Dict[str, Any]]:
    records = _records(source, "scenes")
    if records is None:
        manual = source.get("scene") or []
        return [
            {
                "image_path": _field(item, "imagePath") or "",
                "duration_ms": _to_ms(_field(item, "duration"), fields.unit),
            }
            for item in manual
        ]
    return [
        {
            "image_path": _field(item, fields.path) or "",
            "duration_ms": _to_ms(_field(item, fields.time), fields.unit),
        }
        for item in records
    ]


def adapt_tracks(source: Any, fields: FieldMap = IMAGE_AUDIO_FIELDS) -> List[Dict[str, Any]]:
    records = _records(source, "audio")
    if records is None:
        manual = source.get("audioFile") or []
        return [
            {
                "path": _field(item, "path") or "",
                "start_ms": _to_ms(_field(item, "startTime"), fields.unit),
            }
            for item in manual
        ]
    return [
        {
            "path": _field(item, fields.path) or "",
            "start_ms": _to_ms(_field(item, fields.time), fields.unit),
        }
        for item in records
    ]


def adapt_paths(source: Any, name: str = "paths") -> List[str]:
    """パスのリスト、または改行区切りテキストを受け付ける。"""
    if source is None:
        return []
    if isinstance(source, str):
        return [line.strip() for line in source.split("\n") if line.strip()]
    if isinstance(source, (list, tuple)):
        paths = []
        for i, item in enumerate(source):
            if not isinstance(item, str):
                raise ValidationError(f"{name}[{i}] must be a path string", field=name)
            if item.strip():
                paths.append(item.strip())
        return paths
    raise ValidationError(f"{name} must be a list or newline separated text", field=name)


def field_map_from(raw: Optional[Mapping[str, Any]], default: FieldMap) -> FieldMap:
    """リクエストの ``*_fields`` 指定から FieldMap を作る。"""
    if not raw:
        return default
    if not isinstance(raw, Mapping):
        raise ValidationError("field mapping must be a dictionary", field="fields")
    return FieldMap(
        path=str(raw.get("path", default.path)),
        time=str(raw.get("time", default.time)),
        unit=str(raw.get("unit", default.unit)),
    )
