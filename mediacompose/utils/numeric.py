"""ミリ秒/秒の換算とフィルタ文字列向けの数値整形。"""

from __future__ import annotations

import math
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float, Decimal]


def round_half_up(value: Number) -> int:
    """0.5 を切り上げる整数丸め。"""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def ms_to_seconds(ms: Number) -> float:
    return float(Decimal(str(ms)) / Decimal(1000))


def frame_count(duration_sec: Number, fps: Number) -> int:
    """duration をフレーム数に切り上げる。"""
    frames = Decimal(str(duration_sec)) * Decimal(str(fps))
    return int(frames.to_integral_value(rounding=ROUND_CEILING))


def format_number(value: Number) -> str:
    """フィルタ引数用に数値を最短表記で文字列化する。

    整数値は小数点なし (``4.0`` -> ``"4"``)、それ以外は往復可能な最短表記。
    """
    if isinstance(value, bool):
        raise TypeError("boolean is not a filter number")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        value = value.normalize()
        if value == value.to_integral_value():
            return str(int(value))
        return format(value, "f")
    if not math.isfinite(value):
        raise ValueError(f"non-finite filter number: {value}")
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_fixed(value: Number, digits: int = 3) -> str:
    """小数点以下 ``digits`` 桁に丸めた固定小数表記 (四捨五入)。"""
    quantum = Decimal(1).scaleb(-digits)
    exact = value if isinstance(value, Decimal) else Decimal(repr(float(value)))
    return str(exact.quantize(quantum, rounding=ROUND_HALF_UP))
