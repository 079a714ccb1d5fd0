"""エンコードエンジンの stderr 行を受け取るシンク。"""

from __future__ import annotations

import re
from typing import Optional

from tqdm import tqdm

from .logger import logger

_TIME_RE = re.compile(r"time=\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


def parse_progress_seconds(line: str) -> Optional[float]:
    """``time=HH:MM:SS.xx`` から経過秒を取り出す。無ければ None。"""
    m = _TIME_RE.search(line)
    if not m:
        return None
    hours, minutes, seconds = m.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


class ProgressSink:
    """stderr 行をログへ流し、必要なら tqdm の進捗バーを更新する。

    行の中身は解釈せず、進捗表示のために ``time=`` だけを読む。
    """

    def __init__(self, total_duration_sec: float = 0.0, show_progress: bool = False, desc: str = "Encoding"):
        self.total = max(0.0, float(total_duration_sec))
        self.lines = 0
        self._bar: Optional[tqdm] = None
        if show_progress and self.total > 0:
            self._bar = tqdm(total=round(self.total, 2), desc=desc, unit="s", leave=False)

    def __call__(self, line: str) -> None:
        self.lines += 1
        lowered = line.lower()
        if "error" in lowered:
            logger.warning(f"FFmpeg: {line}")
        else:
            logger.debug(f"FFmpeg: {line}")
        if self._bar is None:
            return
        seconds = parse_progress_seconds(line)
        if seconds is not None:
            target = min(round(seconds, 2), self._bar.total)
            if target > self._bar.n:
                self._bar.update(target - self._bar.n)

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None
