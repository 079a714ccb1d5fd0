import logging
import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from mediacompose.utils.progress import ProgressSink, parse_progress_seconds


def test_parse_progress_seconds():
    line = "frame=  250 fps= 50 q=28.0 size=1024kB time=00:01:02.50 bitrate=134.2kbits/s"
    assert parse_progress_seconds(line) == 62.5
    assert parse_progress_seconds("Input #0, image2, from 'a.png':") is None


def test_progress_sink_logs_errors_as_warnings(caplog):
    sink = ProgressSink(total_duration_sec=10.0)
    with caplog.at_level(logging.DEBUG, logger="mediacompose"):
        sink("time=00:00:01.00")
        sink("Error opening input file x.png")
    sink.close()
    levels = [r.levelno for r in caplog.records if r.getMessage().startswith("FFmpeg:")]
    assert levels == [logging.DEBUG, logging.WARNING]
    assert sink.lines == 2


def test_progress_bar_only_moves_forward():
    sink = ProgressSink(total_duration_sec=5.0, show_progress=True)
    sink("time=00:00:02.00")
    sink("time=00:00:01.00")
    sink("time=00:00:09.00")
    assert sink._bar.n == 5.0
    sink.close()
    assert sink._bar is None
