"""画像/動画・音声・字幕を FFmpeg の filter_complex へコンパイルして合成する。"""

__version__ = "0.1.0"
