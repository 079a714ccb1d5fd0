from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from ...exceptions import ValidationError
from ...utils.ffmpeg_params import VideoParams
from .model import CompositionConfig, MixSettings


def _section(cfg: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = cfg.get(key) or {}
    if not isinstance(value, dict):
        raise ValidationError(f"Config section '{key}' must be a dictionary.", field=key)
    return value


def _positive_int(section: Dict[str, Any], key: str, name: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}.", field=name)
    return value


def _optional_int(section: Dict[str, Any], key: str, name: str, default: Optional[int]) -> Optional[int]:
    value = section.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer, got {value!r}.", field=name)
    return value


def _bool(section: Dict[str, Any], key: str, name: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be true or false, got {value!r}.", field=name)
    return value


def _decimal(section: Dict[str, Any], key: str, name: str, default: str) -> Decimal:
    value = section.get(key, default)
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}.", field=name)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}.", field=name)
    if not result.is_finite():
        raise ValidationError(f"{name} must be finite, got {value!r}.", field=name)
    return result


def _string(section: Dict[str, Any], key: str, name: str, default: str) -> str:
    value = section.get(key, default)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string, got {value!r}.", field=name)
    return value


def validate_config(cfg: Dict[str, Any]) -> CompositionConfig:
    """Validate a merged configuration mapping and build a CompositionConfig.

    Raises
    ------
    ValidationError
        If any value has the wrong type or is out of range.
    """
    if not isinstance(cfg, dict):
        raise ValidationError("Configuration must be a dictionary.")

    video = _section(cfg, "video")
    audio = _section(cfg, "audio")
    mix = _section(audio, "mix")
    subtitle = _section(cfg, "subtitle")
    encode = _section(cfg, "encode")
    encode_video = _section(encode, "video")
    encode_audio = _section(encode, "audio")
    merge_audio = _section(_section(cfg, "merge"), "audio")

    zoom_max = _decimal(video, "zoom_max", "video.zoom_max", "1.1")
    if zoom_max < 1:
        raise ValidationError(
            f"video.zoom_max must be at least 1.0, got {zoom_max}.", field="video.zoom_max"
        )

    return CompositionConfig(
        width=_positive_int(video, "width", "video.width", 1920),
        height=_positive_int(video, "height", "video.height", 1080),
        fps=_positive_int(video, "fps", "video.fps", 25),
        ken_burns=_bool(video, "ken_burns", "video.ken_burns", True),
        zoom_max=zoom_max,
        sample_rate=_positive_int(audio, "sample_rate", "audio.sample_rate", 44100),
        mute_original=_bool(audio, "mute_original", "audio.mute_original", False),
        mix=MixSettings(
            normalize=_bool(mix, "normalize", "audio.mix.normalize", True),
            gain_db=_decimal(mix, "gain_db", "audio.mix.gain_db", "4.0"),
        ),
        subtitle_charenc=_string(subtitle, "charenc", "subtitle.charenc", "UTF-8"),
        video_params=VideoParams(
            codec=_string(encode_video, "codec", "encode.video.codec", "libx264"),
            preset=_string(encode_video, "preset", "encode.video.preset", "medium"),
            crf=_optional_int(encode_video, "crf", "encode.video.crf", 23),
            pix_fmt=_string(encode_video, "pix_fmt", "encode.video.pix_fmt", "yuv420p"),
            bitrate_kbps=_optional_int(
                encode_video, "bitrate_kbps", "encode.video.bitrate_kbps", None
            ),
        ),
        audio_codec=_string(encode_audio, "codec", "encode.audio.codec", "aac"),
        audio_bitrate_kbps=_positive_int(
            encode_audio, "bitrate_kbps", "encode.audio.bitrate_kbps", 192
        ),
        faststart=_bool(encode, "faststart", "encode.faststart", True),
        merge_audio_codec=_string(merge_audio, "codec", "merge.audio.codec", "libmp3lame"),
        merge_audio_bitrate_kbps=_positive_int(
            merge_audio, "bitrate_kbps", "merge.audio.bitrate_kbps", 128
        ),
    )
