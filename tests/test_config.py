import pathlib
import sys
from decimal import Decimal

import pytest
import yaml

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from mediacompose.components.config import (
    DEFAULT_CONFIG_PATH,
    load_config,
    load_default_config,
    merge_configs,
    validate_config,
)
from mediacompose.exceptions import ValidationError
from mediacompose.utils.ffmpeg_params import EncodingMode


def test_default_config_validates_to_defaults():
    assert DEFAULT_CONFIG_PATH.exists()
    config = validate_config(load_default_config())
    assert (config.width, config.height, config.fps) == (1920, 1080, 25)
    assert config.ken_burns is True
    assert config.zoom_max == Decimal("1.1")
    assert config.mix.normalize is True
    assert config.mix.gain_db == Decimal("4.0")
    assert config.subtitle_charenc == "UTF-8"
    assert config.merge_audio_codec == "libmp3lame"


def test_merge_overrides_nested_keys():
    base = load_default_config()
    merged = merge_configs(base, {"video": {"fps": 30}, "audio": {"mix": {"gain_db": 0}}})
    config = validate_config(merged)
    assert config.fps == 30
    assert config.width == 1920
    assert config.mix.gain_db == Decimal("0")
    assert config.mix.normalize is True


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        validate_config({"video": {"width": 0}})
    with pytest.raises(ValidationError):
        validate_config({"video": {"zoom_max": 0.9}})
    with pytest.raises(ValidationError):
        validate_config({"video": {"ken_burns": "yes"}})


def test_load_config_reports_yaml_position(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("video:\n  width: [1920\n", encoding="utf-8")
    with pytest.raises(ValidationError) as excinfo:
        load_config(str(path))
    assert excinfo.value.line_number is not None


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ValidationError, match="not found"):
        load_config(str(tmp_path / "nope.yaml"))


def test_load_config_empty_file_is_empty_mapping(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)) == {}


def test_encoding_options_follow_config(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(
        yaml.safe_dump({"encode": {"video": {"preset": "fast", "crf": 20}, "faststart": False}}),
        encoding="utf-8",
    )
    config = validate_config(merge_configs(load_default_config(), load_config(str(path))))
    opts = config.encoding_options(EncodingMode.REENCODE).to_ffmpeg_opts()
    assert opts[:6] == ["-c:v", "libx264", "-preset", "fast", "-crf", "20"]
    assert "-movflags" not in opts
