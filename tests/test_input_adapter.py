import json
import pathlib
import sys

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from mediacompose.components.input_adapter import (
    IMAGE_AUDIO_FIELDS,
    SCENE_FIELDS,
    VIDEO_AUDIO_FIELDS,
    FieldMap,
    adapt_paths,
    adapt_scenes,
    adapt_tracks,
    field_map_from,
)
from mediacompose.exceptions import ValidationError


def test_scene_records_with_default_fields():
    records = [{"image_filepath": "a.png", "scene_duration": 1500}]
    assert adapt_scenes(records, SCENE_FIELDS) == [{"image_path": "a.png", "duration_ms": 1500}]


def test_scene_records_from_json_string():
    text = json.dumps([{"image_filepath": "a.png", "scene_duration": 2000}])
    assert adapt_scenes(text) == [{"image_path": "a.png", "duration_ms": 2000}]


def test_manual_scene_collection():
    manual = {"scene": [{"imagePath": "x.jpg", "duration": 3000}]}
    assert adapt_scenes(manual) == [{"image_path": "x.jpg", "duration_ms": 3000}]


def test_audio_records_with_image_fields():
    records = [{"audio_filePath": "m.mp3", "audio_starttime": 1000}]
    assert adapt_tracks(records, IMAGE_AUDIO_FIELDS) == [{"path": "m.mp3", "start_ms": 1000}]


def test_video_audio_fields_are_in_seconds():
    records = [{"path": "m.mp3", "time": 1.5}, {"path": "n.mp3", "time": 0.0005}]
    assert adapt_tracks(records, VIDEO_AUDIO_FIELDS) == [
        {"path": "m.mp3", "start_ms": 1500},
        {"path": "n.mp3", "start_ms": 1},
    ]


def test_manual_audio_collection_and_missing_values():
    manual = {"audioFile": [{"path": "m.mp3", "startTime": 250}, {"startTime": "later"}]}
    assert adapt_tracks(manual) == [
        {"path": "m.mp3", "start_ms": 250},
        {"path": "", "start_ms": 0},
    ]


def test_empty_sources():
    assert adapt_scenes(None) == []
    assert adapt_tracks("") == []


def test_invalid_json_is_validation_error():
    with pytest.raises(ValidationError) as excinfo:
        adapt_tracks("[{not json")
    assert excinfo.value.field == "audio"


def test_adapt_paths_accepts_text_and_lists():
    assert adapt_paths("a.mp4\n\n b.mp4 \n") == ["a.mp4", "b.mp4"]
    assert adapt_paths(["a.mp3", " ", "b.mp3"]) == ["a.mp3", "b.mp3"]
    with pytest.raises(ValidationError):
        adapt_paths([1, 2], "videos")


def test_field_map_from_overrides():
    fm = field_map_from({"path": "file", "unit": "s"}, IMAGE_AUDIO_FIELDS)
    assert fm == FieldMap("file", "audio_starttime", "s")
    assert field_map_from(None, SCENE_FIELDS) is SCENE_FIELDS
    with pytest.raises(ValidationError):
        field_map_from({"unit": "minutes"}, SCENE_FIELDS)
