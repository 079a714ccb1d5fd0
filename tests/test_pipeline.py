import asyncio
import pathlib
import sys

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from mediacompose.components.config import CompositionConfig
from mediacompose.exceptions import (
    EncodeFailed,
    MissingInputFile,
    MissingPrimaryStream,
    PipelineError,
    ProbeFailed,
    UnsupportedSubtitleFormat,
    ValidationError,
)
from mediacompose.pipeline import (
    CompositionPipeline,
    ImageCompositionRequest,
    VideoCompositionRequest,
    build_concat_list,
    describe_request,
    run_request,
)


def _audio_info(duration):
    return {
        "duration": duration,
        "has_video": False,
        "has_audio": True,
        "video": None,
        "audio": {"codec": "mp3", "sample_rate": 44100, "channels": 2, "channel_layout": "stereo"},
    }


def _video_info(duration, has_audio=True):
    info = _audio_info(duration)
    info["has_video"] = True
    info["has_audio"] = has_audio
    info["video"] = {"width": 1920, "height": 1080, "codec": "h264", "fps": 25.0}
    if not has_audio:
        info["audio"] = None
    return info


class FakeProbe:
    def __init__(self, infos):
        self.infos = infos
        self.calls = []

    async def __call__(self, path):
        self.calls.append(path)
        if path not in self.infos:
            raise OSError(f"cannot open {path}")
        return self.infos[path]


class FakeEncoder:
    def __init__(self, fail=False, lines=()):
        self.calls = []
        self.fail = fail
        self.lines = lines

    async def __call__(self, args, sink=None):
        self.calls.append(list(args))
        for line in self.lines:
            if sink is not None:
                sink(line)
        if self.fail:
            raise EncodeFailed(1, ["Invalid argument"])


def _pipeline(probe, encoder=None, exists=lambda p: True, **kwargs):
    return CompositionPipeline(
        CompositionConfig(), probe=probe, encoder=encoder or FakeEncoder(), exists=exists, **kwargs
    )


SCENES = [
    {"image_path": "s1.png", "duration_ms": 2000},
    {"image_path": "s2.png", "duration_ms": 3000},
    {"image_path": "s3.png", "duration_ms": 1000},
]


def test_compose_images_runs_encoder_once():
    probe = FakeProbe({"m.mp3": _audio_info(4.0)})
    encoder = FakeEncoder(lines=["time=00:00:03.00"])
    request = ImageCompositionRequest(
        scenes=SCENES,
        audio=[{"path": "m.mp3", "start_ms": 1000}],
        output_path="out.mp4",
        subtitle_path="subs.srt",
    )
    result = asyncio.run(_pipeline(probe, encoder).compose_images(request))

    assert probe.calls == ["m.mp3"]
    assert len(encoder.calls) == 1
    args = encoder.calls[0]
    assert args[0] == "ffmpeg"
    assert args[-1] == "out.mp4"
    assert "subtitles='subs.srt':charenc=UTF-8" in args[args.index("-filter_complex") + 1]
    assert result.to_dict() == {
        "success": True,
        "output_path": "out.mp4",
        "total_duration": 6.0,
        "scene_count": 3,
        "audio_count": 1,
        "tracks_mixed": 1,
        "has_subtitle": True,
        "encoding_mode": "reencode",
        "ken_burns_enabled": True,
        "skipped_tracks": [],
    }


def test_unsupported_subtitle_fails_before_probing():
    probe = FakeProbe({})
    encoder = FakeEncoder()
    request = ImageCompositionRequest(
        scenes=SCENES,
        audio=[{"path": "m.mp3", "start_ms": 0}],
        output_path="out.mp4",
        subtitle_path="notes.txt",
    )
    with pytest.raises(UnsupportedSubtitleFormat):
        asyncio.run(_pipeline(probe, encoder).compose_images(request))
    assert probe.calls == []
    assert encoder.calls == []


def test_empty_scenes_fail_before_probing():
    probe = FakeProbe({})
    request = ImageCompositionRequest(scenes=[], audio=[], output_path="out.mp4")
    with pytest.raises(MissingPrimaryStream):
        asyncio.run(_pipeline(probe).compose_images(request))
    assert probe.calls == []


def test_missing_file_is_reported_with_its_kind():
    probe = FakeProbe({})
    request = ImageCompositionRequest(
        scenes=SCENES, audio=[{"path": "gone.mp3", "start_ms": 0}], output_path="out.mp4"
    )
    pipeline = _pipeline(probe, exists=lambda p: p != "gone.mp3")
    with pytest.raises(MissingInputFile) as excinfo:
        asyncio.run(pipeline.compose_images(request))
    assert excinfo.value.path == "gone.mp3"
    assert "Audio file does not exist" in str(excinfo.value)
    assert probe.calls == []


def test_output_path_is_required():
    request = ImageCompositionRequest(scenes=SCENES, audio=[], output_path="")
    with pytest.raises(ValidationError, match="Output file path is required"):
        asyncio.run(_pipeline(FakeProbe({})).compose_images(request))


def test_probe_failure_prevents_encoding():
    encoder = FakeEncoder()
    request = ImageCompositionRequest(
        scenes=SCENES, audio=[{"path": "broken.mp3", "start_ms": 0}], output_path="out.mp4"
    )
    with pytest.raises(ProbeFailed):
        asyncio.run(_pipeline(FakeProbe({}), encoder).compose_images(request))
    assert encoder.calls == []


def test_encode_failure_propagates():
    request = ImageCompositionRequest(scenes=SCENES, audio=[], output_path="out.mp4")
    with pytest.raises(EncodeFailed):
        asyncio.run(_pipeline(FakeProbe({}), FakeEncoder(fail=True)).compose_images(request))


def test_compose_video_copies_stream_without_subtitle():
    probe = FakeProbe({"base.mp4": _video_info(12.0), "m.mp3": _audio_info(3.0)})
    encoder = FakeEncoder()
    request = VideoCompositionRequest(
        video_path="base.mp4", audio=[{"path": "m.mp3", "start_ms": 2000}], output_path="out.mp4"
    )
    result = asyncio.run(_pipeline(probe, encoder).compose_video(request))

    args = encoder.calls[0]
    assert args[args.index("-c:v") + 1] == "copy"
    assert args[args.index("-map") + 1] == "0:v"
    assert result.encoding_mode == "copy"
    assert result.tracks_mixed == 1
    assert result.to_dict()["video_path"] == "base.mp4"
    assert result.to_dict()["mute_original"] is False
    assert "scene_count" in result.to_dict()


def test_compose_video_requires_video_stream():
    probe = FakeProbe({"song.mp3": _audio_info(3.0)})
    request = VideoCompositionRequest(video_path="song.mp3", audio=[], output_path="out.mp4")
    with pytest.raises(MissingPrimaryStream):
        asyncio.run(_pipeline(probe).compose_video(request))


def test_merge_videos_builds_concat_graph():
    encoder = FakeEncoder()
    result = asyncio.run(
        _pipeline(FakeProbe({}), encoder).merge_videos(["a.mp4", "b.mp4"], "joined.mp4")
    )
    args = encoder.calls[0]
    assert args[args.index("-filter_complex") + 1] == (
        "[0:v][0:a][1:v][1:a]concat=n=2:v=1:a=1[outv][outa]"
    )
    assert result.to_dict()["files_count"] == 2


def test_merge_audio_writes_and_removes_list_file(tmp_path):
    seen = {}

    class ListCheckingEncoder(FakeEncoder):
        async def __call__(self, args, sink=None):
            list_path = pathlib.Path(args[args.index("-i") + 1])
            seen["list_path"] = list_path
            seen["content"] = list_path.read_text(encoding="utf-8")
            await super().__call__(args, sink)

    encoder = ListCheckingEncoder()
    output = tmp_path / "merged.mp3"
    asyncio.run(
        _pipeline(FakeProbe({}), encoder).merge_audio(["/a/x.mp3", "/a/it's.mp3"], str(output))
    )

    assert seen["content"] == "file '/a/x.mp3'\nfile '/a/it'\\''s.mp3'"
    assert seen["list_path"].parent == tmp_path
    assert not seen["list_path"].exists()
    args = encoder.calls[0]
    assert args[args.index("-c:a") + 1] == "libmp3lame"
    assert args[args.index("-b:a") + 1] == "128k"


def test_merge_audio_removes_list_file_on_failure(tmp_path):
    encoder = FakeEncoder(fail=True)
    with pytest.raises(EncodeFailed):
        asyncio.run(
            _pipeline(FakeProbe({}), encoder).merge_audio(["x.mp3"], str(tmp_path / "m.mp3"))
        )
    assert list(tmp_path.iterdir()) == []


def test_build_concat_list_escapes_quotes():
    assert build_concat_list(["a'b.mp3"]) == "file 'a'\\''b.mp3'"


def test_run_request_dispatches_on_mode():
    probe = FakeProbe({"m.mp3": _audio_info(4.0)})
    data = {
        "mode": "images",
        "scenes": [{"image_filepath": "s1.png", "scene_duration": 1000}],
        "audio": [{"audio_filePath": "m.mp3", "audio_starttime": 0}],
        "output": "out.mp4",
    }
    result = asyncio.run(run_request(data, _pipeline(probe)))
    assert result["scene_count"] == 1
    assert result["audio_count"] == 1


def test_run_request_rejects_unknown_mode():
    with pytest.raises(PipelineError):
        asyncio.run(run_request({"mode": "slideshow"}, _pipeline(FakeProbe({}))))


def test_describe_request_does_not_encode():
    probe = FakeProbe({"base.mp4": _video_info(5.0, has_audio=False)})
    encoder = FakeEncoder()
    data = {"mode": "video", "video": "base.mp4", "subtitle": "s.vtt", "output": "o.mp4"}
    described = asyncio.run(describe_request(data, _pipeline(probe, encoder)))
    assert encoder.calls == []
    assert described["encoding_mode"] == "reencode"
    assert described["filter_complex"].startswith("[0:v]subtitles='s.vtt'")
