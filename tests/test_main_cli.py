import asyncio
import json
import pathlib
import sys

import pytest
import yaml

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from mediacompose.main import build_parser, main


def _write_request(tmp_path, data):
    path = tmp_path / "request.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


def test_parser_defaults():
    args = build_parser().parse_args(["req.yaml"])
    assert args.request_path == "req.yaml"
    assert args.output is None
    assert not args.dump_graph


def test_dump_graph_prints_merge_graph(tmp_path, capsys):
    request = _write_request(
        tmp_path, {"mode": "merge_video", "videos": ["a.mp4", "b.mp4"], "output": "j.mp4"}
    )
    asyncio.run(main([request, "--dump-graph"]))
    out = json.loads(capsys.readouterr().out)
    assert out["filter_complex"] == "[0:v][0:a][1:v][1:a]concat=n=2:v=1:a=1[outv][outa]"
    assert out["args"][-1] == "j.mp4"


def test_dump_graph_prints_audio_concat_list(tmp_path, capsys):
    request = _write_request(tmp_path, {"mode": "merge_audio", "audio": "x.mp3\ny.mp3"})
    asyncio.run(main([request, "--dump-graph", "-o", str(tmp_path / "m.mp3")]))
    out = json.loads(capsys.readouterr().out)
    assert out["concat_list"] == "file 'x.mp3'\nfile 'y.mp3'"


def test_unknown_mode_exits_with_error(tmp_path):
    request = _write_request(tmp_path, {"mode": "slideshow"})
    with pytest.raises(SystemExit) as excinfo:
        asyncio.run(main([request]))
    assert excinfo.value.code == 1


def test_invalid_config_override_exits_with_error(tmp_path):
    request = _write_request(
        tmp_path, {"mode": "merge_video", "videos": ["a.mp4"], "config": {"video": {"fps": 0}}}
    )
    with pytest.raises(SystemExit) as excinfo:
        asyncio.run(main([request, "--dump-graph"]))
    assert excinfo.value.code == 1
