import pathlib
import sys

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from mediacompose.graph import LabelAllocator
from mediacompose.graph.escape import escape_subtitle_path


def test_escape_windows_path_with_quote():
    assert escape_subtitle_path("C:\\subs\\a's.srt") == "C\\:\\\\\\\\subs\\\\\\\\a\\'s.srt"


def test_escape_plain_posix_path_is_unchanged():
    assert escape_subtitle_path("/tmp/subs/movie.ass") == "/tmp/subs/movie.ass"


def test_escape_colon_only():
    assert escape_subtitle_path("a:b.srt") == "a\\:b.srt"


def test_label_allocator_is_deterministic_and_rejects_duplicates():
    labels = LabelAllocator()
    assert labels.allocate("v", 0) == "v0"
    assert labels.allocate("a", 3) == "a3"
    assert labels.allocate("outv") == "outv"
    assert "v0" in labels
    assert labels.issued == ("v0", "a3", "outv")
    with pytest.raises(ValueError):
        labels.allocate("v", 0)


@pytest.mark.parametrize("bad", ["", "0:v", "out v", "a[1]"])
def test_label_allocator_rejects_invalid_labels(bad):
    with pytest.raises(ValueError):
        LabelAllocator().allocate(bad)
