import numpy as np
import pytest

from lifemarks.errors import EncoderUnsupportedError
from lifemarks.media.encoder import CODECS, StreamingVideoEncoder, available_encoders, select_codec


def test_select_codec_prefers_first_available():
    choice = select_codec(["libvpx-vp9", "libx264"], available={"libx264", "libvpx-vp9"})
    assert choice.codec == "libvpx-vp9"
    assert choice.container == "webm"
    assert choice.mime_type == "video/webm"


def test_select_codec_falls_back_to_mp4():
    choice = select_codec(["libvpx-vp9", "libvpx", "libx264"], available={"libx264", "aac"})
    assert choice == CODECS["libx264"]
    assert choice.mime_type == "video/mp4"


def test_select_codec_ignores_unknown_names():
    choice = select_codec(["prores", "mpeg4"], available={"prores", "mpeg4"})
    assert choice.codec == "mpeg4"


def test_select_codec_raises_when_nothing_matches():
    with pytest.raises(EncoderUnsupportedError):
        select_codec(["libvpx-vp9"], available=set())


def _real_codec():
    have = available_encoders()
    for name in ("mpeg4", "libx264", "libvpx"):
        if name in have:
            return CODECS[name]
    pytest.skip("bundled ffmpeg exposes no usable encoder")


def test_streaming_encode_small_clip(tmp_path):
    codec = _real_codec()
    enc = StreamingVideoEncoder(64, 48, 10, codec=codec, tmp_dir=tmp_path)
    for i in range(10):
        frame = np.full((48, 64, 3), i * 20, dtype=np.uint8)
        enc.write_frame(frame)
    video = enc.finalize()
    assert video.frames == 10
    assert video.container == codec.container
    assert len(video.data) > 0
    assert list(tmp_path.iterdir()) == []


def test_wrong_frame_shape_is_rejected(tmp_path):
    codec = _real_codec()
    enc = StreamingVideoEncoder(64, 48, 10, codec=codec, tmp_dir=tmp_path)
    with pytest.raises(ValueError):
        enc.write_frame(np.zeros((64, 48, 3), dtype=np.uint8))
    enc.abort()


def test_abort_leaves_nothing_behind(tmp_path):
    codec = _real_codec()
    enc = StreamingVideoEncoder(64, 48, 10, codec=codec, tmp_dir=tmp_path)
    enc.write_frame(np.zeros((48, 64, 3), dtype=np.uint8))
    enc.abort()
    assert list(tmp_path.iterdir()) == []
