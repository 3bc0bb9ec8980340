"""Streaming video encoder for animated exports.

Frames are piped one by one into ffmpeg through MoviePy's ``FFMPEG_VideoWriter``
and land in a temporary file under ``TMP_DIR``. ``finalize`` hands back the
encoded bytes and removes the file; ``abort`` discards everything so a
cancelled run never leaves output behind.

Codec choice walks the configured preference list (VP9 first, like browser
captures) against the encoders the bundled ffmpeg binary actually provides.
"""

from __future__ import annotations

import subprocess
import uuid
from contextlib import suppress
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

import imageio_ffmpeg
import numpy as np
from moviepy.video.io.ffmpeg_writer import FFMPEG_VideoWriter

from ..config import settings
from ..errors import EncoderUnsupportedError, ExportError
from ..utils.log import log_debug, log_error


@dataclass(frozen=True)
class CodecChoice:
    codec: str
    container: str
    mime_type: str


CODECS: dict[str, CodecChoice] = {
    "libvpx-vp9": CodecChoice("libvpx-vp9", "webm", "video/webm"),
    "libvpx": CodecChoice("libvpx", "webm", "video/webm"),
    "libx264": CodecChoice("libx264", "mp4", "video/mp4"),
    "mpeg4": CodecChoice("mpeg4", "mp4", "video/mp4"),
}


@dataclass(frozen=True)
class EncodedVideo:
    data: bytes
    container: str
    codec: str
    mime_type: str
    frames: int


@lru_cache(maxsize=1)
def available_encoders() -> frozenset[str]:
    """Encoder names reported by ``ffmpeg -encoders``; empty when ffmpeg is unusable."""
    try:
        exe = imageio_ffmpeg.get_ffmpeg_exe()
        out = subprocess.run(
            [exe, "-hide_banner", "-encoders"],
            capture_output=True,
            text=True,
            check=True,
        ).stdout
    except (OSError, RuntimeError, subprocess.CalledProcessError) as e:
        log_error("ffmpeg_probe_failed", error=str(e))
        return frozenset()
    names = set()
    for line in out.splitlines():
        parts = line.split()
        # " V....D libx264   description"
        if len(parts) >= 2 and len(parts[0]) == 6 and parts[0][0] in "VAS":
            names.add(parts[1])
    return frozenset(names)


def select_codec(
    preference: Optional[Iterable[str]] = None,
    available: Optional[Iterable[str]] = None,
) -> CodecChoice:
    prefs = list(preference) if preference is not None else settings.codec_preference()
    have = frozenset(available) if available is not None else available_encoders()
    for name in prefs:
        if name in CODECS and name in have:
            return CODECS[name]
    raise EncoderUnsupportedError(
        f"no supported video encoder available (tried {', '.join(prefs) or 'nothing'})"
    )


class StreamingVideoEncoder:
    def __init__(
        self,
        width: int,
        height: int,
        fps: int,
        *,
        bitrate: Optional[int] = None,
        codec: Optional[CodecChoice] = None,
        tmp_dir: Optional[Path] = None,
    ):
        self.width = width
        self.height = height
        self.fps = fps
        self.bitrate = bitrate or settings.VIDEO_BITRATE
        self.codec = codec or select_codec()
        tmp = Path(tmp_dir or settings.TMP_DIR)
        tmp.mkdir(parents=True, exist_ok=True)
        self.path = tmp / f"{uuid.uuid4().hex}.{self.codec.container}"
        self.frames_written = 0
        self._closed = False
        try:
            self._writer = FFMPEG_VideoWriter(
                str(self.path),
                (width, height),
                fps,
                codec=self.codec.codec,
                bitrate=f"{self.bitrate // 1000}k",
                ffmpeg_params=["-pix_fmt", "yuv420p"],
            )
        except (OSError, RuntimeError) as e:
            self.path.unlink(missing_ok=True)
            raise ExportError(f"could not start {self.codec.codec} encoder: {e}") from e
        log_debug("encoder_opened", codec=self.codec.codec, path=self.path, size=(width, height), fps=fps)

    def write_frame(self, frame: np.ndarray) -> None:
        if self._closed:
            raise ExportError("encoder already closed")
        if frame.shape != (self.height, self.width, 3):
            raise ValueError(f"frame shape {frame.shape} != {(self.height, self.width, 3)}")
        try:
            self._writer.write_frame(np.ascontiguousarray(frame, dtype=np.uint8))
        except (OSError, RuntimeError) as e:
            self.abort()
            raise ExportError(f"encoder rejected frame {self.frames_written}: {e}") from e
        self.frames_written += 1

    def finalize(self) -> EncodedVideo:
        if self._closed:
            raise ExportError("encoder already closed")
        self._closed = True
        try:
            self._writer.close()
            data = self.path.read_bytes()
        except OSError as e:
            raise ExportError(f"encoder failed to finish: {e}") from e
        finally:
            self.path.unlink(missing_ok=True)
        if not data:
            raise ExportError("encoder produced no output")
        return EncodedVideo(
            data=data,
            container=self.codec.container,
            codec=self.codec.codec,
            mime_type=self.codec.mime_type,
            frames=self.frames_written,
        )

    def abort(self) -> None:
        if not self._closed:
            self._closed = True
            with suppress(OSError, RuntimeError):
                self._writer.close()
        self.path.unlink(missing_ok=True)
        log_debug("encoder_aborted", path=self.path, frames=self.frames_written)


__all__ = [
    "CodecChoice",
    "CODECS",
    "EncodedVideo",
    "available_encoders",
    "select_codec",
    "StreamingVideoEncoder",
]
