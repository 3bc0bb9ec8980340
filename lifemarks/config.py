"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

load_dotenv()


OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", str(Path.home() / "Lifemarks")))
TMP_DIR = Path(os.getenv("TMP_DIR", str(Path(tempfile.gettempdir()) / "lifemarks")))


class Settings(BaseSettings):
    """Export engine settings read from environment variables."""

    OUTPUT_DIR: Path = Field(
        default=OUTPUT_DIR, description="Directory downloads are written to"
    )
    TMP_DIR: Path = Field(
        default=TMP_DIR, description="Scratch directory for in-flight encodes"
    )
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    FONT_FAMILY: str = Field(
        default="Inter", description="Preferred font family for every render target"
    )

    # Animated export
    VIDEO_FPS: int = Field(default=60, description="Frame rate of animated exports")
    VIDEO_BITRATE: int = Field(
        default=8_000_000, description="Target video bitrate in bits per second"
    )
    VIDEO_CODECS: str = Field(
        default="libvpx-vp9,libvpx,libx264,mpeg4",
        description="Comma separated encoder preference, most preferred first",
    )
    PARTICLE_COUNT: int = Field(
        default=70, description="Background particles seeded per animated run"
    )
    PARTICLE_SEED: int = Field(
        default=42, description="Seed for the background particle generator"
    )
    REALTIME_RENDER: bool = Field(
        default=True,
        description="Pace animated exports at the frame rate instead of as fast as possible",
    )

    # Preview / capture
    PREVIEW_PADDING: int = Field(
        default=20, description="Pixels kept free around the scaled preview"
    )
    PREVIEW_MAX_SCALE: float = Field(
        default=0.95, description="Upper bound of the preview scale factor"
    )
    CAPTURE_TEXT_OFFSET_PX: float = Field(
        default=0.0,
        description="Upward nudge applied to text layers in captured output only",
    )

    def codec_preference(self) -> list[str]:
        return [c.strip() for c in self.VIDEO_CODECS.split(",") if c.strip()]


settings = Settings()

__all__ = ["Settings", "settings", "OUTPUT_DIR", "TMP_DIR"]
