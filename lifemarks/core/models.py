"""Data model for the export engine.

Milestones and the user profile are supplied by external collaborators (the
profile store and the milestone generator) and are treated as immutable once
selected for export. ``StudioDocument`` is the JSON hand-off format between
those collaborators and the export studio.

Pixel dimensions are only ever derived from ``ASPECT_RATIOS`` and
``QUALITY_TIERS``; nothing else in the engine invents canvas sizes.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime, time
from enum import Enum
from pathlib import Path
from typing import Any, List, Mapping, Optional

from ..config import settings

ASPECT_RATIOS: dict[str, tuple[int, int]] = {
    "1:1": (1080, 1080),
    "4:5": (1080, 1350),
    "9:16": (1080, 1920),
}

QUALITY_TIERS: dict[str, int] = {
    "standard": 1,
    "high": 2,
    "ultra": 4,
}

VIDEO_DURATIONS = (5, 10, 15)

VIDEO_STYLES = ("cinematic", "neon", "minimal", "cosmic", "retro")

STAT_UNITS = ("years", "months", "weeks", "days", "hours", "minutes", "seconds")


class MilestoneCategory(str, Enum):
    AGE = "Age"
    BIRTHDAY = "Birthday"
    NUMERIC = "Numeric"
    CUSTOM = "Custom"
    EVENT = "Event"
    PLANETARY = "Planetary"


class OutputKind(str, Enum):
    STATIC = "static"
    ANIMATED = "animated"


class StaticFormat(str, Enum):
    PNG = "png"
    SVG = "svg"
    PDF = "pdf"


@dataclass(frozen=True)
class Milestone:
    id: str
    title: str
    date: datetime
    description: str = ""
    category: MilestoneCategory = MilestoneCategory.CUSTOM
    is_past: bool = False
    color: str = "#4f46e5"
    value: Optional[int] = None
    unit: Optional[str] = None
    event_name: Optional[str] = None

    def __post_init__(self):
        # Engine arithmetic runs on naive local time; offsets are folded in here.
        if self.date.tzinfo is not None:
            object.__setattr__(self, "date", self.date.astimezone().replace(tzinfo=None))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        data["category"] = self.category.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Milestone":
        raw_date = data["date"]
        if isinstance(raw_date, datetime):
            when = raw_date
        else:
            # toISOString() style "Z" suffix
            text = raw_date[:-1] + "+00:00" if raw_date.endswith("Z") else raw_date
            when = datetime.fromisoformat(text)
        return cls(
            id=str(data["id"]),
            title=data["title"],
            date=when,
            description=data.get("description", ""),
            category=MilestoneCategory(data.get("category", "Custom")),
            is_past=bool(data.get("is_past", False)),
            color=data.get("color", "#4f46e5"),
            value=data.get("value"),
            unit=data.get("unit"),
            event_name=data.get("event_name"),
        )


@dataclass(frozen=True)
class UserProfile:
    name: str
    dob: date
    tob: str = "12:00"
    avatar: Optional[str] = None  # image path
    cover: Optional[str] = None  # image path
    theme: str = "light"

    def birth_instant(self) -> datetime:
        """Combine date and time of birth; raises ValueError on a malformed time."""
        parts = self.tob.split(":")
        if len(parts) != 2:
            raise ValueError(f"time of birth must be HH:MM, got {self.tob!r}")
        return datetime.combine(self.dob, time(int(parts[0]), int(parts[1])))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["dob"] = self.dob.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserProfile":
        raw = data["dob"]
        dob = raw if isinstance(raw, date) else date.fromisoformat(raw)
        return cls(
            name=data.get("name", "User"),
            dob=dob,
            tob=data.get("tob", "12:00"),
            avatar=data.get("avatar"),
            cover=data.get("cover"),
            theme=data.get("theme", "light"),
        )


@dataclass(frozen=True)
class StatPayload:
    """Unit name -> count payload for non-milestone exports."""

    years: int = 0
    months: int = 0
    weeks: int = 0
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    title: str = "Total Existence"
    kind: str = "total_existence"

    def __post_init__(self):
        for unit in STAT_UNITS:
            value = getattr(self, unit)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{unit} must be a non-negative integer, got {value!r}")

    def counts(self) -> dict[str, int]:
        return {unit: getattr(self, unit) for unit in STAT_UNITS}

    @classmethod
    def from_elapsed(cls, elapsed, **extra) -> "StatPayload":
        return cls(**{unit: getattr(elapsed, unit) for unit in STAT_UNITS}, **extra)


@dataclass(frozen=True)
class ExportConfig:
    aspect_ratio: str = "9:16"
    template: str = "classic"
    theme: str = "light"
    output: OutputKind = OutputKind.STATIC
    static_format: StaticFormat = StaticFormat.PNG
    quality: str = "high"
    show_stats: bool = True
    cosmic_overlay: bool = False
    duration: int = 10  # seconds
    video_style: str = "cinematic"
    frame_rate: int = field(default_factory=lambda: settings.VIDEO_FPS)

    def __post_init__(self):
        if self.aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(f"unknown aspect ratio {self.aspect_ratio!r}")
        if self.quality not in QUALITY_TIERS:
            raise ValueError(f"unknown quality tier {self.quality!r}")
        if self.duration not in VIDEO_DURATIONS:
            raise ValueError(f"duration must be one of {VIDEO_DURATIONS}")
        if self.frame_rate <= 0:
            raise ValueError("frame_rate must be positive")
        # Accept plain strings from UI widgets / JSON.
        object.__setattr__(self, "output", OutputKind(self.output))
        object.__setattr__(self, "static_format", StaticFormat(self.static_format))
        if self.video_style not in VIDEO_STYLES:
            raise ValueError(f"unknown video style {self.video_style!r}")

    @property
    def pixel_density(self) -> int:
        return QUALITY_TIERS[self.quality]

    def canvas_size(self) -> tuple[int, int]:
        return ASPECT_RATIOS[self.aspect_ratio]

    def pixel_size(self) -> tuple[int, int]:
        w, h = self.canvas_size()
        d = self.pixel_density
        return w * d, h * d

    def total_frames(self) -> int:
        return self.duration * self.frame_rate

    def replace(self, **changes: Any) -> "ExportConfig":
        return replace(self, **changes)


@dataclass(frozen=True)
class RenderedArtifact:
    data: bytes
    filename: str
    mime_type: str
    kind: OutputKind

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")


@dataclass
class StudioDocument:
    profile: UserProfile
    milestones: List[Milestone] = field(default_factory=list)
    version: int = 1

    def find(self, milestone_id: str) -> Milestone:
        for m in self.milestones:
            if m.id == milestone_id:
                return m
        raise KeyError(milestone_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "profile": self.profile.to_dict(),
            "milestones": [m.to_dict() for m in self.milestones],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StudioDocument":
        return cls(
            profile=UserProfile.from_dict(data["profile"]),
            milestones=[Milestone.from_dict(m) for m in data.get("milestones", [])],
            version=data.get("version", 1),
        )

    def save(self, path: str | Path) -> None:
        p = Path(path)
        p.write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(cls, path: str | Path) -> "StudioDocument":
        p = Path(path)
        data = json.loads(p.read_text())
        return cls.from_dict(data)


__all__ = [
    "ASPECT_RATIOS",
    "QUALITY_TIERS",
    "VIDEO_DURATIONS",
    "VIDEO_STYLES",
    "STAT_UNITS",
    "MilestoneCategory",
    "OutputKind",
    "StaticFormat",
    "Milestone",
    "UserProfile",
    "StatPayload",
    "ExportConfig",
    "RenderedArtifact",
    "StudioDocument",
]
