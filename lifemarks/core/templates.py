"""Template / layout resolver.

Every card template is a ``TemplateSpec`` record in ``TEMPLATES``; a single
composer interprets the record, so the seven visual variants differ in data
rather than in code paths:

    classic    centred, circular avatar, boxed date, 2-column stat grid
    modern     left aligned, accent bar, square avatar, stat row
    bold       poster palette on the primary colour, huge uppercase title
    minimal    typography only, inline stat line
    cinematic  full-bleed cover image (or gradient), letterbox, bottom anchored
    polaroid   instant-photo pastiche, caption under the picture
    passport   travel-document pastiche with photo box, field list and MRZ

Composition happens in three steps: derive template-independent ``CardContent``
from the payload, let the backdrop painter lay down decoration and hand back the
content column, then stack content blocks in that column. Blocks that do not fit
are dropped in a fixed order (description, badge, avatar), then the stat layout
compresses and sheds its trailing rows, so a small canvas degrades instead of
overflowing.

Scenes are pure functions of (payload, tokens, template, aspect ratio, flags,
profile, now); the same inputs always give an equal ``SceneDescription``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union

from .models import ASPECT_RATIOS, ExportConfig, Milestone, StatPayload, UserProfile
from .scene import (
    Color,
    EllipseNode,
    ImageNode,
    LineNode,
    PlaceholderNode,
    RectNode,
    SceneDescription,
    TextNode,
    rgba,
    scale_node,
)
from .stats import compute_cosmic, compute_elapsed
from .themes import ColorTokens, resolve
from ..utils.log import log_debug
from ..utils.timefmt import day_offset, describe_offset, format_count, format_date

Payload = Union[Milestone, StatPayload]

WHITE: Color = (255, 255, 255, 255)
BLACK: Color = (0, 0, 0, 255)

FOOTER_HEIGHT = 70
BLOCK_GAP = 40
# stat layouts compress to this fraction of their size before dropping rows
MIN_STAT_SCALE = 0.6

# (max title length, font size, max lines); the last row catches everything else
TITLE_CLASSES: Tuple[Tuple[Optional[int], int, int], ...] = (
    (14, 120, 2),
    (28, 96, 3),
    (56, 72, 3),
    (None, 56, 4),
)


@dataclass(frozen=True)
class SceneFlags:
    show_stats: bool = True
    cosmic_overlay: bool = False


@dataclass(frozen=True)
class TemplateSpec:
    id: str
    label: str
    align: str = "center"  # left | center
    anchor: str = "center"  # top | center | bottom
    backdrop: str = "pattern"  # plain | pattern | poster | cover | photo | document
    palette: str = "theme"  # theme | poster | overlay | paper
    eyebrow: str = "underline"  # underline | pill | caps | none
    title_scale: float = 1.0
    title_weight: int = 900
    uppercase_title: bool = False
    italic_title: bool = False
    date_pattern: str = "MMMM do, yyyy"
    date_style: str = "boxed"  # boxed | plain | mono
    avatar: str = "circle"  # circle | square | none
    stats: str = "grid"  # grid | row | minimal | list
    show_description: bool = False
    show_badge: bool = True
    accent_bar: bool = False
    identity_fields: bool = False


TEMPLATES: dict[str, TemplateSpec] = {
    t.id: t
    for t in (
        TemplateSpec("classic", "Classic"),
        TemplateSpec(
            "modern", "Modern",
            align="left", backdrop="plain", eyebrow="caps",
            date_pattern="dd.MM.yyyy", date_style="mono", avatar="square",
            stats="row", show_description=True, accent_bar=True,
        ),
        TemplateSpec(
            "bold", "Bold Poster",
            backdrop="poster", palette="poster", eyebrow="pill", title_scale=1.25,
            uppercase_title=True, date_style="plain", avatar="none", stats="row",
        ),
        TemplateSpec(
            "minimal", "Minimal",
            backdrop="plain", eyebrow="none", title_scale=0.8, title_weight=600,
            date_pattern="MMMM d, yyyy", date_style="plain", avatar="none",
            stats="minimal", show_badge=False,
        ),
        TemplateSpec(
            "cinematic", "Cinematic",
            align="left", anchor="bottom", backdrop="cover", palette="overlay",
            eyebrow="caps", title_scale=1.1, uppercase_title=True,
            date_style="plain", avatar="none", stats="row",
        ),
        TemplateSpec(
            "polaroid", "Polaroid",
            backdrop="photo", palette="paper", eyebrow="none", title_scale=0.55,
            title_weight=700, italic_title=True, date_pattern="MMM d, yyyy",
            date_style="plain", avatar="none", stats="minimal", show_badge=False,
        ),
        TemplateSpec(
            "passport", "Passport",
            align="left", anchor="top", backdrop="document", eyebrow="caps",
            title_scale=0.55, title_weight=800, uppercase_title=True,
            date_pattern="dd MMM yyyy", date_style="mono", avatar="none",
            stats="list", show_badge=False, identity_fields=True,
        ),
    )
}


def resolve_template(template_id: str) -> TemplateSpec:
    try:
        return TEMPLATES[template_id]
    except KeyError:
        raise KeyError(f"unknown template id {template_id!r}") from None


def available_templates() -> list[tuple[str, str]]:
    return [(t.id, t.label) for t in TEMPLATES.values()]


# --- Content -----------------------------------------------------------------


@dataclass(frozen=True)
class CardContent:
    eyebrow: str
    title: Optional[str]
    description: str
    date: Optional[datetime]
    badge: Optional[str]
    hero: Optional[Tuple[str, str]]  # (value, label)
    blocks: Tuple[Tuple[str, str], ...]  # (label, value)
    footer: str
    subject: str
    initials: str
    category: str
    year_mark: str


def initials_for(name: str) -> str:
    letters = [w[0] for w in name.split() if w and w[0].isalnum()][:2]
    return "".join(letters).upper() or "?"


def derive_content(
    payload: Payload, profile: UserProfile, flags: SceneFlags, now: datetime
) -> CardContent:
    birth = profile.birth_instant()
    subject = profile.name.strip() or "User"
    if isinstance(payload, StatPayload):
        if flags.show_stats:
            blocks = [
                (unit.capitalize(), format_count(count))
                for unit, count in payload.counts().items()
                if unit != "years"
            ]
        else:
            blocks = [
                ("Days Lived", format_count(payload.days)),
                ("Seconds Lived", format_count(payload.seconds)),
            ]
        if flags.cosmic_overlay:
            cosmic = compute_cosmic(birth, now)
            blocks += [
                ("Earth Rotations", format_count(cosmic.day_count)),
                ("Sun Orbits", cosmic.solar_years),
            ]
        return CardContent(
            eyebrow=payload.title,
            title=None,
            description="",
            date=None,
            badge=None,
            hero=(format_count(payload.years), "Years On Earth"),
            blocks=tuple(blocks),
            footer=f"Life Timeline of {subject}",
            subject=subject,
            initials=initials_for(subject),
            category=payload.kind.replace("_", " ").title(),
            year_mark=str(now.year),
        )

    blocks: List[Tuple[str, str]] = []
    if flags.show_stats:
        cosmic = compute_cosmic(birth, payload.date)
        elapsed = compute_elapsed(birth, payload.date)
        blocks += [
            ("Earth Rotations", format_count(cosmic.day_count)),
            ("Sun Orbits", cosmic.solar_years),
            ("Years", format_count(elapsed.years)),
            ("Hours", format_count(elapsed.hours)),
        ]
    if flags.cosmic_overlay:
        cosmic = compute_cosmic(birth, payload.date)
        blocks += [
            ("Hour-Hand Laps", format_count(cosmic.hour_hand_cycles)),
            ("Minute-Hand Laps", format_count(cosmic.minute_hand_cycles)),
            ("Second-Hand Laps", format_count(cosmic.second_hand_cycles)),
        ]
    hero = None
    if payload.value is not None and payload.unit:
        hero = (format_count(payload.value), payload.unit)
    footer = subject
    if payload.event_name:
        footer = f"{subject} · {payload.event_name}"
    return CardContent(
        eyebrow="Milestone Unlocked" if payload.is_past else "Milestone Ahead",
        title=payload.title,
        description=payload.description,
        date=payload.date,
        badge=describe_offset(day_offset(payload.date, now)),
        hero=hero,
        blocks=tuple(blocks),
        footer=footer,
        subject=subject,
        initials=initials_for(subject),
        category=payload.category.value,
        year_mark=str(payload.date.year),
    )


# --- Palette -----------------------------------------------------------------


@dataclass(frozen=True)
class Palette:
    background: Color
    text: Color
    muted: Color
    accent: Color
    border: Color
    box: Color
    on_accent: Color


def _luminance(c: Tuple[int, ...]) -> float:
    return 0.299 * c[0] + 0.587 * c[1] + 0.114 * c[2]


def palette_for(spec: TemplateSpec, tokens: ColorTokens) -> Palette:
    on_primary = WHITE if _luminance(tokens.primary) < 150 else rgba(tokens.text)
    if spec.palette == "poster":
        return Palette(
            background=rgba(tokens.primary),
            text=on_primary,
            muted=rgba(on_primary, 190),
            accent=on_primary,
            border=rgba(on_primary, 90),
            box=rgba(on_primary, 28),
            on_accent=rgba(tokens.primary),
        )
    if spec.palette == "overlay":
        return Palette(
            background=(8, 8, 12, 255),
            text=WHITE,
            muted=(255, 255, 255, 170),
            accent=rgba(tokens.primary) if _luminance(tokens.primary) > 60 else WHITE,
            border=(255, 255, 255, 50),
            box=(255, 255, 255, 20),
            on_accent=on_primary,
        )
    if spec.palette == "paper":
        return Palette(
            background=rgba(tokens.base),
            text=(24, 24, 27, 255),
            muted=(82, 82, 91, 255),
            accent=rgba(tokens.primary),
            border=rgba(tokens.border),
            box=WHITE,
            on_accent=on_primary,
        )
    return Palette(
        background=rgba(tokens.base),
        text=rgba(tokens.text),
        muted=rgba(tokens.muted),
        accent=rgba(tokens.primary),
        border=rgba(tokens.border),
        box=rgba(tokens.card, 200),
        on_accent=on_primary,
    )


# --- Text estimation ---------------------------------------------------------


def _glyph_factor(upper: bool, mono: bool = False) -> float:
    if mono:
        return 0.62
    return 0.64 if upper else 0.54


def estimate_width(text: str, size: float, *, upper: bool = False, mono: bool = False,
                   spacing: float = 0.0) -> float:
    return len(text) * size * (_glyph_factor(upper, mono) + spacing / 100.0)


def wrap_lines(text: str, chars_per_line: int) -> list[str]:
    """Greedy word wrap by character count; over-long words are hard split."""
    cpl = max(1, chars_per_line)
    lines: list[str] = []
    current = ""
    for word in text.split():
        while len(word) > cpl:
            if current:
                lines.append(current)
                current = ""
            lines.append(word[:cpl])
            word = word[cpl:]
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= cpl:
            current = candidate
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines or [""]


def fit_lines(text: str, chars_per_line: int, max_lines: int) -> list[str]:
    """Wrap and, past ``max_lines``, cut the last kept line with an ellipsis."""
    lines = wrap_lines(text, chars_per_line)
    if len(lines) <= max_lines:
        return lines
    kept = lines[:max_lines]
    last = kept[-1]
    if len(last) > chars_per_line - 1:
        last = last[: chars_per_line - 1]
    kept[-1] = last.rstrip(" .,;:-") + "…"
    return kept


def title_class(title: str) -> Tuple[int, int]:
    for limit, size, max_lines in TITLE_CLASSES:
        if limit is None or len(title) <= limit:
            return size, max_lines
    raise AssertionError("unreachable")  # pragma: no cover


# --- Layout ------------------------------------------------------------------


@dataclass(frozen=True)
class Column:
    x: float
    y: float
    w: float
    h: float


@dataclass
class _Block:
    height: float
    emit: Callable[[float], list]
    drop_rank: int = 0  # 0 = required; higher ranks are dropped first
    gap: float = BLOCK_GAP
    # rebuilds the block to fit a height, None when nothing useful fits
    shrink: Optional[Callable[[float], Optional["_Block"]]] = None


@dataclass
class _Ctx:
    spec: TemplateSpec
    pal: Palette
    tokens: ColorTokens
    content: CardContent
    profile: UserProfile
    flags: SceneFlags
    width: int
    height: int
    pad: float
    assets: dict


def _text(ctx: _Ctx, col: Column, y: float, lines: list[str], size: float, color: Color,
          *, role: str, weight: int = 400, line_height: float = 1.15, spacing: float = 0.0,
          mono: bool = False, italic: bool = False, opacity: float = 1.0,
          align: Optional[str] = None) -> TextNode:
    return TextNode(
        x=col.x,
        y=y,
        w=col.w,
        h=len(lines) * size * line_height,
        text="\n".join(lines),
        size=size,
        color=color,
        weight=weight,
        align=align or ctx.spec.align,
        line_height=line_height,
        letter_spacing=spacing,
        mono=mono,
        italic=italic,
        role=role,
        opacity=opacity,
    )


def _aligned_x(ctx: _Ctx, col: Column, w: float) -> float:
    if ctx.spec.align == "left":
        return col.x
    return col.x + (col.w - w) / 2


def _image_or_placeholder(ctx: _Ctx, keys: Tuple[str, ...], x: float, y: float, w: float,
                          h: float, *, shape: str, radius: float = 0.0,
                          stroke: Optional[Color] = None, stroke_width: float = 0.0,
                          mark_fill: Optional[Color] = None) -> list:
    for key in keys:
        path = getattr(ctx.profile, key)
        if path:
            ctx.assets[key] = str(path)
            return [ImageNode(x, y, w, h, asset=key, shape=shape, radius=radius,
                              stroke=stroke, stroke_width=stroke_width)]
    return [PlaceholderNode(
        x, y, w, h,
        mark=ctx.content.initials,
        fill=mark_fill or rgba(ctx.pal.accent, 40),
        color=ctx.pal.accent,
        shape=shape,
        radius=radius,
        stroke=stroke,
        stroke_width=stroke_width,
    )]


def _eyebrow_block(ctx: _Ctx, col: Column) -> Optional[_Block]:
    style = ctx.spec.eyebrow
    label = ctx.content.eyebrow.upper()
    if style == "none" or not label:
        return None
    size = 28.0
    spacing = 30.0
    text_w = min(col.w, estimate_width(label, size, upper=True, spacing=spacing))

    if style == "pill":
        pill_h = size * 1.15 + 28
        pill_w = min(col.w, text_w + 64)

        def emit_pill(y: float) -> list:
            x = _aligned_x(ctx, col, pill_w)
            return [
                RectNode(x, y, pill_w, pill_h, fill=ctx.pal.box, stroke=ctx.pal.border,
                         stroke_width=2, radius=pill_h / 2),
                _text(ctx, Column(x, y, pill_w, pill_h), y + 14, [label], size, ctx.pal.text,
                      role="eyebrow", weight=800, spacing=spacing, align="center"),
            ]

        return _Block(pill_h, emit_pill)

    if style == "underline":
        height = size * 1.15 + 16 + 3

        def emit_underline(y: float) -> list:
            x = _aligned_x(ctx, col, text_w)
            return [
                _text(ctx, col, y, [label], size, ctx.pal.text, role="eyebrow", weight=700,
                      spacing=spacing, opacity=0.6),
                LineNode(x, y + size * 1.15 + 14, x + text_w, y + size * 1.15 + 14,
                         color=rgba(ctx.pal.text, 150), width=3),
            ]

        return _Block(height, emit_underline)

    def emit_caps(y: float) -> list:
        return [_text(ctx, col, y, [label], size, ctx.pal.accent, role="eyebrow",
                      weight=800, spacing=spacing)]

    return _Block(size * 1.15, emit_caps, gap=24)


def _avatar_block(ctx: _Ctx, col: Column) -> Optional[_Block]:
    if ctx.spec.avatar == "none":
        return None
    size = 200.0
    shape = "circle" if ctx.spec.avatar == "circle" else "rounded"

    def emit(y: float) -> list:
        x = _aligned_x(ctx, col, size)
        return _image_or_placeholder(ctx, ("avatar",), x, y, size, size, shape=shape,
                                     radius=36, stroke=ctx.pal.accent, stroke_width=6)

    return _Block(size, emit, drop_rank=1)


def _accent_bar(ctx: _Ctx, col: Column, y: float, h: float) -> RectNode:
    return RectNode(col.x - 36, y, 12, h, fill=ctx.pal.accent, radius=6)


def _title_block(ctx: _Ctx, col: Column) -> Optional[_Block]:
    title = ctx.content.title
    if not title:
        return None
    spec = ctx.spec
    text = title.upper() if spec.uppercase_title else title
    base, max_lines = title_class(text)
    size = round(base * spec.title_scale, 1)
    cpl = max(4, int(col.w / (size * _glyph_factor(spec.uppercase_title))))
    lines = fit_lines(text, cpl, max_lines)
    height = len(lines) * size * 1.05

    def emit(y: float) -> list:
        nodes: list = []
        if spec.accent_bar:
            nodes.append(_accent_bar(ctx, col, y, height))
        nodes.append(_text(ctx, col, y, lines, size, ctx.pal.text, role="title",
                           weight=spec.title_weight, line_height=1.05,
                           italic=spec.italic_title))
        return nodes

    return _Block(height, emit)


def _description_block(ctx: _Ctx, col: Column) -> Optional[_Block]:
    if not ctx.spec.show_description or not ctx.content.description:
        return None
    size = 30.0
    cpl = max(8, int(col.w / (size * _glyph_factor(False))))
    lines = fit_lines(ctx.content.description, cpl, 3)

    def emit(y: float) -> list:
        return [_text(ctx, col, y, lines, size, ctx.pal.muted, role="description",
                      line_height=1.35)]

    return _Block(len(lines) * size * 1.35, emit, drop_rank=3)


def _hero_block(ctx: _Ctx, col: Column) -> Optional[_Block]:
    hero = ctx.content.hero
    if hero is None:
        return None
    value, label = hero
    size = 200.0 if ctx.content.title is None else 110.0
    label_size = 34.0

    def emit(y: float) -> list:
        return [
            _text(ctx, col, y, [value], size, ctx.pal.text, role="hero", weight=900,
                  line_height=1.0),
            _text(ctx, col, y + size + 12, [label.upper()], label_size, ctx.pal.accent,
                  role="hero_label", weight=800, spacing=40),
        ]

    return _Block(size + 12 + label_size * 1.15, emit)


def _date_block(ctx: _Ctx, col: Column) -> Optional[_Block]:
    when = ctx.content.date
    if when is None:
        return None
    spec = ctx.spec
    text = format_date(when, spec.date_pattern)
    if spec.date_style == "mono":
        text = text.upper()
        size = 38.0

        def emit_mono(y: float) -> list:
            return [_text(ctx, col, y, [text], size, ctx.pal.text, role="date", weight=600,
                          mono=True, spacing=10)]

        return _Block(size * 1.15, emit_mono)

    if spec.date_style == "plain":
        size = 40.0

        def emit_plain(y: float) -> list:
            return [_text(ctx, col, y, [text], size, ctx.pal.text, role="date", weight=600,
                          opacity=0.85)]

        return _Block(size * 1.15, emit_plain)

    size = 44.0
    box_h = size * 1.15 + 56
    box_w = min(col.w, estimate_width(text, size, mono=True) + 96)

    def emit_boxed(y: float) -> list:
        x = _aligned_x(ctx, col, box_w)
        return [
            RectNode(x, y, box_w, box_h, fill=(255, 255, 255, 26), stroke=ctx.pal.text,
                     stroke_width=3, radius=24),
            _text(ctx, Column(x, y, box_w, box_h), y + 28, [text], size, ctx.pal.text,
                  role="date", weight=700, mono=True, align="center"),
        ]

    return _Block(box_h, emit_boxed)


def _badge_block(ctx: _Ctx, col: Column) -> Optional[_Block]:
    badge = ctx.content.badge
    if not ctx.spec.show_badge or not badge:
        return None
    size = 26.0
    pill_h = size * 1.15 + 20
    pill_w = min(col.w, estimate_width(badge, size) + 56)

    def emit(y: float) -> list:
        x = _aligned_x(ctx, col, pill_w)
        return [
            RectNode(x, y, pill_w, pill_h, fill=rgba(ctx.pal.accent, 36), radius=pill_h / 2),
            _text(ctx, Column(x, y, pill_w, pill_h), y + 10, [badge], size, ctx.pal.accent,
                  role="badge", weight=700, align="center"),
        ]

    return _Block(pill_h, emit, drop_rank=2, gap=28)


def _stat_items(ctx: _Ctx) -> list[Tuple[str, str]]:
    items = list(ctx.content.blocks)
    if ctx.spec.identity_fields:
        items = [("Holder", ctx.content.subject.upper()), ("Category", ctx.content.category.upper())] + items
    return items


def _stats_block(ctx: _Ctx, col: Column) -> Optional[_Block]:
    items = _stat_items(ctx)
    if not items:
        return None
    arrangement = ctx.spec.stats
    if arrangement == "minimal":
        return _stat_line_block(ctx, col, items, 3)
    if arrangement == "list":
        return _stat_list_block(ctx, col, items, 1.0)
    return _stat_box_block(ctx, col, items, 1.0, _box_columns(arrangement, len(items), col.w))


def _stat_line_block(ctx: _Ctx, col: Column, items: list, max_lines: int) -> _Block:
    text = "  ·  ".join(f"{value} {label.lower()}" for label, value in items)
    size = 28.0
    line_h = size * 1.4
    cpl = max(8, int(col.w / (size * _glyph_factor(False))))
    lines = fit_lines(text, cpl, max_lines)

    def emit(y: float) -> list:
        return [_text(ctx, col, y, lines, size, ctx.pal.muted, role="stat_line", weight=500,
                      line_height=1.4)]

    def shrink(room: float) -> Optional[_Block]:
        fits = int(room // line_h)
        if fits < 1:
            return None
        return _stat_line_block(ctx, col, items, min(fits, len(lines)))

    return _Block(len(lines) * line_h, emit, shrink=shrink)


def _stat_list_block(ctx: _Ctx, col: Column, items: list, k: float) -> _Block:
    row_h = 62.0 * k
    label_size = 20.0 * k
    value_size = 30.0 * k
    pal = ctx.pal

    def emit(y: float) -> list:
        nodes: list = []
        for i, (label, value) in enumerate(items):
            ry = y + i * row_h
            nodes.append(_text(ctx, col, ry + 8 * k, [label.upper()], label_size, pal.muted,
                               role="stat_label", weight=700, spacing=20, align="left"))
            nodes.append(_text(ctx, col, ry + 2 * k, [value], value_size, pal.text,
                               role="stat_value", weight=700, mono=True, align="right"))
            nodes.append(LineNode(col.x, ry + row_h - 8 * k, col.x + col.w, ry + row_h - 8 * k,
                                  color=pal.border, width=2, dashed=True))
        return nodes

    def shrink(room: float) -> Optional[_Block]:
        # Compress rows first, then drop trailing ones (cosmic figures come last).
        for n in range(len(items), 0, -1):
            scale = min(1.0, room / (n * 62.0))
            if scale >= MIN_STAT_SCALE:
                return _stat_list_block(ctx, col, items[:n], scale)
        return None

    return _Block(len(items) * row_h, emit, shrink=shrink)


def _box_columns(arrangement: str, count: int, width: float) -> int:
    if arrangement != "row":
        return 2
    cols = min(4, count)
    if cols > 2 and (width - 30.0 * (cols - 1)) / cols < 200:
        cols = 2
    return cols


def _box_stack_height(rows: int, arrangement: str) -> float:
    box_h = 140.0 if arrangement == "row" else 150.0
    return rows * box_h + (rows - 1) * 30.0


def _stat_box_block(ctx: _Ctx, col: Column, items: list, k: float, cols: int) -> _Block:
    arrangement = ctx.spec.stats
    pal = ctx.pal
    if arrangement == "row":
        box_h, value_size, label_size = 140.0, 44.0, 20.0
    else:
        box_h, value_size, label_size = 150.0, 56.0, 22.0
    box_h, value_size, label_size = box_h * k, value_size * k, label_size * k
    margin = 28.0 * k
    gap = 30.0
    rows = math.ceil(len(items) / cols)
    box_w = (col.w - gap * (cols - 1)) / cols
    gap_y = gap * k

    def emit(y: float) -> list:
        nodes: list = []
        for idx, (label, value) in enumerate(items):
            r, c = divmod(idx, cols)
            bx = col.x + c * (box_w + gap)
            by = y + r * (box_h + gap_y)
            cell = Column(bx, by, box_w, box_h)
            vsize = value_size
            # Shrink long numbers so they stay inside the box.
            if estimate_width(value, vsize) > box_w - 32:
                vsize = max(24.0 * k, round((box_w - 32) / (len(value) * 0.54), 1))
            nodes.append(RectNode(bx, by, box_w, box_h, fill=pal.box, stroke=pal.border,
                                  stroke_width=2, radius=28 * k))
            nodes.append(_text(ctx, cell, by + margin, [value], vsize, pal.text, role="stat_value",
                               weight=800, align="center"))
            nodes.append(_text(ctx, cell, by + box_h - margin - label_size * 1.15, [label.upper()],
                               label_size, pal.muted, role="stat_label", weight=700,
                               spacing=15, align="center"))
        return nodes

    def shrink(room: float) -> Optional[_Block]:
        for n in range(len(items), 0, -1):
            scale = min(1.0, room / _box_stack_height(math.ceil(n / cols), arrangement))
            if scale >= MIN_STAT_SCALE:
                return _stat_box_block(ctx, col, items[:n], scale, cols)
        return None

    return _Block(rows * box_h + (rows - 1) * gap_y, emit, shrink=shrink)


def _content_blocks(ctx: _Ctx, col: Column) -> list[_Block]:
    builders = [
        _eyebrow_block,
        _avatar_block,
        _title_block,
        _description_block,
        _hero_block,
        _date_block,
        _badge_block,
    ]
    if ctx.flags.show_stats or ctx.spec.identity_fields or ctx.content.title is None:
        builders.append(_stats_block)
    blocks = [b(ctx, col) for b in builders]
    return [b for b in blocks if b is not None]


def _stack_height(blocks: list[_Block]) -> float:
    if not blocks:
        return 0.0
    return sum(b.height + b.gap for b in blocks) - blocks[-1].gap


def _fit(blocks: list[_Block], available: float) -> list[_Block]:
    blocks = list(blocks)
    while _stack_height(blocks) > available:
        droppable = [b for b in blocks if b.drop_rank > 0]
        if not droppable:
            break
        blocks.remove(max(droppable, key=lambda b: b.drop_rank))
    if _stack_height(blocks) > available:
        blocks = _shrink_elastic(blocks, available, allow_drop=False)
    if _stack_height(blocks) > available and len(blocks) > 1:
        # Still too tall: tighten gaps proportionally.
        content = sum(b.height for b in blocks)
        spare = max(0.0, available - content)
        gap = spare / (len(blocks) - 1)
        for b in blocks:
            b.gap = min(b.gap, gap)
    if _stack_height(blocks) > available:
        blocks = _shrink_elastic(blocks, available, allow_drop=True)
    return blocks


def _shrink_elastic(blocks: list[_Block], available: float, *, allow_drop: bool) -> list[_Block]:
    for i, block in enumerate(blocks):
        if block.shrink is None:
            continue
        room = available - (_stack_height(blocks) - block.height)
        smaller = block.shrink(room) if room > 0 else None
        out = list(blocks)
        if smaller is not None:
            smaller.gap = block.gap
            out[i] = smaller
        elif allow_drop:
            del out[i]
        return out
    return blocks


# --- Backdrops ---------------------------------------------------------------


def _default_column(ctx: _Ctx) -> Column:
    return Column(ctx.pad, ctx.pad, ctx.width - 2 * ctx.pad, ctx.height - 2 * ctx.pad - FOOTER_HEIGHT)


def _backdrop_plain(ctx: _Ctx) -> Tuple[list, Column]:
    col = _default_column(ctx)
    if ctx.spec.accent_bar:
        col = Column(col.x + 24, col.y, col.w - 24, col.h)
    return [], col


def _backdrop_pattern(ctx: _Ctx) -> Tuple[list, Column]:
    nodes: list = []
    step = 90
    line = rgba(ctx.pal.border, 90)
    for x in range(step, ctx.width, step):
        nodes.append(LineNode(x, 0, x, ctx.height, color=line, width=1))
    for y in range(step, ctx.height, step):
        nodes.append(LineNode(0, y, ctx.width, y, color=line, width=1))
    nodes.append(RectNode(0, 0, ctx.width, ctx.height,
                          gradient=(rgba(ctx.pal.accent, 0), rgba(ctx.pal.accent, 28))))
    return nodes, _default_column(ctx)


def _backdrop_poster(ctx: _Ctx) -> Tuple[list, Column]:
    w, h = ctx.width, ctx.height
    mark_size = round(w * 0.42, 1)
    nodes: list = [
        TextNode(0, h * 0.04, w, mark_size, text=ctx.content.year_mark, size=mark_size,
                 color=ctx.pal.text, weight=900, role="watermark", opacity=0.08,
                 line_height=1.0),
    ]
    for i in range(3):
        offset = i * 28
        nodes.append(LineNode(0, h - FOOTER_HEIGHT - 40 - offset, w, h - FOOTER_HEIGHT - 40 - offset,
                              color=rgba(ctx.pal.text, 60), width=6))
    return nodes, _default_column(ctx)


def _backdrop_cover(ctx: _Ctx) -> Tuple[list, Column]:
    w, h = ctx.width, ctx.height
    bar = round(h * 0.05, 1)
    nodes: list = []
    if ctx.profile.cover:
        ctx.assets["cover"] = str(ctx.profile.cover)
        nodes.append(ImageNode(0, 0, w, h, asset="cover"))
    else:
        nodes.append(RectNode(0, 0, w, h, gradient=(rgba(ctx.tokens.primary), (2, 6, 23, 255)),
                              gradient_direction="diagonal"))
        mark = w * 0.5
        nodes.append(PlaceholderNode((w - mark) / 2, h * 0.18, mark, mark,
                                     mark=ctx.content.initials, fill=(255, 255, 255, 18),
                                     color=(255, 255, 255, 90), shape="circle"))
    nodes.append(RectNode(0, 0, w, h, gradient=((0, 0, 0, 40), (0, 0, 0, 230))))
    nodes.append(RectNode(0, 0, w, bar, fill=BLACK))
    nodes.append(RectNode(0, h - bar, w, bar, fill=BLACK))
    col = Column(ctx.pad, bar + ctx.pad, w - 2 * ctx.pad, h - 2 * bar - 2 * ctx.pad - FOOTER_HEIGHT)
    return nodes, col


def _backdrop_photo(ctx: _Ctx) -> Tuple[list, Column]:
    w, h = ctx.width, ctx.height
    inset = 40.0
    caption_h = 260.0
    photo = min(w * 0.78 - 2 * inset, (h - FOOTER_HEIGHT) * 0.9 - inset - caption_h)
    card_w = photo + 2 * inset
    card_h = inset + photo + caption_h
    card_x = (w - card_w) / 2
    card_y = (h - FOOTER_HEIGHT - card_h) / 2
    nodes: list = [
        RectNode(card_x + 6, card_y + 18, card_w, card_h, fill=(0, 0, 0, 45), radius=10),
        RectNode(card_x, card_y, card_w, card_h, fill=WHITE, stroke=(0, 0, 0, 20),
                 stroke_width=1, radius=6),
        RectNode(w / 2 - 90, card_y - 26, 180, 52, fill=(255, 255, 255, 150),
                 stroke=(0, 0, 0, 25), stroke_width=1),
    ]
    nodes += _image_or_placeholder(ctx, ("cover", "avatar"), card_x + inset, card_y + inset,
                                   photo, photo, shape="rect",
                                   mark_fill=rgba(ctx.tokens.primary, 60))
    col = Column(card_x + inset, card_y + inset + photo + 28, photo, caption_h - 56)
    return nodes, col


def _mrz_lines(ctx: _Ctx) -> list[str]:
    def clean(s: str) -> str:
        return "".join(ch if ch.isalnum() else "<" for ch in s.upper())

    title = ctx.content.title or ctx.content.eyebrow
    line1 = f"P<LIFE{clean(ctx.content.subject)}<<{clean(title)}"
    when = ctx.content.date or ctx.profile.birth_instant()
    birth = ctx.profile.birth_instant()
    line2 = (
        f"{format_date(birth, 'yyyyMMdd')[2:]}<{format_date(when, 'yyyyMMdd')[2:]}"
        f"<{clean(ctx.content.category)}"
    )
    return [line1.ljust(44, "<")[:44], line2.ljust(44, "<")[:44]]


def _backdrop_document(ctx: _Ctx) -> Tuple[list, Column]:
    w, h = ctx.width, ctx.height
    m = ctx.pad * 0.6
    doc = Column(m, m, w - 2 * m, h - 2 * m - FOOTER_HEIGHT)
    header_h = 110.0
    inner = 48.0
    pal = ctx.pal
    nodes: list = [
        RectNode(doc.x, doc.y, doc.w, doc.h, fill=rgba(ctx.tokens.card), stroke=pal.border,
                 stroke_width=3, radius=32),
        RectNode(doc.x, doc.y, doc.w, header_h, fill=pal.accent, radius=32),
        RectNode(doc.x, doc.y + header_h - 32, doc.w, 32, fill=pal.accent),
        TextNode(doc.x + inner, doc.y + 34, doc.w - 2 * inner, 42, text="PASSPORT · PASSEPORT",
                 size=36, color=pal.on_accent, weight=800, align="left", letter_spacing=25,
                 role="document_header"),
        TextNode(doc.x + inner, doc.y + 34, doc.w - 2 * inner, 42, text="LIFE",
                 size=36, color=pal.on_accent, weight=900, align="right", letter_spacing=25,
                 role="document_header"),
    ]
    photo_w = doc.w * 0.3
    photo_h = photo_w * 1.28
    px, py = doc.x + inner, doc.y + header_h + inner
    nodes += _image_or_placeholder(ctx, ("avatar",), px, py, photo_w, photo_h, shape="rounded",
                                   radius=12, stroke=pal.border, stroke_width=3)
    mrz_size = 30.0
    mrz_top = doc.y + doc.h - inner - 2 * mrz_size * 1.3
    nodes.append(RectNode(doc.x, mrz_top - 24, doc.w, doc.y + doc.h - mrz_top + 24,
                          fill=rgba(ctx.tokens.input, 160), radius=32))
    nodes.append(TextNode(doc.x + inner, mrz_top, doc.w - 2 * inner, 2 * mrz_size * 1.3,
                          text="\n".join(_mrz_lines(ctx)), size=mrz_size, color=pal.text,
                          weight=600, align="left", line_height=1.3, mono=True, role="mrz"))
    col_x = px + photo_w + inner
    col = Column(col_x, py, doc.x + doc.w - inner - col_x, mrz_top - 48 - py)
    return nodes, col


BACKDROPS: dict[str, Callable[[_Ctx], Tuple[list, Column]]] = {
    "plain": _backdrop_plain,
    "pattern": _backdrop_pattern,
    "poster": _backdrop_poster,
    "cover": _backdrop_cover,
    "photo": _backdrop_photo,
    "document": _backdrop_document,
}


def _orbit_rings(ctx: _Ctx) -> list:
    cx, cy = ctx.width / 2, ctx.height / 2
    ring = rgba(ctx.pal.accent, 45)
    nodes: list = []
    for i, (frac, angle) in enumerate(((0.32, 30), (0.44, 150), (0.56, 260))):
        r = ctx.width * frac
        nodes.append(EllipseNode(cx - r, cy - r, 2 * r, 2 * r, stroke=ring, stroke_width=2))
        dot = 14 + 6 * i
        px = cx + r * math.cos(math.radians(angle))
        py = cy + r * math.sin(math.radians(angle))
        nodes.append(EllipseNode(px - dot / 2, py - dot / 2, dot, dot,
                                 fill=rgba(ctx.pal.accent, 160)))
    return nodes


def _footer(ctx: _Ctx) -> TextNode:
    size = 24.0
    return TextNode(
        ctx.pad, ctx.height - ctx.pad * 0.6 - size * 1.15 - 12, ctx.width - 2 * ctx.pad,
        size * 1.15, text=ctx.content.footer.upper(), size=size, color=ctx.pal.muted,
        weight=700, align="center", letter_spacing=30, role="footer", opacity=0.7,
    )


# --- Entry points ------------------------------------------------------------


def build_scene(
    payload: Payload,
    tokens: ColorTokens,
    template_id: str,
    aspect_ratio: str,
    flags: SceneFlags,
    *,
    profile: UserProfile,
    now: datetime,
) -> SceneDescription:
    """Resolve a template into a fully positioned scene.

    Raises ``KeyError`` for an unknown template id or aspect ratio.
    """
    spec = resolve_template(template_id)
    width, height = ASPECT_RATIOS[aspect_ratio]
    pal = palette_for(spec, tokens)
    ctx = _Ctx(
        spec=spec,
        pal=pal,
        tokens=tokens,
        content=derive_content(payload, profile, flags, now),
        profile=profile,
        flags=flags,
        width=width,
        height=height,
        pad=round(width * 0.09, 1),
        assets={},
    )
    nodes, col = BACKDROPS[spec.backdrop](ctx)
    if flags.cosmic_overlay:
        nodes += _orbit_rings(ctx)

    blocks = _fit(_content_blocks(ctx, col), col.h)
    total = _stack_height(blocks)
    if spec.anchor == "top":
        y = col.y
    elif spec.anchor == "bottom":
        y = col.y + col.h - total
    else:
        y = col.y + (col.h - total) / 2
    y = max(col.y, y)
    content: list = []
    for block in blocks:
        content += block.emit(y)
        y += block.height + block.gap
    if total > col.h:
        # Required blocks alone overflow: scale the whole stack into the column.
        ox = col.x if spec.align == "left" else col.x + col.w / 2
        content = [scale_node(n, col.h / total, ox, col.y) for n in content]
    nodes += content
    nodes.append(_footer(ctx))

    scene = SceneDescription(
        width=width,
        height=height,
        background=pal.background,
        nodes=tuple(nodes),
        template=spec.id,
        aspect_ratio=aspect_ratio,
        assets=tuple(sorted(ctx.assets.items())),
    )
    log_debug("scene_built", template=spec.id, ratio=aspect_ratio, nodes=len(scene.nodes))
    return scene


def scene_for_config(
    config: ExportConfig, payload: Payload, profile: UserProfile, now: datetime
) -> SceneDescription:
    return build_scene(
        payload,
        resolve(config.theme),
        config.template,
        config.aspect_ratio,
        SceneFlags(show_stats=config.show_stats, cosmic_overlay=config.cosmic_overlay),
        profile=profile,
        now=now,
    )


__all__ = [
    "SceneFlags",
    "TemplateSpec",
    "TEMPLATES",
    "CardContent",
    "Palette",
    "resolve_template",
    "available_templates",
    "derive_content",
    "palette_for",
    "wrap_lines",
    "fit_lines",
    "title_class",
    "build_scene",
    "scene_for_config",
]
