from datetime import date, datetime

import pytest

from lifemarks.core.models import ASPECT_RATIOS, ExportConfig, Milestone, MilestoneCategory, StudioDocument, UserProfile
from lifemarks.core.scene import EllipseNode, ImageNode, LineNode, PlaceholderNode, TextNode, scale_node
from lifemarks.core.stats import compute_stat_payload
from lifemarks.core.templates import (
    TEMPLATES,
    SceneFlags,
    build_scene,
    derive_content,
    fit_lines,
    scene_for_config,
    title_class,
    wrap_lines,
)
from lifemarks.core.themes import resolve

NOW = datetime(2024, 5, 1, 10, 0)
PROFILE = UserProfile(name="Ada Lovelace", dob=date(1990, 3, 14), tob="06:30")


def _milestone(**overrides):
    data = dict(
        id="m1",
        title="Graduation",
        date=datetime(2024, 5, 13, 12),
        description="Walked across the stage after four long years of late nights and early lectures.",
        category=MilestoneCategory.EVENT,
        is_past=False,
    )
    data.update(overrides)
    return Milestone(**data)


def _scene(payload=None, template="classic", ratio="9:16", flags=SceneFlags(), profile=PROFILE, theme="light"):
    return build_scene(
        payload or _milestone(), resolve(theme), template, ratio, flags, profile=profile, now=NOW
    )


def _roles(scene):
    return {n.role for n in scene.nodes if isinstance(n, TextNode)}


def test_wrap_lines_greedy_and_hard_split():
    assert wrap_lines("one two three four", 9) == ["one two", "three", "four"]
    assert wrap_lines("abcdefghij", 4) == ["abcd", "efgh", "ij"]
    assert wrap_lines("", 5) == [""]


def test_fit_lines_adds_ellipsis_past_limit():
    lines = fit_lines("alpha beta gamma delta epsilon zeta", 11, 2)
    assert len(lines) == 2
    assert lines[-1].endswith("…")
    assert fit_lines("short", 10, 2) == ["short"]


def test_title_class_steps_down_with_length():
    assert title_class("x" * 10) == (120, 2)
    assert title_class("x" * 20) == (96, 3)
    assert title_class("x" * 50) == (72, 3)
    assert title_class("x" * 200) == (56, 4)


def test_scene_is_deterministic():
    assert _scene() == _scene()


# Decoration painted by the backdrop rather than stacked in the content column.
BACKDROP_ROLES = {"footer", "mrz", "watermark", "document_header"}


def _content_bottom_limit(scene):
    mrz = scene.text_by_role("mrz")
    return mrz[0].y if mrz else scene.text_by_role("footer")[0].y


def _hero_milestone():
    return _milestone(title="10,000 Days", value=10000, unit="Days", category=MilestoneCategory.NUMERIC)


@pytest.mark.parametrize("flags", [SceneFlags(), SceneFlags(show_stats=True, cosmic_overlay=True)],
                         ids=["default", "cosmic"])
@pytest.mark.parametrize("template", sorted(TEMPLATES))
@pytest.mark.parametrize("ratio", sorted(ASPECT_RATIOS))
def test_every_template_fits_every_ratio(template, ratio, flags):
    payloads = (_milestone(), _hero_milestone(), compute_stat_payload(PROFILE.birth_instant(), NOW))
    for payload in payloads:
        scene = _scene(payload, template, ratio, flags)
        w, h = ASPECT_RATIOS[ratio]
        assert (scene.width, scene.height) == (w, h)
        assert scene.template == template
        limit = _content_bottom_limit(scene)
        for node in scene.nodes_of(TextNode):
            assert node.x >= 0
            assert node.x + node.w <= w + 0.5
            assert node.y >= 0
            assert node.y + node.h <= h
            if node.role not in BACKDROP_ROLES:
                assert node.y + node.h <= limit + 0.5, (node.role, node.text)
        assert scene.text_by_role("footer")


def test_stat_grid_compresses_and_sheds_trailing_rows():
    flags = SceneFlags(show_stats=True, cosmic_overlay=True)
    full = [n.text for n in _scene(flags=flags).text_by_role("stat_label")]
    assert len(full) == 7
    square = _scene(ratio="1:1", flags=flags)
    labels = [n.text for n in square.text_by_role("stat_label")]
    assert labels and labels == full[: len(labels)]
    assert labels[0] == "EARTH ROTATIONS"
    values = square.text_by_role("stat_value")
    assert max(v.y + v.h for v in values) <= _content_bottom_limit(square)


def test_passport_field_list_stays_above_mrz():
    scene = _scene(template="passport", ratio="1:1")
    labels = [n.text for n in scene.text_by_role("stat_label")]
    assert labels == ["HOLDER", "CATEGORY", "EARTH ROTATIONS", "SUN ORBITS", "YEARS", "HOURS"]
    mrz_top = scene.text_by_role("mrz")[0].y
    rows = scene.text_by_role("stat_value")
    assert max(n.y + n.h for n in rows) <= mrz_top
    assert rows[0].size < 30


def test_overflowing_required_blocks_are_scaled_into_column():
    scene = _scene(_hero_milestone(), template="polaroid", ratio="1:1")
    hero = scene.text_by_role("hero")[0]
    assert hero.size < 110
    assert hero.y + hero.h <= _content_bottom_limit(scene)
    assert "stat_line" not in _roles(scene) or scene.text_by_role("stat_line")[0].size < 28


def test_unknown_template_or_ratio_raises():
    with pytest.raises(KeyError):
        _scene(template="scrapbook")
    with pytest.raises(KeyError):
        _scene(ratio="21:9")


def test_milestone_content():
    content = derive_content(_milestone(), PROFILE, SceneFlags(), NOW)
    assert content.eyebrow == "Milestone Ahead"
    assert content.badge == "in 12 days"
    assert content.title == "Graduation"
    labels = [label for label, _ in content.blocks]
    assert labels == ["Earth Rotations", "Sun Orbits", "Years", "Hours"]

    past = derive_content(_milestone(is_past=True, date=datetime(2024, 4, 28)), PROFILE, SceneFlags(), NOW)
    assert past.eyebrow == "Milestone Unlocked"
    assert past.badge == "3 days ago"


def test_numeric_milestone_has_hero_number():
    m = _milestone(title="10,000 Days", value=10000, unit="Days", category=MilestoneCategory.NUMERIC)
    scene = _scene(m)
    assert scene.text_by_role("hero")[0].text == "10,000"
    assert scene.text_by_role("hero_label")[0].text == "DAYS"


def test_stat_payload_scene():
    payload = compute_stat_payload(PROFILE.birth_instant(), NOW)
    scene = _scene(payload)
    assert "title" not in _roles(scene)
    assert scene.text_by_role("hero")[0].text == str(payload.years)
    assert scene.text_by_role("eyebrow")[0].text == "TOTAL EXISTENCE"
    assert scene.text_by_role("footer")[0].text == "LIFE TIMELINE OF ADA LOVELACE"
    labels = [n.text for n in scene.text_by_role("stat_label")]
    assert "SECONDS" in labels and "YEARS" not in labels


def test_cosmic_overlay_adds_rings_and_blocks():
    payload = compute_stat_payload(PROFILE.birth_instant(), NOW)
    plain = _scene(payload)
    cosmic = _scene(payload, flags=SceneFlags(cosmic_overlay=True))
    assert not plain.nodes_of(EllipseNode)
    assert len(cosmic.nodes_of(EllipseNode)) == 6
    labels = [n.text for n in cosmic.text_by_role("stat_label")]
    assert "EARTH ROTATIONS" in labels and "SUN ORBITS" in labels


def test_hide_stats_on_milestone():
    scene = _scene(flags=SceneFlags(show_stats=False))
    assert "stat_value" not in _roles(scene)
    assert "title" in _roles(scene)


def test_avatar_image_or_placeholder():
    with_avatar = UserProfile(name="Ada Lovelace", dob=date(1990, 3, 14), avatar="/photos/ada.png")
    scene = _scene(profile=with_avatar)
    images = scene.nodes_of(ImageNode)
    assert [i.asset for i in images] == ["avatar"]
    assert scene.asset_paths() == {"avatar": "/photos/ada.png"}

    scene = _scene()
    assert scene.asset_paths() == {}
    marks = [p.mark for p in scene.nodes_of(PlaceholderNode)]
    assert marks == ["AL"]


def test_cinematic_uses_cover_image_when_present():
    with_cover = UserProfile(name="Ada", dob=date(1990, 3, 14), cover="/photos/sky.jpg")
    scene = _scene(template="cinematic", profile=with_cover)
    assert scene.nodes_of(ImageNode)[0].asset == "cover"
    assert "cover" in scene.asset_paths()


def test_long_title_is_truncated():
    title = " ".join(["extraordinarily"] * 20)
    scene = _scene(_milestone(title=title))
    node = scene.text_by_role("title")[0]
    assert len(node.lines) <= 4
    assert node.lines[-1].endswith("…")


def test_small_canvas_drops_optional_blocks():
    tall = _scene(template="modern", ratio="9:16")
    square = _scene(template="modern", ratio="1:1")
    assert "description" in _roles(tall)
    assert tall.nodes_of(PlaceholderNode)
    assert "description" not in _roles(square)
    assert "badge" not in _roles(square)
    assert not square.nodes_of(PlaceholderNode)
    assert {"title", "date", "stat_value"} <= _roles(square)


def test_template_specific_features():
    assert "badge" not in _roles(_scene(template="minimal"))
    assert "stat_line" in _roles(_scene(template="minimal"))
    assert "watermark" in _roles(_scene(template="bold"))
    mrz = _scene(template="passport").text_by_role("mrz")[0]
    assert len(mrz.lines) == 2
    assert all(len(line) == 44 for line in mrz.lines)
    assert mrz.lines[0].startswith("P<LIFEADA<LOVELACE<<GRADUATION")


def test_scene_for_config_follows_config():
    cfg = ExportConfig(aspect_ratio="4:5", template="bold", theme="sunset")
    scene = scene_for_config(cfg, _milestone(), PROFILE, NOW)
    assert (scene.width, scene.height) == (1080, 1350)
    assert scene.template == "bold"
    assert scene.background[:3] == resolve("sunset").primary


def test_scene_from_document_with_offset_dates():
    doc = StudioDocument.from_dict({
        "profile": {"name": "Ada Lovelace", "dob": "1990-03-14", "tob": "06:30"},
        "milestones": [{"id": "m", "title": "Launch", "date": "2024-05-01T00:00:00.000Z"}],
    })
    scene = _scene(doc.milestones[0], profile=doc.profile)
    assert scene.text_by_role("title")[0].text == "Launch"
    assert scene.text_by_role("stat_value")


def test_scale_node_about_origin():
    text = TextNode(100, 200, 50, 20, text="x", size=10, color=(0, 0, 0, 255))
    small = scale_node(text, 0.5, 0, 100)
    assert (small.x, small.y, small.w, small.h, small.size) == (50, 150, 25, 10, 5)
    line = scale_node(LineNode(10, 100, 30, 140, color=(0, 0, 0, 255), width=4), 0.5, 10, 100)
    assert (line.x1, line.y1, line.x2, line.y2, line.width) == (10, 100, 20, 120, 2)
