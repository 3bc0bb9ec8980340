"""Theme resolver: theme id -> colour tokens.

Tokens are stored as RGB component triples, the single source of truth for
both render backends. ``css()`` produces the ``"r g b"`` form the web app's
stylesheet variables used; raster code uses ``rgba()`` or ``packed()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

RGB = Tuple[int, int, int]

TOKEN_NAMES = ("base", "card", "text", "muted", "primary", "border", "input")


@dataclass(frozen=True)
class ColorTokens:
    id: str
    name: str
    base: RGB
    card: RGB
    text: RGB
    muted: RGB
    primary: RGB
    border: RGB
    input: RGB

    def _get(self, token: str) -> RGB:
        if token not in TOKEN_NAMES:
            raise KeyError(f"unknown colour token {token!r}")
        return getattr(self, token)

    def css(self, token: str) -> str:
        r, g, b = self._get(token)
        return f"{r} {g} {b}"

    def hex(self, token: str) -> str:
        r, g, b = self._get(token)
        return f"#{r:02x}{g:02x}{b:02x}"

    def packed(self, token: str) -> int:
        r, g, b = self._get(token)
        return (r << 16) | (g << 8) | b

    def rgba(self, token: str, alpha: int = 255) -> tuple[int, int, int, int]:
        r, g, b = self._get(token)
        return (r, g, b, alpha)

    def is_dark(self) -> bool:
        r, g, b = self.base
        return (0.299 * r + 0.587 * g + 0.114 * b) < 128


def _theme(id: str, name: str, **tokens: RGB) -> ColorTokens:
    return ColorTokens(id=id, name=name, **tokens)


THEMES: Dict[str, ColorTokens] = {
    t.id: t
    for t in (
        _theme(
            "light", "Basic Light",
            base=(248, 250, 252), card=(255, 255, 255), text=(15, 23, 42),
            muted=(100, 116, 139), primary=(79, 70, 229), border=(226, 232, 240),
            input=(241, 245, 249),
        ),
        _theme(
            "dark", "Basic Dark",
            base=(15, 23, 42), card=(30, 41, 59), text=(248, 250, 252),
            muted=(148, 163, 184), primary=(99, 102, 241), border=(51, 65, 85),
            input=(51, 65, 85),
        ),
        _theme(
            "amoled", "Amoled Night",
            base=(0, 0, 0), card=(10, 10, 10), text=(255, 255, 255),
            muted=(163, 163, 163), primary=(255, 255, 255), border=(51, 51, 51),
            input=(23, 23, 23),
        ),
        _theme(
            "acidic", "Acidic",
            base=(10, 10, 10), card=(17, 17, 17), text=(204, 255, 0),
            muted=(170, 255, 0), primary=(217, 70, 239), border=(51, 51, 51),
            input=(34, 34, 34),
        ),
        _theme(
            "cyberpunk", "Cyberpunk",
            base=(5, 5, 16), card=(11, 11, 30), text=(0, 243, 255),
            muted=(255, 0, 153), primary=(252, 238, 10), border=(31, 31, 58),
            input=(21, 21, 46),
        ),
        _theme(
            "retro", "Retro Game",
            base=(139, 172, 15), card=(155, 188, 15), text=(15, 56, 15),
            muted=(48, 98, 48), primary=(15, 56, 15), border=(48, 98, 48),
            input=(139, 172, 15),
        ),
        _theme(
            "futuristic", "Futuristic",
            base=(0, 18, 32), card=(0, 30, 54), text=(224, 242, 254),
            muted=(125, 211, 252), primary=(0, 225, 255), border=(0, 74, 124),
            input=(0, 43, 77),
        ),
        _theme(
            "historical", "Old Age",
            base=(245, 230, 211), card=(232, 220, 197), text=(74, 59, 42),
            muted=(139, 90, 43), primary=(139, 69, 19), border=(212, 197, 169),
            input=(212, 197, 169),
        ),
        _theme(
            "nature", "Forest",
            base=(240, 253, 244), card=(255, 255, 255), text=(20, 83, 45),
            muted=(74, 222, 128), primary=(22, 163, 74), border=(187, 247, 208),
            input=(220, 252, 231),
        ),
        _theme(
            "ocean", "Ocean",
            base=(236, 254, 255), card=(255, 255, 255), text=(22, 78, 99),
            muted=(6, 182, 212), primary=(8, 145, 178), border=(207, 250, 254),
            input=(224, 242, 254),
        ),
        _theme(
            "sunset", "Sunset",
            base=(255, 241, 242), card=(255, 255, 255), text=(136, 19, 55),
            muted=(251, 113, 133), primary=(219, 39, 119), border=(254, 205, 211),
            input=(255, 228, 230),
        ),
    )
}


def resolve(theme_id: str) -> ColorTokens:
    """Look up a theme. Unknown ids are a programmer error and raise KeyError."""
    try:
        return THEMES[theme_id]
    except KeyError:
        raise KeyError(f"unknown theme id {theme_id!r}") from None


def available_themes() -> list[tuple[str, str]]:
    return [(t.id, t.name) for t in THEMES.values()]


__all__ = ["ColorTokens", "THEMES", "TOKEN_NAMES", "resolve", "available_themes"]
