"""Skin catalog and appearance resolution for remote avatars."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# blessed color names cycled through for catalog skins
_SKIN_COLORS = [
    "bold_cyan",
    "bold_magenta",
    "bold_blue",
    "bold_red",
    "bold_white",
    "bold_green",
]


@dataclass(frozen=True)
class Appearance:
    """How an avatar is drawn."""

    glyph: str
    color: str  # blessed color name like "bold_yellow"


# Used when no skin is set or the skin is not in the catalog
DEFAULT_APPEARANCE = Appearance(glyph="@", color="bold_yellow")


@dataclass(frozen=True)
class Skin:
    """A skin offered by the server."""

    id: str
    name: str


def parse_skins(data: Any) -> list[Skin]:
    """Parse the skin list returned by the skins endpoint, skipping bad rows."""
    if not isinstance(data, list):
        return []
    skins = []
    for item in data:
        if not isinstance(item, dict) or item.get("id") is None:
            continue
        skin_id = str(item["id"])
        skins.append(Skin(id=skin_id, name=str(item.get("name") or skin_id)))
    return skins


class SkinCatalog:
    """Maps skin ids to appearances."""

    def __init__(self, skins: list[Skin] | None = None) -> None:
        self._appearances: dict[str, Appearance] = {}
        self._skins: list[Skin] = []
        self.load(skins or [])

    def load(self, skins: list[Skin]) -> None:
        """Replace the catalog contents."""
        self._skins = list(skins)
        self._appearances = {}
        for index, skin in enumerate(self._skins):
            glyph = skin.name[:1].upper() or DEFAULT_APPEARANCE.glyph
            color = _SKIN_COLORS[index % len(_SKIN_COLORS)]
            self._appearances[skin.id] = Appearance(glyph=glyph, color=color)

    @property
    def skins(self) -> list[Skin]:
        return list(self._skins)

    def resolve(self, skin_id: str | None) -> Appearance:
        if skin_id is None:
            return DEFAULT_APPEARANCE
        return self._appearances.get(skin_id, DEFAULT_APPEARANCE)
