"""Viewport presets and the filter expressions that select them."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

CATEGORIES = ("desktop", "tablet", "mobile")


class ViewportPreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int
    height: int
    name: str
    category: str

    @property
    def size(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


# Declaration order is the capture order.
VIEWPORTS: tuple[ViewportPreset, ...] = (
    ViewportPreset(width=1920, height=1080, name="desktop-1920x1080", category="desktop"),
    ViewportPreset(width=1440, height=900, name="desktop-1440x900", category="desktop"),
    ViewportPreset(width=1280, height=720, name="desktop-1280x720", category="desktop"),
    ViewportPreset(width=1024, height=1366, name="tablet-1024x1366", category="tablet"),
    ViewportPreset(width=820, height=1180, name="tablet-820x1180", category="tablet"),
    ViewportPreset(width=768, height=1024, name="tablet-768x1024", category="tablet"),
    ViewportPreset(width=414, height=896, name="mobile-414x896", category="mobile"),
    ViewportPreset(width=390, height=844, name="mobile-390x844", category="mobile"),
    ViewportPreset(width=375, height=812, name="mobile-375x812", category="mobile"),
)


def filter_viewports(spec: str) -> list[ViewportPreset]:
    """Select presets from a filter expression.

    ``"all"`` selects the whole catalog. Otherwise the expression is a
    comma-separated list where a category name selects that category and
    any other token selects presets whose name contains it
    (case-insensitive). Unknown tokens select nothing, so the result may
    be empty; callers treat that as a usage error.
    """
    tokens = [t.strip().lower() for t in (spec or "").split(",") if t.strip()]
    if "all" in tokens:
        return list(VIEWPORTS)

    selected: set[str] = set()
    for token in tokens:
        for preset in VIEWPORTS:
            if token in CATEGORIES:
                if preset.category == token:
                    selected.add(preset.name)
            elif token in preset.name.lower():
                selected.add(preset.name)

    return [p for p in VIEWPORTS if p.name in selected]

