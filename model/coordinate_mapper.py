"""Document <-> viewport coordinate mapping.

Document space: origin bottom-left, unscaled PDF units.
Viewport space: origin top-left, scaled by the zoom factor.

A run is anchored at its baseline origin in document space but an on-screen
element is positioned by its top-left corner, hence the ``- height`` in the
vertical flip. Every function here is pure; the page height is always passed
in, never looked up.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple, Union

from model.text_run import DocRect, TextRun

MIN_ZOOM = 0.5
MAX_ZOOM = 2.0
DEFAULT_ZOOM = 1.0
ZOOM_STEP = 0.2

EDITOR_MIN_WIDTH = 80.0
EDITOR_HEIGHT_FACTOR = 1.5
EDITOR_BASE_FONT_PX = 12.0


@dataclass(frozen=True, slots=True)
class ViewportRect:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class EditorGeometry:
    """On-screen box of an overlay text editor."""

    x: float
    y: float
    width: float
    height: float
    font_px: float


def clamp_zoom(zoom: float) -> float:
    try:
        value = float(zoom)
    except (TypeError, ValueError):
        raise ValueError(f"invalid zoom factor: {zoom!r}") from None
    if math.isnan(value):
        raise ValueError("zoom factor is NaN")
    return max(MIN_ZOOM, min(MAX_ZOOM, value))


def zoom_in(zoom: float) -> float:
    return clamp_zoom(round(clamp_zoom(zoom) + ZOOM_STEP, 2))


def zoom_out(zoom: float) -> float:
    return clamp_zoom(round(clamp_zoom(zoom) - ZOOM_STEP, 2))


def _as_doc_rect(rect: Union[TextRun, DocRect]) -> DocRect:
    if isinstance(rect, TextRun):
        return rect.doc_rect
    return rect


def map_doc_to_viewport(rect: Union[TextRun, DocRect], zoom: float, page_height: float) -> ViewportRect:
    z = clamp_zoom(zoom)
    r = _as_doc_rect(rect)
    return ViewportRect(
        x=r.x * z,
        y=(page_height - r.y - r.height) * z,
        width=r.width * z,
        height=r.height * z,
    )


def map_viewport_to_doc(rect: ViewportRect, zoom: float, page_height: float) -> DocRect:
    z = clamp_zoom(zoom)
    height = rect.height / z
    return DocRect(
        x=rect.x / z,
        y=page_height - rect.y / z - height,
        width=rect.width / z,
        height=height,
    )


def map_viewport_point_to_doc(x: float, y: float, zoom: float, page_height: float) -> Tuple[float, float]:
    z = clamp_zoom(zoom)
    return x / z, page_height - y / z


def editor_geometry(rect: ViewportRect, zoom: float) -> EditorGeometry:
    return EditorGeometry(
        x=rect.x,
        y=rect.y,
        width=max(rect.width, EDITOR_MIN_WIDTH),
        height=rect.height * EDITOR_HEIGHT_FACTOR,
        font_px=EDITOR_BASE_FONT_PX * clamp_zoom(zoom),
    )


@dataclass(frozen=True, slots=True)
class ViewportTransformState:
    """Zoom and page height for one render pass; recomputed, never persisted."""

    zoom_factor: float = DEFAULT_ZOOM
    page_height: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "zoom_factor", clamp_zoom(self.zoom_factor))

    def to_viewport(self, rect: Union[TextRun, DocRect]) -> ViewportRect:
        return map_doc_to_viewport(rect, self.zoom_factor, self.page_height)

    def to_document(self, rect: ViewportRect) -> DocRect:
        return map_viewport_to_doc(rect, self.zoom_factor, self.page_height)

    def point_to_document(self, x: float, y: float) -> Tuple[float, float]:
        return map_viewport_point_to_doc(x, y, self.zoom_factor, self.page_height)
