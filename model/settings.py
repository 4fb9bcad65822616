"""Tunable layout policy and load limits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

Color = Tuple[float, float, float]

WHITE: Color = (1.0, 1.0, 1.0)
BLACK: Color = (0.0, 0.0, 0.0)
RED: Color = (1.0, 0.0, 0.0)


def _clamp_color(value, fallback: Color) -> Color:
    try:
        r, g, b = (float(c) for c in value)
    except (TypeError, ValueError):
        return fallback
    return (max(0.0, min(1.0, r)), max(0.0, min(1.0, g)), max(0.0, min(1.0, b)))


@dataclass(slots=True)
class ReconstructionSettings:
    """Layout constants used when decoding runs and rebuilding pages.

    The multipliers approximate ascent + descent + leading; they are policy,
    not measured typography.
    """

    line_height_factor: float = 1.2
    default_run_width: float = 100.0
    occlusion_pad_left: float = 2.0
    occlusion_pad_width: float = 10.0
    occlusion_descent_factor: float = 0.2
    occlusion_height_factor: float = 1.4
    font_name: str = "helv"  # Base-14 Helvetica, WinAnsi encoding
    placeholder_text: str = "[TEXT ERROR]"
    text_color: Color = BLACK
    placeholder_color: Color = RED
    occlusion_color: Color = WHITE

    def normalized(self) -> "ReconstructionSettings":
        """Return a sanitized copy used by the decoder and reconstructor."""
        return ReconstructionSettings(
            line_height_factor=max(0.1, float(self.line_height_factor)),
            default_run_width=max(0.0, float(self.default_run_width)),
            occlusion_pad_left=max(0.0, float(self.occlusion_pad_left)),
            occlusion_pad_width=max(0.0, float(self.occlusion_pad_width)),
            occlusion_descent_factor=max(0.0, float(self.occlusion_descent_factor)),
            occlusion_height_factor=max(0.0, float(self.occlusion_height_factor)),
            font_name=(self.font_name or "helv").strip() or "helv",
            placeholder_text=self.placeholder_text or "[TEXT ERROR]",
            text_color=_clamp_color(self.text_color, BLACK),
            placeholder_color=_clamp_color(self.placeholder_color, RED),
            occlusion_color=_clamp_color(self.occlusion_color, WHITE),
        )


@dataclass(slots=True)
class LoadSettings:
    """Limits applied when a document is opened."""

    max_file_bytes: int = 10 * 1024 * 1024
    load_timeout_ms: int = 15000
    extract_batch_size: int = 5

    def normalized(self) -> "LoadSettings":
        return LoadSettings(
            max_file_bytes=max(1, int(self.max_file_bytes)),
            load_timeout_ms=max(0, int(self.load_timeout_ms)),
            extract_batch_size=max(1, int(self.extract_batch_size)),
        )
