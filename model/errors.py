"""Editing-session exceptions."""

from __future__ import annotations

from typing import Optional


class EditorError(RuntimeError):
    """Base error for the run editor."""


class LoadFailed(EditorError):
    """Raised when a document cannot be loaded into the session."""


class ParseFailed(LoadFailed):
    """Raised when source bytes are malformed or unreadable."""


class PageDecodeFailed(EditorError):
    """Raised when one page's glyph records cannot be decoded."""

    def __init__(self, page_index: int, message: str):
        super().__init__(f"page {page_index}: {message}")
        self.page_index = page_index


class DrawFailed(EditorError):
    """Raised when the reconstruction font rejects a run's text."""

    def __init__(self, message: str, run_id: Optional[str] = None):
        super().__init__(message)
        self.run_id = run_id


class ReconstructFailed(EditorError):
    """Raised when the edited document cannot be produced."""
