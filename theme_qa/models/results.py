"""Result records exchanged between phases and reported by the orchestrator."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class PageRecord(BaseModel):
    """The temporary landing page created for one test run."""
    id: str
    preview_url: str
    edit_url: str = ""
    title: str = ""


class ScreenshotRecord(BaseModel):
    viewport: str
    category: str = ""
    width: int
    height: int
    path: str


class Issue(BaseModel):
    viewport: str
    screenshot: str = ""
    kind: str  # blank_render, horizontal_overflow, layout, ...
    severity: str = "warning"  # info, warning, error
    message: str = ""
    source: str = ""  # analyzer that raised it


class ViewportFailure(BaseModel):
    viewport: str
    error: str


class PhaseResult(BaseModel):
    """The one JSON object every phase emits."""
    phase: str
    success: bool = True
    summary: str = ""
    page_id: Optional[str] = None
    preview_url: Optional[str] = None
    edit_url: Optional[str] = None
    title: Optional[str] = None
    screenshots: list[ScreenshotRecord] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    failures: list[ViewportFailure] = Field(default_factory=list)
    deleted: Optional[bool] = None
    skipped: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def page_record(self) -> PageRecord | None:
        if not self.page_id or not self.preview_url:
            return None
        return PageRecord(
            id=self.page_id,
            preview_url=self.preview_url,
            edit_url=self.edit_url or "",
            title=self.title or "",
        )


class RunReport(BaseModel):
    success: bool = False
    state: str = "idle"
    states: list[str] = Field(default_factory=list)
    theme: str = ""
    viewports: str = ""
    page: Optional[PageRecord] = None
    screenshots: list[ScreenshotRecord] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    phases: dict[str, PhaseResult] = Field(default_factory=dict)
    error: Optional[str] = None
    error_kind: Optional[str] = None
    failed_phase: Optional[str] = None
    cleanup_error: Optional[str] = None
    summary: str = ""
    started_at: str = ""
    duration_seconds: float = 0.0
