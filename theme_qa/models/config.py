"""Configuration models for the theme QA workflow."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from theme_qa.errors import ConfigError

ENV_URL = "MAUTIC_URL"
ENV_USERNAME = "MAUTIC_USERNAME"
ENV_PASSWORD = "MAUTIC_PASSWORD"


def _resolve_env_ref(v):
    if isinstance(v, str) and v.startswith("env:"):
        env_var = v[4:]
        resolved = os.environ.get(env_var)
        if resolved is None:
            raise ValueError(f"Environment variable '{env_var}' not set")
        return resolved
    return v


class ControlLookup(BaseModel):
    """One row -> control lookup against an accessibility snapshot."""

    row_role: Optional[str] = None
    row_name: Optional[str] = None  # substring; "{id}" / "{theme}" are filled in
    row_quoted_text: Optional[str] = None
    control_roles: list[str] = Field(default_factory=lambda: ["button"])
    control_name: Optional[str] = None
    control_name_exact: bool = False
    search_window: int = 8
    direction: Literal["forward", "backward"] = "forward"


class MauticUiProfile(BaseModel):
    """Paths, selectors and resolver parameters for the Mautic admin UI."""

    login_path: str = "/s/login"
    new_page_path: str = "/s/pages/new"
    pages_list_path: str = "/s/pages"
    pages_list_query: str = "?search=ids:{id}"
    edit_path: str = "/s/pages/edit/{id}"
    preview_path: str = "/page/preview/{id}"
    page_id_pattern: str = r"/pages/(?:edit|view)/(\d+)"

    username_selector: str = "#username"
    password_selector: str = "#password"
    login_submit_selector: str = "button[type='submit']"
    title_selector: str = "#page_title"
    save_selector: str = "#page_buttons_apply_toolbar"

    # Theme card: heading carrying the theme name, "Select" button after it
    theme_select: ControlLookup = Field(default_factory=lambda: ControlLookup(
        row_role="heading", row_name="{theme}",
        control_roles=["button", "link"], control_name="Select",
        search_window=8, direction="forward",
    ))
    # Listing row: id cell, row-action dropdown trigger before it
    row_actions: ControlLookup = Field(default_factory=lambda: ControlLookup(
        row_quoted_text="{id}",
        control_roles=["button"], control_name=None,
        search_window=12, direction="backward",
    ))
    # Opened dropdown: "Delete" entry between the trigger and the id cell
    delete_action: ControlLookup = Field(default_factory=lambda: ControlLookup(
        row_quoted_text="{id}",
        control_roles=["link", "menuitem", "button"], control_name="Delete",
        control_name_exact=True, search_window=20, direction="backward",
    ))
    # Confirmation modal
    confirm_delete: ControlLookup = Field(default_factory=lambda: ControlLookup(
        row_role="dialog",
        control_roles=["button"], control_name="Delete",
        control_name_exact=True, search_window=20, direction="forward",
    ))


class PhaseTimeouts(BaseModel):
    setup: float = 60
    create: float = 180
    capture: float = 900
    cleanup: float = 180


class AnalysisConfig(BaseModel):
    blank_threshold: int = 8  # max luminance spread still considered blank
    vision: bool = False
    vision_model: str = "claude-opus-4-6"
    vision_max_tokens: int = 1500


class QAConfig(BaseModel):
    # Target
    mautic_url: str = ""
    username: str = ""
    password: str = ""

    # Run defaults
    theme: str = "1270-logan-mautic"
    screenshot_dir: str = "./screenshots"
    marker_path: str = ".theme-qa/current-page-id"
    headless: bool = True

    # Capture
    capture_policy: Literal["abort", "continue"] = "abort"
    capture_concurrency: int = 1
    settle_ms: int = 500

    timeouts: PhaseTimeouts = Field(default_factory=PhaseTimeouts)
    ui: MauticUiProfile = Field(default_factory=MauticUiProfile)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)

    @field_validator("mautic_url", "username", "password", mode="before")
    @classmethod
    def resolve_env_values(cls, v):
        return _resolve_env_ref(v)

    @field_validator("mautic_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("capture_concurrency")
    @classmethod
    def positive_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("capture_concurrency must be >= 1")
        return v

    def model_post_init(self, __context) -> None:
        if not self.mautic_url:
            self.mautic_url = os.environ.get(ENV_URL, "").rstrip("/")
        if not self.username:
            self.username = os.environ.get(ENV_USERNAME, "")
        if not self.password:
            self.password = os.environ.get(ENV_PASSWORD, "")

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def require_credentials(self) -> None:
        missing = []
        if not self.mautic_url:
            missing.append(f"mautic_url ({ENV_URL})")
        if not self.username:
            missing.append(f"username ({ENV_USERNAME})")
        if not self.password:
            missing.append(f"password ({ENV_PASSWORD})")
        if missing:
            raise ConfigError("Missing configuration: " + ", ".join(missing))

    def url(self, path: str, **params) -> str:
        """Build an absolute URL for a profile path template."""
        return self.mautic_url + path.format(**params)

    @classmethod
    def load(cls, path: str | Path) -> "QAConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    @classmethod
    def from_sources(cls, path: str | Path | None = None, **overrides) -> "QAConfig":
        """Merge an optional JSON file, the environment and explicit overrides.

        Overrides whose value is None are ignored so CLI options that were
        not given do not clobber file values.
        """
        data: dict = {}
        if path is not None and Path(path).exists():
            with open(path) as f:
                data = json.load(f)
        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**data)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file. Credentials stay in the environment."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(exclude={"username", "password"}), f, indent=2)
