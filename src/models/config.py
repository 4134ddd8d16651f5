"""Configuration models for the test engine."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720


class BrowserConfig(BaseModel):
    base_url: Optional[str] = None
    headless: bool = True
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    args: list[str] = Field(default_factory=list)


class ExecutionConfig(BaseModel):
    # All durations in milliseconds
    action_timeout: int = 30000
    navigation_timeout: int = 30000
    page_load_wait: int = 1000
    child_test_delay: int = 500
    step_delay: int = 500

    # Independent failure policies
    stop_on_failure: bool = False
    stop_on_child_failure: bool = False

    @field_validator(
        "action_timeout", "navigation_timeout", "page_load_wait",
        "child_test_delay", "step_delay",
    )
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("durations must be non-negative milliseconds")
        return v


class ScreenshotConfig(BaseModel):
    enabled: bool = True
    full_page: bool = True
    capture_before_submit: bool = True
    capture_after_submit: bool = True
    capture_on_failure: bool = True
    capture_dialogs: bool = True
    cleanup_before_run: bool = False
    success_path: str = "./results/successes"
    failure_path: str = "./results/failures"
    dialog_path: str = "./results/dialogs"


class ReportConfig(BaseModel):
    formats: list[str] = Field(default_factory=lambda: ["html", "json"])
    output_dir: str = "./results"


class PathsConfig(BaseModel):
    test_config_root: Optional[str] = None


class EngineConfig(BaseModel):
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    screenshots: ScreenshotConfig = Field(default_factory=ScreenshotConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)

    @classmethod
    def load(cls, path: str | Path) -> "EngineConfig":
        """Load config from a JSON (or YAML) file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
