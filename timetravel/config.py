"""Configuration loading for the time travel map."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class TrackingConfig(BaseModel):
    indi_tags: list[str] = Field(default_factory=lambda: [
        "BIRT", "CHR", "BAPM", "DEAT", "BURI", "CREM",
        "RESI", "EDUC", "OCCU", "CENS", "EVEN",
    ])
    fam_tags: list[str] = Field(default_factory=lambda: [
        "MARR", "DIV", "CENS", "RESI", "EVEN",
    ])


class QueryConfig(BaseModel):
    default_generations: int = 5
    min_generations: int = 3
    max_generations: int = 100
    max_alive_age: int = 120  # years after birth before someone is presumed dead


class LayoutConfig(BaseModel):
    base_radius_px: float = 50.0
    radius_step_px: float = 30.0
    golden_angle_deg: float = 137.5
    single_bearing_deg: float = -90.0  # north
    max_radius_deg: float = 0.045  # ~5 km of latitude
    cluster_radius_px: float = 80.0
    fit_padding_px: int = 100
    initial_fit_padding_px: int = 50
    view_width: int = 1200
    view_height: int = 800
    min_zoom: int = 0
    max_zoom: int = 18


class PlaybackConfig(BaseModel):
    base_delay: float = 0.5  # seconds between steps at speed 1
    speeds: list[int] = Field(default_factory=lambda: [1, 2, 5, 10])
    default_speed: int = 1


class HistogramConfig(BaseModel):
    assumed_lifespan: int = 100


class RecordingConfig(BaseModel):
    output_dir: str = "data/recordings"
    ready_timeout: float = 30.0
    frame_duration_ms: int = 120


class Config(BaseModel):
    db_path: str = "data/timetravel.db"
    profile_url_template: str = "individual/{xref}"
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    histogram: HistogramConfig = Field(default_factory=HistogramConfig)
    recording: RecordingConfig = Field(default_factory=RecordingConfig)

    @property
    def resolved_db_path(self) -> Path:
        """Resolve db_path relative to project root."""
        p = Path(self.db_path)
        if p.is_absolute():
            return p
        return _project_root() / p

    @property
    def resolved_output_dir(self) -> Path:
        p = Path(self.recording.output_dir).expanduser()
        if p.is_absolute():
            return p
        return _project_root() / p


def _project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


def load_config(config_path: Path | None = None) -> Config:
    """Load config from YAML file. Falls back to defaults if file missing."""
    if config_path is None:
        config_path = _project_root() / "config.yaml"

    if config_path.exists():
        raw: dict[str, Any] = yaml.safe_load(config_path.read_text()) or {}
        return Config(**raw)

    return Config()
