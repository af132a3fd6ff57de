"""
Pipeline Configuration

Settings come from a YAML file (config/placelens.yaml by default) and can be
overridden per-deployment with environment variables (a .env file is loaded
first). The analytics switch lives here instead of in module-level state so
each CapturePipeline decides for itself whether to log recognition attempts.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = "config/placelens.yaml"


@dataclass
class PipelineConfig:
    data_dir: str = "data"
    photo_db_path: str = "data/places.db"
    analytics_db_path: str = "data/ocr_analysis.db"
    analytics_images_dir: str = "data/ocr_images"
    debug_analytics: bool = False

    search_radius_m: float = 500.0
    search_timeout_s: float = 8.0
    geocode_timeout_s: float = 8.0

    recognition_workers: int = 5
    ocr_languages: List[str] = field(default_factory=lambda: ['en'])
    ocr_gpu: bool = False

    nominatim_url: str = "https://nominatim.openstreetmap.org"
    user_agent: str = "placelens/0.1"

    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "PipelineConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _apply_env_overrides(config: PipelineConfig) -> PipelineConfig:
    """Apply PLACELENS_* environment variables on top of file settings."""
    data_dir = os.getenv('PLACELENS_DATA_DIR')
    if data_dir:
        config.data_dir = data_dir
        config.photo_db_path = str(Path(data_dir) / "places.db")
        config.analytics_db_path = str(Path(data_dir) / "ocr_analysis.db")
        config.analytics_images_dir = str(Path(data_dir) / "ocr_images")

    debug = os.getenv('PLACELENS_DEBUG_ANALYTICS')
    if debug is not None:
        config.debug_analytics = _env_bool(debug)

    search_timeout = os.getenv('PLACELENS_SEARCH_TIMEOUT')
    if search_timeout:
        config.search_timeout_s = float(search_timeout)

    geocode_timeout = os.getenv('PLACELENS_GEOCODE_TIMEOUT')
    if geocode_timeout:
        config.geocode_timeout_s = float(geocode_timeout)

    config.nominatim_url = os.getenv('PLACELENS_NOMINATIM_URL', config.nominatim_url)
    config.user_agent = os.getenv('PLACELENS_USER_AGENT', config.user_agent)

    gpu = os.getenv('PLACELENS_OCR_GPU')
    if gpu is not None:
        config.ocr_gpu = _env_bool(gpu)

    log_level = os.getenv('PLACELENS_LOG_LEVEL')
    if log_level:
        config.log_level = log_level.strip().upper()

    return config


def load_config(config_path: Optional[str] = DEFAULT_CONFIG_PATH) -> PipelineConfig:
    """
    Load pipeline configuration.

    Args:
        config_path: YAML file to read. A missing file (or None) yields the
                     defaults, still subject to environment overrides.

    Returns:
        PipelineConfig instance
    """
    load_dotenv()

    data = {}
    if config_path and os.path.exists(config_path):
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}

    return _apply_env_overrides(PipelineConfig.from_dict(data.get('pipeline', data)))
