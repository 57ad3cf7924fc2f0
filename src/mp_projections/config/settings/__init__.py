"""Config settings – 12-factor env-based configuration."""
from mp_projections.config.settings.base import ProjectionSettings, Settings
from mp_projections.config.settings.loaders import (
    DotenvSettingsLoader,
    EnvSettingsLoader,
    SettingsLoader,
    load_projection_settings,
)

__all__ = [
    "DotenvSettingsLoader",
    "EnvSettingsLoader",
    "ProjectionSettings",
    "Settings",
    "SettingsLoader",
    "load_projection_settings",
]
