"""Config validation errors."""
from mp_projections.config.validation.errors import (
    ConfigError,
    InvalidSettingValueError,
    MissingCollaboratorError,
    MissingRequiredSettingError,
)

__all__ = [
    "ConfigError",
    "InvalidSettingValueError",
    "MissingCollaboratorError",
    "MissingRequiredSettingError",
]
