"""Config validation errors."""
from mp_projections.kernel.errors import ApplicationError


class ConfigError(ApplicationError):
    """Settings could not be loaded, or a job was wired without what it needs."""
    default_code = "config_error"


class MissingRequiredSettingError(ConfigError):
    """An environment variable without a default is not set."""
    default_code = "missing_required_setting"

    def __init__(self, setting_name: str) -> None:
        super().__init__(f"Environment variable {setting_name} must be set", detail={"setting": setting_name})
        self.setting_name = setting_name


class InvalidSettingValueError(ConfigError):
    """A setting is present but unusable (unparsable or out of range)."""
    default_code = "invalid_setting_value"

    def __init__(self, setting_name: str, value: object, reason: str) -> None:
        super().__init__(
            f"{setting_name}={value!r} is invalid: {reason}",
            detail={"setting": setting_name, "reason": reason},
        )
        self.setting_name = setting_name
        self.value = value
        self.reason = reason


class MissingCollaboratorError(ConfigError):
    """An operation needs a collaborator (HTTP client, store, sink) that was not wired in."""
    default_code = "missing_collaborator"

    def __init__(self, collaborator: str, operation: str) -> None:
        super().__init__(f"{collaborator} is not provided. Cannot {operation}.")
        self.collaborator = collaborator
        self.operation = operation


__all__ = [
    "ConfigError",
    "InvalidSettingValueError",
    "MissingCollaboratorError",
    "MissingRequiredSettingError",
]
