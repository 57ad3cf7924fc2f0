"""Config settings – Settings base class and ProjectionSettings."""
from __future__ import annotations

import dataclasses
from typing import ClassVar

from mp_projections.config.validation.errors import InvalidSettingValueError


@dataclasses.dataclass
class Settings:
    """Base class for 12-factor settings."""

    _prefix: ClassVar[str] = ""

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        """Override to add cross-field validation."""


@dataclasses.dataclass
class ProjectionSettings(Settings):
    """Tuning knobs for projection initialization.

    Loaded from ``PROJECTIONS_*`` environment variables by
    :class:`~mp_projections.config.settings.loaders.EnvSettingsLoader`,
    e.g. ``PROJECTIONS_BATCH_SIZE=500``.
    """

    _prefix: ClassVar[str] = "PROJECTIONS"

    batch_size: int = 1000
    """Ids per batch when rebuilding a projection container."""

    max_convergence_iterations: int = 10
    """Upper bound on init attempts in :meth:`ProjectionInitializer.converge_uninitialized`."""

    convergence_delay_seconds: float = 1.0
    """Pause before the final requery that confirms convergence."""

    http_timeout_seconds: float = 10.0

    apply_batch_size: int = 100
    """Projections per bulk write when one event is applied to many projections."""

    def _validate(self) -> None:
        if self.batch_size < 1:
            raise InvalidSettingValueError("batch_size", self.batch_size, "must be >= 1")
        if self.max_convergence_iterations < 1:
            raise InvalidSettingValueError(
                "max_convergence_iterations", self.max_convergence_iterations, "must be >= 1"
            )
        if self.convergence_delay_seconds < 0:
            raise InvalidSettingValueError(
                "convergence_delay_seconds", self.convergence_delay_seconds, "must not be negative"
            )
        if self.http_timeout_seconds <= 0:
            raise InvalidSettingValueError("http_timeout_seconds", self.http_timeout_seconds, "must be positive")
        if self.apply_batch_size < 1:
            raise InvalidSettingValueError("apply_batch_size", self.apply_batch_size, "must be >= 1")


__all__ = ["ProjectionSettings", "Settings"]
