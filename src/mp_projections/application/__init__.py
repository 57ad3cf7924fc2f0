"""Application – projection materialization (framework-agnostic)."""

from mp_projections.application.projections import (
    ConvergenceReport,
    EventRequester,
    ExternalDataEvent,
    ExternalDataEventFactory,
    Projection,
    ProjectionInitializer,
)

__all__ = [
    "ConvergenceReport",
    "EventRequester",
    "ExternalDataEvent",
    "ExternalDataEventFactory",
    "Projection",
    "ProjectionInitializer",
]
