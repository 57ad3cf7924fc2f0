"""Application – Projections."""

from mp_projections.application.projections.external_data_event import (
    ExternalDataEvent,
    correlate,
    correlate_multi_service,
    correlate_remote,
    group_by_root,
    join_all,
)
from mp_projections.application.projections.factory import ExternalDataEventFactory
from mp_projections.application.projections.initializer import (
    ConvergenceReport,
    ProjectionInitializer,
)
from mp_projections.application.projections.projection import Projection, replay_onto_copy
from mp_projections.application.projections.requester import EventRequester
from mp_projections.application.projections.selectors import (
    NOT_YET_AVAILABLE,
    BoundIdSelector,
    IdSelector,
    ListIdSelector,
    normalize_id,
    safe_select_ids,
)
from mp_projections.application.projections.stores import (
    CurrentStateStore,
    EventSource,
    InMemoryCurrentStateStore,
    InMemoryEventSource,
    InMemoryProjectionStore,
    ProjectionStore,
)

__all__ = [
    "NOT_YET_AVAILABLE",
    "BoundIdSelector",
    "ConvergenceReport",
    "CurrentStateStore",
    "EventRequester",
    "EventSource",
    "ExternalDataEvent",
    "ExternalDataEventFactory",
    "IdSelector",
    "InMemoryCurrentStateStore",
    "InMemoryEventSource",
    "InMemoryProjectionStore",
    "ListIdSelector",
    "Projection",
    "ProjectionInitializer",
    "ProjectionStore",
    "correlate",
    "correlate_multi_service",
    "correlate_remote",
    "group_by_root",
    "join_all",
    "normalize_id",
    "replay_onto_copy",
    "safe_select_ids",
]
