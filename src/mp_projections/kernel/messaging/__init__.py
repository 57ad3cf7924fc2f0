"""Kernel messaging – undeliverable-work sink."""
from mp_projections.kernel.messaging.undeliverable import (
    InMemoryUndeliverableSink,
    UndeliverableEvent,
    UndeliverableSink,
)

__all__ = ["InMemoryUndeliverableSink", "UndeliverableEvent", "UndeliverableSink"]
