"""
mp_projections – Projection materialization for event-sourced services.

Import path convention::

    from mp_projections.kernel.events import Command, Event
    from mp_projections.application.projections import Projection, ProjectionInitializer
    from mp_projections.adapters.http import HttpxHttpClient
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
