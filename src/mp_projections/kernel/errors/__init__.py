"""Kernel error hierarchy – public re-export surface.

Hierarchy::

    BaseError
    ├── DomainError          (domain.py)
    │   └── ValidationError
    ├── ApplicationError     (application.py)
    │   └── ConfigError      (mp_projections.config.validation)
    └── InfrastructureError  (infrastructure.py)
        ├── TimeoutError
        ├── SerializationError
        ├── ExternalServiceError
        └── BulkWriteError
"""

from mp_projections.kernel.errors.application import ApplicationError
from mp_projections.kernel.errors.base import BaseError
from mp_projections.kernel.errors.domain import (
    DomainError,
    ValidationError,
)
from mp_projections.kernel.errors.infrastructure import (
    BulkWriteError,
    ExternalServiceError,
    InfrastructureError,
    SerializationError,
)
from mp_projections.kernel.errors.infrastructure import TimeoutError as InfrastructureTimeoutError

__all__ = [
    "ApplicationError",
    "BaseError",
    "BulkWriteError",
    "DomainError",
    "ExternalServiceError",
    "InfrastructureError",
    "InfrastructureTimeoutError",
    "SerializationError",
    "ValidationError",
]
