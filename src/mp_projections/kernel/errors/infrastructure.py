"""Infrastructure errors – remote services and payload decoding."""

from __future__ import annotations

from typing import Any

from mp_projections.kernel.errors.base import BaseError


class InfrastructureError(BaseError):
    """Infrastructure / I/O failure that is not a business rule violation."""

    default_code = "infrastructure_error"


class TimeoutError(InfrastructureError):  # noqa: A001
    """An I/O operation exceeded its deadline."""

    default_code = "infrastructure_timeout"


class SerializationError(InfrastructureError):
    """Failed to serialize or deserialize a payload."""

    default_code = "serialization_error"

    def __init__(
        self,
        message: str,
        *,
        payload_type: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.payload_type = payload_type


class ExternalServiceError(InfrastructureError):
    """A remote service was unreachable or answered with a non-success status."""

    default_code = "external_service_error"

    def __init__(
        self,
        service: str,
        message: str | None = None,
        *,
        status_code: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message or f"External service '{service}' error", **kwargs)
        self.service = service
        self.status_code = status_code


class BulkWriteError(InfrastructureError):
    """One or more writes of a bulk upsert failed.

    Raised only after every write of the batch has completed. ``failures``
    maps the id of each failed item to the exception its write raised.
    """

    default_code = "bulk_write_error"

    def __init__(
        self,
        failures: dict[Any, BaseException],
        *,
        total: int,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"{len(failures)} of {total} writes failed",
            detail={"failed_ids": [str(k) for k in failures]},
            **kwargs,
        )
        self.failures = failures
        self.total = total


__all__ = [
    "BulkWriteError",
    "ExternalServiceError",
    "InfrastructureError",
    "SerializationError",
    "TimeoutError",
]
