"""Root error class for the mp-projections error hierarchy."""

from __future__ import annotations

import json
from typing import Any, ClassVar


class BaseError(Exception):
    """Root of every error raised by mp_projections.

    Carries a machine-readable ``code`` (``default_code`` unless given), a
    JSON-safe ``detail`` mapping and the optional ``cause``. ``str()`` is a
    one-line JSON document, so an error bound onto a structlog event renders
    cleanly.
    """

    default_code: ClassVar[str] = "projections_error"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        detail: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or type(self).default_code
        self.detail: dict[str, Any] = dict(detail or {})
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def add_detail(self, **values: Any) -> "BaseError":
        """Attach extra context and return ``self`` (for ``raise err.add_detail(...)``)."""
        self.detail.update(values)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Plain dict for log lines and HTTP error bodies."""
        doc: dict[str, Any] = {"code": self.code, "message": self.message, "detail": self.detail}
        if self.cause is not None:
            doc["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return doc

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code}: {self.message!r})"


__all__ = ["BaseError"]
