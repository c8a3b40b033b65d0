"""Error types raised by the EMI calculator."""

from __future__ import annotations

from typing import Optional


class LoanValidationError(ValueError):
    """Raised when loan inputs are outside the domain the engine accepts.

    Subclassing ``ValueError`` keeps it compatible with callers that already
    treat bad numeric input as a ``ValueError``. ``field`` names the offending
    parameter when it is known.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field
