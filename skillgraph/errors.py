"""Exceptions raised by the rating engine.

All errors derive from ``ValueError`` so callers that guard engine calls
with ``except ValueError`` keep working.
"""

from typing import Optional


class SkillGraphError(ValueError):
    """Base exception for invalid engine input, with an optional suggestion."""

    def __init__(self, message: str, suggestion: Optional[str] = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.suggestion:
            return f"{self.message} ({self.suggestion})"
        return self.message


class DrawProbabilityOutOfRange(SkillGraphError):
    """Draw probability percentage outside [0, 100] at configuration time."""

    def __init__(self, percentage: float) -> None:
        self.percentage = percentage
        super().__init__(
            f"draw probability must be between 0 and 100, got {percentage!r}",
            "pass a percentage, e.g. 10.0 for a 10% draw rate",
        )


class MalformedMatchError(SkillGraphError):
    """Match input that cannot describe a ranked result."""


class UnsupportedArityError(SkillGraphError):
    """Operation requested for a number of entrants it does not support."""

    def __init__(self, operation: str, expected: int, got: int) -> None:
        self.operation = operation
        self.expected = expected
        self.got = got
        super().__init__(f"{operation} supports exactly {expected} entrants, got {got}")
