"""Custom exception hierarchy for the projection engine."""

from __future__ import annotations


class ProjectionError(Exception):
    """Base exception for all projection_engine errors."""


class ProjectionInputError(ProjectionError, ValueError):
    """A projection input violates a structural contract.

    Raised for non-monotonic timelines, unordered or overlapping blocks,
    unknown enum names and malformed request documents.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
