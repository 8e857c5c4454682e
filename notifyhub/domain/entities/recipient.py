"""Recipient identity used to route notifications."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SubjectType(str, Enum):
    """Kinds of actors that can receive notifications."""

    USER = "user"
    CUSTOMER = "customer"


class InvalidRecipientError(ValueError):
    """Raised when a recipient identity cannot be built from raw values."""


@dataclass(frozen=True)
class RecipientKey:
    """Composite ``(subject_type, subject_id)`` routing key.

    Two keys are equal only when both parts are equal; there is no wildcard
    or hierarchical matching.
    """

    subject_type: SubjectType
    subject_id: int

    @classmethod
    def of(cls, subject_type: str | SubjectType, subject_id: int | str) -> "RecipientKey":
        """Build a key from loosely typed values, validating both parts."""

        try:
            kind = SubjectType(subject_type)
        except ValueError as exc:
            raise InvalidRecipientError(
                f"Unknown subject type {subject_type!r}; expected 'user' or 'customer'"
            ) from exc
        if isinstance(subject_id, bool):
            raise InvalidRecipientError("Subject id must be an integer")
        try:
            identifier = int(subject_id)
        except (TypeError, ValueError) as exc:
            raise InvalidRecipientError(f"Invalid subject id {subject_id!r}") from exc
        if identifier <= 0:
            raise InvalidRecipientError("Subject id must be a positive integer")
        return cls(subject_type=kind, subject_id=identifier)

    def __str__(self) -> str:
        return f"{self.subject_type.value}:{self.subject_id}"


__all__ = ["InvalidRecipientError", "RecipientKey", "SubjectType"]
