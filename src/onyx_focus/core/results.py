# src/onyx_focus/core/results.py

from __future__ import annotations

"""
Discriminated operation results.

Store operations never raise for rejected requests. They return an OpResult
carrying either a value or an ErrorKind, and the store stays in its last valid
state.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(StrEnum):
    INVALID_ARGUMENT = "invalid_argument"
    INVALID_STATE = "invalid_state"
    NOT_FOUND = "not_found"
    ALREADY_RESOLVED = "already_resolved"


@dataclass(slots=True, frozen=True)
class OpResult(Generic[T]):
    value: T | None = None
    error: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> OpResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> OpResult[T]:
        return cls(error=error, message=message)
