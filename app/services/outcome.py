"""
Outcome: explicit "value or unavailable" result for engine sub-computations.

An analyzer never raises to the composer. It returns Outcome.ok(value) when
it computed something (which may itself be None, e.g. "not enough data")
or Outcome.unavailable(component, error) when it could not.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    available: bool = True
    component: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: Optional[T]) -> "Outcome[T]":
        return cls(value=value, available=True)

    @classmethod
    def unavailable(
        cls,
        component: str,
        error: Optional[str] = None,
        default: Optional[T] = None,
    ) -> "Outcome[T]":
        return cls(value=default, available=False, component=component, error=error)

    def value_or(self, default: T) -> T:
        if not self.available or self.value is None:
            return default
        return self.value
