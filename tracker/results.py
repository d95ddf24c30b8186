"""
Result values for repository operations that may target a missing entity.

Missing projects or tasks are an expected outcome, not an error: callers get
NotFound back and decide whether to surface it.
"""
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Updated(Generic[T]):
    """The operation found its target. `value` is the affected entity."""
    value: T

    @property
    def found(self) -> bool:
        return True

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class NotFound:
    """No entity with the given id (kind is "project" or "task")."""
    kind: str
    id: str

    @property
    def found(self) -> bool:
        return False

    @property
    def value(self) -> Any:
        return None

    def __bool__(self) -> bool:
        return False


Result = Union[Updated, NotFound]
