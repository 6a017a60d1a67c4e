"""Shared sub-states for views that fetch something from the cluster."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass
class Loading:
    pass


@dataclass
class Loaded(Generic[T]):
    value: T


@dataclass
class Failed:
    message: str


Fetch = Union[Loading, Loaded[T], Failed]
