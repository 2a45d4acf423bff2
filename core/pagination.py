from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from core.config import settings

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class PageRequest:
    limit: int
    offset: int


@dataclass(slots=True)
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


def page_request(limit: int | None = None, offset: int | None = None) -> PageRequest:
    resolved_limit = settings.default_page_size if limit is None else limit
    resolved_limit = min(max(resolved_limit, 1), settings.max_page_size)
    return PageRequest(limit=resolved_limit, offset=max(offset or 0, 0))
