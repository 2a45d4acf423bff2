from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from core.config import settings


def normalize_tag_name(value: str) -> str:
    name = " ".join(str(value).split()).lower()
    if not settings.tag_name_min_length <= len(name) <= settings.tag_name_max_length:
        raise ValueError(
            f"tag name must be {settings.tag_name_min_length}-{settings.tag_name_max_length} characters"
        )
    return name


def normalize_tag_names(values: Iterable[Any] | None) -> list[str]:
    if values is None:
        return []
    seen: list[str] = []
    for value in values:
        if value is None or not str(value).strip():
            continue
        name = normalize_tag_name(value)
        if name not in seen:
            seen.append(name)
    return seen

