from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, NonNegativeFloat, NonNegativeInt, PositiveInt, field_validator

from schemas.tag import normalize_tag_names


def _coerce_to_list(value: Any) -> list[str]:
    if value is None:
        return []

    if isinstance(value, list):
        result: list[str] = []
        for item in value:
            normalized = str(item).strip()
            if normalized:
                result.append(normalized)
        return result

    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return []

        # Pasted steps usually arrive one per line, sometimes numbered.
        parts = [re.sub(r"^\d+[.)]\s*", "", p.strip(" \t\r•*-")) for p in cleaned.splitlines()]
        normalized_parts = [p for p in parts if p]
        if normalized_parts:
            return normalized_parts
        return [cleaned]

    return [str(value).strip()] if str(value).strip() else []


def _strip_title(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


class IngredientLine(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    quantity: NonNegativeFloat | None = None
    unit: str | None = Field(default=None, max_length=32)

    @field_validator("name", mode="before")
    @classmethod
    def _normalize_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return " ".join(value.split()).lower()
        return value

    @field_validator("unit", mode="before")
    @classmethod
    def _normalize_unit(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value


class RecipeDraft(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    steps: list[str] = Field(default_factory=list)
    servings: PositiveInt | None = None
    prep_time: NonNegativeInt | None = None
    cook_time: NonNegativeInt | None = None
    rest_time: NonNegativeInt | None = None
    ingredients: list[IngredientLine] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _normalize_title(cls, value: Any) -> Any:
        return _strip_title(value)

    @field_validator("steps", mode="before")
    @classmethod
    def _normalize_steps(cls, value: Any) -> list[str]:
        return _coerce_to_list(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> list[str]:
        return normalize_tag_names(value.split(",") if isinstance(value, str) else value)


class RecipeChanges(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    steps: list[str] | None = None
    servings: PositiveInt | None = None
    prep_time: NonNegativeInt | None = None
    cook_time: NonNegativeInt | None = None
    rest_time: NonNegativeInt | None = None
    ingredients: list[IngredientLine] | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _normalize_title(cls, value: Any) -> Any:
        return _strip_title(value)

    @field_validator("steps", mode="before")
    @classmethod
    def _normalize_steps(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        return _coerce_to_list(value)


class ProposalDraft(BaseModel):
    """Content a member proposes for someone else's community recipe.

    Omitted servings and times fall back to the target's current values when
    the proposal is merged or forged into a variant. ``ingredients=None`` keeps
    the target's ingredients, a list (even empty) replaces them.
    """

    title: str = Field(min_length=1, max_length=255)
    steps: list[str] = Field(min_length=1)
    servings: PositiveInt | None = None
    prep_time: NonNegativeInt | None = None
    cook_time: NonNegativeInt | None = None
    rest_time: NonNegativeInt | None = None
    ingredients: list[IngredientLine] | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _normalize_title(cls, value: Any) -> Any:
        return _strip_title(value)

    @field_validator("steps", mode="before")
    @classmethod
    def _normalize_steps(cls, value: Any) -> list[str]:
        return _coerce_to_list(value)
