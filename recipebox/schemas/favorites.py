"""Favorite schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class FavoriteToggleRequest(BaseModel):
    """Client favorite toggle."""

    model_config = ConfigDict(populate_by_name=True)

    recipe_id: str = Field(..., alias="recipeId", min_length=1)
    action: Literal["add", "remove"]


class FavoriteToggleResponse(BaseModel):
    """Outcome of a favorite toggle."""

    message: str
    status: Literal["added", "already_favorite", "removed", "not_favorite"]


class FavoriteListResponse(BaseModel):
    """Server favorite list used to seed the client cache."""

    model_config = ConfigDict(populate_by_name=True)

    recipe_ids: list[str] = Field(default_factory=list, serialization_alias="recipeIds")
