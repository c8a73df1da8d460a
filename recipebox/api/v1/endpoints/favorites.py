"""Favorite recipe endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from recipebox.core.exceptions import NotFoundException
from recipebox.dependencies import CurrentSession, DatabaseSession, get_favorite_synchronizer
from recipebox.schemas.favorites import (
    FavoriteListResponse,
    FavoriteToggleRequest,
    FavoriteToggleResponse,
)
from recipebox.services.favorite_service import FavoriteStatus, FavoriteSynchronizer

router = APIRouter(tags=["Favorites"])

FavoriteSynchronizerDep = Annotated[FavoriteSynchronizer, Depends(get_favorite_synchronizer)]


@router.post(
    "/favorite",
    response_model=FavoriteToggleResponse,
    responses={
        status.HTTP_201_CREATED: {"model": FavoriteToggleResponse},
        status.HTTP_400_BAD_REQUEST: {"description": "Malformed request body"},
        status.HTTP_404_NOT_FOUND: {"description": "Recipe is not a favorite"},
    },
)
async def toggle_favorite(
    request: FavoriteToggleRequest,
    response: Response,
    session: CurrentSession,
    db: DatabaseSession,
    synchronizer: FavoriteSynchronizerDep,
) -> FavoriteToggleResponse:
    """
    Add or remove a favorite recipe.

    Adding answers 201 when the favorite is new and 200 when it already
    existed. Removing answers 200, or 404 when there was nothing to remove.
    """
    if request.action == "add":
        outcome = await synchronizer.add(db, session.id, request.recipe_id)
        if outcome is FavoriteStatus.ADDED:
            response.status_code = status.HTTP_201_CREATED
            return FavoriteToggleResponse(message="Added to favorites", status=outcome.value)
        return FavoriteToggleResponse(message="Recipe is already a favorite", status=outcome.value)

    outcome = await synchronizer.remove(db, session.id, request.recipe_id)
    if outcome is FavoriteStatus.NOT_FAVORITE:
        raise NotFoundException("Recipe is not a favorite")
    return FavoriteToggleResponse(message="Removed from favorites", status=outcome.value)


@router.get("/favorites", response_model=FavoriteListResponse, response_model_by_alias=True)
async def list_favorites(
    session: CurrentSession,
    db: DatabaseSession,
    synchronizer: FavoriteSynchronizerDep,
) -> FavoriteListResponse:
    """Favorited recipe ids of the signed-in user."""
    recipe_ids = await synchronizer.list(db, session.id)
    return FavoriteListResponse(recipe_ids=recipe_ids)
