"""Database models."""

from recipebox.models.favorites import favorites
from recipebox.models.users import metadata, users

__all__ = [
    "favorites",
    "metadata",
    "users",
]
