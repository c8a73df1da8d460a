"""Favorite record model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    PrimaryKeyConstraint,
    Table,
    Text,
    Uuid,
    func,
)

from recipebox.models.users import metadata

# Presence of a row means "favorited"; the composite key makes it unique.
favorites = Table(
    "favorites",
    metadata,
    Column(
        "user_id",
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("recipe_id", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    PrimaryKeyConstraint("user_id", "recipe_id", name="favorites_pkey"),
)
