"""Identity record model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    Table,
    Text,
    Uuid,
    false,
    func,
    text,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid4),
    # Natural key for credential and provider lookups (stored lowercased)
    Column("email", Text, nullable=False, unique=True, index=True),
    # Profile info (mutable)
    Column("display_name", Text, index=True),
    Column("first_name", Text),
    Column("last_name", Text),
    Column("avatar_uri", Text),
    # Only credential accounts carry a hash
    Column("password_hash", Text),
    # Set at creation, never re-linked
    Column("provider", Text, nullable=False),
    Column("role", Text, nullable=False, server_default=text("'user'")),
    Column("verified", Boolean, nullable=False, server_default=false()),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("last_login_at", DateTime(timezone=True)),
    CheckConstraint(
        "provider IN ('credential', 'google', 'github', 'generated')",
        name="users_provider_check",
    ),
    CheckConstraint("role IN ('user', 'admin')", name="users_role_check"),
    CheckConstraint(
        "(provider = 'credential') = (password_hash IS NOT NULL)",
        name="users_password_hash_provider_check",
    ),
)
