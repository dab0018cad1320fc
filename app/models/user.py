# app/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Staff profile (cashier, waiter, manager, delivery rider, ...).

    Identity:
      - id: MUST match Supabase auth.users.id (UUID from JWT "sub")

    Every staff member belongs to exactly one tenant; the tenant id is
    read from here and passed explicitly into every service call.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    tenant_id: uuid.UUID = Field(
        index=True,
        description="Restaurant business account this user works for",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from Supabase auth.users",
    )

    name: str = Field(
        max_length=100,
        description="Display name; first part of email by default",
    )

    # admin | manager | cashier | waiter | kitchen | delivery
    role: str = Field(
        default="cashier",
        index=True,
        description="Application role",
    )

    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    deleted_at: datetime | None = Field(default=None)
