# app/models/restaurant.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Branch(SQLModel, table=True):
    """
    Physical restaurant location under a tenant.

    `code` prefixes every order number issued at this branch.
    """

    __tablename__ = "branches"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tenant_id: uuid.UUID = Field(index=True)

    name: str = Field(max_length=255)
    name_ar: str | None = Field(default=None, max_length=255)

    code: str = Field(
        max_length=50,
        description="Short branch code, unique per tenant (e.g. MAIN)",
    )

    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    deleted_at: datetime | None = Field(default=None)


class Counter(SQLModel, table=True):
    """
    POS counter (till) inside a branch.
    """

    __tablename__ = "counters"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    branch_id: uuid.UUID = Field(foreign_key="branches.id", index=True)

    name: str = Field(max_length=255)
    code: str = Field(max_length=50)

    is_active: bool = Field(default=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    deleted_at: datetime | None = Field(default=None)


class DiningTable(SQLModel, table=True):
    """
    Dine-in table.

    Orders reference tables by id without a foreign key: a POS terminal may
    send any table identifier, and only known tables get their status updated.
    """

    __tablename__ = "tables"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tenant_id: uuid.UUID = Field(index=True)
    branch_id: uuid.UUID = Field(foreign_key="branches.id", index=True)

    table_number: str = Field(max_length=50)
    seating_capacity: int = Field(default=4, ge=1)

    # available | occupied | reserved | out_of_service
    status: str = Field(default="available")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime | None = Field(default=None)
    deleted_at: datetime | None = Field(default=None)


class Customer(SQLModel, table=True):
    """
    Restaurant customer.

    total_orders / total_spent / last_order_date are recomputed from the
    customer's completed orders every time one of them completes.
    """

    __tablename__ = "customers"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tenant_id: uuid.UUID = Field(index=True)

    name: str = Field(max_length=255)
    phone: str = Field(max_length=50, index=True)
    email: str | None = Field(default=None)

    total_orders: int = Field(default=0, ge=0)
    total_spent: float = Field(default=0.0, ge=0)
    last_order_date: datetime | None = Field(default=None)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime | None = Field(default=None)
    deleted_at: datetime | None = Field(default=None)
