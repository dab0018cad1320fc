# app/models/settings.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class TenantSettings(SQLModel, table=True):
    """
    Per-tenant settings stored as JSON sections.

    Sections are partial; missing keys fall back to the defaults in
    SettingsService.
    """

    __tablename__ = "tenant_settings"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    tenant_id: uuid.UUID = Field(unique=True, index=True)

    general: dict = Field(default_factory=dict, sa_column=Column(JSON))
    tax: dict = Field(default_factory=dict, sa_column=Column(JSON))

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
