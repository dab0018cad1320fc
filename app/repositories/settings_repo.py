# app/repositories/settings_repo.py
import uuid

from sqlmodel import Session, select

from app.models.settings import TenantSettings


class SettingsRepository:
    def get_for_tenant(
        self,
        session: Session,
        tenant_id: uuid.UUID,
    ) -> TenantSettings | None:
        stmt = select(TenantSettings).where(TenantSettings.tenant_id == tenant_id)
        return session.exec(stmt).first()
