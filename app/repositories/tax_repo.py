# app/repositories/tax_repo.py
import uuid

from sqlmodel import Session, select

from app.models.tax import Tax, TaxApplication


class TaxRepository:
    def list_active(self, session: Session, tenant_id: uuid.UUID) -> list[Tax]:
        stmt = (
            select(Tax)
            .where(
                Tax.tenant_id == tenant_id,
                Tax.is_active.is_(True),
                Tax.deleted_at.is_(None),
            )
            .order_by(Tax.created_at)
        )
        return session.exec(stmt).all()

    def list_applications(
        self,
        session: Session,
        tax_id: uuid.UUID,
    ) -> list[TaxApplication]:
        stmt = select(TaxApplication).where(TaxApplication.tax_id == tax_id)
        return session.exec(stmt).all()
