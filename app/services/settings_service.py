# app/services/settings_service.py
import uuid

from sqlmodel import Session

from app.repositories.settings_repo import SettingsRepository
from app.schemas.settings import GeneralSettings, TaxSettings, TenantSettingsRead


def _present(section: dict | None) -> dict:
    # null means "not configured"; an explicit 0 or False is kept
    return {k: v for k, v in (section or {}).items() if v is not None}


class SettingsService:
    """
    Tenant settings lookup: stored JSON sections merged over defaults.
    """

    def __init__(self, settings_repo: SettingsRepository):
        self.settings_repo = settings_repo

    def get_settings(self, session: Session, tenant_id: uuid.UUID) -> TenantSettingsRead:
        row = self.settings_repo.get_for_tenant(session, tenant_id)
        if row is None:
            return TenantSettingsRead(general=GeneralSettings(), tax=TaxSettings())

        return TenantSettingsRead(
            general=GeneralSettings.model_validate(_present(row.general)),
            tax=TaxSettings.model_validate(_present(row.tax)),
        )
