# app/schemas/settings.py
from typing import Literal

from sqlmodel import SQLModel


class GeneralSettings(SQLModel):
    """
    Tenant-level POS behaviour. Stored partially; defaults fill the gaps.
    """

    default_order_type: Literal["dine_in", "takeaway", "delivery"] = "dine_in"
    default_delivery_charge: float = 5.0
    free_delivery_threshold: float = 50.0
    minimum_delivery_order_amount: float = 0.0
    enable_table_management: bool = True
    enable_delivery_management: bool = True


class TaxSettings(SQLModel):
    enable_tax_system: bool = False
    # Only "excluded" (tax added on top) is applied by pricing
    tax_calculation_method: Literal["included", "excluded"] = "excluded"
    apply_tax_on_delivery: bool = False
    apply_tax_on_service_charge: bool = False


class TenantSettingsRead(SQLModel):
    general: GeneralSettings
    tax: TaxSettings
