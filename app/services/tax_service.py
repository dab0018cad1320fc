# app/services/tax_service.py
import uuid

from sqlmodel import Session

from app.repositories.tax_repo import TaxRepository
from app.schemas.tax import TaxableLine, TaxBreakdownEntry, TaxResult


class TaxService:
    """
    Evaluates the tenant's active tax rules for one order.
    """

    def __init__(self, tax_repo: TaxRepository):
        self.tax_repo = tax_repo

    def calculate_tax_for_order(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        lines: list[TaxableLine],
        taxable_amount: float,
        delivery_charge: float = 0.0,
        service_charge: float = 0.0,
    ) -> TaxResult:
        """
        Sum every active tax, oldest rule first.

        Base per rule:
          - order    : taxable_amount (already net of all discounts)
          - category : subtotal of lines in the rule's categories
          - item     : subtotal of lines for the rule's food items
        plus delivery / service charge when the rule says so.
        """
        taxes = self.tax_repo.list_active(session, tenant_id)
        if not taxes:
            return TaxResult(tax_amount=0.0)

        total = 0.0
        breakdown: list[TaxBreakdownEntry] = []

        for tax in taxes:
            base = 0.0
            if tax.applies_to == "order":
                base = taxable_amount
            elif tax.applies_to in ("category", "item"):
                applications = self.tax_repo.list_applications(session, tax.id)
                if tax.applies_to == "category":
                    targets = {a.category_id for a in applications if a.category_id}
                    base = sum(line.subtotal for line in lines if line.category_id in targets)
                else:
                    targets = {a.food_item_id for a in applications if a.food_item_id}
                    base = sum(line.subtotal for line in lines if line.food_item_id in targets)

            if tax.applies_to_delivery and delivery_charge > 0:
                base += delivery_charge
            if tax.applies_to_service_charge and service_charge > 0:
                base += service_charge

            if base > 0:
                amount = base * tax.rate / 100
                total += amount
                breakdown.append(
                    TaxBreakdownEntry(name=tax.name, rate=tax.rate, amount=round(amount, 2))
                )

        return TaxResult(tax_amount=round(total, 2), breakdown=breakdown)
