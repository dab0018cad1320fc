# app/services/pricing_service.py
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.time_utils import utcnow
from app.repositories.menu_repo import MenuRepository
from app.schemas.order import OrderItemCreate
from app.schemas.pricing import PricedAddOn, PricedLine, PricingBreakdown
from app.schemas.settings import GeneralSettings
from app.schemas.tax import TaxableLine
from app.services.coupon_service import CouponService
from app.services.settings_service import SettingsService
from app.services.tax_service import TaxService

# Service charges are accepted by the tax rules but never configured
SERVICE_CHARGE = 0.0


# -------- Pure money helpers --------


def round_money(value: float) -> float:
    return round(value, 2)


def unit_price_for(
    base_price: float,
    variation_adjustment: float,
    add_ons: list[tuple[float, int]],
) -> float:
    """
    base + variation + sum(add-on price * add-on quantity), per portion.
    """
    return round_money(
        base_price + variation_adjustment + sum(price * qty for price, qty in add_ons)
    )


def item_discount_amount(
    discount_type: str,
    discount_value: float,
    unit_price: float,
    quantity: int,
) -> float:
    """
    Promotional discount for one line, never more than the line itself.

      percentage : line subtotal * value / 100
      fixed      : value per portion
    """
    line_subtotal = unit_price * quantity
    if discount_type == "percentage":
        amount = line_subtotal * discount_value / 100
    elif discount_type == "fixed":
        amount = discount_value * quantity
    else:
        amount = 0.0
    return round_money(max(0.0, min(amount, line_subtotal)))


def cap_extra_discount(requested: float, subtotal: float, item_discounts: float) -> float:
    return round_money(max(0.0, min(requested or 0.0, subtotal - item_discounts)))


def delivery_charge_for(
    order_type: str,
    amount_after_discounts: float,
    general: GeneralSettings,
) -> float:
    if order_type != "delivery":
        return 0.0
    if amount_after_discounts >= general.free_delivery_threshold:
        return 0.0
    return round_money(general.default_delivery_charge)


def apportion_tax(item_subtotal: float, subtotal: float, tax_amount: float) -> float:
    """
    Share of the order tax carried by one line, by pre-discount subtotal.
    """
    if subtotal <= 0:
        return 0.0
    return round_money(item_subtotal / subtotal * tax_amount)


def order_total(
    subtotal: float,
    discount_amount: float,
    tax_amount: float,
    delivery_charge: float,
) -> float:
    return max(0.0, round_money(subtotal - discount_amount + tax_amount + delivery_charge))


class PricingCalculator:
    """
    Turns a cart into a PricingBreakdown.

    Only reads: catalog (price, variation, add-ons, discounts), coupon
    validation, tenant settings and tax rules. Coupon failures propagate.
    """

    def __init__(
        self,
        menu_repo: MenuRepository,
        coupon_service: CouponService,
        tax_service: TaxService,
        settings_service: SettingsService,
    ):
        self.menu_repo = menu_repo
        self.coupon_service = coupon_service
        self.tax_service = tax_service
        self.settings_service = settings_service

    def compute_totals(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        items: list[OrderItemCreate],
        extra_discount: float = 0.0,
        coupon_code: str | None = None,
        order_type: str = "dine_in",
        customer_id: uuid.UUID | None = None,
        locked_coupon_discount: float | None = None,
    ) -> PricingBreakdown:
        """
        Steps:
          1. Per item: unit price, line subtotal, first active discount.
          2. Manual discount, capped at what is left.
          3. Coupon on subtotal - item discounts - manual discount.
          4. Delivery charge (delivery orders below the free threshold).
          5. Tax, when the tenant's tax system is enabled.
          6. total = max(0, subtotal - discounts + tax + delivery)

        locked_coupon_discount re-applies an amount granted earlier for the
        same code instead of validating it again.
        """
        settings = self.settings_service.get_settings(session, tenant_id)
        now = utcnow()

        lines: list[PricedLine] = []
        subtotal = 0.0
        item_discounts = 0.0

        for item in items:
            line = self._price_line(session, tenant_id, item, now)
            lines.append(line)
            subtotal += line.item_subtotal
            item_discounts += line.discount_amount

        subtotal = round_money(subtotal)
        item_discounts = round_money(item_discounts)

        extra = cap_extra_discount(extra_discount, subtotal, item_discounts)

        coupon_discount = 0.0
        coupon_id = None
        if coupon_code:
            base = round_money(subtotal - item_discounts - extra)
            if locked_coupon_discount is not None:
                granted = locked_coupon_discount
            else:
                validation = self.coupon_service.validate_coupon(
                    session, tenant_id, coupon_code, base, customer_id
                )
                granted = validation.discount
                coupon_id = validation.coupon_id
            coupon_discount = round_money(max(0.0, min(granted, base)))

        discount_amount = round_money(item_discounts + extra + coupon_discount)
        taxable_amount = round_money(subtotal - discount_amount)

        delivery_charge = delivery_charge_for(order_type, taxable_amount, settings.general)

        tax_amount = 0.0
        if settings.tax.enable_tax_system:
            result = self.tax_service.calculate_tax_for_order(
                session,
                tenant_id,
                [
                    TaxableLine(
                        food_item_id=line.food_item_id,
                        category_id=line.category_id,
                        subtotal=line.item_subtotal,
                    )
                    for line in lines
                ],
                taxable_amount,
                delivery_charge,
                SERVICE_CHARGE,
            )
            tax_amount = result.tax_amount

        return PricingBreakdown(
            subtotal=subtotal,
            item_discounts=item_discounts,
            extra_discount=extra,
            coupon_discount=coupon_discount,
            coupon_id=coupon_id,
            tax_amount=tax_amount,
            delivery_charge=delivery_charge,
            total_amount=order_total(subtotal, discount_amount, tax_amount, delivery_charge),
            lines=lines,
        )

    def _price_line(self, session, tenant_id, item: OrderItemCreate, now) -> PricedLine:
        food_item = self.menu_repo.get_food_item(session, tenant_id, item.food_item_id)
        if food_item is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Food item {item.food_item_id} not found",
            )

        if food_item.stock_type == "limited" and food_item.stock_quantity < item.quantity:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f"Insufficient stock for {food_item.name}. "
                    f"Available: {food_item.stock_quantity}, Requested: {item.quantity}"
                ),
            )

        variation_adjustment = 0.0
        if item.variation_id:
            variation = self.menu_repo.get_variation(session, food_item.id, item.variation_id)
            if variation is not None:
                variation_adjustment = variation.price_adjustment

        catalog = self.menu_repo.get_add_ons(
            session, tenant_id, [a.add_on_id for a in item.add_ons]
        )
        add_ons = [
            PricedAddOn(
                add_on_id=a.add_on_id,
                quantity=a.quantity,
                unit_price=catalog[a.add_on_id].price,
            )
            for a in item.add_ons
            if a.add_on_id in catalog
        ]

        unit_price = unit_price_for(
            food_item.base_price,
            variation_adjustment,
            [(a.unit_price, a.quantity) for a in add_ons],
        )

        discount = 0.0
        active = self.menu_repo.list_active_discounts(session, food_item.id, now)
        if active:
            # First match wins; no stacking
            first = active[0]
            discount = item_discount_amount(
                first.discount_type, first.discount_value, unit_price, item.quantity
            )

        return PricedLine(
            food_item_id=food_item.id,
            category_id=food_item.category_id,
            variation_id=item.variation_id,
            quantity=item.quantity,
            unit_price=unit_price,
            item_subtotal=round_money(unit_price * item.quantity),
            discount_amount=discount,
            special_instructions=item.special_instructions,
            add_ons=add_ons,
        )
