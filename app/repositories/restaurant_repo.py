# app/repositories/restaurant_repo.py
import uuid

from sqlmodel import Session, select

from app.models.restaurant import Branch, Counter, Customer, DiningTable
from app.models.user import User


class RestaurantRepository:
    """
    Read/update access to branches, counters, tables, customers and staff.

    CRUD for these entities is owned elsewhere; the order pipeline only
    resolves them by id and flips a few status/statistics columns.
    """

    # ---- Branches ----

    def get_branch(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        branch_id: uuid.UUID,
    ) -> Branch | None:
        stmt = select(Branch).where(
            Branch.id == branch_id,
            Branch.tenant_id == tenant_id,
            Branch.deleted_at.is_(None),
        )
        return session.exec(stmt).first()

    def get_oldest_active_branch(
        self,
        session: Session,
        tenant_id: uuid.UUID,
    ) -> Branch | None:
        stmt = (
            select(Branch)
            .where(
                Branch.tenant_id == tenant_id,
                Branch.is_active.is_(True),
                Branch.deleted_at.is_(None),
            )
            .order_by(Branch.created_at)
        )
        return session.exec(stmt).first()

    def create_branch(self, session: Session, branch: Branch) -> Branch:
        session.add(branch)
        session.flush()
        session.refresh(branch)
        return branch

    # ---- Counters ----

    def get_counter(self, session: Session, counter_id: uuid.UUID) -> Counter | None:
        return session.get(Counter, counter_id)

    def get_default_counter(
        self,
        session: Session,
        branch_id: uuid.UUID,
    ) -> Counter | None:
        stmt = (
            select(Counter)
            .where(
                Counter.branch_id == branch_id,
                Counter.is_active.is_(True),
                Counter.deleted_at.is_(None),
            )
            .order_by(Counter.created_at)
        )
        return session.exec(stmt).first()

    # ---- Tables ----

    def get_table(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        table_id: uuid.UUID,
    ) -> DiningTable | None:
        stmt = select(DiningTable).where(
            DiningTable.id == table_id,
            DiningTable.tenant_id == tenant_id,
            DiningTable.deleted_at.is_(None),
        )
        return session.exec(stmt).first()

    def update_table(self, session: Session, table: DiningTable) -> DiningTable:
        session.add(table)
        session.flush()
        return table

    # ---- Customers ----

    def get_customer(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        customer_id: uuid.UUID,
    ) -> Customer | None:
        stmt = select(Customer).where(
            Customer.id == customer_id,
            Customer.tenant_id == tenant_id,
            Customer.deleted_at.is_(None),
        )
        return session.exec(stmt).first()

    def update_customer(self, session: Session, customer: Customer) -> Customer:
        session.add(customer)
        session.flush()
        return customer

    # ---- Staff ----

    def get_user(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> User | None:
        stmt = select(User).where(
            User.id == user_id,
            User.tenant_id == tenant_id,
            User.deleted_at.is_(None),
        )
        return session.exec(stmt).first()
