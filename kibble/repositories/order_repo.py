# kibble/repositories/order_repo.py
import uuid
from datetime import datetime

from sqlmodel import Session, func, select

from kibble.models.order import Order, OrderItem


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - No commits here; order creation and deletion are multi-step
        transactions. The service is responsible for calling session.commit().
    """

    # ---- Orders ----

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = select(Order).order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def latest_for_user(self, session: Session, user_id: uuid.UUID) -> Order | None:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .limit(1)
        )
        return session.exec(stmt).first()

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def get_by_waybill(self, session: Session, waybill_number: str) -> Order | None:
        stmt = select(Order).where(Order.waybill_number == waybill_number)
        return session.exec(stmt).first()

    def fingerprint(self, session: Session) -> tuple[int, datetime | None]:
        """
        (row count, latest updated_at) of the orders table. Moves on every
        insert, delete and status change, whoever made it.
        """
        stmt = select(func.count(Order.id), func.max(Order.updated_at))
        count, latest = session.exec(stmt).one()
        return count, latest

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    def delete_order(self, session: Session, order: Order) -> None:
        """
        Delete the order row. Items must be removed first
        (see delete_items_for_order).
        """
        session.delete(order)
        session.flush()

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id)
        return session.exec(stmt).all()

    def list_items_for_orders(
        self,
        session: Session,
        order_ids: list[uuid.UUID],
    ) -> list[OrderItem]:
        if not order_ids:
            return []
        stmt = select(OrderItem).where(OrderItem.order_id.in_(order_ids))
        return session.exec(stmt).all()

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items

    def delete_items_for_order(self, session: Session, order_id: uuid.UUID) -> int:
        """
        Delete every item of an order; returns how many were removed.
        """
        items = self.list_items_for_order(session, order_id)
        for item in items:
            session.delete(item)
        session.flush()
        return len(items)
