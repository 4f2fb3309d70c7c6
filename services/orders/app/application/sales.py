from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from app.domain.models import Order, Sale
from app.domain.errors import NotFound, PersistenceError
from shared.core import get_logger
from typing import Optional

logger = get_logger(__name__)


class SaleRecorder:
    """Creates the sale record of a completed order.

    At most one sale exists per order: a repeated completion returns the
    sale that was recorded the first time, and the unique constraint on
    ``sales.order_id`` settles concurrent completions of the same order.
    """

    def __init__(self, db: Session):
        self.db = db

    def list(self, order_id: Optional[int] = None):
        stmt = select(Sale).order_by(Sale.id)
        if order_id is not None:
            stmt = stmt.where(Sale.order_id == order_id)
        try:
            return self.db.scalars(stmt).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Sales cannot be listed: {e}") from e

    def get(self, sale_id: int) -> Sale:
        try:
            sale = self.db.get(Sale, sale_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Sale {sale_id} cannot be loaded: {e}") from e
        if not sale:
            raise NotFound("Sale not found")
        return sale

    def find_by_order(self, order_id: int) -> Optional[Sale]:
        try:
            return self.db.scalars(select(Sale).where(Sale.order_id == order_id)).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Sale of order {order_id} cannot be loaded: {e}") from e

    def record_completion(self, order: Order) -> Sale:
        """Snapshot the order's items, total and user into a Sale."""
        try:
            existing = self.find_by_order(order.id)
            if existing:
                logger.info(f"Sale {existing.id} already recorded for order {order.order_number}")
                return existing

            sale = Sale(
                order_id=order.id,
                products=[item.snapshot() for item in order.order_items],
                total_amount=order.total_price,
                user_id=order.user_id,
            )
            self.db.add(sale)
            self.db.commit()
            self.db.refresh(sale)
        except IntegrityError:
            # Another request recorded the sale between our check and insert
            self.db.rollback()
            existing = self.find_by_order(order.id)
            if existing:
                return existing
            raise PersistenceError(f"Failed to create sale record for order {order.id}")
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to create sale record for order {order.id}: {e}") from e

        logger.info(
            f"Sale {sale.id} recorded for order {order.order_number}",
            extra={'extra_fields': {'order_id': order.id, 'sale_id': sale.id, 'total_amount': float(sale.total_amount)}}
        )
        return sale
