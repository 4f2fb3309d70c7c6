from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from app.domain.models import Order, OrderItem, OrderStatus, Sale
from app.domain.errors import NotFound, ValidationError, GenerationError, PersistenceError, SaleCreationError
from shared.core import get_logger
from .schemas import OrderCreate, OrderUpdate, OrderItemCreate
from .order_numbers import OrderNumberGenerator
from .references import ReferenceResolver
from .sales import SaleRecorder
from typing import Optional, List

logger = get_logger(__name__)

class OrderService:
    def __init__(
        self,
        db: Session,
        resolver: Optional[ReferenceResolver] = None,
        generator: Optional[OrderNumberGenerator] = None,
        sales: Optional[SaleRecorder] = None,
        insert_retries: int = 3,
    ):
        self.db = db
        self.resolver = resolver
        self.generator = generator or OrderNumberGenerator(db)
        self.sales = sales or SaleRecorder(db)
        self.insert_retries = insert_retries

    def _load(self, order_id: int) -> Order:
        try:
            order = self.db.scalars(
                select(Order).options(selectinload(Order.order_items)).where(Order.id == order_id)
            ).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Order {order_id} cannot be loaded: {e}") from e
        if not order:
            raise NotFound("The order with the given ID was not found.")
        return order

    @staticmethod
    def _build_items(items: List[OrderItemCreate]) -> List[OrderItem]:
        return [
            OrderItem(
                position=position,
                product_id=item.product,
                name=item.name,
                quantity=item.quantity,
                price=item.price,
                image=item.image,
            )
            for position, item in enumerate(items)
        ]

    def _commit(self, action: str, refresh: Optional[Order] = None):
        try:
            self.db.commit()
            if refresh is not None:
                self.db.refresh(refresh)
        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError(f"Order cannot be {action}: {e.orig}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Order cannot be {action}: {e}") from e

    def serialize(self, order: Order, resolve: bool = True) -> dict:
        """Order as a response dict, with product and user references resolved."""
        resolver = self.resolver if resolve else None
        return {
            "id": order.id,
            "order_number": order.order_number,
            "order_items": [
                {
                    "product": resolver.product(item.product_id) if resolver else None,
                    "product_id": item.product_id,
                    "name": item.name,
                    "quantity": item.quantity,
                    "price": float(item.price) if item.price is not None else None,
                    "image": item.image,
                }
                for item in order.order_items
            ],
            "shipping_address": order.shipping_address,
            "payment_method": order.payment_method,
            "payment_method_details": order.payment_method_details,
            "payment_result": order.payment_result,
            "items_price": float(order.items_price),
            "tax_price": float(order.tax_price),
            "shipping_price": float(order.shipping_price),
            "total_price": float(order.total_price),
            "user": resolver.user(order.user_id) if resolver else None,
            "user_id": order.user_id,
            "is_paid": order.is_paid,
            "paid_at": order.paid_at,
            "is_delivered": order.is_delivered,
            "delivered_at": order.delivered_at,
            "status": order.status,
            "created_at": order.created_at,
            "updated_at": order.updated_at,
        }

    def count(self) -> int:
        try:
            return self.db.scalar(select(func.count()).select_from(Order))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Orders cannot be counted: {e}") from e

    def list(self) -> List[dict]:
        try:
            orders = self.db.scalars(
                select(Order).options(selectinload(Order.order_items)).order_by(Order.id)
            ).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Orders cannot be listed: {e}") from e
        return [self.serialize(order) for order in orders]

    def get(self, order_id: int) -> dict:
        return self.serialize(self._load(order_id))

    def create(self, data: OrderCreate) -> Order:
        for attempt in range(1, self.insert_retries + 1):
            order_number = self.generator.generate()
            order = Order(
                order_number=order_number,
                order_items=self._build_items(data.order_items),
                shipping_address=data.shipping_address,
                payment_method=data.payment_method,
                payment_method_details=data.payment_method_details,
                items_price=data.items_price,
                tax_price=data.tax_price,
                shipping_price=data.shipping_price,
                total_price=data.total_price,
                user_id=data.user,
                status=OrderStatus.PENDING.value,
            )
            self.db.add(order)
            try:
                self.db.commit()
                self.db.refresh(order)
            except IntegrityError as e:
                self.db.rollback()
                # Lost the race for this number to a concurrent create
                if self.generator.exists(order_number):
                    logger.warning(f"Order number {order_number} taken concurrently (attempt {attempt})")
                    continue
                raise ValidationError(f"Order cannot be created: {e.orig}") from e
            except SQLAlchemyError as e:
                self.db.rollback()
                raise PersistenceError(f"Order cannot be created: {e}") from e

            logger.info(
                f"Order {order.order_number} created",
                extra={'extra_fields': {'order_id': order.id, 'order_number': order.order_number, 'user_id': order.user_id}}
            )
            return order

        raise GenerationError(f"Order number collided on insert {self.insert_retries} times")

    def update(self, order_id: int, data: OrderUpdate) -> Order:
        order = self._load(order_id)

        fields = data.model_dump(exclude_unset=True, exclude={"order_items"})
        if "user" in fields:
            fields["user_id"] = fields.pop("user")
        if fields.get("status") is not None:
            fields["status"] = OrderStatus(fields["status"]).value

        for name, value in fields.items():
            setattr(order, name, value)
        # An explicit null leaves the items as they are
        if data.order_items is not None:
            order.order_items = self._build_items(data.order_items)

        self._commit("updated", refresh=order)
        logger.info(
            f"Order {order.order_number} updated",
            extra={'extra_fields': {'order_id': order.id, 'fields': sorted(data.model_fields_set), 'status': order.status}}
        )

        # Only a request that sets the status to Completed records a sale
        if fields.get("status") == OrderStatus.COMPLETED.value:
            self._record_sale(order)
        return order

    def _record_sale(self, order: Order) -> Sale:
        try:
            return self.sales.record_completion(order)
        except PersistenceError as e:
            logger.error(
                f"Order {order.order_number} completed but its sale was not recorded",
                extra={'extra_fields': {'order_id': order.id}}
            )
            raise SaleCreationError(
                f"Order {order.order_number} was updated but the sale record could not be created: {e.message}",
                order_id=order.id,
            ) from e

    def reconcile_sale(self, order_id: int) -> Sale:
        """Record the missing sale of an order left Completed by a failed update."""
        order = self._load(order_id)
        if not order.is_completed:
            raise ValidationError(f"Order {order.order_number} is {order.status}, not {OrderStatus.COMPLETED.value}")
        return self._record_sale(order)

    def delete(self, order_id: int) -> None:
        order = self._load(order_id)
        order_number = order.order_number
        self.db.delete(order)
        self._commit("deleted")
        logger.info(f"Order {order_number} deleted", extra={'extra_fields': {'order_id': order_id}})
