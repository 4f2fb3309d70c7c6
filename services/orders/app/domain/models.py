from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, ForeignKey, Numeric, DateTime, Boolean, JSON
from datetime import datetime
from enum import Enum
from typing import Optional, Any

class Base(DeclarativeBase):
    pass

class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

class Order(Base):
    __tablename__ = "orders"
    # Ids of deleted orders must not be reused, their sales are keyed on the id
    __table_args__ = {"sqlite_autoincrement": True}
    id: Mapped[int] = mapped_column(primary_key=True)
    order_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    # Store user_id as integer (no FK - users are owned by another service)
    user_id: Mapped[int]
    shipping_address: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payment_method_details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    payment_result: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    items_price: Mapped[float] = mapped_column(Numeric(10,2), default=0)
    tax_price: Mapped[float] = mapped_column(Numeric(10,2), default=0)
    shipping_price: Mapped[float] = mapped_column(Numeric(10,2), default=0)
    total_price: Mapped[float] = mapped_column(Numeric(10,2), default=0)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_delivered: Mapped[bool] = mapped_column(Boolean, default=False)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    order_items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED.value

class OrderItem(Base):
    __tablename__ = "order_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"))
    # Keeps the submitted ordering of the items
    position: Mapped[int] = mapped_column(default=0)
    # Store product_id as integer (no FK - products are owned by another service)
    product_id: Mapped[int]
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    quantity: Mapped[int]
    price: Mapped[Optional[float]] = mapped_column(Numeric(10,2), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    order: Mapped[Order] = relationship("Order", back_populates="order_items")

    def snapshot(self) -> dict[str, Any]:
        """Plain copy of the item, as stored on a Sale."""
        return {
            "product": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": float(self.price) if self.price is not None else None,
            "image": self.image,
        }

class Sale(Base):
    __tablename__ = "sales"
    id: Mapped[int] = mapped_column(primary_key=True)
    # No FK: a sale outlives the deletion of its order
    order_id: Mapped[int] = mapped_column(unique=True, index=True)
    products: Mapped[list[dict[str, Any]]] = mapped_column(JSON)
    total_amount: Mapped[float] = mapped_column(Numeric(10,2))
    user_id: Mapped[int]
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
