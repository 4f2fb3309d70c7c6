from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, Any
from app.domain.models import OrderStatus

class OrderItemCreate(BaseModel):
    product: int
    quantity: int = Field(gt=0)
    name: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    image: Optional[str] = None

class OrderCreate(BaseModel):
    order_items: list[OrderItemCreate] = Field(min_length=1)
    shipping_address: Optional[dict[str, Any]] = None
    payment_method: Optional[str] = None
    payment_method_details: Optional[dict[str, Any]] = None
    items_price: float = Field(default=0, ge=0)
    tax_price: float = Field(default=0, ge=0)
    shipping_price: float = Field(default=0, ge=0)
    total_price: float = Field(ge=0)
    user: int

class OrderUpdate(BaseModel):
    # Only the fields present in the request body are applied
    order_items: Optional[list[OrderItemCreate]] = None
    shipping_address: Optional[dict[str, Any]] = None
    payment_method: Optional[str] = None
    payment_method_details: Optional[dict[str, Any]] = None
    payment_result: Optional[dict[str, Any]] = None
    items_price: Optional[float] = Field(default=None, ge=0)
    tax_price: Optional[float] = Field(default=None, ge=0)
    shipping_price: Optional[float] = Field(default=None, ge=0)
    total_price: Optional[float] = Field(default=None, ge=0)
    user: Optional[int] = None
    is_paid: Optional[bool] = None
    paid_at: Optional[datetime] = None
    is_delivered: Optional[bool] = None
    delivered_at: Optional[datetime] = None
    status: Optional[OrderStatus] = None

class OrderItemRead(BaseModel):
    product: Optional[dict[str, Any]] = None  # resolved product, None if it no longer exists
    product_id: int
    name: Optional[str] = None
    quantity: int
    price: Optional[float] = None
    image: Optional[str] = None

class OrderRead(BaseModel):
    id: int
    order_number: str
    order_items: list[OrderItemRead]
    shipping_address: Optional[dict[str, Any]] = None
    payment_method: Optional[str] = None
    payment_method_details: Optional[dict[str, Any]] = None
    payment_result: Optional[dict[str, Any]] = None
    items_price: float
    tax_price: float
    shipping_price: float
    total_price: float
    user: Optional[dict[str, Any]] = None  # resolved user, None if it no longer exists
    user_id: int
    is_paid: bool
    paid_at: Optional[datetime] = None
    is_delivered: bool
    delivered_at: Optional[datetime] = None
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

class OrderCount(BaseModel):
    count: int

class OrderDeleted(BaseModel):
    message: str
    status: bool

class SaleRead(BaseModel):
    id: int
    order_id: int
    products: list[dict[str, Any]]
    total_amount: float
    user_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class CheckoutProduct(BaseModel):
    name: str
    price: float = Field(ge=0)
    quantity: int = Field(gt=0)

class CheckoutSessionCreate(BaseModel):
    products: list[CheckoutProduct]

class CheckoutSessionRead(BaseModel):
    id: str
