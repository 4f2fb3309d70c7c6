from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
import httpx
from app.core_settings import get_settings
from app.infrastructure.db import get_db
from app.application.service import OrderService
from app.application.sales import SaleRecorder
from app.application.order_numbers import OrderNumberGenerator
from app.application.references import ReferenceResolver
from app.application.checkout import CheckoutGateway
from app.application.schemas import (
    OrderCreate, OrderRead, OrderUpdate, OrderCount, OrderDeleted,
    SaleRead, CheckoutSessionCreate, CheckoutSessionRead,
)

router = APIRouter(prefix="/orders", tags=["orders"])
sales_router = APIRouter(prefix="/sales", tags=["sales"])


def get_reference_resolver():
    settings = get_settings()
    with httpx.Client(timeout=settings.REFERENCE_TIMEOUT_SECS) as client:
        yield ReferenceResolver(client, settings.PRODUCTS_SERVICE_URL, settings.USERS_SERVICE_URL)


def get_checkout_gateway():
    settings = get_settings()
    with httpx.Client(base_url=settings.STRIPE_API_BASE, timeout=settings.CHECKOUT_TIMEOUT_SECS) as client:
        yield CheckoutGateway(
            client,
            secret_key=settings.STRIPE_SECRET_KEY,
            currency=settings.CHECKOUT_CURRENCY,
            success_url=settings.CHECKOUT_SUCCESS_URL,
            cancel_url=settings.CHECKOUT_CANCEL_URL,
        )


def get_order_service(
    db: Session = Depends(get_db),
    resolver: ReferenceResolver = Depends(get_reference_resolver),
) -> OrderService:
    settings = get_settings()
    return OrderService(
        db,
        resolver=resolver,
        generator=OrderNumberGenerator(db, max_attempts=settings.ORDER_NUMBER_MAX_ATTEMPTS),
        insert_retries=settings.ORDER_NUMBER_INSERT_RETRIES,
    )


@router.get("/count", response_model=OrderCount)
def count_orders(service: OrderService = Depends(get_order_service)):
    return {"count": service.count()}

@router.get("/", response_model=list[OrderRead])
def list_orders(service: OrderService = Depends(get_order_service)):
    """List all orders with product and user references resolved."""
    return service.list()

@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: int, service: OrderService = Depends(get_order_service)):
    return service.get(order_id)

@router.post("/", response_model=OrderRead, status_code=201)
def create_order(payload: OrderCreate, service: OrderService = Depends(get_order_service)):
    return service.serialize(service.create(payload), resolve=False)

@router.put("/{order_id}", response_model=OrderRead)
def update_order(order_id: int, payload: OrderUpdate, service: OrderService = Depends(get_order_service)):
    return service.serialize(service.update(order_id, payload), resolve=False)

@router.delete("/{order_id}", response_model=OrderDeleted)
def delete_order(order_id: int, service: OrderService = Depends(get_order_service)):
    service.delete(order_id)
    return {"message": "The order is deleted!", "status": True}

@router.post("/{order_id}/sale", response_model=SaleRead)
def reconcile_order_sale(order_id: int, service: OrderService = Depends(get_order_service)):
    """Record the sale of a completed order whose sale write failed earlier."""
    return service.reconcile_sale(order_id)

@router.post("/checkout-session", response_model=CheckoutSessionRead)
def create_checkout_session(
    payload: CheckoutSessionCreate,
    gateway: CheckoutGateway = Depends(get_checkout_gateway),
):
    return {"id": gateway.create_session(payload.products)}


@sales_router.get("/", response_model=list[SaleRead])
def list_sales(order_id: Optional[int] = None, db: Session = Depends(get_db)):
    return SaleRecorder(db).list(order_id)

@sales_router.get("/{sale_id}", response_model=SaleRead)
def get_sale(sale_id: int, db: Session = Depends(get_db)):
    return SaleRecorder(db).get(sale_id)
