import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from app.main import app
from app.api.routes import get_order_service
from app.application.order_numbers import OrderNumberGenerator
from app.application.sales import SaleRecorder
from app.application.schemas import OrderCreate, OrderItemCreate, OrderUpdate, SaleRead
from app.application.service import OrderService
from app.domain.errors import GenerationError, NotFound, PersistenceError, SaleCreationError, ValidationError
from app.domain.models import Order, Sale
from app.infrastructure.db import get_db


def _order_data(**overrides):
    data = {
        "order_items": [{"product": 1, "quantity": 2, "price": 50}],
        "total_price": 100,
        "user": 7,
    }
    data.update(overrides)
    return OrderCreate(**data)


def _sale_count(db):
    return db.scalar(select(func.count()).select_from(Sale))


class RacingGenerator(OrderNumberGenerator):
    """Hands out numbers that a concurrent request may already have inserted"""

    def __init__(self, db, numbers):
        super().__init__(db)
        self.numbers = list(numbers)

    def generate(self):
        return self.numbers.pop(0)


class FailingRecorder(SaleRecorder):
    def record_completion(self, order):
        raise PersistenceError("sales table is read-only")


class StaleRecorder(SaleRecorder):
    """Misses the sale a concurrent request wrote just before it"""

    def __init__(self, db):
        super().__init__(db)
        self.lookups = 0

    def find_by_order(self, order_id):
        self.lookups += 1
        if self.lookups == 1:
            return None
        return super().find_by_order(order_id)


def test_create_retries_when_number_taken_concurrently(db):
    OrderService(db, generator=RacingGenerator(db, ["DS-11111"])).create(_order_data())

    service = OrderService(db, generator=RacingGenerator(db, ["DS-11111", "DS-22222"]))
    order = service.create(_order_data())

    assert order.order_number == "DS-22222"
    assert service.count() == 2


def test_create_gives_up_after_repeated_insert_collisions(db):
    OrderService(db, generator=RacingGenerator(db, ["DS-11111"])).create(_order_data())

    service = OrderService(db, generator=RacingGenerator(db, ["DS-11111"] * 3), insert_retries=3)
    with pytest.raises(GenerationError):
        service.create(_order_data())
    assert service.count() == 1


def test_create_rejected_by_store_raises_validation_error(db):
    data = OrderCreate.model_construct(
        order_items=[OrderItemCreate(product=1, quantity=1)],
        shipping_address=None,
        payment_method=None,
        payment_method_details=None,
        items_price=0,
        tax_price=0,
        shipping_price=0,
        total_price=10,
        user=None,
    )
    with pytest.raises(ValidationError):
        OrderService(db).create(data)
    assert OrderService(db).count() == 0


def test_update_missing_order_raises_not_found(db):
    with pytest.raises(NotFound):
        OrderService(db).update(42, OrderUpdate(status="Completed"))
    assert _sale_count(db) == 0


def test_sale_failure_leaves_order_completed(db):
    order = OrderService(db).create(_order_data())

    service = OrderService(db, sales=FailingRecorder(db))
    with pytest.raises(SaleCreationError) as excinfo:
        service.update(order.id, OrderUpdate(status="Completed"))

    assert excinfo.value.order_id == order.id
    assert db.get(Order, order.id).status == "Completed"
    assert _sale_count(db) == 0

    sale = OrderService(db).reconcile_sale(order.id)
    assert sale.order_id == order.id
    assert float(sale.total_amount) == 100
    assert _sale_count(db) == 1


def test_concurrent_sale_insert_returns_existing_sale(db):
    order = OrderService(db).create(_order_data())
    first = SaleRecorder(db).record_completion(order)

    second = StaleRecorder(db).record_completion(db.get(Order, order.id))

    assert second.id == first.id
    assert _sale_count(db) == 1


def test_completion_after_other_status_changes_records_once(db):
    service = OrderService(db)
    order = service.create(_order_data())

    service.update(order.id, OrderUpdate(status="Processing", is_paid=True))
    assert _sale_count(db) == 0
    service.update(order.id, OrderUpdate(status="Completed"))
    assert _sale_count(db) == 1
    service.update(order.id, OrderUpdate(is_delivered=True))
    assert _sale_count(db) == 1


def test_delete_leaves_sale(db):
    service = OrderService(db)
    order = service.create(_order_data())
    service.update(order.id, OrderUpdate(status="Completed"))

    service.delete(order.id)

    with pytest.raises(NotFound):
        service.get(order.id)
    assert [s.order_id for s in SaleRecorder(db).list()] == [order.id]


def test_sale_creation_error_response(client, session_factory, order_payload):
    order = client.post("/orders/", json=order_payload).json()

    def failing_service():
        db = session_factory()
        try:
            yield OrderService(db, sales=FailingRecorder(db))
        finally:
            db.close()

    app.dependency_overrides[get_order_service] = failing_service
    resp = client.put(f"/orders/{order['id']}", json={"status": "Completed"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "SALE_CREATION_ERROR"
    assert resp.json()["order_id"] == order["id"]

    del app.dependency_overrides[get_order_service]
    assert client.get(f"/orders/{order['id']}").json()["status"] == "Completed"
    assert client.get("/sales/").json() == []

    resp = client.post(f"/orders/{order['id']}/sale")
    assert resp.status_code == 200
    assert resp.json()["total_amount"] == 499.99


class UnreachableStore:
    """Session whose every read fails the way a dropped connection does"""

    def _fail(self, *args, **kwargs):
        raise OperationalError("SELECT orders.id", {}, Exception("connection refused"))

    scalars = scalar = get = execute = _fail

    def rollback(self):
        pass


@pytest.mark.parametrize("read", [
    lambda service: service.get(1),
    lambda service: service.count(),
    lambda service: service.list(),
    lambda service: service.sales.get(1),
])
def test_reads_from_failing_store_raise_persistence_error(read):
    with pytest.raises(PersistenceError):
        read(OrderService(UnreachableStore()))


def test_failing_store_read_response(client):
    session_override = app.dependency_overrides[get_db]
    app.dependency_overrides[get_order_service] = lambda: OrderService(UnreachableStore())
    app.dependency_overrides[get_db] = lambda: UnreachableStore()
    try:
        for path in ("/orders/1", "/orders/count", "/sales/"):
            resp = client.get(path)
            assert resp.status_code == 500
            assert resp.json()["error"] == "PERSISTENCE_ERROR"
    finally:
        del app.dependency_overrides[get_order_service]
        app.dependency_overrides[get_db] = session_override


def test_sale_read_from_recorded_sale(db):
    service = OrderService(db)
    order = service.create(_order_data())
    service.update(order.id, OrderUpdate(status="Completed"))

    sale = SaleRead.model_validate(SaleRecorder(db).find_by_order(order.id))

    assert sale.order_id == order.id
    assert sale.total_amount == 100
    assert sale.products[0]["product"] == 1
