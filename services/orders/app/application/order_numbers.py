from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.domain.models import Order
from app.domain.errors import GenerationError, StoreUnavailable
from shared.core import get_logger
from typing import Optional
import random

logger = get_logger(__name__)

ORDER_NUMBER_PREFIX = "DS-"
ORDER_NUMBER_MIN = 10000
ORDER_NUMBER_MAX = 99999


class OrderNumberGenerator:
    """Generates human readable order numbers in format DS-NNNNN.

    Candidates are drawn at random and checked against the orders table
    until an unused one is found. The space only holds 90,000 values, so
    the number of draws is capped instead of looping forever on a full
    store. The check is not atomic with the insert; the unique index on
    ``orders.order_number`` catches the remaining race.
    """

    def __init__(self, db: Session, max_attempts: int = 100, rng: Optional[random.Random] = None):
        self.db = db
        self.max_attempts = max_attempts
        self.rng = rng or random.SystemRandom()

    def _candidate(self) -> str:
        return f"{ORDER_NUMBER_PREFIX}{self.rng.randint(ORDER_NUMBER_MIN, ORDER_NUMBER_MAX)}"

    def exists(self, order_number: str) -> bool:
        try:
            found = self.db.execute(
                select(Order.id).where(Order.order_number == order_number).limit(1)
            ).first()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Order store unavailable while checking {order_number}: {e}") from e
        return found is not None

    def generate(self) -> str:
        for attempt in range(1, self.max_attempts + 1):
            candidate = self._candidate()
            if not self.exists(candidate):
                if attempt > 1:
                    logger.info(
                        f"Order number {candidate} found after {attempt} attempts",
                        extra={'extra_fields': {'order_number': candidate, 'attempts': attempt}}
                    )
                return candidate
        logger.error(f"No free order number after {self.max_attempts} attempts")
        raise GenerationError(f"Could not generate a unique order number after {self.max_attempts} attempts")
