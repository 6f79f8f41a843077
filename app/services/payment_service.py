from typing import Dict

from sqlalchemy.orm import Session

from app.db import crud
from app.models.payment import PaymentResponse
from app.redis.cache import PAYMENTS_PENDING_CACHE_TTL, REDIS_KEY_PAYMENTS_PENDING, cached, refresh_cached


class PaymentService:
    @staticmethod
    def load_pending_payments(db: Session) -> dict:
        payments = crud.get_pending_payments(db)
        return {
            "payments": [PaymentResponse.model_validate(p) for p in payments],
            "total": len(payments),
        }

    @classmethod
    def pending_payments(cls, db: Session) -> dict:
        return cached(REDIS_KEY_PAYMENTS_PENDING, lambda: cls.load_pending_payments(db), PAYMENTS_PENDING_CACHE_TTL)

    @classmethod
    def warm(cls, db: Session) -> Dict[str, bool]:
        return {
            REDIS_KEY_PAYMENTS_PENDING: refresh_cached(
                REDIS_KEY_PAYMENTS_PENDING, lambda: cls.load_pending_payments(db), PAYMENTS_PENDING_CACHE_TTL
            )
        }
