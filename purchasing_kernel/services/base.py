"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session contract for every write-side service.
    Services persist through ``session.flush()`` inside the caller's
    transaction and never commit or roll back themselves.

Architecture position:
    Kernel > Services.  The facade (``purchasing_facade.PurchasingService``)
    or a test harness owns commit/rollback, which is what makes a receiving
    batch or an order creation all-or-nothing.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from purchasing_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session):
        self.session = session
