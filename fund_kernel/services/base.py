"""
BaseService -- abstract base for kernel and module services.

Services receive a SQLAlchemy ``Session`` from the caller and persist with
``session.flush()``.  They never commit or roll back the outer transaction;
multi-row writes that must land together run inside ``session.begin_nested()``
so a failure leaves the caller's transaction exactly as it was.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from fund_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for services.

    Contract:
        The caller owns commit/rollback; the service only flushes.
    """

    def __init__(self, session: Session):
        self.session = session

    def _get(self, model: type[ModelType], entity_id: UUID, not_found: type[Exception]) -> ModelType:
        entity = self.session.get(model, entity_id)
        if entity is None:
            raise not_found(str(entity_id))
        return entity
