"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    service in the kernel layer.  Services receive a SQLAlchemy ``Session``
    and persist through ``session.flush()``.

Invariants enforced:
    Transaction boundaries: services that represent a whole business
    operation (PaymentAllocationService, InvoiceService, ExpenseService)
    commit on success and roll back on failure when ``auto_commit`` is
    True.  Building-block services (SequenceService, SequenceAllocator)
    only flush, so their work joins the caller's transaction.

Failure modes:
    - Any SQLAlchemyError escaping a unit of work is rolled back and
      re-raised as StorageError (see ``unit_of_work``).
"""

from abc import ABC
from contextlib import contextmanager
from typing import Generic, Iterator, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from billing_kernel.db.base import Base
from billing_kernel.exceptions import StorageError
from billing_kernel.logging_config import get_logger

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger("services.base")


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller.  When
        ``auto_commit`` is True the service owns the commit/rollback of each
        public operation; when False the caller does.
    """

    def __init__(self, session: Session, auto_commit: bool = True):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
            auto_commit: Commit on success / roll back on failure.
        """
        self.session = session
        self._auto_commit = auto_commit

    @contextmanager
    def unit_of_work(self, operation: str) -> Iterator[Session]:
        """
        Scope one business operation: commit once or roll back entirely.

        Domain errors (BillingKernelError) propagate unchanged after the
        rollback; raw database errors become StorageError with the original
        chained.  IntegrityError is re-raised as-is so callers can translate
        it into a domain-specific conflict.
        """
        try:
            yield self.session
            if self._auto_commit:
                self.session.commit()
        except IntegrityError:
            if self._auto_commit:
                self.session.rollback()
            logger.warning(
                "unit_of_work_rolled_back",
                extra={"operation": operation, "reason": "integrity_error"},
            )
            raise
        except SQLAlchemyError as exc:
            if self._auto_commit:
                self.session.rollback()
            logger.error(
                "unit_of_work_rolled_back",
                extra={"operation": operation, "reason": "storage_error"},
                exc_info=True,
            )
            raise StorageError(operation, str(exc)) from exc
        except Exception:
            if self._auto_commit:
                self.session.rollback()
            logger.warning(
                "unit_of_work_rolled_back",
                extra={"operation": operation, "reason": "domain_error"},
            )
            raise
