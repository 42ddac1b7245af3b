"""Transaction coordination across the blob store and the metadata store.

The two stores cannot commit atomically, so every multi-step operation follows
one ordering discipline:

    1. mutate the blob store (stage content)
    2. mutate metadata inside a database transaction
    3. commit the metadata transaction last

If step 2 or 3 fails, the metadata transaction is rolled back and the saga
runs its compensating actions (deleting the staged blob). Compensation is best
effort: a failure there is logged as a TransactionError at CRITICAL level and
the original error keeps propagating. Once the metadata commit succeeds the
operation is durable.
"""

import logging
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Iterator, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from infrastructure.repositories.document_repository import DocumentRepository
from observability.metrics import compensations_total

from .errors import StorageError, TransactionError, VersionConflictError

logger = logging.getLogger(__name__)

VERSION_CHAIN_CONSTRAINTS = ("uq_document_parent_version", "uq_document_current_version")

# SQLite names columns, not constraints, in its unique-violation messages
VERSION_CHAIN_COLUMNS = ("document.parent_document_id, document.version",)


def is_version_chain_conflict(error: IntegrityError) -> bool:
    """Whether a constraint violation came from a version chain uniqueness rule."""
    diag = getattr(error.orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None)
    if constraint_name:
        return constraint_name in VERSION_CHAIN_CONSTRAINTS
    message = str(error.orig)
    return any(name in message for name in VERSION_CHAIN_CONSTRAINTS + VERSION_CHAIN_COLUMNS)


Compensation = Callable[[], Awaitable[None]]


@dataclass
class Saga:
    """Compensating actions registered while an operation is in flight."""
    operation: str
    compensations: List[tuple] = field(default_factory=list)

    def add_compensation(self, name: str, action: Compensation) -> None:
        self.compensations.append((name, action))

    def clear(self) -> None:
        """Forget registered compensations (the work they undo is now durable)."""
        self.compensations.clear()


class TransactionCoordinator:
    """Owns metadata transactions and blob compensation for lifecycle operations.

    Args:
        session_factory: Callable returning a new SQLAlchemy Session
        log: Logger (or LoggerAdapter) carrying operation context
    """

    def __init__(self, session_factory: Callable[[], Session], log: Optional[logging.Logger] = None):
        self.session_factory = session_factory
        self.log = log or logger

    @contextmanager
    def metadata_transaction(self) -> Iterator[DocumentRepository]:
        """Begin → work → commit, rolling back on any exception.

        Yields a DocumentRepository bound to a fresh session. The session is
        exclusively owned by this block and closed on exit.

        Raises:
            VersionConflictError: On a version chain uniqueness violation
            StorageError: On any other constraint violation or store failure
        """
        session = self.session_factory()
        try:
            yield DocumentRepository(session)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            if not is_version_chain_conflict(e):
                self.log.error(f"Metadata transaction violated a constraint: {e.orig}")
                raise StorageError(
                    f"Metadata store rejected the write: {e.orig}",
                    details={"constraint_error": str(e.orig)},
                ) from e
            self.log.warning(f"Metadata transaction hit a version chain conflict: {e.orig}")
            raise VersionConflictError(
                "Concurrent modification of the version chain",
                details={"constraint_error": str(e.orig)},
            ) from e
        except SQLAlchemyError as e:
            session.rollback()
            self.log.error(f"Metadata transaction failed: {e}")
            raise StorageError(f"Metadata store failure: {e}") from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def read_session(self) -> Iterator[DocumentRepository]:
        """Read-only unit: no commit, just a closed session afterwards."""
        session = self.session_factory()
        try:
            yield DocumentRepository(session)
        except SQLAlchemyError as e:
            self.log.error(f"Metadata read failed: {e}")
            raise StorageError(f"Metadata store failure: {e}") from e
        finally:
            session.close()

    @asynccontextmanager
    async def saga(self, operation: str) -> AsyncIterator[Saga]:
        """Collect compensations; run them in reverse if the block raises.

        Cancellation (asyncio.CancelledError) is treated exactly like a failure.
        """
        saga = Saga(operation=operation)
        try:
            yield saga
        except BaseException as error:
            await self.compensate(saga, error)
            raise
        saga.clear()

    async def compensate(self, saga: Saga, error: Optional[BaseException] = None) -> None:
        """Run and drop every registered compensation, newest first. Never raises."""
        while saga.compensations:
            name, action = saga.compensations.pop()
            try:
                await action()
                compensations_total.labels(action=name, status="success").inc()
                self.log.info(f"Compensation '{name}' completed for {saga.operation}")
            except Exception as comp_error:
                compensations_total.labels(action=name, status="error").inc()
                failure = TransactionError(
                    f"Compensation '{name}' failed during {saga.operation}: {comp_error}",
                    original_error=error,
                    details={"operation": saga.operation, "compensation": name},
                )
                self.log.critical(failure.message, exc_info=comp_error)
