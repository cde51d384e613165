from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taxroll_archive.core.exceptions import AppError, InternalError
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


class BaseService:
    """Base class for application services.

    Provides a standardized execution flow: domain errors propagate unchanged,
    store failures are logged and surfaced as ``InternalError``.
    """

    def __init__(self, session: AsyncSession):
        """Initialize the service.

        Args:
            session: Request-scoped database session shared by the repositories
        """
        self.session = session
        self.logger = LOGGER

    async def execute(self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run one service operation with standardized error handling.

        Args:
            operation: Coroutine function holding the core logic
            *args: Positional arguments for the operation
            **kwargs: Keyword arguments for the operation

        Returns:
            Result of the operation

        Raises:
            AppError: Domain errors raised by the operation
            InternalError: If the store fails
        """
        try:
            return await operation(*args, **kwargs)

        except AppError:
            raise

        except SQLAlchemyError as e:
            self.logger.error(
                f"Store failure in {operation.__name__}: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__},
            )
            raise InternalError("The record store failed to complete the request", original_error=e) from e
