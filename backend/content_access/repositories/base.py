"""
Shared repository helpers.

Store failures are translated into InfrastructureError with operation
context. IntegrityError passes through untouched: the claim arbiter uses it
to resolve concurrent claim creation.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from content_access.access.errors import InfrastructureError

logger = logging.getLogger(__name__)


@contextmanager
def store_operation(operation: str, **context: Any) -> Iterator[None]:
    """Wrap a block of store calls, converting driver failures."""
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as e:
        logger.error(
            "Store operation failed",
            extra={"operation": operation, **context},
            exc_info=True,
        )
        raise InfrastructureError(operation, e, **context) from e
