"""
Exception Handler Module
Provides the ledger error taxonomy and the store error translation decorator
"""

import logging
import functools
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for every error surfaced to callers of the ledger services"""

    error_code = "LEDGER_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        if error_code:
            self.error_code = error_code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"success": False, "error_code": self.error_code, "error": self.message}


class AuthenticationError(LedgerError):
    """No authenticated session for a call that requires one"""
    error_code = "NOT_AUTHENTICATED"


class AuthorizationError(LedgerError):
    """Caller lacks the role required for the operation"""
    error_code = "NOT_AUTHORIZED"


class ValidationError(LedgerError):
    """Custom validation error for input validation failures"""
    error_code = "INVALID_INPUT"


class NotFoundError(LedgerError):
    """Entity absent, not owned by the caller, or already in a terminal state"""
    error_code = "NOT_FOUND"


class ConflictError(LedgerError):
    """Operation would overdraw a wallet or repeat a transition"""
    error_code = "CONFLICT"


class PersistenceError(LedgerError):
    """Store-level failure; nothing was applied and the call is safe to retry"""
    error_code = "PERSISTENCE_FAILURE"


def translate_store_errors(operation: str) -> Callable:
    """
    Decorator for store operations.
    Re-raises ledger errors unchanged and wraps SQLAlchemy failures in PersistenceError.
    Rollback is the wrapped function's job; this only normalises the error type.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)
            except LedgerError:
                raise
            except SQLAlchemyError as e:
                logger.error(f"❌ STORE_FAILURE: {operation} - {type(e).__name__}: {e}")
                raise PersistenceError(f"Could not complete {operation}, please retry") from e

        return wrapper

    return decorator
