"""
Transaction Helper Service

Commit/rollback handling for service methods that follow the
(success: bool, error_msg, ...) result convention, plus helpers for
recognising unique-constraint violations raised by the database.
"""

from functools import wraps
from typing import Callable, Any, Optional, Tuple
import logging
import re
import time
from sqlalchemy.exc import OperationalError, IntegrityError, DisconnectionError
from app import db

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION_CODE = '23505'

_SQLITE_UNIQUE = re.compile(r'UNIQUE constraint failed: \w+\.(\w+)')
_POSTGRES_UNIQUE = re.compile(r'Key \((\w+)\)=')


class TransactionHelper:
    """Helper class for managing database transactions safely"""

    @staticmethod
    def with_transaction(func: Callable) -> Callable:
        """
        Decorator that wraps a service method in a database transaction.

        A (True, ...) result is committed, a (False, ...) result is rolled
        back. Connection drops are retried; any other exception rolls back
        and propagates.

        Usage:
            @TransactionHelper.with_transaction
            def update_booking_status(booking_id, status):
                ...
                return True, None
        """
        @wraps(func)
        def wrapper(*args, **kwargs):
            max_retries = 3
            for attempt in range(max_retries):
                try:
                    result = func(*args, **kwargs)

                    if isinstance(result, tuple) and len(result) >= 2 and isinstance(result[0], bool):
                        if result[0]:
                            db.session.commit()
                        else:
                            db.session.rollback()
                        return result

                    db.session.commit()
                    return result

                except (OperationalError, DisconnectionError) as e:
                    db.session.rollback()
                    logger.error(f"Transaction error (attempt {attempt + 1}/{max_retries}): {str(e)}")
                    if attempt < max_retries - 1:
                        time.sleep(0.5)
                        continue
                    logger.error(f"Transaction failed after {max_retries} attempts: {str(e)}")
                    raise
                except Exception as e:
                    db.session.rollback()
                    logger.error(f"Transaction error in {func.__name__}: {str(e)}")
                    raise
            return None
        return wrapper

    @staticmethod
    def execute_with_rollback(operation: Callable, *args, **kwargs) -> Tuple[bool, Optional[Any], Optional[str]]:
        """
        Execute a database operation with automatic rollback on failure.

        Returns:
            tuple: (success: bool, result: Any, error_message: str)
        """
        try:
            result = operation(*args, **kwargs)
            db.session.commit()
            return True, result, None
        except Exception as e:
            db.session.rollback()
            error_msg = str(e)
            logger.error(f"Database operation failed: {error_msg}")
            return False, None, error_msg


def is_unique_violation(error: Exception) -> bool:
    """True when the database rejected a row because of a UNIQUE constraint"""
    if not isinstance(error, IntegrityError):
        return False
    orig = getattr(error, 'orig', None)
    code = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    if code == UNIQUE_VIOLATION_CODE:
        return True
    message = str(orig or error)
    return 'UNIQUE constraint failed' in message or 'duplicate key value' in message


def unique_violation_field(error: Exception) -> Optional[str]:
    """Column named in a unique violation message, when the driver reports one"""
    if not is_unique_violation(error):
        return None
    message = str(getattr(error, 'orig', None) or error)
    for pattern in (_SQLITE_UNIQUE, _POSTGRES_UNIQUE):
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


def unique_violation_message_key(error: Exception) -> str:
    """Translation key for a unique violation on the given column"""
    field = unique_violation_field(error)
    if field == 'code':
        return 'code_exists'
    if field == 'name':
        return 'name_exists'
    if field == 'email':
        return 'email_exists'
    if field == 'bill_number':
        return 'bill_number_exists'
    return 'identity_number_exists'
