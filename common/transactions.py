"""
Transaction boundary for compound ledger and bed mutations.

Every service operation that touches more than one row runs inside
`atomic_operation()`. Store-level failures that a retry can resolve
(lock timeouts, deadlocks, constraint races) surface as ConcurrencyConflict
instead of a bare 500.
"""

import functools
import logging
from contextlib import contextmanager

from django.db import transaction, IntegrityError, OperationalError

from .exceptions import ConcurrencyConflict, NotFound

logger = logging.getLogger(__name__)


@contextmanager
def atomic_operation(name):
    """Run the block in one transaction, translating store conflicts."""
    try:
        with transaction.atomic():
            yield
    except (OperationalError, IntegrityError) as e:
        logger.warning(f"{name} rolled back: {e}")
        raise ConcurrencyConflict(f"{name} conflicted with a concurrent update, please retry") from e


def atomic_service(func):
    """Decorator form of atomic_operation, named after the wrapped function."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with atomic_operation(func.__name__):
            return func(*args, **kwargs)
    return wrapper


def lock_or_404(queryset, pk, label):
    """
    SELECT ... FOR UPDATE a single row.

    Must be called inside atomic_operation().
    """
    try:
        return queryset.select_for_update().get(pk=pk)
    except (queryset.model.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"{label} not found")
