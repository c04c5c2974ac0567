"""Error taxonomy shared by the earnings and withdrawal workflow.

Guard failures reuse Django's ``ValidationError`` so that model ``clean``
methods, forms and services all raise the same class.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.db import DatabaseError, IntegrityError

logger = logging.getLogger(__name__)

__all__ = [
    "AuthorizationError",
    "DuplicateRecordError",
    "NotFoundError",
    "StorageError",
    "ValidationError",
    "storage_guard",
]


class NotFoundError(ObjectDoesNotExist):
    """Raised when a post or withdrawal request id does not exist."""


class AuthorizationError(PermissionDenied):
    """Raised on a role or ownership mismatch."""


class StorageError(Exception):
    """Underlying persistence failure."""


class DuplicateRecordError(StorageError):
    """A write collided with a uniqueness constraint."""


@contextmanager
def storage_guard(action: str) -> Iterator[None]:
    """Translate database failures raised inside the block into ``StorageError``."""
    try:
        yield
    except IntegrityError as exc:
        logger.error("Integrity error while trying to %s: %s", action, exc)
        raise DuplicateRecordError(f"Could not {action}: a matching record already exists.") from exc
    except DatabaseError as exc:
        logger.error("Database error while trying to %s: %s", action, exc)
        raise StorageError(f"Could not {action}.") from exc
