from .base_service import BaseService, Clock, utc_now
from .exceptions import (
    InvalidIndexError,
    NotFoundError,
    StudyDomainException,
    ValidationError,
)

__all__ = [
    "BaseService",
    "Clock",
    "utc_now",
    "StudyDomainException",
    "InvalidIndexError",
    "NotFoundError",
    "ValidationError",
]
