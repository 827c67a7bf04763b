# compensation/errors.py
"""
Error taxonomy for the compensation engine.
"""
import logging
import warnings
from typing import Optional


class CompensationError(Exception):
    """Base class for all compensation errors."""


class ValidationError(CompensationError):
    """Malformed input rejected before anything is persisted."""


class NotFoundError(CompensationError):
    """Referenced user, star level or criteria block does not exist."""


class ConflictError(CompensationError):
    """Concurrent modification detected; the client should retry."""

    def __init__(self, message: str, currentStar: Optional[int] = None):
        super().__init__(message)
        self.currentStar = currentStar


class TraversalLimitError(CompensationError):
    """A tree walk exceeded its visit cap."""


class DataInconsistencyWarning(UserWarning):
    """Tree data contradicts itself; the operation degrades instead of failing."""


def reportInconsistency(logger: logging.Logger, message: str):
    """Log a data inconsistency and surface it as a DataInconsistencyWarning."""
    logger.warning(message)
    warnings.warn(message, DataInconsistencyWarning, stacklevel=2)
