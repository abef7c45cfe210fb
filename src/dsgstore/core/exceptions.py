# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
Exception hierarchy for dsgstore.

This module defines the error types raised while merging the vector and
external station schemas, selecting a read path for a query, and streaming
joined records.
"""

import logging
from contextlib import contextmanager
from typing import Optional, TypeVar


class DSGStoreError(Exception):
    """
    Base exception for all dsgstore-specific errors.

    All custom exceptions in dsgstore inherit from this class, so callers
    can catch every store failure with a single except clause.
    """
    pass


class ConfigurationError(DSGStoreError):
    """
    Configuration-related errors.

    Raised when:
    - A configuration file cannot be loaded or parsed
    - Configuration values fail validation
    - A store is built without a required locator
    """
    pass


class ExternalSourceUnavailable(DSGStoreError):
    """
    The external time-indexed dataset could not be opened.

    Fatal for the current query and not retried internally.
    """
    pass


class SchemaError(DSGStoreError):
    """
    Schema construction or resolution failures.

    Raised when:
    - The designated time variable cannot be located
    - The station dimension of the external dataset cannot be located
    - A query projects an attribute the merged schema does not contain
    """
    pass


class JoinKeyMissing(SchemaError):
    """
    The station-key attribute is absent from the vector rows.

    Indicates a misconfigured store (wrong station attribute name) and is
    never silently ignored.
    """
    pass


class ExternalFetchMiss(DSGStoreError):
    """
    No external sample exists for a station/timestamp pair.

    Raised by the external dataset and recovered per record by the readers,
    which emit null external values instead.
    """
    pass


class MissingTimestamp(DSGStoreError):
    """
    A query needs external values but names no timestamp, and the store is
    configured to reject such queries.
    """
    pass


class VectorSourceError(DSGStoreError):
    """
    Vector record store failures.

    Raised when:
    - The shapefile cannot be opened or read
    - A projected column is missing from the vector records
    """
    pass


class EndOfData(StopIteration):
    """Normal termination of a reader's record sequence."""
    pass


# =============================================================================
# Validation Helpers
# =============================================================================

T = TypeVar('T')


def require(condition: bool, message: str, error_type: type = None) -> None:
    """
    Validate a condition, raising an exception if it fails.

    Args:
        condition: The condition that must be True
        message: Error message if condition is False
        error_type: Exception type to raise (default: SchemaError)

    Example:
        >>> require(index >= 0, "station attribute not in row", JoinKeyMissing)
    """
    if error_type is None:
        error_type = SchemaError
    if not condition:
        raise error_type(message)


def require_not_none(value: Optional[T], name: str, error_type: type = None) -> T:
    """
    Validate that a value is not None, returning it if valid.

    Args:
        value: The value to check
        name: Name of the value (for error message)
        error_type: Exception type to raise (default: ConfigurationError)

    Returns:
        The value if it is not None
    """
    if error_type is None:
        error_type = ConfigurationError
    if value is None:
        raise error_type(f"{name} must not be None")
    return value


@contextmanager
def dsgstore_error_handler(
    operation: str,
    logger: Optional[logging.Logger] = None,
    reraise: bool = True,
    error_type: type = DSGStoreError
):
    """
    Context manager for standardized error handling.

    dsgstore errors pass through unchanged; any other exception is logged
    and converted to ``error_type``, chained to the original.

    Args:
        operation: Description of the operation being performed (for logging)
        logger: Logger instance for error messages. If None, errors are not logged.
        reraise: Whether to re-raise the exception after handling (default: True)
        error_type: dsgstore exception type to convert generic exceptions to

    Example:
        >>> with dsgstore_error_handler("reading shapefile", logger, error_type=VectorSourceError):
        ...     frame = gpd.read_file(path)
    """
    try:
        yield
    except DSGStoreError:
        if logger:
            logger.error(f"Error during {operation}", exc_info=True)
        if reraise:
            raise
    except Exception as e:
        if logger:
            logger.error(f"Error during {operation}: {e}", exc_info=True)
        if reraise:
            raise error_type(f"Failed during {operation}: {e}") from e


__all__ = [
    # Base
    'DSGStoreError',
    # Domain exceptions
    'ConfigurationError',
    'ExternalSourceUnavailable',
    'SchemaError',
    'JoinKeyMissing',
    'ExternalFetchMiss',
    'MissingTimestamp',
    'VectorSourceError',
    'EndOfData',
    # Helpers
    'require',
    'require_not_none',
    'dsgstore_error_handler',
]
