"""Shared enums for the shortlink service.

This module defines the status values used as metric labels and log fields.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["RequestStatus", "CacheStatus"]


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    ERROR = "error"
    NOT_FOUND = "not_found"


class CacheStatus(StrEnum):
    """Outcome of a redirect lookup against the local cache and the store."""

    HIT = "hit"
    MISS = "miss"
    FALLBACK = "fallback"
