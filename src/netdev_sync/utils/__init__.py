"""Utility modules for retries, logging and auditing."""
from .connection import with_retry, RETRYABLE_EXCEPTIONS, TransientDeviceError
from .logging_config import (
    setup_logging,
    timed,
    timed_section,
    perf_logger,
)
from .audit_log import ChangeTracker, ChangeRecord, setup_audit_logging, get_recent_changes

__all__ = [
    "with_retry",
    "RETRYABLE_EXCEPTIONS",
    "TransientDeviceError",
    "setup_logging",
    "timed",
    "timed_section",
    "perf_logger",
    "ChangeTracker",
    "ChangeRecord",
    "setup_audit_logging",
    "get_recent_changes",
]
