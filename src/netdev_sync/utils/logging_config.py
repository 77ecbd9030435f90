"""Logging configuration for netdev-sync.

Provides configurable logging with:
- File-based logging with rotation
- Console output for real-time debugging
- Performance timing of device calls and discovery passes

Environment Variables:
    NETDEV_SYNC_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    NETDEV_SYNC_LOG_FILE: Path to log file (default: ~/.netdev-sync/netdev-sync.log)
    NETDEV_SYNC_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    NETDEV_SYNC_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from netdev_sync.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("list_all")
    async def list_all(self, kind):
        ...

    async with timed_section("discover", device_id="leaf1", kind="port_channel"):
        ...
"""
import asyncio
import functools
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("netdev_sync.perf")

_configured = False


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("NETDEV_SYNC_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".netdev-sync" / "netdev-sync.log"
    return Path(os.environ.get("NETDEV_SYNC_LOG_FILE", str(default_path)))


def setup_logging(console: bool = True) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (respects NETDEV_SYNC_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance log file for timing metrics

    Calling it again is a no-op.
    """
    global _configured
    if _configured:
        return

    log_level = get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("NETDEV_SYNC_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("NETDEV_SYNC_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-32s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    perf_log_file = log_file.parent / "netdev-sync-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    root_logger = logging.getLogger("netdev_sync")
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(main_format)
        root_logger.addHandler(console_handler)

    # Timing goes to its own file only
    perf_logger.addHandler(perf_handler)
    perf_logger.propagate = False

    _configured = True
    root_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")


def _format_timing(operation: str, device_id: Optional[str], elapsed: float,
                   outcome: str, extra: dict) -> str:
    msg = f"{operation:20s} | {device_id or 'N/A':15s} | {elapsed:8.2f}ms | {outcome}"
    if extra:
        msg += " | " + " | ".join(f"{k}={v}" for k, v in extra.items())
    return msg


def timed(operation: str, device_id: Optional[str] = None):
    """Decorator to log execution time of async device calls.

    The device id is taken from ``self.device_id`` when not given.

    Usage:
        @timed("run_cmds")
        async def _run_cmds(self, cmds):
            ...
    """
    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"@timed requires a coroutine function, got {func.__name__}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            dev_id = device_id
            if dev_id is None and args and hasattr(args[0], "device_id"):
                dev_id = args[0].device_id

            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(_format_timing(operation, dev_id, elapsed, f"FAIL: {e}", {}))
                raise
            elapsed = (time.perf_counter() - start) * 1000
            perf_logger.info(_format_timing(operation, dev_id, elapsed, "OK", {}))
            return result

        return wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, device_id: Optional[str] = None, **extra):
    """Async context manager for timing code sections.

    Usage:
        async with timed_section("discover", device_id="leaf1", kind="interface"):
            records = await client.list_all("interface")
    """
    start = time.perf_counter()
    try:
        yield
    except BaseException as e:
        elapsed = (time.perf_counter() - start) * 1000
        perf_logger.warning(_format_timing(operation, device_id, elapsed, f"FAIL: {e!r}", extra))
        raise
    elapsed = (time.perf_counter() - start) * 1000
    perf_logger.info(_format_timing(operation, device_id, elapsed, "OK", extra))
