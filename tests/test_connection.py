"""Tests for retry utilities."""
import httpx
import pytest

from netdev_sync.devices.base import DeviceFault
from netdev_sync.utils.connection import (
    RETRYABLE_EXCEPTIONS,
    RETRYABLE_STATUS_CODES,
    TransientDeviceError,
    with_retry,
)


class TestWithRetry:
    """Tests for retry decorator."""

    @pytest.mark.asyncio
    async def test_async_success_no_retry(self):
        """Successful async function doesn't retry."""
        call_count = 0

        @with_retry(max_attempts=3)
        async def succeeding_func():
            nonlocal call_count
            call_count += 1
            return "success"

        result = await succeeding_func()
        assert result == "success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_async_retry_then_success(self):
        """Async function retries on failure then succeeds."""
        call_count = 0

        @with_retry(max_attempts=3, min_wait=0.01, max_wait=0.1)
        async def failing_then_succeeding():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ConnectionRefusedError("Connection refused")
            return "success"

        result = await failing_then_succeeding()
        assert result == "success"
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_async_max_retries_exceeded(self):
        """Async function raises after max retries."""
        call_count = 0

        @with_retry(max_attempts=3, min_wait=0.01, max_wait=0.1)
        async def always_failing():
            nonlocal call_count
            call_count += 1
            raise TimeoutError("Always times out")

        with pytest.raises(TimeoutError):
            await always_failing()
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_transient_status_is_retried(self):
        """HTTP 503 from the device is retried."""
        call_count = 0

        @with_retry(max_attempts=3, min_wait=0.01, max_wait=0.1)
        async def busy_then_ok():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise TransientDeviceError(503, "Service Unavailable")
            return "ok"

        assert await busy_then_ok() == "ok"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_device_fault_is_not_retried(self):
        """Rejected configuration is terminal."""
        call_count = 0

        @with_retry(max_attempts=3, min_wait=0.01, max_wait=0.1)
        async def rejected():
            nonlocal call_count
            call_count += 1
            raise DeviceFault("invalid-command", "% Invalid input")

        with pytest.raises(DeviceFault):
            await rejected()
        assert call_count == 1

    def test_sync_success_no_retry(self):
        """Successful sync function doesn't retry."""
        call_count = 0

        @with_retry(max_attempts=3)
        def succeeding_func():
            nonlocal call_count
            call_count += 1
            return "success"

        result = succeeding_func()
        assert result == "success"
        assert call_count == 1

    def test_sync_retry(self):
        call_count = 0

        @with_retry(max_attempts=2, min_wait=0.01, max_wait=0.1)
        def flaky():
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise ConnectionResetError("reset")
            return "ok"

        assert flaky() == "ok"
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_exception(self):
        """Non-retryable exceptions are not retried."""
        call_count = 0

        @with_retry(max_attempts=3, exceptions=(ConnectionRefusedError,))
        async def raising_value_error():
            nonlocal call_count
            call_count += 1
            raise ValueError("Not retryable")

        with pytest.raises(ValueError):
            await raising_value_error()
        assert call_count == 1  # Only one attempt


class TestRetryableExceptions:
    """Tests for retryable exceptions list."""

    @pytest.mark.parametrize("exc", [ConnectionRefusedError, ConnectionResetError, TimeoutError, httpx.TransportError])
    def test_transport_failures_are_retryable(self, exc):
        assert exc in RETRYABLE_EXCEPTIONS

    def test_http_timeouts_are_transport_errors(self):
        assert issubclass(httpx.ConnectTimeout, httpx.TransportError)

    def test_device_fault_is_not_retryable(self):
        assert not issubclass(DeviceFault, RETRYABLE_EXCEPTIONS)

    def test_gateway_errors_are_transient(self):
        assert RETRYABLE_STATUS_CODES == {502, 503, 504}


class TestTransientDeviceError:
    """Tests for TransientDeviceError."""

    def test_message(self):
        error = TransientDeviceError(503, "Service Unavailable")
        assert error.status_code == 503
        assert str(error) == "HTTP 503: Service Unavailable"

    def test_message_without_reason(self):
        assert str(TransientDeviceError(502)) == "HTTP 502"
