"""
Helper utilities and common functions
"""

import os
import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger("transcribe.helpers")


def ensure_directory_exists(path: str) -> bool:
    """Ensure directory exists, create if not"""
    try:
        os.makedirs(path, exist_ok=True)
        return True
    except OSError as e:
        logger.error(f"Failed to create directory {path}: {e}")
        return False


def format_duration(seconds: float) -> str:
    """Format duration in human readable format"""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes = seconds // 60
        secs = seconds % 60
        return f"{minutes}m {secs}s"
    else:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes}m"


def format_file_size(bytes_size: float) -> str:
    """Format file size in human readable format"""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if bytes_size < 1024.0:
            return f"{bytes_size:.1f} {unit}"
        bytes_size /= 1024.0
    return f"{bytes_size:.1f} TB"


async def retry_async(
    coro_func: Callable[[], Awaitable[Any]],
    max_retries: int = 3,
    delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: tuple = (Exception,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
) -> Any:
    """Retry async function with exponential backoff

    Waits ``delay * backoff_factor ** attempt`` seconds after a failed
    attempt. Exceptions outside ``exceptions`` propagate immediately.
    """
    last_exception = None

    for attempt in range(max_retries + 1):
        try:
            return await coro_func()
        except exceptions as e:
            last_exception = e

            if attempt == max_retries:
                break

            wait_time = delay * (backoff_factor ** attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{max_retries + 1} failed, retrying in {wait_time}s",
                error=str(e) or type(e).__name__
            )
            await sleep(wait_time)

    raise last_exception


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff policy for remote calls"""
    max_retries: int = 4
    delay: float = 1.0
    backoff_factor: float = 2.0
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, compare=False)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff_schedule(self) -> list:
        """Delays slept between consecutive attempts"""
        return [self.delay * (self.backoff_factor ** attempt) for attempt in range(self.max_retries)]

    async def run(self, coro_func: Callable[[], Awaitable[Any]], retry_on: tuple) -> Any:
        return await retry_async(
            coro_func,
            max_retries=self.max_retries,
            delay=self.delay,
            backoff_factor=self.backoff_factor,
            exceptions=retry_on,
            sleep=self.sleep
        )
