# ==============================================================================
# Valkey Cache Implementation
# ==============================================================================
"""
Valkey/Redis implementation of the Cache interface.

Provides:
- JSON document storage per key
- Retries with exponential backoff for transient connection failures
- Connection health check for the CLI status command

Backend failures surface as CacheError so the stores can degrade to
"not remembered" instead of raising into the recorder.
"""

import json
import logging
from typing import Any

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from wikipulse.base.cache import Cache, CacheError, CorruptValueError
from wikipulse.utils.config import get_settings
from wikipulse.utils.retry import REDIS_RETRY_EXCEPTIONS, VALKEY_RETRIES, retry_light

logger = logging.getLogger(__name__)


class ValkeyCache(Cache):
    """
    Valkey/Redis implementation of the Cache interface.

    Configured with:
    - 10 second socket timeouts for fast failure detection
    - Automatic retries with exponential backoff for transient failures
    - Health check interval to keep connections alive

    All values are stored as JSON strings and deserialized on retrieval.
    """

    def __init__(
        self,
        url: str | None = None,
        socket_timeout: int = 10,
        retries: int | None = None,
        health_check_interval: int = 30,
    ):
        """
        Initialize Valkey cache.

        Args:
            url: Valkey/Redis connection URL. If None, uses settings.
            socket_timeout: Socket timeout in seconds (default: 10)
            retries: Number of retries for transient failures (default: VALKEY_RETRIES)
            health_check_interval: Health check interval in seconds (default: 30)
        """
        if url is None:
            settings = get_settings()
            url = settings.valkey.url

        retry_count = retries if retries is not None else VALKEY_RETRIES
        retry_strategy = Retry(ExponentialBackoff(cap=32, base=1), retries=retry_count)

        self._client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            retry=retry_strategy,
            retry_on_error=[RedisTimeoutError, RedisConnectionError],
            health_check_interval=health_check_interval,
        )
        self._url = url

    def get(self, key: str) -> Any | None:
        try:
            value = self._client.get(key)
        except RedisError as e:
            raise CacheError(f"Failed to read {key}: {e}") from e
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise CorruptValueError(f"Invalid JSON stored under {key}") from e

    def set(self, key: str, value: Any) -> None:
        try:
            json_value = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Value for {key} is not JSON-serializable: {e}") from e
        try:
            self._client.set(key, json_value)
        except RedisError as e:
            raise CacheError(f"Failed to write {key}: {e}") from e

    def delete(self, key: str) -> bool:
        try:
            return self._client.delete(key) > 0
        except RedisError as e:
            raise CacheError(f"Failed to delete {key}: {e}") from e

    def ping(self) -> bool:
        """
        Check if the cache is reachable.

        Returns:
            True if ping succeeds, False otherwise
        """
        try:
            return bool(self._client.ping())
        except RedisError:
            return False

    def close(self) -> None:
        """Close the connection."""
        self._client.close()


@retry_light(REDIS_RETRY_EXCEPTIONS, logger)
def _ping_valkey(url: str) -> bool:
    client = redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
    )
    try:
        return bool(client.ping())
    finally:
        client.close()


def check_valkey_connection() -> bool:
    """
    Check if Valkey is reachable.

    Uses a shorter timeout (5 seconds) and the light retry policy since this
    is just a health check.

    Returns:
        True if Valkey responds to ping, False otherwise
    """
    try:
        return _ping_valkey(get_settings().valkey.url)
    except RedisError as e:
        logger.debug("Valkey health check failed: %s", e)
        return False
