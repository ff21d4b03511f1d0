"""
Settings service for runtime configuration with database overrides.

Settings are resolved from the database first, then the Redis cache (when the
database has no value or cannot be read), then environment variables. A
database hit refreshes the cache, which is shared across instances.
"""

import os
import time
import logging
from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from redis.asyncio import Redis
from dotenv import load_dotenv

from academy.database.models import Setting

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Redis configuration
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
CACHE_TTL_SECONDS = 60  # Cache settings for 60 seconds
REDIS_KEY_PREFIX = "settings:"
RECONNECT_BACKOFF_SECONDS = 30

# Global Redis client (initialized on first use)
_redis_client: Optional[Redis] = None
_last_connect_failure: float = 0.0


def get_bool_env(key: str, default: bool = True) -> bool:
    """
    Parse a boolean environment variable from a string value.

    Args:
        key: Environment variable name
        default: Default value if the variable is not set

    Returns:
        bool: Parsed boolean value
    """
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


# ============================================================================
# Database access
# ============================================================================


async def get_setting(session: AsyncSession, key: str) -> Optional[str]:
    """Read a raw setting value from the database."""
    result = await session.execute(select(Setting.value).where(Setting.key == key))
    return result.scalar_one_or_none()


async def set_setting(
    session: AsyncSession, key: str, value: str, updated_by: Optional[int] = None
) -> Dict:
    """
    Create or update a setting and refresh its cache entry.

    Args:
        session: Database session
        key: Setting key
        value: New value (stored as text)
        updated_by: Optional user id of the editor

    Returns:
        Dict with key and value
    """
    if not key:
        raise ValueError("key is required")

    result = await session.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()
    if setting is None:
        setting = Setting(key=key, value=value, updated_by=updated_by)
        session.add(setting)
    else:
        setting.value = value
        setting.updated_by = updated_by
    await session.flush()

    await _set_cached_setting(key, value)
    return {"key": key, "value": value}


async def list_settings(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(Setting).order_by(Setting.key))
    return [
        {
            "key": s.key,
            "value": s.value,
            "updated_at": s.updated_at.isoformat() if s.updated_at else None,
        }
        for s in result.scalars().all()
    ]


# ============================================================================
# Redis cache
# ============================================================================


async def get_redis_client() -> Optional[Redis]:
    """
    Get or create Redis client connection.

    Returns:
        Redis client or None if caching is disabled or the connection fails
    """
    global _redis_client, _last_connect_failure

    if not get_bool_env("REDIS_ENABLED", default=True):
        return None

    if _redis_client is not None:
        try:
            await _redis_client.ping()
            return _redis_client
        except Exception as e:
            logger.warning(f"Redis connection test failed, recreating client: {e}")
            await close_redis_connection()

    # Avoid hammering an unavailable server on every settings lookup
    if time.monotonic() - _last_connect_failure < RECONNECT_BACKOFF_SECONDS and _last_connect_failure:
        return None

    try:
        _redis_client = Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            db=REDIS_DB,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True
        )
        await _redis_client.ping()
        logger.info(f"Connected to Redis at {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}")
        return _redis_client
    except Exception as e:
        logger.warning(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}: {e}")
        _redis_client = None
        _last_connect_failure = time.monotonic()
        return None


async def _get_cached_setting(key: str) -> Optional[str]:
    """Get cached setting value from Redis."""
    try:
        redis_client = await get_redis_client()
        if redis_client is None:
            return None
        return await redis_client.get(f"{REDIS_KEY_PREFIX}{key}")
    except Exception as e:
        logger.warning(f"Error getting cached setting {key} from Redis: {e}")
        return None


async def _set_cached_setting(key: str, value: Optional[str]):
    """Cache a setting value in Redis with TTL."""
    try:
        redis_client = await get_redis_client()
        if redis_client is None:
            return

        redis_key = f"{REDIS_KEY_PREFIX}{key}"
        if value is not None:
            await redis_client.setex(redis_key, CACHE_TTL_SECONDS, value)
        else:
            await redis_client.delete(redis_key)
    except Exception as e:
        logger.warning(f"Error setting cached setting {key} in Redis: {e}")


async def invalidate_settings_cache():
    """Clear all cached settings from Redis (call after bulk updates)."""
    try:
        redis_client = await get_redis_client()
        if redis_client is None:
            return

        keys = []
        async for key in redis_client.scan_iter(match=f"{REDIS_KEY_PREFIX}*"):
            keys.append(key)

        if keys:
            await redis_client.delete(*keys)
            logger.info(f"Cleared {len(keys)} cached settings from Redis")
    except Exception as e:
        logger.warning(f"Error clearing cache from Redis: {e}")


async def close_redis_connection():
    """Close Redis connection (call on application shutdown)."""
    global _redis_client
    if _redis_client is not None:
        try:
            await _redis_client.aclose()
            logger.info("Closed Redis connection")
        except Exception as e:
            logger.warning(f"Error closing Redis connection: {e}")
        finally:
            _redis_client = None


# ============================================================================
# Typed lookups
# ============================================================================


async def get_setting_with_fallback(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[str] = None,
    fallback_to_cache: bool = True
) -> Optional[str]:
    """
    Get a setting value from database first, then cache, then env var, then default.

    Args:
        session: Database session (optional)
        key: Setting key in database
        env_var: Environment variable name to fall back to
        default: Default value if neither database nor env var is set
        fallback_to_cache: If True, consult the Redis cache when the database has no value

    Returns:
        Setting value as string, or None
    """
    if session:
        try:
            value = await get_setting(session, key)
            if value is not None:
                await _set_cached_setting(key, value)
                return value
        except Exception as e:
            logger.warning(f"Error reading setting {key} from database: {e}")

    if fallback_to_cache:
        cached = await _get_cached_setting(key)
        if cached is not None:
            return cached

    if env_var:
        value = os.getenv(env_var)
        if value is not None:
            return value

    return default


async def get_bool_setting(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: bool = True,
    fallback_to_cache: bool = True
) -> bool:
    """Get a boolean setting value ("true", "1", "yes" are truthy)."""
    value = await get_setting_with_fallback(session, key, env_var, None, fallback_to_cache)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


async def get_int_setting(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[int] = None,
) -> Optional[int]:
    value = await get_setting_with_fallback(session, key, env_var, None)
    if value is None:
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        logger.warning(f"Invalid integer value for setting {key}: {value}")
        return default


async def get_list_setting(
    session: Optional[AsyncSession], key: str, env_var: Optional[str] = None
) -> List[str]:
    """Get a comma-separated setting as a list of trimmed, non-empty strings."""
    value = await get_setting_with_fallback(session, key, env_var, None)
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]
