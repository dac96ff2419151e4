"""
Token Revocation System using Redis.

Implements token blacklisting to immediately invalidate JWT tokens
when users log out or are deactivated by an admin.
"""

import logging
from redis.exceptions import RedisError
import backend.app.core.redis_client as redis_module
from backend.app.core.config import settings

logger = logging.getLogger("courier.auth")

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"
USER_TOKENS_PREFIX = "user:tokens:"


def _ttl_seconds() -> int:
    # Tokens auto-expire anyway, so the blacklist entry never needs to outlive them
    return settings.access_token_expire_minutes * 60


async def revoke_token(token: str, user_id: int) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        user_id: User ID who owns the token

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        await redis_module.redis_client.set(key, str(user_id), ex=_ttl_seconds())
        return True
    except RedisError as e:
        logger.error("Error revoking token for user %s: %s", user_id, e)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    Fails open: if Redis is unreachable the token is treated as valid.
    """
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        exists = await redis_module.redis_client.exists(key)
        return exists > 0
    except RedisError as e:
        logger.error("Error checking token revocation: %s", e)
        return False


async def revoke_all_user_tokens(user_id: int) -> bool:
    """
    Revoke all active tokens for a specific user.

    Called when an admin deactivates a user. Any token validation
    checks this flag until it expires or is cleared.
    """
    try:
        key = f"{USER_TOKENS_PREFIX}{user_id}:revoked"
        await redis_module.redis_client.set(key, "1", ex=_ttl_seconds())
        return True
    except RedisError as e:
        logger.error("Error revoking all tokens for user %s: %s", user_id, e)
        return False


async def are_user_tokens_revoked(user_id: int) -> bool:
    """Check if all tokens for a user have been revoked."""
    try:
        key = f"{USER_TOKENS_PREFIX}{user_id}:revoked"
        exists = await redis_module.redis_client.exists(key)
        return exists > 0
    except RedisError as e:
        logger.error("Error checking user token revocation: %s", e)
        return False


async def clear_user_token_revocation(user_id: int) -> bool:
    """
    Clear the global token revocation flag for a user.

    Called when a deactivated user is re-activated.
    """
    try:
        key = f"{USER_TOKENS_PREFIX}{user_id}:revoked"
        await redis_module.redis_client.delete(key)
        return True
    except RedisError as e:
        logger.error("Error clearing token revocation for user %s: %s", user_id, e)
        return False
