"""
Access token revocation using Redis.

Logout blacklists a single access token; blocking an operator revokes
every token issued to them until it would have expired anyway.
"""

import logging

from redis.exceptions import RedisError
from backend.app.core import redis_client as redis_module
from backend.app.core.config import settings

logger = logging.getLogger("print_tokens.auth")

# Redis key prefixes
TOKEN_BLACKLIST_PREFIX = "blacklist:jti:"
USER_TOKENS_PREFIX = "user:tokens:"


def _client():
    # Looked up at call time so tests can swap the module-level client.
    return redis_module.redis_client


async def revoke_token(jti: str, user_id: int, ttl_seconds: int) -> bool:
    """
    Revoke one access token by its jti.

    Args:
        jti: Token id claim
        user_id: Owner of the token (stored for audit purposes)
        ttl_seconds: Remaining lifetime of the token

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        await _client().set(f"{TOKEN_BLACKLIST_PREFIX}{jti}", str(user_id), ex=ttl_seconds)
        return True
    except (RedisError, OSError) as exc:
        logger.error("Error revoking token for user %s: %s", user_id, exc)
        return False


async def is_token_revoked(jti: str) -> bool:
    """
    Check if a token has been revoked.

    Fails open when Redis is unreachable (availability over strictness);
    blocked users are still rejected by the database is_active check.
    """
    try:
        return await _client().exists(f"{TOKEN_BLACKLIST_PREFIX}{jti}") > 0
    except (RedisError, OSError) as exc:
        logger.warning("Error checking token revocation: %s", exc)
        return False


async def revoke_all_user_tokens(user_id: int) -> bool:
    """Mark every outstanding token of a user as revoked (used when blocking)."""
    try:
        ttl_seconds = settings.access_token_expire_minutes * 60
        await _client().set(f"{USER_TOKENS_PREFIX}{user_id}:revoked", "1", ex=ttl_seconds)
        return True
    except (RedisError, OSError) as exc:
        logger.error("Error revoking all tokens for user %s: %s", user_id, exc)
        return False


async def are_user_tokens_revoked(user_id: int) -> bool:
    try:
        return await _client().exists(f"{USER_TOKENS_PREFIX}{user_id}:revoked") > 0
    except (RedisError, OSError) as exc:
        logger.warning("Error checking user token revocation: %s", exc)
        return False


async def clear_user_token_revocation(user_id: int) -> bool:
    """Clear the revoke-all flag when a blocked user is unblocked."""
    try:
        await _client().delete(f"{USER_TOKENS_PREFIX}{user_id}:revoked")
        return True
    except (RedisError, OSError) as exc:
        logger.error("Error clearing token revocation for user %s: %s", user_id, exc)
        return False
