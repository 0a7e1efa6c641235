"""
Flask extensions for Accredia.

Extension objects live here and are bound to the app in create_app, so
services and routes can import them without circular imports.

RedisManager wraps the optional Redis connection used for two things:
- JWT revocation (token_blacklist:<jti> keys with TTL, kept in memory when
  Redis is down so logout and single-use magic links still hold per process)
- Fixed-window request counters for the rate limiter
"""

import logging
import os
from typing import Optional, Set

import redis
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
cors = CORS()

BLOCKLIST_PREFIX = 'token_blacklist'
RATE_LIMIT_PREFIX = 'rate_limit'


class RedisManager:
    """Optional Redis connection with the token blocklist and rate-limit counters."""

    def __init__(self):
        self.client: Optional[redis.Redis] = None
        self.enabled: bool = False
        self.blocklist_ttl: int = 604800
        self._revoked: Set[str] = set()

    def init_app(self, app):
        """Connect using REDIS_URL. Without it (or when ping fails) Redis stays disabled."""
        self.blocklist_ttl = int(app.config.get('REDIS_TOKEN_BLACKLIST_EXPIRE', self.blocklist_ttl))
        redis_url = app.config.get('REDIS_URL') or (None if app.testing else os.getenv('REDIS_URL'))

        if not redis_url:
            logger.info("REDIS_URL not set: token blocklist kept in memory, rate limiting off")
            self.client = None
            self.enabled = False
            return

        try:
            self.client = redis.from_url(
                redis_url,
                max_connections=int(app.config.get('REDIS_MAX_CONNECTIONS', 20)),
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            self.client.ping()
            self.enabled = True
            logger.info(f"Redis connected at {redis_url}")
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed: {e}. Running without Redis.")
            self.client = None
            self.enabled = False

    def get_client(self) -> Optional[redis.Redis]:
        return self.client if self.enabled else None

    def is_enabled(self) -> bool:
        """Health check: connected and answering ping."""
        if not self.enabled or not self.client:
            return False
        try:
            self.client.ping()
            return True
        except redis.RedisError:
            return False

    # ─── Token blocklist ─────────────────────────────────────────────────

    def revoke_token(self, jti: str, ttl: Optional[int] = None) -> None:
        """Mark a JWT id as revoked until it would have expired anyway."""
        if not jti:
            return
        client = self.get_client()
        if client:
            try:
                client.setex(f"{BLOCKLIST_PREFIX}:{jti}", ttl or self.blocklist_ttl, "1")
                return
            except redis.RedisError as e:
                logger.error(f"Could not store revoked token in Redis: {e}")
        self._revoked.add(jti)

    def is_token_revoked(self, jti: str) -> bool:
        if not jti:
            return False
        client = self.get_client()
        if client:
            try:
                if client.exists(f"{BLOCKLIST_PREFIX}:{jti}"):
                    return True
            except redis.RedisError as e:
                logger.error(f"Could not check token blocklist: {e}")
        return jti in self._revoked

    # ─── Rate limiting ───────────────────────────────────────────────────

    def incr_window(self, scope: str, identifier: str, window: int, now: float) -> Optional[int]:
        """
        Count one hit in the current fixed window.

        Key: rate_limit:{scope}:{identifier}:{window index}, expiring with the window.

        Returns:
            Hits so far in this window, or None when Redis is unavailable
        """
        client = self.get_client()
        if client is None:
            return None

        key = f"{RATE_LIMIT_PREFIX}:{scope}:{identifier}:{int(now // window)}"
        try:
            count = client.incr(key)
            if count == 1:
                client.expire(key, window)
            return count
        except redis.RedisError as e:
            logger.warning(f"Rate limit counter failed for {key}: {e}")
            return None


redis_manager = RedisManager()
