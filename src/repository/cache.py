"""
Redis read-through cache for organization lookups.

Every command resolves its workspace to an organization, so that lookup is
the hottest query on the authentication path. CachedRepository wraps any
OrganizationRepository and serves organization lookups from Redis when
REDIS_ENABLED is true. It degrades to the wrapped repository whenever
Redis is disabled, missing, or failing.

Only positive results are cached: a workspace that registers after a miss
must be visible on the very next command. User and membership lookups are
always delegated, since membership deactivation has to take effect
immediately.

Architecture:
    1. Check Redis (if enabled)
    2. On a miss, query the wrapped repository
    3. Cache the organization (if found)
"""

import json
import logging
import os
from typing import Any, Optional

import redis
from dotenv import load_dotenv

from src.repository.base import (
    MembershipRecord,
    OrganizationRecord,
    OrganizationRepository,
    UserRecord,
)

load_dotenv()

logger = logging.getLogger(__name__)

REDIS_ENABLED = os.getenv('REDIS_ENABLED', 'false').lower() == 'true'
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
ORGANIZATION_CACHE_TTL = int(os.getenv('ORGANIZATION_CACHE_TTL', '300'))

_redis_client = None


def _get_redis_client():
    """
    Get or create the shared Redis client (lazy initialization).

    Returns:
        Redis client or None if disabled/unavailable
    """
    global _redis_client

    if not REDIS_ENABLED:
        return None

    if _redis_client is not None:
        return _redis_client

    try:
        client = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_timeout=2,
            socket_connect_timeout=2,
            retry_on_timeout=False
        )
        client.ping()
        logger.info(f"Redis connection established: {REDIS_URL}")
        _redis_client = client
        return _redis_client

    except redis.RedisError as e:
        logger.warning(f"Redis connection failed, caching disabled: {e}")
        return None


def _get_cache_key(slack_workspace_id: str) -> str:
    return f"organization:slack_workspace_id:{slack_workspace_id}"


class CachedRepository(OrganizationRepository):
    """
    Repository decorator adding the organization cache.

    Usage:
        repository = CachedRepository(SqlAlchemyRepository())
    """

    def __init__(self, repository: OrganizationRepository, client=None, ttl: int = None):
        """
        Args:
            repository: Repository to delegate to
            client: Redis client; defaults to the shared lazily-created one
            ttl: Cache TTL in seconds (defaults to ORGANIZATION_CACHE_TTL)
        """
        self.repository = repository
        self._client = client
        self.ttl = ttl or ORGANIZATION_CACHE_TTL

    @property
    def client(self):
        return self._client if self._client is not None else _get_redis_client()

    def find_or_create_user(
        self,
        slack_user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        timezone: Optional[str] = None
    ) -> Optional[UserRecord]:
        return self.repository.find_or_create_user(
            slack_user_id, name=name, email=email, timezone=timezone
        )

    def find_membership(self, organization_id: Any, user_id: Any) -> Optional[MembershipRecord]:
        return self.repository.find_membership(organization_id, user_id)

    def find_organization_by_slack_workspace_id(
        self,
        slack_workspace_id: str
    ) -> Optional[OrganizationRecord]:
        cached = self._get_from_cache(slack_workspace_id)
        if cached is not None:
            return cached

        organization = self.repository.find_organization_by_slack_workspace_id(slack_workspace_id)
        if organization is not None:
            self._set_in_cache(organization)
        return organization

    def _get_from_cache(self, slack_workspace_id: str) -> Optional[OrganizationRecord]:
        client = self.client
        if client is None:
            return None

        try:
            cached_data = client.get(_get_cache_key(slack_workspace_id))
        except redis.RedisError as e:
            logger.warning(f"Error reading from cache: {e}")
            return None

        if not cached_data:
            logger.debug(f"Organization cache MISS: {slack_workspace_id}")
            return None

        try:
            organization = OrganizationRecord.from_cache(json.loads(cached_data))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding malformed cache entry for {slack_workspace_id}: {e}")
            return None

        # Exact-match guard: never serve another workspace's organization
        if organization.slack_workspace_id != slack_workspace_id:
            logger.warning(
                f"Cache entry mismatch for {slack_workspace_id}: "
                f"got {organization.slack_workspace_id}"
            )
            return None

        logger.debug(f"Organization cache HIT: {slack_workspace_id}")
        return organization

    def _set_in_cache(self, organization: OrganizationRecord) -> None:
        client = self.client
        if client is None:
            return

        try:
            client.setex(
                _get_cache_key(organization.slack_workspace_id),
                self.ttl,
                json.dumps(organization.to_cache())
            )
            logger.debug(
                f"Organization cached: {organization.slack_workspace_id} (TTL={self.ttl}s)"
            )
        except redis.RedisError as e:
            logger.warning(f"Error writing to cache: {e}")

    def clear_organization_cache(self, slack_workspace_id: str = None) -> bool:
        """
        Clear the cache for one workspace or for all of them.

        Returns:
            True if successful, False otherwise
        """
        client = self.client
        if client is None:
            return False

        try:
            if slack_workspace_id:
                client.delete(_get_cache_key(slack_workspace_id))
                logger.info(f"Cleared cache for workspace: {slack_workspace_id}")
            else:
                keys = list(client.scan_iter(match=_get_cache_key('*')))
                if keys:
                    client.delete(*keys)
                    logger.info(f"Cleared cache for {len(keys)} workspaces")
            return True

        except redis.RedisError as e:
            logger.error(f"Error clearing cache: {e}")
            return False
