"""User Storage System

Purpose: Store the local user accounts social connections resolve to

This module provides the user details service used by the social
authentication manager and the sign-up hook that creates a local account
the first time an unknown provider identity logs in.

Storage Schema:
- social:user:{user_id} -> {user_json}
- social:username:{username} -> {user_id}
- social:user_list -> {user_id, ...}
"""

import asyncio
import json
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Optional

from redis.asyncio import Redis

from social_auth_service.domain.models import Connection, LocalUser

logger = logging.getLogger(__name__)

_USERNAME_INVALID_CHARS = re.compile(r"[^a-z0-9._-]+")


def username_for_connection(connection: Connection) -> str:
    """Derive a username that is unique per provider identity"""
    key = connection.key
    raw = f"{key.provider_id}-{key.provider_user_id}".lower()
    return _USERNAME_INVALID_CHARS.sub("-", raw).strip("-")


class UserStore:
    """Redis-backed local user storage

    Redis Storage Schema:
    - social:user:{user_id} -> {user_data}
    - social:username:{username} -> {user_id}
    - social:user_list -> [{user_id}, ...]
    """

    def __init__(self, redis_client: Redis):
        """Initialize user store

        Args:
            redis_client: Redis connection for user storage
        """
        self.redis = redis_client

        # Redis key patterns
        self.user_key_pattern = "social:user:{}"
        self.username_key_pattern = "social:username:{}"
        self.user_list_key = "social:user_list"

    async def get_user(self, user_id: str) -> Optional[LocalUser]:
        """Get user by ID

        Args:
            user_id: User identifier

        Returns:
            LocalUser if found, None otherwise
        """
        try:
            if not user_id:
                return None

            user_data = await self.redis.get(self.user_key_pattern.format(user_id))
            if not user_data:
                return None

            return LocalUser.from_dict(json.loads(user_data))

        except Exception as e:
            logger.error(f"Failed to get user {user_id}: {e}")
            return None

    async def load_user_by_account_id(self, account_id: str) -> Optional[LocalUser]:
        """Load the user a social connection resolved to"""
        return await self.get_user(account_id)

    async def create_user(
        self, username: str, email: str = "", display_name: str = None
    ) -> LocalUser:
        """Create new local user

        Args:
            username: Unique username
            email: User email address (optional)
            display_name: Human-readable display name (optional)

        Returns:
            Created LocalUser

        Raises:
            ValueError: If username already exists
        """
        username = username.strip().lower()
        user_id = str(uuid.uuid4())

        # SET NX claims the username atomically
        claimed = await self.redis.set(self.username_key_pattern.format(username), user_id, nx=True)
        if not claimed:
            raise ValueError(f"Username '{username}' already exists")

        user = LocalUser(
            user_id=user_id,
            username=username,
            email=email or "",
            display_name=display_name or username,
            created_at=datetime.now(timezone.utc),
        )

        try:
            await self.redis.set(self.user_key_pattern.format(user_id), json.dumps(user.to_dict()))
            await self.redis.sadd(self.user_list_key, user_id)
        except Exception as e:
            logger.error(f"Failed to create user '{username}': {e}")
            await self.redis.delete(self.username_key_pattern.format(username))
            raise

        logger.info(f"Created user {user_id} with username '{username}'")
        return user

    async def sign_up(self, connection: Connection) -> Optional[str]:
        """Create a local user for a connection no user is linked to yet

        Returns:
            New user id, or None if the username is already taken
        """
        try:
            user = await self.create_user(
                username=username_for_connection(connection),
                display_name=connection.display_name,
            )
        except ValueError as e:
            logger.warning(f"Sign-up for {connection} refused: {e}")
            return None
        return user.user_id


class InMemoryUserStore:
    """Local user storage held in process memory

    WARNING: only suitable for single-instance deployments and tests.
    """

    def __init__(self):
        self.users: dict[str, LocalUser] = {}
        self._lock = asyncio.Lock()

    async def get_user(self, user_id: str) -> Optional[LocalUser]:
        return self.users.get(user_id)

    async def load_user_by_account_id(self, account_id: str) -> Optional[LocalUser]:
        return await self.get_user(account_id)

    async def create_user(
        self, username: str, email: str = "", display_name: str = None
    ) -> LocalUser:
        username = username.strip().lower()
        async with self._lock:
            if any(user.username == username for user in self.users.values()):
                raise ValueError(f"Username '{username}' already exists")
            user = LocalUser(
                user_id=str(uuid.uuid4()),
                username=username,
                email=email or "",
                display_name=display_name or username,
                created_at=datetime.now(timezone.utc),
            )
            self.users[user.user_id] = user
        logger.info(f"Created user {user.user_id} with username '{username}'")
        return user

    async def add_user(self, user: LocalUser) -> LocalUser:
        """Store an existing user object as-is"""
        async with self._lock:
            self.users[user.user_id] = user
        return user

    async def sign_up(self, connection: Connection) -> Optional[str]:
        try:
            user = await self.create_user(
                username=username_for_connection(connection),
                display_name=connection.display_name,
            )
        except ValueError as e:
            logger.warning(f"Sign-up for {connection} refused: {e}")
            return None
        return user.user_id
