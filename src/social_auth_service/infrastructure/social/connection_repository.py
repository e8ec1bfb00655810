"""Connection Storage System

Purpose: Persist links between local users and provider identities

Redis Storage Schema:
- social:connection:{user_id}:{provider_id}:{provider_user_id} -> {connection_json}
- social:linked_users:{provider_id}:{provider_user_id} -> {user_id, ...}
- social:user_links:{user_id}:{provider_id} -> {provider_user_id, ...}
- social:user_providers:{user_id} -> {provider_id, ...}

A link is claimed with SADD on ``social:linked_users``; SADD reporting
that the member already existed means a concurrent request linked the
same identity first, which surfaces as DuplicateConnectionError.
Exclusive links (identity not shareable between users) re-check the set
size after the claim and back out on ConnectionConflictError. Links to a
provider allowing one account per user do the same on
``social:user_links`` and back out on ProviderConnectionLimitError.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Iterable, List, Optional, Set

from redis.asyncio import Redis

from social_auth_service.core.social.errors import (
    ConnectionConflictError,
    DuplicateConnectionError,
    ProviderConnectionLimitError,
    ProviderNotFoundError,
)
from social_auth_service.core.social.registry import ProviderRegistry
from social_auth_service.domain.models import Connection, ConnectionData, ConnectionKey

logger = logging.getLogger(__name__)

# Creates a local user for a connection nobody is linked to yet; returns the new user id
ConnectionSignUp = Callable[[Connection], Awaitable[Optional[str]]]


class ConnectionRepository(ABC):
    """Connections of a single local user"""

    def __init__(self, user_id: str, registry: Optional[ProviderRegistry] = None):
        self.user_id = user_id
        self.registry = registry

    @abstractmethod
    async def find_all_connections(self) -> List[Connection]:
        """All connections of the user, ordered by provider id"""

    @abstractmethod
    async def find_connections(self, provider_id: str) -> List[Connection]:
        """Connections of the user to one provider"""

    @abstractmethod
    async def get_connection(self, key: ConnectionKey) -> Optional[Connection]:
        """A single connection, or None"""

    @abstractmethod
    async def add_connection(
        self, connection: Connection, exclusive: bool = False, single_per_provider: bool = False
    ) -> None:
        """Link a connection to the user

        Args:
            connection: Connection to link
            exclusive: Refuse the link if another user holds the same identity
            single_per_provider: Refuse the link if the user holds another
                identity of the same provider

        Raises:
            DuplicateConnectionError: If the user is already linked to the identity
            ConnectionConflictError: If exclusive and another user holds the identity
            ProviderConnectionLimitError: If single_per_provider and the user
                already holds another identity of the provider
        """

    @abstractmethod
    async def update_connection(self, connection: Connection) -> None:
        """Store refreshed values of an existing connection"""

    @abstractmethod
    async def remove_connection(self, key: ConnectionKey) -> bool:
        """Unlink one connection. Returns True if it existed"""

    @abstractmethod
    async def remove_connections(self, provider_id: str) -> int:
        """Unlink every connection to a provider. Returns the number removed"""

    def _to_connection(self, data: ConnectionData) -> Connection:
        """Rebuild a connection, bound to its provider's factory when registered"""
        if self.registry is not None:
            try:
                provider = self.registry.get(data.provider_id)
                return provider.connection_factory.create_connection(data)
            except ProviderNotFoundError:
                logger.debug(f"Provider {data.provider_id} no longer registered")
        return Connection(data)


class UsersConnectionRepository(ABC):
    """Cross-user view of connections"""

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        connection_signup: Optional[ConnectionSignUp] = None,
    ):
        self.registry = registry
        self.connection_signup = connection_signup

    async def find_user_ids_with_connection(self, connection: Connection) -> List[str]:
        """Local users linked to the connection's identity

        When nobody is linked yet and a sign-up collaborator is configured,
        a new local user is created and linked to the connection.

        Args:
            connection: Connection extracted from the provider

        Returns:
            Sorted list of user ids (empty if unknown)
        """
        key = connection.key
        user_ids = await self.find_user_ids_connected_to(key.provider_id, [key.provider_user_id])
        if user_ids or self.connection_signup is None:
            return sorted(user_ids)

        new_user_id = await self.connection_signup(connection)
        if not new_user_id:
            return []

        await self.create_connection_repository(new_user_id).add_connection(connection)
        logger.info(f"Signed up user {new_user_id} from {connection}")
        return [new_user_id]

    @abstractmethod
    async def find_user_ids_connected_to(
        self, provider_id: str, provider_user_ids: Iterable[str]
    ) -> Set[str]:
        """Local users linked to any of the given provider identities"""

    @abstractmethod
    def create_connection_repository(self, user_id: str) -> ConnectionRepository:
        """Connection repository scoped to one local user"""


class RedisConnectionRepository(ConnectionRepository):
    """Redis-backed connections of one user"""

    def __init__(self, redis_client: Redis, user_id: str, registry: Optional[ProviderRegistry] = None):
        super().__init__(user_id, registry)
        self.redis = redis_client

    async def find_all_connections(self) -> List[Connection]:
        provider_ids = await self._redis_smembers(_user_providers_key(self.user_id))
        connections = []
        for provider_id in sorted(provider_ids):
            connections.extend(await self.find_connections(provider_id))
        return connections

    async def find_connections(self, provider_id: str) -> List[Connection]:
        provider_user_ids = await self._redis_smembers(_user_links_key(self.user_id, provider_id))
        connections = []
        for provider_user_id in sorted(provider_user_ids):
            connection = await self.get_connection(ConnectionKey(provider_id, provider_user_id))
            if connection:
                connections.append(connection)
        return connections

    async def get_connection(self, key: ConnectionKey) -> Optional[Connection]:
        try:
            raw = await self.redis.get(_connection_key(self.user_id, key))
        except Exception as e:
            logger.error(f"Failed to get connection {key} for user {self.user_id}: {e}")
            return None

        if not raw:
            return None
        return self._to_connection(ConnectionData.model_validate(json.loads(raw)))

    async def add_connection(
        self, connection: Connection, exclusive: bool = False, single_per_provider: bool = False
    ) -> None:
        key = connection.key
        linked_users_key = _linked_users_key(key.provider_id, key.provider_user_id)
        user_links_key = _user_links_key(self.user_id, key.provider_id)
        claimed = await self.redis.sadd(linked_users_key, self.user_id)
        if not claimed:
            raise DuplicateConnectionError(self.user_id, key.provider_id, key.provider_user_id)

        # Claim first, then check: of two racing users at least one sees both members
        if exclusive and await self.redis.scard(linked_users_key) > 1:
            await self.redis.srem(linked_users_key, self.user_id)
            raise ConnectionConflictError(key.provider_id, key.provider_user_id)

        try:
            await self.redis.sadd(user_links_key, key.provider_user_id)
            if single_per_provider and await self.redis.scard(user_links_key) > 1:
                await self.redis.srem(user_links_key, key.provider_user_id)
                await self.redis.srem(linked_users_key, self.user_id)
                raise ProviderConnectionLimitError(self.user_id, key.provider_id, key.provider_user_id)

            await self.redis.set(
                _connection_key(self.user_id, key), connection.create_data().model_dump_json()
            )
            await self.redis.sadd(_user_providers_key(self.user_id), key.provider_id)
        except ProviderConnectionLimitError:
            raise
        except Exception as e:
            logger.error(f"Failed to store connection {key} for user {self.user_id}: {e}")
            await self.redis.srem(user_links_key, key.provider_user_id)
            await self.redis.srem(linked_users_key, self.user_id)
            raise

        logger.info(f"Added connection {key.provider_id}:{key.provider_user_id} for user {self.user_id}")

    async def update_connection(self, connection: Connection) -> None:
        key = connection.key
        if not await self.get_connection(key):
            raise ValueError(f"Connection {key.provider_id}:{key.provider_user_id} not found")
        await self.redis.set(_connection_key(self.user_id, key), connection.create_data().model_dump_json())

    async def remove_connection(self, key: ConnectionKey) -> bool:
        deleted = await self.redis.delete(_connection_key(self.user_id, key))
        await self.redis.srem(_linked_users_key(key.provider_id, key.provider_user_id), self.user_id)
        await self.redis.srem(_user_links_key(self.user_id, key.provider_id), key.provider_user_id)
        if not await self.redis.scard(_user_links_key(self.user_id, key.provider_id)):
            await self.redis.srem(_user_providers_key(self.user_id), key.provider_id)

        if deleted:
            logger.info(f"Removed connection {key.provider_id}:{key.provider_user_id} for user {self.user_id}")
        return bool(deleted)

    async def remove_connections(self, provider_id: str) -> int:
        removed = 0
        provider_user_ids = await self._redis_smembers(_user_links_key(self.user_id, provider_id))
        for provider_user_id in provider_user_ids:
            if await self.remove_connection(ConnectionKey(provider_id, provider_user_id)):
                removed += 1
        return removed

    async def _redis_smembers(self, key: str) -> List[str]:
        """Get Redis set members"""
        try:
            members = await self.redis.smembers(key)
            return [_decode(member) for member in members]
        except Exception as e:
            logger.error(f"Redis SMEMBERS failed for key {key}: {e}")
            return []


class RedisUsersConnectionRepository(UsersConnectionRepository):
    """Redis-backed users connection repository"""

    def __init__(
        self,
        redis_client: Redis,
        registry: Optional[ProviderRegistry] = None,
        connection_signup: Optional[ConnectionSignUp] = None,
    ):
        super().__init__(registry, connection_signup)
        self.redis = redis_client

    async def find_user_ids_connected_to(
        self, provider_id: str, provider_user_ids: Iterable[str]
    ) -> Set[str]:
        user_ids: Set[str] = set()
        for provider_user_id in provider_user_ids:
            members = await self.redis.smembers(_linked_users_key(provider_id, provider_user_id))
            user_ids.update(_decode(member) for member in members)
        return user_ids

    def create_connection_repository(self, user_id: str) -> RedisConnectionRepository:
        if not user_id:
            raise ValueError("user_id cannot be empty")
        return RedisConnectionRepository(self.redis, user_id, self.registry)


class InMemoryConnectionRepository(ConnectionRepository):
    """Connections of one user held in process memory (development, tests)"""

    def __init__(self, store: "InMemoryUsersConnectionRepository", user_id: str):
        super().__init__(user_id, store.registry)
        self._store = store

    async def find_all_connections(self) -> List[Connection]:
        async with self._store.lock:
            items = [
                data for (user_id, _, _), data in self._store.connections.items()
                if user_id == self.user_id
            ]
        items.sort(key=lambda data: (data.provider_id, data.provider_user_id))
        return [self._to_connection(data) for data in items]

    async def find_connections(self, provider_id: str) -> List[Connection]:
        return [
            connection for connection in await self.find_all_connections()
            if connection.key.provider_id == provider_id
        ]

    async def get_connection(self, key: ConnectionKey) -> Optional[Connection]:
        async with self._store.lock:
            data = self._store.connections.get(self._entry(key))
        return self._to_connection(data) if data else None

    async def add_connection(
        self, connection: Connection, exclusive: bool = False, single_per_provider: bool = False
    ) -> None:
        key = connection.key
        async with self._store.lock:
            if self._entry(key) in self._store.connections:
                raise DuplicateConnectionError(self.user_id, key.provider_id, key.provider_user_id)
            if exclusive and any(
                pid == key.provider_id and puid == key.provider_user_id
                for (_, pid, puid) in self._store.connections
            ):
                raise ConnectionConflictError(key.provider_id, key.provider_user_id)
            if single_per_provider and any(
                user_id == self.user_id and pid == key.provider_id
                for (user_id, pid, _) in self._store.connections
            ):
                raise ProviderConnectionLimitError(self.user_id, key.provider_id, key.provider_user_id)
            self._store.connections[self._entry(key)] = connection.create_data()
        logger.info(f"Added connection {key.provider_id}:{key.provider_user_id} for user {self.user_id}")

    async def update_connection(self, connection: Connection) -> None:
        key = connection.key
        async with self._store.lock:
            if self._entry(key) not in self._store.connections:
                raise ValueError(f"Connection {key.provider_id}:{key.provider_user_id} not found")
            self._store.connections[self._entry(key)] = connection.create_data()

    async def remove_connection(self, key: ConnectionKey) -> bool:
        async with self._store.lock:
            return self._store.connections.pop(self._entry(key), None) is not None

    async def remove_connections(self, provider_id: str) -> int:
        async with self._store.lock:
            entries = [
                entry for entry in self._store.connections
                if entry[0] == self.user_id and entry[1] == provider_id
            ]
            for entry in entries:
                del self._store.connections[entry]
        return len(entries)

    def _entry(self, key: ConnectionKey) -> tuple[str, str, str]:
        return (self.user_id, key.provider_id, key.provider_user_id)


class InMemoryUsersConnectionRepository(UsersConnectionRepository):
    """Users connection repository held in process memory

    WARNING: only suitable for single-instance deployments and tests.
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        connection_signup: Optional[ConnectionSignUp] = None,
    ):
        super().__init__(registry, connection_signup)
        self.connections: dict[tuple[str, str, str], ConnectionData] = {}
        self.lock = asyncio.Lock()

    async def find_user_ids_connected_to(
        self, provider_id: str, provider_user_ids: Iterable[str]
    ) -> Set[str]:
        wanted = set(provider_user_ids)
        async with self.lock:
            return {
                user_id for (user_id, pid, puid) in self.connections
                if pid == provider_id and puid in wanted
            }

    def create_connection_repository(self, user_id: str) -> InMemoryConnectionRepository:
        if not user_id:
            raise ValueError("user_id cannot be empty")
        return InMemoryConnectionRepository(self, user_id)


def _decode(value) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


def _connection_key(user_id: str, key: ConnectionKey) -> str:
    return f"social:connection:{user_id}:{key.provider_id}:{key.provider_user_id}"


def _linked_users_key(provider_id: str, provider_user_id: str) -> str:
    return f"social:linked_users:{provider_id}:{provider_user_id}"


def _user_links_key(user_id: str, provider_id: str) -> str:
    return f"social:user_links:{user_id}:{provider_id}"


def _user_providers_key(user_id: str) -> str:
    return f"social:user_providers:{user_id}"
