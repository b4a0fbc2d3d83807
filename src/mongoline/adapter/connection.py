"""Connection lifecycle over the asyncio MongoDB driver.

A :class:`Connection` wraps one ``AsyncMongoClient``.  Collection operations
acquire one through :func:`connection_scope`, which guarantees the client is
closed on every exit path, success or failure.  Pooling is left entirely to
the driver.

Connections created by a manager (see ``connectable``) *borrow* the
manager's long-lived client instead; closing a borrowed connection only
releases it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from pymongo import AsyncMongoClient
from pymongo.errors import ConfigurationError, ConnectionFailure, PyMongoError

from mongoline.adapter.types import MongoConfig
from mongoline.core.errors import (
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    MongolineError,
)
from mongoline.core.logging import get_logger

logger = get_logger(__name__)

ClientFactory = Callable[..., Any]


def create_client(config: MongoConfig, client_factory: ClientFactory | None = None) -> Any:
    """Build a driver client for ``config``. The driver connects lazily."""
    factory = client_factory or AsyncMongoClient
    try:
        return factory(config.to_connection_string(), **config.options)
    except (ConfigurationError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid client options for {config.redacted()}: {e}", cause=e) from e


async def ping(client: Any) -> None:
    """Force server selection so connection problems surface immediately."""
    await client.admin.command("ping")


def translate_driver_error(error: PyMongoError, message: str) -> MongolineError:
    """Wrap a driver exception in the matching mongoline error."""
    if isinstance(error, ConnectionFailure):
        return DatabaseConnectionError(f"{message}: {error}", cause=error)
    return DatabaseError(f"{message}: {error}", cause=error)


class Connection:
    """
    A handle to one MongoDB deployment and database.

    Usage:
        connection = Connection(config)
        await connection.open()
        try:
            docs = await connection.collection("user").find({}).to_list()
        finally:
            await connection.close()
    """

    def __init__(
        self,
        config: MongoConfig,
        *,
        client_factory: ClientFactory | None = None,
        client: Any = None,
    ):
        self.config = config
        self._client_factory = client_factory
        self._client = client
        self._owns_client = client is None

    @classmethod
    def borrow(cls, config: MongoConfig, client: Any) -> Connection:
        """A connection over an existing client that ``close()`` leaves open."""
        return cls(config, client=client)

    @property
    def is_open(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> Any:
        if self._client is None:
            raise DatabaseConnectionError("Connection is not open")
        return self._client

    @property
    def database(self) -> Any:
        return self.client[self.config.require_database()]

    def collection(self, name: str) -> Any:
        return self.database[name]

    async def open(self) -> Connection:
        """Create the client and verify the server answers a ping."""
        if self._client is not None:
            return self

        client = None
        try:
            client = create_client(self.config, self._client_factory)
            await ping(client)
        except PyMongoError as e:
            if client is not None:
                await client.close()
            raise DatabaseConnectionError(
                f"Failed to connect to MongoDB at {self.config.redacted()}: {e}",
                cause=e,
            ) from e

        self._client = client
        self._owns_client = True
        logger.debug("connection_opened", host=self.config.host, database=self.config.database)
        return self

    async def close(self) -> None:
        """Close an owned client, or release a borrowed one. Idempotent."""
        if self._client is None:
            return
        client, self._client = self._client, None
        if self._owns_client:
            await client.close()
            logger.debug("connection_closed", host=self.config.host)

    async def __aenter__(self) -> Connection:
        return await self.open()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


@asynccontextmanager
async def connection_scope(
    config: MongoConfig,
    *,
    client_factory: ClientFactory | None = None,
) -> AsyncIterator[Connection]:
    """Open a connection for the duration of one operation."""
    connection = Connection(config, client_factory=client_factory)
    await connection.open()
    try:
        yield connection
    finally:
        await connection.close()


__all__ = [
    "Connection",
    "ClientFactory",
    "connection_scope",
    "create_client",
    "ping",
    "translate_driver_error",
]
