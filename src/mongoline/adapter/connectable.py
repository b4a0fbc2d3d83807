"""Manager helpers: a long-lived client shared by many borrowed connections.

These mirror the ORM's connectable contract:

==========================  ==============================================
Helper                      Behaviour
==========================  ==============================================
``create_manager``          parse the URL, build and ping a client
``destroy_manager``         close the client
``get_connection``          borrow a connection over the manager's client
``release_connection``      no-op: the driver owns the pool
==========================  ==============================================

All four return ``Result``; none of them raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pymongo.errors import PyMongoError

from mongoline.adapter.connection import ClientFactory, Connection, create_client, ping
from mongoline.adapter.types import MongoConfig, parse_url
from mongoline.core.errors import DatabaseConnectionError, MongolineError
from mongoline.core.logging import get_logger
from mongoline.core.result import Err, Ok, Result

logger = get_logger(__name__)


@dataclass
class Manager:
    """A live driver client plus the config it was built from."""

    config: MongoConfig
    client: Any
    meta: dict[str, Any] = field(default_factory=dict)
    destroyed: bool = False


async def create_manager(
    connection_string: str,
    *,
    meta: dict[str, Any] | None = None,
    client_factory: ClientFactory | None = None,
) -> Result[Manager]:
    """Build a manager for ``connection_string`` and verify the server is reachable."""
    try:
        config = parse_url(connection_string)
    except MongolineError as e:
        return Err(e)

    client = None
    try:
        client = create_client(config, client_factory)
        await ping(client)
    except MongolineError as e:
        return Err(e)
    except PyMongoError as e:
        if client is not None:
            await client.close()
        return Err(
            DatabaseConnectionError(
                f"Failed to create manager for {config.redacted()}: {e}",
                cause=e,
            )
        )

    logger.info("manager_created", host=config.host, database=config.database)
    return Ok(Manager(config=config, client=client, meta=dict(meta or {})))


async def destroy_manager(manager: Manager) -> Result[None]:
    """Close the manager's client. Destroying twice is a no-op."""
    if manager.destroyed:
        return Ok(None)
    try:
        await manager.client.close()
    except PyMongoError as e:
        return Err(DatabaseConnectionError(f"Failed to destroy manager: {e}", cause=e))

    manager.destroyed = True
    logger.info("manager_destroyed", host=manager.config.host)
    return Ok(None)


def get_connection(manager: Manager) -> Result[Connection]:
    """Borrow a connection over the manager's client."""
    if manager.destroyed:
        return Err(DatabaseConnectionError("Cannot get a connection from a destroyed manager"))
    return Ok(Connection.borrow(manager.config, manager.client))


async def release_connection(connection: Connection) -> Result[None]:
    """Release a borrowed connection; the shared client stays open."""
    await connection.close()
    return Ok(None)


__all__ = [
    "Manager",
    "create_manager",
    "destroy_manager",
    "get_connection",
    "release_connection",
]
