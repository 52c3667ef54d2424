"""
Tests for the DatabaseManager connection lifecycle, index provisioning and query logging.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from heimdall.database import db_manager
from heimdall.database.manager import DatabaseManager


@pytest.fixture
def mock_client():
    with patch("heimdall.database.manager.AsyncIOMotorClient") as client_cls:
        client = MagicMock()
        client.admin.command = AsyncMock(return_value={"ok": 1})
        client_cls.return_value = client
        yield client_cls


@pytest.mark.asyncio
async def test_connect_pings_and_selects_database(mock_client):
    """Test a successful connection."""
    manager = DatabaseManager()
    await manager.connect()

    client = mock_client.return_value
    client.admin.command.assert_awaited_once_with("ping")
    assert manager.client is client
    assert manager.database is not None
    assert mock_client.call_args.kwargs["tz_aware"] is True


@pytest.mark.asyncio
async def test_connect_retries_with_backoff(mock_client):
    """Test that transient selection timeouts are retried."""
    client = mock_client.return_value
    client.admin.command.side_effect = [ServerSelectionTimeoutError("no servers"), {"ok": 1}]

    with patch("heimdall.database.manager.asyncio.sleep", new=AsyncMock()) as sleep:
        manager = DatabaseManager()
        await manager.connect()

    sleep.assert_awaited_once_with(1)
    assert client.admin.command.await_count == 2


@pytest.mark.asyncio
async def test_connect_gives_up_after_retries(mock_client):
    """Test that the last failure is raised."""
    mock_client.return_value.admin.command.side_effect = ServerSelectionTimeoutError("no servers")

    with patch("heimdall.database.manager.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(ServerSelectionTimeoutError):
            await DatabaseManager().connect()


@pytest.mark.asyncio
async def test_disconnect_closes_client(mock_client):
    """Test shutdown."""
    manager = DatabaseManager()
    await manager.connect()
    client = manager.client

    await manager.disconnect()

    client.close.assert_called_once()
    assert manager.client is None
    assert manager.database is None
    await manager.disconnect()


@pytest.mark.asyncio
async def test_health_check(mock_client):
    """Test health reporting with and without a working server."""
    manager = DatabaseManager()
    assert await manager.health_check() is False

    await manager.connect()
    assert await manager.health_check() is True

    manager.client.admin.command.side_effect = OperationFailure("not authorized")
    assert await manager.health_check() is False


def test_get_collection_requires_connection():
    """Test that collections are unavailable before connect()."""
    with pytest.raises(ConnectionError):
        DatabaseManager().get_collection("users")


@pytest.mark.asyncio
async def test_create_indexes_covers_every_repository(collection, monkeypatch):
    """Test that index provisioning reaches all four collections."""
    database = MagicMock()
    database.__getitem__.return_value = collection
    monkeypatch.setattr(db_manager, "database", database)

    await db_manager.create_indexes()

    assert collection.create_indexes.await_count == 4
    requested = [call.args[0] for call in database.__getitem__.call_args_list]
    assert requested == ["users", "posts", "pages", "loginLogs"]


def test_sanitize_query_redacts_sensitive_values():
    """Test that secrets never reach the logs."""
    manager = DatabaseManager()
    sanitized = manager._sanitize_query_for_logging(
        {
            "username": "alice",
            "$set": {"passwordHash": "$2b$12$secret", "sessionId": "abc"},
            "$or": [{"token": "t"}, {"email": "a@b.c"}],
        }
    )
    assert sanitized == {
        "username": "alice",
        "$set": {"passwordHash": "[REDACTED]", "sessionId": "[REDACTED]"},
        "$or": [{"token": "[REDACTED]"}, {"email": "a@b.c"}],
    }
