"""
Tests for LoginLogRepository against a mocked Motor collection.
"""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from heimdall.exceptions import ErrorCode, InputError, ValidationError
from heimdall.models.login_log_models import LoginLog, LoginLogFilter
from heimdall.repositories.login_log_repository import INDEXES, LoginLogRepository


@pytest.fixture
def repo(collection):
    return LoginLogRepository(collection)


def failed_attempt(**overrides):
    log = LoginLog.failure(
        username="mallory",
        login_method="username",
        ip_address="192.0.2.10",
        user_agent="python-requests/2.31",
        fail_reason="user_not_found",
    )
    return log.model_copy(update=overrides)


@pytest.mark.asyncio
async def test_create_inserts_log(repo, collection):
    """Test that a valid attempt is stamped and inserted."""
    log = await repo.create(failed_attempt())

    document = collection.insert_one.await_args.args[0]
    assert document["_id"] == ObjectId(log.id)
    assert document["status"] == "failed"
    assert document["failReason"] == "user_not_found"
    assert document["userId"] is None
    assert document["createdAt"] is not None


@pytest.mark.asyncio
async def test_create_rejects_invalid_logs(repo, collection):
    """Test that invalid attempts are never stored."""
    with pytest.raises(InputError):
        await repo.create(None)
    with pytest.raises(ValidationError):
        await repo.create(failed_attempt(ip_address="300.0.0.1"))
    collection.insert_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_by_user_id_validates_id(repo, collection):
    """Test the user listing id guard."""
    with pytest.raises(InputError) as exc_info:
        await repo.get_by_user_id("bogus")
    assert str(exc_info.value) == "invalid userID format"
    assert exc_info.value.code == ErrorCode.INVALID_ID

    user_id = str(ObjectId())
    await repo.get_by_user_id(user_id)
    assert collection.find.call_args.args[0] == {"userId": ObjectId(user_id)}


@pytest.mark.asyncio
async def test_get_by_ip_address(repo, collection):
    """Test the IP listing and its empty guard."""
    await repo.get_by_ip_address("192.0.2.10")
    assert collection.find.call_args.args[0] == {"ipAddress": "192.0.2.10"}
    with pytest.raises(InputError):
        await repo.get_by_ip_address("")


def test_build_query_combines_filters():
    """Test username substring match, exact fields and the time window."""
    start = datetime(2026, 3, 1, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    query = LoginLogRepository.build_query(
        LoginLogFilter(username="Ali", status="failed", country="NL", start_time=start, end_time=end, user_id="x")
    )
    assert query == {
        "username": {"$regex": "Ali", "$options": "i"},
        "status": "failed",
        "country": "NL",
        "loginAt": {"$gte": start, "$lte": end},
    }


def test_build_sort_defaults_to_login_time():
    """Test the default ordering of the audit trail."""
    assert LoginLogRepository.build_sort(LoginLogFilter()) == [("loginAt", -1)]
    assert LoginLogRepository.build_sort(LoginLogFilter(sort_by="ipAddress", sort_desc=False)) == [("ipAddress", 1)]


@pytest.mark.asyncio
async def test_get_recent_failed_logins(repo, collection, make_cursor, now):
    """Test the failed-attempt scan and its limit clamp."""
    cursor = make_cursor([failed_attempt(login_at=now).to_document()])
    collection.find.return_value = cursor

    logs = await repo.get_recent_failed_logins(now - timedelta(hours=1), limit=5000)

    assert logs[0].username == "mallory"
    assert collection.find.call_args.args[0] == {"status": "failed", "loginAt": {"$gte": now - timedelta(hours=1)}}
    cursor.sort.assert_called_once_with([("loginAt", -1)])
    cursor.limit.assert_called_once_with(1000)


@pytest.mark.asyncio
async def test_get_statistics(repo, collection, now):
    """Test the counts and distinct users and addresses."""
    collection.count_documents.side_effect = [10, 7, 3]
    collection.distinct.side_effect = [[ObjectId(), ObjectId()], ["192.0.2.10", "192.0.2.11", "2001:db8::1"]]

    stats = await repo.get_statistics(since=now)

    assert (stats.total, stats.success, stats.failed) == (10, 7, 3)
    assert stats.unique_users == 2
    assert stats.unique_ips == 3
    assert stats.success_rate == 0.7
    field, query = collection.distinct.await_args_list[0].args
    assert field == "userId"
    assert query == {"loginAt": {"$gte": now}, "userId": {"$ne": None}}


@pytest.mark.asyncio
async def test_create_indexes(repo, collection):
    """Test index provisioning."""
    await repo.create_indexes()
    collection.create_indexes.assert_awaited_once_with(INDEXES)
