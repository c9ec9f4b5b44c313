"""Tests for the SQL credential store."""
import threading

import pytest

from authgate.core.errors import UsernameConflict
from authgate.db.repositories import user_repo
from authgate.utils.security import hash_password


async def test_create_and_find(users):
    user = await users.create_user("carol", "pw123456")
    assert user.id
    assert user.password_hash != "pw123456"
    assert user.is_active is True
    assert user.is_online is False
    assert (await users.find_by_username("carol")).id == user.id
    assert (await users.find_by_id(user.id)).username == "carol"


async def test_missing_user(users):
    assert await users.find_by_username("ghost") is None
    assert await users.find_by_id("00000000-0000-0000-0000-000000000000") is None


async def test_duplicate_username(users):
    await users.create_user("carol", "pw123456")
    with pytest.raises(UsernameConflict):
        await users.create_user("carol", "another-pw")


async def test_validate_password(users):
    user = await users.create_user("carol", "pw123456")
    assert await users.validate_password(user, "pw123456") is True
    assert await users.validate_password(user, "pw000000") is False


async def test_online_status(users):
    user = await users.create_user("carol", "pw123456")
    await users.set_online_status(user.id, True)
    assert (await users.find_by_id(user.id)).is_online is True
    await users.set_online_status(user.id, False)
    assert (await users.find_by_id(user.id)).is_online is False


async def test_unknown_user_never_validates(users):
    assert await users.validate_password(None, "pw123456") is False


async def test_hashing_runs_off_the_event_loop(users, monkeypatch):
    loop_thread = threading.get_ident()
    seen = []

    def recording_hash(password, rounds=None):
        seen.append(threading.get_ident())
        return hash_password(password, rounds)

    monkeypatch.setattr(user_repo, "hash_password", recording_hash)
    await users.create_user("carol", "pw123456")
    assert seen and loop_thread not in seen
