"""
Tests for TokenLedger.

Covers issuing, single-use consumption (including N concurrent consumers),
refresh redemption, rotation races, revocation, existence checks and the
expiry sweep.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from authgate.db.repositories.token_repo import TokenLedger
from authgate.models.orm import OpaqueToken, TemporaryToken


@pytest.fixture
def expired_ledger(sessions):
    """Ledger whose tokens are born already expired."""
    return TokenLedger(sessions, temp_ttl=timedelta(seconds=-1), refresh_ttl=timedelta(seconds=-1))


@pytest.fixture
async def owner_id(users):
    user = await users.create_user("owner", "pw123456")
    return user.id


class TestTemporaryTokens:

    async def test_first_consume_wins(self, ledger):
        value = await ledger.issue_temporary()
        assert await ledger.consume_temporary(value) is True
        assert await ledger.consume_temporary(value) is False
        assert await ledger.consume_temporary(value) is False

    async def test_concurrent_consumers_exactly_one_succeeds(self, ledger):
        value = await ledger.issue_temporary()
        results = await asyncio.gather(*(ledger.consume_temporary(value) for _ in range(10)))
        assert results.count(True) == 1

    async def test_unknown_value_rejected(self, ledger):
        assert await ledger.consume_temporary("never-issued") is False

    async def test_expired_rejected_even_if_unused(self, expired_ledger):
        value = await expired_ledger.issue_temporary()
        assert await expired_ledger.consume_temporary(value) is False

    async def test_refresh_token_cannot_open_gate(self, ledger, owner_id):
        value = await ledger.issue_refresh(owner_id)
        assert await ledger.consume_temporary(value) is False

    async def test_values_unique(self, ledger):
        values = [await ledger.issue_temporary() for _ in range(20)]
        assert len(set(values)) == 20


class TestRefreshTokens:

    async def test_redeem_does_not_consume(self, ledger, owner_id):
        value = await ledger.issue_refresh(owner_id)
        assert await ledger.redeem_refresh(value) == owner_id
        assert await ledger.redeem_refresh(value) == owner_id

    async def test_redeem_rejects_temporary(self, ledger):
        value = await ledger.issue_temporary()
        assert await ledger.redeem_refresh(value) is None

    async def test_redeem_rejects_expired(self, expired_ledger, owner_id):
        value = await expired_ledger.issue_refresh(owner_id)
        assert await expired_ledger.redeem_refresh(value) is None

    async def test_revoke_is_idempotent(self, ledger, owner_id):
        value = await ledger.issue_refresh(owner_id)
        await ledger.revoke_refresh(value)
        await ledger.revoke_refresh(value)
        assert await ledger.redeem_refresh(value) is None
        assert await ledger.exists(value) is False

    async def test_revoke_unknown_is_noop(self, ledger):
        await ledger.revoke_refresh("never-issued")

    async def test_rotate_retires_old_and_issues_new(self, ledger, owner_id):
        old = await ledger.issue_refresh(owner_id)
        new = await ledger.rotate_refresh(old, owner_id)
        assert new is not None and new != old
        assert await ledger.exists(old) is False
        assert await ledger.redeem_refresh(new) == owner_id
        assert await ledger.rotate_refresh(old, owner_id) is None

    async def test_rotate_requires_matching_owner(self, ledger, owner_id):
        value = await ledger.issue_refresh(owner_id)
        assert await ledger.rotate_refresh(value, "someone-else") is None
        assert await ledger.exists(value) is True

    async def test_concurrent_rotations_exactly_one_succeeds(self, ledger, owner_id):
        value = await ledger.issue_refresh(owner_id)
        results = await asyncio.gather(*(ledger.rotate_refresh(value, owner_id) for _ in range(8)))
        winners = [r for r in results if r is not None]
        assert len(winners) == 1

    async def test_revoke_all(self, ledger, owner_id):
        values = [await ledger.issue_refresh(owner_id) for _ in range(3)]
        assert await ledger.revoke_all_refresh(owner_id) == 3
        for value in values:
            assert await ledger.exists(value) is False

    async def test_retired_refresh_owner(self, ledger, owner_id):
        value = await ledger.issue_refresh(owner_id)
        assert await ledger.retired_refresh_owner(value) is None
        successor = await ledger.rotate_refresh(value, owner_id)
        assert await ledger.retired_refresh_owner(value) == owner_id
        assert await ledger.retired_refresh_owner(successor) is None
        assert await ledger.retired_refresh_owner("never-issued") is None


class TestExistsAndSweep:

    async def test_exists_tracks_active_flag(self, ledger):
        value = await ledger.issue_temporary()
        assert await ledger.exists(value) is True
        assert await ledger.exists("never-issued") is False

    async def test_sweep_removes_only_expired(self, ledger, expired_ledger, owner_id):
        stale_temp = await expired_ledger.issue_temporary()
        stale_refresh = await expired_ledger.issue_refresh(owner_id)
        fresh = await ledger.issue_temporary()

        assert await ledger.sweep_expired() == 2
        assert await ledger.exists(stale_temp) is False
        assert await ledger.exists(stale_refresh) is False
        assert await ledger.exists(fresh) is True

    async def test_sweep_with_explicit_now(self, ledger):
        await ledger.issue_temporary()
        later = datetime.now(timezone.utc) + timedelta(hours=1)
        assert await ledger.sweep_expired(later) == 1
        assert await ledger.sweep_expired(later) == 0


class TestRecordPredicates:

    async def test_is_valid_follows_flags(self, sessions, ledger):
        value = await ledger.issue_temporary()
        async with sessions() as session:
            record = (await session.execute(select(OpaqueToken).where(OpaqueToken.value == value))).scalar_one()
        assert isinstance(record, TemporaryToken)
        assert record.is_valid() is True
        assert record.is_expired(datetime.now(timezone.utc) + timedelta(hours=1)) is True

        await ledger.consume_temporary(value)
        async with sessions() as session:
            record = (await session.execute(select(OpaqueToken).where(OpaqueToken.value == value))).scalar_one()
        assert record.used is True
        assert record.is_valid() is False
