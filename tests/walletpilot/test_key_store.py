"""Tests for the KeyStore facade: lifecycle, quotas, ownership and failure modes."""

from __future__ import annotations

import asyncio
import time
from unittest.mock import patch

import aiosqlite
import pytest

from walletpilot.auth.api_keys import hash_api_key
from walletpilot.auth.key_store import KeyStore, PLAN_KEY_LIMITS, limit_for_plan
from walletpilot.db.queries import profiles as profile_queries
from walletpilot.errors import NotFoundOrForbidden, QuotaExceeded, UpstreamUnavailable, ValidationError

from tests.conftest import API_KEY_ID, API_KEY_RAW, OTHER_USER_ID, USER_ID


@pytest.fixture
def store(db):
    return KeyStore(db)


# ---------------------------------------------------------------------------
# create / validate round trip
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_then_validate(store):
    raw_key, record = await store.create(OTHER_USER_ID, "n")
    assert raw_key.startswith("wp_")
    assert record.user_id == OTHER_USER_ID
    assert record.name == "n"
    assert record.is_active is True
    assert record.prefix == raw_key[:11] + "..."

    found = await store.validate(raw_key)
    assert found is not None
    assert found.id == record.id
    assert found.user_id == OTHER_USER_ID


@pytest.mark.asyncio
async def test_raw_key_is_not_persisted(store, db):
    raw_key, record = await store.create(OTHER_USER_ID, "n")
    async with db.execute("SELECT * FROM api_keys WHERE id = ?", (record.id,)) as cursor:
        row = dict(await cursor.fetchone())
    assert raw_key not in row.values()
    assert row["key_hash"] == hash_api_key(raw_key)


@pytest.mark.asyncio
async def test_validate_touches_last_used(store, db):
    async with db.execute("SELECT last_used_at FROM api_keys WHERE id = ?", (API_KEY_ID,)) as cursor:
        assert (await cursor.fetchone())[0] is None

    await store.validate(API_KEY_RAW)

    async with db.execute("SELECT last_used_at FROM api_keys WHERE id = ?", (API_KEY_ID,)) as cursor:
        assert (await cursor.fetchone())[0] is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["", "wp_notarealkey", "pm_live_something", "Bearer wp_x", None, 12345])
async def test_validate_malformed_input_returns_none(store, bad):
    assert await store.validate(bad) is None


@pytest.mark.asyncio
async def test_validate_does_not_raise_on_wrong_prefix_or_empty(store):
    # Same observable outcome for malformed and unknown keys
    assert await store.validate("wp_notarealkey") == await store.validate("")


@pytest.mark.asyncio
async def test_revoked_key_no_longer_validates(store):
    raw_key, record = await store.create(OTHER_USER_ID, "n")
    assert await store.revoke(record.id, OTHER_USER_ID) is True
    assert await store.validate(raw_key) is None


@pytest.mark.asyncio
async def test_deleted_key_no_longer_validates(store):
    raw_key, record = await store.create(OTHER_USER_ID, "n")
    assert await store.delete(record.id, OTHER_USER_ID) is True
    assert await store.validate(raw_key) is None


# ---------------------------------------------------------------------------
# name validation / account precondition
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["", "x" * 101])
async def test_create_rejects_bad_name(store, name):
    with pytest.raises(ValidationError):
        await store.create(OTHER_USER_ID, name)


@pytest.mark.asyncio
async def test_create_accepts_100_char_name(store):
    _, record = await store.create(OTHER_USER_ID, "x" * 100)
    assert len(record.name) == 100


@pytest.mark.asyncio
async def test_create_for_unknown_account(store):
    with pytest.raises(NotFoundOrForbidden):
        await store.create("no-such-user", "n")


# ---------------------------------------------------------------------------
# quota
# ---------------------------------------------------------------------------

def test_plan_limits():
    assert PLAN_KEY_LIMITS == {"free": 2, "pro": 10, "enterprise": 100}
    assert limit_for_plan("pro") == 10
    assert limit_for_plan(None) == 2
    assert limit_for_plan("platinum") == 2


@pytest.mark.asyncio
async def test_free_plan_quota(store):
    await store.create(OTHER_USER_ID, "A")
    await store.create(OTHER_USER_ID, "B")
    with pytest.raises(QuotaExceeded) as exc_info:
        await store.create(OTHER_USER_ID, "C")
    assert exc_info.value.limit == 2
    assert "(2)" in exc_info.value.message


@pytest.mark.asyncio
async def test_revoke_frees_quota(store):
    await store.create(OTHER_USER_ID, "A")
    _, b = await store.create(OTHER_USER_ID, "B")
    with pytest.raises(QuotaExceeded):
        await store.create(OTHER_USER_ID, "C")

    await store.revoke(b.id, OTHER_USER_ID)
    _, d = await store.create(OTHER_USER_ID, "D")
    assert d.name == "D"
    assert await store.count_active(OTHER_USER_ID) == 2


@pytest.mark.asyncio
async def test_delete_frees_quota(store):
    _, a = await store.create(OTHER_USER_ID, "A")
    await store.create(OTHER_USER_ID, "B")
    with pytest.raises(QuotaExceeded):
        await store.create(OTHER_USER_ID, "C")

    await store.delete(a.id, OTHER_USER_ID)
    _, d = await store.create(OTHER_USER_ID, "D")
    assert d.name == "D"


@pytest.mark.asyncio
async def test_quota_uses_plan_from_profile(store, db):
    await profile_queries.set_plan(db, OTHER_USER_ID, "pro")
    for i in range(10):
        await store.create(OTHER_USER_ID, f"key-{i}")
    with pytest.raises(QuotaExceeded) as exc_info:
        await store.create(OTHER_USER_ID, "one-too-many")
    assert exc_info.value.limit == 10


@pytest.mark.asyncio
async def test_concurrent_creates_never_exceed_quota(store):
    results = await asyncio.gather(
        *(store.create(OTHER_USER_ID, f"race-{i}") for i in range(8)),
        return_exceptions=True,
    )
    created = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, QuotaExceeded)]
    assert len(created) == 2
    assert len(rejected) == 6
    assert await store.count_active(OTHER_USER_ID) == 2


# ---------------------------------------------------------------------------
# list / ownership
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_newest_first_and_scoped(store):
    _, first = await store.create(OTHER_USER_ID, "first")
    _, second = await store.create(OTHER_USER_ID, "second")

    keys = await store.list(OTHER_USER_ID)
    assert [k.id for k in keys] == [second.id, first.id]

    alice_keys = await store.list(USER_ID)
    assert [k.id for k in alice_keys] == [API_KEY_ID]


@pytest.mark.asyncio
async def test_list_includes_revoked_keys_as_inactive(store):
    _, record = await store.create(OTHER_USER_ID, "n")
    await store.revoke(record.id, OTHER_USER_ID)
    keys = await store.list(OTHER_USER_ID)
    assert keys[0].is_active is False


@pytest.mark.asyncio
async def test_list_view_never_contains_digest(store):
    raw_key, _ = await store.create(OTHER_USER_ID, "n")
    for key in await store.list(OTHER_USER_ID):
        public = key.to_public()
        assert set(public) == {"id", "name", "prefix", "lastUsedAt", "isActive", "createdAt"}
        assert hash_api_key(raw_key) not in public.values()
        assert raw_key not in public.values()
        assert "key_hash" not in key.model_dump()


@pytest.mark.asyncio
async def test_revoke_is_idempotent(store):
    _, record = await store.create(OTHER_USER_ID, "n")
    assert await store.revoke(record.id, OTHER_USER_ID) is True
    assert await store.revoke(record.id, OTHER_USER_ID) is True


@pytest.mark.asyncio
async def test_not_owned_looks_like_not_found(store):
    # Bob cannot touch Alice's key, and learns nothing beyond "False"
    assert await store.revoke(API_KEY_ID, OTHER_USER_ID) is False
    assert await store.revoke("no-such-key", OTHER_USER_ID) is False
    assert await store.delete(API_KEY_ID, OTHER_USER_ID) is False
    assert await store.delete("no-such-key", OTHER_USER_ID) is False

    # Alice's key is untouched
    assert await store.validate(API_KEY_RAW) is not None


@pytest.mark.asyncio
async def test_delete_twice_returns_false(store):
    _, record = await store.create(OTHER_USER_ID, "n")
    assert await store.delete(record.id, OTHER_USER_ID) is True
    assert await store.delete(record.id, OTHER_USER_ID) is False


# ---------------------------------------------------------------------------
# backing store failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_store_timeout_raises_upstream_unavailable(db):
    store = KeyStore(db, timeout=0.01)

    async def slow(*args, **kwargs):
        await asyncio.sleep(1)
        return []

    with patch("walletpilot.db.queries.api_keys.list_keys_for_user", new=slow):
        with pytest.raises(UpstreamUnavailable):
            await store.list(USER_ID)


@pytest.mark.asyncio
async def test_driver_error_raises_upstream_unavailable(store):
    async def broken(*args, **kwargs):
        raise aiosqlite.OperationalError("disk I/O error")

    with patch("walletpilot.db.queries.api_keys.get_active_key_by_hash", new=broken):
        with pytest.raises(UpstreamUnavailable):
            await store.validate(API_KEY_RAW)


@pytest.mark.asyncio
async def test_quota_rejection_leaves_no_row(store, db):
    await store.create(OTHER_USER_ID, "A")
    await store.create(OTHER_USER_ID, "B")
    with pytest.raises(QuotaExceeded):
        await store.create(OTHER_USER_ID, "C")
    async with db.execute("SELECT COUNT(*) FROM api_keys WHERE user_id = ?", (OTHER_USER_ID,)) as cursor:
        assert (await cursor.fetchone())[0] == 2


@pytest.mark.asyncio
async def test_timed_out_create_leaves_no_key(db):
    # The insert keeps running on the driver thread after the caller gives up
    await db.create_function("slow_down", 0, lambda: time.sleep(0.3))
    await db.execute("CREATE TRIGGER slow_key_insert BEFORE INSERT ON api_keys BEGIN SELECT slow_down(); END")
    await db.commit()

    store = KeyStore(db, timeout=0.1)
    with pytest.raises(UpstreamUnavailable):
        await store.create(OTHER_USER_ID, "timed-out")

    await db.execute("DROP TRIGGER slow_key_insert")
    await db.commit()
    assert await store.list(OTHER_USER_ID) == []
    assert await store.count_active(OTHER_USER_ID) == 0
