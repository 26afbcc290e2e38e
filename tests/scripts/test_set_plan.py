"""Tests for the plan-change operator script."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from scripts import set_plan as script
from walletpilot.auth.key_store import KeyStore

from tests.conftest import OTHER_USER_ID


@pytest.mark.parametrize("argv", [[], [OTHER_USER_ID], [OTHER_USER_ID, "platinum"]])
def test_usage_errors(argv):
    assert script.main(argv) == 2


@pytest.mark.asyncio
async def test_set_plan_raises_quota(db):
    with patch("walletpilot.db.database.init_db", new=AsyncMock()), \
         patch("walletpilot.db.database.close_db", new=AsyncMock()), \
         patch("walletpilot.db.database.get_db", new=AsyncMock(return_value=db)):
        assert await script._set_plan(OTHER_USER_ID, "pro") is True
        assert await script._set_plan("no-such-user", "pro") is False

    store = KeyStore(db)
    for i in range(3):
        await store.create(OTHER_USER_ID, f"key-{i}")
    assert await store.count_active(OTHER_USER_ID) == 3
