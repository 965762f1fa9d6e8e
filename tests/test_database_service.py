from __future__ import annotations

import pytest

from chatrelay.services.database_service import DatabaseService


@pytest.mark.asyncio
async def test_queries_before_connect_fail_loudly() -> None:
    service = DatabaseService(dsn="postgresql://unused")

    assert service.connected is False
    with pytest.raises(RuntimeError):
        await service.fetch("SELECT 1")
    with pytest.raises(RuntimeError):
        await service.execute("SELECT 1")


@pytest.mark.asyncio
async def test_disconnect_without_pool_is_a_no_op() -> None:
    service = DatabaseService(dsn="postgresql://unused")

    await service.disconnect()

    assert service.connected is False
