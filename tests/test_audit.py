"""Tests for the audit trail."""

import pytest

from quinn_memory.audit import AuditLog
from quinn_memory.storage import MemoryStorage, StorageContext


@pytest.mark.asyncio
async def test_disabled_without_path(tmp_path):
    audit = AuditLog()
    await audit.write("u1", "add-memory")
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_appends_entries(tmp_path):
    path = tmp_path / "logs" / "audit.log"
    audit = AuditLog(path)
    await audit.write("u1", "add-memory", "backend=dragonfly")
    await audit.write("u2", "search-memories")

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    assert lines[0].endswith(" | u1 | add-memory | backend=dragonfly")
    assert " | u2 | search-memories | " in lines[1]


@pytest.mark.asyncio
async def test_write_failure_is_swallowed(tmp_path, caplog):
    audit = AuditLog(tmp_path)  # a directory cannot be opened for append
    await audit.write("u1", "add-memory")
    assert "Audit log write failed" in caplog.text


@pytest.mark.asyncio
async def test_storage_records_serving_backend(tmp_path, durable, fake_redis):
    path = tmp_path / "audit.log"
    storage = MemoryStorage(StorageContext(durable=durable, audit=AuditLog(path)))

    await storage.record("first", "u1")
    fake_redis.go_down()
    await storage.record("second", "u1")
    await storage.search("", "u1")

    lines = path.read_text().splitlines()
    assert "add-memory | backend=dragonfly" in lines[0]
    assert "add-memory | backend=in-memory" in lines[1]
    assert "search-memories | backend=in-memory | results=1" in lines[2]
